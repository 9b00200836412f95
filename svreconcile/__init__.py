#!/usr/bin/env python
# -*-coding:utf-8 -*-
'''
@Time: 2026/10/18

svreconcile: cluster, benchmark and back-genotype structural variant calls
across call sets.
'''
import difflib

__version__ = "0.1.0"


def help_unknown_cmd(user_cmd, avail_cmds):
    '''
    Return the closest available command to a mistyped one, or None
    '''
    guess = difflib.get_close_matches(user_cmd, avail_cmds, n=1, cutoff=0.6)
    if guess:
        return guess[0]
    return None
