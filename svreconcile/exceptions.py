#!/usr/bin/env python
# -*-coding:utf-8 -*-
'''
@Time: 2026/10/18

Fatal errors raised while reconciling SV call sets. Recoverable problems are
logged where they happen and never reach here.
'''


class SVReconcileError(Exception):
    """Base class for errors that abort a run."""


class VcfFormatError(SVReconcileError):
    """A record does not have the expected column shape or required tags."""


class UnsortedInputError(SVReconcileError):
    """Input is not sorted by chromosome block and position."""

    def __init__(self, source, previous, current):
        self.source = source
        self.previous = previous
        self.current = current
        super().__init__(
            f"{source}: input must be sorted by chromosome and position, "
            f"found {current[0]}:{current[1]} after {previous[0]}:{previous[1]}"
        )


class MissingSampleError(SVReconcileError):
    """The target sample has no row in the info file."""


class RefLengthMismatchError(SVReconcileError):
    """REF allele length disagrees with POS/END."""


class DuplicatePairError(SVReconcileError):
    """The same unordered pair was compared twice in one pass."""

    def __init__(self, key):
        self.key = key
        super().__init__(f"Distance for pair {key[0]}-{key[1]} was already recorded")
