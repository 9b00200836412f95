#!/usr/bin/env python
# -*-coding:utf-8 -*-
'''
@Time: 2026/10/18
'''

import svreconcile, argparse, logging, sys
from svreconcile.benchmark import benchmark_main
from svreconcile.cluster import cluster_main
from svreconcile.exceptions import SVReconcileError
from svreconcile.genotype import genotype_main
from rich.console import Console
from rich.logging import RichHandler

COMMANDS = ["cluster", "benchmark", "genotype"]

USAGE = f"""\
[bold]svreconcile v{svreconcile.__version__}[/] - Structural Variant Clustering, Benchmarking and Genotyping across Call Sets

[bold cyan]cluster[/]  Cluster similar SVs from one or more VCF files and report one representative per cluster
[bold cyan]benchmark[/]  Compare a test VCF against a truth VCF and report recall, precision and F1
[bold cyan]genotype[/]  Genotype a target sample's SVs across assembly-based call sets
"""

logger = logging.getLogger()


class ArgumentParser(argparse.ArgumentParser):
    """
    Parser that renders help and errors through rich on stderr and suggests
    a sub-command for typos
    """
    stderr = Console(stderr=True)

    def error(self, message):
        self.stderr.print(f'[bold red]{self.prog}[/]: {message}')
        if "invalid choice" in message and len(sys.argv) > 1:
            guess = svreconcile.help_unknown_cmd(sys.argv[1], COMMANDS)
            if guess:
                self.stderr.print(f"Did you mean [bold cyan]{guess}[/]?")
        self.exit(2)

    def _print_message(self, message, file=None):
        if message:
            self.stderr.print(message, highlight=False)


def _enable_logging(log_file=None, debug=False):
    """
    Turns on logging, sets debug levels and assigns a log file
    """
    console_log = RichHandler(console=Console(stderr=True), show_path=False)
    console_log.setFormatter(logging.Formatter("%(message)s", "%Y-%m-%d %H:%M:%S"))
    console_log.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.setLevel(logging.DEBUG)
    logger.addHandler(console_log)

    if log_file is not None:
        log_formatter = logging.Formatter("[%(asctime)s] %(name)s: %(levelname)s: "
                                          "%(message)s", "%Y-%m-%d %H:%M:%S")
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setFormatter(log_formatter)
        logger.addHandler(file_handler)


def main():
    """
    Main entrypoint for svreconcile subcommands
    """
    parser = ArgumentParser(prog="svreconcile", description=USAGE,
                            formatter_class=argparse.RawDescriptionHelpFormatter)

    parser.add_argument("cmd", metavar="CMD", choices=COMMANDS, type=str, default=None,
                        help="Command to execute")
    parser.add_argument("--log", default=None, help="Also write the log to this file")
    parser.add_argument("--debug", action="store_true", help="Show debug messages")
    parser.add_argument("options", metavar="OPTIONS", nargs=argparse.REMAINDER,
                        help="Options to pass to the command")
    if len(sys.argv)==1:
        parser.print_help(sys.stderr)
        sys.exit()
    args = parser.parse_args()
    _enable_logging(args.log, args.debug)
    try:
        if args.cmd == "cluster":
            cluster_main(args.options)
        elif args.cmd == "benchmark":
            benchmark_main(args.options)
        elif args.cmd == "genotype":
            genotype_main(args.options)
    except SVReconcileError as err:
        logger.error(str(err))
        sys.exit(1)


if __name__ == '__main__':
    main()
