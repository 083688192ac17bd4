#!/usr/bin/env python3
"""
checkwrap CLI - Run a health check and report only when its output changes.

Usage:
    checkwrap [-V] [-A args] [-D dir] [-M addr] [-P name] [-S subject]
              [-X timespec] [-C config] [--] program [args ...]

Exit codes:
    0:   Normal completion (whether or not anything was reported)
    74:  State directory or result files could not be used
    99:  Invalid command line or config file
    129/130/143: Terminated by SIGHUP/SIGINT/SIGTERM
"""

import argparse
import logging
import signal
import sys
from typing import List, Optional

from checkwrap.health import Outcome, build_config, run_wrapper
from checkwrap.health.errors import ConfigError, WrapperTerminated

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGHUP, signal.SIGINT, signal.SIGTERM)

VALUE_OPTIONS = ("-A", "-D", "-M", "-P", "-S", "-X", "-C")
FLAG_OPTIONS = ("-h", "-V")


class WrapperArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of exiting with status 2."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise ConfigError(message)


def setup_logging(verbose: bool = False) -> None:
    """
    Setup logging configuration.

    Quiet runs only log warnings, to stderr. Verbose runs echo every
    diagnostic to stdout next to the report.

    Args:
        verbose: If True, enable DEBUG level logging on stdout
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout if verbose else sys.stderr,
    )


def build_parser() -> WrapperArgumentParser:
    parser = WrapperArgumentParser(
        prog="checkwrap",
        description=(
            "Run a health-check program and report its output only when it "
            "differs from the output of the previous run."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        epilog="""
Options are read up to "--" or the first non-option word; everything after
that is the program and its arguments.

Timespecs combine <number><unit> groups, units w d h m s, e.g. 90, 1m30s, 1d6h.

Exit codes:
  0   - Normal completion
  74  - State directory or result files could not be used
  99  - Invalid command line or config file
  129/130/143 - Terminated by SIGHUP/SIGINT/SIGTERM

Examples:
  checkwrap -M root@example.com -X 1d /usr/sbin/checkrestart
  checkwrap -P /usr/local/bin/check_disks -A "-w 90" -- /srv /var
        """,
    )

    parser.add_argument(
        "-h",
        dest="show_help",
        action="store_true",
        help="Show this help and exit",
    )

    parser.add_argument(
        "-A",
        dest="extra_args",
        metavar="ARGS",
        help="Extra arguments prepended to the program's arguments",
    )

    parser.add_argument(
        "-D",
        dest="state_dir",
        metavar="DIR",
        help="State directory (default: <tmp>/checkwrap-<program>)",
    )

    parser.add_argument(
        "-M",
        dest="mail_to",
        metavar="ADDR",
        help="Mail results to ADDR (comma separated) instead of printing them",
    )

    parser.add_argument(
        "-P",
        dest="program",
        metavar="NAME",
        help="Program to run; every positional word becomes an argument",
    )

    parser.add_argument(
        "-S",
        dest="subject",
        metavar="SUBJECT",
        help='Mail subject (default: "<program> results on <host>")',
    )

    parser.add_argument(
        "-V",
        dest="verbose",
        action="store_true",
        help="Echo diagnostics to stdout",
    )

    parser.add_argument(
        "-X",
        dest="expire",
        metavar="TIMESPEC",
        help="Forget saved results once they are TIMESPEC old",
    )

    parser.add_argument(
        "-C",
        dest="config",
        metavar="FILE",
        help="JSON config file with defaults",
    )

    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Program and its arguments",
    )

    return parser


def attach_option_values(argv: List[str]) -> List[str]:
    """
    Bind each value option to the word that follows it.

    "-A -q" becomes "-A=-q", so a value option takes the next word even
    when it starts with a dash. Scanning stops at "--", the first
    non-option word, or an unknown option.

    Args:
        argv: Command line without the program name

    Returns:
        Rewritten command line
    """
    rewritten: List[str] = []
    index = 0
    while index < len(argv):
        word = argv[index]
        if word in VALUE_OPTIONS and index + 1 < len(argv):
            rewritten.append(f"{word}={argv[index + 1]}")
            index += 2
        elif word in FLAG_OPTIONS or word[:2] in VALUE_OPTIONS:
            rewritten.append(word)
            index += 1
        else:
            break

    return rewritten + argv[index:]


def _raise_terminated(signum, frame) -> None:
    raise WrapperTerminated(signum)


def install_signal_handlers() -> None:
    for signum in HANDLED_SIGNALS:
        signal.signal(signum, _raise_terminated)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line without the program name (defaults to sys.argv[1:])

    Returns:
        Exit code of the wrapper (see module docstring)
    """
    parser = build_parser()
    if argv is None:
        argv = sys.argv[1:]

    try:
        args = parser.parse_args(attach_option_values(argv))
    except ConfigError as e:
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        parser.print_help(sys.stderr)
        return Outcome.ARGUMENT_ERROR

    if args.show_help:
        parser.print_help()
        return Outcome.OK

    setup_logging(verbose=args.verbose)

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]

    if args.program:
        program, program_args = args.program, command
    elif command:
        program, program_args = command[0], command[1:]
    else:
        print(f"{parser.prog}: error: no program given", file=sys.stderr)
        parser.print_help(sys.stderr)
        return Outcome.ARGUMENT_ERROR

    install_signal_handlers()

    try:
        config = build_config(
            program,
            program_args,
            extra_args=args.extra_args,
            state_dir=args.state_dir,
            mail_to=args.mail_to,
            subject=args.subject,
            expire=args.expire,
            config_path=args.config,
        )
        outcome = run_wrapper(config)
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return Outcome.ARGUMENT_ERROR
    except WrapperTerminated as e:
        logger.error("checkwrap %s", e)
        return Outcome.for_signal(e.signum)

    logger.debug("checkwrap finished with exit code %d", outcome)
    return outcome


if __name__ == "__main__":
    sys.exit(main())
