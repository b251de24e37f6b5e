"""Argument parsing for prebuilt."""

import argparse
import os

from constants import Commands, Constants


def _env(option, default=None):
    """Default for an option, overridable with ``PREBUILT_<OPTION>``."""
    return os.environ.get(Constants.ENV_PREFIX + option, default)


def _env_flag(option):
    value = _env(option, "")
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(option):
    value = _env(option)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        raise SystemExit(f"{Constants.PROG}: invalid {Constants.ENV_PREFIX}{option}: {value!r}") from None


def _positive_float(text):
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {text!r}") from None
    if value <= 0:
        raise argparse.ArgumentTypeError("must be greater than zero")
    return value


def _common_options():
    """Options shared by all subcommands."""
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help=f"Configuration file (default: {Constants.DEFAULT_CONFIG_FILE})",
                        action="store",
                        type=str,
                        default=_env("CONFIG", Constants.DEFAULT_CONFIG_FILE))
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=Constants.LOG_LEVELS,
                        default=_env("LOGLEVEL", "INFO").upper())
    parser.add_argument("--log-format",
                        dest="LOG_FORMAT",
                        help="Log record format",
                        action="store",
                        type=str.lower,
                        choices=Constants.LOG_FORMATS,
                        default=_env("LOG_FORMAT", "text").lower())
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file ('-' for stderr, default: the user state directory)",
                        action="store",
                        type=str,
                        default=_env("LOGFILE"))
    parser.add_argument("--debug",
                        dest="DEBUG",
                        help="Shorthand for --loglevel DEBUG",
                        action="store_true",
                        default=_env_flag("DEBUG"))
    parser.add_argument("--timeout",
                        dest="TIMEOUT",
                        help="Abort the run after this many seconds",
                        action="store",
                        type=_positive_float,
                        default=_env_float("TIMEOUT"))
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Do not output to console.",
                        action="store_true",
                        default=_env_flag("QUIET"))
    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog=Constants.PROG,
        description="prebuilt - Install prebuilt binaries from release providers",
        add_help=True,
    )
    common = _common_options()
    sub = parser.add_subparsers(dest="COMMAND", metavar="COMMAND")
    sub.required = True

    sub.add_parser(Commands.LOCK.value,
                   parents=[common],
                   help="Resolve all configured binaries and write the lock file.")

    install = sub.add_parser(Commands.INSTALL.value,
                             parents=[common],
                             help="Install binaries, resolving and locking them first if no lock file exists.")
    install.add_argument("NAMES",
                         help="Names of binaries to install (default: all)",
                         nargs="*",
                         metavar="NAME")

    sub.add_parser(Commands.VERSION.value,
                   help="Print the program version.")

    args = parser.parse_args(argv)
    if getattr(args, "DEBUG", False):
        args.LOG_LEVEL = "DEBUG"
    return args
