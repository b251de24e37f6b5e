"""prebuilt: install prebuilt binaries from release providers.

    Resolves version constraints against provider release listings, records
    the results in a digest-stamped lock file and installs the binaries.
"""

import logging
import signal
import sys

from args import parse_args
from cli_install import run_install
from cli_lock import run_lock
from common.cancellation import CancellationToken
from common.logging_utils import configure_logging, extra_context
from constants import Commands, Constants, ExitCodes
from errors import Cancelled, HTTPRequestError, PrebuiltError, get_metadata

logger = logging.getLogger(__name__)

COMMANDS = {
    Commands.LOCK.value: run_lock,
    Commands.INSTALL.value: run_install,
}


def exit_code_for(exc: BaseException) -> ExitCodes:
    """Map a failure to the process exit code."""
    if isinstance(exc, (Cancelled, KeyboardInterrupt)):
        return ExitCodes.INTERRUPTED
    if isinstance(exc, HTTPRequestError):
        return ExitCodes.CONNECTION_ERROR
    return ExitCodes.FAILURE


def _install_sigint_handler(token: CancellationToken):
    """Cancel ``token`` on the first SIGINT; a second one aborts immediately."""

    def _handler(signum, frame):  # pylint: disable=unused-argument
        logger.warning("Interrupted, cancelling")
        token.cancel()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    return signal.signal(signal.SIGINT, _handler)


def run(argv=None) -> ExitCodes:
    """Run the CLI and return its exit code."""
    args = parse_args(argv)
    if args.COMMAND == Commands.VERSION.value:
        print(f"{Constants.PROG} {Constants.VERSION}")
        return ExitCodes.SUCCESS

    log_path = configure_logging(args.LOG_LEVEL, args.LOG_FORMAT, args.LOG_FILE)
    logger.debug(
        "CLI start",
        extra=extra_context(event="function_entry", component="cli", action=args.COMMAND),
    )

    token = CancellationToken(timeout=args.TIMEOUT)
    previous = _install_sigint_handler(token)
    try:
        COMMANDS[args.COMMAND](args, token)
    except (PrebuiltError, KeyboardInterrupt) as exc:
        # failures caused by a cancelled run count as interrupted
        code = ExitCodes.INTERRUPTED if token.is_cancelled() else exit_code_for(exc)
        fields = get_metadata(exc)
        fields.update(event="command_failed", component="cli", action=args.COMMAND, exit_code=code.value)
        logger.error("%s failed: %s", args.COMMAND, exc, extra=extra_context(**fields))
        message = f"{Constants.PROG}: {args.COMMAND}: {str(exc) or 'interrupted'}"
        if log_path is not None:
            message += f"\nSee {log_path} for details"
        print(message, file=sys.stderr)
        return code
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)

    logger.debug(
        "CLI finished",
        extra=extra_context(event="function_exit", component="cli", action=args.COMMAND, outcome="success"),
    )
    return ExitCodes.SUCCESS


def main(argv=None):
    """Main function of the program."""
    sys.exit(run(argv).value)


if __name__ == "__main__":
    main()
