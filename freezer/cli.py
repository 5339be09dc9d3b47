# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""Headless freezer: connect, send telemetry until Control+C, disconnect.
"""

import asyncio
import logging
import signal
import sys
from .app import FreezerApp, configure_logging
from .config import build_arg_parser, load_config
from .exceptions import OperationCancelled

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


async def run(app: FreezerApp, cancellation: asyncio.Event) -> int:
    """
    Connect the session, wait until cancellation is requested, then disconnect.

    :returns: The process exit code.
    """
    print("Set up the device client.")
    result = await app.session.connect(cancellation)
    if not result:
        if isinstance(result.error, OperationCancelled):
            print("Cancelled before the freezer connected.")
            return EXIT_OK
        print("Could not connect the freezer: {}".format(result.error), file=sys.stderr)
        return EXIT_FAILURE

    await cancellation.wait()

    result = await app.session.disconnect()
    if not result:
        print("Error while disconnecting the freezer: {}".format(result.error), file=sys.stderr)
    print(
        "Freezer stopped. Telemetry sent={}, failed={}.".format(
            app.session.sent_count, app.session.failed_count
        )
    )
    return EXIT_OK


def _install_cancel_handlers(loop, request_cancel):
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_cancel)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Event loops on Windows do not support add_signal_handler
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(request_cancel))
    return installed


async def _main(app: FreezerApp) -> int:
    cancellation = asyncio.Event()
    loop = asyncio.get_running_loop()

    def request_cancel():
        if not cancellation.is_set():
            print("Freezer execution cancellation requested; will exit.")
            cancellation.set()

    installed = _install_cancel_handlers(loop, request_cancel)
    try:
        return await run(app, cancellation)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def main(argv=None) -> int:
    parser = build_arg_parser(prog="freezer")
    args = parser.parse_args(argv)

    result = load_config(args)
    if not result:
        print(str(result.error), file=sys.stderr)
        return EXIT_FAILURE
    config = result.value

    configure_logging(config.log_level)
    app = FreezerApp(config)

    print("Press Control+C to quit the freezer.")
    return asyncio.run(_main(app))


def entry_point():
    sys.exit(main())
