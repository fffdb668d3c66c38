#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# =============================================================================
# fm-dx-console - Console Client for FM-DX Webserver Tuners
# =============================================================================
#
# Description:
#   Connects to an FM-DX Webserver (https://github.com/NoobishSVK/fm-dx-webserver)
#   text WebSocket, shows the tuner state it reports (frequency, signal,
#   stereo, RDS PS/PI, RadioText, transmitter data, listener count) and
#   sends tune commands from the keyboard. Audio can be played locally
#   through 'ffplay'.
#
# License:
#   This project is licensed under the GNU-GPL v3 License.
#
# =============================================================================
#
# Usage:
#   fm-dx-console --url <websocket_address>
#   python -m fm_dx_console --url ws://example.com:8080/
#
# Keyboard Controls:
#   q / w : Tune down / up by 1000 kHz
#   a / s : Tune down / up by 100 kHz
#   z / x : Tune down / up by 10 kHz
#   r     : Refresh (re-tune to the current frequency)
#   t     : Enter a frequency in MHz (Enter tunes, Esc cancels)
#   p     : Toggle audio playback
#   h     : Toggle help
#   Esc   : Quit (also Ctrl+C)
#
# Exit Codes:
#   0 : Normal quit
#   1 : Missing or unsupported address, or terminal smaller than 80x24
#
# =============================================================================

import argparse
import asyncio
import sys

from . import __version__
from .address import ConfigurationError
from .audio import check_command
from .console import MIN_COLUMNS, MIN_ROWS, check_terminal_size
from .controller import ConsoleController


def build_parser():
    parser = argparse.ArgumentParser(
        prog="fm-dx-console",
        description="Console client for FM-DX Webserver tuners with optional ffplay audio output.",
        epilog="Press 'h' inside the console for key bindings.",
    )
    parser.add_argument(
        "--url",
        default=None,
        help="WebSocket address of the server, e.g. 'ws://example.com:8080/' or 'wss://example.com/'.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.url:
        print("Usage: fm-dx-console --url <websocket_address>", file=sys.stderr)
        sys.exit(1)

    # --- Address Check (before any connection attempt) ---
    try:
        controller = ConsoleController(args.url)
    except ConfigurationError as e:
        print(f"Address Error: {e}", file=sys.stderr)
        sys.exit(1)

    if not check_terminal_size():
        print(f"Terminal size is smaller than {MIN_COLUMNS}x{MIN_ROWS}. Exiting...", file=sys.stderr)
        sys.exit(1)

    # Informational only; playback reports the problem again if attempted
    if not check_command("ffplay"):
        print("Warning: 'ffplay' not found in PATH. Audio playback will not work.", file=sys.stderr)

    try:
        exit_code = asyncio.run(controller.run())
    except KeyboardInterrupt:
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
