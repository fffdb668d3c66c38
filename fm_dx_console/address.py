# -*- coding: utf-8 -*-

# =============================================================================
# fm-dx-console - Address Resolution
# =============================================================================
#
# Description:
#   Derives the control (text) and audio WebSocket endpoints of an FM-DX
#   Webserver from the address given on the command line.
#
# License:
#   This project is licensed under the GNU-GPL v3 License.
#
# =============================================================================

import re

# --- Configuration Constants ---
WS_SCHEME = "ws://"             # Plain WebSocket
WSS_SCHEME = "wss://"           # WebSocket over TLS
AUDIO_PORT = 8081               # Well-known audio port on plain ws:// servers
AUDIO_STREAM_SUFFIX = "stream/" # Streaming resource behind a TLS proxy
TEXT_PATH = "text"              # Control channel resource

_TRAILING_PORT_RE = re.compile(r":\d+(/?)$")


class ConfigurationError(ValueError):
    """Raised when the server address cannot be used (missing or unsupported scheme)."""


def _check_scheme(address):
    """Returns the scheme prefix of `address` or raises ConfigurationError."""
    if not address or not isinstance(address, str):
        raise ConfigurationError("Server address is required (e.g. ws://host:8080/).")
    if address.startswith(WS_SCHEME):
        return WS_SCHEME
    if address.startswith(WSS_SCHEME):
        return WSS_SCHEME
    raise ConfigurationError(
        f"Address '{address}' does not start with {WS_SCHEME} or {WSS_SCHEME}."
    )


def _join(address, suffix):
    """Appends `suffix` to `address` with exactly one '/' in between."""
    return address.rstrip("/") + "/" + suffix


def resolve_audio_address(address):
    """
    Derives the audio stream address from the control address.

    Plain ws:// servers serve audio on a fixed port, so a trailing ':<port>'
    is swapped for it. Behind TLS the audio lives under the stream/ path.

    Args:
        address (str): Server address, e.g. 'ws://host:8080' or 'wss://host/'.

    Returns:
        str: The audio WebSocket address.

    Raises:
        ConfigurationError: If the address is empty or uses another scheme.
    """
    scheme = _check_scheme(address)
    if scheme == WS_SCHEME:
        return _TRAILING_PORT_RE.sub(rf":{AUDIO_PORT}\1", address)
    return _join(address, AUDIO_STREAM_SUFFIX)


def text_address(address):
    """Returns the control channel endpoint ('<address>/text')."""
    _check_scheme(address)
    return _join(address, TEXT_PATH)
