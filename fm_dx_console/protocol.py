# -*- coding: utf-8 -*-

# =============================================================================
# fm-dx-console - Control Channel Protocol
# =============================================================================
#
# Description:
#   Decoding of the JSON frames sent on the FM-DX Webserver text WebSocket
#   and encoding of the tune command sent back to it.
#
#   Inbound frames carry any subset of the fields below. Older servers use
#   different names for a few of them, both spellings are accepted:
#
#     freq (MHz)  sig | signal  st  ps  pi  rt0 + rt1  users
#     txInfo: tx | station, city, itu, dist | distance, erp, pol, azi | azimuth
#
#   Outbound: 'T' followed by the frequency in kHz, e.g. 'T94500'.
#
# License:
#   This project is licensed under the GNU-GPL v3 License.
#
# =============================================================================

import json
import math
from dataclasses import dataclass
from typing import Optional, Union

from .state import Radiotext, TransmitterInfo

TUNE_COMMAND_TAG = "T"


class FrameDecodeError(ValueError):
    """Raised when an inbound text frame cannot be decoded."""


@dataclass(frozen=True)
class TunerUpdate:
    """
    One decoded frame. A field is None when the frame did not carry it.

    Present-but-empty values ("" / 0 / False) are kept as they are so that
    they overwrite the stored value on merge. Numeric fields reported as an
    empty string stay "".
    """
    frequency_khz: Optional[int] = None
    signal: Optional[Union[float, str]] = None
    stereo: Optional[bool] = None
    ps: Optional[str] = None
    pi: Optional[str] = None
    radiotext: Optional[Radiotext] = None
    tx_info: Optional[TransmitterInfo] = None
    users: Optional[int] = None


# =============================================================================
# Frequency Helpers
# =============================================================================

def mhz_to_khz(value):
    """
    Converts a frequency in MHz to integer kHz, rounded to the nearest kHz.

    Accepts numbers or strings; a comma is accepted as decimal separator.
    Returns None for anything that is not a finite, non-negative number.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return None
    try:
        mhz = float(value)
    except (ValueError, TypeError):
        return None
    khz = mhz * 1000  # Large finite values overflow to inf here
    if not math.isfinite(khz) or khz < 0:
        return None
    return int(round(khz))


def khz_to_mhz_str(khz):
    """Formats kHz as an MHz string with 3 decimals ('N/A' when unknown)."""
    if not isinstance(khz, int) or isinstance(khz, bool) or khz < 0:
        return "N/A"
    return f"{khz / 1000:.3f}"


def tune_command(khz):
    """Builds the wire command for tuning to `khz` kHz ('T94500')."""
    if not isinstance(khz, int) or isinstance(khz, bool) or khz < 0:
        raise ValueError(f"Tune frequency must be a non-negative integer kHz, got {khz!r}")
    return f"{TUNE_COMMAND_TAG}{khz}"


# =============================================================================
# Field Decoders
# =============================================================================
# Each returns None for an absent (missing or null) key and raises
# FrameDecodeError for a value of the wrong type.

def _pick(record, *keys):
    """Returns the value of the first key present and not null."""
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _as_number(record, *keys):
    value = _pick(record, *keys)
    if value is None:
        return None
    if isinstance(value, bool):
        raise FrameDecodeError(f"Field '{keys[0]}' is not a number: {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        if not value.strip():
            return ""  # Reported but empty: overwrites on merge
        try:
            number = float(value)
        except ValueError:
            raise FrameDecodeError(f"Field '{keys[0]}' is not a number: {value!r}") from None
    else:
        raise FrameDecodeError(f"Field '{keys[0]}' is not a number: {value!r}")
    if not math.isfinite(number):
        raise FrameDecodeError(f"Field '{keys[0]}' is not finite: {value!r}")
    return number


def _as_text(record, *keys):
    value = _pick(record, *keys)
    if value is None:
        return None
    if not isinstance(value, str):
        raise FrameDecodeError(f"Field '{keys[0]}' is not a string: {value!r}")
    return value


def _as_bool(record, key):
    value = record.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return value == 1
    raise FrameDecodeError(f"Field '{key}' is not a boolean: {value!r}")


def _as_int(record, key):
    value = record.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise FrameDecodeError(f"Field '{key}' is not an integer: {value!r}")
    return value


def _decode_frequency(record):
    value = record.get("freq")
    if value is None:
        return None
    khz = mhz_to_khz(value)
    if khz is None:
        raise FrameDecodeError(f"Field 'freq' is not a valid frequency: {value!r}")
    return khz


def _decode_radiotext(record):
    rt0 = _as_text(record, "rt0")
    rt1 = _as_text(record, "rt1")
    if rt0 is None or rt1 is None:
        return None  # Only a complete pair counts as an update
    return Radiotext(rt0, rt1)


def _decode_tx_info(record):
    tx = record.get("txInfo")
    if tx is None:
        return None
    if not isinstance(tx, dict):
        raise FrameDecodeError(f"Field 'txInfo' is not an object: {tx!r}")
    return TransmitterInfo(
        station=_as_text(tx, "tx", "station"),
        city=_as_text(tx, "city"),
        country=_as_text(tx, "itu"),
        distance_km=_as_number(tx, "dist", "distance"),
        power_kw=_as_number(tx, "erp"),
        polarization=_as_text(tx, "pol"),
        azimuth_deg=_as_number(tx, "azi", "azimuth"),
    )


# =============================================================================
# Frame Decoding
# =============================================================================

def decode_frame(message):
    """
    Decodes one text frame into a TunerUpdate.

    The whole frame is validated before anything is returned, so a frame is
    either fully usable or rejected; unknown keys are ignored.

    Args:
        message (str | bytes): Raw frame received on the text WebSocket.

    Returns:
        TunerUpdate: The fields carried by the frame.

    Raises:
        FrameDecodeError: Invalid JSON, not a JSON object, or a known field
            with an unusable value.
    """
    if isinstance(message, (bytes, bytearray)):
        try:
            message = message.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FrameDecodeError(f"Frame is not valid UTF-8: {e}") from e
    try:
        record = json.loads(message)
    except (json.JSONDecodeError, TypeError) as e:
        raise FrameDecodeError(f"Invalid JSON received: {e}") from e
    if not isinstance(record, dict):
        raise FrameDecodeError(f"Expected a JSON object, got {type(record).__name__}")

    return TunerUpdate(
        frequency_khz=_decode_frequency(record),
        signal=_as_number(record, "sig", "signal"),
        stereo=_as_bool(record, "st"),
        ps=_as_text(record, "ps"),
        pi=_as_text(record, "pi"),
        radiotext=_decode_radiotext(record),
        tx_info=_decode_tx_info(record),
        users=_as_int(record, "users"),
    )
