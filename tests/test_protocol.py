import json

import pytest

from fm_dx_console.protocol import (
    FrameDecodeError,
    decode_frame,
    khz_to_mhz_str,
    mhz_to_khz,
    tune_command,
)
from fm_dx_console.state import Radiotext


@pytest.mark.parametrize(
    "value, expected",
    [
        ("94.5", 94500),
        ("94.500", 94500),
        (94.5, 94500),
        (" 100.1 ", 100100),
        ("87,6", 87600),
        (0, 0),
        ("107.9999", 108000),
    ],
)
def test_mhz_to_khz(value, expected):
    assert mhz_to_khz(value) == expected


@pytest.mark.parametrize("value", ["", "abc", None, True, "-1", "nan", float("inf"), [94.5], "1e306", 1e306])
def test_mhz_to_khz_rejects_unusable_values(value):
    assert mhz_to_khz(value) is None


def test_khz_to_mhz_str():
    assert khz_to_mhz_str(94500) == "94.500"
    assert khz_to_mhz_str(None) == "N/A"


def test_tune_command():
    assert tune_command(94500) == "T94500"
    assert tune_command(0) == "T0"
    with pytest.raises(ValueError):
        tune_command(-10)
    with pytest.raises(ValueError):
        tune_command(94.5)


def test_decode_full_frame():
    frame = json.dumps({
        "freq": "94.500",
        "sig": 45.3,
        "st": True,
        "ps": "RADIO 1 ",
        "pi": "D3C3",
        "rt0": "Now playing",
        "rt1": "Something else",
        "users": 3,
        "txInfo": {"tx": "Radio One", "city": "Hilversum", "itu": "HOL",
                   "dist": "12", "erp": 50, "pol": "H", "azi": 270},
        "unknown": "ignored",
    })
    update = decode_frame(frame)
    assert update.frequency_khz == 94500
    assert update.signal == 45.3
    assert update.stereo is True
    assert update.ps == "RADIO 1 "
    assert update.pi == "D3C3"
    assert update.radiotext == Radiotext("Now playing", "Something else")
    assert update.users == 3
    tx = update.tx_info
    assert (tx.station, tx.city, tx.country, tx.polarization) == ("Radio One", "Hilversum", "HOL", "H")
    assert (tx.distance_km, tx.power_kw, tx.azimuth_deg) == (12.0, 50.0, 270.0)


def test_decode_accepts_long_key_spellings():
    update = decode_frame(json.dumps({
        "signal": 20,
        "txInfo": {"station": "Radio Two", "distance": 5.5, "azimuth": "90"},
    }))
    assert update.signal == 20.0
    assert update.tx_info.station == "Radio Two"
    assert update.tx_info.distance_km == 5.5
    assert update.tx_info.azimuth_deg == 90.0


def test_missing_and_null_fields_are_absent():
    update = decode_frame('{"ps": null, "freq": null}')
    assert update.ps is None
    assert update.frequency_khz is None
    assert update.tx_info is None


def test_empty_values_are_kept():
    update = decode_frame('{"ps": "", "st": false, "sig": "", "users": 0}')
    assert update.ps == ""
    assert update.stereo is False
    assert update.signal == ""
    assert update.users == 0


def test_radiotext_needs_both_lines():
    assert decode_frame('{"rt0": "only one"}').radiotext is None


def test_stereo_accepts_zero_and_one():
    assert decode_frame('{"st": 1}').stereo is True
    assert decode_frame('{"st": 0}').stereo is False


def test_bytes_frame_is_decoded():
    assert decode_frame(b'{"freq": 87.6}').frequency_khz == 87600


@pytest.mark.parametrize(
    "message",
    [
        "not json",
        "[1, 2, 3]",
        '"just a string"',
        '{"freq": "abc"}',
        '{"freq": -1}',
        '{"sig": "strong"}',
        '{"sig": true}',
        '{"st": "yes"}',
        '{"ps": 42}',
        '{"users": "3"}',
        '{"txInfo": "Radio One"}',
        '{"txInfo": {"erp": "lots"}}',
        '{"freq": 1e306}',
        b"\xff\xfe",
    ],
)
def test_malformed_frames_raise(message):
    with pytest.raises(FrameDecodeError):
        decode_frame(message)
