import pytest

from fm_dx_console.dispatcher import (
    CommandDispatcher,
    Intent,
    build_command,
    target_frequency,
)
from fm_dx_console.state import TunerSnapshot


class RecordingConnection:
    """Connection double: returns a fixed snapshot and records sends."""

    def __init__(self, snapshot=None, accept=True):
        self._snapshot = snapshot
        self.accept = accept
        self.sent = []

    def snapshot(self):
        return self._snapshot

    def send(self, command):
        self.sent.append(command)
        return self.accept


@pytest.mark.parametrize(
    "intent, expected",
    [
        (Intent.STEP_UP_1000, "T95500"),
        (Intent.STEP_DOWN_1000, "T93500"),
        (Intent.STEP_UP_100, "T94600"),
        (Intent.STEP_DOWN_100, "T94400"),
        (Intent.STEP_UP_10, "T94510"),
        (Intent.STEP_DOWN_10, "T94490"),
        (Intent.REFRESH, "T94500"),
    ],
)
def test_build_command_steps_from_current_frequency(intent, expected):
    assert build_command(intent, TunerSnapshot(frequency_khz=94500)) == expected


@pytest.mark.parametrize("value", ["100.1", 100.1, "100,1"])
def test_set_frequency(value):
    assert build_command(Intent.SET_FREQUENCY, None, value) == "T100100"


def test_steps_need_a_known_frequency():
    assert build_command(Intent.STEP_UP_100, None) is None
    assert build_command(Intent.REFRESH, TunerSnapshot(ps="RADIO")) is None


def test_step_below_zero_is_a_no_op():
    assert target_frequency(Intent.STEP_DOWN_1000, TunerSnapshot(frequency_khz=500)) is None
    assert target_frequency(Intent.STEP_DOWN_10, TunerSnapshot(frequency_khz=10)) == 0


def test_dispatch_sends_command_and_reports(events):
    connection = RecordingConnection(TunerSnapshot(frequency_khz=94500))
    dispatcher = CommandDispatcher(connection, events)

    assert dispatcher.dispatch(Intent.STEP_UP_1000) == "T95500"
    assert connection.sent == ["T95500"]
    assert events.of_type("status") == ["Tuning to 95.500 MHz..."]


def test_dispatch_does_not_touch_the_snapshot():
    snapshot = TunerSnapshot(frequency_khz=94500)
    connection = RecordingConnection(snapshot)
    CommandDispatcher(connection).dispatch(Intent.STEP_DOWN_10)
    assert connection.snapshot() is snapshot
    assert snapshot.frequency_khz == 94500


def test_dispatch_without_frequency_sends_nothing(events):
    connection = RecordingConnection(None)
    dispatcher = CommandDispatcher(connection, events)

    assert dispatcher.dispatch(Intent.STEP_UP_10) is None
    assert connection.sent == []
    assert events.of_type("status") == ["Waiting for frequency info..."]


def test_dispatch_invalid_input_sends_nothing(events):
    connection = RecordingConnection(TunerSnapshot(frequency_khz=94500))
    dispatcher = CommandDispatcher(connection, events)

    assert dispatcher.dispatch(Intent.SET_FREQUENCY, "abc") is None
    assert connection.sent == []
    assert events.of_type("warning") == ["Invalid frequency 'abc'."]


def test_dispatch_below_zero_reports_out_of_range(events):
    connection = RecordingConnection(TunerSnapshot(frequency_khz=50))
    dispatcher = CommandDispatcher(connection, events)

    assert dispatcher.dispatch(Intent.STEP_DOWN_100) is None
    assert connection.sent == []
    assert events.of_type("warning") == ["Frequency out of range."]


def test_dropped_send_returns_none(events):
    connection = RecordingConnection(TunerSnapshot(frequency_khz=94500), accept=False)
    dispatcher = CommandDispatcher(connection, events)

    assert dispatcher.dispatch(Intent.REFRESH) is None
    assert connection.sent == ["T94500"]
    assert events.of_type("status") == []


@pytest.mark.parametrize("intent", [Intent.QUIT, Intent.TOGGLE_HELP, Intent.TOGGLE_PLAYBACK])
def test_non_tuning_intents_are_rejected(intent):
    with pytest.raises(ValueError):
        CommandDispatcher(RecordingConnection()).dispatch(intent)


def test_oversized_frequency_input_sends_nothing(events):
    connection = RecordingConnection(TunerSnapshot(frequency_khz=94500))
    dispatcher = CommandDispatcher(connection, events)

    assert dispatcher.dispatch(Intent.SET_FREQUENCY, "1e306") is None
    assert connection.sent == []
    assert events.of_type("warning") == ["Invalid frequency '1e306'."]
