# -*- coding: utf-8 -*-

# =============================================================================
# fm-dx-console - Command Dispatcher
# =============================================================================
#
# Description:
#   Turns operator intents into tune commands for the connection. The store
#   is never written here: the frequency shown always comes from the next
#   frame the server sends back.
#
# License:
#   This project is licensed under the GNU-GPL v3 License.
#
# =============================================================================

from enum import Enum

from .protocol import khz_to_mhz_str, mhz_to_khz, tune_command


class Intent(Enum):
    STEP_UP_1000 = "step_up_1000"
    STEP_DOWN_1000 = "step_down_1000"
    STEP_UP_100 = "step_up_100"
    STEP_DOWN_100 = "step_down_100"
    STEP_UP_10 = "step_up_10"
    STEP_DOWN_10 = "step_down_10"
    REFRESH = "refresh"
    SET_FREQUENCY = "set_frequency"
    TOGGLE_HELP = "toggle_help"
    TOGGLE_PLAYBACK = "toggle_playback"
    QUIT = "quit"


# Tuning steps in kHz
STEP_SIZES_KHZ = {
    Intent.STEP_UP_1000: 1000,
    Intent.STEP_DOWN_1000: -1000,
    Intent.STEP_UP_100: 100,
    Intent.STEP_DOWN_100: -100,
    Intent.STEP_UP_10: 10,
    Intent.STEP_DOWN_10: -10,
}

TUNING_INTENTS = frozenset(STEP_SIZES_KHZ) | {Intent.REFRESH, Intent.SET_FREQUENCY}


def target_frequency(intent, snapshot, value=None):
    """
    Computes the frequency (kHz) an intent tunes to, or None for no action.

    Steps and refresh need a known frequency; SET_FREQUENCY needs `value`,
    a frequency in MHz (text or number).
    """
    if intent is Intent.SET_FREQUENCY:
        return mhz_to_khz(value)

    current = snapshot.frequency_khz if snapshot is not None else None
    if current is None:
        return None
    if intent is Intent.REFRESH:
        return current  # Re-tuning makes the server announce everything again
    delta = STEP_SIZES_KHZ.get(intent)
    if delta is None:
        return None
    target = current + delta
    return target if target >= 0 else None


def build_command(intent, snapshot, value=None):
    """Returns the wire command for `intent` ('T94600') or None for no action."""
    target = target_frequency(intent, snapshot, value)
    if target is None:
        return None
    return tune_command(target)


class CommandDispatcher:
    """Sends tuning intents through a TunerConnection."""

    def __init__(self, connection, on_event=None):
        self.connection = connection
        self.on_event = on_event

    def put_update(self, message_type, data):
        if self.on_event:
            self.on_event(message_type, data)

    def dispatch(self, intent, value=None):
        """
        Builds and sends the command for a tuning intent.

        Args:
            intent (Intent): One of TUNING_INTENTS.
            value (str | float): Frequency in MHz for Intent.SET_FREQUENCY.

        Returns:
            str | None: The command handed to the connection, or None if the
                intent was a no-op or the command was dropped.
        """
        if intent not in TUNING_INTENTS:
            raise ValueError(f"Not a tuning intent: {intent}")

        snapshot = self.connection.snapshot()
        command = build_command(intent, snapshot, value)
        if command is None:
            if intent is Intent.SET_FREQUENCY:
                self.put_update("warning", f"Invalid frequency '{value}'.")
            elif snapshot is None or snapshot.frequency_khz is None:
                self.put_update("status", "Waiting for frequency info...")
            else:
                self.put_update("warning", "Frequency out of range.")
            return None

        if not self.connection.send(command):
            return None
        self.put_update("status", f"Tuning to {khz_to_mhz_str(int(command[1:]))} MHz...")
        return command
