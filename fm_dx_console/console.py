# -*- coding: utf-8 -*-

# =============================================================================
# fm-dx-console - Console Presentation
# =============================================================================
#
# Description:
#   Terminal rendering of the tuner snapshot with plain ANSI sequences, the
#   key map that turns key presses into intents, and the keyboard listener
#   thread ('readchar').
#
#   Screen layout (80x24 minimum):
#     title bar + clock
#     [ Tuner          ] [ Station Data   ]
#     [ Radiotext                         ]
#     [ Signal         ] [ Users          ]
#     bottom bar, status line, frequency prompt
#
# License:
#   This project is licensed under the GNU-GPL v3 License.
#
# =============================================================================

import shutil
import threading
import traceback

import readchar

from .connection import ConnectionState
from .dispatcher import Intent
from .playback import PlaybackState
from .protocol import khz_to_mhz_str

# --- CLI Constants ---
CLEAR_LINE = "\033[K"             # ANSI: Clear line from cursor to end
CLEAR_SCREEN = "\033[2J\033[H"    # ANSI: Clear screen, cursor to top-left
HOME = "\033[1;1H"                # ANSI: Cursor to row 1, col 1
SHOW_CURSOR = "\033[?25h"         # ANSI: Show cursor
HIDE_CURSOR = "\033[?25l"         # ANSI: Hide cursor
REVERSE = "\033[7m"               # ANSI: Reverse video (title bars)
BOLD = "\033[1m"
RESET = "\033[0m"

KEY_BACKSPACE = ["\x08", "\x7f"]  # Backspace and Delete often map differently
KEY_ENTER = ["\r", "\n"]          # Carriage Return and Line Feed
KEY_ESC = "\x1b"                  # Escape key
KEY_CTRL_C = "\x03"               # Control-C character
KEY_UP_SEQ = ["\x1b[A", "\x1bOA"]
KEY_DOWN_SEQ = ["\x1b[B", "\x1bOB"]
KEY_RIGHT_SEQ = ["\x1b[C", "\x1bOC"]
KEY_LEFT_SEQ = ["\x1b[D", "\x1bOD"]
ESCAPE_SEQUENCES = set(KEY_UP_SEQ + KEY_DOWN_SEQ + KEY_RIGHT_SEQ + KEY_LEFT_SEQ)

MIN_COLUMNS = 80
MIN_ROWS = 24
SIGNAL_MAX = 100                  # Tuners report up to ~130 dBf, 100 reads better
MAX_INPUT_LENGTH = 8

KEY_MAP = {
    "q": Intent.STEP_DOWN_1000,
    "w": Intent.STEP_UP_1000,
    "a": Intent.STEP_DOWN_100,
    "s": Intent.STEP_UP_100,
    "z": Intent.STEP_DOWN_10,
    "x": Intent.STEP_UP_10,
    "r": Intent.REFRESH,
    "t": Intent.SET_FREQUENCY,
    "p": Intent.TOGGLE_PLAYBACK,
    "h": Intent.TOGGLE_HELP,
    KEY_ESC: Intent.QUIT,
    KEY_CTRL_C: Intent.QUIT,
}

HELP_LINES = [
    "Press keys:",
    "'q' to decrease by 1000 kHz",
    "'w' to increase by 1000 kHz",
    "'z' to decrease by 10 kHz",
    "'x' to increase by 10 kHz",
    "'a' to decrease by 100 kHz",
    "'s' to increase by 100 kHz",
    "'r' to refresh",
    "'t' to set frequency",
    "'p' to play audio",
    "'Esc' to quit",
    "'h' to toggle this help",
]


# =============================================================================
# Formatting Helpers
# =============================================================================

def terminal_size():
    """Returns (columns, rows) of the controlling terminal."""
    size = shutil.get_terminal_size((MIN_COLUMNS, MIN_ROWS))
    return size.columns, size.lines


def check_terminal_size():
    """True if the terminal is at least MIN_COLUMNS x MIN_ROWS."""
    columns, rows = terminal_size()
    return columns >= MIN_COLUMNS and rows >= MIN_ROWS


def signal_percent(value):
    """Scales a signal reading to 0-100 for the meter, clamped to SIGNAL_MAX."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    value = max(0, min(SIGNAL_MAX, value))
    return int(value / SIGNAL_MAX * 100)


def pad_label(text, total_length):
    """Left-pads a label with one space and right-pads it to total_length."""
    spaces_to_add = total_length - len(text)
    if spaces_to_add <= 0:
        return text
    return " " + text + " " * spaces_to_add


def format_number(value):
    """Numbers without a trailing '.0'; '' for missing or empty values."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return ""
    return f"{value:g}"


def format_tuner_lines(snapshot, connection_state):
    if connection_state is ConnectionState.CLOSED:
        return ["WebSocket connection closed"]
    if connection_state is ConnectionState.CONNECTING:
        return ["Connecting..."]
    if snapshot is None:
        return ["WebSocket connection established"]

    pad = 11
    freq = khz_to_mhz_str(snapshot.frequency_khz) if snapshot.frequency_khz is not None else "---.---"
    sig = snapshot.signal
    sig_str = f"{sig:.1f} dBf" if isinstance(sig, (int, float)) and not isinstance(sig, bool) else ""
    if snapshot.stereo is None:
        mode = ""
    else:
        mode = "Stereo" if snapshot.stereo else "Mono"
    return [
        f"{pad_label('Frequency:', pad)}{freq} MHz",
        f"{pad_label('Signal:', pad)}{sig_str}",
        f"{pad_label('Mode:', pad)}{mode}",
        f"{pad_label('RDS PS:', pad)}{snapshot.ps or ''}",
        f"{pad_label('RDS PI:', pad)}{snapshot.pi or ''}",
    ]


def format_station_lines(tx_info):
    pad = 10
    if tx_info is None:
        return [pad_label("Station:", pad)]
    city = tx_info.city or ""
    country = tx_info.country or ""
    location = f"{city}, {country}" if city and country else city or country
    distance = format_number(tx_info.distance_km)
    power = format_number(tx_info.power_kw)
    azimuth = format_number(tx_info.azimuth_deg)
    power_str = ""
    if power:
        power_str = f"{power} kW"
        if tx_info.polarization:
            power_str += f" [{tx_info.polarization}]"
    return [
        f"{pad_label('Station:', pad)}{tx_info.station or ''}",
        f"{pad_label('Location:', pad)}{location}",
        f"{pad_label('Distance:', pad)}{distance + ' km' if distance else ''}",
        f"{pad_label('Power:', pad)}{power_str}",
        f"{pad_label('Azimuth:', pad)}{azimuth + '°' if azimuth else ''}",
    ]


def signal_bar(percent, width):
    """A text meter such as '[#####.....]  50%' fitting in `width` columns."""
    bar_width = max(1, width - 8)
    filled = int(round(bar_width * percent / 100))
    return f"[{'#' * filled}{'.' * (bar_width - filled)}] {percent:3d}%"


def box(title, lines, width, height):
    """Draws a bordered box with a centered title; content is clipped to fit."""
    inner = width - 2
    label = f" {title} " if title else ""
    top = "┌" + label.center(inner, "─") + "┐"
    body = []
    for i in range(height - 2):
        text = lines[i] if i < len(lines) else ""
        body.append("│" + text[:inner].ljust(inner) + "│")
    return [top] + body + ["└" + "─" * inner + "┘"]


def side_by_side(left, right):
    return [a + b for a, b in zip(left, right)]


# =============================================================================
# Console View
# =============================================================================

class ConsoleView:
    """
    Renders the tuner snapshot and turns keys into (Intent, value) pairs.

    The view only reads the snapshot it is given; it never touches the
    connection, the store or the player.
    """

    def __init__(self, address, out=None):
        self.address = address
        self.out = out
        self.help_visible = False
        self.prompt_active = False
        self.input_buffer = ""
        self.status_message = ""

    # --- Input ---

    def handle_key(self, key):
        """
        Maps a key press to an (Intent, value) pair, or None.

        While the frequency prompt is open, keys edit the input buffer:
        Enter submits it as SET_FREQUENCY, Esc closes the prompt.
        """
        if self.prompt_active:
            return self._handle_prompt_key(key)

        intent = KEY_MAP.get(key)
        if intent is Intent.SET_FREQUENCY:
            self.prompt_active = True
            self.input_buffer = ""
            return None
        if intent is Intent.TOGGLE_HELP:
            self.help_visible = not self.help_visible
        return (intent, None) if intent is not None else None

    def _handle_prompt_key(self, key):
        if key == KEY_CTRL_C:
            self.prompt_active = False
            return (Intent.QUIT, None)
        if key == KEY_ESC:
            self.prompt_active = False
            self.input_buffer = ""
            return None
        if key in KEY_BACKSPACE:
            self.input_buffer = self.input_buffer[:-1]
            return None
        if key in KEY_ENTER:
            value, self.input_buffer = self.input_buffer, ""
            self.prompt_active = False
            return (Intent.SET_FREQUENCY, value)
        if len(key) == 1 and key.isprintable() and len(self.input_buffer) < MAX_INPUT_LENGTH:
            self.input_buffer += key
        return None

    def set_status(self, message):
        self.status_message = message

    # --- Output ---

    def render(self, snapshot, connection_state, playback_state, now, width=MIN_COLUMNS):
        """
        Builds the screen as a list of lines.

        Args:
            snapshot (TunerSnapshot | None): Current tuner state.
            connection_state (ConnectionState): State of the control session.
            playback_state (PlaybackState): Local audio state.
            now (datetime.datetime): Time shown by the clock.
            width (int): Screen width in columns.
        """
        half = width // 2
        clock = now.strftime("%H:%M")
        title = " fm-dx-console"
        lines = [REVERSE + BOLD + title + clock.rjust(width - len(title) - 1) + " " + RESET]

        if self.help_visible:
            lines += box("Help", HELP_LINES, width, len(HELP_LINES) + 2)
        else:
            live = snapshot if connection_state is ConnectionState.OPEN else None
            tuner = box("Tuner", format_tuner_lines(snapshot, connection_state), half, 7)
            tx_info = live.tx_info if live is not None else None
            station = box("Station Data", format_station_lines(tx_info), width - half, 7)
            lines += side_by_side(tuner, station)

            radiotext = live.radiotext if live is not None else None
            rt_lines = []
            if radiotext is not None:
                rt_lines = [radiotext.line0.strip().center(width - 2),
                            radiotext.line1.strip().center(width - 2)]
            lines += box("Radiotext", rt_lines, width, 4)

            percent = signal_percent(live.signal) if live is not None else 0
            signal_lines = [" " + signal_bar(percent, half - 4)]
            users = live.users if live is not None and live.users is not None else ""
            audio = "Playing" if playback_state is PlaybackState.PLAYING else "Stopped"
            users_lines = [f" Users: {users}", f" Audio: {audio}"]
            lines += side_by_side(box("Signal", signal_lines, half, 4),
                                  box("Users", users_lines, width - half, 4))

        bottom = f"Connected to server on {self.address} press `h` for help"
        lines.append(REVERSE + bottom[:width].center(width) + RESET)
        lines.append(self.status_message[:width - 1])
        if self.prompt_active:
            lines.append(f"Enter frequency in MHz: {self.input_buffer}_")
        return lines

    def draw(self, lines):
        """Writes the lines to the terminal, top-left, clearing each row."""
        chunks = [HOME]
        for line in lines:
            chunks.append(f"{CLEAR_LINE}{line}\n")
        chunks.append(CLEAR_LINE)
        print("".join(chunks), end="", flush=True, file=self.out)

    def start(self):
        print(f"{HIDE_CURSOR}{CLEAR_SCREEN}", end="", flush=True, file=self.out)

    def finish(self):
        print(f"{SHOW_CURSOR}\n", end="", flush=True, file=self.out)


# =============================================================================
# Keyboard Listener
# =============================================================================

def split_key(key):
    """
    Splits what readchar.readkey() returned into the keys actually pressed.

    readkey() reads one more character after Esc to look for an escape
    sequence, so a bare Esc followed by 'w' arrives as '\\x1bw'. Known
    sequences (arrows) stay whole; anything else starting with Esc becomes
    Esc followed by the remaining characters.
    """
    if len(key) <= 1 or not key.startswith(KEY_ESC) or key in ESCAPE_SEQUENCES:
        return [key]
    return [KEY_ESC] + split_key(key[1:])


def start_keyboard_listener(loop, on_key, stop_event, readkey=None):
    """
    Starts a daemon thread that reads keys and hands them to the event loop.

    The thread never touches application state: every key is delivered with
    loop.call_soon_threadsafe(on_key, key), so it is handled on the loop.

    Args:
        loop (asyncio.AbstractEventLoop): Loop running the controller.
        on_key (callable): Called on the loop thread with each key string.
        stop_event (threading.Event): Set to end the listener.
        readkey (callable): Blocking key reader, defaults to readchar.readkey.
    """
    readkey = readkey or readchar.readkey

    def _listen():
        while not stop_event.is_set():
            try:
                key = readkey()
            except KeyboardInterrupt:
                key = KEY_CTRL_C
            except Exception as e:
                if not stop_event.is_set():
                    print(f"\n{CLEAR_LINE}Keyboard listener error: {e}", flush=True)
                    traceback.print_exc()
                key = KEY_CTRL_C  # Without input the operator could not quit
            try:
                for pressed in split_key(key):
                    loop.call_soon_threadsafe(on_key, pressed)
            except RuntimeError:
                break  # Loop already closed during shutdown
            if key == KEY_CTRL_C:
                break

    thread = threading.Thread(target=_listen, daemon=True, name="CLIKeyboardThread")
    thread.start()
    return thread
