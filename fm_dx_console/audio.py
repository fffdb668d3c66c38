# -*- coding: utf-8 -*-

# =============================================================================
# fm-dx-console - Audio Stream Player
# =============================================================================
#
# Description:
#   Plays the server's MP3 audio WebSocket locally by piping every received
#   chunk into 'ffplay'. play() and stop() only schedule work on the event
#   loop; the stream runs as its own task and reports problems as notices.
#
# License:
#   This project is licensed under the GNU-GPL v3 License.
#
# =============================================================================

import asyncio
import json
import shutil
import signal
import sys

import websockets

# --- Configuration Constants ---
AUDIO_WEBSOCKET_TIMEOUT = 15    # Timeout for receiving audio data / keepalive ping
AUDIO_PING_TIMEOUT = 5
AUDIO_CONNECT_OPTIONS = {
    "open_timeout": AUDIO_WEBSOCKET_TIMEOUT,
    "ping_interval": None,      # Rely on recv timeout and manual pings
}
# Ask the server for plain MP3 instead of its default codec
FALLBACK_REQUEST = json.dumps({"type": "fallback", "data": "mp3"})

# --- ffplay Configuration (Local Audio Playback) ---
FFPLAY_CMD = [
    "ffplay",
    "-probesize", "32",          # Lower probesize for faster start
    "-analyzeduration", "0",     # Don't analyze duration
    "-fflags", "nobuffer",       # Reduce buffering
    "-flags", "low_delay",       # Prioritize low latency
    "-f", "mp3",                 # Input format is MP3
    "-",                         # Read from stdin
    "-nodisp",                   # Disable video window
    "-autoexit",                 # Exit when stdin closes
    "-loglevel", "error",        # Suppress verbose output
]


def check_command(cmd_name):
    """Checks if an external command exists in the system's PATH."""
    return shutil.which(cmd_name) is not None


def is_unexpected_exit(return_code):
    """Checks if a process exit code signifies an unexpected termination."""
    # None means process is still running, 0 is clean exit
    if return_code is None or return_code == 0:
        return False
    graceful_signals = [-signal.SIGTERM.value]
    if sys.platform != "win32":
        graceful_signals.append(-signal.SIGKILL.value)
    return return_code not in graceful_signals


class AudioStreamPlayer:
    """
    Audio collaborator bound to one audio WebSocket address for the process lifetime.

    Both play() and stop() are idempotent requests: calling play() while a
    stream is running, or stop() while nothing runs, does nothing.
    """

    def __init__(self, address, on_event=None, connect=None, spawn=None):
        """
        Args:
            address (str): Audio WebSocket address (see address.resolve_audio_address).
            on_event (callable): on_event(message_type, data) for notices.
            connect (callable): WebSocket connect factory, defaults to websockets.connect.
            spawn (callable): Subprocess factory, defaults to asyncio.create_subprocess_exec.
        """
        self.address = address
        self.on_event = on_event
        self._connect = connect or websockets.connect
        self._spawn = spawn or asyncio.create_subprocess_exec
        self._task = None

    def put_update(self, message_type, data):
        if self.on_event:
            self.on_event(message_type, data)

    @property
    def is_active(self):
        return self._task is not None and not self._task.done()

    def play(self):
        """Starts streaming in the background. Requires a running event loop."""
        if self.is_active:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._stream(), name="AudWS")

    def stop(self):
        """Stops streaming; the cancelled stream task terminates its own ffplay."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    # --- Process Handling ---

    def _kill_process(self, proc, name="process"):
        """Attempts to terminate and then kill an asyncio subprocess."""
        if proc and proc.returncode is None:
            try:
                if proc.stdin and not proc.stdin.is_closing():
                    proc.stdin.close()
                proc.terminate()
            except ProcessLookupError:
                pass  # Already exited
            except Exception as e_term:
                self.put_update("warning", f"Error terminating {name} (PID: {proc.pid}): {e_term}")
                try:
                    if proc.returncode is None:
                        proc.kill()
                except ProcessLookupError:
                    pass

    async def _read_process_stderr(self, proc, name):
        """Forwards error lines printed by the player as warnings."""
        if not proc or not proc.stderr:
            return
        while True:
            line_bytes = await proc.stderr.readline()
            if not line_bytes:
                break  # EOF, process exited
            line = line_bytes.decode("utf-8", errors="replace").strip()
            lowered = line.lower()
            # ffplay complains about every partial MP3 frame; skip those
            if not line or "header missing" in lowered or "invalid data" in lowered:
                continue
            if "error" in lowered or "warning" in lowered:
                self.put_update("warning", f"{name}: {line}")

    # --- Stream Task ---

    async def _stream(self):
        websocket = None
        ffplay_proc = None
        stderr_task = None
        try:
            self.put_update("status", "Connecting Audio WS...")
            websocket = await self._connect(self.address, **AUDIO_CONNECT_OPTIONS)
            await websocket.send(FALLBACK_REQUEST)

            try:
                ffplay_proc = await self._spawn(
                    *FFPLAY_CMD,
                    stdin=asyncio.subprocess.PIPE,      # Pipe audio data in
                    stdout=asyncio.subprocess.DEVNULL,  # Ignore stdout
                    stderr=asyncio.subprocess.PIPE,     # Capture stderr for errors
                )
            except FileNotFoundError:
                self.put_update("error", "'ffplay' command not found. Playback disabled.")
                return
            stderr_task = asyncio.create_task(
                self._read_process_stderr(ffplay_proc, "ffplay"), name="ffplay_stderr"
            )
            self.put_update("status", "Audio WS connected.")

            while True:
                ffplay_rc = ffplay_proc.returncode
                if ffplay_rc is not None:
                    if is_unexpected_exit(ffplay_rc):
                        self.put_update("error", f"ffplay exited unexpectedly (code {ffplay_rc}).")
                    else:
                        self.put_update("status", "ffplay stopped.")
                    break

                try:
                    msg = await asyncio.wait_for(websocket.recv(), timeout=AUDIO_WEBSOCKET_TIMEOUT)
                except asyncio.TimeoutError:
                    # No data received, check the connection is still alive
                    try:
                        pong = await websocket.ping()
                        await asyncio.wait_for(pong, timeout=AUDIO_PING_TIMEOUT)
                    except asyncio.TimeoutError:
                        self.put_update("warning", "Audio WS ping timeout.")
                        break
                    continue

                if isinstance(msg, bytes) and msg:
                    stdin = ffplay_proc.stdin
                    if stdin is None or stdin.is_closing():
                        continue
                    try:
                        stdin.write(msg)
                        await stdin.drain()
                    except (BrokenPipeError, ConnectionResetError, OSError):
                        # ffplay is exiting; the returncode check reports it
                        await asyncio.sleep(0.1)

        except asyncio.CancelledError:
            raise
        except websockets.exceptions.ConnectionClosed as e_cls:
            self.put_update("warning", f"Audio WS closed ({e_cls})")
        except Exception as e:
            self.put_update("error", f"Audio WS Error: {e}")
        finally:
            self._kill_process(ffplay_proc, "ffplay")
            if stderr_task is not None:
                stderr_task.cancel()
                await asyncio.gather(stderr_task, return_exceptions=True)
            if websocket is not None:
                try:
                    await websocket.close()
                except Exception as e_close:
                    self.put_update("warning", f"Error closing Audio WS: {e_close}")
