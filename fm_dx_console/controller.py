# -*- coding: utf-8 -*-

# =============================================================================
# fm-dx-console - Controller
# =============================================================================
#
# Description:
#   Wires the control session, the command dispatcher, the playback
#   coordinator and the console together and runs them on one asyncio loop.
#
#   Everything that happens (an inbound frame, the session opening or
#   closing, a clock tick, a key press, a notice from any component) becomes
#   an event on a single queue. One consumer handles the events in arrival
#   order, one at a time, so no state is ever shared between threads: the
#   keyboard thread only hands raw keys to the loop.
#
# License:
#   This project is licensed under the GNU-GPL v3 License.
#
# =============================================================================

import asyncio
import signal
import sys
import threading
import traceback
from datetime import datetime
from enum import Enum

from .address import resolve_audio_address
from .audio import AudioStreamPlayer
from .connection import TunerConnection
from .console import ConsoleView, MIN_COLUMNS, start_keyboard_listener, terminal_size
from .dispatcher import CommandDispatcher, Intent, TUNING_INTENTS
from .playback import PlaybackCoordinator

CLOCK_INTERVAL_SECONDS = 1

NOTICE_PREFIXES = {
    "status": "Status: ",
    "warning": "Warning: ",
    "error": "ERROR: ",
}


class EventType(Enum):
    FRAME = "frame"
    OPENED = "opened"
    CLOSED = "closed"
    TICK = "tick"
    KEY = "key"
    NOTICE = "notice"


class ConsoleController:
    def __init__(self, address, view=None, player=None, connect=None,
                 clock=datetime.now, render=True, keyboard=True):
        """
        Builds all components for one server address.

        Args:
            address (str): Control address (ws:// or wss://).
            view (ConsoleView): Presentation, defaults to a ConsoleView.
            player: Audio collaborator, defaults to an AudioStreamPlayer bound
                to the derived audio address.
            connect (callable): WebSocket connect factory for the session.
            clock (callable): Returns the time shown by the clock.
            render (bool): Draw to the terminal.
            keyboard (bool): Start the keyboard listener thread.

        Raises:
            ConfigurationError: If the address has no supported scheme.
        """
        self.address = address
        self.audio_address = resolve_audio_address(address)
        self.clock = clock
        self.render = render
        self.keyboard = keyboard

        self.events = None              # asyncio.Queue, created on the running loop
        self.running = False
        self.exit_code = 0
        self._stop_keys = threading.Event()

        self.view = view or ConsoleView(address)
        self.connection = TunerConnection(address, self.put_update, connect=connect)
        self.dispatcher = CommandDispatcher(self.connection, self.put_update)
        self.player = player or AudioStreamPlayer(self.audio_address, self.put_update)
        self.playback = PlaybackCoordinator(self.player, self.put_update)

    # --- Event Intake ---

    def put_update(self, message_type, data):
        """Turns a component report into an event (see TunerConnection.put_update)."""
        if message_type == "frame":
            event = (EventType.FRAME, data)
        elif message_type == "opened":
            event = (EventType.OPENED, data)
        elif message_type == "closed":
            event = (EventType.CLOSED, data)
        else:
            event = (EventType.NOTICE, (message_type, data))

        if self.events is not None:
            self.events.put_nowait(event)
        else:
            self.handle_event(*event)

    def _on_key(self, key):
        # Runs on the loop thread (scheduled by the keyboard listener)
        if self.events is not None:
            self.events.put_nowait((EventType.KEY, key))

    def stop(self):
        """Ends the event loop after the current event."""
        self.running = False
        if self.events is not None:
            self.events.put_nowait((EventType.TICK, None))  # Wake the consumer

    # --- Event Handling ---

    def handle_event(self, event_type, payload):
        """Handles one event. Never blocks and never awaits."""
        if event_type is EventType.FRAME:
            self.connection.handle_frame(payload)
        elif event_type is EventType.OPENED:
            self.view.set_status(f"Status: Connected to {payload}")
        elif event_type is EventType.CLOSED:
            self.view.set_status(f"Status: WebSocket connection closed ({payload})")
        elif event_type is EventType.KEY:
            result = self.view.handle_key(payload)
            if result is not None:
                self.handle_intent(*result)
        elif event_type is EventType.NOTICE:
            message_type, message = payload
            self.view.set_status(NOTICE_PREFIXES.get(message_type, "") + str(message))
        self.redraw()

    def handle_intent(self, intent, value=None):
        if intent is Intent.QUIT:
            self.stop()
        elif intent is Intent.TOGGLE_PLAYBACK:
            self.playback.toggle()
        elif intent in TUNING_INTENTS:
            self.dispatcher.dispatch(intent, value)
        # TOGGLE_HELP only changes the view, which already flipped it

    def redraw(self):
        if not self.render:
            return
        columns, _ = terminal_size()
        lines = self.view.render(
            self.connection.snapshot(),
            self.connection.state,
            self.playback.state,
            self.clock(),
            width=max(MIN_COLUMNS, columns),
        )
        self.view.draw(lines)

    # --- Main Loop ---

    async def _tick(self):
        while True:
            await asyncio.sleep(CLOCK_INTERVAL_SECONDS)
            self.events.put_nowait((EventType.TICK, None))

    def _install_signal_handlers(self, loop):
        if sys.platform == "win32":
            return
        try:
            loop.add_signal_handler(signal.SIGTERM, self.stop)
        except (NotImplementedError, RuntimeError):
            pass  # Not on the main thread; Ctrl+C still arrives as a key

    async def run(self):
        """
        Runs until the operator quits.

        Returns:
            int: Process exit code (0 on normal quit).
        """
        loop = asyncio.get_running_loop()
        self.events = asyncio.Queue()
        self.running = True
        self._install_signal_handlers(loop)

        if self.render:
            self.view.start()
        self.redraw()

        tasks = [
            asyncio.create_task(self.connection.run(), name="TxtWS"),
            asyncio.create_task(self._tick(), name="Clock"),
        ]
        if self.keyboard:
            start_keyboard_listener(loop, self._on_key, self._stop_keys)

        try:
            while self.running:
                event_type, payload = await self.events.get()
                try:
                    self.handle_event(event_type, payload)
                except Exception as e:
                    # A bug in one handler must not take the session down
                    self.view.set_status(f"ERROR: Internal error handling {event_type.value}: {e}")
                    traceback.print_exc()
        finally:
            self._stop_keys.set()
            self.playback.shutdown()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await self.connection.close()
            if self.render:
                self.view.finish()
        return self.exit_code
