# -*- coding: utf-8 -*-

# =============================================================================
# fm-dx-console - Connection Manager
# =============================================================================
#
# Description:
#   One control session with the FM-DX Webserver text WebSocket. The session
#   receives JSON frames, merges them into its own TunerStateStore and sends
#   tune commands. It never reconnects: a closed session stays closed and a
#   caller that wants to reconnect builds a new TunerConnection.
#
# License:
#   This project is licensed under the GNU-GPL v3 License.
#
# =============================================================================

import asyncio
from enum import Enum

import websockets

from .address import text_address
from .protocol import FrameDecodeError, decode_frame
from .state import TunerStateStore

# --- Configuration Constants ---
TEXT_WEBSOCKET_TIMEOUT = 10     # Timeout for the initial text WebSocket connection
TEXT_CONNECT_OPTIONS = {
    "open_timeout": TEXT_WEBSOCKET_TIMEOUT,
    "ping_interval": 20,        # Send pings to keep connection alive
    "ping_timeout": 10,         # Wait for pong replies
}


class ConnectionState(Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class TunerConnection:
    def __init__(self, address, on_event, connect=None):
        """
        Creates a session. Nothing is connected until open() is awaited.

        Args:
            address (str): Server address as given by the user (ws:// or wss://).
            on_event (callable): Called as on_event(message_type, data) for
                "opened", "frame", "closed", "status", "warning" and "error".
            connect (callable): WebSocket connect coroutine factory, defaults
                to websockets.connect.
        """
        self.address = address
        self.text_uri = text_address(address)
        self.on_event = on_event
        self._connect = connect or websockets.connect

        self.store = TunerStateStore()  # One store per session, never reused
        self.state = ConnectionState.CONNECTING
        self.frames_dropped = 0

        self._websocket = None
        self._open_attempted = False
        self._send_tasks = set()

    def put_update(self, message_type, data):
        """Reports an event or notice to the owner of the session."""
        if self.on_event:
            self.on_event(message_type, data)

    def snapshot(self):
        """Read-only view of the tuner state (None before the first frame)."""
        return self.store.current()

    @property
    def is_open(self):
        return self.state is ConnectionState.OPEN

    # --- Lifecycle ---

    async def run(self):
        """Opens the session and receives frames until it closes."""
        if await self.open():
            await self.receive()

    async def open(self):
        """
        Connects the text WebSocket. CONNECTING -> OPEN, or -> CLOSED on failure.

        Returns:
            bool: True if the session is open.

        Raises:
            RuntimeError: If this session was already opened once.
        """
        if self._open_attempted:
            raise RuntimeError("Session already used; create a new TunerConnection to reconnect.")
        self._open_attempted = True

        self.put_update("status", "Connecting Text WS...")
        try:
            self._websocket = await self._connect(self.text_uri, **TEXT_CONNECT_OPTIONS)
        except asyncio.CancelledError:
            self._set_closed("Cancelled")
            raise
        except websockets.exceptions.InvalidURI:
            self.put_update("error", f"Invalid Text URI: {self.text_uri}")
            self._set_closed("Invalid URI")
            return False
        except ConnectionRefusedError:
            self.put_update("error", "Text WS connection refused.")
            self._set_closed("Connection refused")
            return False
        except asyncio.TimeoutError:
            self.put_update("error", "Text WS connection timeout.")
            self._set_closed("Connection timeout")
            return False
        except Exception as e:
            # OSError, handshake failures, anything the transport raises
            self.put_update("error", f"Text WS Error: {e}")
            self._set_closed(f"Connection failed ({e})")
            return False

        self.state = ConnectionState.OPEN
        self.put_update("opened", self.address)
        return True

    async def receive(self):
        """Forwards inbound frames in arrival order until the transport closes."""
        if self.state is not ConnectionState.OPEN:
            return
        reason = "Closed by server"
        try:
            async for message in self._websocket:
                self.put_update("frame", message)
        except asyncio.CancelledError:
            reason = "Cancelled"
            raise
        except websockets.exceptions.ConnectionClosed as e_cls:
            reason = f"Closed unexpectedly ({e_cls})"
        except Exception as e:
            self.put_update("error", f"Text WS Error: {e}")
            reason = f"Transport error ({e})"
        finally:
            self._set_closed(reason)
            await self._close_transport()

    async def close(self):
        """Closes the session; safe to call in any state."""
        self._set_closed("Closed by client")
        await self._close_transport()

    def _set_closed(self, reason):
        if self.state is not ConnectionState.CLOSED:
            self.state = ConnectionState.CLOSED
            self.put_update("closed", reason)

    async def _close_transport(self):
        websocket, self._websocket = self._websocket, None
        if websocket is not None:
            try:
                await websocket.close()
            except Exception as e:
                self.put_update("warning", f"Error closing Text WS: {e}")

    # --- Inbound ---

    def handle_frame(self, message):
        """
        Decodes one frame and merges it into the store.

        A malformed frame is reported and dropped; the snapshot stays exactly
        as it was and the session keeps running.

        Returns:
            TunerSnapshot | None: The new snapshot, or None if the frame was dropped.
        """
        try:
            update = decode_frame(message)
        except FrameDecodeError as e:
            self.frames_dropped += 1
            self.put_update("error", f"Dropped frame: {e}")
            return None
        return self.store.apply_update(update)

    # --- Outbound ---

    def send(self, command):
        """
        Queues a raw command string for sending. Never blocks.

        Returns:
            bool: True if the command was handed to the transport, False if
                it was dropped because the session is not open.
        """
        websocket = self._websocket
        if self.state is not ConnectionState.OPEN or websocket is None:
            self.put_update("warning", f"Text WS not connected, dropped command {command}.")
            return False
        task = asyncio.get_running_loop().create_task(self._transmit(websocket, command))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)
        return True

    async def _transmit(self, websocket, command):
        try:
            await websocket.send(command)
        except websockets.exceptions.ConnectionClosed:
            self.put_update("warning", f"Text WS closed, cannot send {command}.")
        except Exception as e:
            self.put_update("error", f"Send command failed: {e}")
