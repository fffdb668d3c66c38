# -*- coding: utf-8 -*-

# =============================================================================
# fm-dx-console - Playback Coordinator
# =============================================================================
#
# Description:
#   On/off state of local audio playback. Only the operator toggles it; the
#   control connection never does, and a player failure never reaches the
#   control connection.
#
# License:
#   This project is licensed under the GNU-GPL v3 License.
#
# =============================================================================

from enum import Enum


class PlaybackState(Enum):
    STOPPED = "stopped"
    PLAYING = "playing"


class PlaybackCoordinator:
    def __init__(self, player, on_event=None):
        """
        Args:
            player: Audio collaborator exposing play() and stop(), both
                non-blocking (see audio.AudioStreamPlayer).
            on_event (callable): on_event(message_type, data) for notices.
        """
        self.player = player
        self.on_event = on_event
        self.state = PlaybackState.STOPPED

    @property
    def is_playing(self):
        return self.state is PlaybackState.PLAYING

    def toggle(self):
        """Starts or stops playback and returns the new PlaybackState."""
        if self.state is PlaybackState.STOPPED:
            if self._call(self.player.play, "start"):
                self._report("status", "Audio playback started.")
            self.state = PlaybackState.PLAYING
        else:
            if self._call(self.player.stop, "stop"):
                self._report("status", "Audio playback stopped.")
            self.state = PlaybackState.STOPPED
        return self.state

    def shutdown(self):
        """Stops the player on exit; stop() is harmless when already stopped."""
        self._call(self.player.stop, "stop")
        self.state = PlaybackState.STOPPED

    def _call(self, action, name):
        try:
            action()
        except Exception as e:
            self._report("error", f"Failed to {name} audio playback: {e}")
            return False
        return True

    def _report(self, message_type, data):
        if self.on_event:
            self.on_event(message_type, data)
