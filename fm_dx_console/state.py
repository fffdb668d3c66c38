# -*- coding: utf-8 -*-

# =============================================================================
# fm-dx-console - Tuner State Store
# =============================================================================
#
# Description:
#   Holds the last known state reported by the remote tuner. Inbound frames
#   are partial: every frame carries only some fields, so each one is merged
#   into the stored snapshot instead of replacing it.
#
# License:
#   This project is licensed under the GNU-GPL v3 License.
#
# =============================================================================

from dataclasses import dataclass, fields, replace
from typing import Optional, Union


@dataclass(frozen=True)
class Radiotext:
    """The two RadioText lines; the server always sends them as a pair."""
    line0: str = ""
    line1: str = ""


@dataclass(frozen=True)
class TransmitterInfo:
    """
    Transmitter (station database) details. None means not reported; numeric
    fields hold "" when the server reported them empty.
    """
    station: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None       # ITU country code
    distance_km: Optional[Union[float, str]] = None
    power_kw: Optional[Union[float, str]] = None    # ERP
    polarization: Optional[str] = None
    azimuth_deg: Optional[Union[float, str]] = None

    def merged(self, update):
        """Returns a copy with every non-None field of `update` applied."""
        return _merge_fields(self, update)


@dataclass(frozen=True)
class TunerSnapshot:
    """
    The merged view of the remote tuner.

    Every field is None until the server has reported it at least once, which
    keeps "never received" apart from "received and zero".
    """
    frequency_khz: Optional[int] = None
    signal: Optional[Union[float, str]] = None
    stereo: Optional[bool] = None
    ps: Optional[str] = None
    pi: Optional[str] = None
    radiotext: Optional[Radiotext] = None
    tx_info: Optional[TransmitterInfo] = None
    users: Optional[int] = None

    @property
    def frequency_mhz(self):
        """Frequency in MHz (float) or None when unknown."""
        if self.frequency_khz is None:
            return None
        return self.frequency_khz / 1000


def _merge_fields(current, update):
    """Copies the non-None fields of `update` onto the dataclass `current`."""
    changes = {}
    for f in fields(current):
        value = getattr(update, f.name, None)
        if value is not None:
            changes[f.name] = value
    return replace(current, **changes) if changes else current


class TunerStateStore:
    """
    Single-writer store for the tuner snapshot of one connection session.

    Only the connection's parse path writes to it; the dispatcher and the
    console read `current()`. A new session gets a new, empty store.
    """

    def __init__(self):
        self._snapshot = None
        self.updates_applied = 0

    def current(self):
        """Returns the latest TunerSnapshot, or None if nothing was received yet."""
        return self._snapshot

    @property
    def has_frequency(self):
        return self._snapshot is not None and self._snapshot.frequency_khz is not None

    def apply_update(self, update):
        """
        Merges a decoded partial update and returns the resulting snapshot.

        Fields that are None in `update` keep their stored value. Fields that
        are set, including empty strings and zeros, overwrite. Transmitter
        info is merged field by field.

        Args:
            update (TunerUpdate): Decoded frame (see protocol.decode_frame).

        Returns:
            TunerSnapshot: The new current snapshot.
        """
        snapshot = self._snapshot if self._snapshot is not None else TunerSnapshot()

        changes = {}
        for f in fields(snapshot):
            if f.name == "tx_info":
                continue  # merged separately below
            value = getattr(update, f.name, None)
            if value is not None:
                changes[f.name] = value

        tx_update = getattr(update, "tx_info", None)
        if tx_update is not None:
            base = snapshot.tx_info if snapshot.tx_info is not None else TransmitterInfo()
            changes["tx_info"] = base.merged(tx_update)

        self._snapshot = replace(snapshot, **changes)
        self.updates_applied += 1
        return self._snapshot
