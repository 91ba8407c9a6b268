"""Coarse proximity buckets from received signal strength.

The thresholds are a fixed rule of thumb from common iBeacon calibration,
not a measured distance. TX power is not taken into account.
"""

from enum import Enum

# RSSI values some stacks report when no measurement is available
UNKNOWN_RSSI_VALUES = (0, 127)

IMMEDIATE_RSSI_THRESHOLD = -50
NEAR_RSSI_THRESHOLD = -75


class Proximity(Enum):
    """Approximate distance bucket."""

    UNKNOWN = "Unknown"
    IMMEDIATE = "Immediate (<1m)"
    NEAR = "Near (1-3m)"
    FAR = "Far (>3m)"

    def __str__(self) -> str:
        return self.value


def estimate_proximity(rssi: int) -> Proximity:
    """Map an RSSI reading in dBm to a proximity bucket."""
    if rssi in UNKNOWN_RSSI_VALUES:
        return Proximity.UNKNOWN
    if rssi > IMMEDIATE_RSSI_THRESHOLD:
        return Proximity.IMMEDIATE
    if rssi > NEAR_RSSI_THRESHOLD:
        return Proximity.NEAR
    return Proximity.FAR
