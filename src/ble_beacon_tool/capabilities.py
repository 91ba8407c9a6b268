"""System capability detection and emission strategy selection."""

import asyncio
import logging
import platform
import re
from dataclasses import dataclass
from enum import Enum

from .radio import PowerState, RadioState

logger = logging.getLogger(__name__)

# Time for the stack to report a settled adapter state after attaching
SETTLE_DELAY_SECONDS = 0.5

# First macOS release with stricter BLE advertising rules
MACOS_RESTRICTED_MAJOR = 11


class StrategyKind(Enum):
    """Emission strategies, best first."""

    PRIMARY = "primary"
    FALLBACK = "fallback"
    SIMULATED = "simulated"


@dataclass(frozen=True)
class CapabilitySnapshot:
    """Point-in-time read of the radio and platform."""

    bluetooth_available: bool
    advertising_supported: bool
    peripheral_mode_supported: bool
    platform_version: str
    restrictions_detected: bool

    @property
    def can_advertise(self) -> bool:
        return (
            self.bluetooth_available
            and self.advertising_supported
            and not self.restrictions_detected
        )


@dataclass(frozen=True)
class PermissionStatus:
    bluetooth_authorized: bool
    location_authorized: bool
    can_request_permissions: bool

    @property
    def all_granted(self) -> bool:
        return self.bluetooth_authorized and self.location_authorized


def platform_version() -> str:
    """Describe the running platform, e.g. "Linux 6.1.0" or "macOS 14.2"."""
    if platform.system() == "Darwin":
        return f"macOS {platform.mac_ver()[0]}"
    return f"{platform.system()} {platform.release()}"


def detect_restrictions(version: str) -> bool:
    """Whether the platform is known to restrict BLE advertising."""
    match = re.match(r"macOS (\d+)", version)
    return bool(match) and int(match.group(1)) >= MACOS_RESTRICTED_MAJOR


def recommend(snapshot: CapabilitySnapshot, permissions: PermissionStatus) -> StrategyKind:
    """Pick the best strategy the snapshot and permissions allow."""
    if snapshot.can_advertise and permissions.all_granted:
        return StrategyKind.PRIMARY
    if snapshot.bluetooth_available:
        return StrategyKind.FALLBACK
    return StrategyKind.SIMULATED


class SystemCapabilityDetector:
    """Samples the adapter through central and peripheral radio-state sources."""

    def __init__(
        self,
        central: RadioState,
        peripheral: RadioState,
        settle_delay: float = SETTLE_DELAY_SECONDS,
        version: str | None = None,
    ):
        """Initialize the detector.

        Args:
            central: Source for the scanning-side adapter state
            peripheral: Source for the advertising-side adapter state
            settle_delay: Seconds to wait before sampling
            version: Platform version override (defaults to the running platform)
        """
        self._central = central
        self._peripheral = peripheral
        self._settle_delay = settle_delay
        self._version = version
        self._peripheral_state: PowerState | None = None
        self._central_state: PowerState | None = None

    @property
    def central_state(self) -> PowerState | None:
        """Central power state from the last detect(), if any."""
        return self._central_state

    @property
    def peripheral_state(self) -> PowerState | None:
        """Peripheral power state from the last detect(), if any."""
        return self._peripheral_state

    async def detect(self) -> CapabilitySnapshot:
        """Take a fresh capability snapshot."""
        version = self._version or platform_version()
        try:
            await self._central.open()
            await self._peripheral.open()
            await asyncio.sleep(self._settle_delay)
            self._central_state = self._central.power_state
            self._peripheral_state = self._peripheral.power_state
        finally:
            await self._central.close()
            await self._peripheral.close()

        snapshot = CapabilitySnapshot(
            bluetooth_available=self._central_state is PowerState.ON,
            advertising_supported=self._peripheral_state is PowerState.ON,
            peripheral_mode_supported=self._peripheral_state is not PowerState.UNSUPPORTED,
            platform_version=version,
            restrictions_detected=detect_restrictions(version),
        )
        logger.debug(f"[CAPS] {snapshot}")
        return snapshot

    async def check_permissions(self) -> PermissionStatus:
        """Report permissions based on the latest peripheral sample."""
        if self._peripheral_state is None:
            await self.detect()
        return PermissionStatus(
            bluetooth_authorized=self._peripheral_state is not PowerState.UNAUTHORIZED,
            # Location is only needed for scanning on some platforms
            location_authorized=True,
            can_request_permissions=True,
        )

    async def recommend_strategy(self) -> StrategyKind:
        snapshot = await self.detect()
        permissions = await self.check_permissions()
        kind = recommend(snapshot, permissions)
        logger.info(f"[CAPS] Recommended strategy: {kind.value}")
        return kind
