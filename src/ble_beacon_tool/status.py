"""Bluetooth status and system diagnostics for the `status` command."""

import asyncio
import logging
import os
from dataclasses import dataclass

from .capabilities import CapabilitySnapshot, PermissionStatus, StrategyKind, SystemCapabilityDetector, recommend
from .radio import PowerState

logger = logging.getLogger(__name__)

STATUS_TIMEOUT_SECONDS = 10.0

_STATE_MARKS = {
    PowerState.ON: "OK",
    PowerState.OFF: "!!",
    PowerState.UNAUTHORIZED: "!!",
    PowerState.UNSUPPORTED: "!!",
    PowerState.UNKNOWN: "??",
    PowerState.RESETTING: "..",
}

TROUBLESHOOTING_GUIDE = """\
Troubleshooting Guide:
1. Ensure Bluetooth is enabled: bluetoothctl power on
2. Ensure bluetoothd is running: systemctl status bluetooth
3. Grant Bluetooth access:
   Add your user to the 'bluetooth' group or run with sudo
4. For beacon advertising:
   - The adapter must support LE advertising (LEAdvertisingManager1)
   - Try --strategy fallback for a GATT service broadcast instead"""


@dataclass(frozen=True)
class SystemStatus:
    process_id: int
    running_as_root: bool
    central_state: PowerState
    peripheral_state: PowerState
    capabilities: CapabilitySnapshot
    permissions: PermissionStatus

    @property
    def recommended_strategy(self) -> StrategyKind:
        return recommend(self.capabilities, self.permissions)


class SystemStatusChecker:
    """Collects and formats a diagnostic report."""

    def __init__(self, detector: SystemCapabilityDetector, timeout: float = STATUS_TIMEOUT_SECONDS):
        self._detector = detector
        self._timeout = timeout

    async def collect(self) -> SystemStatus:
        """Sample the system.

        Raises:
            asyncio.TimeoutError: If the Bluetooth stack does not answer in time
        """
        snapshot = await asyncio.wait_for(self._detector.detect(), timeout=self._timeout)
        permissions = await self._detector.check_permissions()
        return SystemStatus(
            process_id=os.getpid(),
            running_as_root=_is_root(),
            central_state=self._detector.central_state,
            peripheral_state=self._detector.peripheral_state,
            capabilities=snapshot,
            permissions=permissions,
        )


def _is_root() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0


def format_status(status: SystemStatus) -> str:
    """Format a SystemStatus as the multi-line report printed by `status`."""
    caps = status.capabilities
    lines = [
        f"Platform: {caps.platform_version}",
        f"Process ID: {status.process_id}",
        f"Running as: {'root' if status.running_as_root else 'user'}",
        "",
        f"[{_STATE_MARKS[status.central_state]}] Bluetooth Central: {status.central_state.label}",
        f"[{_STATE_MARKS[status.peripheral_state]}] Bluetooth Peripheral: "
        f"{status.peripheral_state.label}"
        + (" (advertising capable)" if caps.advertising_supported else ""),
        "",
        "Permissions:",
        f"  Bluetooth Authorization: {'Granted' if status.permissions.bluetooth_authorized else 'Denied'}",
        "",
        "Advanced Diagnostics:",
    ]
    if caps.restrictions_detected:
        lines.append(f"  {caps.platform_version} detected - BLE advertising may be restricted")
    if not caps.peripheral_mode_supported:
        lines.append("  Peripheral role not supported by this adapter")
    if status.running_as_root:
        lines.append("  Running with elevated privileges")
    else:
        lines.append("  Running as regular user (may need sudo for full BLE capabilities)")
    lines.append(f"  Recommended strategy: {status.recommended_strategy.value}")
    lines.append("")
    lines.append(TROUBLESHOOTING_GUIDE)
    return "\n".join(lines)
