"""Concrete emission strategies.

- IBeaconStrategy: standard iBeacon manufacturer-data advertisement (primary)
- GattServiceStrategy: GATT service exposing the beacon identity (fallback,
  not a standard iBeacon advertisement)
- SimulatedBeaconStrategy: no radio I/O, for machines without Bluetooth
"""

import logging

from .bluez import DEFAULT_ADAPTER, BlueZPeripheral
from .capabilities import StrategyKind
from .emission import EmissionStrategy
from .errors import ServiceAddFailedError
from .gatt_server import BlessPeripheral
from .ibeacon_packet import (
    APPLE_COMPANY_ID,
    build_manufacturer_data,
    encode,
    encode_body,
    format_payload_breakdown,
)
from .radio import GattPeripheral, Peripheral, PowerState, ServiceDescriptor

logger = logging.getLogger(__name__)

# Custom service and characteristic for the fallback beacon
BEACON_SERVICE_UUID = "92821D61-9FEE-4003-87F1-31799E12017A"
BEACON_CHARACTERISTIC_UUID = "92821D61-9FEE-4003-87F1-31799E12017B"

SIMULATED_STATUS_INTERVAL_SECONDS = 5.0


class IBeaconStrategy(EmissionStrategy):
    """Advertises the 25-byte iBeacon frame as manufacturer data."""

    kind = StrategyKind.PRIMARY
    name = "Enhanced iBeacon Strategy"

    def __init__(self, peripheral: Peripheral, **kwargs):
        super().__init__(peripheral, **kwargs)

    def _on_powered_on(self) -> None:
        frame = encode(self._record)
        if self._config.verbose:
            logger.info("[EMIT] Creating iBeacon advertisement data...")
        logger.debug(f"[EMIT] Manufacturer data: {frame.hex().upper()}")
        self._peripheral.start_advertising(
            self._config.local_name, manufacturer_data=build_manufacturer_data(self._record)
        )

    async def _teardown(self) -> None:
        await self._peripheral.stop_advertising()

    def details(self) -> str:
        return (
            f"{super().details()}\n"
            f"  Company ID: 0x{APPLE_COMPANY_ID:04X} (Apple)\n"
            f"{format_payload_breakdown(self._record)}"
        )


class GattServiceStrategy(EmissionStrategy):
    """Publishes the beacon identity as a readable GATT characteristic.

    The characteristic value is the 21-byte UUID/major/minor/TX power body
    of the iBeacon frame, and the advertisement lists the service UUID.
    """

    kind = StrategyKind.FALLBACK
    name = "GATT Service Strategy (Fallback)"

    def __init__(self, peripheral: GattPeripheral, **kwargs):
        super().__init__(peripheral, **kwargs)

    def _permits_emission(self, state: PowerState) -> bool:
        # GATT services are more permissive than manufacturer-data advertising
        return state in (PowerState.ON, PowerState.UNKNOWN)

    def _on_powered_on(self) -> None:
        logger.info("[EMIT] Starting GATT service (fallback mode)")
        self._peripheral.add_service(
            ServiceDescriptor(
                service_uuid=BEACON_SERVICE_UUID,
                characteristic_uuid=BEACON_CHARACTERISTIC_UUID,
                value=encode_body(self._record),
                local_name=self._config.local_name,
            )
        )

    def _on_service_added(self, error: str | None) -> None:
        if not self._awaiting():
            return
        if error:
            self._fail(ServiceAddFailedError(error))
            return
        logger.info("[EMIT] GATT service added successfully")
        self._peripheral.start_advertising(
            self._config.local_name, service_uuids=[BEACON_SERVICE_UUID]
        )

    async def _teardown(self) -> None:
        await self._peripheral.remove_all_services()
        await self._peripheral.stop_advertising()

    def details(self) -> str:
        return (
            "GATT Service Details:\n"
            f"  Service UUID: {BEACON_SERVICE_UUID}\n"
            f"  Characteristic UUID: {BEACON_CHARACTERISTIC_UUID}\n"
            f"  Characteristic Value: {encode_body(self._record).hex().upper()}\n"
            f"{super().details()}\n"
            "  Note: This is a fallback mode - not standard iBeacon format"
        )


class SimulatedBeaconStrategy(EmissionStrategy):
    """Pretends to advertise; always succeeds and touches no radio."""

    kind = StrategyKind.SIMULATED
    name = "Simulated Beacon Strategy (Testing)"
    status_label = "SIMULATED"
    status_interval = SIMULATED_STATUS_INTERVAL_SECONDS
    initial_status_delay = SIMULATED_STATUS_INTERVAL_SECONDS

    def __init__(self, **kwargs):
        super().__init__(None, **kwargs)

    async def can_emit(self) -> bool:
        return True

    async def _begin(self) -> None:
        logger.info("[EMIT] Starting simulated beacon (for testing purposes)")
        self._on_advertising_started(None)

    async def _teardown(self) -> None:
        logger.info("[EMIT] Stopped simulated beacon")

    def details(self) -> str:
        return (
            f"{super().details()}\n"
            f"  Payload: {encode(self._record).hex().upper()}\n"
            "  Note: This is a simulation for testing - no actual BLE transmission"
        )


def create_strategy(
    kind: StrategyKind, adapter: str = DEFAULT_ADAPTER, **kwargs
) -> EmissionStrategy:
    """Build the strategy for kind with its radio backend.

    Args:
        kind: Which strategy to build
        adapter: Bluetooth adapter name (e.g., "hci0")
        **kwargs: Passed through to the strategy (settle_delay, status_interval, ...)
    """
    if kind is StrategyKind.PRIMARY:
        return IBeaconStrategy(BlueZPeripheral(adapter), **kwargs)
    if kind is StrategyKind.FALLBACK:
        return GattServiceStrategy(BlessPeripheral(adapter), **kwargs)
    return SimulatedBeaconStrategy(**kwargs)
