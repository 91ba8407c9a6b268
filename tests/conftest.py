"""Shared fixtures and fake radio collaborators."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Mapping, Sequence

import pytest

from ble_beacon_tool.configuration import BeaconConfiguration
from ble_beacon_tool.radio import (
    AdvertisingStarted,
    EventSource,
    PowerState,
    PowerStateChanged,
    ServiceAdded,
    ServiceDescriptor,
)

TEST_UUID = "92821D61-9FEE-4003-87F1-31799E12017A"


class FakePeripheral(EventSource):
    """Scripted radio: replies to every request on the next loop iteration."""

    def __init__(
        self,
        state: PowerState = PowerState.ON,
        advertising_error: str | None = None,
        service_error: str | None = None,
    ) -> None:
        super().__init__()
        self.power_state = state
        self.advertising_error = advertising_error
        self.service_error = service_error
        self.opened = 0
        self.closed = 0
        self.advertisements: list[tuple[str, Mapping[int, bytes] | None, list[str]]] = []
        self.services: list[ServiceDescriptor] = []
        self.stopped = 0
        self.services_removed = 0

    def _later(self, event) -> None:
        asyncio.get_running_loop().call_soon(self._emit, event)

    async def open(self) -> None:
        self.opened += 1
        self._later(PowerStateChanged(self.power_state))

    async def close(self) -> None:
        self.closed += 1

    def start_advertising(
        self,
        local_name: str,
        manufacturer_data: Mapping[int, bytes] | None = None,
        service_uuids: Sequence[str] = (),
    ) -> None:
        self.advertisements.append((local_name, manufacturer_data, list(service_uuids)))
        self._later(AdvertisingStarted(error=self.advertising_error))

    async def stop_advertising(self) -> None:
        self.stopped += 1

    def add_service(self, service: ServiceDescriptor) -> None:
        self.services.append(service)
        self._later(ServiceAdded(error=self.service_error))

    async def remove_all_services(self) -> None:
        self.services_removed += 1

    def set_power(self, state: PowerState) -> None:
        self.power_state = state
        self._emit(PowerStateChanged(state))


class FakeRadioState(EventSource):
    """A radio-state source with a fixed power state."""

    def __init__(self, state: PowerState) -> None:
        super().__init__()
        self.power_state = state
        self.opened = 0
        self.closed = 0

    async def open(self) -> None:
        self.opened += 1

    async def close(self) -> None:
        self.closed += 1


@pytest.fixture
def config() -> BeaconConfiguration:
    return BeaconConfiguration(uuid=TEST_UUID, major=100, minor=1, tx_power=-59)


@pytest.fixture
def verbose_config() -> BeaconConfiguration:
    return BeaconConfiguration(uuid=TEST_UUID, major=100, minor=1, tx_power=-59, verbose=True)


class FakeBleakScanner:
    """Stands in for BleakScanner; delivers scripted advertisements on start()."""

    fail_with: Exception | None = None

    def __init__(self, detection_callback, adapter: str | None = None) -> None:
        self.detection_callback = detection_callback
        self.adapter = adapter
        self.started = False
        self.stopped = False
        self.advertisements: list[tuple[object, object]] = []

    async def start(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.started = True
        for device, data in self.advertisements:
            self.detection_callback(device, data)

    async def stop(self) -> None:
        self.stopped = True


def bleak_advertisement(frame: bytes, rssi: int = -60, address: str = "AA:BB:CC:DD:EE:FF"):
    """Build the (device, advertisement_data) pair bleak hands to a detection callback."""
    company_id = int.from_bytes(frame[:2], "little")
    device = SimpleNamespace(address=address)
    data = SimpleNamespace(manufacturer_data={company_id: frame[2:]}, rssi=rssi)
    return device, data
