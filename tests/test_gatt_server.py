from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from ble_beacon_tool import gatt_server
from ble_beacon_tool.gatt_server import BlessPeripheral
from ble_beacon_tool.radio import AdvertisingStarted, ServiceAdded, ServiceDescriptor
from ble_beacon_tool.strategies import BEACON_CHARACTERISTIC_UUID, BEACON_SERVICE_UUID

BODY = bytes.fromhex("92821D619FEE400387F131799E12017A00640001C5")
SERVICE = ServiceDescriptor(
    service_uuid=BEACON_SERVICE_UUID,
    characteristic_uuid=BEACON_CHARACTERISTIC_UUID,
    value=BODY,
    local_name="BLEBeacon-0100-0001",
)


class FakeBlessServer:
    """Stands in for BlessServer; records what the peripheral asks of it."""

    characteristic_error: Exception | None = None
    start_result: bool | None = True
    start_error: Exception | None = None
    instances: list[FakeBlessServer] = []

    def __init__(self, name: str, loop=None) -> None:
        self.name = name
        self.services: list[str] = []
        self.characteristics: list[tuple] = []
        self.started = False
        self.stopped = False
        self.read_request_func = None
        FakeBlessServer.instances.append(self)

    async def add_new_service(self, uuid: str) -> None:
        self.services.append(uuid)

    async def add_new_characteristic(self, service_uuid, char_uuid, properties, value, permissions) -> None:
        if self.characteristic_error is not None:
            raise self.characteristic_error
        self.characteristics.append((service_uuid, char_uuid, properties, value, permissions))

    async def start(self):
        if self.start_error is not None:
            raise self.start_error
        self.started = True
        return self.start_result

    async def stop(self) -> None:
        self.stopped = True


@pytest.fixture
def server_class(monkeypatch):
    FakeBlessServer.instances = []

    def install(**overrides) -> type:
        server = type("ScriptedBlessServer", (FakeBlessServer,), overrides)
        monkeypatch.setattr(gatt_server, "BlessServer", server)
        return server

    return install


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def _peripheral() -> tuple[BlessPeripheral, list]:
    peripheral = BlessPeripheral()
    events: list = []
    peripheral.subscribe(events.append)
    return peripheral, events


@pytest.mark.asyncio
async def test_add_service_publishes_readable_characteristic(server_class) -> None:
    server_class()
    peripheral, events = _peripheral()

    peripheral.add_service(SERVICE)
    await _settle()

    assert events == [ServiceAdded()]
    server = FakeBlessServer.instances[0]
    assert server.name == "BLEBeacon-0100-0001"
    assert server.services == [BEACON_SERVICE_UUID]
    service_uuid, char_uuid, _, value, _ = server.characteristics[0]
    assert (service_uuid, char_uuid) == (BEACON_SERVICE_UUID, BEACON_CHARACTERISTIC_UUID)
    assert bytes(value) == BODY
    assert peripheral._on_read(SimpleNamespace(uuid=BEACON_CHARACTERISTIC_UUID)) == bytearray(BODY)


@pytest.mark.asyncio
async def test_add_service_error_is_reported(server_class) -> None:
    server_class(characteristic_error=RuntimeError("GATT database full"))
    peripheral, events = _peripheral()

    peripheral.add_service(SERVICE)
    await _settle()

    assert events == [ServiceAdded(error="GATT database full")]
    assert peripheral.server is None


@pytest.mark.asyncio
async def test_start_advertising_runs_server(server_class) -> None:
    server_class()
    peripheral, events = _peripheral()
    peripheral.add_service(SERVICE)
    await _settle()

    peripheral.start_advertising(SERVICE.local_name, [BEACON_SERVICE_UUID])
    await _settle()

    assert events[-1] == AdvertisingStarted()
    assert peripheral.is_running

    await peripheral.close()
    assert FakeBlessServer.instances[0].stopped
    assert not peripheral.is_running
    assert peripheral.server is None


@pytest.mark.parametrize(
    ("overrides", "error"),
    [
        ({"start_result": False}, "GATT server did not start"),
        ({"start_error": RuntimeError("adapter busy")}, "adapter busy"),
    ],
)
@pytest.mark.asyncio
async def test_server_start_failure_is_reported(server_class, overrides, error) -> None:
    server_class(**overrides)
    peripheral, events = _peripheral()
    peripheral.add_service(SERVICE)
    await _settle()

    peripheral.start_advertising(SERVICE.local_name, [BEACON_SERVICE_UUID])
    await _settle()

    assert events[-1] == AdvertisingStarted(error=error)
    assert not peripheral.is_running


@pytest.mark.asyncio
async def test_start_advertising_without_service(server_class) -> None:
    server_class()
    peripheral, events = _peripheral()

    peripheral.start_advertising(SERVICE.local_name, [BEACON_SERVICE_UUID])
    await _settle()

    assert events == [AdvertisingStarted(error="No GATT service has been added")]
