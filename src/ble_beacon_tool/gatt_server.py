"""GATT peripheral backend using bless.

Used by the fallback strategy: instead of a manufacturer-data beacon it
publishes a read-only service carrying the beacon identity and advertises
the service UUID. Adapter power state comes from BlueZ.
"""

import asyncio
import logging
from typing import Any, Sequence

from bless import (
    BlessGATTCharacteristic,
    BlessServer,
    GATTAttributePermissions,
    GATTCharacteristicProperties,
)

from .bluez import DEFAULT_ADAPTER, BlueZAdapter, cancel_tasks
from .radio import AdvertisingStarted, ServiceAdded, ServiceDescriptor

logger = logging.getLogger(__name__)


class BlessPeripheral(BlueZAdapter):
    """Cross-platform GATT peripheral built on bless."""

    def __init__(self, adapter: str = DEFAULT_ADAPTER):
        super().__init__(adapter)
        self.server: BlessServer | None = None
        self._service: ServiceDescriptor | None = None
        self._running = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._running

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def add_service(self, service: ServiceDescriptor) -> None:
        self._spawn(self._add_service(service))

    async def _add_service(self, service: ServiceDescriptor) -> None:
        logger.info(f"[GATT] Creating GATT server: {service.local_name}")
        try:
            self.server = BlessServer(name=service.local_name, loop=asyncio.get_running_loop())
            self.server.read_request_func = self._on_read

            await self.server.add_new_service(service.service_uuid)
            await self.server.add_new_characteristic(
                service.service_uuid,
                service.characteristic_uuid,
                GATTCharacteristicProperties.read | GATTCharacteristicProperties.notify,
                bytearray(service.value),
                GATTAttributePermissions.readable,
            )
        except Exception as e:
            logger.error(f"[GATT] Failed to add service {service.service_uuid}: {e}")
            self.server = None
            self._emit(ServiceAdded(error=str(e)))
            return

        self._service = service
        logger.debug(f"[GATT] Added service {service.service_uuid}")
        logger.debug(f"[GATT]   Characteristic: {service.characteristic_uuid}")
        logger.debug(f"[GATT]   Value: {service.value.hex().upper()}")
        self._emit(ServiceAdded())

    def _on_read(self, characteristic: BlessGATTCharacteristic, **kwargs) -> bytearray:
        """Handle read requests."""
        logger.debug(f"[GATT] Read request for {characteristic.uuid}")
        if self._service is None:
            return bytearray(b"")
        return bytearray(self._service.value)

    def start_advertising(self, local_name: str, service_uuids: Sequence[str]) -> None:
        self._spawn(self._start_server(local_name, service_uuids))

    async def _start_server(self, local_name: str, service_uuids: Sequence[str]) -> None:
        if self.server is None:
            self._emit(AdvertisingStarted(error="No GATT service has been added"))
            return

        # bless advertises the name given at construction and every added service
        logger.debug(f"[GATT] Starting server {local_name} advertising {list(service_uuids)}")
        try:
            started = await self.server.start()
        except Exception as e:
            self._emit(AdvertisingStarted(error=str(e)))
            return

        if started is False:
            self._emit(AdvertisingStarted(error="GATT server did not start"))
            return

        self._running = True
        self._emit(AdvertisingStarted())

    async def stop_advertising(self) -> None:
        if self.server and self._running:
            await self.server.stop()
            self._running = False
            logger.info("[GATT] GATT server stopped")

    async def remove_all_services(self) -> None:
        await self.stop_advertising()
        self.server = None
        self._service = None

    async def close(self) -> None:
        await cancel_tasks(self._tasks)
        await self.remove_all_services()
        await super().close()
