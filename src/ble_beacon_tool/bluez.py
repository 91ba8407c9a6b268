"""BlueZ radio backend using the D-Bus API.

This module provides the adapter-state source used for capability checks
and the peripheral used by the primary strategy to register a
manufacturer-data advertisement with BlueZ.

Requirements:
    - Linux with BlueZ 5.x
    - bluetoothd running
    - Access to the system D-Bus
"""

import asyncio
import logging
from typing import Any, Mapping

from dbus_next import BusType, Variant
from dbus_next.aio import MessageBus
from dbus_next.errors import DBusError, InterfaceNotFoundError
from dbus_next.service import PropertyAccess, ServiceInterface, dbus_property, method

from .radio import AdvertisingStarted, EventSource, PowerState, PowerStateChanged

logger = logging.getLogger(__name__)

# BlueZ D-Bus constants
BLUEZ_SERVICE = "org.bluez"
BLUEZ_ADAPTER_INTERFACE = "org.bluez.Adapter1"
BLUEZ_LE_ADVERTISING_MANAGER_INTERFACE = "org.bluez.LEAdvertisingManager1"
BLUEZ_LE_ADVERTISEMENT_INTERFACE = "org.bluez.LEAdvertisement1"
DBUS_PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"

# D-Bus error names that mean the caller lacks permission
ACCESS_DENIED_ERRORS = (
    "org.freedesktop.DBus.Error.AccessDenied",
    "org.bluez.Error.NotAuthorized",
    "org.bluez.Error.NotPermitted",
)

# D-Bus object paths
DEFAULT_ADAPTER = "hci0"
ADVERTISEMENT_PATH = "/com/blebeacon/advertisement0"


async def cancel_tasks(tasks: set[asyncio.Task]) -> None:
    """Cancel outstanding request tasks and wait for them to finish."""
    pending = list(tasks)
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)


class BeaconAdvertisement(ServiceInterface):
    """D-Bus service implementing org.bluez.LEAdvertisement1.

    For a manufacturer-data beacon the type is "broadcast" (one-way, no
    connection). The local name is not advertised: it does not fit next to
    a 25-byte manufacturer payload in a legacy advertisement.
    """

    def __init__(self, manufacturer_data: Mapping[int, bytes]):
        """Initialize the advertisement.

        Args:
            manufacturer_data: Company ID -> bytes following it, as built by
                ibeacon_packet.build_manufacturer_data()
        """
        super().__init__(BLUEZ_LE_ADVERTISEMENT_INTERFACE)
        self._manufacturer_data = {
            company_id: Variant("ay", bytes(payload))
            for company_id, payload in manufacturer_data.items()
        }

    @dbus_property(access=PropertyAccess.READ)
    def Type(self) -> "s":
        return "broadcast"

    @dbus_property(access=PropertyAccess.READ)
    def ManufacturerData(self) -> "a{qv}":
        return self._manufacturer_data

    @dbus_property(access=PropertyAccess.READ)
    def IncludeTxPower(self) -> "b":
        """iBeacon carries its calibrated TX power in the payload itself."""
        return False

    @method()
    def Release(self) -> None:
        """Called by BlueZ when the advertisement is released."""
        logger.info("[BLUEZ] Advertisement released by BlueZ")


class BlueZAdapter(EventSource):
    """Reports the power state of a BlueZ adapter.

    open() connects to the system bus, reads the adapter's Powered property
    and then delivers the state as a PowerStateChanged event. Later changes
    of Powered are delivered as they happen.
    """

    def __init__(self, adapter: str = DEFAULT_ADAPTER):
        super().__init__()
        self._adapter_name = adapter
        self._adapter_path = f"/org/bluez/{adapter}"
        self._bus: MessageBus | None = None
        self._properties: Any = None
        self._power_state = PowerState.UNKNOWN

    @property
    def adapter_name(self) -> str:
        return self._adapter_name

    @property
    def power_state(self) -> PowerState:
        return self._power_state

    async def open(self) -> None:
        if self._bus is None:
            self._power_state = await self._connect()
            logger.debug(f"[BLUEZ] {self._adapter_name} power state: {self._power_state.value}")
        asyncio.get_running_loop().call_soon(self._emit, PowerStateChanged(self._power_state))

    async def close(self) -> None:
        if self._properties is not None:
            self._properties.off_properties_changed(self._on_properties_changed)
            self._properties = None
        if self._bus is not None:
            self._bus.disconnect()
            logger.debug("[BLUEZ] Disconnected from D-Bus")
        self._bus = None
        self._power_state = PowerState.UNKNOWN

    async def _connect(self) -> PowerState:
        try:
            self._bus = await MessageBus(bus_type=BusType.SYSTEM).connect()
        except OSError as e:
            logger.warning(f"[BLUEZ] Could not connect to the system D-Bus: {e}")
            return PowerState.UNSUPPORTED

        try:
            introspection = await self._bus.introspect(BLUEZ_SERVICE, self._adapter_path)
            proxy = self._bus.get_proxy_object(BLUEZ_SERVICE, self._adapter_path, introspection)
            adapter = proxy.get_interface(BLUEZ_ADAPTER_INTERFACE)
            powered = await adapter.get_powered()
        except InterfaceNotFoundError:
            logger.warning(f"[BLUEZ] Adapter {self._adapter_name} not found")
            return PowerState.UNSUPPORTED
        except DBusError as e:
            if e.type in ACCESS_DENIED_ERRORS:
                logger.warning(f"[BLUEZ] Access to {self._adapter_name} denied: {e.text}")
                return PowerState.UNAUTHORIZED
            logger.warning(f"[BLUEZ] BlueZ unavailable: {e.type}: {e.text}")
            return PowerState.UNSUPPORTED

        self._properties = proxy.get_interface(DBUS_PROPERTIES_INTERFACE)
        self._properties.on_properties_changed(self._on_properties_changed)

        if not powered:
            return PowerState.OFF
        return self._state_when_powered(proxy)

    def _state_when_powered(self, proxy: Any) -> PowerState:
        return PowerState.ON

    def _on_properties_changed(
        self, interface_name: str, changed: dict[str, Variant], invalidated: list[str]
    ) -> None:
        if interface_name != BLUEZ_ADAPTER_INTERFACE or "Powered" not in changed:
            return
        state = PowerState.ON if changed["Powered"].value else PowerState.OFF
        if state is not self._power_state:
            logger.info(f"[BLUEZ] {self._adapter_name} power state changed: {state.value}")
            self._power_state = state
            self._emit(PowerStateChanged(state))


class BlueZPeripheral(BlueZAdapter):
    """Registers manufacturer-data advertisements with BlueZ.

    The adapter counts as ON only when it is powered and exposes the
    LEAdvertisingManager1 interface.
    """

    def __init__(self, adapter: str = DEFAULT_ADAPTER):
        super().__init__(adapter)
        self._advertising_manager: Any = None
        self._advertisement: BeaconAdvertisement | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_advertising(self) -> bool:
        return self._advertisement is not None

    def _state_when_powered(self, proxy: Any) -> PowerState:
        try:
            self._advertising_manager = proxy.get_interface(BLUEZ_LE_ADVERTISING_MANAGER_INTERFACE)
        except InterfaceNotFoundError:
            logger.warning(f"[BLUEZ] {self._adapter_name} does not support LE advertising")
            return PowerState.UNSUPPORTED
        return PowerState.ON

    def start_advertising(self, local_name: str, manufacturer_data: Mapping[int, bytes]) -> None:
        task = asyncio.get_running_loop().create_task(self._register(local_name, manufacturer_data))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _register(self, local_name: str, manufacturer_data: Mapping[int, bytes]) -> None:
        if self._bus is None or self._advertising_manager is None:
            self._emit(AdvertisingStarted(error="Adapter is not ready for advertising"))
            return

        # A registration left over from an abandoned start still holds the path
        if self._advertisement is not None:
            await self.stop_advertising()

        advertisement = BeaconAdvertisement(manufacturer_data)
        exported = False
        try:
            self._bus.export(ADVERTISEMENT_PATH, advertisement)
            exported = True
            logger.debug(f"[BLUEZ] Exported advertisement for {local_name} at {ADVERTISEMENT_PATH}")
            await self._advertising_manager.call_register_advertisement(ADVERTISEMENT_PATH, {})
        except DBusError as e:
            self._abandon_export(exported)
            self._emit(AdvertisingStarted(error=e.text or e.type))
            return
        except Exception as e:
            logger.error(f"[BLUEZ] Failed to register advertisement: {e}")
            self._abandon_export(exported)
            self._emit(AdvertisingStarted(error=str(e) or type(e).__name__))
            return

        self._advertisement = advertisement
        logger.debug("[BLUEZ] Advertisement registered with BlueZ")
        self._emit(AdvertisingStarted())

    def _abandon_export(self, exported: bool) -> None:
        if exported and self._bus is not None:
            self._bus.unexport(ADVERTISEMENT_PATH)

    async def stop_advertising(self) -> None:
        if self._advertisement is None:
            return

        if self._advertising_manager is not None:
            try:
                await self._advertising_manager.call_unregister_advertisement(ADVERTISEMENT_PATH)
                logger.debug("[BLUEZ] Advertisement unregistered")
            except DBusError as e:
                logger.warning(f"[BLUEZ] Error unregistering advertisement: {e.text}")

        if self._bus is not None:
            self._bus.unexport(ADVERTISEMENT_PATH)
        self._advertisement = None

    async def close(self) -> None:
        await cancel_tasks(self._tasks)
        await self.stop_advertising()
        self._advertising_manager = None
        await super().close()
