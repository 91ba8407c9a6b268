"""Radio collaborator contract.

Backends (BlueZ, bless, test fakes) report everything that happens on the
radio as tagged events delivered to subscribed handlers on the event loop.
Requests that complete asynchronously (start_advertising, add_service)
return immediately and report their outcome through a later event.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Protocol, Sequence, Union


class PowerState(Enum):
    """Adapter state as reported by the Bluetooth stack."""

    ON = "poweredOn"
    OFF = "poweredOff"
    UNAUTHORIZED = "unauthorized"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"
    RESETTING = "resetting"

    @property
    def label(self) -> str:
        return {
            PowerState.ON: "On",
            PowerState.OFF: "Off",
            PowerState.UNAUTHORIZED: "Unauthorized",
            PowerState.UNSUPPORTED: "Unsupported",
            PowerState.UNKNOWN: "Unknown",
            PowerState.RESETTING: "Resetting",
        }[self]


@dataclass(frozen=True)
class PowerStateChanged:
    state: PowerState


@dataclass(frozen=True)
class AdvertisingStarted:
    """Outcome of start_advertising(); error is None on success."""

    error: str | None = None


@dataclass(frozen=True)
class ServiceAdded:
    """Outcome of add_service(); error is None on success."""

    error: str | None = None


@dataclass(frozen=True)
class DiscoveryEvent:
    """A manufacturer-data frame seen while scanning.

    manufacturer_data starts with the little-endian company ID.
    """

    manufacturer_data: bytes
    rssi: int
    peer: str


RadioEvent = Union[PowerStateChanged, AdvertisingStarted, ServiceAdded, DiscoveryEvent]
EventHandler = Callable[[RadioEvent], None]


@dataclass(frozen=True)
class ServiceDescriptor:
    """A single-characteristic, read-only GATT service to publish."""

    service_uuid: str
    characteristic_uuid: str
    value: bytes
    local_name: str


class RadioState(Protocol):
    """Anything that reports an adapter power state."""

    @property
    def power_state(self) -> PowerState:
        ...

    def subscribe(self, handler: EventHandler) -> None:
        """Register a handler for every event this collaborator emits."""
        ...

    async def open(self) -> None:
        """Attach to the stack; the current power state is delivered as an event."""
        ...

    async def close(self) -> None:
        ...


class Peripheral(RadioState, Protocol):
    """A radio that can broadcast a manufacturer-data advertisement."""

    def start_advertising(self, local_name: str, manufacturer_data: Mapping[int, bytes]) -> None:
        """Request an advertisement; the result arrives as AdvertisingStarted.

        manufacturer_data maps each company ID to the bytes that follow it.
        """
        ...

    async def stop_advertising(self) -> None:
        ...


class GattPeripheral(RadioState, Protocol):
    """A radio that publishes GATT services and advertises their UUIDs."""

    def add_service(self, service: ServiceDescriptor) -> None:
        """Request a service; the result arrives as ServiceAdded."""
        ...

    def start_advertising(self, local_name: str, service_uuids: Sequence[str]) -> None:
        """Request an advertisement; the result arrives as AdvertisingStarted."""
        ...

    async def stop_advertising(self) -> None:
        ...

    async def remove_all_services(self) -> None:
        ...


class EventSource:
    """Handler registry shared by the concrete backends."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def _emit(self, event: RadioEvent) -> None:
        for handler in list(self._handlers):
            handler(event)
