"""iBeacon scanner built on bleak.

Every manufacturer-data frame seen by the scanner is run through the codec.
Frames that are not iBeacons are dropped silently; scanning is best effort
and most advertisements nearby are not beacons.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from bleak import BleakScanner
from bleak.exc import BleakError

from .errors import BluetoothUnavailableError, DecodeError
from .ibeacon_packet import decode, normalize_uuid
from .proximity import Proximity, estimate_proximity
from .radio import DiscoveryEvent

logger = logging.getLogger(__name__)

DEFAULT_SCAN_DURATION = 30


@dataclass(frozen=True)
class BeaconSighting:
    """A reported iBeacon discovery."""

    timestamp: datetime
    uuid: str
    major: int
    minor: int
    rssi: int
    proximity: Proximity
    tx_power: int
    raw_hex: str
    peer: str


class BeaconScanner:
    """Scans for iBeacons and reports each one once per session.

    Repeated sightings of the same (uuid, major, minor) are reported again
    only in verbose mode.
    """

    def __init__(
        self,
        filter_uuid: str | None = None,
        verbose: bool = False,
        on_discovery: Callable[[BeaconSighting], None] | None = None,
        adapter: str | None = None,
        scanner_factory: Callable[..., Any] = BleakScanner,
    ):
        """Initialize the scanner.

        Args:
            filter_uuid: Only report beacons with this UUID (case-insensitive)
            verbose: Report repeat sightings too
            on_discovery: Called with every reported sighting
            adapter: Bluetooth adapter name (e.g., "hci0"); None for the default
            scanner_factory: Builds the underlying bleak scanner
        """
        self.filter_uuid = normalize_uuid(filter_uuid) if filter_uuid else None
        self.verbose = verbose
        self._on_discovery = on_discovery
        self._adapter = adapter
        self._scanner_factory = scanner_factory
        self._scanner: Any = None
        self._discovered: set[tuple[str, int, int]] = set()

    @property
    def discovered_count(self) -> int:
        return len(self._discovered)

    @property
    def is_scanning(self) -> bool:
        return self._scanner is not None

    def on_advertisement(self, raw: bytes, rssi: int, peer: str) -> BeaconSighting | None:
        """Process one manufacturer-data frame.

        Returns:
            The sighting if it was reported, None if it was dropped or suppressed
        """
        try:
            record = decode(raw)
        except DecodeError:
            return None

        if self.filter_uuid and record.uuid != self.filter_uuid:
            return None

        key = (record.uuid, record.major, record.minor)
        is_new = key not in self._discovered
        if not is_new and not self.verbose:
            return None
        self._discovered.add(key)

        sighting = BeaconSighting(
            timestamp=datetime.now(),
            uuid=record.uuid,
            major=record.major,
            minor=record.minor,
            rssi=rssi,
            proximity=estimate_proximity(rssi),
            tx_power=record.tx_power,
            raw_hex=bytes(raw).hex().upper(),
            peer=peer,
        )
        if self._on_discovery is not None:
            self._on_discovery(sighting)
        return sighting

    def handle_event(self, event: DiscoveryEvent) -> BeaconSighting | None:
        return self.on_advertisement(event.manufacturer_data, event.rssi, event.peer)

    def _detection_callback(self, device: Any, advertisement_data: Any) -> None:
        """bleak callback: rebuild each manufacturer-data entry into a raw frame."""
        for company_id, payload in advertisement_data.manufacturer_data.items():
            raw = company_id.to_bytes(2, "little") + bytes(payload)
            self.handle_event(
                DiscoveryEvent(manufacturer_data=raw, rssi=advertisement_data.rssi, peer=device.address)
            )

    async def start(self) -> None:
        """Start a scan session with an empty discovered set.

        Raises:
            BluetoothUnavailableError: If bleak cannot start scanning
        """
        if self._scanner is not None:
            logger.warning("[SCAN] Already scanning, ignoring start request")
            return

        self._discovered = set()
        kwargs: dict[str, Any] = {}
        if self._adapter:
            kwargs["adapter"] = self._adapter

        if self.filter_uuid:
            logger.info(f"[SCAN] Filtering for UUID: {self.filter_uuid}")
        else:
            logger.info("[SCAN] Scanning for all iBeacons")

        scanner = self._scanner_factory(detection_callback=self._detection_callback, **kwargs)
        try:
            await scanner.start()
        except BleakError as e:
            raise BluetoothUnavailableError(str(e)) from e
        self._scanner = scanner
        logger.info("[SCAN] Scanner started")

    async def stop(self) -> int:
        """Stop the session and return the number of unique beacons seen."""
        count = len(self._discovered)
        if self._scanner is not None:
            try:
                await self._scanner.stop()
            except BleakError as e:
                logger.warning(f"[SCAN] Error stopping scanner: {e}")
            self._scanner = None
            logger.info("[SCAN] Scanning stopped")
        self._discovered = set()
        return count

    async def scan(self, duration: float, stop_event: asyncio.Event | None = None) -> int:
        """Scan for duration seconds (or until stop_event is set).

        Returns:
            Number of unique beacons observed
        """
        await self.start()
        try:
            if stop_event is None:
                await asyncio.sleep(duration)
            else:
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=duration)
                except asyncio.TimeoutError:
                    pass
        finally:
            count = await self.stop()
        return count
