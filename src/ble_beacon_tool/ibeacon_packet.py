"""iBeacon frame encoding and decoding.

This module provides pure Python functions to build and parse iBeacon
manufacturer-data frames. It has no platform dependencies and is shared by
every advertising backend and by the scanner.

iBeacon Frame Format (Manufacturer Specific Data):
    Offset  Length  Value       Description
    0-1     2       0x4C00      Apple Company ID (little-endian)
    2       1       0x02        iBeacon type
    3       1       0x15        Length (21 bytes following)
    4-19    16      [UUID]      Proximity UUID (big-endian)
    20-21   2       [Major]     Major value (big-endian)
    22-23   2       [Minor]     Minor value (big-endian)
    24      1       [TxPower]   Calibrated TX Power (signed int8)
"""

import re
import struct
from dataclasses import dataclass

from .errors import ConfigurationError, InvalidUUIDError, NotIBeaconError, TruncatedFrameError

# Apple's company identifier for iBeacon
APPLE_COMPANY_ID = 0x004C

# iBeacon type and length constants
IBEACON_TYPE = 0x02
IBEACON_DATA_LENGTH = 0x15  # 21 bytes

IBEACON_PREAMBLE = struct.pack("<HBB", APPLE_COMPANY_ID, IBEACON_TYPE, IBEACON_DATA_LENGTH)
IBEACON_PREAMBLE_HEX = IBEACON_PREAMBLE.hex().upper()  # "4C000215"
IBEACON_FRAME_LENGTH = len(IBEACON_PREAMBLE) + IBEACON_DATA_LENGTH  # 25 bytes

# >: big-endian, 16s: UUID, H: major, H: minor, b: signed TX power
_BODY_FORMAT = ">16sHHb"

UUID_PATTERN = re.compile(
    r"^[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12}$"
)


@dataclass(frozen=True)
class BeaconRecord:
    """A decoded (or to-be-encoded) iBeacon identity.

    Attributes:
        uuid: Proximity UUID as canonical uppercase dashed string
        major: Group identifier (0-65535)
        minor: Device identifier within group (0-65535)
        tx_power: Calibrated TX power at 1 meter in dBm (signed 8-bit)
    """

    uuid: str
    major: int
    minor: int
    tx_power: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "uuid", normalize_uuid(self.uuid))
        if not 0 <= self.major <= 0xFFFF:
            raise ConfigurationError(f"Major must be 0-65535, got {self.major}")
        if not 0 <= self.minor <= 0xFFFF:
            raise ConfigurationError(f"Minor must be 0-65535, got {self.minor}")
        if not -128 <= self.tx_power <= 127:
            raise ConfigurationError(f"TX power must fit a signed byte, got {self.tx_power}")


def normalize_uuid(uuid_str: str) -> str:
    """Return the canonical uppercase form of a dashed UUID string.

    Raises:
        InvalidUUIDError: If the string is not 8-4-4-4-12 hex groups
    """
    if not UUID_PATTERN.match(uuid_str):
        raise InvalidUUIDError(uuid_str)
    return uuid_str.upper()


def uuid_to_bytes(uuid_str: str) -> bytes:
    """Convert a dashed UUID string to its 16 big-endian bytes."""
    return bytes.fromhex(normalize_uuid(uuid_str).replace("-", ""))


def bytes_to_uuid(data: bytes) -> str:
    """Format 16 UUID bytes as a canonical dashed uppercase string."""
    hex_str = data.hex().upper()
    return f"{hex_str[:8]}-{hex_str[8:12]}-{hex_str[12:16]}-{hex_str[16:20]}-{hex_str[20:32]}"


def encode_body(record: BeaconRecord) -> bytes:
    """Build the 21-byte UUID/major/minor/TX power part of the frame."""
    return struct.pack(
        _BODY_FORMAT,
        uuid_to_bytes(record.uuid),
        record.major,
        record.minor,
        record.tx_power,
    )


def encode(record: BeaconRecord) -> bytes:
    """Build the full 25-byte iBeacon manufacturer-data frame.

    Args:
        record: Beacon identity to encode

    Returns:
        Company ID, type, length and body as the radio transmits them
    """
    return IBEACON_PREAMBLE + encode_body(record)


def build_manufacturer_data(record: BeaconRecord) -> dict[int, bytes]:
    """Build the manufacturer-specific data dictionary.

    BlueZ and bleak express manufacturer data as a mapping from company ID
    to the bytes that follow it. For iBeacon, the company ID is Apple (0x004C).
    """
    return {APPLE_COMPANY_ID: encode(record)[2:]}


def decode(raw: bytes) -> BeaconRecord:
    """Parse a manufacturer-data frame into a BeaconRecord.

    Only the first 25 bytes are used; trailing bytes are ignored.

    Raises:
        NotIBeaconError: If the frame does not start with 4C 00 02 15
        TruncatedFrameError: If fewer than 25 bytes are available
    """
    prefix = bytes(raw[: len(IBEACON_PREAMBLE)])
    if prefix.hex().upper() != IBEACON_PREAMBLE_HEX:
        raise NotIBeaconError(f"Not an iBeacon frame (prefix {prefix.hex().upper() or 'empty'})")
    if len(raw) < IBEACON_FRAME_LENGTH:
        raise TruncatedFrameError(
            f"iBeacon frame is {len(raw)} bytes, expected {IBEACON_FRAME_LENGTH}"
        )

    uuid_bytes, major, minor, tx_power = struct.unpack(
        _BODY_FORMAT, bytes(raw[len(IBEACON_PREAMBLE) : IBEACON_FRAME_LENGTH])
    )
    return BeaconRecord(uuid=bytes_to_uuid(uuid_bytes), major=major, minor=minor, tx_power=tx_power)


def decode_hex(hex_str: str) -> BeaconRecord:
    """Parse raw advertisement hex (e.g. "4C000215...") into a BeaconRecord."""
    try:
        raw = bytes.fromhex("".join(hex_str.split()))
    except ValueError as e:
        raise NotIBeaconError(f"Invalid advertisement hex: {e}") from e
    return decode(raw)


def format_payload_breakdown(record: BeaconRecord) -> str:
    """Format the encoded frame as an annotated hex dump.

    Returns:
        Multi-line string naming each field of the frame
    """
    frame = encode(record)
    uuid_hex = " ".join(f"{b:02X}" for b in frame[4:20])
    return (
        f"Actual iBeacon Payload ({len(frame)} bytes):\n"
        f"  Hex: {' '.join(f'{b:02X}' for b in frame)}\n"
        f"  Breakdown:\n"
        f"    {frame[0]:02X} {frame[1]:02X}          - Apple Company ID\n"
        f"    {frame[2]:02X} {frame[3]:02X}          - iBeacon Type & Length\n"
        f"    {uuid_hex} - UUID\n"
        f"    {frame[20]:02X} {frame[21]:02X}          - Major ({record.major})\n"
        f"    {frame[22]:02X} {frame[23]:02X}          - Minor ({record.minor})\n"
        f"    {frame[24]:02X}             - TX Power ({record.tx_power} dBm)"
    )
