from __future__ import annotations

import pytest

from ble_beacon_tool.errors import ConfigurationError, InvalidUUIDError, NotIBeaconError, TruncatedFrameError
from ble_beacon_tool.ibeacon_packet import (
    APPLE_COMPANY_ID,
    IBEACON_FRAME_LENGTH,
    BeaconRecord,
    build_manufacturer_data,
    decode,
    decode_hex,
    encode,
    encode_body,
    format_payload_breakdown,
)

from conftest import TEST_UUID

EXPECTED_FRAME_HEX = "4C000215" "92821D619FEE400387F131799E12017A" "0064" "0001" "C5"


def test_encode_known_vector() -> None:
    record = BeaconRecord(uuid=TEST_UUID, major=100, minor=1, tx_power=-59)

    frame = encode(record)

    assert len(frame) == IBEACON_FRAME_LENGTH == 25
    assert frame.hex().upper() == EXPECTED_FRAME_HEX


def test_encode_body_is_frame_without_preamble() -> None:
    record = BeaconRecord(uuid=TEST_UUID, major=100, minor=1, tx_power=-59)
    assert encode_body(record) == encode(record)[4:]
    assert len(encode_body(record)) == 21


def test_decode_known_vector() -> None:
    record = decode(bytes.fromhex(EXPECTED_FRAME_HEX))

    assert record.uuid == TEST_UUID
    assert record.major == 100
    assert record.minor == 1
    assert record.tx_power == -59


@pytest.mark.parametrize(
    "record",
    [
        BeaconRecord(uuid=TEST_UUID, major=0, minor=0, tx_power=-127),
        BeaconRecord(uuid="00000000-0000-0000-0000-000000000000", major=65535, minor=65535, tx_power=20),
        BeaconRecord(uuid="e7b2c021-5d07-4d0b-9c20-223488c8b012", major=1, minor=42, tx_power=0),
    ],
)
def test_round_trip(record: BeaconRecord) -> None:
    decoded = decode(encode(record))
    assert decoded == record
    assert decoded.uuid.lower() == record.uuid.lower()


def test_record_normalizes_uuid_case() -> None:
    record = BeaconRecord(uuid=TEST_UUID.lower(), major=1, minor=1, tx_power=-59)
    assert record.uuid == TEST_UUID


def test_decode_ignores_trailing_bytes() -> None:
    frame = bytes.fromhex(EXPECTED_FRAME_HEX) + b"\xde\xad\xbe\xef"
    assert decode(frame) == decode(bytes.fromhex(EXPECTED_FRAME_HEX))


@pytest.mark.parametrize(
    "raw",
    [
        b"",
        b"\x4c\x00",
        bytes.fromhex("4C000115") + bytes(21),
        bytes.fromhex("06000215") + bytes(21),
        bytes.fromhex("4C000216") + bytes(21),
    ],
)
def test_decode_rejects_wrong_preamble(raw: bytes) -> None:
    with pytest.raises(NotIBeaconError):
        decode(raw)


@pytest.mark.parametrize("length", [4, 10, 24])
def test_decode_rejects_truncated_frame(length: int) -> None:
    with pytest.raises(TruncatedFrameError):
        decode(bytes.fromhex(EXPECTED_FRAME_HEX)[:length])


def test_decode_hex_tolerates_whitespace_and_case() -> None:
    spaced = " ".join(EXPECTED_FRAME_HEX[i:i + 2] for i in range(0, len(EXPECTED_FRAME_HEX), 2))
    assert decode_hex(spaced.lower()).major == 100


def test_decode_hex_rejects_invalid_hex() -> None:
    with pytest.raises(NotIBeaconError):
        decode_hex("4C0002ZZ")


def test_record_rejects_invalid_fields() -> None:
    with pytest.raises(InvalidUUIDError):
        BeaconRecord(uuid="92821D619FEE400387F131799E12017A", major=1, minor=1, tx_power=-59)
    with pytest.raises(ConfigurationError):
        BeaconRecord(uuid=TEST_UUID, major=70000, minor=1, tx_power=-59)
    with pytest.raises(ConfigurationError):
        BeaconRecord(uuid=TEST_UUID, major=1, minor=1, tx_power=200)


def test_build_manufacturer_data_strips_company_id() -> None:
    record = BeaconRecord(uuid=TEST_UUID, major=100, minor=1, tx_power=-59)

    data = build_manufacturer_data(record)

    assert list(data) == [APPLE_COMPANY_ID]
    assert data[APPLE_COMPANY_ID].hex().upper() == EXPECTED_FRAME_HEX[4:]


def test_format_payload_breakdown() -> None:
    record = BeaconRecord(uuid=TEST_UUID, major=100, minor=1, tx_power=-59)

    text = format_payload_breakdown(record)

    assert "(25 bytes)" in text
    assert "4C 00          - Apple Company ID" in text
    assert "00 64          - Major (100)" in text
    assert "C5             - TX Power (-59 dBm)" in text
