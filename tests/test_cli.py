from __future__ import annotations

import asyncio

import pytest

from ble_beacon_tool import cli
from ble_beacon_tool.emission import EmissionState
from ble_beacon_tool.ibeacon_packet import BeaconRecord, encode
from ble_beacon_tool.radio import PowerState
from ble_beacon_tool.scanner import BeaconScanner
from ble_beacon_tool.strategies import BEACON_SERVICE_UUID, GattServiceStrategy, IBeaconStrategy

from conftest import TEST_UUID, FakeBleakScanner, FakePeripheral, FakeRadioState, bleak_advertisement


def test_advertise_is_the_default_command() -> None:
    args = cli.parse_args([])
    assert args.command == "advertise"
    assert args.strategy == "auto"

    args = cli.parse_args(["--major", "5", "-v"])
    assert args.command == "advertise"
    assert args.major == 5
    assert args.verbose


def test_scan_arguments() -> None:
    args = cli.parse_args(["scan", "--uuid", TEST_UUID, "--duration", "10"])
    assert args.command == "scan"
    assert args.uuid == TEST_UUID
    assert args.duration == 10


def test_build_configuration_defaults() -> None:
    config = cli.build_configuration(cli.parse_args(["advertise"]))
    assert (config.uuid, config.major, config.minor, config.tx_power) == (TEST_UUID, 100, 1, -59)
    assert not config.verbose


def test_explicit_flags_override_profile() -> None:
    args = cli.parse_args(["advertise", "--profile", "production", "--minor", "7"])
    config = cli.build_configuration(args)
    assert (config.major, config.minor) == (1000, 7)


def test_invalid_uuid_exits_with_error() -> None:
    assert cli.main(["advertise", "--uuid", "not-a-uuid"]) == 1


def test_out_of_policy_tx_power_exits_with_error() -> None:
    assert cli.main(["advertise", "--power", "21"]) == 1


@pytest.mark.asyncio
async def test_simulated_advertise_runs_until_stopped() -> None:
    args = cli.parse_args(["advertise", "--strategy", "simulated"])
    stop_event = asyncio.Event()
    stop_event.set()

    assert await cli.cmd_advertise(args, stop_event=stop_event) == 0


@pytest.mark.asyncio
async def test_scan_prints_sightings_and_summary(monkeypatch, capsys) -> None:
    def factory(**kwargs):
        scanner = FakeBleakScanner(**kwargs)
        frame = encode(BeaconRecord(uuid=TEST_UUID, major=100, minor=1, tx_power=-59))
        scanner.advertisements = [bleak_advertisement(frame, rssi=-40), bleak_advertisement(frame, rssi=-42)]
        return scanner

    monkeypatch.setattr(
        cli, "BeaconScanner", lambda **kwargs: BeaconScanner(scanner_factory=factory, **kwargs)
    )
    args = cli.parse_args(["scan", "--duration", "1", "-v"])
    stop_event = asyncio.Event()
    stop_event.set()

    assert await cli.cmd_scan(args, stop_event=stop_event) == 0

    out = capsys.readouterr().out
    assert out.count(f"Found: {TEST_UUID}") == 2
    assert "Proximity: Immediate (<1m)" in out
    assert "Raw Data: 4C000215" in out
    assert "Summary: Found 1 unique beacons" in out


@pytest.mark.asyncio
async def test_scan_rejects_invalid_filter() -> None:
    args = cli.parse_args(["scan", "--uuid", "bogus"])
    assert await cli.cmd_scan(args, stop_event=asyncio.Event()) == 1


@pytest.mark.asyncio
async def test_status_prints_report(monkeypatch, capsys) -> None:
    monkeypatch.setattr(cli, "BlueZAdapter", lambda adapter: FakeRadioState(PowerState.ON))
    monkeypatch.setattr(cli, "BlueZPeripheral", lambda adapter: FakeRadioState(PowerState.OFF))

    assert await cli.cmd_status(cli.parse_args(["status"])) == 0

    out = capsys.readouterr().out
    assert "System Status" in out
    assert "[OK] Bluetooth Central: On" in out
    assert "[!!] Bluetooth Peripheral: Off" in out
    assert "Recommended strategy: fallback" in out


class UnansweredPeripheral(FakePeripheral):
    """Accepts advertising requests but never reports their outcome."""

    def start_advertising(self, local_name, manufacturer_data=None, service_uuids=()) -> None:
        self.advertisements.append((local_name, manufacturer_data, list(service_uuids)))


@pytest.mark.asyncio
async def test_stop_event_interrupts_pending_start(monkeypatch) -> None:
    peripheral = UnansweredPeripheral()
    strategy = IBeaconStrategy(peripheral, settle_delay=0)
    monkeypatch.setattr(cli, "create_strategy", lambda kind, adapter: strategy)
    args = cli.parse_args(["advertise", "--strategy", "primary"])
    stop_event = asyncio.Event()
    asyncio.get_running_loop().call_later(0.05, stop_event.set)

    assert await asyncio.wait_for(cli.cmd_advertise(args, stop_event=stop_event), timeout=1) == 0

    assert len(peripheral.advertisements) == 1
    assert strategy.state is EmissionState.FAILED
    assert peripheral.closed == 1


@pytest.mark.asyncio
async def test_preset_stop_event_skips_start(monkeypatch) -> None:
    peripheral = FakePeripheral(state=PowerState.UNKNOWN)
    strategy = GattServiceStrategy(peripheral, settle_delay=0.5)
    monkeypatch.setattr(cli, "create_strategy", lambda kind, adapter: strategy)
    args = cli.parse_args(["advertise", "--strategy", "fallback"])
    stop_event = asyncio.Event()
    stop_event.set()

    assert await asyncio.wait_for(cli.cmd_advertise(args, stop_event=stop_event), timeout=1) == 0

    assert peripheral.services == []
    assert strategy.state is EmissionState.IDLE
    assert peripheral.closed == 1


@pytest.mark.asyncio
async def test_fallback_broadcasts_on_unknown_power_state(monkeypatch) -> None:
    peripheral = FakePeripheral(state=PowerState.UNKNOWN)
    strategy = GattServiceStrategy(peripheral, settle_delay=0)
    monkeypatch.setattr(cli, "create_strategy", lambda kind, adapter: strategy)
    args = cli.parse_args(["advertise", "--strategy", "fallback"])
    stop_event = asyncio.Event()
    asyncio.get_running_loop().call_later(0.05, stop_event.set)

    assert await asyncio.wait_for(cli.cmd_advertise(args, stop_event=stop_event), timeout=1) == 0

    assert len(peripheral.services) == 1
    assert peripheral.advertisements[0][2] == [BEACON_SERVICE_UUID]
    assert peripheral.services_removed == 1
    assert strategy.state is EmissionState.STOPPED
