"""Emission strategy state machine.

Every strategy follows the same lifecycle:

    IDLE -> INITIALIZING -> ADVERTISING -> STOPPED
                 |
                 +-> FAILED

start() moves to INITIALIZING, attaches to the radio and then waits on a
one-shot future. The future is resolved by handle_event(), which reduces
radio events (power state, service added, advertising started) into state
transitions. A failed or stopped strategy may be started again.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum

from .capabilities import SETTLE_DELAY_SECONDS, StrategyKind
from .configuration import BeaconConfiguration
from .errors import (
    AdvertisingFailedError,
    BeaconError,
    BluetoothPoweredOffError,
    BluetoothUnauthorizedError,
    BluetoothUnsupportedError,
    EmissionInProgressError,
)
from .ibeacon_packet import BeaconRecord
from .radio import (
    AdvertisingStarted,
    GattPeripheral,
    Peripheral,
    PowerState,
    PowerStateChanged,
    RadioEvent,
    ServiceAdded,
)
from .status_reporter import INITIAL_STATUS_DELAY_SECONDS, STATUS_INTERVAL_SECONDS, StatusReporter

logger = logging.getLogger(__name__)


class EmissionState(Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    ADVERTISING = "advertising"
    STOPPED = "stopped"
    FAILED = "failed"


class EmissionStrategy:
    """Base class for the primary, fallback and simulated strategies.

    Subclasses implement _on_powered_on() to request their broadcast and
    _teardown() to release it. Event handlers run on the event loop and are
    never re-entered for the same instance.
    """

    kind: StrategyKind
    name = "Emission Strategy"
    status_label = "ACTIVE"
    status_interval = STATUS_INTERVAL_SECONDS
    initial_status_delay = INITIAL_STATUS_DELAY_SECONDS

    def __init__(
        self,
        peripheral: Peripheral | GattPeripheral | None = None,
        settle_delay: float = SETTLE_DELAY_SECONDS,
        status_interval: float | None = None,
        initial_status_delay: float | None = None,
    ):
        """Initialize the strategy.

        Args:
            peripheral: Radio collaborator driving the broadcast
            settle_delay: Seconds can_emit() waits before sampling the power state
            status_interval: Override for the status report interval
            initial_status_delay: Override for the delay before the first report
        """
        self._peripheral = peripheral
        self._settle_delay = settle_delay
        if status_interval is not None:
            self.status_interval = status_interval
        if initial_status_delay is not None:
            self.initial_status_delay = initial_status_delay

        self._state = EmissionState.IDLE
        self._failure: BeaconError | None = None
        self._config: BeaconConfiguration | None = None
        self._record: BeaconRecord | None = None
        self._pending: asyncio.Future | None = None
        self._requested = False
        self._reporter: StatusReporter | None = None

        if peripheral is not None:
            peripheral.subscribe(self.handle_event)

    @property
    def state(self) -> EmissionState:
        return self._state

    @property
    def is_emitting(self) -> bool:
        return self._state is EmissionState.ADVERTISING

    @property
    def failure(self) -> BeaconError | None:
        """The error that moved the strategy to FAILED, if any."""
        return self._failure

    @property
    def peripheral(self) -> Peripheral | GattPeripheral | None:
        return self._peripheral

    @property
    def status_reporter(self) -> StatusReporter | None:
        return self._reporter

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _permits_emission(self, state: PowerState) -> bool:
        return state is PowerState.ON

    async def can_emit(self) -> bool:
        """Check whether the radio can currently emit, without changing state.

        The check attaches the radio collaborator and leaves it attached so
        that a following start() reuses the connection. close() releases it.
        """
        await self._peripheral.open()
        await asyncio.sleep(self._settle_delay)
        state = self._peripheral.power_state
        logger.debug(f"[EMIT] {self.name} capability check: power state {state.value}")
        return self._permits_emission(state)

    async def start(self, config: BeaconConfiguration) -> None:
        """Start emitting the beacon described by config.

        Raises:
            ConfigurationError: If the configuration fails validation
            CapabilityError: If the radio is off, unauthorized or unsupported
            TransmissionError: If the platform refuses to start the broadcast
            EmissionInProgressError: If another start() is still pending
        """
        if self._state is EmissionState.ADVERTISING:
            logger.warning("[EMIT] Already advertising, ignoring start request")
            return
        if self._pending is not None:
            raise EmissionInProgressError(f"{self.name} is already starting")

        self._record = config.to_record()
        self._config = config
        self._failure = None
        self._requested = False
        self._state = EmissionState.INITIALIZING
        self._pending = asyncio.get_running_loop().create_future()

        if config.verbose:
            logger.info(f"[EMIT] Initializing {self.name}...")

        try:
            await self._begin()
            await self._pending
        except BeaconError as e:
            self._failure = e
            raise
        finally:
            self._pending = None
            if self._state is EmissionState.INITIALIZING:
                self._state = EmissionState.FAILED

    async def _begin(self) -> None:
        await self._peripheral.open()

    async def stop(self) -> None:
        """Stop emitting; does nothing unless currently advertising."""
        if self._state is not EmissionState.ADVERTISING:
            logger.debug(f"[EMIT] {self.name} not advertising, nothing to stop")
            return

        if self._reporter is not None:
            await self._reporter.stop()
            self._reporter = None

        await self._teardown()
        self._state = EmissionState.STOPPED
        logger.info(f"[EMIT] Stopped {self.name}")

    async def close(self) -> None:
        """Stop emitting and release the radio collaborator."""
        await self.stop()
        if self._peripheral is not None:
            await self._peripheral.close()

    async def _teardown(self) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Event reducer
    # ------------------------------------------------------------------

    def handle_event(self, event: RadioEvent) -> None:
        """Apply a radio event to the state machine."""
        if isinstance(event, PowerStateChanged):
            self._on_power_state(event.state)
        elif isinstance(event, ServiceAdded):
            self._on_service_added(event.error)
        elif isinstance(event, AdvertisingStarted):
            self._on_advertising_started(event.error)

    def _awaiting(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def _on_power_state(self, state: PowerState) -> None:
        if not self._awaiting():
            if self._state is EmissionState.ADVERTISING and state is not PowerState.ON:
                logger.warning(f"[EMIT] Bluetooth power state changed to {state.value} while advertising")
            return

        if self._permits_emission(state):
            if self._requested:
                logger.debug(f"[EMIT] Bluetooth state {state.value}, broadcast already requested")
                return
            logger.info(f"[EMIT] Bluetooth state {state.value}, starting broadcast")
            self._requested = True
            self._on_powered_on()
        elif state is PowerState.OFF:
            self._fail(BluetoothPoweredOffError())
        elif state is PowerState.UNAUTHORIZED:
            self._fail(BluetoothUnauthorizedError())
        elif state is PowerState.UNSUPPORTED:
            self._fail(BluetoothUnsupportedError())
        else:
            logger.info(f"[EMIT] Bluetooth state {state.value}, waiting...")

    def _on_powered_on(self) -> None:
        raise NotImplementedError

    def _on_service_added(self, error: str | None) -> None:
        logger.debug(f"[EMIT] Ignoring service event for {self.name}")

    def _on_advertising_started(self, error: str | None) -> None:
        if not self._awaiting():
            return
        if error:
            self._fail(AdvertisingFailedError(error))
            return

        self._state = EmissionState.ADVERTISING
        logger.info(f"[EMIT] Broadcasting via {self.name}")
        logger.info(f"[EMIT] Beacon ID: {self._config.local_name}")
        if self._config.verbose:
            for line in self.details().splitlines():
                logger.info(f"[EMIT]   {line}")

        self._reporter = StatusReporter(
            self.report_status,
            interval=self.status_interval,
            initial_delay=self.initial_status_delay,
        )
        self._reporter.start()
        self._pending.set_result(None)

    def _fail(self, error: BeaconError) -> None:
        self._state = EmissionState.FAILED
        self._failure = error
        logger.error(f"[EMIT] {error}")
        self._pending.set_exception(error)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def details(self) -> str:
        """Multi-line broadcast details for verbose output."""
        return self._config.describe()

    def status_line(self) -> str:
        """One status report; reads state only."""
        config = self._config
        status = self.status_label if self.is_emitting else "INACTIVE"
        bluetooth = self._peripheral.power_state.label if self._peripheral else "N/A"
        line = (
            f"[{datetime.now():%H:%M:%S}] Status: {status} | BT: {bluetooth} | UUID: {config.uuid} | "
            f"Major: {config.major} | Minor: {config.minor} | TX Power: {config.tx_power}dBm | "
            f"Local Name: {config.local_name}"
        )
        if config.verbose and self._peripheral is not None:
            line += f" | Peripheral State: {self._peripheral.power_state.value}"
        return line

    def report_status(self) -> None:
        logger.info(f"[STATUS] {self.status_line()}")
