"""Beacon broadcast configuration.

A BeaconConfiguration describes what to broadcast. Construction rejects
values that cannot be represented on the wire; validate() reports values
that can be encoded but are out of policy (hard issues) or merely unusual
(warnings).
"""

from dataclasses import dataclass, field
from enum import Enum

from .errors import ConfigurationError
from .ibeacon_packet import BeaconRecord, normalize_uuid

# Default configuration values
DEFAULT_UUID = "92821D61-9FEE-4003-87F1-31799E12017A"
DEFAULT_MAJOR = 100
DEFAULT_MINOR = 1
DEFAULT_TX_POWER = -59  # Calibrated RSSI at 1 meter

# Calibrated TX power policy range in dBm
MIN_TX_POWER = -127
MAX_TX_POWER = 20
TYPICAL_MAX_TX_POWER = 4

LOCAL_NAME_PREFIX = "BLEBeacon"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of BeaconConfiguration.validate().

    Attributes:
        issues: Hard failures; the configuration must not be broadcast
        warnings: Non-fatal observations; never affect validity
    """

    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues


@dataclass(frozen=True)
class BeaconConfiguration:
    """Configuration for an iBeacon broadcast.

    Attributes:
        uuid: Proximity UUID (e.g., "92821D61-9FEE-4003-87F1-31799E12017A")
        major: Group identifier (0-65535)
        minor: Device identifier within group (0-65535)
        tx_power: Calibrated TX power at 1 meter in dBm
        verbose: Whether strategies print extra broadcast details
    """

    uuid: str = DEFAULT_UUID
    major: int = DEFAULT_MAJOR
    minor: int = DEFAULT_MINOR
    tx_power: int = DEFAULT_TX_POWER
    verbose: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "uuid", normalize_uuid(self.uuid))

        if not 0 <= self.major <= 0xFFFF:
            raise ConfigurationError(f"Major must be 0-65535, got {self.major}")
        if not 0 <= self.minor <= 0xFFFF:
            raise ConfigurationError(f"Minor must be 0-65535, got {self.minor}")
        if not -128 <= self.tx_power <= 127:
            raise ConfigurationError(f"TX power must be -128 to 127, got {self.tx_power}")

    def validate(self) -> ValidationResult:
        """Check the configuration against broadcast policy."""
        issues: list[str] = []
        warnings: list[str] = []

        if self.major == 0:
            warnings.append("Major value of 0 may not be optimal for testing")
        if self.minor == 0:
            warnings.append("Minor value of 0 may not be optimal for testing")

        if not MIN_TX_POWER <= self.tx_power <= MAX_TX_POWER:
            issues.append(f"TX Power must be between {MIN_TX_POWER} and {MAX_TX_POWER} dBm")
        elif self.tx_power > TYPICAL_MAX_TX_POWER:
            warnings.append(
                f"TX Power above {TYPICAL_MAX_TX_POWER} dBm may not be supported on all devices"
            )

        if self.uuid.startswith("00000000"):
            warnings.append("UUID starts with zeros - consider using a more unique identifier")

        return ValidationResult(issues=issues, warnings=warnings)

    @property
    def local_name(self) -> str:
        """Display name advertised alongside the beacon."""
        return f"{LOCAL_NAME_PREFIX}-{self.major:04d}-{self.minor:04d}"

    def to_record(self) -> BeaconRecord:
        """Build the wire record for this configuration.

        Raises:
            ConfigurationError: If validate() reports any issue
        """
        result = self.validate()
        if not result.is_valid:
            raise ConfigurationError("; ".join(result.issues))
        return BeaconRecord(
            uuid=self.uuid, major=self.major, minor=self.minor, tx_power=self.tx_power
        )

    def describe(self) -> str:
        """Format the configuration for human-readable logging."""
        return (
            "Beacon Configuration:\n"
            f"  UUID: {self.uuid}\n"
            f"  Major: {self.major}\n"
            f"  Minor: {self.minor}\n"
            f"  TX Power: {self.tx_power} dBm\n"
            f"  Local Name: {self.local_name}"
        )


class BeaconProfile(Enum):
    """Preset configurations for common deployment stages."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"

    @property
    def configuration(self) -> BeaconConfiguration:
        major, verbose = {
            BeaconProfile.DEVELOPMENT: (1, True),
            BeaconProfile.TESTING: (100, False),
            BeaconProfile.PRODUCTION: (1000, False),
        }[self]
        return BeaconConfiguration(
            uuid=DEFAULT_UUID,
            major=major,
            minor=1,
            tx_power=DEFAULT_TX_POWER,
            verbose=verbose,
        )


def get_default_config() -> BeaconConfiguration:
    """Get the default beacon configuration."""
    return BeaconConfiguration()
