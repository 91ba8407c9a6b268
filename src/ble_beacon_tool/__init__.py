"""BLE iBeacon broadcasting and scanning.

This package encodes and decodes iBeacon manufacturer-data frames, broadcasts
them through the best strategy the system allows (BlueZ advertisement, GATT
service fallback, or simulation) and scans for nearby beacons.

Example:
    from ble_beacon_tool import BeaconConfiguration, StrategyKind, create_strategy

    config = BeaconConfiguration(
        uuid="92821D61-9FEE-4003-87F1-31799E12017A",
        major=100,
        minor=1,
        tx_power=-59,
    )

    strategy = create_strategy(StrategyKind.PRIMARY, adapter="hci0")
    await strategy.start(config)
"""

__version__ = "0.1.0"

from .capabilities import (
    CapabilitySnapshot,
    PermissionStatus,
    StrategyKind,
    SystemCapabilityDetector,
    recommend,
)
from .configuration import (
    DEFAULT_MAJOR,
    DEFAULT_MINOR,
    DEFAULT_TX_POWER,
    DEFAULT_UUID,
    BeaconConfiguration,
    BeaconProfile,
    ValidationResult,
    get_default_config,
)
from .emission import EmissionState, EmissionStrategy
from .errors import (
    BeaconError,
    CapabilityError,
    ConfigurationError,
    DecodeError,
    InvalidUUIDError,
    NotIBeaconError,
    TransmissionError,
    TruncatedFrameError,
)
from .ibeacon_packet import (
    APPLE_COMPANY_ID,
    BeaconRecord,
    decode,
    decode_hex,
    encode,
)
from .proximity import Proximity, estimate_proximity
from .scanner import BeaconScanner, BeaconSighting
from .strategies import (
    GattServiceStrategy,
    IBeaconStrategy,
    SimulatedBeaconStrategy,
    create_strategy,
)

__all__ = [
    # Version
    "__version__",
    # Codec
    "BeaconRecord",
    "encode",
    "decode",
    "decode_hex",
    "APPLE_COMPANY_ID",
    # Configuration
    "BeaconConfiguration",
    "BeaconProfile",
    "ValidationResult",
    "get_default_config",
    "DEFAULT_UUID",
    "DEFAULT_MAJOR",
    "DEFAULT_MINOR",
    "DEFAULT_TX_POWER",
    # Capabilities
    "CapabilitySnapshot",
    "PermissionStatus",
    "StrategyKind",
    "SystemCapabilityDetector",
    "recommend",
    # Emission
    "EmissionState",
    "EmissionStrategy",
    "IBeaconStrategy",
    "GattServiceStrategy",
    "SimulatedBeaconStrategy",
    "create_strategy",
    # Scanning
    "BeaconScanner",
    "BeaconSighting",
    "Proximity",
    "estimate_proximity",
    # Errors
    "BeaconError",
    "ConfigurationError",
    "InvalidUUIDError",
    "CapabilityError",
    "TransmissionError",
    "DecodeError",
    "NotIBeaconError",
    "TruncatedFrameError",
]
