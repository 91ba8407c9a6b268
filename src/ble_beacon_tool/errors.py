"""Domain-specific errors for the BLE beacon tool."""


class BeaconError(Exception):
    """Base error for the BLE beacon tool."""

    recovery_suggestion = "Check system logs for more details"


class ConfigurationError(BeaconError, ValueError):
    """Raised when a beacon configuration is invalid."""

    recovery_suggestion = "Check your configuration parameters"


class InvalidUUIDError(ConfigurationError):
    """Raised when a UUID string is not in 8-4-4-4-12 hex form."""

    recovery_suggestion = "Use a valid UUID format (e.g., 92821D61-9FEE-4003-87F1-31799E12017A)"

    def __init__(self, uuid: str):
        super().__init__(f"Invalid UUID format: {uuid}")
        self.uuid = uuid


class CapabilityError(BeaconError):
    """Raised when the radio cannot be used in its current state."""


class BluetoothUnavailableError(CapabilityError):
    """Raised when no usable Bluetooth adapter is present."""

    recovery_suggestion = "Enable Bluetooth and make sure bluetoothd is running"

    def __init__(self, detail: str | None = None):
        message = "Bluetooth is not available"
        super().__init__(f"{message}: {detail}" if detail else message)


class BluetoothPoweredOffError(CapabilityError):
    """Raised when the adapter is powered off."""

    recovery_suggestion = "Power on the adapter: bluetoothctl power on"

    def __init__(self):
        super().__init__("Bluetooth is powered off")


class BluetoothUnauthorizedError(CapabilityError):
    """Raised when access to the adapter is denied."""

    recovery_suggestion = (
        "Grant Bluetooth access (add the user to the 'bluetooth' group or run with sudo)"
    )

    def __init__(self):
        super().__init__("Bluetooth access is unauthorized")


class BluetoothUnsupportedError(CapabilityError):
    """Raised when the adapter cannot perform LE advertising."""

    recovery_suggestion = "This device does not support Bluetooth LE advertising"

    def __init__(self):
        super().__init__("Bluetooth LE advertising is not supported")


class AdvertisingRestrictedError(CapabilityError):
    """Raised when the platform restricts BLE advertising."""

    recovery_suggestion = "Try running with elevated privileges or use --strategy fallback"

    def __init__(self):
        super().__init__("BLE advertising is restricted on this system")


class TransmissionError(BeaconError):
    """Raised when the platform reports a failure to start transmitting."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class AdvertisingFailedError(TransmissionError):
    """Raised when the advertisement could not be started."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.args = (f"Failed to start advertising: {detail}",)


class ServiceAddFailedError(TransmissionError):
    """Raised when the fallback GATT service could not be published."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.args = (f"Failed to add GATT service: {detail}",)


class EmissionInProgressError(BeaconError):
    """Raised when start() is called while another start is still pending."""

    recovery_suggestion = "Wait for the pending start to finish before starting again"


class DecodeError(BeaconError, ValueError):
    """Base error for manufacturer-data frames that cannot be decoded."""


class NotIBeaconError(DecodeError):
    """Raised when a frame does not carry the iBeacon preamble."""


class TruncatedFrameError(DecodeError):
    """Raised when an iBeacon frame is shorter than 25 bytes."""
