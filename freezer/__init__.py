""" Freezer

A simulated freezer that provisions itself with the Azure IoT Device Provisioning Service and
periodically publishes temperature telemetry to the assigned IoT Hub.
"""

from .constant import VERSION as __version__  # noqa: F401
from .models import (  # noqa: F401
    AssignedEndpoint,
    DeviceIdentity,
    Result,
    SessionState,
    TelemetryReading,
    TelemetrySettings,
)
from .exceptions import (  # noqa: F401
    FreezerError,
    ConfigurationError,
    ProvisioningError,
    TransportError,
    TelemetryError,
    SessionStateError,
    OperationCancelled,
)
from .session import DeviceSession  # noqa: F401
