# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""Define freezer user-facing exceptions to be shared across package"""
from . import constant


class FreezerError(Exception):
    """Base class for all failures reported by the freezer"""

    pass


class ConfigurationError(FreezerError):
    """Represents one or more invalid or missing configuration values"""

    def __init__(self, problems):
        self.problems = list(problems)
        super().__init__(
            "Required parameters are not set or invalid ({}). {}".format(
                "; ".join(self.problems), constant.HELP_HINT
            )
        )


class ProvisioningError(FreezerError):
    """Represents a failure to register the device with the Provisioning Service"""

    pass


class TransportError(FreezerError):
    """Represents a failure opening or closing the IoT Hub connection"""

    pass


class TelemetryError(FreezerError):
    """Represents a failure delivering a telemetry message"""

    pass


class SessionStateError(FreezerError):
    """Represents an operation that is not valid in the current session state"""

    pass


class OperationCancelled(FreezerError):
    """Represents an operation that was abandoned because cancellation was requested"""

    pass
