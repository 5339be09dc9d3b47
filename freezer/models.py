# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""This module contains the values passed between the configuration, provisioning, transport
and telemetry layers of the freezer.
"""
import enum
import math
from typing import List, Optional
from . import constant


def _is_finite_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class SessionState(enum.Enum):
    """The externally visible state of a device session"""

    DISCONNECTED = "Disconnected"
    CONNECTED = "Connected"


class DeviceIdentity(object):
    """
    The credentials and provisioning scope of the simulated device.

    :ivar device_id: The registration id of the device
    :ivar symmetric_key: The symmetric key of the device enrollment
    :ivar provisioning_host: The Device Provisioning Service endpoint
    :ivar id_scope: The ID scope of the Device Provisioning Service instance
    """

    def __init__(
        self,
        device_id: str,
        symmetric_key: str,
        id_scope: str,
        provisioning_host: str = constant.PROVISIONING_GLOBAL_ENDPOINT,
    ):
        self._device_id = device_id
        self._symmetric_key = symmetric_key
        self._id_scope = id_scope
        self._provisioning_host = provisioning_host

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def symmetric_key(self) -> str:
        return self._symmetric_key

    @property
    def id_scope(self) -> str:
        return self._id_scope

    @property
    def provisioning_host(self) -> str:
        return self._provisioning_host

    def __eq__(self, other):
        if not isinstance(other, DeviceIdentity):
            return NotImplemented
        return (
            self.device_id == other.device_id
            and self.symmetric_key == other.symmetric_key
            and self.id_scope == other.id_scope
            and self.provisioning_host == other.provisioning_host
        )

    def __repr__(self):
        return "DeviceIdentity(device_id={!r}, id_scope={!r}, provisioning_host={!r})".format(
            self.device_id, self.id_scope, self.provisioning_host
        )


class AssignedEndpoint(object):
    """
    The IoT Hub a device was assigned to by the Provisioning Service.

    :ivar assigned_hub: Hostname of the assigned IoT Hub
    :ivar device_id: The device id confirmed by the Provisioning Service
    """

    def __init__(self, assigned_hub: str, device_id: str):
        self._assigned_hub = assigned_hub
        self._device_id = device_id

    @property
    def assigned_hub(self) -> str:
        return self._assigned_hub

    @property
    def device_id(self) -> str:
        return self._device_id

    def __eq__(self, other):
        if not isinstance(other, AssignedEndpoint):
            return NotImplemented
        return self.assigned_hub == other.assigned_hub and self.device_id == other.device_id

    def __repr__(self):
        return "AssignedEndpoint(assigned_hub={!r}, device_id={!r})".format(
            self.assigned_hub, self.device_id
        )


class TelemetrySettings(object):
    """
    How telemetry is sampled and how often it is sent.

    :ivar interval: Seconds between telemetry messages
    :ivar temperature_low: Lower bound of the sampled temperature
    :ivar temperature_high: Upper bound of the sampled temperature
    :ivar fixed_temperature: If set, this value is sent instead of a random sample
    :ivar overheat: If True, every reading is offset to simulate an overheating freezer
    """

    def __init__(
        self,
        interval: float = constant.DEFAULT_TELEMETRY_INTERVAL,
        temperature_low: float = constant.DEFAULT_TEMPERATURE_LOW,
        temperature_high: float = constant.DEFAULT_TEMPERATURE_HIGH,
        fixed_temperature: Optional[float] = None,
        overheat: bool = False,
    ):
        self.interval = interval
        self.temperature_low = temperature_low
        self.temperature_high = temperature_high
        self.fixed_temperature = fixed_temperature
        self.overheat = overheat

    def validate(self) -> List[str]:
        """Return a description of every invalid value, or an empty list if all are valid"""
        problems = []
        if not _is_finite_number(self.interval) or self.interval <= 0:
            problems.append("interval must be a finite number greater than zero")
        for name, value in (
            ("temperature low", self.temperature_low),
            ("temperature high", self.temperature_high),
        ):
            if not _is_finite_number(value):
                problems.append("{} must be a finite number".format(name))
        if not problems and self.temperature_low > self.temperature_high:
            problems.append("temperature low must not exceed temperature high")
        if self.fixed_temperature is not None and not _is_finite_number(self.fixed_temperature):
            problems.append("fixed temperature must be a finite number")
        return problems

    def copy(self) -> "TelemetrySettings":
        return TelemetrySettings(
            interval=self.interval,
            temperature_low=self.temperature_low,
            temperature_high=self.temperature_high,
            fixed_temperature=self.fixed_temperature,
            overheat=self.overheat,
        )

    def __repr__(self):
        return (
            "TelemetrySettings(interval={!r}, temperature_low={!r}, temperature_high={!r}, "
            "fixed_temperature={!r}, overheat={!r})".format(
                self.interval,
                self.temperature_low,
                self.temperature_high,
                self.fixed_temperature,
                self.overheat,
            )
        )


class TelemetryReading(object):
    """A single temperature measurement, optionally offset to simulate an overheat fault"""

    def __init__(self, temperature: float, offset: float = 0.0):
        self._temperature = temperature
        self._offset = offset

    @property
    def temperature(self) -> float:
        return self._temperature

    @property
    def offset(self) -> float:
        return self._offset

    @property
    def value(self) -> float:
        return self._temperature + self._offset

    def __repr__(self):
        return "TelemetryReading(temperature={!r}, offset={!r})".format(
            self.temperature, self.offset
        )


class Result(object):
    """
    The outcome of a configuration or session operation.

    Exactly one of `value` or `error` is meaningful: a Result with an error has failed.
    """

    def __init__(self, value=None, error: Optional[Exception] = None):
        self._value = value
        self._error = error

    @property
    def value(self):
        return self._value

    @property
    def error(self) -> Optional[Exception]:
        return self._error

    @property
    def succeeded(self) -> bool:
        return self._error is None

    def __bool__(self):
        return self.succeeded

    def __repr__(self):
        if self.succeeded:
            return "Result(value={!r})".format(self.value)
        return "Result(error={!r})".format(self.error)
