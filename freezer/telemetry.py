# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""This module samples simulated temperatures and publishes them as telemetry messages.
"""

import json
import logging
import random
from . import constant
from .models import TelemetryReading, TelemetrySettings

logger = logging.getLogger(__name__)


class TemperatureSampler(object):
    """Produces TelemetryReadings according to the current TelemetrySettings"""

    def __init__(self, rng=None):
        self._rng = rng if rng is not None else random.Random()

    def sample(self, settings: TelemetrySettings) -> TelemetryReading:
        if settings.fixed_temperature is not None:
            temperature = settings.fixed_temperature
        else:
            low = settings.temperature_low
            high = settings.temperature_high
            temperature = low + (high - low) * self._rng.random()
        offset = constant.OVERHEAT_OFFSET if settings.overheat else 0.0
        return TelemetryReading(temperature, offset=offset)


def _json_number(value: float):
    # Integral values are sent without a fraction, e.g. 10 rather than 10.0
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def serialize_reading(reading: TelemetryReading) -> str:
    return json.dumps({constant.TELEMETRY_NAME: _json_number(reading.value)})


class TelemetryPublisher(object):
    """Serializes readings to JSON and sends them over a hub connection"""

    def __init__(
        self,
        content_type: str = constant.TELEMETRY_CONTENT_TYPE,
        content_encoding: str = constant.TELEMETRY_CONTENT_ENCODING,
    ):
        self.content_type = content_type
        self.content_encoding = content_encoding

    async def publish(self, connection, reading: TelemetryReading) -> str:
        """
        Send a reading.

        :param connection: An open HubConnection.
        :param reading: The TelemetryReading to send.
        :returns: The JSON payload that was sent.
        """
        payload = serialize_reading(reading)
        await connection.send(
            payload.encode(self.content_encoding),
            content_type=self.content_type,
            content_encoding=self.content_encoding,
        )
        logger.info("Telemetry: Sent - {}".format(payload))
        return payload
