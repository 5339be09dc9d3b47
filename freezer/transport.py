# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""This module contains the adapter around the IoT Hub device client used to deliver telemetry
to the hub the freezer was assigned to.
"""

import logging
from azure.iot.device import Message
from azure.iot.device import exceptions as device_exceptions
from azure.iot.device.aio import IoTHubDeviceClient
from . import constant
from .exceptions import TelemetryError, TransportError
from .models import AssignedEndpoint, DeviceIdentity

logger = logging.getLogger(__name__)

# Errors the device library raises for failed or abandoned operations
_DEVICE_ERRORS = (
    device_exceptions.ClientError,
    device_exceptions.ServiceError,
    device_exceptions.OperationTimeout,
    device_exceptions.OperationCancelled,
)


class HubTransport(object):
    """Opens MQTT connections to an assigned IoT Hub"""

    def __init__(self, model_id: str = constant.MODEL_ID, client_class=IoTHubDeviceClient):
        self.model_id = model_id
        self._client_class = client_class

    async def open(self, endpoint: AssignedEndpoint, identity: DeviceIdentity) -> "HubConnection":
        """
        Create a device client for the assigned hub and connect it.

        :param endpoint: The AssignedEndpoint returned by provisioning.
        :param identity: The DeviceIdentity holding the symmetric key.

        :raises: :class:`freezer.exceptions.TransportError` if the client could not be created
            or connected.
        """
        try:
            client = self._client_class.create_from_symmetric_key(
                symmetric_key=identity.symmetric_key,
                hostname=endpoint.assigned_hub,
                device_id=endpoint.device_id,
                model_id=self.model_id,
            )
        except (ValueError, TypeError) as e:
            raise TransportError("Could not create device client: {}".format(e)) from e

        connection = HubConnection(client)
        client.on_connection_state_change = connection._on_connection_state_change

        logger.info("Connecting to {} as '{}'".format(endpoint.assigned_hub, endpoint.device_id))
        try:
            await client.connect()
        except _DEVICE_ERRORS as e:
            await connection._shutdown_quietly()
            raise TransportError("Could not connect to {}".format(endpoint.assigned_hub)) from e
        return connection


class HubConnection(object):
    """A live connection to the assigned IoT Hub"""

    def __init__(self, client):
        self._client = client
        self._closed = False

    def _on_connection_state_change(self):
        logger.debug(
            "Connection status change registered - connected={}".format(self._client.connected)
        )

    async def send(
        self,
        payload: bytes,
        content_type: str = constant.TELEMETRY_CONTENT_TYPE,
        content_encoding: str = constant.TELEMETRY_CONTENT_ENCODING,
    ) -> None:
        """
        Send a device-to-cloud message.

        :raises: :class:`freezer.exceptions.TelemetryError` if the message could not be sent.
        """
        if self._closed:
            raise TelemetryError("Cannot send telemetry on a closed connection")
        message = Message(payload, content_encoding=content_encoding, content_type=content_type)
        try:
            await self._client.send_message(message)
        except _DEVICE_ERRORS as e:
            raise TelemetryError("Sending telemetry failed") from e

    async def close(self) -> None:
        """
        Shut down the device client. Closing an already closed connection does nothing.

        :raises: :class:`freezer.exceptions.TransportError` if the shutdown failed. The
            connection is considered closed regardless.
        """
        if self._closed:
            return
        self._closed = True
        logger.info("Closing connection to IoT Hub")
        try:
            await self._client.shutdown()
        except _DEVICE_ERRORS as e:
            raise TransportError("Shutting down the device client failed") from e

    async def _shutdown_quietly(self) -> None:
        self._closed = True
        try:
            await self._client.shutdown()
        except _DEVICE_ERRORS:
            logger.debug("Ignoring failure shutting down unconnected client", exc_info=True)
