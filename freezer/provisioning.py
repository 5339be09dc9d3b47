# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""This module contains the adapter that registers the freezer with the Device Provisioning
Service and returns the IoT Hub it was assigned to.
"""

import asyncio
import logging
from typing import Optional
from azure.iot.device import exceptions as device_exceptions
from azure.iot.device.aio import ProvisioningDeviceClient
from . import constant
from .exceptions import OperationCancelled, ProvisioningError
from .models import AssignedEndpoint, DeviceIdentity

logger = logging.getLogger(__name__)

# Errors the device library raises for failed or abandoned operations
_DEVICE_ERRORS = (
    device_exceptions.ClientError,
    device_exceptions.ServiceError,
    device_exceptions.OperationTimeout,
    device_exceptions.OperationCancelled,
)


class DpsProvisioner(object):
    """Registers a device using symmetric key attestation and a Plug and Play model payload"""

    def __init__(self, model_id: str = constant.MODEL_ID, client_class=ProvisioningDeviceClient):
        """
        :param str model_id: The model identifier sent in the registration payload.
        :param client_class: The provisioning client class providing `create_from_symmetric_key`.
        """
        self.model_id = model_id
        self._client_class = client_class

    async def register(
        self, identity: DeviceIdentity, cancellation: Optional[asyncio.Event] = None
    ) -> AssignedEndpoint:
        """
        Register the device and return the assigned endpoint.

        Cancellation is observed before the registration request is made. A registration that
        is already in flight is allowed to complete.

        :param identity: The DeviceIdentity to register.
        :param cancellation: Optional event which, when set, abandons the registration.

        :raises: :class:`freezer.exceptions.OperationCancelled` if cancellation was requested.
        :raises: :class:`freezer.exceptions.ProvisioningError` if registration failed or the
            device was not assigned to a hub.
        """
        if cancellation is not None and cancellation.is_set():
            raise OperationCancelled("Provisioning cancelled before registration")

        logger.info(
            "Provisioning device '{}' with {} (id scope {})".format(
                identity.device_id, identity.provisioning_host, identity.id_scope
            )
        )
        try:
            client = self._client_class.create_from_symmetric_key(
                provisioning_host=identity.provisioning_host,
                registration_id=identity.device_id,
                id_scope=identity.id_scope,
                symmetric_key=identity.symmetric_key,
            )
        except (ValueError, TypeError) as e:
            raise ProvisioningError("Could not create provisioning client: {}".format(e)) from e

        client.provisioning_payload = {"modelId": self.model_id}
        try:
            result = await client.register()
        except _DEVICE_ERRORS as e:
            raise ProvisioningError("Registration with Provisioning Service failed") from e

        if result is None or result.status != constant.ASSIGNED_STATUS:
            status = result.status if result is not None else None
            raise ProvisioningError(
                "Could not provision device, registration status was '{}'".format(status)
            )

        endpoint = AssignedEndpoint(
            assigned_hub=result.registration_state.assigned_hub,
            device_id=result.registration_state.device_id,
        )
        logger.info(
            "Device '{}' was assigned to {}".format(endpoint.device_id, endpoint.assigned_hub)
        )
        return endpoint
