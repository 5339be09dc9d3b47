# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
import pytest
from freezer.models import AssignedEndpoint, DeviceIdentity, TelemetrySettings

FAKE_DEVICE_ID = "fake_device_id"
FAKE_SYMMETRIC_KEY = "Zm9vYmFy"
FAKE_ID_SCOPE = "fake_idscope"
FAKE_PROVISIONING_HOST = "fake.provisioning.host"
FAKE_ASSIGNED_HUB = "fake.hub.hostname"
FAKE_ASSIGNED_DEVICE_ID = "fake_assigned_device_id"

"""
NOTE: Tests that need an arbitrary, unexpected exception should use the `arbitrary_exception`
fixture rather than raising Exception directly. Because the exception class is defined nowhere
else it can only be handled by broad, all-encompassing handling, so a test cannot pass because
some other exception happened to be raised.
"""


@pytest.fixture
def arbitrary_exception():
    class ArbitraryException(Exception):
        pass

    return ArbitraryException("arbitrary description")


@pytest.fixture
def identity():
    return DeviceIdentity(
        device_id=FAKE_DEVICE_ID,
        symmetric_key=FAKE_SYMMETRIC_KEY,
        id_scope=FAKE_ID_SCOPE,
        provisioning_host=FAKE_PROVISIONING_HOST,
    )


@pytest.fixture
def endpoint():
    return AssignedEndpoint(assigned_hub=FAKE_ASSIGNED_HUB, device_id=FAKE_ASSIGNED_DEVICE_ID)


@pytest.fixture
def telemetry_settings():
    return TelemetrySettings(interval=5, temperature_low=10, temperature_high=10)
