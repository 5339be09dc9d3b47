# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""This module defines constants for use across the freezer package
"""

VERSION = "1.0.0"

# Plug and Play model the simulated device announces during provisioning and connection
MODEL_ID = "dtmi:com:example:Thermostat;1"

PROVISIONING_GLOBAL_ENDPOINT = "global.azure-devices-provisioning.net"
ASSIGNED_STATUS = "assigned"

TELEMETRY_NAME = "temperature"
TELEMETRY_CONTENT_TYPE = "application/json"
TELEMETRY_CONTENT_ENCODING = "utf-8"

DEFAULT_TELEMETRY_INTERVAL = 5
DEFAULT_TEMPERATURE_LOW = -20.0
DEFAULT_TEMPERATURE_HIGH = -10.0
OVERHEAT_OFFSET = 100.0
DEFAULT_LOG_LEVEL = "INFO"

# Environment variables
ENV_DEVICE_ID = "PROVISIONING_REGISTRATION_ID"
ENV_DEVICE_SYMMETRIC_KEY = "PROVISIONING_SYMMETRIC_KEY"
ENV_DPS_ENDPOINT = "PROVISIONING_HOST"
ENV_DPS_ID_SCOPE = "PROVISIONING_IDSCOPE"
ENV_TELEMETRY_INTERVAL = "FREEZER_TELEMETRY_INTERVAL"
ENV_TEMPERATURE_LOW = "FREEZER_TEMPERATURE_LOW"
ENV_TEMPERATURE_HIGH = "FREEZER_TEMPERATURE_HIGH"
ENV_FIXED_TEMPERATURE = "FREEZER_FIXED_TEMPERATURE"
ENV_OVERHEAT = "FREEZER_OVERHEAT"
ENV_LOG_LEVEL = "FREEZER_LOG_LEVEL"

HELP_HINT = 'Please recheck required variables by using "--help"'
