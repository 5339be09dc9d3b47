# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""This module projects the session state onto the controls a front end offers.

Controls are identified by name so the projection can be shared by any front end.
"""
from typing import Dict
from .models import SessionState

CONNECT = "connect"
DISCONNECT = "disconnect"
INTERVAL = "interval"
TEMPERATURE_LOW = "temperature_low"
TEMPERATURE_HIGH = "temperature_high"
OVERHEAT = "overheat"

# Usable only while disconnected
CONNECT_ONLY_CONTROLS = (CONNECT, INTERVAL, TEMPERATURE_LOW, TEMPERATURE_HIGH)
# Usable only while connected
DISCONNECT_ONLY_CONTROLS = (DISCONNECT,)
# Usable in every state
ALWAYS_ENABLED_CONTROLS = (OVERHEAT,)


def control_states(state: SessionState, busy: bool = False) -> Dict[str, bool]:
    """
    Return a mapping of control name to whether that control is enabled.

    :param state: The current SessionState.
    :param bool busy: True while a connect or disconnect is in progress, which disables both
        connect-only and disconnect-only controls.
    """
    connected = state is SessionState.CONNECTED
    enabled = {}
    for name in CONNECT_ONLY_CONTROLS:
        enabled[name] = not connected and not busy
    for name in DISCONNECT_ONLY_CONTROLS:
        enabled[name] = connected and not busy
    for name in ALWAYS_ENABLED_CONTROLS:
        enabled[name] = True
    return enabled
