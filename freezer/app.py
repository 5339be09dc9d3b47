# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""This module contains the root controller shared by the headless and windowed freezer.
"""

import logging
from .config import FreezerConfig
from .session import DeviceSession

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level="INFO"):
    """Configure root logging for a freezer process"""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # The device library is very chatty at INFO
    logging.getLogger("azure.iot.device").setLevel(max(logging.WARNING, logging.getLogger().level))


class FreezerApp(object):
    """Owns the single DeviceSession of a freezer process and hands it to a front end"""

    def __init__(self, config: FreezerConfig, session_factory=DeviceSession):
        self.config = config
        self.session = session_factory(config.identity, telemetry=config.telemetry.copy())

    @property
    def title(self) -> str:
        return "Freezer - {}".format(self.config.identity.device_id)
