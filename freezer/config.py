# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
"""This module gathers the freezer configuration from command line arguments and the
environment, and validates it.
"""

import argparse
import logging
import math
import os
from typing import Mapping, Optional
from . import constant
from .exceptions import ConfigurationError
from .models import DeviceIdentity, Result, TelemetrySettings

logger = logging.getLogger(__name__)

_TRUTHY = ("1", "true", "yes", "on")
_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class FreezerConfig(object):
    """
    Complete configuration of a freezer process.

    :ivar identity: The DeviceIdentity used for provisioning and connection
    :ivar telemetry: The initial TelemetrySettings
    :ivar log_level: Name of the logging level
    """

    def __init__(
        self,
        identity: DeviceIdentity,
        telemetry: TelemetrySettings,
        log_level: str = constant.DEFAULT_LOG_LEVEL,
    ):
        self.identity = identity
        self.telemetry = telemetry
        self.log_level = log_level


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser which exits with status 1 on a parse failure"""

    def error(self, message):
        self.print_usage()
        self.exit(1, "{}: error: {}\n".format(self.prog, message))


def build_arg_parser(prog: Optional[str] = None, description: Optional[str] = None):
    """Build the argument parser shared by the headless and windowed freezer"""
    parser = _ArgumentParser(
        prog=prog,
        description=description
        or "Simulated freezer that provisions with DPS and sends temperature telemetry.",
    )
    parser.add_argument(
        "-d",
        "--device-id",
        help="The registration id of the device. Defaults to ${}.".format(constant.ENV_DEVICE_ID),
    )
    parser.add_argument(
        "-k",
        "--device-symmetric-key",
        help="The symmetric key of the device. Defaults to ${}.".format(
            constant.ENV_DEVICE_SYMMETRIC_KEY
        ),
    )
    parser.add_argument(
        "-e",
        "--dps-endpoint",
        help="The Device Provisioning Service endpoint. Defaults to ${} or {}.".format(
            constant.ENV_DPS_ENDPOINT, constant.PROVISIONING_GLOBAL_ENDPOINT
        ),
    )
    parser.add_argument(
        "-s",
        "--dps-id-scope",
        help="The ID scope of the Device Provisioning Service. Defaults to ${}.".format(
            constant.ENV_DPS_ID_SCOPE
        ),
    )
    parser.add_argument(
        "--interval",
        help="Seconds between telemetry messages (default {}).".format(
            constant.DEFAULT_TELEMETRY_INTERVAL
        ),
    )
    parser.add_argument(
        "--temperature-low",
        help="Lowest simulated temperature (default {}).".format(constant.DEFAULT_TEMPERATURE_LOW),
    )
    parser.add_argument(
        "--temperature-high",
        help="Highest simulated temperature (default {}).".format(
            constant.DEFAULT_TEMPERATURE_HIGH
        ),
    )
    parser.add_argument(
        "--fixed-temperature",
        help="Always send this temperature instead of a random value in the range.",
    )
    parser.add_argument(
        "--overheat",
        action="store_const",
        const=True,
        default=None,
        help="Add {} degrees to every reading to simulate an overheating freezer.".format(
            constant.OVERHEAT_OFFSET
        ),
    )
    parser.add_argument(
        "--log-level",
        help="Logging level (default {}).".format(constant.DEFAULT_LOG_LEVEL),
    )
    return parser


def _pick(arg_value, environ: Mapping[str, str], env_name: str, default=None):
    """Return the first non-blank value of the argument, the environment variable, the default"""
    for candidate in (arg_value, environ.get(env_name)):
        if candidate is None:
            continue
        candidate = str(candidate).strip()
        if candidate:
            return candidate
    return default


def _parse_float(raw, name: str, problems: list, default=None):
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        problems.append("{} must be a number, got {!r}".format(name, raw))
        return default
    if not math.isfinite(value):
        problems.append("{} must be a finite number, got {!r}".format(name, raw))
        return default
    return value


def load_config(
    args: Optional[argparse.Namespace] = None, environ: Optional[Mapping[str, str]] = None
) -> Result:
    """
    Load and validate the freezer configuration.

    Command line values take priority over environment variables, which take priority over
    built-in defaults.

    :param args: Parsed arguments from the parser returned by `build_arg_parser`.
    :param environ: Environment mapping. Defaults to `os.environ`.

    :returns: A Result holding a FreezerConfig, or a ConfigurationError listing every problem.
    """
    if args is None:
        args = argparse.Namespace()
    if environ is None:
        environ = os.environ

    def arg(name):
        return getattr(args, name, None)

    problems = []

    device_id = _pick(arg("device_id"), environ, constant.ENV_DEVICE_ID)
    symmetric_key = _pick(arg("device_symmetric_key"), environ, constant.ENV_DEVICE_SYMMETRIC_KEY)
    dps_endpoint = _pick(
        arg("dps_endpoint"),
        environ,
        constant.ENV_DPS_ENDPOINT,
        default=constant.PROVISIONING_GLOBAL_ENDPOINT,
    )
    id_scope = _pick(arg("dps_id_scope"), environ, constant.ENV_DPS_ID_SCOPE)

    if not device_id:
        problems.append("device id is required")
    if not symmetric_key:
        problems.append("device symmetric key is required")
    if not id_scope:
        problems.append("DPS id scope is required")

    interval = _parse_float(
        _pick(arg("interval"), environ, constant.ENV_TELEMETRY_INTERVAL),
        "interval",
        problems,
        default=constant.DEFAULT_TELEMETRY_INTERVAL,
    )
    if interval is not None and interval <= 0:
        problems.append("interval must be greater than zero, got {}".format(interval))

    temperature_low = _parse_float(
        _pick(arg("temperature_low"), environ, constant.ENV_TEMPERATURE_LOW),
        "temperature low",
        problems,
        default=constant.DEFAULT_TEMPERATURE_LOW,
    )
    temperature_high = _parse_float(
        _pick(arg("temperature_high"), environ, constant.ENV_TEMPERATURE_HIGH),
        "temperature high",
        problems,
        default=constant.DEFAULT_TEMPERATURE_HIGH,
    )
    if temperature_low > temperature_high:
        problems.append(
            "temperature low ({}) must not exceed temperature high ({})".format(
                temperature_low, temperature_high
            )
        )

    fixed_temperature = _parse_float(
        _pick(arg("fixed_temperature"), environ, constant.ENV_FIXED_TEMPERATURE),
        "fixed temperature",
        problems,
    )

    overheat = arg("overheat")
    if overheat is None:
        overheat = environ.get(constant.ENV_OVERHEAT, "").strip().lower() in _TRUTHY

    log_level = _pick(
        arg("log_level"), environ, constant.ENV_LOG_LEVEL, default=constant.DEFAULT_LOG_LEVEL
    ).upper()
    if log_level not in _LOG_LEVELS:
        problems.append(
            "log level must be one of {}, got {!r}".format(", ".join(_LOG_LEVELS), log_level)
        )

    if problems:
        logger.debug("Configuration rejected: {}".format(problems))
        return Result(error=ConfigurationError(problems))

    identity = DeviceIdentity(
        device_id=device_id,
        symmetric_key=symmetric_key,
        id_scope=id_scope,
        provisioning_host=dps_endpoint,
    )
    telemetry = TelemetrySettings(
        interval=interval,
        temperature_low=temperature_low,
        temperature_high=temperature_high,
        fixed_temperature=fixed_temperature,
        overheat=bool(overheat),
    )
    return Result(value=FreezerConfig(identity=identity, telemetry=telemetry, log_level=log_level))
