# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
import asyncio
import logging
from typing import Optional
from transitions import Machine, MachineError
from .exceptions import (
    ConfigurationError,
    FreezerError,
    OperationCancelled,
    ProvisioningError,
    SessionStateError,
    TelemetryError,
)
from .models import DeviceIdentity, Result, SessionState, TelemetrySettings
from .provisioning import DpsProvisioner
from .scheduler import PeriodicScheduler
from .telemetry import TelemetryPublisher, TemperatureSampler
from .transport import HubTransport

logger = logging.getLogger(__name__)

"""
A note on the session state machine:

The session is a state machine with two externally visible states, Disconnected and
Connected. Connecting and disconnecting take time (network round trips), so the machine also
has two transient states, "connecting" and "disconnecting", which both project to
SessionState.DISCONNECTED. While in a transient state the session is "busy" and neither
connect nor disconnect is accepted.

Conventions follow the SDK transport and polling machines:

1. Operations callers can initiate (connect, disconnect, ...) have no leading underscore and
    return a Result rather than raising for expected failures.

2. State machine triggers are prefixed with _trig_ and are attached to this object at runtime by
    the Machine. A trigger fired from a state that does not accept it raises MachineError, which
    the operation converts into a SessionStateError.

3. The provisioning, transport and telemetry collaborators are only touched between triggers, so
    a failure in any of them can always be followed by a trigger back to "disconnected".
"""


class DeviceSession(object):
    """The lifecycle of one simulated device: provision, connect, publish telemetry, disconnect"""

    def __init__(
        self,
        identity: DeviceIdentity,
        telemetry: Optional[TelemetrySettings] = None,
        provisioner=None,
        transport=None,
        publisher=None,
        sampler=None,
        scheduler_factory=PeriodicScheduler,
    ):
        """
        :param identity: The DeviceIdentity to provision and connect with.
        :param telemetry: Initial TelemetrySettings. Defaults are used if not provided.
        :param provisioner: Object with a `register(identity, cancellation)` coroutine.
        :param transport: Object with an `open(endpoint, identity)` coroutine.
        :param publisher: Object with a `publish(connection, reading)` coroutine.
        :param sampler: Object with a `sample(settings)` method.
        :param scheduler_factory: Callable taking `(interval, action)` returning a scheduler.

        :raises: :class:`freezer.exceptions.ConfigurationError` if the telemetry settings are
            invalid.
        """
        self.identity = identity
        self._telemetry = telemetry.copy() if telemetry is not None else TelemetrySettings()
        problems = self._telemetry.validate()
        if problems:
            raise ConfigurationError(problems)
        self._provisioner = provisioner if provisioner is not None else DpsProvisioner()
        self._transport = transport if transport is not None else HubTransport()
        self._publisher = publisher if publisher is not None else TelemetryPublisher()
        self._sampler = sampler if sampler is not None else TemperatureSampler()
        self._scheduler_factory = scheduler_factory

        self._endpoint = None
        self._connection = None
        self._scheduler = None
        self._cancellation = None

        self.sent_count = 0
        self.failed_count = 0

        # Handlers for front ends. Both are called from the event loop the session runs on.
        self.on_state_change = None
        self.on_telemetry = None

        states = ["disconnected", "connecting", "connected", "disconnecting"]

        transitions = [
            {"trigger": "_trig_connect", "source": "disconnected", "dest": "connecting"},
            {"trigger": "_trig_connect_complete", "source": "connecting", "dest": "connected"},
            {"trigger": "_trig_connect_failed", "source": "connecting", "dest": "disconnected"},
            {"trigger": "_trig_disconnect", "source": "connected", "dest": "disconnecting"},
            {
                "trigger": "_trig_disconnect_complete",
                "source": "disconnecting",
                "dest": "disconnected",
            },
        ]

        def _on_transition_complete(event_data):
            if not event_data.transition:
                dest = "[no transition]"
            else:
                dest = event_data.transition.dest
            logger.debug(
                "Transition complete.  Trigger={}, Dest={}, error={}".format(
                    event_data.event.name, dest, str(event_data.error)
                )
            )

        self._state_machine = Machine(
            model=self,
            states=states,
            transitions=transitions,
            initial="disconnected",
            model_attribute="machine_state",
            auto_transitions=False,
            send_event=True,
            after_state_change="_notify_state_change",
            finalize_event=_on_transition_complete,
        )

    @property
    def state(self) -> SessionState:
        if self.machine_state == "connected":
            return SessionState.CONNECTED
        return SessionState.DISCONNECTED

    @property
    def connected(self) -> bool:
        return self.state is SessionState.CONNECTED

    @property
    def busy(self) -> bool:
        """True while a connect or disconnect is in progress"""
        return self.machine_state in ("connecting", "disconnecting")

    @property
    def endpoint(self):
        """The AssignedEndpoint of the current connection, or None when not connected"""
        return self._endpoint

    @property
    def telemetry(self) -> TelemetrySettings:
        """A copy of the current telemetry settings"""
        return self._telemetry.copy()

    def update_telemetry_settings(self, settings: TelemetrySettings) -> Result:
        """Replace the telemetry settings. Only allowed while disconnected."""
        if self.machine_state != "disconnected":
            return Result(
                error=SessionStateError(
                    "Telemetry settings can only be changed while disconnected"
                )
            )
        problems = settings.validate()
        if problems:
            return Result(error=ConfigurationError(problems))
        self._telemetry = settings.copy()
        return Result(value=self.telemetry)

    def set_overheat(self, overheat: bool) -> None:
        """Toggle the overheat simulation. Takes effect from the next telemetry message."""
        self._telemetry.overheat = bool(overheat)
        logger.info("Overheat simulation {}".format("enabled" if overheat else "disabled"))

    async def connect(self, cancellation: Optional[asyncio.Event] = None) -> Result:
        """
        Provision the device, connect to the assigned hub and start sending telemetry.

        Any failure leaves the session disconnected.

        :param cancellation: Optional event which abandons the connect between steps, and
            suppresses telemetry for as long as it is set.

        :returns: A Result holding the AssignedEndpoint, or the error that prevented connecting.
        """
        try:
            self._trig_connect()
        except MachineError:
            return Result(
                error=SessionStateError("Cannot connect while {}".format(self.machine_state))
            )

        connection = None
        try:
            endpoint = await self._provisioner.register(self.identity, cancellation)
            if endpoint is None:
                raise ProvisioningError("Provisioning did not return an assigned endpoint")
            if cancellation is not None and cancellation.is_set():
                raise OperationCancelled("Connect cancelled after provisioning")
            connection = await self._transport.open(endpoint, self.identity)
            scheduler = self._scheduler_factory(self._telemetry.interval, self._tick)
            scheduler.start()
        except FreezerError as e:
            logger.error("Connect failed: {}".format(e))
            await self._abandon_connect(connection)
            return Result(error=e)
        except BaseException:
            await self._abandon_connect(connection)
            raise

        self._endpoint = endpoint
        self._connection = connection
        self._cancellation = cancellation
        self._scheduler = scheduler
        self._trig_connect_complete()
        logger.info(
            "Connected to {}, sending telemetry every {}s".format(
                endpoint.assigned_hub, self._telemetry.interval
            )
        )
        return Result(value=endpoint)

    async def disconnect(self) -> Result:
        """
        Stop sending telemetry and close the connection.

        A telemetry message that is already being sent is allowed to finish before the
        connection is closed. No new message is started once the disconnect begins. The session
        ends up disconnected even if closing the connection fails.

        :returns: An empty Result, or one holding the error raised while closing.
        """
        try:
            self._trig_disconnect()
        except MachineError:
            return Result(
                error=SessionStateError("Cannot disconnect while {}".format(self.machine_state))
            )

        error = None
        try:
            # The scheduler must be stopped before the connection is torn down
            if self._scheduler is not None:
                await self._scheduler.stop()
            if self._connection is not None:
                await self._connection.close()
        except FreezerError as e:
            logger.error("Disconnect failed: {}".format(e))
            error = e
        finally:
            self._scheduler = None
            self._connection = None
            self._endpoint = None
            self._cancellation = None
            self._trig_disconnect_complete()

        logger.info("Disconnected")
        return Result(error=error)

    async def _abandon_connect(self, connection):
        try:
            if connection is not None:
                await connection.close()
        except FreezerError as e:
            logger.warning("Could not close the connection of a failed connect: {}".format(e))
        finally:
            self._trig_connect_failed()

    async def _tick(self):
        if not self.connected or self._connection is None:
            return
        if self._cancellation is not None and self._cancellation.is_set():
            logger.debug("Cancellation requested, telemetry suppressed")
            return

        reading = self._sampler.sample(self._telemetry)
        try:
            payload = await self._publisher.publish(self._connection, reading)
        except TelemetryError as e:
            self.failed_count += 1
            logger.warning("Telemetry not sent, continuing with next interval: {}".format(e))
            self._notify_telemetry(reading, None, e)
            return
        self.sent_count += 1
        self._notify_telemetry(reading, payload, None)

    def _notify_state_change(self, event_data):
        if self.on_state_change is not None:
            self.on_state_change(self)

    def _notify_telemetry(self, reading, payload, error):
        if self.on_telemetry is not None:
            self.on_telemetry(reading, payload, error)
