# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------
import asyncio
import logging
import pytest
from azure.iot.device import exceptions as device_exceptions
from freezer.exceptions import (
    ConfigurationError,
    OperationCancelled,
    ProvisioningError,
    SessionStateError,
    TelemetryError,
    TransportError,
)
from freezer.models import Result, SessionState, TelemetrySettings
from freezer.scheduler import PeriodicScheduler
from freezer.session import DeviceSession
from freezer.telemetry import TelemetryPublisher, TemperatureSampler
from freezer.transport import HubConnection
from .custom_mock import HangingAsyncMock

logging.basicConfig(level=logging.DEBUG)
pytestmark = pytest.mark.asyncio


@pytest.fixture
def provisioner(mocker, endpoint):
    provisioner = mocker.MagicMock()
    provisioner.register = mocker.AsyncMock(return_value=endpoint)
    return provisioner


@pytest.fixture
def connection(mocker):
    connection = mocker.MagicMock()
    connection.send = mocker.AsyncMock()
    connection.close = mocker.AsyncMock()
    return connection


@pytest.fixture
def transport(mocker, connection):
    transport = mocker.MagicMock()
    transport.open = mocker.AsyncMock(return_value=connection)
    return transport


@pytest.fixture
def scheduler_sleep():
    # Scheduled ticks wait here until the test releases them
    return HangingAsyncMock()


@pytest.fixture
def session(identity, telemetry_settings, provisioner, transport, scheduler_sleep):
    def scheduler_factory(interval, action):
        return PeriodicScheduler(interval, action, sleep=scheduler_sleep)

    return DeviceSession(
        identity,
        telemetry=telemetry_settings,
        provisioner=provisioner,
        transport=transport,
        publisher=TelemetryPublisher(),
        sampler=TemperatureSampler(),
        scheduler_factory=scheduler_factory,
    )


@pytest.mark.describe("DeviceSession - Instantiation")
class TestInstantiation(object):
    @pytest.mark.it("Starts Disconnected and not busy")
    async def test_initial_state(self, session):
        assert session.state is SessionState.DISCONNECTED
        assert not session.connected
        assert not session.busy
        assert session.endpoint is None

    @pytest.mark.it("Uses default telemetry settings if none are provided")
    async def test_default_settings(self, identity):
        session = DeviceSession(identity)
        assert session.telemetry.interval == 5


@pytest.mark.describe("DeviceSession - .connect()")
class TestConnect(object):
    @pytest.mark.it("Provisions with the device identity and opens the assigned endpoint")
    async def test_provision_then_open(
        self, mocker, session, identity, endpoint, provisioner, transport
    ):
        cancellation = asyncio.Event()

        await session.connect(cancellation)

        assert provisioner.register.call_count == 1
        assert provisioner.register.call_args == mocker.call(identity, cancellation)
        assert transport.open.call_count == 1
        assert transport.open.call_args == mocker.call(endpoint, identity)

        await session.disconnect()

    @pytest.mark.it("Returns a successful Result holding the assigned endpoint")
    async def test_success(self, session, endpoint):
        result = await session.connect()

        assert isinstance(result, Result)
        assert result.succeeded
        assert result.value == endpoint
        assert session.state is SessionState.CONNECTED
        assert session.endpoint == endpoint
        assert not session.busy

        await session.disconnect()

    @pytest.mark.it("Returns a SessionStateError Result, without provisioning, while Connected")
    async def test_rejected_while_connected(self, session, provisioner):
        await session.connect()

        result = await session.connect()

        assert not result.succeeded
        assert isinstance(result.error, SessionStateError)
        assert provisioner.register.call_count == 1
        assert session.state is SessionState.CONNECTED

        await session.disconnect()

    @pytest.mark.it("Returns a SessionStateError Result while another connect is in progress")
    async def test_rejected_while_connecting(self, session, provisioner, endpoint):
        provisioner.register = HangingAsyncMock(return_value=endpoint)
        first = asyncio.ensure_future(session.connect())
        await provisioner.register.wait_for_hang()
        assert session.busy

        result = await session.connect()

        assert isinstance(result.error, SessionStateError)
        provisioner.register.release()
        assert (await first).value == endpoint
        await session.disconnect()

    @pytest.mark.it("Returns to Disconnected with a failed Result if provisioning fails")
    async def test_provisioning_failure(self, session, provisioner, transport):
        error = ProvisioningError("not assigned")
        provisioner.register.side_effect = error

        result = await session.connect()

        assert result.error is error
        assert session.state is SessionState.DISCONNECTED
        assert not session.busy
        assert transport.open.call_count == 0

    @pytest.mark.it("Returns to Disconnected with a failed Result if the transport fails to open")
    async def test_transport_failure(self, session, transport):
        error = TransportError("no route")
        transport.open.side_effect = error

        result = await session.connect()

        assert result.error is error
        assert session.state is SessionState.DISCONNECTED
        assert session.endpoint is None

    @pytest.mark.it("Can connect again after a failed connect")
    async def test_retry_after_failure(self, session, provisioner, endpoint):
        provisioner.register.side_effect = [ProvisioningError("not assigned"), endpoint]

        assert not await session.connect()
        assert await session.connect()
        assert session.connected

        await session.disconnect()

    @pytest.mark.it("Returns to Disconnected and re-raises if an unexpected exception is raised")
    async def test_unexpected_exception(self, session, provisioner, arbitrary_exception):
        provisioner.register.side_effect = arbitrary_exception

        with pytest.raises(type(arbitrary_exception)):
            await session.connect()

        assert session.state is SessionState.DISCONNECTED
        assert not session.busy

    @pytest.mark.it("Returns an OperationCancelled Result if cancelled while provisioning")
    async def test_cancelled(self, session, provisioner, transport):
        cancellation = asyncio.Event()

        async def register(identity, cancellation):
            cancellation.set()
            return provisioner.register.return_value

        provisioner.register.side_effect = register

        result = await session.connect(cancellation)

        assert isinstance(result.error, OperationCancelled)
        assert transport.open.call_count == 0
        assert session.state is SessionState.DISCONNECTED

    @pytest.mark.it("Notifies the state change handler on every transition")
    async def test_state_change_handler(self, mocker, session):
        states = []
        session.on_state_change = lambda s: states.append((s.machine_state, s.state))

        await session.connect()
        await session.disconnect()

        assert states == [
            ("connecting", SessionState.DISCONNECTED),
            ("connected", SessionState.CONNECTED),
            ("disconnecting", SessionState.DISCONNECTED),
            ("disconnected", SessionState.DISCONNECTED),
        ]


@pytest.mark.describe("DeviceSession - .disconnect()")
class TestDisconnect(object):
    @pytest.mark.it("Leaves the session Disconnected after exactly one provision, open and close")
    async def test_connect_then_disconnect(self, session, provisioner, transport, connection):
        await session.connect()

        result = await session.disconnect()

        assert result.succeeded
        assert session.state is SessionState.DISCONNECTED
        assert session.endpoint is None
        assert provisioner.register.call_count == 1
        assert transport.open.call_count == 1
        assert connection.close.call_count == 1

    @pytest.mark.it("Returns a SessionStateError Result while Disconnected")
    async def test_rejected_while_disconnected(self, session, connection):
        result = await session.disconnect()

        assert not result.succeeded
        assert isinstance(result.error, SessionStateError)
        assert connection.close.call_count == 0
        assert session.state is SessionState.DISCONNECTED

    @pytest.mark.it("Ends Disconnected with a failed Result if closing the connection fails")
    async def test_close_failure(self, session, connection):
        await session.connect()
        error = TransportError("shutdown failed")
        connection.close.side_effect = error

        result = await session.disconnect()

        assert result.error is error
        assert session.state is SessionState.DISCONNECTED
        assert not session.busy

    @pytest.mark.it("Does not publish once disconnected even if a tick was waiting to run")
    async def test_no_publish_after_pending_tick(self, session, connection, scheduler_sleep):
        await session.connect()
        await scheduler_sleep.wait_for_hang()

        await session.disconnect()
        scheduler_sleep.release()
        await asyncio.sleep(0)

        assert connection.send.call_count == 0
        assert session.sent_count == 0

    @pytest.mark.it("Lets an in-flight publish finish before closing the connection")
    async def test_in_flight_publish(self, session, connection, scheduler_sleep):
        connection.send = HangingAsyncMock()

        await session.connect()
        scheduler_sleep.release()
        await connection.send.wait_for_hang()

        disconnecting = asyncio.ensure_future(session.disconnect())
        await asyncio.sleep(0.01)

        assert session.busy
        assert connection.close.call_count == 0

        connection.send.release()
        result = await disconnecting

        assert result.succeeded
        assert connection.send.call_count == 1
        assert session.sent_count == 1
        assert connection.close.call_count == 1
        assert session.state is SessionState.DISCONNECTED

    @pytest.mark.it("Counts an in-flight publish that fails while disconnecting")
    async def test_in_flight_publish_fails(self, session, connection, scheduler_sleep):
        connection.send = HangingAsyncMock()

        await session.connect()
        scheduler_sleep.release()
        await connection.send.wait_for_hang()

        disconnecting = asyncio.ensure_future(session.disconnect())
        await asyncio.sleep(0.01)
        connection.send.release(TelemetryError("send failed"))
        result = await disconnecting

        assert result.succeeded
        assert session.failed_count == 1
        assert connection.close.call_count == 1

    @pytest.mark.it("Suppresses telemetry from ticks that run after disconnect began")
    async def test_tick_gate(self, session, connection):
        await session.connect()
        await session.disconnect()

        await session._tick()

        assert connection.send.call_count == 0


@pytest.mark.describe("DeviceSession - Telemetry")
class TestTelemetry(object):
    @pytest.mark.it("Publishes {'temperature': 10} when the range is 10 to 10")
    async def test_publishes_reading(self, mocker, session, connection):
        await session.connect()

        await session._tick()

        assert connection.send.call_count == 1
        assert connection.send.call_args == mocker.call(
            b'{"temperature": 10}', content_type="application/json", content_encoding="utf-8"
        )
        assert session.sent_count == 1

        await session.disconnect()

    @pytest.mark.it("Adds 100 to the temperature while overheat is enabled, even when connected")
    async def test_overheat(self, mocker, session, connection):
        await session.connect()
        session.set_overheat(True)

        await session._tick()

        assert connection.send.call_args[0][0] == b'{"temperature": 110}'

        await session.disconnect()

    @pytest.mark.it("Counts a failed send and keeps publishing on the next tick")
    async def test_send_failure(self, mocker, session, connection):
        connection.send.side_effect = [TelemetryError("send failed"), None]
        handler = mocker.MagicMock()
        session.on_telemetry = handler
        await session.connect()

        await session._tick()
        await session._tick()

        assert connection.send.call_count == 2
        assert session.failed_count == 1
        assert session.sent_count == 1
        assert session.connected
        assert isinstance(handler.call_args_list[0][0][2], TelemetryError)
        assert handler.call_args_list[1][0][1] == '{"temperature": 10}'

        await session.disconnect()

    @pytest.mark.it("Suppresses telemetry while the cancellation event is set")
    async def test_cancellation_suppresses(self, session, connection):
        cancellation = asyncio.Event()
        await session.connect(cancellation)
        cancellation.set()

        await session._tick()

        assert connection.send.call_count == 0

        await session.disconnect()


@pytest.mark.describe("DeviceSession - .update_telemetry_settings()")
class TestUpdateTelemetrySettings(object):
    @pytest.mark.it("Replaces the settings while Disconnected")
    async def test_update(self, session):
        result = session.update_telemetry_settings(
            TelemetrySettings(interval=2, temperature_low=-3, temperature_high=4)
        )

        assert result.succeeded
        assert session.telemetry.interval == 2
        assert session.telemetry.temperature_low == -3
        assert session.telemetry.temperature_high == 4

    @pytest.mark.it("Returns a SessionStateError Result while Connected")
    async def test_rejected_while_connected(self, session):
        await session.connect()

        result = session.update_telemetry_settings(TelemetrySettings(interval=1))

        assert isinstance(result.error, SessionStateError)
        assert session.telemetry.interval == 5

        await session.disconnect()

    @pytest.mark.it("Returns a ConfigurationError Result for invalid settings")
    @pytest.mark.parametrize(
        "settings",
        [
            pytest.param(TelemetrySettings(interval=0), id="zero interval"),
            pytest.param(
                TelemetrySettings(temperature_low=5, temperature_high=1), id="inverted range"
            ),
            pytest.param(TelemetrySettings(interval=float("nan")), id="nan interval"),
            pytest.param(TelemetrySettings(interval=float("inf")), id="infinite interval"),
            pytest.param(TelemetrySettings(temperature_low=float("-inf")), id="infinite low"),
            pytest.param(TelemetrySettings(fixed_temperature=float("nan")), id="nan fixed"),
        ],
    )
    async def test_invalid(self, session, settings):
        result = session.update_telemetry_settings(settings)

        assert isinstance(result.error, ConfigurationError)
        assert session.telemetry.interval == 5

    @pytest.mark.it("Does not share the settings object with the caller")
    async def test_copy(self, session):
        settings = TelemetrySettings(interval=2)
        session.update_telemetry_settings(settings)

        settings.interval = 30

        assert session.telemetry.interval == 2


@pytest.mark.describe("DeviceSession - Failures after the connection is opened")
class TestConnectCleanup(object):
    @pytest.fixture
    def scheduler_factory(self, mocker, scheduler_sleep):
        def make_scheduler(interval, action):
            return PeriodicScheduler(interval, action, sleep=scheduler_sleep)

        return mocker.MagicMock(side_effect=make_scheduler)

    @pytest.fixture
    def session(self, identity, telemetry_settings, provisioner, transport, scheduler_factory):
        return DeviceSession(
            identity,
            telemetry=telemetry_settings,
            provisioner=provisioner,
            transport=transport,
            scheduler_factory=scheduler_factory,
        )

    @pytest.mark.it("Closes the connection and returns to Disconnected if the scheduler fails")
    async def test_scheduler_failure(
        self, session, connection, scheduler_factory, arbitrary_exception
    ):
        scheduler_factory.side_effect = arbitrary_exception

        with pytest.raises(type(arbitrary_exception)):
            await session.connect()

        assert connection.close.call_count == 1
        assert session.state is SessionState.DISCONNECTED
        assert not session.busy
        assert session.endpoint is None

    @pytest.mark.it("Can connect again after the scheduler failed")
    async def test_connect_after_scheduler_failure(
        self, session, scheduler_factory, arbitrary_exception
    ):
        make_scheduler = scheduler_factory.side_effect

        def fail_once(interval, action):
            if scheduler_factory.call_count == 1:
                raise arbitrary_exception
            return make_scheduler(interval, action)

        scheduler_factory.side_effect = fail_once

        with pytest.raises(type(arbitrary_exception)):
            await session.connect()
        result = await session.connect()

        assert result.succeeded
        assert session.connected

        await session.disconnect()

    @pytest.mark.it("Returns to Disconnected even if closing the abandoned connection fails")
    async def test_cleanup_close_failure(
        self, session, connection, scheduler_factory, arbitrary_exception
    ):
        scheduler_factory.side_effect = arbitrary_exception
        connection.close.side_effect = TransportError("shutdown failed")

        with pytest.raises(type(arbitrary_exception)):
            await session.connect()

        assert session.state is SessionState.DISCONNECTED

    @pytest.mark.it("Returns a ProvisioningError Result if no endpoint is assigned")
    async def test_no_endpoint(self, session, provisioner, transport):
        provisioner.register.return_value = None

        result = await session.connect()

        assert isinstance(result.error, ProvisioningError)
        assert transport.open.call_count == 0
        assert session.state is SessionState.DISCONNECTED


@pytest.mark.describe("DeviceSession - Instantiation with invalid settings")
class TestInvalidInitialSettings(object):
    @pytest.mark.it("Raises a ConfigurationError for settings a scheduler cannot run with")
    @pytest.mark.parametrize(
        "settings",
        [
            pytest.param(TelemetrySettings(interval=0), id="zero interval"),
            pytest.param(TelemetrySettings(interval=float("nan")), id="nan interval"),
            pytest.param(
                TelemetrySettings(temperature_low=5, temperature_high=1), id="inverted range"
            ),
        ],
    )
    async def test_invalid(self, identity, settings):
        with pytest.raises(ConfigurationError):
            DeviceSession(identity, telemetry=settings)

    @pytest.mark.it("Keeps its own copy of the initial settings")
    async def test_copy(self, identity, telemetry_settings):
        session = DeviceSession(identity, telemetry=telemetry_settings)

        telemetry_settings.interval = 30

        assert session.telemetry.interval == 5


@pytest.mark.describe("DeviceSession - Device library errors")
class TestDeviceLibraryErrors(object):
    @pytest.fixture
    def client(self, mocker):
        client = mocker.MagicMock()
        client.send_message = mocker.AsyncMock()
        client.shutdown = mocker.AsyncMock()
        return client

    @pytest.fixture
    def transport(self, mocker, client):
        transport = mocker.MagicMock()
        transport.open = mocker.AsyncMock(return_value=HubConnection(client))
        return transport

    @pytest.mark.it("Counts a send that timed out as failed and stays Connected")
    @pytest.mark.parametrize(
        "error",
        [
            pytest.param(device_exceptions.OperationTimeout(), id="OperationTimeout"),
            pytest.param(device_exceptions.OperationCancelled(), id="OperationCancelled"),
        ],
    )
    async def test_send_timeout(self, mocker, session, client, error):
        client.send_message.side_effect = error
        handler = mocker.MagicMock()
        session.on_telemetry = handler
        await session.connect()

        await session._tick()

        assert session.failed_count == 1
        assert session.connected
        assert isinstance(handler.call_args[0][2], TelemetryError)

        await session.disconnect()

    @pytest.mark.it("Returns a TransportError Result if the shutdown times out")
    async def test_shutdown_timeout(self, session, client):
        client.shutdown.side_effect = device_exceptions.OperationTimeout()
        await session.connect()

        result = await session.disconnect()

        assert isinstance(result.error, TransportError)
        assert session.state is SessionState.DISCONNECTED
