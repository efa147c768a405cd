"""End-to-end tests: real acceptors and connectors over loopback."""

import pytest

from helpers import SlowHandler, UnavailableHandler, WarningHandler
from servicelink.exceptions import BindError, LifecycleError, RemoteError
from servicelink.protocol.models import (
    ConfigStatus,
    Configuration,
    Endpoint,
    EndpointDescriptor,
)
from servicelink.protocol.service import DiscoveryStub
from servicelink.rpc.acceptor import ServiceAcceptor
from servicelink.rpc.discovery import StaticDiscoveryServicer
from servicelink.rpc.transport import ServerConfig

pytestmark = pytest.mark.integration

LOCALHOST = "127.0.0.1"


class TestRoundTrip:
    def test_blocking_stub_call(self, start_acceptor, connect) -> None:
        acceptor = start_acceptor(WarningHandler())
        connector = connect(acceptor)

        result = DiscoveryStub(connector.channel).Configure(Configuration())

        assert result.status is ConfigStatus.WARNING

    def test_future_call_ping_and_shutdown(self, start_acceptor, connect) -> None:
        acceptor = start_acceptor(WarningHandler())
        connector = connect(acceptor)

        future = DiscoveryStub(connector.channel).Configure.future(Configuration())
        assert future.result().status is ConfigStatus.WARNING

        assert connector.ping(0) is True
        assert connector.ping(1000) is True

        assert connector.shutdown().block_until_shutdown(3000)
        assert acceptor.shutdown().block_until_shutdown(3000)
        assert connector.is_terminated()
        assert acceptor.is_terminated()

    def test_configure_through_connector(self, start_acceptor, connect) -> None:
        handler = WarningHandler()
        connector = connect(start_acceptor(handler))

        result = connector.configure(Configuration(name="asr", values={"model": "small"}), 2000)

        assert result.status is ConfigStatus.WARNING
        assert handler.configure_calls == 1

    def test_discover_endpoints(self, start_acceptor, connect) -> None:
        descriptor = EndpointDescriptor(
            name="asr", endpoint=Endpoint(host="asr.internal", port=8080), capabilities=["asr"]
        )
        connector = connect(start_acceptor(StaticDiscoveryServicer([descriptor])))

        assert connector.discover_endpoints().endpoints == [descriptor]


class TestTimeouts:
    def test_bounded_wait_expires(self, start_acceptor, connect) -> None:
        handler = SlowHandler(delay=5.0)
        connector = connect(start_acceptor(handler))
        try:
            assert connector.configure(Configuration(), 1) is None
        finally:
            handler.release.set()

    def test_zero_waits_for_slow_handler(self, start_acceptor, connect) -> None:
        connector = connect(start_acceptor(SlowHandler(delay=0.2)))

        result = connector.configure(Configuration(), 0)

        assert result.status is ConfigStatus.WARNING

    def test_late_completion_is_ignored(self, start_acceptor, connect) -> None:
        handler = SlowHandler(delay=5.0)
        connector = connect(start_acceptor(handler))

        assert connector.configure(Configuration(), 1) is None
        handler.release.set()

        # The channel stays usable after an abandoned call
        assert connector.ping(2000) is True


class TestRemoteErrors:
    def test_unavailable_status(self, start_acceptor, connect) -> None:
        connector = connect(start_acceptor(UnavailableHandler()))

        with pytest.raises(RemoteError) as exc_info:
            connector.configure(Configuration(), 2000)

        assert exc_info.value.code == "UNAVAILABLE"
        assert "UNAVAILABLE" in str(exc_info.value)

    def test_unimplemented_method(self, start_acceptor, connect) -> None:
        connector = connect(start_acceptor(UnavailableHandler()))

        with pytest.raises(RemoteError) as exc_info:
            connector.ping(2000)

        assert exc_info.value.code == "UNIMPLEMENTED"

    def test_no_server_listening(self, start_acceptor, connect) -> None:
        acceptor = start_acceptor(WarningHandler())
        connector = connect(acceptor)
        acceptor.shutdown(force=True).block_until_shutdown(3000)

        with pytest.raises(RemoteError) as exc_info:
            connector.ping(2000)

        assert exc_info.value.code == "UNAVAILABLE"


class TestShutdown:
    def test_graceful_server_shutdown_drains_calls(self, start_acceptor, connect) -> None:
        handler = SlowHandler(delay=5.0)
        acceptor = start_acceptor(handler)
        connector = connect(acceptor)

        future = DiscoveryStub(connector.channel).Configure.future(Configuration())
        assert handler.entered.wait(2.0)

        acceptor.shutdown()
        assert not acceptor.block_until_shutdown(50)

        handler.release.set()
        assert future.result(timeout=3.0).status is ConfigStatus.WARNING
        assert acceptor.block_until_shutdown(3000)

    def test_forced_client_shutdown_cancels_abandoned_call(self, start_acceptor, connect) -> None:
        handler = SlowHandler(delay=5.0)
        connector = connect(start_acceptor(handler))
        try:
            assert connector.configure(Configuration(), 1) is None
            assert connector.in_flight == 1
            assert connector.shutdown(force=True).block_until_shutdown(3000)
        finally:
            handler.release.set()

    def test_graceful_client_shutdown_waits_for_abandoned_call(
        self, start_acceptor, connect
    ) -> None:
        handler = SlowHandler(delay=5.0)
        connector = connect(start_acceptor(handler))
        try:
            assert connector.configure(Configuration(), 1) is None

            connector.shutdown()
            assert not connector.block_until_shutdown(50)
            with pytest.raises(RemoteError):
                connector.ping(100)

            handler.release.set()
            # Closed from the completed call's done callback
            assert connector.block_until_shutdown(3000)
            assert connector.in_flight == 0
        finally:
            handler.release.set()

    def test_start_twice_rejected(self, start_acceptor) -> None:
        acceptor = start_acceptor(WarningHandler())
        with pytest.raises(LifecycleError):
            acceptor.start()


class TestBind:
    def test_port_conflict(self) -> None:
        config = ServerConfig(
            bind_host=LOCALHOST,
            max_workers=2,
            options=[("grpc.so_reuseport", 0)],
            grace_seconds=1.0,
        )
        first = ServiceAcceptor(0, WarningHandler(), config)
        try:
            with pytest.raises(BindError):
                ServiceAcceptor(first.port, WarningHandler(), config)
        finally:
            first.shutdown(force=True).block_until_shutdown(3000)
