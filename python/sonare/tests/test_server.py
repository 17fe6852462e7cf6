"""Tests for the CLI entry point and the serve lifecycle."""

import threading
import time
from unittest.mock import patch

import pytest

from sonare import server
from sonare.analytics import AnalyticsRecorder
from sonare.config import Settings
from sonare.listeners import Listener
from sonare.modes import RunMode
from sonare.shutdown import ShutdownCoordinator
from fakes import FakeServer, BindFailServer
from test_analytics import make_request
from test_privilege import StubRelauncher


@pytest.fixture(autouse=True)
def no_log_setup():
    with patch("sonare.server.setup_logging"):
        yield


def fake_listener_factory(server_cls=FakeServer, created=None):
    def factory(spec, on_failure=None):
        listener = Listener(spec, on_failure=on_failure, server_factory=server_cls)
        if created is not None:
            created.append(listener)
        return listener
    return factory


class TestParser:

    def test_single_dash_flags(self):
        args = server.build_parser().parse_args(["-mode", "http", "-port", "9000", "-db", "x.db"])
        assert (args.mode, args.port, args.db) == ("http", 9000, "x.db")

    def test_defaults(self):
        args = server.build_parser().parse_args([])
        assert (args.mode, args.port, args.db) == ("serve-test", 8080, "sonare.db")


class TestMainStartupChecks:

    def test_invalid_mode_exits_before_anything(self, capsys):
        with patch("sonare.server.init_db") as init_db, patch("sonare.server.serve") as serve:
            with pytest.raises(SystemExit) as exc_info:
                server.main(["-mode", "production"])
        assert exc_info.value.code != 0
        init_db.assert_not_called()
        serve.assert_not_called()
        err = capsys.readouterr().err
        assert "invalid mode 'production'" in err
        assert "serve-http" in err

    def test_missing_tls_is_fatal(self, tmp_path):
        with patch("sonare.server.CERT_FILE", str(tmp_path / "none.crt")), \
                patch("sonare.server.init_db") as init_db:
            with pytest.raises(SystemExit) as exc_info:
                server.main(["-mode", "test"])
        assert exc_info.value.code == 1
        init_db.assert_not_called()

    def test_http_mode_skips_tls_check(self, tmp_path):
        with patch("sonare.server.verify_tls_files") as verify, \
                patch("sonare.server.init_db"), \
                patch("sonare.server.serve", return_value=0) as serve:
            with pytest.raises(SystemExit) as exc_info:
                server.main(["-mode", "http", "-port", "9001"])
        assert exc_info.value.code == 0
        verify.assert_not_called()
        assert serve.call_args.kwargs["port"] == 9001
        assert serve.call_args.args[0] is RunMode.HTTP


class TestProductionRelaunch:

    def test_unprivileged_relaunches_once_and_mirrors_code(self):
        stub = StubRelauncher(code=7)
        with patch("sonare.server.verify_tls_files"), \
                patch("sonare.server.init_db") as init_db, \
                patch("sonare.server.serve") as serve:
            with pytest.raises(SystemExit) as exc_info:
                server.main(["-mode", "prod"], relauncher=stub, privileged=False)
        assert exc_info.value.code == 7
        assert len(stub.calls) == 1
        init_db.assert_not_called()
        serve.assert_not_called()

    def test_privileged_does_not_relaunch(self):
        stub = StubRelauncher()
        with patch("sonare.server.verify_tls_files"), \
                patch("sonare.server.init_db"), \
                patch("sonare.server.serve", return_value=0) as serve:
            with pytest.raises(SystemExit):
                server.main(["-mode", "prod"], relauncher=stub, privileged=True)
        assert stub.calls == []
        serve.assert_called_once()

    def test_http_mode_never_relaunches(self):
        stub = StubRelauncher()
        with patch("sonare.server.init_db"), patch("sonare.server.serve", return_value=0):
            with pytest.raises(SystemExit):
                server.main(["-mode", "http"], relauncher=stub, privileged=False)
        assert stub.calls == []


class TestViewMode:

    def test_hands_off_to_viewer(self):
        with patch("sonare.server.init_db") as init_db, \
                patch("sonare.server.viewer.start") as start, \
                patch("sonare.server.serve") as serve:
            server.main(["-mode", "tui"])
        start.assert_called_once_with(init_db.return_value)
        serve.assert_not_called()
        init_db.return_value.close.assert_called_once()


class TestServe:

    def test_single_listener_clean_exit(self, test_db, settings):
        created = []
        coordinator = ShutdownCoordinator()
        coordinator.trigger("signal SIGTERM")
        code = server.serve(
            RunMode.HTTP, test_db, settings, port=9002,
            coordinator=coordinator,
            listener_factory=fake_listener_factory(created=created),
            install_signals=False,
        )
        assert code == 0
        assert len(created) == 1
        assert created[0].spec.port == 9002
        assert created[0].server.should_exit

    def test_production_starts_two(self, test_db, settings):
        created = []
        coordinator = ShutdownCoordinator()
        coordinator.trigger("signal SIGINT")
        server.serve(
            RunMode.PRODUCTION, test_db, settings,
            coordinator=coordinator,
            listener_factory=fake_listener_factory(created=created),
            install_signals=False,
        )
        assert [l.spec.port for l in created] == [80, 443]

    def test_bind_failure_exits_nonzero(self, test_db, settings):
        code = server.serve(
            RunMode.HTTP, test_db, settings,
            coordinator=ShutdownCoordinator(timeout=1.0),
            listener_factory=fake_listener_factory(BindFailServer),
            install_signals=False,
        )
        assert code == 1

    def test_view_mode_starts_nothing(self, test_db, settings):
        created = []
        coordinator = ShutdownCoordinator()
        coordinator.trigger("test")
        server.serve(
            RunMode.VIEW, test_db, settings,
            coordinator=coordinator,
            listener_factory=fake_listener_factory(created=created),
            install_signals=False,
        )
        assert created == []


def test_settings_hsts_follows_tls(tmp_path):
    captured = {}

    def fake_serve(mode, db, settings, port):
        captured["settings"] = settings
        return 0

    with patch("sonare.server.init_db"), patch("sonare.server.serve", side_effect=fake_serve):
        with pytest.raises(SystemExit):
            server.main(["-mode", "cfd"])
    assert isinstance(captured["settings"], Settings)
    assert captured["settings"].hsts is False


def test_queued_analytics_do_not_delay_exit(test_db, settings, caplog):
    release = threading.Event()
    recorders = []

    def slow_lookup(ip):
        release.wait(2.0)
        return "Unknown", "Unknown"

    def make_recorder(db):
        recorder = AnalyticsRecorder(db, geo_lookup=slow_lookup)
        recorders.append(recorder)
        return recorder

    coordinator = ShutdownCoordinator()

    def traffic_then_signal():
        while not recorders:
            time.sleep(0.01)
        for _ in range(20):
            recorders[0].track(make_request("/"))
        coordinator.trigger("signal SIGTERM")

    threading.Thread(target=traffic_then_signal, daemon=True).start()
    try:
        with patch("sonare.server.AnalyticsRecorder", side_effect=make_recorder):
            code = server.serve(
                RunMode.HTTP, test_db, settings,
                coordinator=coordinator,
                listener_factory=fake_listener_factory(),
                install_signals=False,
            )
        elapsed = time.monotonic() - coordinator.triggered_at
    finally:
        release.set()

    assert code == 0
    assert elapsed < 1.5
    assert "queued write(s) at shutdown" in caplog.text
