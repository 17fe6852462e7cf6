"""
Sonare server entry point.

Resolves the run mode, checks TLS material, escalates privileges for
production, opens the database, and then either runs the terminal viewer or
starts the listeners for the mode and waits for a shutdown signal.
"""

import argparse
import sys
from typing import Callable, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from shared.logging import setup_logging, get_logger
from . import viewer
from .analytics import AnalyticsRecorder
from .api import create_app, create_redirect_app
from .config import Settings, DEFAULT_PORT, DEFAULT_DB_PATH, CERT_FILE, KEY_FILE
from .database import Database, init_db
from .listeners import Listener, ListenerSpec, ServerSet, build_topology
from .modes import RunMode, resolve_mode, valid_mode_names
from .privilege import Relauncher, SudoRelauncher, has_bind_privilege, needs_relaunch, relaunch_argv, relaunch_elevated
from .shutdown import ShutdownCoordinator
from .tls import TLSMaterialError, verify_tls_files

logger = get_logger(__name__)

ListenerFactory = Callable[..., Listener]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sonare", description="Sonare marketing site server")
    parser.add_argument(
        "-mode", "--mode", default=RunMode.TEST.value,
        help="serve-test (TLS test), serve-http (HTTP only), serve-cfd (Cloudflare Tunnel alias), "
             "serve-prod (prod :443/:80), or view (TUI)",
    )
    parser.add_argument("-port", "--port", type=int, default=DEFAULT_PORT,
                        help=f"Port to serve on in test/http/cfd modes (default: {DEFAULT_PORT})")
    parser.add_argument("-db", "--db", default=DEFAULT_DB_PATH,
                        help=f"Path to SQLite database (default: {DEFAULT_DB_PATH})")
    return parser


def log_startup(mode: RunMode, spec: ListenerSpec) -> None:
    if mode is RunMode.PRODUCTION:
        return
    if mode is RunMode.TUNNEL:
        logger.info("NOTICE: '-mode serve-cfd' is retained for compatibility; prefer '-mode serve-http'.")
        logger.info(f"SERVER START: Cloudflare Tunnel Mode on http://localhost:{spec.port} (HTTP)")
    elif mode is RunMode.HTTP:
        logger.info(f"SERVER START: HTTP-Only Mode on http://localhost:{spec.port} (HTTP)")
    else:
        logger.info(f"SERVER START: Test Mode on https://localhost:{spec.port} (TLS self-signed)")


def serve(
    mode: RunMode,
    db: Database,
    settings: Settings,
    port: int = DEFAULT_PORT,
    coordinator: Optional[ShutdownCoordinator] = None,
    listener_factory: ListenerFactory = Listener,
    install_signals: bool = True,
) -> int:
    """Run the listeners for ``mode`` until shutdown; returns the exit code."""
    recorder = AnalyticsRecorder(db)
    app = create_app(db, settings, recorder)
    redirect_app = create_redirect_app() if mode is RunMode.PRODUCTION else None
    specs = build_topology(
        mode, app, redirect_app,
        port=port, host=settings.host,
        cert_file=settings.cert_file, key_file=settings.key_file,
    )

    coordinator = coordinator or ShutdownCoordinator()
    if install_signals:
        coordinator.install_signal_handlers()

    servers = ServerSet()
    for spec in specs:
        servers.add(listener_factory(spec, on_failure=coordinator.on_listener_failure))

    if mode is RunMode.PRODUCTION:
        logger.info("SERVER START: Production Mode Enabled")
    for spec in specs:
        log_startup(mode, spec)

    try:
        servers.start_all()
        coordinator.wait()
        coordinator.drain(servers)
    finally:
        # Exit does not wait on queued GeoIP lookups or writes
        recorder.close(wait=False, cancel_pending=True)

    if coordinator.failed:
        logger.critical(f"SERVER STOPPED: {coordinator.reason}")
        return 1
    logger.info("SERVER STOPPED: Clean exit.")
    return 0


def main(
    argv: Optional[Sequence[str]] = None,
    relauncher: Optional[Relauncher] = None,
    privileged: Optional[bool] = None,
) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    mode = resolve_mode(args.mode)
    if mode is None:
        parser.error(f"invalid mode {args.mode!r}. Valid modes: {valid_mode_names()}")

    setup_logging("sonare")

    settings = Settings(cert_file=CERT_FILE, key_file=KEY_FILE, hsts=mode.requires_tls)

    if mode.requires_tls:
        try:
            verify_tls_files(settings.cert_file, settings.key_file)
        except TLSMaterialError as e:
            logger.critical(f"TLS setup error: {e} (use -mode serve-http for HTTP-only)")
            sys.exit(1)

    if privileged is None:
        privileged = has_bind_privilege()
    if needs_relaunch(mode, privileged):
        sys.exit(relaunch_elevated(relauncher or SudoRelauncher(), relaunch_argv()))

    try:
        db = init_db(args.db)
    except SQLAlchemyError as e:
        logger.critical(f"Failed to init DB: {e}")
        sys.exit(1)

    try:
        if mode is RunMode.VIEW:
            viewer.start(db)
            return
        code = serve(mode, db, settings, port=args.port)
    finally:
        db.close()

    sys.exit(code)


if __name__ == "__main__":
    main()
