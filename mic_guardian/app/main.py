import asyncio
import signal
import sys
from typing import Optional

from mic_guardian.api.controller import APIController
from mic_guardian.api.server import APIServer
from mic_guardian.core.guardian import MicrophoneGuardian
from mic_guardian.core.logging_config import configure_logging
from mic_guardian.core.logging_utils import get_module_logger
from mic_guardian.core.paths import ensure_directories
from mic_guardian.core.settings import GuardianSettings, build_arg_parser, load_settings
from mic_guardian.listeners.csv_history import SessionCsvWriter
from mic_guardian.listeners.logging_listener import log_session_listener
from mic_guardian.providers.process_activity import ProcessActivityProvider
from mic_guardian.sources.pulse import PulseAudioSource


logger = get_module_logger("Main")


def parse_args(argv: Optional[list[str]] = None):
    return build_arg_parser().parse_args(argv)


def build_settings(args) -> GuardianSettings:
    """Config file values overlaid with whatever was given on the command line."""
    return load_settings(args.config).with_args(args)


def build_guardian(settings: GuardianSettings) -> MicrophoneGuardian:
    source = PulseAudioSource(
        poll_interval=settings.source_poll_interval,
        exclude_clients=settings.exclude_clients,
    )
    provider = ProcessActivityProvider(
        limit=settings.attribution_limit,
        exclude_clients=settings.exclude_clients,
    )
    provider.warm_up()
    return MicrophoneGuardian(source, provider, settings)


async def run_guardian(settings: GuardianSettings, stop_event: Optional[asyncio.Event] = None) -> None:
    """Run monitoring (and the REST API) until ``stop_event`` is set."""
    stop_event = stop_event or asyncio.Event()
    guardian = build_guardian(settings)
    guardian.subscribe(log_session_listener, name="log")

    if settings.history_csv:
        writer = SessionCsvWriter(settings.history_csv)
        await writer.initialize()
        guardian.subscribe(writer, name="csv")

    api_server: Optional[APIServer] = None
    if settings.api_enabled:
        api_server = APIServer(
            APIController(guardian),
            host=settings.api_host,
            port=settings.api_port,
            debug=settings.log_level == "debug",
        )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass  # Windows doesn't support add_signal_handler

    try:
        if not await guardian.start():
            logger.error("Monitoring failed to start")
            return
        if api_server:
            try:
                await api_server.start()
            except OSError as e:
                logger.error("API server could not bind %s:%d: %s", settings.api_host, settings.api_port, e)
                api_server = None

        logger.info(guardian.status_text())
        await stop_event.wait()
        logger.info("Shutdown requested")
    finally:
        if api_server:
            await api_server.stop()
        await guardian.close()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except NotImplementedError:
                pass


async def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    settings = build_settings(args)

    ensure_directories()

    configure_logging(
        settings.log_level,
        force=True,
        console=settings.console_output,
        log_file=settings.log_file,
    )

    logger.info("=" * 60)
    logger.info("Mic Guardian Starting")
    logger.info("=" * 60)
    logger.info("Config: %s", args.config)
    logger.info("Attribution: poll %.1fs, heartbeat %.1fs, window %.1fs",
                settings.poll_interval, settings.heartbeat_interval, settings.attribution_window)
    logger.info("History: %d sessions in memory%s", settings.history_capacity,
                f", CSV {settings.history_csv}" if settings.history_csv else "")
    logger.info("Excluded clients: %s", ", ".join(settings.exclude_clients))
    logger.info("=" * 60)

    await run_guardian(settings)

    logger.info("Mic Guardian Stopped")


def run(argv: Optional[list[str]] = None) -> int:
    try:
        asyncio.run(main(argv))
        return 0
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except Exception as exc:  # pragma: no cover - fatal guard
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(run())
