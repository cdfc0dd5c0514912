import asyncio
import signal
import sys

from loguru import logger
from pydantic import ValidationError

from launch_sniper.config import AppSettings
from launch_sniper.errors import ConfigError
from launch_sniper.logs import configure_logging
from launch_sniper.pipeline.runner import SniperService, build_service


async def _serve(service: SniperService):
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, service.stop)
        except NotImplementedError:
            # Windows event loops: fall back to KeyboardInterrupt
            pass
    await service.run()


def load_service() -> SniperService:
    """Settings, logging and wiring; every startup defect surfaces as ConfigError."""
    try:
        settings = AppSettings()
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e
    configure_logging(settings.log_level, serialize=settings.log_json)
    settings.validate_for_startup()
    return build_service(settings)


def main():
    try:
        service = load_service()
    except ConfigError as e:
        logger.error("Configuration error: {}", e)
        sys.exit(2)

    try:
        asyncio.run(_serve(service))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
