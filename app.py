"""
Gripp Mirror

Main aiohttp application entry point.
"""

import logging
import sys

from aiohttp import web

from gripp_mirror.api import create_app
from gripp_mirror.config import Settings, get_settings
from gripp_mirror.services import MirrorServices

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


class Application:
    """Main application class."""

    def __init__(self, settings: Settings | None = None):
        """Initialize the application."""
        self.settings = settings or get_settings()

        # Set logging level
        logging.getLogger().setLevel(self.settings.log_level)

        self.services = MirrorServices.build(self.settings)

        logger.info("Application initialized successfully")

    async def on_startup(self, app: web.Application) -> None:
        await self.services.start()

    async def on_cleanup(self, app: web.Application) -> None:
        await self.services.close()

    def create_app(self) -> web.Application:
        """Create the aiohttp web application."""
        app = create_app(self.services.read_service, self.services.response_cache)
        app.on_startup.append(self.on_startup)
        app.on_cleanup.append(self.on_cleanup)
        return app


def main():
    """Main entry point."""
    try:
        settings = get_settings()
        application = Application(settings)
        app = application.create_app()

        logger.info(f"Starting Gripp mirror on {settings.host}:{settings.port}")

        web.run_app(
            app,
            host=settings.host,
            port=settings.port,
        )

    except Exception as e:
        logger.error(f"Failed to start application: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
