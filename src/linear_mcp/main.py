"""Entry point for the Linear MCP stdio server."""

import asyncio
import logging

from .config import get_settings
from .connectors.http_client import close_http_client
from .mcp.server import LinearMCPServer
from .observability.logging import configure_logging
from .security.session import AuthSession

logger = logging.getLogger(__name__)


async def serve():
    """Build the session and server, then serve until stdin closes."""
    settings = get_settings()

    configure_logging(
        environment=settings.environment,
        log_level=settings.log_level,
    )

    session = AuthSession.from_settings(settings)
    if not session.is_authenticated():
        logger.info("No LINEAR_ACCESS_TOKEN configured; use linear_auth to start OAuth")

    server = LinearMCPServer(session, name=settings.app_name)
    try:
        await server.run_stdio()
    finally:
        await close_http_client()
        logger.info("Linear MCP shutdown complete")


def run():
    """Console script entry point."""
    asyncio.run(serve())


if __name__ == "__main__":
    run()
