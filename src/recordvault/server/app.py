"""FastAPI application for the recordvault core.

Authentication, TLS and request routing belong to the gateway in front of
this app; it only maps parsed requests onto the record system and error
kinds onto status codes.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .. import __version__
from ..config import SystemConfig
from ..system import RecordSystem
from .routes import router

logger = logging.getLogger("recordvault.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Builds the record system from ``app.state.config`` unless one was
    attached already, and stops it on shutdown.
    """
    system: Optional[RecordSystem] = getattr(app.state, "system", None)
    if system is None:
        config: SystemConfig = app.state.config
        logger.info(f"Starting recordvault service (instance: {config.instance_id})")
        system = RecordSystem(config)
        app.state.system = system

    await system.start()

    yield

    logger.info("Shutting down recordvault service")
    await system.stop()
    app.state.system = None


def create_app(
    config: Optional[SystemConfig] = None,
    system: Optional[RecordSystem] = None,
) -> FastAPI:
    """Create FastAPI application.

    Args:
        config: Service configuration. If None, loads from environment.
        system: Pre-built record system (its config wins over ``config``).

    Returns:
        Configured FastAPI application.
    """
    if system is not None:
        config = system.config
    elif config is None:
        config = SystemConfig.from_env()

    app = FastAPI(
        title="recordvault",
        description="Schema-validated, idempotent record ingestion and retrieval",
        version=__version__,
        lifespan=lifespan,
    )

    # Read by the lifespan
    app.state.config = config
    app.state.system = system

    app.include_router(router)

    @app.get("/")
    async def root():
        return {
            "service": "recordvault",
            "version": __version__,
            "docs": "/docs",
        }

    return app


def run_server(
    config: Optional[SystemConfig] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    log_level: str = "info",
):
    """Run the HTTP server.

    Args:
        config: Service configuration. If None, loads from environment.
        host: Override host from config.
        port: Override port from config.
        log_level: Logging level.
    """
    if config is None:
        config = SystemConfig.from_env()

    app = create_app(config)

    uvicorn.run(
        app,
        host=host or config.server.host,
        port=port or config.server.port,
        log_level=log_level,
    )


# CLI entry point
def main():
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="recordvault HTTP server")
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to config file (default: ~/.recordvault/config.yaml)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to bind to (default: 18800)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Logging level",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Load config
    if args.config:
        config = SystemConfig.from_file(args.config)
    else:
        config = SystemConfig.from_env()

    errors = config.validate()
    if errors:
        parser.error(f"Invalid configuration: {errors}")

    run_server(
        config=config,
        host=args.host,
        port=args.port,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
