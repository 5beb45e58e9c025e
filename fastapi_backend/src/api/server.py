"""Process entry: run the startup sequence, then serve with uvicorn."""
import logging
import sys

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from src.api import config, db
from src.api.logging_setup import configure_logging
from src.api.main import create_app
from src.api.startup import DatabaseUnavailable, StartupSequence

logger = logging.getLogger(__name__)


def log_route_table(app: FastAPI, port: int) -> None:
    logger.info("Registered routes:")
    for route in app.state.route_table:
        logger.info("  %-14s %s", ",".join(route.methods), route.path)
    logger.info("Metrics available at http://0.0.0.0:%d/metrics", port)


def build(sequence: StartupSequence) -> FastAPI:
    """Run the sequence up to a mounted app, exiting with status 1 on failure."""
    try:
        return sequence.run()
    except DatabaseUnavailable as exc:
        logger.error("%s", exc)
        sys.exit(1)
    except Exception:
        logger.exception("Startup failed")
        sys.exit(1)


# PUBLIC_INTERFACE
def main() -> None:
    """Console entry point."""
    load_dotenv()
    try:
        configure_logging(config.log_level())
        port = config.server_port()
        sequence = StartupSequence(
            admin=config.admin_account(),
            app_factory=create_app,
            retries=config.readiness_retries(),
            delay=config.readiness_delay_seconds(),
        )
    except Exception:
        logger.exception("Invalid configuration")
        sys.exit(1)

    app = build(sequence)

    log_route_table(app, port)
    sequence.mark_listening()
    logger.info("Server running on http://0.0.0.0:%d", port)
    try:
        uvicorn.run(app, host="0.0.0.0", port=port, log_config=None)
    finally:
        db.close_db_pool()


if __name__ == "__main__":
    main()
