"""
Serve the CRM analytics API.

    python main.py               # port from $DASHBOARD_PORT (default 8001)
    DEBUG=true python main.py    # auto-reload on code changes
"""
import os

from dotenv import load_dotenv

from scripts.lib.logger import setup_logger

load_dotenv()

logger = setup_logger("crm-analytics-hub")

APP_PATH = "dashboard.api.main:app"


def server_options() -> dict:
    """uvicorn keyword arguments, read from the environment at call time."""
    return {
        "host": os.getenv("DASHBOARD_HOST", "0.0.0.0"),
        "port": int(os.getenv("DASHBOARD_PORT", "8001")),
        "reload": os.getenv("DEBUG", "false").lower() == "true",
    }


def serve() -> None:
    import uvicorn

    options = server_options()
    logger.info(
        "Serving %s on %s:%d (env=%s, reload=%s); docs at /docs",
        APP_PATH, options["host"], options["port"],
        os.getenv("ENVIRONMENT", "development"), options["reload"],
    )
    uvicorn.run(APP_PATH, **options)


if __name__ == "__main__":
    serve()
