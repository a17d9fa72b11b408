"""
Main entrypoint: run the relayer API with uvicorn.

Env: TAP_KEY, CONTRACT_ADDRESS, RELAYER_PRIVATE_KEY, STATUS_RPC_URL, DATABASE_URL,
API_HOST, API_PORT, etc. (see tapmint.config).

Equivalent: uvicorn tapmint.api_server.app:app --host 0.0.0.0 --port 8000
"""

import os

# Configure structured JSON logging before other imports that may log
from tapmint.tapmint_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Validate the minimum configuration, then serve the API in the main thread."""
    from tapmint.config import get_settings

    api_host = os.getenv("API_HOST", "0.0.0.0").strip()
    api_port = int(os.getenv("API_PORT", "8000").strip() or "8000")

    settings = get_settings()
    if not settings.tap_key:
        logger.warning("main_config_warning", message="TAP_KEY is empty: every mint request will be rejected")
    if not settings.database_url:
        logger.warning(
            "main_config_warning",
            message="DATABASE_URL is empty: using the in-memory store (single instance, lost on restart)",
        )

    from tapmint.api_server.app import app
    import uvicorn

    logger.info("main_server_starting", host=api_host, port=api_port, dry_run=settings.dry_run)
    uvicorn.run(app, host=api_host, port=api_port, log_level=os.getenv("LOG_LEVEL", "info").lower())


if __name__ == "__main__":
    main()
