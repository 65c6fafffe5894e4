"""
Main entrypoint: simulation timers (APScheduler background threads) + FastAPI server.

Builds the simulation from settings, starts the decay, layout and
categorization jobs, serves the API and shuts the jobs down when the server exits. Transaction
ticks begin with POST /simulation/start (or immediately with TRUSTFLOW_AUTOSTART=1).

Env: TRUSTFLOW_SPEED, TRUSTFLOW_SEED, LABEL_PROVIDER_URL, API_HOST, API_PORT, LOG_LEVEL, etc.

API only: uvicorn trustflow.api_server.server:app --host 0.0.0.0 --port 8000
"""

import os

# Configure structured JSON logging before other imports that may log
from trustflow.trustflow_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Build the runtime, optionally start transactions, then serve the API in the main thread."""
    from trustflow.api_server.server import create_app
    from trustflow.config import get_settings
    from trustflow.runtime import build_runtime
    import uvicorn

    settings = get_settings()
    runtime = build_runtime(settings)
    runtime.start()
    if os.getenv("TRUSTFLOW_AUTOSTART", "").strip().lower() in ("1", "true", "yes"):
        runtime.scheduler.start()
    logger.info("main_runtime_started", running=runtime.scheduler.running)

    app = create_app(runtime)
    logger.info("main_server_starting", host=settings.api_host, port=settings.api_port)
    try:
        uvicorn.run(
            app,
            host=settings.api_host,
            port=settings.api_port,
            log_level=os.getenv("LOG_LEVEL", "info").lower(),
        )
    finally:
        runtime.shutdown()
        logger.info("main_runtime_stopped")


if __name__ == "__main__":
    main()
