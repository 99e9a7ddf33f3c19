from __future__ import annotations

import logging
import os
from typing import Final

from celery import Celery, signals
from prometheus_client import start_http_server

from app.logs import configure_logging
from worker.schedule import LazyBeatSchedule, build_beat_schedule

# Default local-stack broker URL; production is provided via env.
DEFAULT_BROKER: Final[str] = "redis://redis:6379/0"

logger = logging.getLogger(__name__)

celery_app = Celery("price_alert_worker")
broker_url = os.getenv("REDIS_URL", DEFAULT_BROKER)
celery_app.conf.broker_url = broker_url
celery_app.conf.result_backend = broker_url


def _env_flag(env_var: str, default: str) -> bool:
    return os.getenv(env_var, default).lower() in {"1", "true", "yes", "on"}


def _start_metrics_server() -> None:
    """Run `prometheus_client`'s basic HTTP server for worker metrics."""
    port = int(os.getenv("WORKER_METRICS_PORT", "8001"))
    start_http_server(port)


@signals.worker_ready.connect
def _on_worker_ready(sender: object | None = None, **kwargs: object) -> None:  # type: ignore[no-redef]
    """Start the metrics HTTP server only in actual worker processes.

    Avoids binding the port when running celery CLI commands like `call` or in
    non-worker processes (e.g., Beat), which only import the module.
    """
    configure_logging()
    if _env_flag("ENABLE_WORKER_METRICS", "true"):
        try:
            _start_metrics_server()
        except OSError as exc:
            logger.warning("worker metrics server not started: %s", exc)


def _build_schedule_from_env() -> dict[str, dict]:
    if not _env_flag("ENABLE_BEAT", "false"):
        return {}
    interval = int(os.getenv("ALERT_CHECK_INTERVAL_SECONDS", "60"))
    return build_beat_schedule(interval)


# Lazy so that tests setting env after an earlier import still see the
# configured schedule when it is read.
celery_app.conf.beat_schedule = LazyBeatSchedule(_build_schedule_from_env)

# Register tasks with the app.
import worker.tasks.alerts  # noqa: E402,F401
