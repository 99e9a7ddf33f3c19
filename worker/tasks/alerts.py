from __future__ import annotations

import logging
from typing import Optional

from celery import signals

from app.config import Settings
from app.logs import log_event
from app.services.evaluator import AlertEvaluator, build_evaluator
from worker.worker_app import celery_app

logger = logging.getLogger(__name__)

_evaluator: Optional[AlertEvaluator] = None
_evaluator_settings: Optional[Settings] = None


def get_evaluator() -> AlertEvaluator:
    """Return the process-wide evaluator, rebuilding it when the settings change.

    Reusing one evaluator keeps a single engine or Redis pool per worker process
    and lets its pass lock see overlapping runs.
    """
    global _evaluator, _evaluator_settings
    settings = Settings.from_env()
    if _evaluator is None or _evaluator_settings != settings:
        fresh = build_evaluator(settings)
        if _evaluator is not None:
            _evaluator.close()
        _evaluator, _evaluator_settings = fresh, settings
    return _evaluator


@signals.worker_process_shutdown.connect
def _close_evaluator(**kwargs: object) -> None:
    global _evaluator, _evaluator_settings
    if _evaluator is not None:
        _evaluator.close()
    _evaluator, _evaluator_settings = None, None


@celery_app.task(bind=True, name="check_alerts")
def check_alerts(self: object) -> int:
    """Run one evaluation pass and return how many alerts fired.

    Failures are logged and reported as zero triggers; the next scheduled
    pass tries again.
    """
    try:
        result = get_evaluator().run_evaluation_pass()
    except Exception:
        logger.exception("check_alerts pass failed")
        return 0
    log_event(logger, "check_alerts_done", **result.as_dict())
    return result.triggered
