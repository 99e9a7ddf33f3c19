from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from typing import Protocol

from prometheus_client import Counter, Histogram

from app.config import Settings
from app.domain import Alert, Notification, Quote
from app.logs import log_event
from app.notify import EmailNotifier, Notifier
from app.prices import PriceSource
from app.store import AlertStore, build_store

logger = logging.getLogger(__name__)

ALERTS_TRIGGERED = Counter("alerts_triggered_total", "Alerts that fired", ["asset"])
EVALUATION_ERRORS = Counter(
    "alert_evaluation_errors_total", "Alerts that failed to evaluate during a pass"
)
EVALUATION_SECONDS = Histogram(
    "alert_evaluation_seconds", "Time spent in one evaluation pass"
)


class Prices(Protocol):
    def fetch_prices(self, asset_ids: set[str]) -> dict[str, Quote]: ...


@dataclass
class EvaluationResult:
    checked: int = 0
    triggered: int = 0
    missing_price: int = 0
    notified: int = 0
    errors: int = 0
    skipped: bool = False

    def as_dict(self) -> dict[str, int | bool]:
        return asdict(self)


class AlertEvaluator:
    """Runs trigger passes: match active alerts against one batch of quotes.

    Passes in one process are serialised with a non-blocking lock; an
    overlapping call returns straight away with ``skipped=True``. Across
    processes the store's compare-and-set ``trigger_alert`` ensures an alert
    fires at most once.
    """

    def __init__(self, store: AlertStore, prices: Prices, notifier: Notifier) -> None:
        self.store = store
        self.prices = prices
        self.notifier = notifier
        self._pass_lock = threading.Lock()

    def close(self) -> None:
        self.store.close()

    def run_evaluation_pass(self) -> EvaluationResult:
        if not self._pass_lock.acquire(blocking=False):
            logger.info("evaluation pass already running; skipping")
            return EvaluationResult(skipped=True)
        try:
            with EVALUATION_SECONDS.time():
                return self._run()
        finally:
            self._pass_lock.release()

    def _run(self) -> EvaluationResult:
        result = EvaluationResult()
        alerts = self.store.get_active_alerts()
        if not alerts:
            logger.debug("no active alerts to check")
            return result

        quotes = self.prices.fetch_prices({a.asset for a in alerts})

        for alert in alerts:
            result.checked += 1
            quote = quotes.get(alert.asset)
            if quote is None:
                result.missing_price += 1
                continue
            if not alert.condition.matches(quote.price, alert.target_price):
                continue
            try:
                fired, notified = self._fire(alert, quote.price)
            except Exception:
                logger.exception("failed to process alert %s", alert.id)
                EVALUATION_ERRORS.inc()
                result.errors += 1
                continue
            if fired:
                result.triggered += 1
            if notified:
                result.notified += 1

        log_event(logger, "evaluation_pass", **result.as_dict())
        return result

    def _fire(self, alert: Alert, price: float) -> tuple[bool, bool]:
        # Transition and history commit together before notifying; the
        # notification outcome never undoes them.
        record = self.store.trigger_alert(alert.id, price)
        if record is None:
            logger.info("alert %s already triggered elsewhere", alert.id)
            return False, False
        ALERTS_TRIGGERED.labels(asset=alert.asset).inc()
        log_event(
            logger,
            "alert_triggered",
            alert_id=alert.id,
            owner_id=alert.owner_id,
            asset=alert.asset,
            condition=alert.condition.value,
            target_price=alert.target_price,
            price=price,
            triggered_alert_id=record.id,
        )

        owner = self.store.find_user_by_id(alert.owner_id)
        if owner is None or not owner.email:
            logger.warning("no contact address for owner %s; skipping notification", alert.owner_id)
            return True, False
        notification = Notification(
            to_address=owner.email,
            asset=alert.asset,
            target_price=alert.target_price,
            current_price=price,
            condition=alert.condition,
        )
        try:
            delivered = self.notifier.send(notification)
        except Exception:
            logger.exception("notifier raised for alert %s", alert.id)
            delivered = False
        if not delivered:
            logger.warning("notification for alert %s was not delivered", alert.id)
        return True, delivered


def build_evaluator(settings: Settings) -> AlertEvaluator:
    """Wire an evaluator from configuration, as the scheduled worker does."""
    return AlertEvaluator(
        store=build_store(settings),
        prices=PriceSource.from_settings(settings),
        notifier=EmailNotifier.from_settings(settings),
    )
