from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any


def configure_logging(level: str | None = None) -> None:
    """Set the root level from LOG_LEVEL unless handlers are already installed."""
    lvl = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=lvl, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    logging.getLogger().setLevel(lvl)


def log_event(
    logger: logging.Logger, event: str, level: int = logging.INFO, **fields: Any
) -> None:
    """Emit a structured JSON log line for a domain event."""
    try:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": logging.getLevelName(level).lower(),
            "event": event,
            **fields,
        }
        logger.log(level, json.dumps(payload, default=str))
    except Exception:
        # logging must not break the caller
        pass
