from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse

from app.auth import bearer_token
from app.errors import Unauthorized
from app.services.evaluator import AlertEvaluator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])


def _check_secret(expected: str | None, authorization: str | None) -> None:
    if not expected:
        return
    supplied = bearer_token(authorization) or ""
    if not hmac.compare_digest(supplied.encode(), expected.encode()):
        raise Unauthorized("Unauthorized")


@router.api_route("/check-alerts", methods=["GET", "POST"])
def check_alerts(
    request: Request, authorization: str | None = Header(default=None)
) -> JSONResponse:
    """Run one evaluation pass; meant for an external scheduler."""
    _check_secret(request.app.state.settings.cron_secret, authorization)
    evaluator: AlertEvaluator = request.app.state.evaluator
    try:
        result = evaluator.run_evaluation_pass()
    except Exception:
        logger.exception("scheduled alert check failed")
        return JSONResponse(
            {"success": False, "error": "Failed to check alerts"}, status_code=500
        )
    return JSONResponse(
        {"success": True, "message": "Alerts checked successfully", **result.as_dict()}
    )
