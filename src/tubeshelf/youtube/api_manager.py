"""
api_manager.py

Request execution and HTTP → domain error translation.

Responsibilities:
- Run blocking googleapiclient requests off the event loop
- Translate HttpError into ApiError / QuotaExhaustedError
- Translate transport failures into NetworkError

Retries and auth handling are layered on top (see sync.auth_retry).
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict

import httplib2
from googleapiclient.errors import HttpError

from tubeshelf.logger import get_logger
from tubeshelf.sync.errors import ApiError, NetworkError, QuotaExhaustedError

logger = get_logger(__name__)

_QUOTA_REASONS = ("quotaExceeded", "dailyLimitExceeded")


# ============================================================
# Error detection helpers
# ============================================================


def _is_quota_payload(data: Any) -> bool:
    """
    YouTube quota errors are reliably signaled here:
    error.errors[].reason in ('quotaExceeded', 'dailyLimitExceeded')
    """
    if isinstance(data, list):
        return any(
            isinstance(d, dict) and d.get("reason") in _QUOTA_REASONS for d in data
        )
    if not isinstance(data, dict):
        return False
    errors = (data.get("error") or {}).get("errors") or []
    return any(isinstance(e, dict) and e.get("reason") in _QUOTA_REASONS for e in errors)


def _raw_content(e: HttpError) -> str:
    content = getattr(e, "content", b"") or b""
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="ignore")
    return str(content)


def http_status(e: HttpError) -> int:
    resp = getattr(e, "resp", None)
    try:
        return int(getattr(resp, "status", 0) or 0)
    except (TypeError, ValueError):
        return 0


def http_reason(e: HttpError) -> str:
    raw = _raw_content(e)
    try:
        message = json.loads(raw).get("error", {}).get("message")
        if message:
            return str(message)
    except (ValueError, AttributeError):
        pass
    return raw[:300]


def is_quota_error(e: HttpError) -> bool:
    if http_status(e) != 403:
        return False

    # First try structured error_details
    if _is_quota_payload(getattr(e, "error_details", None)):
        return True

    # Then the raw HTTP content (googleapiclient puts JSON here often)
    raw = _raw_content(e)
    try:
        if _is_quota_payload(json.loads(raw)):
            return True
    except ValueError:
        pass
    lowered = raw.lower()
    return "quotaexceeded" in lowered or "dailylimitexceeded" in lowered


def translate_http_error(e: HttpError, operation: str = "") -> ApiError:
    status = http_status(e)
    reason = http_reason(e)
    if is_quota_error(e):
        return QuotaExhaustedError(status, reason or "quota exhausted", operation)
    return ApiError(status, reason, operation)


# ============================================================
# Execution
# ============================================================


async def execute_request(request: Any, operation: str = "") -> Dict[str, Any]:
    """
    Execute a googleapiclient request in a worker thread.

    Returns the decoded JSON body ({} for empty 2xx bodies such as delete).
    """
    try:
        response = await asyncio.to_thread(request.execute)
    except HttpError as e:
        err = translate_http_error(e, operation)
        logger.debug(f"{operation} failed: HTTP {err.status} {err.reason}")
        raise err from e
    except (OSError, httplib2.HttpLib2Error) as e:
        logger.debug(f"{operation} failed: transport error {e!r}")
        raise NetworkError(f"Network error on {operation}: {e}") from e

    return response if isinstance(response, dict) else {}
