"""HTTP backend for tasks - sends tasks to worker via HTTP POST.

Used in local/staging environments where api and worker run as separate
containers on the same network.
"""

import os
from datetime import datetime

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2.id_token import fetch_id_token

from roomledger.observability.logging import get_logger
from roomledger.observability.redaction import safe_log_context

logger = get_logger(__name__)

# Must match task_auth.LOCAL_DEV_AUDIENCE
LOCAL_DEV_AUDIENCE = "roomledger-tasks-local"


def _worker_base_url() -> str:
    return os.environ.get("WORKER_BASE_URL", "http://worker:8000")


def _http_timeout() -> int:
    return int(os.environ.get("TASKS_HTTP_TIMEOUT", "30"))


def _fetch_oidc_token(audience: str) -> str | None:
    """Fetch a GCP ID token for the given audience.

    Relies on the GCP metadata server (Cloud Run, GCE) or application
    default credentials. Not used in local dev environments.

    Args:
        audience: Token audience. Must equal TASKS_OIDC_AUDIENCE on the
                  receiving worker (typically WORKER_BASE_URL).

    Returns:
        Signed ID token string, or None if fetching fails.
    """
    try:
        return fetch_id_token(GoogleRequest(), audience)
    except (GoogleAuthError, requests.RequestException) as e:
        logger.error(
            "failed to fetch OIDC ID token",
            extra={"extra_fields": safe_log_context(audience=audience, error=str(e))},
        )
        return None


def enqueue_http(
    task_id: str,
    url_path: str,
    payload: dict,
    correlation_id: str | None = None,
    schedule_time: datetime | None = None,
) -> bool:
    """Enqueue task via HTTP POST to worker.

    Args:
        task_id: Unique task identifier (for logging/tracing).
        url_path: Worker endpoint path (e.g., "/tasks/bookings/invoice").
        payload: Task payload (must be PII-free).
        correlation_id: Optional correlation ID for tracing.
        schedule_time: If set, log warning (HTTP backend doesn't support scheduling).

    Returns:
        True if request succeeded (2xx), False otherwise.
    """
    if schedule_time is not None:
        logger.warning(
            "HTTP backend does not support scheduled tasks",
            extra={"extra_fields": safe_log_context(task_id=task_id)},
        )
        return True

    base_url = _worker_base_url()
    url = f"{base_url}{url_path}"
    headers = {
        "Content-Type": "application/json",
        "X-Correlation-Id": correlation_id or "",
        "X-Task-Id": task_id,
    }

    # Authentication: shared secret for local dev, real OIDC token elsewhere
    if os.environ.get("TASKS_OIDC_AUDIENCE", "") == LOCAL_DEV_AUDIENCE:
        secret = os.environ.get("INTERNAL_TASK_SECRET", "")
        if secret:
            headers["X-Internal-Task-Secret"] = secret
    else:
        token = _fetch_oidc_token(base_url)
        if not token:
            logger.error(
                "HTTP task enqueue aborted: OIDC token unavailable",
                extra={"extra_fields": safe_log_context(task_id=task_id, url_path=url_path)},
            )
            return False
        headers["Authorization"] = f"Bearer {token}"

    try:
        response = requests.post(
            url,
            json=payload,
            headers=headers,
            timeout=_http_timeout(),
        )
        response.raise_for_status()
        logger.info(
            "HTTP task enqueued successfully",
            extra={"extra_fields": safe_log_context(task_id=task_id, url_path=url_path)},
        )
        return True
    except requests.RequestException as e:
        logger.error(
            "HTTP task enqueue failed",
            extra={"extra_fields": safe_log_context(task_id=task_id, url=url, error=str(e))},
        )
        return False
