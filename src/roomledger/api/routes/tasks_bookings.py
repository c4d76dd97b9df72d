"""Worker routes for post-commit booking tasks.

Invoicing, guest notifications and dashboards are owned by external
collaborators. Each handler verifies task auth, dedupes by task id via
processed_tasks and hands the work off as an outbox event for the
collaborator to consume. Payloads carry ids only (no PII).
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from roomledger.api.task_auth import verify_task_auth
from roomledger.domain.occupancy import resolve_statuses, summarize
from roomledger.infra.db import txn
from roomledger.infra.repositories.outbox_repository import emit_event
from roomledger.observability.correlation import get_correlation_id
from roomledger.observability.logging import get_logger
from roomledger.observability.redaction import safe_log_context

router = APIRouter(prefix="/tasks", tags=["tasks"])

logger = get_logger(__name__)

TASK_ID_HEADERS = ("X-Task-Id", "X-CloudTasks-TaskName")

# Worker path -> outbox event handed to the collaborator
HANDOFF_EVENTS = {
    "/tasks/bookings/create-invoice": "invoice.requested",
    "/tasks/bookings/send-confirmation": "notification.booking_confirmation",
    "/tasks/bookings/send-cancellation": "notification.booking_cancellation",
    "/tasks/payments/send-notification": "notification.payment_status",
}


def _task_id(request: Request) -> str:
    for header in TASK_ID_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    return ""


async def _authenticated_payload(request: Request) -> dict[str, Any] | JSONResponse:
    correlation_id = get_correlation_id()
    if not verify_task_auth(request):
        logger.warning(
            "task auth failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = None
    if not isinstance(payload, dict):
        logger.warning(
            "invalid json body",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return JSONResponse(status_code=400, content={"ok": False, "error": "invalid json"})
    return payload


def _mark_processed(cur, task_id: str) -> bool:
    """Record task_id; False if it was already processed."""
    cur.execute(
        """
        INSERT INTO processed_tasks (task_id)
        VALUES (%s)
        ON CONFLICT (task_id) DO NOTHING
        """,
        (task_id,),
    )
    return cur.rowcount > 0


def _hand_off(
    *,
    task_id: str,
    event_type: str,
    hotel_id: str,
    aggregate_type: str,
    aggregate_id: str,
    payload: dict,
    correlation_id: str | None,
) -> str:
    with txn() as cur:
        if task_id and not _mark_processed(cur, task_id):
            return "duplicate"
        emit_event(
            cur,
            hotel_id=hotel_id,
            event_type=event_type,
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            payload=payload,
            correlation_id=correlation_id,
        )
    return "handed_off"


async def _handle_reservation_task(request: Request, event_type: str) -> JSONResponse:
    payload = await _authenticated_payload(request)
    if isinstance(payload, JSONResponse):
        return payload

    correlation_id = get_correlation_id() or None
    hotel_id = payload.get("hotel_id", "")
    reservation_id = payload.get("reservation_id", "")
    if not hotel_id or not reservation_id:
        return JSONResponse(
            status_code=400, content={"ok": False, "error": "missing required fields"}
        )

    task_id = _task_id(request)
    status = _hand_off(
        task_id=task_id,
        event_type=event_type,
        hotel_id=hotel_id,
        aggregate_type="reservation",
        aggregate_id=reservation_id,
        payload={
            "reservation_id": reservation_id,
            "guest_id": payload.get("guest_id"),
            "status": payload.get("status"),
            "payment_status": payload.get("payment_status"),
        },
        correlation_id=correlation_id,
    )

    logger.info(
        "booking task processed",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                hotel_id=hotel_id,
                reservation_id=reservation_id,
                event_type=event_type,
                result=status,
            )
        },
    )
    return JSONResponse(status_code=200, content={"ok": True, "status": status})


@router.post("/bookings/create-invoice")
async def create_invoice_task(request: Request) -> JSONResponse:
    return await _handle_reservation_task(request, HANDOFF_EVENTS["/tasks/bookings/create-invoice"])


@router.post("/bookings/send-confirmation")
async def send_confirmation_task(request: Request) -> JSONResponse:
    return await _handle_reservation_task(
        request, HANDOFF_EVENTS["/tasks/bookings/send-confirmation"]
    )


@router.post("/bookings/send-cancellation")
async def send_cancellation_task(request: Request) -> JSONResponse:
    return await _handle_reservation_task(
        request, HANDOFF_EVENTS["/tasks/bookings/send-cancellation"]
    )


@router.post("/payments/send-notification")
async def send_payment_notification_task(request: Request) -> JSONResponse:
    return await _handle_reservation_task(
        request, HANDOFF_EVENTS["/tasks/payments/send-notification"]
    )


@router.post("/dashboard/refresh")
async def refresh_dashboard_task(request: Request) -> JSONResponse:
    """Publish the hotel's current room status summary for dashboards."""
    payload = await _authenticated_payload(request)
    if isinstance(payload, JSONResponse):
        return payload

    hotel_id = payload.get("hotel_id", "")
    if not hotel_id:
        return JSONResponse(
            status_code=400, content={"ok": False, "error": "missing required fields"}
        )

    summary = summarize(resolve_statuses(hotel_id))
    status = _hand_off(
        task_id=_task_id(request),
        event_type="dashboard.refresh",
        hotel_id=hotel_id,
        aggregate_type="hotel",
        aggregate_id=hotel_id,
        payload=summary,
        correlation_id=get_correlation_id() or None,
    )
    return JSONResponse(status_code=200, content={"ok": True, "status": status})
