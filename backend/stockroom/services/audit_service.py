# Overview: Best-effort audit log queue (Redis list) and the drain that persists it.

from __future__ import annotations

import json
import uuid

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db, get_redis
from ..models import AuditLog
from stockroom.time_utils import utcnow, to_utc_z
"""
Stockroom Audit Log Semantics (authoritative)

- Mutations enqueue audit jobs AFTER their own transaction commits.
- Enqueue is fire-and-forget: a queue failure is logged and swallowed, and the
  stock mutation still counts as successful. The audit trail is therefore
  best-effort and may have gaps when Redis is unavailable.
- Jobs are JSON objects pushed with LPUSH and consumed with RPOP (FIFO).
- The drain writes AuditLog rows; a failed job is re-queued with attempts+1
  until max_attempts, then dropped with an error log.
- AuditLog.job_id is unique, so replaying a job never duplicates a row.
"""

AUDIT_LOG_JOB_TYPE = "AUDIT_LOG"

# Event and entity names used by the engines
EVENT_INVENTORY_ADJUSTED = "INVENTORY_ADJUSTED"
EVENT_INVENTORY_TRANSFERRED = "INVENTORY_TRANSFERRED"
EVENT_PRICE_TIER_CREATED = "PRICE_TIER_CREATED"
EVENT_PRICE_TIER_UPDATED = "PRICE_TIER_UPDATED"
EVENT_PRODUCT_PRICE_SET = "PRODUCT_PRICE_SET"

ENTITY_INVENTORY = "Inventory"
ENTITY_STOCK_MOVEMENT = "StockMovement"
ENTITY_PRICE_TIER = "PriceTier"
ENTITY_PRODUCT_PRICE_TIER = "ProductPriceTier"


def build_audit_log_data(
    *,
    event_type: str,
    business_id: int | None,
    user_id: int | None,
    outlet_id: int | None,
    entity_type: str,
    entity_id,
    payload: dict | None = None,
) -> dict:
    return {
        "event_type": event_type,
        "business_id": business_id,
        "user_id": user_id,
        "outlet_id": outlet_id,
        "entity_type": entity_type,
        "entity_id": None if entity_id is None else str(entity_id),
        "payload": payload or {},
    }


def enqueue_audit_log_job(data: dict) -> str:
    """
    Push an audit job onto the queue without blocking the caller on failure.

    Returns the job id whether or not the push succeeded.
    """
    job = {
        "id": str(uuid.uuid4()),
        "type": AUDIT_LOG_JOB_TYPE,
        "payload": data,
        "created_at": to_utc_z(utcnow()),
        "attempts": 0,
        "max_attempts": current_app.config["AUDIT_LOG_MAX_ATTEMPTS"],
    }

    if not current_app.config["AUDIT_LOG_ENABLED"]:
        current_app.logger.debug("Audit log disabled; dropping job %s", job["id"])
        return job["id"]

    queue_name = current_app.config["AUDIT_LOG_QUEUE"]
    try:
        get_redis().lpush(queue_name, json.dumps(job, default=str))
    except Exception:
        # Stock state must not depend on ancillary bookkeeping
        current_app.logger.exception(
            "Failed to enqueue audit log job %s (%s)", job["id"], data.get("event_type"),
        )
    else:
        current_app.logger.debug(
            "Audit log job enqueued: id=%s event=%s queue=%s",
            job["id"], data.get("event_type"), queue_name,
        )
    return job["id"]


def persist_audit_log(job: dict) -> AuditLog:
    """Write one AuditLog row for a dequeued job (idempotent on job id)."""
    existing = db.session.query(AuditLog).filter_by(job_id=job["id"]).first()
    if existing is not None:
        return existing

    data = job.get("payload") or {}
    entry = AuditLog(
        job_id=job["id"],
        business_id=data.get("business_id"),
        user_id=data.get("user_id"),
        outlet_id=data.get("outlet_id"),
        event_type=data["event_type"],
        entity_type=data["entity_type"],
        entity_id=data.get("entity_id"),
        payload=data.get("payload"),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def drain_audit_log_queue(limit: int = 100) -> dict:
    """
    Pop up to `limit` jobs and persist them.

    Returns counters: processed, requeued, dropped.
    """
    client = get_redis()
    queue_name = current_app.config["AUDIT_LOG_QUEUE"]
    stats = {"processed": 0, "requeued": 0, "dropped": 0}

    for _ in range(limit):
        raw = client.rpop(queue_name)
        if raw is None:
            break

        try:
            job = json.loads(raw)
        except ValueError:
            current_app.logger.error("Dropping malformed audit job: %r", raw)
            stats["dropped"] += 1
            continue

        if job.get("type") != AUDIT_LOG_JOB_TYPE:
            current_app.logger.error("No handler for job type: %s", job.get("type"))
            stats["dropped"] += 1
            continue

        try:
            persist_audit_log(job)
            db.session.commit()
            stats["processed"] += 1
        except (SQLAlchemyError, KeyError) as exc:
            db.session.rollback()
            attempts = int(job.get("attempts", 0))
            max_attempts = int(job.get("max_attempts", current_app.config["AUDIT_LOG_MAX_ATTEMPTS"]))
            if attempts < max_attempts:
                job["attempts"] = attempts + 1
                client.lpush(queue_name, json.dumps(job, default=str))
                stats["requeued"] += 1
                current_app.logger.warning(
                    "Audit job %s failed (attempt %s/%s), re-queued: %s",
                    job.get("id"), job["attempts"], max_attempts, exc,
                )
            else:
                stats["dropped"] += 1
                current_app.logger.error(
                    "Audit job %s dropped after %s attempts: %s", job.get("id"), attempts, exc,
                )

    current_app.logger.info(
        "Audit queue drained: processed=%s requeued=%s dropped=%s",
        stats["processed"], stats["requeued"], stats["dropped"],
    )
    return stats
