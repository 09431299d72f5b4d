from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError

from visitor_stats.extensions import request_metadata
from visitor_stats.schemas import (
    ApiResponse,
    BatchDeleteRequest,
    BatchDeleteResponse,
    BlacklistResponse,
    EditVisitorRequest,
    RecordVisitorResponse,
    SaveBlacklistRequest,
    SaveBlacklistResponse,
    VerifyIpResponse,
    VisitorDataResponse,
)
from visitor_stats.services.recording import REASON_RESTRICTED

api_bp = Blueprint("api", __name__)


def _services():
    return current_app.extensions["services"]


def _reply(response: ApiResponse) -> tuple:
    # Logical failures still travel as 200; ``success`` carries the outcome.
    return jsonify(response.to_json()), 200


def _validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body."
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"Invalid request body: {location} {first.get('msg', '')}".strip()


def _parse_id(raw: str) -> int | None:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


@api_bp.get("/health")
def health() -> tuple:
    database = _services()["database"]
    reachable = database.ping()
    return jsonify({"status": "ok" if reachable else "degraded", "database": reachable}), 200


@api_bp.get("/verify-ip")
def verify_ip() -> tuple:
    decision = _services()["access"].check_access(request_metadata())
    return _reply(VerifyIpResponse(success=True, allow_access=decision.allowed))


@api_bp.post("/record-visitor")
def record_visitor() -> tuple:
    outcome = _services()["recorder"].record_visit(request_metadata())
    if outcome.ok:
        return _reply(
            RecordVisitorResponse(
                success=True,
                msg="Visit recorded.",
                visitor_ip=outcome.address,
                visit_time=outcome.timestamp,
            )
        )

    message = (
        "Access from this address is restricted."
        if outcome.reason == REASON_RESTRICTED
        else "Failed to record visit."
    )
    return _reply(
        RecordVisitorResponse(
            success=False,
            msg=message,
            visitor_ip=outcome.address,
            reason=outcome.reason,
        )
    )


@api_bp.get("/get-visitor-data")
def get_visitor_data() -> tuple:
    stats = _services()["recorder"].get_statistics()
    return _reply(
        VisitorDataResponse(
            success=True,
            total_count=stats.total_count,
            last_visit=stats.last_visit,
            ip_list=stats.records,
        )
    )


@api_bp.delete("/delete-visitor/<visitor_id>")
def delete_visitor(visitor_id: str) -> tuple:
    record_id = _parse_id(visitor_id)
    if record_id is None:
        return _reply(ApiResponse(success=False, msg="Invalid visitor id."))
    result = _services()["store"].delete_one(record_id)
    return _reply(ApiResponse(success=result.ok, msg=result.message))


@api_bp.delete("/batch-delete-visitor")
def batch_delete_visitor() -> tuple:
    try:
        payload = BatchDeleteRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        return _reply(BatchDeleteResponse(success=False, msg=_validation_message(exc)))

    result = _services()["store"].delete_many(payload.ids)
    return _reply(
        BatchDeleteResponse(success=result.ok, msg=result.message, deleted=result.affected)
    )


@api_bp.put("/edit-visitor/<visitor_id>")
def edit_visitor(visitor_id: str) -> tuple:
    record_id = _parse_id(visitor_id)
    if record_id is None:
        return _reply(ApiResponse(success=False, msg="Invalid visitor id."))
    try:
        payload = EditVisitorRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        return _reply(ApiResponse(success=False, msg=_validation_message(exc)))

    result = _services()["store"].set_annotation(record_id, payload.remark)
    return _reply(ApiResponse(success=result.ok, msg=result.message))


@api_bp.get("/get-blacklist")
def get_blacklist() -> tuple:
    entries = _services()["denylist"].list_all()
    return _reply(BlacklistResponse(success=True, blacklist=entries))


@api_bp.post("/save-blacklist")
def save_blacklist() -> tuple:
    try:
        payload = SaveBlacklistRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        return _reply(SaveBlacklistResponse(success=False, msg=_validation_message(exc)))

    result = _services()["denylist"].replace_all(payload.blacklist)
    return _reply(
        SaveBlacklistResponse(success=result.ok, msg=result.message, failed=result.failed)
    )


@api_bp.delete("/reset-visitor")
def reset_visitor() -> tuple:
    result = _services()["store"].reset_all()
    return _reply(ApiResponse(success=result.ok, msg=result.message))
