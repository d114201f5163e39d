# Overview: Flask API routes for the cutoff cycle; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..decorators import json_body, json_errors
from ..errors import ValidationError
from ..services import cutoff_service


cutoff_bp = Blueprint("cutoff", __name__, url_prefix="/api/cutoff")


@cutoff_bp.get("")
@json_errors("read cutoff status")
def get_status_route():
    return jsonify(cutoff_service.get_status())


@cutoff_bp.post("/close")
@json_errors("close cutoff cycle")
def close_route():
    """
    Close the open cycle and open the next one.

    Request body (all optional):
    {
        "now": "2025-01-01T08:00:00Z",
        "expected_cycle_id": 3,      // no-op if that cycle is already closed
        "closed_by": "operator name"
    }
    """
    data = json_body()
    cycle = cutoff_service.close(
        data.get("now"),
        expected_cycle_id=data.get("expected_cycle_id"),
        closed_by=data.get("closed_by"),
    )
    return jsonify({"cycle": cycle.to_dict()}), 200


@cutoff_bp.get("/cycles")
@json_errors("list cutoff cycles")
def list_cycles_route():
    limit = request.args.get("limit", 50, type=int)
    limit = max(1, min(limit, 500))
    cycles = cutoff_service.list_cycles(limit=limit)
    return jsonify({"items": [c.to_dict() for c in cycles], "count": len(cycles)})


@cutoff_bp.get("/classify")
@json_errors("classify order time")
def classify_route():
    placed_at = request.args.get("placed_at")
    if not placed_at:
        raise ValidationError("placed_at is required")
    cycle = cutoff_service.cycle_for(placed_at)
    return jsonify({
        "placed_at": placed_at,
        "phase": cutoff_service.classify(placed_at),
        "cycle_id": cycle.id if cycle else None,
    })
