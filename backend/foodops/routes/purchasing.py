# Overview: Flask API routes for purchase orders and inbound receiving; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..decorators import json_body, json_errors
from ..errors import ValidationError
from ..services import inbound_service, purchasing_service


purchasing_bp = Blueprint("purchasing", __name__, url_prefix="/api/purchasing")


@purchasing_bp.post("/generate")
@json_errors("generate purchase orders")
def generate_route():
    """
    Turn a closed cycle's confirmed demand into one purchase order per supplier.

    Request body:
    {
        "cycle_id": 4,
        "created_by": "..."
    }
    """
    data = json_body()
    if data.get("cycle_id") is None:
        raise ValidationError("cycle_id is required")
    orders = purchasing_service.generate_purchase_orders(data["cycle_id"], created_by=data.get("created_by"))
    return jsonify({"items": [o.to_dict() for o in orders], "count": len(orders)}), 201


@purchasing_bp.post("")
@json_errors("create purchase order")
def create_route():
    data = json_body()
    if data.get("supplier_id") is None:
        raise ValidationError("supplier_id is required")
    order = purchasing_service.create_purchase_order(
        data["supplier_id"],
        data.get("items"),
        memo=data.get("memo"),
        created_by=data.get("created_by"),
    )
    return jsonify(order.to_dict()), 201


@purchasing_bp.get("")
@json_errors("list purchase orders")
def list_route():
    orders = purchasing_service.list_purchase_orders(
        cycle_id=request.args.get("cycle_id", type=int),
        supplier_id=request.args.get("supplier_id", type=int),
        status=request.args.get("status") or None,
    )
    return jsonify({"items": [o.to_dict(include_items=False) for o in orders], "count": len(orders)})


@purchasing_bp.get("/<int:order_id>")
@json_errors("load purchase order")
def get_route(order_id: int):
    return jsonify(purchasing_service.get_purchase_order(order_id).to_dict())


@purchasing_bp.post("/<int:order_id>/reject")
@json_errors("reject purchase order")
def reject_route(order_id: int):
    return jsonify(purchasing_service.reject_purchase_order(order_id).to_dict())


@purchasing_bp.post("/<int:order_id>/receive")
@json_errors("complete inbound")
def receive_route(order_id: int):
    """
    Receive a purchase order into lot inventory.

    Request body (all optional):
    {
        "items": [{"product_id": 3, "quantity": 8, "unit_price": 900}],
        "lot_date": "2025-01-02",
        "received_at": "2025-01-02T00:30:00Z",
        "created_by": "..."
    }
    """
    data = json_body()
    ledger = inbound_service.complete_inbound(
        order_id,
        data.get("items"),
        lot_date=data.get("lot_date"),
        received_at=data.get("received_at"),
        created_by=data.get("created_by"),
    )
    return jsonify({
        "ledger": ledger.to_dict(),
        "order": purchasing_service.get_purchase_order(order_id).to_dict(include_items=False),
    }), 201
