# Overview: Flask API routes for sale orders and outbound shipment; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..decorators import json_body, json_errors
from ..errors import ValidationError
from ..services import order_service, outbound_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@json_errors("create sale order")
def create_order_route():
    """
    Place a sale order.

    Request body:
    {
        "customer_id": 1,
        "items": [{"product_id": 3, "quantity": 2, "unit_price": 1200}],
        "placed_at": "2025-01-01T09:00:00Z",   // optional, defaults to now
        "memo": "...",
        "created_by": "..."
    }

    Orders with line errors are stored as pended with the reasons;
    clean orders are confirmed right away.
    """
    data = json_body()
    if data.get("customer_id") is None:
        raise ValidationError("customer_id is required")
    order = order_service.create_sale_order(
        data["customer_id"],
        data.get("items"),
        placed_at=data.get("placed_at"),
        memo=data.get("memo"),
        created_by=data.get("created_by"),
    )
    return jsonify(order.to_dict()), 201


@orders_bp.get("")
@json_errors("list sale orders")
def list_orders_route():
    limit = max(1, min(request.args.get("limit", 200, type=int), 1000))
    offset = max(0, request.args.get("offset", 0, type=int))
    rows, total = order_service.list_sale_orders(
        cycle_id=request.args.get("cycle_id", type=int),
        customer_id=request.args.get("customer_id", type=int),
        status=request.args.get("status") or None,
        phase=request.args.get("phase") or None,
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [o.to_dict(include_items=False) for o in rows],
        "count": len(rows),
        "total": total,
        "limit": limit,
        "offset": offset,
    })


@orders_bp.get("/<int:order_id>")
@json_errors("load sale order")
def get_order_route(order_id: int):
    return jsonify(order_service.get_sale_order(order_id).to_dict())


@orders_bp.post("/<int:order_id>/confirm")
@json_errors("confirm sale order")
def confirm_order_route(order_id: int):
    return jsonify(order_service.confirm_order(order_id).to_dict())


@orders_bp.post("/<int:order_id>/pend")
@json_errors("pend sale order")
def pend_order_route(order_id: int):
    order = order_service.pend_order(order_id, json_body().get("reason"))
    return jsonify(order.to_dict())


@orders_bp.post("/<int:order_id>/reject")
@json_errors("reject sale order")
def reject_order_route(order_id: int):
    order = order_service.reject_order(order_id, json_body().get("reason"))
    return jsonify(order.to_dict())


@orders_bp.post("/<int:order_id>/ship")
@json_errors("complete outbound")
def ship_order_route(order_id: int):
    """
    Ship a confirmed order: FIFO lot consumption, sale ledger and customer debit.

    Request body (all optional):
    {
        "items": [{"product_id": 3, "quantity": 1}],   // partial shipment
        "shipped_at": "2025-01-02T01:00:00Z",
        "created_by": "..."
    }
    """
    data = json_body()
    ledger = outbound_service.complete_outbound(
        order_id,
        data.get("items"),
        shipped_at=data.get("shipped_at"),
        created_by=data.get("created_by"),
    )
    return jsonify({
        "ledger": ledger.to_dict(),
        "order": order_service.get_sale_order(order_id).to_dict(include_items=False),
    }), 201
