# Overview: Flask API routes for ledger postings and payments; parses input and returns JSON responses.

"""
Ledger routes.

Postings are write-once: there are no update or delete endpoints. A wrong
posting is corrected by posting its counterpart.

Time semantics:
- posted_at / paid_at / collected_at accept ISO-8601 with Z or offsets and
  default to now.
- start / end list filters accept a date (whole business day) or a datetime;
  both bounds are inclusive.
"""
from flask import Blueprint, jsonify, request

from ..decorators import json_body, json_errors
from ..errors import ValidationError
from ..services import ledger_service
from ..validation import coerce_date, optional_range


ledgers_bp = Blueprint("ledgers", __name__, url_prefix="/api/ledgers")


def _list_args():
    start, end = optional_range(request.args.get("start"), request.args.get("end"))
    limit = max(1, min(request.args.get("limit", 200, type=int), 1000))
    return start, end, limit


def _required_id(data: dict, key: str) -> int:
    if data.get(key) is None:
        raise ValidationError(f"{key} is required")
    return data[key]


@ledgers_bp.post("/purchases")
@json_errors("post purchase ledger")
def post_purchase_route():
    """
    Request body:
    {
        "supplier_id": 1,
        "items": [{"product_id": 3, "product_name": "...", "quantity": 2, "unit_price": 900}],
        "amount": 1800,              // required when items are omitted
        "posted_at": "...",
        "lot_date": "2025-01-02",
        "note": "..."
    }
    """
    data = json_body()
    ledger = ledger_service.post_purchase(
        _required_id(data, "supplier_id"),
        data.get("items"),
        amount=data.get("amount"),
        posted_at=data.get("posted_at"),
        purchase_order_id=data.get("purchase_order_id"),
        lot_date=coerce_date(data["lot_date"], field="lot_date") if data.get("lot_date") else None,
        note=data.get("note"),
        created_by=data.get("created_by"),
    )
    return jsonify(ledger.to_dict()), 201


@ledgers_bp.post("/sales")
@json_errors("post sale ledger")
def post_sale_route():
    data = json_body()
    ledger = ledger_service.post_sale(
        _required_id(data, "customer_id"),
        data.get("items"),
        amount=data.get("amount"),
        posted_at=data.get("posted_at"),
        sale_order_id=data.get("sale_order_id"),
        note=data.get("note"),
        created_by=data.get("created_by"),
    )
    return jsonify(ledger.to_dict()), 201


@ledgers_bp.post("/payouts")
@json_errors("post supplier payout")
def post_payout_route():
    data = json_body()
    payout = ledger_service.post_payout(
        _required_id(data, "supplier_id"),
        data.get("amount"),
        method=data.get("method", "bank_transfer"),
        paid_at=data.get("paid_at"),
        memo=data.get("memo"),
        created_by=data.get("created_by"),
    )
    return jsonify(payout.to_dict()), 201


@ledgers_bp.post("/collections")
@json_errors("post customer collection")
def post_collection_route():
    data = json_body()
    collection = ledger_service.post_collection(
        _required_id(data, "customer_id"),
        data.get("amount"),
        method=data.get("method", "bank_transfer"),
        collected_at=data.get("collected_at"),
        memo=data.get("memo"),
        created_by=data.get("created_by"),
    )
    return jsonify(collection.to_dict()), 201


@ledgers_bp.get("/purchases")
@json_errors("list purchase ledgers")
def list_purchases_route():
    start, end, limit = _list_args()
    rows = ledger_service.list_purchase_ledgers(
        supplier_id=request.args.get("supplier_id", type=int), start=start, end=end, limit=limit
    )
    return jsonify({"items": [r.to_dict(include_items=False) for r in rows], "count": len(rows)})


@ledgers_bp.get("/sales")
@json_errors("list sale ledgers")
def list_sales_route():
    start, end, limit = _list_args()
    rows = ledger_service.list_sale_ledgers(
        customer_id=request.args.get("customer_id", type=int), start=start, end=end, limit=limit
    )
    return jsonify({"items": [r.to_dict(include_items=False) for r in rows], "count": len(rows)})


@ledgers_bp.get("/payouts")
@json_errors("list supplier payouts")
def list_payouts_route():
    start, end, limit = _list_args()
    rows = ledger_service.list_payouts(
        supplier_id=request.args.get("supplier_id", type=int), start=start, end=end, limit=limit
    )
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)})


@ledgers_bp.get("/collections")
@json_errors("list customer collections")
def list_collections_route():
    start, end, limit = _list_args()
    rows = ledger_service.list_collections(
        customer_id=request.args.get("customer_id", type=int), start=start, end=end, limit=limit
    )
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)})


@ledgers_bp.get("/<kind>/<int:posting_id>")
@json_errors("load posting")
def get_posting_route(kind: str, posting_id: int):
    """kind is one of purchase, sale, payout, collection."""
    return jsonify(ledger_service.get_posting(kind, posting_id).to_dict())
