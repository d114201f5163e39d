# Overview: Flask API routes for products and lot inventory; parses input and returns JSON responses.

"""
Inventory routes.

Time semantics:
- lot_date is a business-calendar date (YYYY-MM-DD); it defaults to today in
  the business timezone.
- Stock never goes negative; a consume larger than the available stock is
  answered with 409 INSUFFICIENT_STOCK and changes nothing.
"""
from flask import Blueprint, jsonify, request

from ..decorators import json_body, json_errors
from ..services import inventory_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/products")
@json_errors("create product")
def create_product_route():
    product = inventory_service.create_product(json_body())
    return jsonify(product.to_dict()), 201


@inventory_bp.get("/products")
@json_errors("list products")
def list_products_route():
    products = inventory_service.list_products(
        category=request.args.get("category") or None,
        supplier_id=request.args.get("supplier_id", type=int),
        active_only=request.args.get("active_only", "false").lower() == "true",
    )
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)})


@inventory_bp.get("/products/<int:product_id>")
@json_errors("load product")
def get_product_route(product_id: int):
    include_lots = request.args.get("include_lots", "false").lower() == "true"
    return jsonify(inventory_service.get_product(product_id).to_dict(include_lots=include_lots))


@inventory_bp.patch("/products/<int:product_id>")
@json_errors("update product")
def update_product_route(product_id: int):
    product = inventory_service.update_product(product_id, json_body())
    return jsonify(product.to_dict())


@inventory_bp.post("/products/<int:product_id>/lots")
@json_errors("receive lot")
def receive_lot_route(product_id: int):
    """
    Receive stock into a product lot.

    Request body:
    {
        "quantity": 10,
        "price": 5000,
        "lot_date": "2025-01-02"   // optional
    }

    A second receipt on the same lot_date merges into the existing lot.
    """
    data = json_body()
    product = inventory_service.receive_lot(
        product_id,
        data.get("quantity"),
        data.get("price"),
        lot_date=data.get("lot_date"),
    )
    return jsonify(product.to_dict(include_lots=True)), 201


@inventory_bp.post("/products/<int:product_id>/consume")
@json_errors("consume lots")
def consume_lots_route(product_id: int):
    data = json_body()
    allocations = inventory_service.consume_lots(product_id, data.get("quantity"))
    return jsonify({
        "product_id": product_id,
        "allocations": [a.to_dict() for a in allocations],
        "cost_amount": sum(a.cost for a in allocations),
        "stock_quantity": inventory_service.get_product(product_id).stock_quantity,
    })


@inventory_bp.get("/products/<int:product_id>/lots")
@json_errors("load lot history")
def lot_history_route(product_id: int):
    lots = inventory_service.get_lot_history(product_id)
    return jsonify({"product_id": product_id, "items": [lot.to_dict() for lot in lots], "count": len(lots)})


@inventory_bp.get("/products/<int:product_id>/summary")
@json_errors("load stock summary")
def stock_summary_route(product_id: int):
    return jsonify(inventory_service.get_stock_summary(product_id))
