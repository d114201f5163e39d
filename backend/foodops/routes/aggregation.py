# Overview: Flask API routes for order aggregation; read-only reporting views.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import json_errors
from ..services import aggregation_service, cutoff_service, order_service


aggregation_bp = Blueprint("aggregation", __name__, url_prefix="/api/aggregation")

_LIVE_KEY = "foodops.live_aggregation"


def _live_view():
    """One notification-driven view of the current cycle per app."""
    view = current_app.extensions.get(_LIVE_KEY)
    if view is None:
        view = aggregation_service.LiveAggregation(app=current_app._get_current_object())
        current_app.extensions[_LIVE_KEY] = view
    return view


@aggregation_bp.get("")
@json_errors("aggregate orders")
def aggregate_route():
    """
    Category -> supplier -> product rollup of confirmed orders.

    Query parameters:
    - cycle_id: cycle to aggregate (default: the current cycle, served from the live view)
    """
    cycle_id = request.args.get("cycle_id", type=int)
    if cycle_id is None:
        tree = _live_view().snapshot()
    else:
        tree = aggregation_service.aggregate_cycle(cycle_id)
    return jsonify(tree.to_dict())


@aggregation_bp.get("/products/<int:product_id>")
@json_errors("load product order details")
def product_details_route(product_id: int):
    cycle_id = request.args.get("cycle_id", type=int)
    return jsonify(aggregation_service.product_order_details(product_id, cycle_id))


@aggregation_bp.get("/statistics")
@json_errors("compute order statistics")
def statistics_route():
    """Order counts/amounts per regular / additional / pended / rejected bucket."""
    cycle_id = request.args.get("cycle_id", type=int)
    if cycle_id is None:
        cycle_id = cutoff_service.get_current_cycle().id
    orders = aggregation_service.cycle_orders(cycle_id)
    return jsonify({"cycle_id": cycle_id, "statistics": order_service.order_statistics(orders)})
