# Overview: Flask API routes for suppliers and customers with their accounts.

from flask import Blueprint, jsonify, request

from ..decorators import json_body, json_errors
from ..models.parties import PARTY_CUSTOMER, PARTY_SUPPLIER
from ..services import party_service


parties_bp = Blueprint("parties", __name__, url_prefix="/api/parties")

# URL segment -> party type
_SEGMENTS = {"suppliers": PARTY_SUPPLIER, "customers": PARTY_CUSTOMER}


def _party_type(segment: str) -> str:
    return _SEGMENTS[segment]


@parties_bp.post("/<any(suppliers, customers):segment>")
@json_errors("create party")
def create_party_route(segment: str):
    data = json_body()
    if _party_type(segment) == PARTY_SUPPLIER:
        party = party_service.create_supplier(data)
    else:
        party = party_service.create_customer(data)
    account = party_service.get_account(_party_type(segment), party.id)
    return jsonify({**party.to_dict(), "account": account.to_dict()}), 201


@parties_bp.get("/<any(suppliers, customers):segment>")
@json_errors("list parties")
def list_parties_route(segment: str):
    active_only = request.args.get("active_only", "false").lower() == "true"
    parties = party_service.list_parties(_party_type(segment), active_only=active_only)
    return jsonify({"items": [p.to_dict() for p in parties], "count": len(parties)})


@parties_bp.get("/<any(suppliers, customers):segment>/<int:party_id>")
@json_errors("load party")
def get_party_route(segment: str, party_id: int):
    return jsonify(party_service.get_party(_party_type(segment), party_id).to_dict())


@parties_bp.patch("/<any(suppliers, customers):segment>/<int:party_id>")
@json_errors("update party")
def update_party_route(segment: str, party_id: int):
    party = party_service.update_party(_party_type(segment), party_id, json_body())
    return jsonify(party.to_dict())


@parties_bp.get("/<any(suppliers, customers):segment>/<int:party_id>/account")
@json_errors("load account")
def get_account_route(segment: str, party_id: int):
    return jsonify(party_service.get_account(_party_type(segment), party_id).to_dict())
