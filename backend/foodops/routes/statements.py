# Overview: Flask API routes for account statements and balance verification.

from flask import Blueprint, jsonify, request

from ..decorators import json_errors
from ..errors import ValidationError
from ..services import statement_service


statements_bp = Blueprint("statements", __name__, url_prefix="/api/statements")


@statements_bp.get("/<party_type>/<int:party_id>")
@json_errors("generate statement")
def statement_route(party_type: str, party_id: int):
    """
    Statement of one party's account over a period.

    Query parameters:
    - start, end: required; a date covers the whole business day, a datetime is used as is
    """
    start = request.args.get("start")
    end = request.args.get("end")
    if not start or not end:
        raise ValidationError("start and end are required")
    statement = statement_service.generate_statement(party_type, party_id, start, end)
    return jsonify(statement.to_dict())


@statements_bp.get("/<party_type>/<int:party_id>/verify")
@json_errors("verify account")
def verify_route(party_type: str, party_id: int):
    return jsonify(statement_service.verify_account(party_type, party_id))
