# Overview: Supplier/customer master records; each party is created together with its account.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import BusinessRuleViolation, NotFoundError, ValidationError
from ..extensions import db
from ..models import Account, Customer, Supplier
from ..models.parties import PARTY_CUSTOMER, PARTY_SUPPLIER, PARTY_TYPES
from ..validation import ModelValidationPolicy, require_choice, validate_payload
from .concurrency import lock_for_update, run_with_retry


SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "business_number",
        "representative",
        "phone",
        "email",
        "address",
        "sms_recipients",
        "is_active",
    },
    required_on_create={"name"},
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "business_number",
        "representative",
        "phone",
        "email",
        "address",
        "is_active",
    },
    required_on_create={"name"},
)

_PARTY_MODELS = {PARTY_SUPPLIER: Supplier, PARTY_CUSTOMER: Customer}
_POLICIES = {PARTY_SUPPLIER: SUPPLIER_POLICY, PARTY_CUSTOMER: CUSTOMER_POLICY}


def _clean_sms_recipients(value):
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        raise ValidationError("sms_recipients must be a list of phone numbers")
    return [str(v).strip() for v in value if str(v).strip()]


def _create_party(party_type: str, payload: dict):
    model = _PARTY_MODELS[party_type]
    patch = validate_payload(model=model, payload=payload, policy=_POLICIES[party_type], partial=False)
    if "sms_recipients" in patch:
        patch["sms_recipients"] = _clean_sms_recipients(patch["sms_recipients"])

    def _op():
        party = model(**patch)
        db.session.add(party)
        db.session.flush()
        db.session.add(Account(party_type=party_type, party_id=party.id))
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise BusinessRuleViolation(
                f"A {party_type} with business number {patch.get('business_number')} already exists"
            )
        return party

    return run_with_retry(_op)


def create_supplier(payload: dict) -> Supplier:
    return _create_party(PARTY_SUPPLIER, payload)


def create_customer(payload: dict) -> Customer:
    return _create_party(PARTY_CUSTOMER, payload)


def update_party(party_type: str, party_id: int, payload: dict):
    require_choice(party_type, PARTY_TYPES, field="party_type")
    model = _PARTY_MODELS[party_type]
    patch = validate_payload(model=model, payload=payload, policy=_POLICIES[party_type], partial=True)
    if "sms_recipients" in patch:
        patch["sms_recipients"] = _clean_sms_recipients(patch["sms_recipients"])

    def _op():
        party = get_party(party_type, party_id)
        for key, value in patch.items():
            setattr(party, key, value)
        db.session.commit()
        return party

    return run_with_retry(_op)


def get_party(party_type: str, party_id: int):
    require_choice(party_type, PARTY_TYPES, field="party_type")
    party = db.session.get(_PARTY_MODELS[party_type], party_id)
    if party is None:
        raise NotFoundError(
            f"{party_type.capitalize()} {party_id} not found",
            details={"party_type": party_type, "party_id": party_id},
        )
    return party


def get_supplier(supplier_id: int) -> Supplier:
    return get_party(PARTY_SUPPLIER, supplier_id)


def get_customer(customer_id: int) -> Customer:
    return get_party(PARTY_CUSTOMER, customer_id)


def list_parties(party_type: str, *, active_only: bool = False):
    require_choice(party_type, PARTY_TYPES, field="party_type")
    model = _PARTY_MODELS[party_type]
    q = db.session.query(model)
    if active_only:
        q = q.filter(model.is_active.is_(True))
    return q.order_by(model.name.asc(), model.id.asc()).all()


def get_account(party_type: str, party_id: int, *, lock: bool = False) -> Account:
    """Account of an existing party; NotFoundError for a missing party or account."""
    get_party(party_type, party_id)
    query = db.session.query(Account).filter_by(party_type=party_type, party_id=party_id)
    if lock:
        query = lock_for_update(query)
    account = query.first()
    if account is None:
        raise NotFoundError(
            f"No account for {party_type} {party_id}",
            details={"party_type": party_type, "party_id": party_id},
        )
    return account
