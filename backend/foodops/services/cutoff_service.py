# Overview: Cutoff-cycle state machine; decides which window (and phase) an order belongs to.

"""
Cutoff cycles

- There is always exactly one open cycle. The very first one is created on
  demand, opened at 00:00 of the business day, with phase "regular".
- close(now) stamps the open cycle closed at `now` and opens its successor at
  the same instant with the opposite phase: closing a regular window opens an
  "additional" window for orders that arrive after the cutoff, and closing
  that one opens the next regular window.
- classify(placed_at) is the phase of the cycle whose [opened_at, closed_at)
  window contains placed_at. Anything before the first cycle is regular.

Concurrent close() calls targeting the same cycle produce one transition:
the cycle row is versioned and `sequence` is unique, so the loser retries,
sees its target already closed, and returns the successor unchanged.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import CutoffCycle
from ..models.cutoff import CYCLE_CLOSED, CYCLE_OPEN, PHASE_ADDITIONAL, PHASE_REGULAR
from ..time_utils import business_today, start_of_business_day, utcnow
from ..validation import coerce_datetime
from .concurrency import lock_for_update, run_with_retry


def _next_phase(phase: str) -> str:
    return PHASE_ADDITIONAL if phase == PHASE_REGULAR else PHASE_REGULAR


def _open_cycle(*, lock: bool = False) -> CutoffCycle | None:
    query = (
        db.session.query(CutoffCycle)
        .filter(CutoffCycle.status == CYCLE_OPEN)
        .order_by(CutoffCycle.sequence.desc())
    )
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_current_cycle() -> CutoffCycle:
    """The open cycle, bootstrapping the first one if the table is empty."""
    cycle = _open_cycle()
    if cycle is not None:
        return cycle

    def _op():
        existing = _open_cycle()
        if existing is not None:
            return existing
        cycle = CutoffCycle(
            sequence=1,
            status=CYCLE_OPEN,
            phase=PHASE_REGULAR,
            opened_at=start_of_business_day(business_today()),
        )
        db.session.add(cycle)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            return _open_cycle()
        return cycle

    return run_with_retry(_op)


def get_cycle(cycle_id: int) -> CutoffCycle:
    cycle = db.session.get(CutoffCycle, cycle_id)
    if cycle is None:
        raise NotFoundError(f"Cutoff cycle {cycle_id} not found", details={"cycle_id": cycle_id})
    return cycle


def list_cycles(*, limit: int = 50) -> list[CutoffCycle]:
    return (
        db.session.query(CutoffCycle)
        .order_by(CutoffCycle.sequence.desc())
        .limit(limit)
        .all()
    )


def get_status() -> dict:
    """{status, phase, opened_at, closed_at, ...} of the current cycle plus the last cutoff."""
    cycle = get_current_cycle()
    previous = (
        db.session.query(CutoffCycle)
        .filter(CutoffCycle.sequence == cycle.sequence - 1)
        .first()
    )
    data = cycle.to_dict()
    data["cycle_id"] = cycle.id
    data["last_closed_at"] = previous.to_dict()["closed_at"] if previous else None
    data["last_closed_by"] = previous.closed_by if previous else None
    return data


def close(now: datetime | None = None, *, expected_cycle_id: int | None = None, closed_by: str | None = None) -> CutoffCycle:
    """
    Close the open cycle at `now` and open its successor at the same instant.

    expected_cycle_id pins the cycle the caller means to close; when omitted
    it is the cycle that is open at call time. If that cycle has already been
    closed by someone else the current cycle is returned and nothing changes.
    Returns the (new) open cycle.
    """
    now = coerce_datetime(now, field="now") if now is not None else utcnow()
    target_id = expected_cycle_id if expected_cycle_id is not None else get_current_cycle().id

    def _op():
        current = _open_cycle(lock=True)
        if current is None:
            current = get_current_cycle()
        if current.id != target_id:
            return current
        if now < current.opened_at:
            raise ValidationError(
                "Cutoff time is before the cycle opened",
                details={"opened_at": current.to_dict()["opened_at"]},
            )
        if now == current.opened_at:
            # Zero-length window: the successor was opened at this very instant
            return current

        current.status = CYCLE_CLOSED
        current.closed_at = now
        current.closed_by = closed_by
        successor = CutoffCycle(
            sequence=current.sequence + 1,
            status=CYCLE_OPEN,
            phase=_next_phase(current.phase),
            opened_at=now,
        )
        db.session.add(successor)
        try:
            db.session.commit()
        except IntegrityError:
            # A concurrent close already inserted the successor
            db.session.rollback()
            return _open_cycle()

        current_app.logger.info(
            "Cutoff cycle %s (%s) closed at %s by %s; cycle %s (%s) opened",
            current.sequence,
            current.phase,
            now.isoformat(),
            closed_by or "system",
            successor.sequence,
            successor.phase,
        )
        return successor

    return run_with_retry(_op)


def cycle_for(placed_at: datetime) -> CutoffCycle | None:
    """The cycle whose [opened_at, closed_at) window contains placed_at."""
    placed_at = coerce_datetime(placed_at, field="placed_at")
    return (
        db.session.query(CutoffCycle)
        .filter(
            CutoffCycle.opened_at <= placed_at,
            or_(CutoffCycle.closed_at.is_(None), CutoffCycle.closed_at > placed_at),
        )
        .order_by(CutoffCycle.sequence.desc())
        .first()
    )


def classify(placed_at: datetime) -> str:
    cycle = cycle_for(placed_at)
    return cycle.phase if cycle is not None else PHASE_REGULAR


def belongs_to_current(placed_at: datetime) -> bool:
    return coerce_datetime(placed_at, field="placed_at") >= get_current_cycle().opened_at
