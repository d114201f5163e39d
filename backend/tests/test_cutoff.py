from datetime import datetime, timedelta

import pytest

from foodops.errors import ValidationError
from foodops.extensions import db
from foodops.models import CutoffCycle
from foodops.models.cutoff import CYCLE_CLOSED, CYCLE_OPEN, PHASE_ADDITIONAL, PHASE_REGULAR
from foodops.services import cutoff_service


T0 = datetime(2025, 1, 1, 0, 0, 0)


@pytest.fixture
def open_cycle(db_session):
    """First cycle, open since T0."""
    cycle = CutoffCycle(sequence=1, status=CYCLE_OPEN, phase=PHASE_REGULAR, opened_at=T0)
    db_session.add(cycle)
    db_session.commit()
    return cycle


def test_first_read_bootstraps_one_regular_cycle(db_session):
    first = cutoff_service.get_current_cycle()
    again = cutoff_service.get_current_cycle()

    assert first.id == again.id
    assert first.phase == PHASE_REGULAR
    assert first.is_open
    assert db.session.query(CutoffCycle).count() == 1


def test_close_opens_successor_at_the_same_instant(open_cycle):
    cutoff = T0 + timedelta(hours=8)

    new_cycle = cutoff_service.close(cutoff, closed_by="kim")

    closed = db.session.get(CutoffCycle, open_cycle.id)
    assert closed.status == CYCLE_CLOSED
    assert closed.closed_at == cutoff
    assert closed.closed_by == "kim"
    assert new_cycle.status == CYCLE_OPEN
    assert new_cycle.opened_at == cutoff
    assert new_cycle.sequence == 2
    assert new_cycle.phase == PHASE_ADDITIONAL


def test_phases_alternate_across_closes(open_cycle):
    cycle = cutoff_service.close(T0 + timedelta(hours=8))
    assert cycle.phase == PHASE_ADDITIONAL
    cycle = cutoff_service.close(T0 + timedelta(hours=20))
    assert cycle.phase == PHASE_REGULAR
    assert db.session.query(CutoffCycle).filter_by(status=CYCLE_OPEN).count() == 1


def test_close_with_stale_expected_cycle_is_a_noop(open_cycle):
    first_id = open_cycle.id
    new_cycle = cutoff_service.close(T0 + timedelta(hours=8))

    again = cutoff_service.close(T0 + timedelta(hours=9), expected_cycle_id=first_id)

    assert again.id == new_cycle.id
    assert db.session.query(CutoffCycle).count() == 2


def test_close_at_opened_at_is_a_noop(open_cycle):
    cycle = cutoff_service.close(T0)
    assert cycle.id == open_cycle.id
    assert db.session.query(CutoffCycle).count() == 1


def test_close_before_opened_at_is_rejected(open_cycle):
    with pytest.raises(ValidationError):
        cutoff_service.close(T0 - timedelta(minutes=1))
    assert db.session.get(CutoffCycle, open_cycle.id).status == CYCLE_OPEN


def test_close_accepts_iso_strings_with_offsets(open_cycle):
    cycle = cutoff_service.close("2025-01-01T17:00:00+09:00")
    assert cycle.opened_at == T0 + timedelta(hours=8)


def test_classify_uses_the_window_containing_placed_at(open_cycle):
    cutoff = T0 + timedelta(hours=8)
    cutoff_service.close(cutoff)

    assert cutoff_service.classify(T0 + timedelta(hours=1)) == PHASE_REGULAR
    assert cutoff_service.classify(cutoff - timedelta(seconds=1)) == PHASE_REGULAR
    assert cutoff_service.classify(cutoff) == PHASE_ADDITIONAL
    assert cutoff_service.classify(cutoff + timedelta(hours=3)) == PHASE_ADDITIONAL
    # Before the first cycle
    assert cutoff_service.classify(T0 - timedelta(days=1)) == PHASE_REGULAR


def test_belongs_to_current(open_cycle):
    cutoff = T0 + timedelta(hours=8)
    cutoff_service.close(cutoff)

    assert cutoff_service.belongs_to_current(cutoff + timedelta(minutes=1))
    assert not cutoff_service.belongs_to_current(cutoff - timedelta(minutes=1))


def test_status_reports_last_cutoff(open_cycle):
    cutoff_service.close(T0 + timedelta(hours=8), closed_by="lee")

    status = cutoff_service.get_status()

    assert status["status"] == CYCLE_OPEN
    assert status["phase"] == PHASE_ADDITIONAL
    assert status["opened_at"] == "2025-01-01T08:00:00Z"
    assert status["last_closed_at"] == "2025-01-01T08:00:00Z"
    assert status["last_closed_by"] == "lee"


def test_list_cycles_newest_first(open_cycle):
    cutoff_service.close(T0 + timedelta(hours=8))
    cutoff_service.close(T0 + timedelta(hours=20))

    assert [c.sequence for c in cutoff_service.list_cycles()] == [3, 2, 1]
