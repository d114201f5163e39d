from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


CYCLE_OPEN = "open"
CYCLE_CLOSED = "closed"

PHASE_REGULAR = "regular"
PHASE_ADDITIONAL = "additional"
PHASES = {PHASE_REGULAR, PHASE_ADDITIONAL}


class CutoffCycle(db.Model):
    """
    One ordering window.

    Exactly one row is open at a time. Closing a cycle stamps closed_at and
    inserts its successor (sequence + 1) in the same transaction; the unique
    sequence column guarantees a cycle can only ever get one successor.
    """
    __tablename__ = "cutoff_cycles"
    __table_args__ = (
        db.UniqueConstraint("sequence", name="uq_cutoff_cycles_sequence"),
        db.Index("ix_cutoff_cycles_status", "status"),
        db.Index("ix_cutoff_cycles_window", "opened_at", "closed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sequence = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=CYCLE_OPEN)
    phase = db.Column(db.String(16), nullable=False, default=PHASE_REGULAR)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by = db.Column(db.String(128), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<CutoffCycle seq={self.sequence} {self.status} {self.phase} opened={self.opened_at}>"

    @property
    def is_open(self) -> bool:
        return self.status == CYCLE_OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sequence": self.sequence,
            "status": self.status,
            "phase": self.phase,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
            "closed_by": self.closed_by,
            "version_id": self.version_id,
        }
