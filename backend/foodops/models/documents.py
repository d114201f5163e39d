from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


class DocumentSequence(db.Model):
    """
    Daily counter per document domain.

    last_number is the last number handed out on counter_date; the first
    allocation on a new business day resets it to 1.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("domain", name="uq_doc_sequences_domain"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    domain = db.Column(db.String(32), nullable=False)
    last_number = db.Column(db.Integer, nullable=False, default=0)
    counter_date = db.Column(db.Date, nullable=False)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "domain": self.domain,
            "last_number": self.last_number,
            "counter_date": to_iso_date(self.counter_date),
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }
