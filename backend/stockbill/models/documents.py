from __future__ import annotations

import enum

from ..extensions import db
from stockbill.time_utils import to_utc_z


class DocumentType(str, enum.Enum):
    INVOICE = "INVOICE"


class DocumentSequence(db.Model):
    """
    Store-backed counter for one document type.

    next_number is the number the next successful allocation will use. It
    only ever moves forward, and only when the allocating transaction commits.
    Rows are seeded out-of-band (CLI `sequences seed`), not on demand.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", name="uq_document_sequences_type"),
        db.CheckConstraint("next_number >= 1", name="ck_document_sequences_next_positive"),
        db.CheckConstraint("pad_width >= 1", name="ck_document_sequences_pad_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(
        db.Enum(DocumentType, name="document_type", native_enum=False, length=32),
        nullable=False,
    )
    next_number = db.Column(db.Integer, nullable=False, default=1)
    prefix = db.Column(db.String(16), nullable=False)
    include_year = db.Column(db.Boolean, nullable=False, default=True)
    pad_width = db.Column(db.Integer, nullable=False, default=6)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type.value,
            "next_number": self.next_number,
            "prefix": self.prefix,
            "include_year": self.include_year,
            "pad_width": self.pad_width,
            "updated_at": to_utc_z(self.updated_at),
        }
