# Overview: Service-layer operations for document sequences; allocates gap-free document numbers.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence, DocumentType
from ..validation import ConfigurationMissingError, ValidationError
from stockbill.time_utils import utcnow
"""
Sequence invariants:

- One DocumentSequence row per DocumentType, seeded out-of-band.
- allocate_next() advances the counter with a single UPDATE in the caller's
  transaction and never commits. A rolled-back caller leaves the counter
  untouched, so numbers are consumed only by committed documents.
- The UPDATE takes the row lock (or, on SQLite, runs under BEGIN IMMEDIATE),
  so concurrent allocators serialize and never read the same value.
"""


def _coerce_document_type(document_type) -> DocumentType:
    if isinstance(document_type, DocumentType):
        return document_type
    try:
        return DocumentType(str(document_type).upper())
    except ValueError:
        raise ValidationError(f"Unknown document type: {document_type}")


def format_document_number(
    *,
    prefix: str,
    number: int,
    pad_width: int,
    include_year: bool,
    year: int | None = None,
) -> str:
    """prefix-[year-]zero-padded counter, e.g. FAC-2026-000001 or FAC-000001."""
    padded = f"{number:0{pad_width}d}"
    if include_year:
        if year is None:
            year = utcnow().year
        return f"{prefix}-{year}-{padded}"
    return f"{prefix}-{padded}"


def get_sequence(document_type) -> DocumentSequence:
    doc_type = _coerce_document_type(document_type)
    seq = db.session.query(DocumentSequence).filter_by(document_type=doc_type).first()
    if seq is None:
        raise ConfigurationMissingError(
            f"No document sequence configured for {doc_type.value}",
            details={"document_type": doc_type.value},
        )
    return seq


def allocate_next(document_type, *, now: datetime | None = None) -> str:
    """
    Allocate the next document number for a type inside the current transaction.

    The increment is a single conditional UPDATE (next_number = next_number + 1);
    the allocated value is the stored value minus one after that update.
    Raises ConfigurationMissingError when the type has no sequence row.
    """
    doc_type = _coerce_document_type(document_type)

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == doc_type)
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        raise ConfigurationMissingError(
            f"No document sequence configured for {doc_type.value}",
            details={"document_type": doc_type.value},
        )

    seq = (
        db.session.query(DocumentSequence)
        .filter_by(document_type=doc_type)
        .populate_existing()
        .one()
    )
    allocated = seq.next_number - 1

    return format_document_number(
        prefix=seq.prefix,
        number=allocated,
        pad_width=seq.pad_width,
        include_year=seq.include_year,
        year=(now or utcnow()).year,
    )


def seed_sequence(
    document_type,
    *,
    prefix: str,
    include_year: bool = True,
    pad_width: int = 6,
    next_number: int | None = None,
) -> DocumentSequence:
    """
    Create or reconfigure a sequence row. Does not commit.

    next_number may only move forward; reusing an already issued number
    is rejected.
    """
    doc_type = _coerce_document_type(document_type)
    prefix = (prefix or "").strip()
    if not prefix:
        raise ValidationError("prefix is required")
    if pad_width < 1:
        raise ValidationError("pad_width must be >= 1")
    if next_number is not None and next_number < 1:
        raise ValidationError("next_number must be >= 1")

    seq = db.session.query(DocumentSequence).filter_by(document_type=doc_type).first()
    if seq is None:
        seq = DocumentSequence(
            document_type=doc_type,
            next_number=next_number or 1,
            prefix=prefix,
            include_year=include_year,
            pad_width=pad_width,
        )
        db.session.add(seq)
    else:
        if next_number is not None and next_number < seq.next_number:
            raise ValidationError(
                f"next_number cannot move backwards (currently {seq.next_number})"
            )
        seq.prefix = prefix
        seq.include_year = include_year
        seq.pad_width = pad_width
        if next_number is not None:
            seq.next_number = next_number

    db.session.flush()
    return seq


def list_sequences() -> list[DocumentSequence]:
    return db.session.query(DocumentSequence).order_by(DocumentSequence.document_type.asc()).all()
