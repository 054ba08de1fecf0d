import unittest
from datetime import datetime

from stockbill import create_app
from stockbill.extensions import db
from stockbill.models import DocumentSequence, DocumentType
from stockbill.services import sequence_service
from stockbill.validation import ConfigurationMissingError, ValidationError


class SequenceServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "SECRET_KEY": "test",
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
            "TESTING": True,
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(DocumentSequence).delete()
        db.session.commit()

    def _seed(self, **kwargs):
        params = {"prefix": "FAC", "include_year": True, "pad_width": 6}
        params.update(kwargs)
        seq = sequence_service.seed_sequence(DocumentType.INVOICE, **params)
        db.session.commit()
        return seq

    def _next_number(self) -> int:
        return (
            db.session.query(DocumentSequence.next_number)
            .filter(DocumentSequence.document_type == DocumentType.INVOICE)
            .scalar()
        )

    def test_format_with_year(self):
        self.assertEqual(
            sequence_service.format_document_number(
                prefix="FAC", number=1, pad_width=6, include_year=True, year=2026
            ),
            "FAC-2026-000001",
        )

    def test_format_without_year(self):
        self.assertEqual(
            sequence_service.format_document_number(
                prefix="INV", number=42, pad_width=4, include_year=False
            ),
            "INV-0042",
        )

    def test_format_counter_wider_than_padding_is_not_truncated(self):
        self.assertEqual(
            sequence_service.format_document_number(
                prefix="FAC", number=123456, pad_width=3, include_year=False
            ),
            "FAC-123456",
        )

    def test_allocate_returns_current_and_advances_by_one(self):
        self._seed()
        now = datetime(2026, 3, 1, 12, 0)

        first = sequence_service.allocate_next(DocumentType.INVOICE, now=now)
        db.session.commit()
        second = sequence_service.allocate_next("invoice", now=now)
        db.session.commit()

        self.assertEqual(first, "FAC-2026-000001")
        self.assertEqual(second, "FAC-2026-000002")
        self.assertEqual(self._next_number(), 3)

    def test_rolled_back_allocation_does_not_consume_a_number(self):
        self._seed()
        now = datetime(2026, 3, 1)

        sequence_service.allocate_next(DocumentType.INVOICE, now=now)
        db.session.rollback()

        self.assertEqual(self._next_number(), 1)
        self.assertEqual(
            sequence_service.allocate_next(DocumentType.INVOICE, now=now),
            "FAC-2026-000001",
        )
        db.session.commit()

    def test_allocate_without_configuration_fails(self):
        with self.assertRaises(ConfigurationMissingError) as ctx:
            sequence_service.allocate_next(DocumentType.INVOICE)
        self.assertEqual(ctx.exception.kind, "configuration_missing")
        db.session.rollback()

    def test_unknown_document_type_is_rejected(self):
        with self.assertRaises(ValidationError):
            sequence_service.allocate_next("RECEIPT")

    def test_seed_starts_at_requested_number(self):
        self._seed(next_number=500, include_year=False, prefix="F")
        self.assertEqual(sequence_service.allocate_next(DocumentType.INVOICE), "F-000500")
        db.session.commit()

    def test_seed_cannot_move_counter_backwards(self):
        self._seed(next_number=10)
        with self.assertRaises(ValidationError):
            sequence_service.seed_sequence(DocumentType.INVOICE, prefix="FAC", next_number=9)
        db.session.rollback()
        self.assertEqual(self._next_number(), 10)

    def test_reseed_keeps_counter_when_next_not_given(self):
        self._seed(next_number=10)
        seq = sequence_service.seed_sequence(
            DocumentType.INVOICE, prefix="NEW", include_year=False, pad_width=3
        )
        db.session.commit()
        self.assertEqual(seq.next_number, 10)
        self.assertEqual(sequence_service.allocate_next(DocumentType.INVOICE), "NEW-010")
        db.session.commit()

    def test_get_sequence_missing(self):
        with self.assertRaises(ConfigurationMissingError):
            sequence_service.get_sequence(DocumentType.INVOICE)


if __name__ == "__main__":
    unittest.main()
