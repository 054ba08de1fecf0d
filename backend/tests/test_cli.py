from stockbill.services import invoice_service

from conftest import ACTOR_ID


def test_invoice_summary_for_a_day(app, db_session, invoice_sequence, product_a):
    invoice = invoice_service.issue_invoice(
        user_id=ACTOR_ID,
        items=[{"product_id": product_a.id, "quantity": 1}],
    )
    day = invoice.issued_at.date().isoformat()

    result = app.test_cli_runner().invoke(args=["invoices", "summary", "--date", day])

    assert result.exit_code == 0, result.output
    assert f"Date:     {day}" in result.output
    assert "Invoices: 1" in result.output
    assert "Total:    2737" in result.output


def test_invoice_summary_rejects_malformed_date(app, db_session):
    result = app.test_cli_runner().invoke(args=["invoices", "summary", "--date", "31/01/2026"])

    assert result.exit_code == 2
    assert "Invalid value for '--date'" in result.output
    assert "Traceback" not in result.output
