# Overview: Flask API routes for invoices; parses input and returns JSON responses.

# backend/stockbill/routes/invoices.py
"""Invoice API routes"""

from datetime import date

from flask import Blueprint, request, jsonify, g, current_app

from ..services import invoice_service
from ..validation import StockbillError, ValidationError
from ..decorators import require_actor
from . import error_response, query_datetime, query_end_datetime, query_int


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.post("/")
@require_actor
def issue_invoice_route():
    """
    Issue an invoice from a cart.

    Body:
    {
      "items": [{"product_id": 1, "quantity": 2}, {"product_id": 3, "quantity": 1}],
      "tax_percent": 19,
      "notes": "...",
      "customer_name": "..."
    }
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Invalid JSON payload", "kind": "validation"}), 400

        invoice = invoice_service.issue_invoice(
            user_id=g.actor_user_id,
            items=data.get("items"),
            tax_percent=data.get("tax_percent"),
            notes=data.get("notes"),
            customer_name=data.get("customer_name"),
        )
        return jsonify({"invoice": invoice.to_dict()}), 201

    except StockbillError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to issue invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/")
@require_actor
def list_invoices_route():
    """
    List invoices.

    Query params: status (ISSUED | VOIDED | ALL), from, to, user_id, page, per_page
    """
    try:
        result = invoice_service.list_invoices(
            status=request.args.get("status", "ALL"),
            from_date=query_datetime("from"),
            to_date=query_end_datetime("to"),
            user_id=query_int("user_id"),
            page=query_int("page", 1),
            per_page=query_int("per_page", 20),
        )
        return jsonify(result), 200

    except StockbillError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list invoices")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>")
@require_actor
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id)
        return jsonify({"invoice": invoice.to_dict()}), 200
    except StockbillError as e:
        return error_response(e)


@invoices_bp.post("/<int:invoice_id>/void")
@require_actor
def void_invoice_route(invoice_id: int):
    """
    Void an issued invoice and restore its stock.

    Body: {"reason": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        invoice = invoice_service.void_invoice(
            invoice_id,
            g.actor_user_id,
            data.get("reason"),
        )
        return jsonify({"invoice": invoice.to_dict()}), 200

    except StockbillError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to void invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/summary/<day>")
@require_actor
def daily_summary_route(day: str):
    """Totals of non-voided invoices for a YYYY-MM-DD day."""
    try:
        try:
            parsed = date.fromisoformat(day)
        except ValueError:
            raise ValidationError("day must be YYYY-MM-DD")
        return jsonify(invoice_service.daily_summary(parsed)), 200
    except StockbillError as e:
        return error_response(e)
