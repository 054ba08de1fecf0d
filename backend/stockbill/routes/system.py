# backend/stockbill/routes/system.py
"""
System health endpoint.

Checks database connectivity and that the invoice sequence is configured.
"""

import time
from flask import Blueprint, jsonify, current_app
from ..extensions import db
from ..models import DocumentSequence, DocumentType, Product

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        invoice_sequence = (
            db.session.query(DocumentSequence)
            .filter_by(document_type=DocumentType.INVOICE)
            .first()
        )
        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy" if invoice_sequence else "degraded",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "invoice_sequence_configured": invoice_sequence is not None,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    status_code = 503 if database["status"] == "unhealthy" else 200
    return jsonify({"status": database["status"], "database": database}), status_code
