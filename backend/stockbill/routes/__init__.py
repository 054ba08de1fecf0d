# Overview: Shared helpers for API blueprints.

from flask import jsonify, request

from ..validation import StockbillError, ValidationError, validate_positive_int
from stockbill.time_utils import day_bounds, parse_iso_date, parse_iso_datetime


def error_response(exc: StockbillError):
    """Render an engine error with its stable kind and HTTP status."""
    return jsonify(exc.to_dict()), exc.status_code


def query_int(name: str, default: int | None = None) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    return validate_positive_int(name, raw)


def query_datetime(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime")


def query_end_datetime(name: str):
    """Exclusive upper bound; a bare YYYY-MM-DD covers that whole day."""
    raw = (request.args.get(name) or "").strip()
    try:
        if len(raw) == 10:
            return day_bounds(parse_iso_date(raw))[1]
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime")
