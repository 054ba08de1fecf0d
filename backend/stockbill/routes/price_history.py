# Overview: Flask API routes for price history reporting.

from flask import Blueprint, request, jsonify

from ..services import price_history_service
from ..validation import StockbillError, ValidationError
from ..decorators import require_actor
from stockbill.time_utils import day_bounds, parse_iso_date
from . import error_response, query_int


price_history_bp = Blueprint("price_history", __name__, url_prefix="/api/price-history")


def _date_range():
    """from/to are YYYY-MM-DD, both inclusive."""
    try:
        from_day = parse_iso_date(request.args.get("from"))
        to_day = parse_iso_date(request.args.get("to"))
    except ValueError:
        raise ValidationError("from and to must be YYYY-MM-DD")

    start = day_bounds(from_day)[0] if from_day else None
    end = day_bounds(to_day)[1] if to_day else None
    if start and end and start >= end:
        raise ValidationError("from must not be after to")
    return start, end


@price_history_bp.get("/")
@require_actor
def list_history_route():
    try:
        start, end = _date_range()
        result = price_history_service.list_history(
            from_date=start,
            to_date=end,
            product_id=query_int("product_id"),
            user_id=query_int("user_id"),
            page=query_int("page", 1),
            per_page=query_int("per_page", 20),
        )
        return jsonify(result), 200
    except StockbillError as e:
        return error_response(e)


@price_history_bp.get("/stats")
@require_actor
def statistics_route():
    try:
        start, end = _date_range()
        if start is None or end is None:
            raise ValidationError("from and to are required")
        return jsonify(price_history_service.price_change_statistics(start, end)), 200
    except StockbillError as e:
        return error_response(e)


@price_history_bp.get("/variations")
@require_actor
def variations_route():
    try:
        items = price_history_service.top_price_variations(
            days=query_int("days", 30),
            limit=query_int("limit", 10),
        )
        return jsonify({"items": items, "count": len(items)}), 200
    except StockbillError as e:
        return error_response(e)


@price_history_bp.get("/margins/<int:product_id>")
@require_actor
def margin_route(product_id: int):
    try:
        return jsonify(price_history_service.margin_analysis(product_id)), 200
    except StockbillError as e:
        return error_response(e)
