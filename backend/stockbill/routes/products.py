# Overview: Flask API routes for products, stock movements and product price history.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import products_service, stock_service, price_history_service
from ..validation import StockbillError, ValidationError, validate_optional_text
from ..decorators import require_actor
from . import error_response, query_int


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("/")
@require_actor
def list_products_route():
    try:
        result = products_service.list_products(
            include_inactive=request.args.get("include_inactive", "").lower() in {"1", "true"},
            search=request.args.get("q"),
            page=query_int("page"),
            per_page=query_int("per_page"),
        )
        return jsonify(result), 200
    except StockbillError as e:
        return error_response(e)


@products_bp.post("/")
@require_actor
def create_product_route():
    try:
        patch = products_service.validate_product_payload(request.get_json(silent=True), partial=False)
        product = products_service.create_product(patch=patch)
        return jsonify({"product": product.to_dict()}), 201

    except StockbillError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_actor
def get_product_route(product_id: int):
    try:
        return jsonify({"product": products_service.get_product(product_id).to_dict()}), 200
    except StockbillError as e:
        return error_response(e)


@products_bp.route("/<int:product_id>", methods=["PUT", "PATCH"])
@require_actor
def update_product_route(product_id: int):
    """
    Update a product. Price changes are recorded in the price history.

    Body: product fields, plus optional "reason" for the audit entry.
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")
        data = dict(data)
        reason = validate_optional_text("reason", data.pop("reason", None), 255)

        patch = products_service.validate_product_payload(data, partial=True)
        if not patch:
            raise ValidationError("No fields to update")

        product = products_service.update_product(
            product_id,
            patch=patch,
            user_id=g.actor_user_id,
            reason=reason,
        )
        return jsonify({"product": product.to_dict()}), 200

    except StockbillError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_actor
def deactivate_product_route(product_id: int):
    try:
        product = products_service.deactivate_product(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except StockbillError as e:
        return error_response(e)


@products_bp.get("/low-stock")
@require_actor
def low_stock_route():
    products = stock_service.list_low_stock()
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/<int:product_id>/movements")
@require_actor
def list_movements_route(product_id: int):
    try:
        products_service.get_product(product_id)
        movements = stock_service.list_movements(
            product_id=product_id,
            limit=query_int("limit", 100),
        )
        return jsonify({"items": [m.to_dict() for m in movements], "count": len(movements)}), 200
    except StockbillError as e:
        return error_response(e)


@products_bp.post("/<int:product_id>/movements")
@require_actor
def record_movement_route(product_id: int):
    """
    Manual stock entry or exit.

    Body: {"direction": "in" | "out", "quantity": 5, "note": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        quantity = data.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("quantity must be a positive integer")

        movement = stock_service.record_manual_movement(
            product_id=product_id,
            quantity=quantity,
            direction=data.get("direction"),
            user_id=g.actor_user_id,
            note=validate_optional_text("note", data.get("note"), 255),
        )
        return jsonify({
            "movement": movement.to_dict(),
            "quantity": stock_service.get_quantity_on_hand(product_id),
        }), 201

    except StockbillError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record stock movement")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>/price-history")
@require_actor
def product_price_history_route(product_id: int):
    try:
        items = price_history_service.list_product_history(product_id)
        return jsonify({"items": items, "count": len(items)}), 200
    except StockbillError as e:
        return error_response(e)
