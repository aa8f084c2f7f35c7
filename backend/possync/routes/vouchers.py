# Overview: Flask API routes for voucher numbers; parses input and returns JSON responses.

# backend/possync/routes/vouchers.py
"""Voucher preview, availability and confirmation routes"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_user
from ..services import voucher_service
from ..validation import ConflictError, NotFoundError, ValidationError, require_fields


vouchers_bp = Blueprint("vouchers", __name__, url_prefix="/api/vouchers")


@vouchers_bp.post("/init-daily")
@require_user
def init_daily_route():
    """
    Preview the next voucher sequence for a company code and day.

    Body: {"company_code": "ACM", "date": "YYYYMMDD"}
    Nothing is allocated.
    """
    try:
        data = require_fields(request.get_json(silent=True), ["company_code", "date"])
        result = voucher_service.peek_next_voucher(g.user_id, data["company_code"], data["date"])
        return jsonify({"success": True, **result}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        current_app.logger.exception("Failed to initialize daily vouchers")
        return jsonify({"error": "Failed to initialize daily vouchers"}), 500


@vouchers_bp.post("/generate")
@require_user
def generate_route():
    """
    Check that a candidate voucher number is free.

    Body: {"provisional_voucher", "company_code", "date", "sequence"}
    409 when a transaction of the caller already uses it.
    """
    try:
        data = require_fields(
            request.get_json(silent=True),
            ["provisional_voucher", "company_code", "date", "sequence"],
        )
        voucher_number = voucher_service.check_voucher_available(
            g.user_id, data["company_code"], data["date"], data["sequence"]
        )
        return jsonify({
            "success": True,
            "voucher_number": voucher_number,
            "provisional_voucher": data["provisional_voucher"],
            "company_code": data["company_code"],
            "date": data["date"],
            "sequence": data["sequence"],
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception as e:
        current_app.logger.exception("Failed to generate voucher number")
        return jsonify({"error": "Failed to generate voucher number"}), 500


@vouchers_bp.post("/confirm")
@require_user
def confirm_route():
    """
    Replace a transaction's provisional voucher with its final number.

    Body: {"provisional_voucher", "voucher_number", "transaction_id"}
    404 when the transaction does not belong to the caller.
    """
    try:
        data = require_fields(
            request.get_json(silent=True),
            ["provisional_voucher", "voucher_number", "transaction_id"],
        )
        tx = voucher_service.confirm_voucher(
            user_id=g.user_id,
            transaction_id=data["transaction_id"],
            provisional_voucher=data["provisional_voucher"],
            voucher_number=data["voucher_number"],
        )
        return jsonify({
            "success": True,
            "message": "Voucher number confirmed",
            "voucher_number": tx.voucher_number,
            "transaction_id": tx.id,
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception as e:
        current_app.logger.exception("Failed to confirm voucher number")
        return jsonify({"error": "Failed to confirm voucher number"}), 500
