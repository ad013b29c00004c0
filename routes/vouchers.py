from core.imports import Blueprint, jsonify, jwt_required, get_jwt, request, datetime, IntegrityError
from datetime import timezone
from core.extensions import db
from core.errors import ValidationError
from models.voucherModels import Voucher, DISCOUNT_TYPES
from services.vouchers import find_usable_voucher

vouchers_bp = Blueprint("vouchers", __name__)


def serialize_voucher(voucher):
    return {
        "id": voucher.id,
        "code": voucher.code,
        "discount": voucher.discount,
        "discountType": voucher.discount_type,
        "maxDiscount": voucher.max_discount,
        "minOrderValue": voucher.min_order_value,
        "expirationDate": voucher.expiration_date.isoformat(),
        "usageLimit": voucher.usage_limit,
        "usedCount": voucher.used_count,
        "isActive": voucher.is_active
    }


def _number(data, key, minimum=0, integer=False):
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{key} must be a number")
    if integer and int(value) != value:
        raise ValidationError(f"{key} must be an integer")
    if value < minimum:
        raise ValidationError(f"{key} must be at least {minimum}")
    return int(value) if integer else float(value)


def _expiration(value):
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError("expirationDate must be an ISO 8601 date")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def voucher_fields(data, voucher=None):
    """Pick and validate voucher fields from a request body.

    With ``voucher`` the body is a partial update and cross-field rules are
    checked against the voucher's current values. ``isActive`` is never read
    from input; it is derived from the usage count and the expiration date
    on every save.
    """
    fields = {}
    required = ("code", "discount", "expirationDate")
    if voucher is None:
        missing = [key for key in required if data.get(key) in (None, "")]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    if "code" in data:
        if not isinstance(data["code"], str) or not data["code"].strip():
            raise ValidationError("code must be a non-empty string")
        fields["code"] = data["code"].strip()
    if "discount" in data:
        fields["discount"] = _number(data, "discount", minimum=0)
    if "discountType" in data:
        if data["discountType"] not in DISCOUNT_TYPES:
            raise ValidationError("discountType must be 'percentage' or 'fixed'")
        fields["discount_type"] = data["discountType"]
    if "maxDiscount" in data:
        fields["max_discount"] = _number(data, "maxDiscount", minimum=0)
    if "minOrderValue" in data:
        fields["min_order_value"] = _number(data, "minOrderValue", minimum=0)
    if "usageLimit" in data:
        fields["usage_limit"] = _number(data, "usageLimit", minimum=1, integer=True)
    if "expirationDate" in data:
        fields["expiration_date"] = _expiration(data["expirationDate"])

    discount_type = fields.get("discount_type", voucher.discount_type if voucher else "percentage")
    discount = fields.get("discount", voucher.discount if voucher else 0)
    if discount_type == "percentage" and discount > 100:
        raise ValidationError("A percentage discount cannot exceed 100")
    return fields


def _require_admin():
    if get_jwt().get("role") != "admin":
        return jsonify({"message": "Forbidden"}), 403
    return None


@vouchers_bp.route('/api/vouchers', methods=['POST'])
@jwt_required()
def create_voucher():
    """
    Admin: create a voucher
    ---
    tags:
      - Vouchers
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - code
            - discount
            - expirationDate
          properties:
            code: { type: string, example: SALE10 }
            discount: { type: number, example: 10 }
            discountType: { type: string, enum: [percentage, fixed] }
            maxDiscount: { type: number, example: 50000 }
            minOrderValue: { type: number, example: 100000 }
            usageLimit: { type: integer, example: 100 }
            expirationDate: { type: string, example: "2030-12-31T23:59:59Z" }
    responses:
      201:
        description: Voucher created
      400:
        description: Invalid fields or duplicate code
      403:
        description: Forbidden (not admin)
    """
    denied = _require_admin()
    if denied:
        return denied

    voucher = Voucher(**voucher_fields(request.get_json(silent=True) or {}))
    db.session.add(voucher)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"message": "Voucher code already exists"}), 400

    return jsonify(serialize_voucher(voucher)), 201


@vouchers_bp.route('/api/vouchers', methods=['GET'])
@jwt_required()
def get_vouchers():
    denied = _require_admin()
    if denied:
        return denied
    vouchers = Voucher.query.order_by(Voucher.created_at.desc()).all()
    return jsonify({"vouchers": [serialize_voucher(v) for v in vouchers]}), 200


@vouchers_bp.route('/api/vouchers/<int:voucher_id>', methods=['GET'])
@jwt_required()
def get_voucher(voucher_id):
    denied = _require_admin()
    if denied:
        return denied
    voucher = db.session.get(Voucher, voucher_id)
    if not voucher:
        return jsonify({"message": "Voucher not found"}), 404
    return jsonify(serialize_voucher(voucher)), 200


@vouchers_bp.route('/api/vouchers/<int:voucher_id>', methods=['PUT'])
@jwt_required()
def update_voucher(voucher_id):
    denied = _require_admin()
    if denied:
        return denied
    voucher = db.session.get(Voucher, voucher_id)
    if not voucher:
        return jsonify({"message": "Voucher not found"}), 404

    for key, value in voucher_fields(request.get_json(silent=True) or {}, voucher=voucher).items():
        setattr(voucher, key, value)
    # reactivation happens only through a higher usage limit or a later expiration
    voucher.refresh_active()
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"message": "Voucher code already exists"}), 400

    return jsonify(serialize_voucher(voucher)), 200


@vouchers_bp.route('/api/vouchers/<int:voucher_id>', methods=['DELETE'])
@jwt_required()
def delete_voucher(voucher_id):
    denied = _require_admin()
    if denied:
        return denied
    voucher = db.session.get(Voucher, voucher_id)
    if not voucher:
        return jsonify({"message": "Voucher not found"}), 404
    db.session.delete(voucher)
    db.session.commit()
    return jsonify({"message": "Voucher removed"}), 200


@vouchers_bp.route('/api/vouchers/code/<string:code>', methods=['GET'])
@jwt_required()
def get_voucher_by_code(code):
    """Check a code before checkout; does not redeem it."""
    voucher = find_usable_voucher(code)
    return jsonify(serialize_voucher(voucher)), 200
