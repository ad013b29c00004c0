from core.imports import Blueprint, jsonify, jwt_required, request, get_jwt
from models.userModel import Admins
from models.paymentModels import Payment, PAYMENT_STATUSES
from core.extensions import db
from services.scheduler import run_reconciliation_pass
from routes.payments import serialize_payment

admin_bp = Blueprint('admin', __name__)

def seed_admin_accounts():
    """
    Populate the Admins table with the default admin account.
    Safe to run repeatedly.
    """
    admins_data = [
        {
            "name": "Super Admin",
            "email": "admin@example.com",
        },
    ]

    for data in admins_data:
        existing = Admins.query.filter_by(email=data["email"]).first()
        if not existing:
            db.session.add(Admins(name=data["name"], email=data["email"], role="admin"))

    db.session.commit()
    print("✅ Admin accounts seeded successfully")

# =========================
# /api/admin/payments (GET)
# =========================
@admin_bp.route('/api/admin/payments', methods=['GET'])
@jwt_required()
def list_payments():
    """
    Admin: List payments
    ---
    tags:
      - Admin
    summary: List payments, newest first (Admin only)
    security:
      - Bearer: []
    parameters:
      - name: Authorization
        in: header
        description: 'JWT token in format: Bearer <your_token>'
        required: true
        type: string
        default: "Bearer "
      - name: status
        in: query
        required: false
        type: string
        enum: ["pending", "paid", "failed"]
    responses:
      200:
        description: Payments
      400:
        description: Unknown status filter
      403:
        description: Forbidden (not admin)
        schema:
          type: object
          properties:
            message: { type: string, example: Forbidden }
    """
    claims = get_jwt()
    if claims.get("role") != "admin":
        return jsonify({"message": "Forbidden"}), 403

    query = Payment.query
    status = request.args.get("status")
    if status:
        if status not in PAYMENT_STATUSES:
            return jsonify({"message": "Invalid status filter"}), 400
        query = query.filter_by(status=status)

    payments = query.order_by(Payment.created_at.desc(), Payment.id.desc()).all()
    return jsonify({"payments": [serialize_payment(p) for p in payments]}), 200


# ==================================
# /api/admin/payments/verify (POST)
# ==================================
@admin_bp.route('/api/admin/payments/verify', methods=['POST'])
@jwt_required()
def verify_payments_now():
    claims = get_jwt()
    if claims.get("role") != "admin":
        return jsonify({"message": "Forbidden"}), 403

    summary = run_reconciliation_pass()
    return jsonify({"message": "Payment verification finished", "summary": summary}), 200
