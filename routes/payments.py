from core.imports import Blueprint, jsonify, get_jwt_identity, get_jwt, jwt_required, request, current_app
from services.gateways import callback_outcome, FAILURE, VIETQR_SUCCESS_CODES, PAYOS_SUCCESS_CODES
from core.errors import ValidationError
from services.payments import create_payment, find_payment, reconcile, get_payment_status

payments_bp = Blueprint("payments", __name__)


def serialize_payment(payment):
    return {
        "id": payment.id,
        "orderId": payment.order_id,
        "method": payment.method,
        "amount": payment.amount,
        "status": payment.status,
        "transactionId": payment.transaction_id,
        "paidAt": payment.paid_at.isoformat() if payment.paid_at else None
    }


@payments_bp.route('/api/payments', methods=['POST'])
@jwt_required()
def create_new_payment():
    """
    Start paying for an order
    ---
    tags:
      - Payments
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - name: Authorization
        in: header
        description: "JWT token as: Bearer <your_token>"
        required: true
        type: string
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - orderId
            - method
          properties:
            orderId:
              type: integer
              example: 10
            method:
              type: string
              enum: ["COD", "VietQR", "PayOS"]
            replaceExisting:
              type: boolean
              example: false
    responses:
      201:
        description: >
          Payment created. VietQR answers with qrData, PayOS with paymentUrl,
          COD with the pending payment only.
      400:
        description: Invalid method, order not pending, or payment already exists
      403:
        description: Order belongs to someone else
      404:
        description: Order not found
      502:
        description: Gateway failed; the payment is left failed
    """
    if get_jwt().get("role") != "buyer":
        return jsonify({"message": "Unauthorized"}), 403

    data = request.get_json(silent=True) or {}
    method = data.get("method")
    replace_existing = data.get("replaceExisting")
    if replace_existing is None:
        replace_existing = False
    elif not isinstance(replace_existing, bool):
        raise ValidationError("replaceExisting must be a boolean")
    base_url = current_app.config.get("BASE_URL") or request.host_url

    payment, extra = create_payment(
        data.get("orderId"),
        get_jwt_identity(),
        method,
        replace_existing=replace_existing,
        base_url=base_url,
    )

    return jsonify({
        "message": f"{method} payment request created",
        "payment": serialize_payment(payment),
        **extra
    }), 201


@payments_bp.route('/api/payments/status/<int:order_id>', methods=['GET'])
@jwt_required()
def check_payment_status(order_id):
    payment, order = get_payment_status(order_id, get_jwt_identity())
    return jsonify({
        "payment": serialize_payment(payment),
        "order": {"id": order.id, "status": order.status}
    }), 200


# Gateway callbacks are public: the only defence is the correlation lookup
# and the idempotent transition in reconcile().

@payments_bp.route('/api/payments/vietqr/callback', methods=['POST'])
def vietqr_callback():
    data = request.get_json(silent=True) or {}
    current_app.logger.info("VietQR callback received: %s", data)

    order_id = data.get("orderId")
    if not order_id:
        return jsonify({"message": "Missing orderId parameter"}), 400

    transaction_id = data.get("transactionId")
    payment = find_payment(order_id=order_id, transaction_id=transaction_id, method="VietQR")
    reconcile(payment, callback_outcome(data.get("status"), VIETQR_SUCCESS_CODES), transaction_id=transaction_id)

    return jsonify({
        "success": True,
        "message": "Payment status updated",
        "paymentStatus": payment.status
    }), 200


def _handle_payos_redirect(cancelled):
    current_app.logger.info("PayOS redirect received: %s", dict(request.args))

    order_code = request.args.get("orderCode")
    if not order_code:
        return jsonify({"message": "Missing orderCode parameter"}), 400

    payment = find_payment(order_id=order_code, transaction_id=order_code, transaction_first=True, method="PayOS")
    if cancelled:
        outcome = FAILURE
    else:
        outcome = callback_outcome(request.args.get("status"), PAYOS_SUCCESS_CODES)
    reconcile(payment, outcome)

    return jsonify({
        "success": True,
        "message": "Payment status updated",
        "paymentStatus": payment.status
    }), 200


@payments_bp.route('/api/payments/payos/callback', methods=['GET'])
def payos_callback():
    return _handle_payos_redirect(cancelled=False)


@payments_bp.route('/api/payments/payos/cancel', methods=['GET'])
def payos_cancel():
    return _handle_payos_redirect(cancelled=True)
