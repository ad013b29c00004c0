from flask import current_app
from core.imports import datetime, timedelta, time, IntegrityError, SQLAlchemyError
from core.extensions import db
from core.errors import (
    ValidationError,
    OrderNotFound,
    PaymentNotFound,
    Forbidden,
    InvalidState,
    GatewayError,
)
from models.orderModels import Order
from models.paymentModels import Payment, PAYMENT_METHODS
from services.gateways import SUCCESS, GATEWAYS, get_gateway
from services.orders import escalate_order_after_payment, sync_order_status


def _load_owned_order(order_id, user_id):
    try:
        order_id = int(order_id)
    except (TypeError, ValueError):
        raise ValidationError("orderId must be an integer")

    order = db.session.get(Order, order_id)
    if not order:
        raise OrderNotFound(order_id)
    if order.buyer_id != int(user_id):
        raise Forbidden("You are not allowed to access payments for this order")
    return order


def _mark_failed(payment, reason):
    Payment.query.filter_by(id=payment.id, status="pending").update({Payment.status: "failed"})
    db.session.commit()
    current_app.logger.error(
        "Payment %s for order %s marked failed: %s", payment.id, payment.order_id, reason
    )


def create_payment(order_id, user_id, method, replace_existing=False, base_url=""):
    """Open a payment for a pending order.

    Returns ``(payment, extra)`` where ``extra`` holds the method specific
    payload: ``qrData`` for VietQR, ``paymentUrl`` for PayOS, nothing for
    COD. A gateway failure leaves the payment ``failed`` and raises.
    """
    if method not in PAYMENT_METHODS:
        raise ValidationError("Invalid payment method")

    order = _load_owned_order(order_id, user_id)
    if order.status != "pending":
        raise InvalidState("Order is not in a payable state")

    existing = Payment.query.filter_by(order_id=order.id).first()
    if existing:
        if not replace_existing:
            raise InvalidState("This order already has a payment record")
        if existing.status == "paid":
            raise InvalidState("This order has already been paid")
        current_app.logger.info(
            "Replacing %s payment %s for order %s", existing.status, existing.id, order.id
        )
        db.session.delete(existing)
        db.session.flush()

    payment = Payment(
        order_id=order.id,
        user_id=order.buyer_id,
        amount=order.total_price,
        method=method,
        status="pending",
    )
    if method == "VietQR":
        # interim correlation key until the gateway reports its own reference
        payment.transaction_id = str(order.id)

    db.session.add(payment)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise InvalidState("This order already has a payment record")

    current_app.logger.info("Payment %s (%s) created for order %s", payment.id, method, order.id)

    gateway = get_gateway(method, current_app.config)
    if gateway is None:
        return payment, {}

    if not gateway.is_configured():
        _mark_failed(payment, f"{method} is not configured")
        raise GatewayError(f"{method} payment gateway is not configured", status_code=500)

    base_url = (base_url or "").rstrip("/")
    amount = int(round(order.total_price))

    try:
        if method == "VietQR":
            callback_url = f"{base_url}/api/payments/vietqr/callback"
            extra = {"qrData": gateway.generate(order.id, amount, callback_url)}
        else:
            order_code = int(time.time() * 1000)
            payment.transaction_id = str(order_code)
            db.session.commit()
            checkout_url = gateway.create_payment_request(
                order_code,
                amount,
                f"Payment #{order_code % 10000}",
                f"{base_url}/api/payments/payos/callback",
                f"{base_url}/api/payments/payos/cancel",
            )
            extra = {"paymentUrl": checkout_url}
    except GatewayError as e:
        _mark_failed(payment, e.message)
        raise

    return payment, extra


def _by_order_id(query, value):
    try:
        order_id = int(value)
    except (TypeError, ValueError):
        return None
    return query.filter_by(order_id=order_id).first()


def _by_transaction_id(query, value):
    if value is None or value == "":
        return None
    return query.filter_by(transaction_id=str(value)).first()


def find_payment(order_id=None, transaction_id=None, transaction_first=False, method=None):
    """Locate a payment by order id, falling back to the gateway reference.

    With ``method`` only payments made through that gateway match, so a
    callback can never settle a payment its gateway does not own.
    """
    query = Payment.query
    if method:
        query = query.filter_by(method=method)

    lookups = [(_by_order_id, order_id), (_by_transaction_id, transaction_id)]
    if transaction_first:
        lookups.reverse()

    for lookup, value in lookups:
        payment = lookup(query, value)
        if payment:
            return payment
    raise PaymentNotFound(order_id if order_id is not None else transaction_id)


def _verify_escalation(order_id):
    order = db.session.get(Order, order_id)
    if order and order.status == "pending":
        current_app.logger.warning(
            "Order %s still pending after payment escalation, retrying once", order_id
        )
        escalate_order_after_payment(order_id)
        db.session.commit()


def reconcile(payment, outcome, transaction_id=None):
    """Apply a gateway outcome to a payment and cascade success to its order.

    Safe to call repeatedly and from the callback and the poller at the same
    time: the status writes are conditional, and a payment that is already
    paid only gets its order escalation re-checked. Any outcome other than
    ``SUCCESS`` counts as a failure. Returns True if the payment changed.
    """
    if outcome == SUCCESS:
        values = {Payment.status: "paid", Payment.paid_at: datetime.utcnow()}
        if transaction_id:
            values[Payment.transaction_id] = str(transaction_id)

        changed = Payment.query.filter(
            Payment.id == payment.id,
            Payment.status != "paid",
        ).update(values)

        if changed:
            current_app.logger.info("Payment %s for order %s marked paid", payment.id, payment.order_id)
        else:
            current_app.logger.info(
                "Payment %s already paid, re-checking order %s", payment.id, payment.order_id
            )

        escalate_order_after_payment(payment.order_id)
        sync_order_status(payment.order_id)
        db.session.commit()
        _verify_escalation(payment.order_id)
    else:
        changed = Payment.query.filter_by(id=payment.id, status="pending").update(
            {Payment.status: "failed"}
        )
        db.session.commit()
        if changed:
            current_app.logger.info("Payment %s for order %s marked failed", payment.id, payment.order_id)

    db.session.refresh(payment)
    return bool(changed)


def verify_pending_payments(now=None):
    """Poll the gateways for every recent pending payment.

    Payments older than the verification window are left alone, as are
    payments whose gateway is unreachable or still waiting; they are looked
    at again on the next pass.
    """
    config = current_app.config
    now = now or datetime.utcnow()
    since = now - timedelta(hours=config["PAYMENT_VERIFY_WINDOW_HOURS"])

    pending = Payment.query.filter(
        Payment.status == "pending",
        Payment.created_at >= since,
        Payment.method.in_(list(GATEWAYS)),
    ).all()
    current_app.logger.info("Found %d pending payment(s) to verify", len(pending))

    summary = {"checked": len(pending), "paid": 0, "failed": 0, "unchanged": 0}
    for payment in pending:
        gateway = get_gateway(payment.method, config)
        if not gateway.is_configured():
            current_app.logger.warning("Skipping payment %s: %s is not configured", payment.id, payment.method)
            summary["unchanged"] += 1
            continue

        try:
            status, transaction_id = gateway.fetch_status(payment)
        except GatewayError as e:
            current_app.logger.warning("Could not verify payment %s: %s", payment.id, e.message)
            summary["unchanged"] += 1
            continue

        outcome = gateway.outcome(status)
        if outcome is None:
            summary["unchanged"] += 1
            continue

        try:
            changed = reconcile(payment, outcome, transaction_id=transaction_id)
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception(
                "Reconciling payment %s for order %s failed", payment.id, payment.order_id
            )
            summary["unchanged"] += 1
            continue

        if not changed:
            summary["unchanged"] += 1
        elif outcome == SUCCESS:
            summary["paid"] += 1
        else:
            summary["failed"] += 1

    current_app.logger.info("Pending payment verification finished: %s", summary)
    return summary


def get_payment_status(order_id, user_id):
    order = _load_owned_order(order_id, user_id)
    payment = Payment.query.filter_by(order_id=order.id).first()
    if not payment:
        raise PaymentNotFound(order.id)
    return payment, order
