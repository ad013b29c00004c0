from flask import current_app
from core.imports import Message
from core.extensions import mail


def send_email(to, subject, body):
    """Best-effort delivery; failures are logged and never raised."""
    try:
        msg = Message(subject=subject, recipients=[to])
        msg.body = body
        mail.send(msg)
        current_app.logger.info("Email sent to %s: %s", to, subject)
        return True
    except Exception as e:
        current_app.logger.error("Error sending email to %s: %s", to, e)
        return False


def send_order_confirmation(email, order):
    subject = "Order Confirmation"
    body = (
        "Dear Customer,\n\n"
        "Your order has been placed.\n"
        f"Order ID: {order.id}\n"
        f"Total Amount: {order.total_price}\n\n"
        "Thank you for shopping with us!"
    )
    return send_email(email, subject, body)
