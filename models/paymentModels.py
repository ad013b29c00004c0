from core.extensions import db
from core.imports import datetime

PAYMENT_METHODS = ("COD", "VietQR", "PayOS")
PAYMENT_STATUSES = ("pending", "paid", "failed")


class Payment(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    # one payment per order; replacement deletes the old row first
    order_id = db.Column(db.Integer, db.ForeignKey("order.id"), unique=True, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("buyers.id"), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    method = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), default="pending", nullable=False)
    transaction_id = db.Column(db.String(100), nullable=True, index=True)  # gateway reference
    paid_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = db.relationship("Order", backref=db.backref("payment", uselist=False))
