from core.extensions import db
from core.imports import datetime
from sqlalchemy import event

DISCOUNT_TYPES = ("percentage", "fixed")


class Voucher(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), unique=True, nullable=False, index=True)
    discount = db.Column(db.Float, nullable=False)
    discount_type = db.Column(db.String(20), default="percentage", nullable=False)
    max_discount = db.Column(db.Float, default=0)  # only meaningful for percentage vouchers
    min_order_value = db.Column(db.Float, default=0)
    expiration_date = db.Column(db.DateTime, nullable=False)
    usage_limit = db.Column(db.Integer, default=1, nullable=False)
    used_count = db.Column(db.Integer, default=0, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)  # derived, never set from input
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __init__(self, **kwargs):
        # column defaults only land at INSERT, after the before_insert hook has run
        kwargs.setdefault("discount_type", "percentage")
        kwargs.setdefault("max_discount", 0)
        kwargs.setdefault("min_order_value", 0)
        kwargs.setdefault("usage_limit", 1)
        kwargs.setdefault("used_count", 0)
        super().__init__(**kwargs)

    def compute_active(self, now=None):
        now = now or datetime.utcnow()
        return (self.used_count or 0) < self.usage_limit and now < self.expiration_date

    def refresh_active(self, now=None):
        self.is_active = self.compute_active(now)
        return self.is_active


@event.listens_for(Voucher, "before_insert")
@event.listens_for(Voucher, "before_update")
def _recompute_is_active(mapper, connection, target):
    target.refresh_active()
