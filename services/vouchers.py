from flask import current_app
from core.imports import datetime
from core.extensions import db
from core.errors import VoucherNotFound, VoucherInactive, MinOrderNotMet
from models.voucherModels import Voucher


def find_usable_voucher(code, now=None):
    """Return the voucher for ``code`` if it can still be redeemed."""
    voucher = Voucher.query.filter_by(code=code).first()
    if not voucher:
        raise VoucherNotFound(code)

    # is_active may be stale if the voucher expired since its last save
    if not voucher.is_active or not voucher.compute_active(now):
        raise VoucherInactive(code)
    return voucher


def compute_discount(voucher, subtotal):
    if voucher.discount_type == "fixed":
        return voucher.discount

    discount = subtotal * voucher.discount / 100
    if voucher.max_discount and voucher.max_discount > 0:
        discount = min(discount, voucher.max_discount)
    return discount


def apply_voucher(code, subtotal, now=None):
    """Redeem a voucher against an order subtotal.

    Returns ``(discount, voucher)``. The usage counter is bumped with a
    guarded UPDATE so concurrent redemptions can never exceed the usage
    limit. Flushes only; the caller commits together with the order.
    """
    now = now or datetime.utcnow()
    voucher = find_usable_voucher(code, now)

    if subtotal < (voucher.min_order_value or 0):
        raise MinOrderNotMet(code, voucher.min_order_value)

    discount = compute_discount(voucher, subtotal)

    redeemed = Voucher.query.filter(
        Voucher.id == voucher.id,
        Voucher.used_count < Voucher.usage_limit,
        Voucher.expiration_date > now,
    ).update({Voucher.used_count: Voucher.used_count + 1})

    if redeemed != 1:
        raise VoucherInactive(code)

    db.session.refresh(voucher)
    voucher.refresh_active(now)
    db.session.flush()

    current_app.logger.info(
        "Voucher %s redeemed (%s/%s), discount %.2f", code, voucher.used_count, voucher.usage_limit, discount
    )
    return discount, voucher
