from flask import current_app
from core.extensions import db
from core.errors import (
    ValidationError,
    ProductNotFound,
    AddressNotFound,
    OrderNotFound,
    OrderItemNotFound,
    InsufficientStock,
    Forbidden,
    NotFound,
)
from models.userModel import Buyers, Address
from models.vendorModels import Products
from models.orderModels import Order, OrderItem, ORDER_STATUSES, ORDER_ITEM_STATUSES
from services.inventory import ensure_inventory, reserve
from services.vouchers import apply_voucher
from services.notifications import send_order_confirmation


def _positive_int(value, field):
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValidationError(f"{field} must be a positive integer")
    try:
        number = int(value)
    except ValueError:
        raise ValidationError(f"{field} must be a positive integer")
    if number < 1:
        raise ValidationError(f"{field} must be a positive integer")
    return number


def normalize_items(items):
    """Validate requested lines and merge repeats of the same product."""
    if not isinstance(items, list) or not items:
        raise ValidationError("Missing required fields: address or items")

    merged = {}
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object with productId and quantity")
        product_id = _positive_int(item.get("productId"), "productId")
        quantity = _positive_int(item.get("quantity"), "quantity")
        merged[product_id] = merged.get(product_id, 0) + quantity
    return list(merged.items())


def place_order(buyer_id, address_id, items, voucher_code=None):
    """Create an order with one item per product and reserve its stock.

    Products, stock and the voucher are all checked before anything is
    written. The voucher redemption, order, items and stock reservations
    then commit as one transaction, so a reservation lost to a concurrent
    order leaves nothing behind.
    """
    if not address_id:
        raise ValidationError("Missing required fields: address or items")
    address_id = _positive_int(address_id, "addressId")
    lines = normalize_items(items)

    buyer = db.session.get(Buyers, int(buyer_id))
    if not buyer:
        raise NotFound("User not found")

    address = Address.query.filter_by(id=address_id, buyer_id=buyer.id).first()
    if not address:
        raise AddressNotFound(address_id)

    subtotal = 0
    snapshots = []
    for product_id, quantity in lines:
        product = db.session.get(Products, product_id)
        if not product:
            raise ProductNotFound(product_id)

        inventory = ensure_inventory(product_id)
        if inventory.quantity < quantity:
            raise InsufficientStock(product_id, inventory.quantity, quantity, title=product.title)

        subtotal += product.price * quantity
        snapshots.append((product, quantity, product.price))

    try:
        discount = 0
        if voucher_code:
            discount, _ = apply_voucher(voucher_code, subtotal)

        total_price = max(subtotal - discount, 0)

        order = Order(buyer_id=buyer.id, address_id=address.id, total_price=total_price, status="pending")
        db.session.add(order)
        db.session.flush()

        for product, quantity, unit_price in snapshots:
            db.session.add(OrderItem(
                order_id=order.id,
                product_id=product.id,
                product_name=product.title,
                quantity=quantity,
                unit_price=unit_price,
                status="pending",
            ))
            reserve(product.id, quantity)

        db.session.flush()
        sync_order_status(order.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.warning(
            "Order placement for buyer %s rolled back (subtotal %.2f, voucher %s)",
            buyer.id, subtotal, voucher_code,
        )
        raise

    current_app.logger.info(
        "Order %s placed by buyer %s: %d item(s), subtotal %.2f, discount %.2f, total %.2f",
        order.id, buyer.id, len(snapshots), subtotal, discount, total_price,
    )

    if buyer.email:
        send_order_confirmation(buyer.email, order)

    return order


def sync_order_status(order_id):
    """Mark the order shipped once every one of its items is shipped.

    Never downgrades an order. Returns True when the order changed.
    Flushes only; the caller commits.
    """
    statuses = [s for (s,) in db.session.query(OrderItem.status).filter_by(order_id=order_id)]
    if not statuses:
        current_app.logger.debug("No order items found for order %s", order_id)
        return False

    if any(status != "shipped" for status in statuses):
        return False

    changed = Order.query.filter(
        Order.id == order_id,
        Order.status != "shipped",
    ).update({Order.status: "shipped"})

    if changed:
        current_app.logger.info("Order %s status updated to shipped", order_id)
    return bool(changed)


def escalate_order_after_payment(order_id):
    """Move a paid order from pending to processing and its pending items to shipping.

    Both writes are conditional on the current status, so running this any
    number of times has the effect of running it once. Flushes only.
    """
    order_changed = Order.query.filter_by(id=order_id, status="pending").update(
        {Order.status: "processing"}
    )
    items_changed = OrderItem.query.filter_by(order_id=order_id, status="pending").update(
        {OrderItem.status: "shipping"}
    )

    if order_changed:
        current_app.logger.info("Order %s moved from pending to processing", order_id)
    if items_changed:
        current_app.logger.info("Order %s: %d item(s) moved to shipping", order_id, items_changed)
    return bool(order_changed), items_changed


def update_item_status(item_id, status, actor_id, role):
    if role not in ("vendor", "admin"):
        raise Forbidden("Unauthorized")
    if status not in ORDER_ITEM_STATUSES:
        raise ValidationError("Invalid status value")

    item = db.session.get(OrderItem, item_id)
    if not item:
        raise OrderItemNotFound(item_id)

    if role == "vendor" and (not item.product or item.product.vendor_id != int(actor_id)):
        raise Forbidden("You can only update items of your own products")

    previous = item.status
    item.status = status
    db.session.flush()
    sync_order_status(item.order_id)
    db.session.commit()

    current_app.logger.info(
        "Order item %s (order %s) status %s -> %s by %s %s",
        item.id, item.order_id, previous, status, role, actor_id,
    )
    return item


def sweep_order_statuses():
    """Run the synchronizer over orders that are due to become shipped.

    Only orders whose items are all shipped are loaded; rejected or
    unshippable orders never qualify and are not rescanned every pass.
    """
    due = db.session.query(Order.id).filter(
        Order.status != "shipped",
        Order.order_items.any(),
        ~Order.order_items.any(OrderItem.status != "shipped"),
    )
    order_ids = [oid for (oid,) in due]
    changed = 0
    for order_id in order_ids:
        if sync_order_status(order_id):
            changed += 1
    db.session.commit()

    if changed:
        current_app.logger.info("Order status sweep updated %d order(s)", changed)
    return changed


def get_buyer_orders(buyer_id, status=None):
    query = Order.query.filter_by(buyer_id=int(buyer_id))
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError("Invalid status filter")
        query = query.filter_by(status=status)
    return query.order_by(Order.order_date.desc(), Order.id.desc()).all()


def get_buyer_order(buyer_id, order_id):
    order = Order.query.filter_by(id=order_id, buyer_id=int(buyer_id)).first()
    if not order:
        raise OrderNotFound(order_id)
    return order
