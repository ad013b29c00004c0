from core.extensions import db
from core.imports import datetime

ORDER_STATUSES = ("pending", "processing", "shipping", "shipped", "failed to ship", "rejected")
ORDER_ITEM_STATUSES = ("pending", "shipping", "shipped", "failed to ship", "rejected")


class Order(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("buyers.id"), nullable=False, index=True)
    address_id = db.Column(db.Integer, db.ForeignKey("addresses.id"), nullable=False)
    total_price = db.Column(db.Float, nullable=False)
    status = db.Column(db.String(50), default="pending", nullable=False)  # see ORDER_STATUSES
    order_date = db.Column(db.DateTime, default=datetime.utcnow)

    order_items = db.relationship("OrderItem", backref="order", cascade="all, delete-orphan", order_by="OrderItem.id")
    buyer = db.relationship("Buyers", backref="orders")
    address = db.relationship("Address")


class OrderItem(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("order.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(200), nullable=False)  # snapshot of product title
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)  # snapshot of product price
    status = db.Column(db.String(50), default="pending", nullable=False)  # see ORDER_ITEM_STATUSES

    product = db.relationship("Products")
