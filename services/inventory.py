from flask import current_app
from core.imports import datetime, IntegrityError
from core.extensions import db
from core.errors import InsufficientStock, ValidationError
from models.vendorModels import Inventory


def ensure_inventory(product_id):
    """Fetch the stock row for a product, creating an empty one if missing.

    The new row is committed straight away so concurrent callers converge on
    the unique ``product_id`` key; losing that race just means re-reading.
    """
    inventory = Inventory.query.filter_by(product_id=product_id).first()
    if inventory:
        return inventory

    inventory = Inventory(product_id=product_id, quantity=0, last_updated=datetime.utcnow())
    db.session.add(inventory)
    try:
        db.session.commit()
        current_app.logger.info("Created empty inventory for product %s", product_id)
    except IntegrityError:
        db.session.rollback()
        inventory = Inventory.query.filter_by(product_id=product_id).one()
    return inventory


def reserve(product_id, quantity):
    """Take ``quantity`` units out of stock without ever going below zero.

    The decrement is a single conditional UPDATE, so two orders racing for
    the last unit cannot both succeed. Flushes only; the caller commits.
    """
    if quantity < 1:
        raise ValidationError("Quantity must be a positive integer")

    updated = Inventory.query.filter(
        Inventory.product_id == product_id,
        Inventory.quantity >= quantity,
    ).update(
        {
            Inventory.quantity: Inventory.quantity - quantity,
            Inventory.last_updated: datetime.utcnow(),
        }
    )

    if updated != 1:
        current = db.session.query(Inventory.quantity).filter_by(product_id=product_id).scalar()
        raise InsufficientStock(product_id, current or 0, quantity)

    current_app.logger.info("Reserved %s unit(s) of product %s", quantity, product_id)


def set_stock(product_id, quantity):
    """Overwrite the stock level of a product (vendor stock edit)."""
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 0:
        raise ValidationError("quantity must be a non-negative integer")

    inventory = ensure_inventory(product_id)
    inventory.quantity = quantity
    inventory.last_updated = datetime.utcnow()
    db.session.commit()
    return inventory
