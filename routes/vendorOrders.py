from core.imports import Blueprint, jsonify, get_jwt_identity, get_jwt, jwt_required, request
from core.extensions import db
from models.orderModels import OrderItem, Order
from models.userModel import Vendors
from models.vendorModels import Products, Inventory
from services.inventory import set_stock
from services.orders import update_item_status

vendor_orders = Blueprint("vendor_orders", __name__)


def seed_demo_catalog():
    vendor = Vendors.query.filter_by(email="demo@vendor.com").first()
    if not vendor:
        vendor = Vendors(business_name="Demo Store", email="demo@vendor.com", phone="0281234567")
        db.session.add(vendor)
        db.session.commit()
        print("✅ Demo vendor created (email=demo@vendor.com)")

    sample_products = [
        {"title": "Smartphone X10", "price": 1200000, "stock": 10},
        {"title": "Men's Sneakers", "price": 250000, "stock": 25},
        {"title": "Python Programming", "price": 80000, "stock": 0},
    ]

    for prod in sample_products:
        if Products.query.filter_by(title=prod["title"], vendor_id=vendor.id).first():
            print(f"ℹ️ Product already exists: {prod['title']}")
            continue
        product = Products(title=prod["title"], price=prod["price"], vendor_id=vendor.id)
        product.inventory = Inventory(quantity=prod["stock"])
        db.session.add(product)
        print(f"✅ Product added: {prod['title']}")
    db.session.commit()
    return vendor


@vendor_orders.route('/api/vendor/orders', methods=['GET'])
@jwt_required()
def get_vendor_orders():
    vendor_id = int(get_jwt_identity())
    role = get_jwt().get("role")

    if role != "vendor":
        return jsonify({"message": "Unauthorized"}), 403

    # find order items where product belongs to this vendor
    order_items = (
        OrderItem.query
        .join(Products, OrderItem.product_id == Products.id)
        .join(Order, OrderItem.order_id == Order.id)
        .filter(Products.vendor_id == vendor_id)
        .order_by(Order.order_date.desc(), OrderItem.id)
        .all()
    )

    # group items by order
    orders_map = {}
    for item in order_items:
        order = item.order
        if order.id not in orders_map:
            orders_map[order.id] = {
                "orderId": order.id,
                "buyerId": order.buyer_id,
                "status": order.status,
                "orderDate": order.order_date.strftime("%Y-%m-%d %H:%M"),
                "items": []
            }
        orders_map[order.id]["items"].append({
            "id": item.id,
            "productName": item.product_name,
            "quantity": item.quantity,
            "unitPrice": item.unit_price,
            "status": item.status
        })

    return jsonify({"orders": list(orders_map.values())}), 200


@vendor_orders.route('/api/order-items/<int:item_id>/status', methods=['PUT'])
@jwt_required()
def update_order_item_status(item_id):
    """
    Update the shipping status of one order item
    ---
    tags:
      - Vendor Orders
    security:
      - Bearer: []
    parameters:
      - name: Authorization
        in: header
        description: "JWT token as: Bearer <your_token>"
        required: true
        type: string
      - name: item_id
        in: path
        type: integer
        required: true
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - status
          properties:
            status:
              type: string
              enum: ["pending", "shipping", "shipped", "failed to ship", "rejected"]
    responses:
      200:
        description: Item updated; the order becomes shipped once all its items are
      400:
        description: Invalid status value
      403:
        description: Not the vendor of this product, nor an admin
      404:
        description: Order item not found
    """
    data = request.get_json(silent=True) or {}
    item = update_item_status(item_id, data.get("status"), get_jwt_identity(), get_jwt().get("role"))

    return jsonify({
        "message": "Order item status updated successfully",
        "orderItem": {
            "id": item.id,
            "orderId": item.order_id,
            "productName": item.product_name,
            "status": item.status
        },
        "orderStatus": item.order.status
    }), 200


@vendor_orders.route('/api/vendor/inventory', methods=['GET'])
@jwt_required()
def get_vendor_inventory():
    vendor_id = int(get_jwt_identity())
    if get_jwt().get("role") != "vendor":
        return jsonify({"message": "Unauthorized"}), 403

    rows = (
        db.session.query(Products, Inventory)
        .outerjoin(Inventory, Inventory.product_id == Products.id)
        .filter(Products.vendor_id == vendor_id)
        .order_by(Products.id)
        .all()
    )

    return jsonify({"inventory": [
        {
            "productId": product.id,
            "title": product.title,
            "quantity": inventory.quantity if inventory else 0,
            "lastUpdated": inventory.last_updated.isoformat() if inventory and inventory.last_updated else None
        }
        for product, inventory in rows
    ]}), 200


@vendor_orders.route('/api/vendor/inventory/<int:product_id>', methods=['PUT'])
@jwt_required()
def update_vendor_inventory(product_id):
    vendor_id = int(get_jwt_identity())
    if get_jwt().get("role") != "vendor":
        return jsonify({"message": "Unauthorized"}), 403

    product = Products.query.filter_by(id=product_id, vendor_id=vendor_id).first()
    if not product:
        return jsonify({"message": "Product not found"}), 404

    data = request.get_json(silent=True) or {}
    inventory = set_stock(product.id, data.get("quantity"))

    return jsonify({
        "message": "Inventory updated",
        "productId": product.id,
        "quantity": inventory.quantity
    }), 200
