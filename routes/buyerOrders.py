from core.imports import Blueprint, jwt_required, get_jwt_identity, get_jwt, jsonify, request
from core.extensions import db
from models.userModel import Buyers, Address
from services.orders import place_order, get_buyer_orders, get_buyer_order

buyer_orders = Blueprint("buyer_orders", __name__)


def seed_demo_buyer():
    buyer = Buyers.query.filter_by(email="demo@buyer.com").first()
    if not buyer:
        buyer = Buyers(name="Jane Doe", email="demo@buyer.com", phone="0901234567", role="buyer")
        buyer.addresses.append(Address(
            full_name="Jane Doe",
            phone="0901234567",
            street="12 Nguyen Hue",
            city="Ho Chi Minh City",
            country="Vietnam",
            is_default=True,
        ))
        db.session.add(buyer)
        db.session.commit()
        print("✅ Demo buyer created (email=demo@buyer.com)")
    else:
        print("ℹ️ Demo buyer already exists.")
    return buyer


def serialize_order(order):
    return {
        "id": order.id,
        "buyerId": order.buyer_id,
        "addressId": order.address_id,
        "totalPrice": order.total_price,
        "status": order.status,
        "orderDate": order.order_date.isoformat() if order.order_date else None,
        "items": [
            {
                "id": item.id,
                "productId": item.product_id,
                "productName": item.product_name,
                "quantity": item.quantity,
                "unitPrice": item.unit_price,
                "status": item.status,
                "product": {
                    "title": item.product.title,
                    "price": item.product.price,
                    "image": item.product.image,
                    "description": item.product.description,
                } if item.product else None,
            }
            for item in order.order_items
        ],
    }


@buyer_orders.route('/api/orders', methods=['POST'])
@jwt_required()
def create_order():
    """
    Place an order for the logged-in buyer
    ---
    tags:
      - Buyer Orders
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
            - addressId
            - items
          properties:
            addressId:
              type: integer
              example: 1
            items:
              type: array
              items:
                type: object
                properties:
                  productId:
                    type: integer
                    example: 2
                  quantity:
                    type: integer
                    example: 3
            voucherCode:
              type: string
              example: "SALE10"
    responses:
      201:
        description: Order placed, stock reserved
        schema:
          type: object
          properties:
            message:
              type: string
              example: "Order placed successfully"
            orderId:
              type: integer
              example: 10
            totalPrice:
              type: number
              example: 95
      400:
        description: Invalid input, insufficient stock or unusable voucher
      403:
        description: Only buyers can place orders
      404:
        description: Product, address or voucher not found
    """
    if get_jwt().get("role") != "buyer":
        return jsonify({"message": "Unauthorized"}), 403

    data = request.get_json(silent=True) or {}
    order = place_order(
        get_jwt_identity(),
        data.get("addressId"),
        data.get("items"),
        voucher_code=data.get("voucherCode"),
    )

    return jsonify({
        "message": "Order placed successfully",
        "orderId": order.id,
        "totalPrice": order.total_price
    }), 201


@buyer_orders.route('/api/orders', methods=['GET'])
@jwt_required()
def get_user_orders():
    """
    Get all orders of the logged-in buyer
    ---
    tags:
      - Buyer Orders
    security:
      - Bearer: []
    parameters:
      - name: Authorization
        in: header
        description: "JWT token as: Bearer <your_token>"
        required: true
        type: string
      - name: status
        in: query
        required: false
        type: string
        enum: ["pending", "processing", "shipping", "shipped", "failed to ship", "rejected"]
    responses:
      200:
        description: Orders with their items, newest first
      403:
        description: Only buyers have orders
    """
    if get_jwt().get("role") != "buyer":
        return jsonify({"message": "Unauthorized"}), 403

    orders = get_buyer_orders(get_jwt_identity(), status=request.args.get("status"))
    return jsonify({"orders": [serialize_order(o) for o in orders]}), 200


@buyer_orders.route('/api/orders/<int:order_id>', methods=['GET'])
@jwt_required()
def get_order_details(order_id):
    if get_jwt().get("role") != "buyer":
        return jsonify({"message": "Unauthorized"}), 403

    order = get_buyer_order(get_jwt_identity(), order_id)
    return jsonify({"order": serialize_order(order)}), 200
