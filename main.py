from werkzeug.exceptions import HTTPException
from core.imports import jsonify, request, Flask
from core.config import Config
from core.errors import MarketplaceError
from core.extensions import db, jwt, swagger, cors, mail, migrate
from routes.admin import admin_bp, seed_admin_accounts
from routes.buyerOrders import buyer_orders, seed_demo_buyer
from routes.vendorOrders import vendor_orders, seed_demo_catalog
from routes.payments import payments_bp
from routes.vouchers import vouchers_bp
from services.scheduler import PaymentScheduler, run_reconciliation_pass


def register_error_handlers(app):
    @app.errorhandler(MarketplaceError)
    def handle_marketplace_error(e):
        db.session.rollback()
        return jsonify({"message": e.message}), e.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        if isinstance(e, HTTPException):
            return e
        db.session.rollback()
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"message": "Internal server error"}), 500


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    jwt.init_app(app)
    swagger.init_app(app)
    cors.init_app(app)
    mail.init_app(app)
    migrate.init_app(app, db)

    app.register_blueprint(admin_bp)
    app.register_blueprint(buyer_orders)
    app.register_blueprint(vendor_orders)
    app.register_blueprint(payments_bp)
    app.register_blueprint(vouchers_bp)

    register_error_handlers(app)

    @app.route('/ping')
    def ping():
        return "Ping received", 200

    @app.cli.command("verify-payments")
    def verify_payments_command():
        """Poll the gateways for pending payments and resync order statuses."""
        summary = run_reconciliation_pass()
        print(f"✅ Payment verification finished: {summary}")

    if app.config.get("SCHEDULER_ENABLED"):
        scheduler = PaymentScheduler(app)
        scheduler.start()
        app.extensions["payment_scheduler"] = scheduler

    return app

app = create_app()

if __name__ == "__main__":
    with app.app_context():
        db.create_all()

        seed_admin_accounts()
        seed_demo_catalog()
        seed_demo_buyer()

    app.run(debug=True)
