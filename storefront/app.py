"""
Storefront Service — Flask application
Cart, orders, phone OTP sign-in and split payment settlement.
"""

import logging
from datetime import datetime, timezone
from flask import Flask, jsonify
from flasgger import Swagger
from werkzeug.exceptions import HTTPException
from storefront.config import Config
from storefront.errors import StorefrontError
from storefront.extensions import db, jwt, BLOCKLIST

logger = logging.getLogger(__name__)


def configure_logging(level):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # stripe logs request bodies at debug level
    logging.getLogger("stripe").setLevel(logging.WARNING)


def register_error_handlers(app):
    @app.errorhandler(StorefrontError)
    def handle_storefront_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception("Unhandled error")
        return jsonify({
            "success": False,
            "error_code": "INTERNAL_ERROR",
            "error": "Internal server error",
        }), 500


def create_app(test_config=None):
    app = Flask(__name__)

    # Configuration
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    configure_logging(app.config["LOG_LEVEL"])

    # Initialize Extensions
    db.init_app(app)
    jwt.init_app(app)

    @jwt.token_in_blocklist_loader
    def check_if_token_in_blocklist(jwt_header, jwt_payload):
        return jwt_payload["jti"] in BLOCKLIST

    Swagger(app)

    # Register Blueprints
    from storefront.routes.auth import auth_bp
    app.register_blueprint(auth_bp, url_prefix="/api/auth")

    from storefront.routes.otp import otp_bp
    app.register_blueprint(otp_bp, url_prefix="/api")

    from storefront.routes.user import user_bp
    app.register_blueprint(user_bp, url_prefix="/api")

    from storefront.routes.cart import cart_bp
    app.register_blueprint(cart_bp, url_prefix="/api")

    from storefront.routes.orders import orders_bp
    app.register_blueprint(orders_bp, url_prefix="/api")

    from storefront.routes.payment import payment_bp
    app.register_blueprint(payment_bp, url_prefix="/api")

    from storefront.routes.webhooks import webhooks_bp
    app.register_blueprint(webhooks_bp, url_prefix="/api/webhooks")

    register_error_handlers(app)

    # --- Health check ---------------------------------------------------
    @app.route("/health")
    def health():
        try:
            db.session.execute(db.text("SELECT 1"))
        except Exception as e:
            logger.error("Health check failed: %s", e)
            return jsonify({"service": "storefront", "status": "unhealthy"}), 503
        return jsonify({
            "service": "storefront",
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }), 200

    return app


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        db.create_all()
    app.run(host="0.0.0.0", port=5000)
