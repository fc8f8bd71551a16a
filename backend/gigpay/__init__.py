import logging
import os

from flask import Flask, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from gigpay.config import Config, engine_options
from gigpay.errors import GigPayError
from gigpay.extensions import db, migrate, cors
from gigpay.jobs import register_cli
from gigpay.segments.segment_payment_webhooks import webhooks_bp
from gigpay.segments.segment_payments import payments_bp
from gigpay.segments.segment_wallets import wallets_bp


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    env = (app.config.get("GIGPAY_ENV") or "dev").strip().lower()

    # Production safety checks
    if env in ("prod", "production"):
        secret = (app.config.get("SECRET_KEY") or "").strip()
        if not secret or len(secret) < 16:
            raise RuntimeError("SECRET_KEY must be set and at least 16 chars in production")
        if not (os.getenv("DATABASE_URL") or "").strip() and not (os.getenv("SQLALCHEMY_DATABASE_URI") or "").strip():
            raise RuntimeError("DATABASE_URL (or SQLALCHEMY_DATABASE_URI) must be set in production")
        if not (app.config.get("CASHFREE_WEBHOOK_SECRET") or "").strip():
            raise RuntimeError("CASHFREE_WEBHOOK_SECRET must be set in production")

    fee_rate = app.config.get("PLATFORM_FEE_RATE")
    if fee_rate is None or not (0 <= fee_rate < 1):
        raise RuntimeError("PLATFORM_FEE_RATE must be at least 0 and below 1")

    app.logger.setLevel(getattr(logging, app.config.get("LOG_LEVEL", "INFO"), logging.INFO))

    # Ensure instance dir exists for SQLite paths
    database_url = app.config["SQLALCHEMY_DATABASE_URI"]
    if database_url.startswith("sqlite:///") and database_url != "sqlite:///:memory:":
        os.makedirs(app.config["INSTANCE_DIR"], exist_ok=True)
    app.config.setdefault(
        "SQLALCHEMY_ENGINE_OPTIONS",
        engine_options(database_url, app.config["STORE_TIMEOUT_SECONDS"]),
    )

    # CORS configuration
    cors_origins = app.config.get("CORS_ORIGINS") or ""
    if env in ("prod", "production"):
        origins = [o.strip() for o in cors_origins.split(",") if o.strip()]
    else:
        origins = ["*"] if not cors_origins else [o.strip() for o in cors_origins.split(",") if o.strip()]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db)

    app.register_blueprint(webhooks_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(wallets_bp)
    register_cli(app)

    @app.errorhandler(GigPayError)
    def _gigpay_error(e: GigPayError):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def _store_error(e: SQLAlchemyError):
        db.session.rollback()
        app.logger.exception("unhandled store error")
        return jsonify({"ok": False, "message": "Temporary storage failure, retry later"}), 500

    # Health check
    @app.get("/api/health")
    def health():
        db_state = "ok"
        try:
            db.session.execute(text("SELECT 1"))
        except SQLAlchemyError:
            db.session.rollback()
            db_state = "fail"
        return jsonify({
            "ok": db_state == "ok",
            "service": "gigpay-backend",
            "env": env,
            "db": db_state,
        }), (200 if db_state == "ok" else 503)

    return app
