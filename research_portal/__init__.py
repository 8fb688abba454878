"""
Research Project Portal
Flask Application Factory.

Usage:
    from research_portal import create_app
    app = create_app()           # APP_ENV, else "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine, event as _sa_event

from research_portal.config import config
from research_portal.middleware.jwt_auth import init_jwt_middleware
from research_portal.middleware.logging_config import configure_logging
from research_portal.middleware.rate_limiter import init_rate_limits
from research_portal.middleware.timing import init_request_timing
from research_portal.models import db

logger = logging.getLogger(__name__)


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # limits are applied per blueprint
    storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: One of "development", "testing", "production".
                     Defaults to the APP_ENV env var, or "development".

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    # ── Logging (must be first) ──────────────────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request middleware ───────────────────────────────────────────────
    init_request_timing(app)
    init_jwt_middleware(app)

    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)  # 2 MB

    # ── Import all models so create_all / Alembic see them ───────────────
    from research_portal.models import audit as _audit_models          # noqa: F401
    from research_portal.models import auth as _auth_models            # noqa: F401
    from research_portal.models import project as _project_models      # noqa: F401
    from research_portal.models import proposal as _proposal_models    # noqa: F401
    from research_portal.models import taxonomy as _taxonomy_models    # noqa: F401

    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    if db_uri.startswith("sqlite:///") and ":memory:" not in db_uri:
        os.makedirs(app.instance_path, exist_ok=True)

    with app.app_context():
        db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from research_portal.blueprints.auth_bp import auth_bp
    from research_portal.blueprints.pages_bp import pages_bp
    from research_portal.blueprints.proposal_bp import proposal_bp
    from research_portal.blueprints.taxonomy_bp import taxonomy_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(proposal_bp)
    app.register_blueprint(taxonomy_bp)
    app.register_blueprint(pages_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-reference-data")
    def seed_reference_data_cmd():
        """Seed verticals, special areas and the bootstrap admin (idempotent)."""
        from research_portal.services.taxonomy_service import seed_reference_data
        created = seed_reference_data()
        click.echo(
            f"Seeded {created['verticals']} verticals, "
            f"{created['special_areas']} special areas, "
            f"{created['admin']} admin user(s)."
        )

    @app.cli.command("create-user")
    @click.option("--email", required=True)
    @click.option("--role", required=True)
    @click.option("--first-name", default="")
    @click.option("--last-name", default="")
    @click.password_option()
    def create_user_cmd(email, role, first_name, last_name, password):
        """Create a portal user with the given role."""
        from research_portal.services.auth_service import create_user
        user = create_user(email=email, password=password, role=role,
                           first_name=first_name, last_name=last_name)
        click.echo(f"Created {user.email} ({user.role.value})")

    # ── Health check ─────────────────────────────────────────────────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "Research Project Portal"}

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed", "code": "ERR_METHOD_NOT_ALLOWED"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "code": "ERR_RATE_LIMITED",
                "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
