"""
Team Collaboration Setup Engine
Flask Application Factory.

Usage:
    from collab import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import importlib
import logging
import os

from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from collab.config import config
from collab.core.clock import SystemClock
from collab.middleware.logging_config import configure_logging
from collab.middleware.rate_limiter import init_rate_limits
from collab.models import db
from collab.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
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
    default_limits=[],                     # per-blueprint limits only
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: "development", "testing", or "production".
                     Defaults to APP_ENV env var or "development".

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # Instantiate so ProductionConfig can refuse to start without its env vars
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
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

    # Deadline comparisons read time through this; tests install a FrozenClock
    app.extensions["clock"] = SystemClock()

    # ── Request guards (input length + Content-Type) ─────────────────────
    app.config.setdefault("MAX_CONTENT_LENGTH", 1024 * 1024)

    @app.before_request
    def _guard_request():
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from collab.models import collabtool as _collabtool_models      # noqa: F401
    from collab.models import meeting as _meeting_models            # noqa: F401
    from collab.models import notification as _notification_models  # noqa: F401
    from collab.models import outcome as _outcome_models            # noqa: F401
    from collab.models import rule as _rule_models                  # noqa: F401
    from collab.models import scheduling as _scheduling_models      # noqa: F401
    from collab.models import teamroom as _teamroom_models          # noqa: F401
    from collab.models import vote as _vote_models                  # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ──
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from collab.blueprints.admin_bp import admin_bp
    from collab.blueprints.health_bp import health_bp
    from collab.blueprints.notification_bp import notification_bp
    from collab.blueprints.rule_bp import rule_bp
    from collab.blueprints.setup_bp import setup_bp
    from collab.blueprints.tool_bp import tool_bp
    from collab.blueprints.votes_bp import votes_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(setup_bp)
    app.register_blueprint(tool_bp)
    app.register_blueprint(rule_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(votes_bp)
    app.register_blueprint(admin_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-rule-templates")
    def seed_rule_templates_cmd():
        """Seed the default rule templates members vote on."""
        from collab.models.rule import seed_default_rule_templates
        count = seed_default_rule_templates()
        db.session.commit()
        logger.info("Seeded %s new rule templates.", count)

    @app.cli.command("sweep-setups")
    def sweep_setups_cmd():
        """Run one confirmation sweep over expired setups."""
        from collab.services.setup_sweeper import SetupSweeper
        report = SetupSweeper(clock=app.extensions["clock"]).run_tick()
        logger.info("Sweep finished: %s setups, %s failures",
                    len(report.setups), report.failures)

    # ── Error handlers ───────────────────────────────────────────────────
    register_error_handlers(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    # ── Scheduler initialization (import jobs to register them) ──────────
    importlib.import_module("collab.services.scheduled_jobs")  # registers @register_job handlers
    from collab.services.scheduler_service import SchedulerService
    scheduler = SchedulerService(app)
    if app.config.get("SCHEDULER_ENABLED") and not app.config.get("TESTING"):
        scheduler.start()

    return app
