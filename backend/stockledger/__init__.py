# backend/stockledger/__init__.py
from flask import Flask

from .config import Config, _engine_options
from .errors import LedgerError
from .extensions import db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)

    if test_config:
        app.config.update(test_config)
        # Pool options follow the effective database URI
        if "SQLALCHEMY_DATABASE_URI" in test_config and "SQLALCHEMY_ENGINE_OPTIONS" not in test_config:
            app.config["SQLALCHEMY_ENGINE_OPTIONS"] = _engine_options(
                app.config["SQLALCHEMY_DATABASE_URI"]
            )

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.ledger import ledger_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(ledger_bp)

    @app.errorhandler(LedgerError)
    def handle_ledger_error(exc: LedgerError):
        if exc.status_code >= 500:
            app.logger.error("Ledger request failed: %s", exc, exc_info=exc)
            return {"error": "Internal server error"}, exc.status_code
        return {"error": str(exc)}, exc.status_code

    # Scoped handles go back to the pool at the end of every request.
    # Requests can share an already-pushed app context, hence both hooks.
    from .services.tenant_service import release_request_tenant_context
    app.teardown_request(release_request_tenant_context)
    app.teardown_appcontext(release_request_tenant_context)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
