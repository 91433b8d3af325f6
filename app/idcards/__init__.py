import logging

from flask import Flask
from dotenv import load_dotenv

# Load all table definitions before anything touches a module's models.
from app.idcards.models import Base  # noqa: F401
from app.idcards.config import load_config
from app.idcards.db import init_db
from app.idcards.routes import bp as routes_bp
from app.idcards.store import SqlRecordStore
from app.idcards.workflow import IdCardWorkflow


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.logger.setLevel(app.config.get("LOG_LEVEL") or "INFO")

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")

    init_db(app)

    store = SqlRecordStore(
        app.extensions["sqlalchemy_engine"],
        exclusive_active_tables=bool(app.config.get("EXCLUSIVE_ACTIVE_TABLES")),
        logger=app.logger,
    )
    app.extensions["idcard_store"] = store
    app.extensions["idcard_workflow"] = IdCardWorkflow.from_config(store, app.config, log=app.logger)

    app.register_blueprint(routes_bp)

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500")
        return {"ok": False, "error": "Server error."}, 500

    logging.getLogger(__name__).info(
        "create_app() complete; exclusive_active_tables=%s transfer_max_workers=%s",
        app.config.get("EXCLUSIVE_ACTIVE_TABLES"),
        app.config.get("TRANSFER_MAX_WORKERS"),
    )

    return app
