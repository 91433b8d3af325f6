from flask import Blueprint, current_app
from sqlalchemy import text

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON; checks the database is reachable."""
    engine = current_app.extensions["sqlalchemy_engine"]
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        current_app.logger.error("Health check DB error: %s", e)
        return {"ok": False, "database": "unreachable"}, 503
    return {"ok": True, "database": "ok"}


@bp.get("/healthz")
def healthz():
    """
    Fast liveness probe. No DB access, minimal overhead.
    """
    return "ok", 200
