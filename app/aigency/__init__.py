import logging
import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request, session

from app.aigency import models  # noqa: F401  (registers every table on Base.metadata)
from app.aigency.admin import bp as admin_bp
from app.aigency.auth import bp as auth_bp, load_current_user
from app.aigency.config import load_config
from app.aigency.db import init_db, teardown_db_session
from app.aigency.errors import register_error_handlers
from app.aigency.modules.access.admin import bp as access_bp
from app.aigency.modules.accounts.admin import bp as accounts_bp
from app.aigency.modules.assessments.routes import bp as assessments_bp
from app.aigency.modules.blog.routes import bp as blog_bp
from app.aigency.modules.boardroom.routes import bp as boardroom_bp
from app.aigency.modules.chat.routes import bp as chat_bp
from app.aigency.modules.consultations.routes import bp as consultations_bp
from app.aigency.modules.contact.routes import bp as contact_bp
from app.aigency.modules.dashboard.routes import bp as dashboard_bp
from app.aigency.modules.messages.routes import bp as messages_bp
from app.aigency.modules.prompts.routes import bp as prompts_bp
from app.aigency.modules.roi.routes import bp as roi_bp
from app.aigency.modules.summaries.routes import bp as summaries_bp
from app.aigency.modules.tools.routes import bp as tools_bp
from app.aigency.revalidate import emit_revalidation
from app.aigency.routes import bp as routes_bp
from app.aigency.security import ensure_csrf_token, is_csrf_exempt, validate_csrf


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    _configure_logging(app.config["LOG_LEVEL"])

    register_error_handlers(app)

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # login/register/logout mint or drop the token themselves
            if (request.endpoint or "").startswith("auth."):
                return None
            if is_csrf_exempt(request.endpoint):
                return None
            if not validate_csrf(request):
                return jsonify({"success": False, "error": "CSRF token missing or invalid."}), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if not app.config.get("CHAT_WEBHOOK_URL"):
            app.logger.warning("CHAT_WEBHOOK_URL is not set; /api/chat will answer 503.")

    init_db(app)

    if hasattr(os, "register_at_fork"):
        def _after_fork_child():
            engine = app.extensions.get("sqlalchemy_engine")
            if engine:
                engine.dispose()
                app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

        os.register_at_fork(after_in_child=_after_fork_child)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(accounts_bp, url_prefix="/admin")
    app.register_blueprint(access_bp, url_prefix="/admin")
    app.register_blueprint(blog_bp, url_prefix="/blog")
    app.register_blueprint(prompts_bp, url_prefix="/prompts")
    app.register_blueprint(tools_bp, url_prefix="/tools")
    app.register_blueprint(assessments_bp, url_prefix="/assessments")
    app.register_blueprint(consultations_bp, url_prefix="/consultations")
    app.register_blueprint(messages_bp, url_prefix="/consultations")
    app.register_blueprint(summaries_bp, url_prefix="/summaries")
    app.register_blueprint(boardroom_bp, url_prefix="/board-room")
    app.register_blueprint(dashboard_bp, url_prefix="/dashboard")
    app.register_blueprint(contact_bp, url_prefix="/contact")
    app.register_blueprint(roi_bp, url_prefix="/roi")
    app.register_blueprint(chat_bp, url_prefix="/api")

    def _load_user_wrapper():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.after_request(emit_revalidation)
    app.teardown_appcontext(teardown_db_session)

    logging.getLogger(__name__).info("create_app() complete; app ready to serve (env=%s)", env or "development")

    return app
