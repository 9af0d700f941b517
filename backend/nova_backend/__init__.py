from __future__ import annotations

import logging

from flask import Flask
from flask_cors import CORS

from .config import AppConfig, ConfigError, load_config
from .firebase import init_firebase
from .admin.routes import admin_bp
from .auth.routes import auth_bp
from .chats.routes import chats_bp
from .completions.routes import completions_bp
from .support.routes import support_bp
from .users.routes import users_bp

log = logging.getLogger(__name__)


def create_app(config: AppConfig | None = None) -> Flask:
    """Application factory for the Nova AI backend."""
    if config is None:
        try:
            config = load_config()
        except ConfigError as exc:
            raise RuntimeError(f"Configuration error: {exc}") from exc

    app = Flask(__name__)

    app.config.update(
        PORT=config.port,
        FIREBASE_WEB_API_KEY=config.firebase_web_api_key,
        FIRESTORE_DATABASE_ID=config.firestore_database_id,
        AI_GATEWAY_URL=config.ai_gateway_url,
        AI_GATEWAY_API_KEY=config.ai_gateway_api_key,
        ANTHROPIC_API_KEY=config.anthropic_api_key,
        GEMINI_API_KEY=config.gemini_api_key,
        EMAIL_API_URL=config.email_api_url,
        EMAIL_API_KEY=config.email_api_key,
        EMAIL_FROM=config.email_from,
        VERIFICATION_CODE_TTL_MINUTES=config.verification_code_ttl_minutes,
        EXPOSE_VERIFICATION_CODES=config.expose_verification_codes,
        ADMIN_EMAILS=config.admin_emails,
        HISTORY_LIMIT=config.history_limit,
        MAX_CONTENT_LENGTH=25 * 1024 * 1024,
    )

    CORS(app)

    if config.firebase_credentials_path is not None:
        init_firebase(config.firebase_credentials_path, database_id=config.firestore_database_id)
    else:
        log.warning("No Firebase credentials configured; Firestore must be provided externally.")

    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(chats_bp)
    app.register_blueprint(completions_bp)
    app.register_blueprint(support_bp)
    app.register_blueprint(admin_bp)

    @app.get("/health")
    def health_check() -> dict[str, str]:
        return {"status": "ok"}

    return app
