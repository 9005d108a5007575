from __future__ import annotations

import logging

from flask import Flask
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .game.match import Match
from .game.words import Lexicon, LoadError
from .realtime.session import SessionManager
from .routes.admin import bp as admin_bp
from .routes.health import bp as health_bp
from .routes.match import bp as match_bp
from .routes.words import bp as words_bp

logger = logging.getLogger(__name__)


def load_lexicon(config) -> Lexicon:
    path = getattr(config, "WORDS_FILE", "")
    if path:
        try:
            lexicon = Lexicon.from_file(path)
        except LoadError as exc:
            logger.error("%s; falling back to the built-in word list", exc)
        else:
            if not lexicon.is_empty:
                logger.info("Loaded %d words from %s", len(lexicon), path)
                return lexicon
            logger.error("No usable words in %s; falling back to the built-in word list", path)
    return Lexicon.default()


def create_app(config_class=Config, lexicon: Lexicon | None = None) -> tuple[Flask, SessionManager]:
    """Build the HTTP status app and the game session it reports on.

    The session is not listening yet: call ``session.start()`` (background
    thread) or ``session.serve_forever()``.
    """
    app = Flask(__name__)
    app.config.from_object(config_class)

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": cors_origins}})

    match = Match(lexicon or load_lexicon(config_class), config=config_class)
    session = SessionManager(match, config=config_class)
    app.extensions["pictio"] = session

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(match_bp, url_prefix="/api")
    app.register_blueprint(words_bp, url_prefix="/api")
    app.register_blueprint(admin_bp, url_prefix="/api")

    return app, session
