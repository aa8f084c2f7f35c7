# backend/possync/__init__.py
from flask import Flask

from .config import Config
from .extensions import db


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)

    # Import models so metadata is complete before create_all
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.sync import sync_bp
    from .routes.vouchers import vouchers_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(sync_bp)
    app.register_blueprint(vouchers_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
