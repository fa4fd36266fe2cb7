from flask import Flask, jsonify
from .extensions import db, migrate, rq


def create_app(test_config=None):
    """App factory shared by the web process, the RQ worker and scripts.

    ``test_config`` overrides values loaded from ``config.Config``.
    """
    app = Flask(__name__)
    app.config.from_object('config.Config')
    if test_config:
        app.config.update(test_config)

    db.init_app(app)
    migrate.init_app(app, db, directory=app.config.get('MIGRATIONS_DIR', 'alembic'))
    rq.init_app(app)

    # register models on the metadata
    from . import models  # noqa: F401

    from .api.webhooks import bp as webhooks_bp
    from .api.calls import bp as calls_bp
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(calls_bp)

    @app.get('/health')
    def health():
        return jsonify({"ok": True})

    return app
