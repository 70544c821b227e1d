import logging

from flask import Flask

from clinic.config import get_config, validate_config
from clinic.controllers import api
from clinic.database import db
from clinic.errors import register_error_handlers
from clinic.users import ensure_default_admin


def create_app(config=None, overrides=None):
    app = Flask(__name__)
    app.config.from_object(config or get_config())
    if overrides:
        app.config.update(overrides)
    validate_config(app.config)

    app.logger.setLevel(getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO))
    db.init_app(app)
    app.register_blueprint(api, url_prefix='/api')
    register_error_handlers(app)

    @app.cli.command('init-db')
    def init_db():
        """Create the tables and the default admin account."""
        init_database(app)
        print("Database initialised.")

    return app


def init_database(app):
    with app.app_context():
        db.create_all()
        ensure_default_admin(app.config['ADMIN_EMAIL'], app.config['ADMIN_PASSWORD'])


app = create_app()


if __name__ == "__main__":
    init_database(app)
    app.run(debug=app.config['DEBUG'])
