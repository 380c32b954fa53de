import logging
import os
from datetime import date, datetime

import click
from flask import Flask
from jinja2 import ChoiceLoader, DictLoader, FileSystemLoader
from markupsafe import Markup

from config import INSTANCE_DIR, get_config
from errors import NotFound
from extensions import csrf, db
from identity import Role, current_identity
from security import hash_password, init_security

logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# In-memory fallbacks for the core pages when templates/ is missing
FALLBACK_TEMPLATES = {
    'base.html': """<!doctype html>
<html><head><meta charset="utf-8"><title>{{ title or 'Ella Rises' }}</title></head>
<body>
{% with messages = get_flashed_messages(with_categories=true) %}
{% for category, message in messages %}<div class="flash {{ category }}">{{ message }}</div>{% endfor %}
{% endwith %}
{% block content %}{% endblock %}
</body></html>""",
    'index.html': """{% extends 'base.html' %}
{% block content %}<h1>Ella Rises</h1><a href="{{ url_for('auth.login') }}">Log in</a>{% endblock %}""",
    'login.html': """{% extends 'base.html' %}
{% block content %}<h1>Login</h1>
<form method="post">{{ form.hidden_tag() }}
<label>Username {{ form.username() }}</label>
<label>Password {{ form.password() }}</label>
<button type="submit">Log in</button></form>{% endblock %}""",
}


def configure_logging(level_name):
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )


def lookup_cell(row, path):
    """Resolve a dotted attribute path for table cells."""
    value = row
    for part in path.split('.'):
        if value is None:
            return None
        value = getattr(value, part, None)
    return value


def create_app(config_object=None):
    config_object = config_object or get_config()

    app = Flask(
        __name__,
        template_folder=os.path.join(BASE_DIR, 'templates'),
        static_folder=os.path.join(BASE_DIR, 'static'),
        instance_path=INSTANCE_DIR,
    )
    app.config.from_object(config_object)
    configure_logging(app.config['LOG_LEVEL'])

    if not os.path.exists(app.instance_path):
        os.makedirs(app.instance_path)

    app.jinja_env.loader = ChoiceLoader([
        FileSystemLoader(app.template_folder),
        DictLoader(FALLBACK_TEMPLATES),
    ])

    db.init_app(app)
    csrf.init_app(app)
    init_security(app)

    from admin import admin_bp
    from auth import auth_bp
    from health import health_bp
    from routes import main_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(health_bp)

    register_template_helpers(app)
    register_error_handlers(app)
    register_commands(app)

    return app


def register_template_helpers(app):
    @app.template_filter('money')
    def money_filter(value):
        """Format amount with comma separators (2 decimal places)"""
        try:
            return "${:,.2f}".format(float(value))
        except (ValueError, TypeError):
            return value

    @app.template_filter('cell')
    def cell_filter(row, path):
        value = lookup_cell(row, path)
        if value is None:
            return Markup('&mdash;')
        if isinstance(value, datetime):
            return value.strftime('%Y-%m-%d %H:%M')
        if isinstance(value, date):
            return value.isoformat()
        return value

    # Available in all templates as `current_user`
    @app.context_processor
    def inject_globals():
        return {
            'current_user': current_identity(),
            'now': datetime.now(),
        }


def register_error_handlers(app):
    @app.errorhandler(404)
    def page_not_found(e):
        return 'Not Found', 404

    @app.errorhandler(NotFound)
    def row_not_found(e):
        return 'Not Found', 404

    @app.errorhandler(500)
    def server_error(e):
        logger.error("Unhandled error: %s", getattr(e, 'original_exception', e))
        db.session.rollback()
        return 'Something went wrong. Please try again later.', 500


def create_default_admin():
    """Creates an admin user from DEFAULT_USERNAME/DEFAULT_PASSWORD if no users exist."""
    from app_models import User

    admin_username = os.environ.get('DEFAULT_USERNAME')
    admin_password = os.environ.get('DEFAULT_PASSWORD')

    if not admin_username or not admin_password:
        logger.warning("DEFAULT_USERNAME and/or DEFAULT_PASSWORD are not set. Skipping default admin creation.")
        return None

    if User.query.first() is not None:
        return None

    logger.info("No users found in the database. Creating default admin user...")
    admin_user = User(
        username=admin_username,
        password=hash_password(admin_password),
        level=Role.ADMIN.value,
    )
    db.session.add(admin_user)
    db.session.commit()
    logger.info("Default admin '%s' created.", admin_username)
    return admin_user


def initialize_database():
    import app_models  # noqa: F401  registers the tables on db.metadata

    db.create_all()
    create_default_admin()


def register_commands(app):
    @app.cli.command('init-db')
    def init_db_command():
        """Create tables and the default admin account."""
        initialize_database()
        click.echo('Database initialized.')


if __name__ == '__main__':
    application = create_app()
    with application.app_context():
        initialize_database()

    # For local development only; production runs under gunicorn (wsgi.py)
    port = application.config['PORT']
    logger.info("Ella Rises running at http://localhost:%s", port)
    application.run(host='127.0.0.1', port=port, debug=application.config['DEBUG'])
