import os

import click
from dotenv import load_dotenv
from flask import Flask, jsonify, send_from_directory
from flask_login import login_required
from werkzeug.middleware.proxy_fix import ProxyFix

from yachtdesk.config import config_by_env
from yachtdesk.errors import register_error_handlers
from yachtdesk.extensions import bcrypt, cache, csrf, db, limiter, login_manager, migrate
from yachtdesk.models import User
from yachtdesk.routes.api.v1 import api_v1_bp
from yachtdesk.services import AuthService, OutboxService, change_feed


@login_manager.user_loader
def load_user(user_id):
    user = db.session.get(User, int(user_id))
    if user is None or not user.is_active_user:
        return None
    return user


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Authentication required"}), 401


def create_app(env=None):
    load_dotenv()
    env = env or os.getenv("FLASK_ENV", "development")
    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_by_env.get(env, config_by_env["development"]))
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if db_uri.startswith("sqlite:///") and not db_uri.startswith("sqlite:////") and db_uri != "sqlite:///:memory:":
        relative_path = db_uri.replace("sqlite:///", "", 1)
        absolute_path = os.path.join(project_root, relative_path)
        os.makedirs(os.path.dirname(absolute_path), exist_ok=True)
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{absolute_path}"

    upload_dir = app.config["UPLOAD_DIR"]
    if not os.path.isabs(upload_dir):
        upload_dir = os.path.join(project_root, upload_dir)
    app.config["UPLOAD_DIR"] = upload_dir
    os.makedirs(app.config["UPLOAD_DIR"], exist_ok=True)

    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    csrf.init_app(app)
    cache.init_app(app)
    limiter.init_app(app)
    login_manager.init_app(app)
    _init_sentry(app)

    register_error_handlers(app)
    app.register_blueprint(api_v1_bp, url_prefix="/api/v1")
    _register_media_route(app)
    _register_commands(app)

    change_feed.install()

    if env == "development":
        with app.app_context():
            db.create_all()

    return app


def _init_sentry(app):
    dsn = app.config.get("SENTRY_DSN")
    if not dsn:
        return
    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.05")),
            environment=os.getenv("FLASK_ENV", "production"),
        )
        app.logger.info("Sentry initialized.")
    except Exception as exc:
        app.logger.warning("Sentry initialization failed: %s", exc)


def _register_media_route(app):
    media_base = app.config.get("MEDIA_BASE_URL", "")
    if not media_base.startswith("/"):
        return

    @app.get(f"{media_base.rstrip('/')}/<path:filename>")
    @login_required
    def media(filename):
        return send_from_directory(app.config["UPLOAD_DIR"], filename)


def _register_commands(app):
    @app.cli.command("drain-outbox")
    @click.option("--limit", default=100, show_default=True, help="Maximum events to process.")
    def drain_outbox(limit):
        """Deliver pending outbox events."""
        summary = OutboxService.drain(limit=limit)
        click.echo(
            f"delivered={summary['delivered']} retrying={summary['retrying']} failed={summary['failed']}"
        )

    @app.cli.command("create-master")
    @click.argument("email")
    @click.password_option()
    def create_master(email, password):
        """Create the first master account."""
        user = User(
            email=email.strip().lower(),
            role="master",
            password_hash=AuthService.hash_password(password),
        )
        db.session.add(user)
        db.session.commit()
        click.echo(f"Created master user {user.email}")
