from __future__ import annotations

import logging

import click
from flask import Flask

from portal.core.api import register_error_handlers
from portal.core.auth import auth_bp
from portal.core.config import Config
from portal.core.extensions import db, login_manager, migrate
from portal.core.models import User, UserRole, seed_demo_data
from portal.core.validation import ADMIN_PASSWORD_MIN_LENGTH, validate_email
from portal.directory import directory_bp
from portal.directory.client import DirectoryClient
from portal.documents import documents_bp
from portal.users import users_bp


def create_app(config_object: type[Config] | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    app.extensions["directory"] = DirectoryClient(
        app.config["DIRECTORY_API_URL"],
        token=app.config.get("DIRECTORY_API_TOKEN", ""),
        timeout=app.config.get("DIRECTORY_TIMEOUT", 10.0),
    )

    app.register_blueprint(auth_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(directory_bp)

    register_error_handlers(app)
    register_cli(app)
    return app


def configure_logging(app: Flask) -> None:
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("portal").setLevel(level)
    app.logger.setLevel(level)


def register_cli(app: Flask) -> None:
    @app.cli.command("seed-demo")
    @click.option("--reset", is_flag=True, help="Delete existing data before seed.")
    def seed_demo(reset: bool) -> None:
        """Seed roles, users, modules, permissions and sample documents."""
        if reset:
            db.drop_all()
            db.create_all()
        if not User.query.first():
            seed_demo_data(db.session)
            click.echo("Demo data seeded.")
        else:
            click.echo("Seed skipped: existing users found.")

    @app.cli.command("create-super-admin")
    @click.option("--email", required=True)
    @click.option("--name", required=True)
    @click.option("--password", required=True, prompt=True, hide_input=True, confirmation_prompt=True)
    def create_super_admin(email: str, name: str, password: str) -> None:
        """Create a SUPER_ADMIN account."""
        email = email.strip().lower()
        if not validate_email(email):
            raise click.BadParameter("Email inválido", param_hint="--email")
        if len(password) < ADMIN_PASSWORD_MIN_LENGTH:
            raise click.BadParameter("La contraseña debe tener al menos 6 caracteres", param_hint="--password")
        if User.query.filter_by(email=email).first():
            raise click.ClickException("El email ya está registrado")
        user = User(email=email, name=name.strip(), role=UserRole.SUPER_ADMIN)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        click.echo(f"Super admin {email} created.")


@login_manager.user_loader
def load_user(user_id: str) -> User | None:
    return db.session.get(User, int(user_id))
