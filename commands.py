"""
Flask CLI commands for managing dashboard accounts.

    flask create-user someone@example.com --name "Some One" --admin
    flask reset-password someone@example.com
"""
import click

from models import db
from models.user import User
from utils.validators import normalize_email, validate_email


def register_commands(app):
    @app.cli.command('create-user')
    @click.argument('email')
    @click.option('--name', default='', help='Full name shown in the dashboard.')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option('--admin', is_flag=True, help='Grant access to the admin panel.')
    def create_user(email, name, password, admin):
        """Create a dashboard user, or update an existing one."""
        email = normalize_email(email)
        if not validate_email(email):
            raise click.BadParameter('Please enter a valid email address.', param_hint='EMAIL')

        user = User.query.filter_by(email=email).first()
        created = user is None
        if created:
            user = User(email=email)
            db.session.add(user)
        user.full_name = name or user.full_name or email.split('@')[0]
        user.is_admin = admin or bool(user.is_admin)
        user.is_active = True
        user.set_password(password)
        db.session.commit()
        click.echo(f"[SUCCESS] User {email} {'created' if created else 'updated'}{' (admin)' if user.is_admin else ''}.")

    @app.cli.command('reset-password')
    @click.argument('email')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
    def reset_password(email, password):
        """Set a new password for an existing user."""
        user = User.query.filter_by(email=normalize_email(email)).first()
        if not user:
            raise click.ClickException(f"No user found with email {email}")
        user.set_password(password)
        db.session.commit()
        click.echo(f"[SUCCESS] Password reset for {user.email}.")
