import click

from .auth import IdentityService
from .database import Role, User, db
from .errors import ApiError


def register_commands(app):

    @app.cli.command('init-db')
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo('Database initialized')

    @app.cli.command('create-admin')
    @click.option('--name', default='Admin')
    @click.option('--email', required=True)
    @click.option('--password', required=True)
    def create_admin(name, email, password):
        """Create an administrator account."""
        service = IdentityService(db.session, app.config['SECRET_KEY'])
        try:
            user, _ = service.register(name, email, password, Role.ADMIN.value)
        except ApiError as e:
            raise click.ClickException(e.message)
        click.echo(f"Admin user created: id={user.id} email={user.email}")

    @app.cli.command('list-users')
    def list_users():
        """Print every registered user."""
        for user in User.query.order_by(User.id).all():
            click.echo(f"{user.id}\t{user.name}\t{user.email}\t{user.role}\t{user.status}")
