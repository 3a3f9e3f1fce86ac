import asyncio
import click

from uncip_backend.api.exceptions import ConflictException, ServiceUnavailableException
from uncip_backend.context import build_context
from uncip_backend.interface.base import ResourceType
from uncip_backend.permissions.auth import SessionData, encode_session_token
from uncip_backend.settings import settings


@click.command()
def init_db():
    """Create the documents table and its indexes."""
    from uncip_backend.database import build_engine
    from uncip_backend.model import Base

    engine = build_engine(settings)
    Base.metadata.create_all(engine)
    click.echo(f"Initialized database {settings.POSTGRES_DB}")


@click.command()
@click.option("--email", "-e", "email", prompt=True)
@click.option("--name", "-n", "display_name", prompt=True)
@click.option("--password", "-p", "password", prompt=True, hide_input=True, confirmation_prompt=True)
def create_admin(email, display_name, password):
    """Bootstrap an administrator account and profile."""
    from uncip_backend.services.users import bootstrap_admin

    context = build_context(settings)

    try:
        profile = asyncio.run(bootstrap_admin(context, email, display_name, password))
    except (ConflictException, ServiceUnavailableException) as e:
        raise click.ClickException(e.detail["message"])

    click.echo(f"Created admin {profile['email']} ({profile['id']})")


@click.command()
@click.argument("user_id")
@click.option("--expires-in", "expires_in", type=int, default=None, help="Lifetime in seconds")
def issue_token(user_id, expires_in):
    """Mint a session token for an existing user profile."""
    context = build_context(settings)

    profile = asyncio.run(context.repository.find(ResourceType.USER, user_id))
    if profile is None:
        raise click.ClickException(f"User {user_id} not found")

    session = SessionData(
        user_id=profile["id"],
        role=profile.get("role"),
        roles=profile.get("roles"),
        email=profile.get("email"),
        display_name=profile.get("display_name"),
        school_id=profile.get("school_id"),
    )
    click.echo(encode_session_token(session, settings, expires_in=expires_in))


@click.group()
def admin():
    pass

admin.add_command(init_db, "init-db")
admin.add_command(create_admin, "create-admin")
admin.add_command(issue_token, "issue-token")
