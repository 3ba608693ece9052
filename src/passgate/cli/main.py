"""passgate CLI — operator commands.

Usage:
    passgate create-admin alice --display-name "Alice"   # prompts for password
    passgate health                                      # query a running server

create-admin talks to the database directly (it is how the first ADMIN
exists at all); health talks to the HTTP API.
"""

from __future__ import annotations

import asyncio
import json
import os
import sys

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("PASSGATE_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the passgate server."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=10.0)


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="passgate", prog_name="passgate")
def main():
    """passgate — authentication and session management."""


# ---------------------------------------------------------------------------
# passgate create-admin
# ---------------------------------------------------------------------------


@main.command("create-admin")
@click.argument("login_id")
@click.option("--display-name", "-n", help="Display name (defaults to LOGIN_ID)")
@click.option(
    "--password",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="Password for a new account (ignored when promoting)",
)
def create_admin(login_id: str, display_name: str | None, password: str):
    """Create an ADMIN principal, or promote an existing active one."""
    if len(password) < 8:
        click.secho("Error: password must be at least 8 characters", fg="red", err=True)
        sys.exit(1)
    try:
        outcome, uid = asyncio.run(
            create_or_promote_admin(login_id, password, display_name or login_id)
        )
    except ValueError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)
    click.secho(f"{outcome} admin {login_id} ({uid})", fg="green")


async def create_or_promote_admin(
    login_id: str, password: str, display_name: str
) -> tuple[str, str]:
    """Returns ("Created" | "Promoted", uid). Raises ValueError if the
    login_id belongs to a soft-deleted account."""
    from passgate.auth.password import hash_password
    from passgate.db.engine import async_session_factory
    from passgate.db.models import ROLE_ADMIN
    from passgate.events.store import EventStore, user_stream
    from passgate.events.types import USER_PROMOTED, USER_REGISTERED
    from passgate.services.user_store import UserStore

    async with async_session_factory() as db:
        users = UserStore(db)
        events = EventStore(db)

        user = await users.get_active_by_login_id(login_id)
        if user is not None:
            user.role = ROLE_ADMIN
            await events.append(user_stream(user.uid), USER_PROMOTED, {"role": ROLE_ADMIN})
            await db.commit()
            return "Promoted", user.uid

        if await users.login_id_taken(login_id):
            raise ValueError(f"login_id '{login_id}' belongs to a deleted account")

        user = users.add(
            login_id=login_id,
            password_hash=await hash_password(password),
            display_name=display_name[:50],
            role=ROLE_ADMIN,
        )
        await events.append(
            user_stream(user.uid), USER_REGISTERED, {"login_id": login_id, "role": ROLE_ADMIN}
        )
        await db.commit()
        return "Created", user.uid


# ---------------------------------------------------------------------------
# passgate health
# ---------------------------------------------------------------------------


@main.command()
def health():
    """Show server and dependency health."""
    asyncio.run(_health_impl())


async def _health_impl():
    async with _client() as c:
        try:
            r = await c.get("/api/v1/health")
        except httpx.HTTPError as e:
            click.secho(f"Cannot reach {_api_url()}: {e}", fg="red", err=True)
            sys.exit(1)
    data = r.json()
    color = "green" if data.get("status") == "healthy" else "yellow"
    click.secho(f"Status: {data.get('status')}", fg=color, bold=True)
    click.echo(_pretty_json(data))
    if data.get("status") != "healthy":
        sys.exit(2)


if __name__ == "__main__":
    main()
