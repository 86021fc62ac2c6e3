#!/usr/bin/env python3
"""
Command-line interface for the blog site client.

This module provides a command-line interface using Typer for signing in,
browsing blog posts and managing the local session.
"""
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Coroutine, Optional, Tuple

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from blogapi.auth.exceptions import AuthError
from blogapi.auth.store import CredentialStore, MemoryKeyValueStore, SQLiteKeyValueStore
from blogapi.client.access import AccessLayer
from blogapi.client.errors import ApiError
from blogapi.config import Settings, StorageBackend, get_settings, load_settings
from blogapi.diagnostics import configure_logging
from blogapi.services.auth_service import AuthService
from blogapi.services.blog_service import BlogService

# Create Typer app
app = typer.Typer(
    name="blogapi",
    help="Read the blog and manage your account from the terminal",
    add_completion=False,
)

# Rich console for pretty output
console = Console()

# Configure logger
logger = logging.getLogger(__name__)

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to config file (JSON)",
    exists=True,
    dir_okay=False,
    readable=True,
)


def run_async_safely(coro: Coroutine) -> Any:
    """
    Run a coroutine from synchronous CLI code.

    Raises:
        RuntimeError: If called while an event loop is already running
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        logger.debug("No event loop running, using asyncio.run()")
        return asyncio.run(coro)

    coro.close()
    raise RuntimeError("run_async_safely() cannot be called from a running event loop")


def build_credential_store(settings: Settings) -> CredentialStore:
    """Credential store for the configured backend, scoped to the API origin."""
    if settings.storage.backend == StorageBackend.MEMORY:
        return CredentialStore(MemoryKeyValueStore())
    return CredentialStore(
        SQLiteKeyValueStore(settings.credentials_db_path, origin=settings.api.base_url)
    )


def _install_session_notices(access: AccessLayer) -> None:
    """Replace browser-style redirects with terminal notices."""
    access.configure(
        on_unauthenticated=lambda: console.print(
            "[yellow]Your session has ended. Run [bold]blogapi login[/bold] to sign in again.[/yellow]"
        ),
        on_forbidden=lambda: console.print(
            "[yellow]Your account is not allowed to do that.[/yellow]"
        ),
        on_rate_limited=lambda retry_after: console.print(
            f"[yellow]Rate limited. Try again in {retry_after} seconds.[/yellow]"
            if retry_after is not None
            else "[yellow]Rate limited. Try again later.[/yellow]"
        ),
    )


@asynccontextmanager
async def open_client(settings: Settings) -> AsyncIterator[Tuple[AccessLayer, AuthService, BlogService]]:
    """Access layer plus services for one CLI command."""
    access = AccessLayer.from_settings(settings, credentials=build_credential_store(settings))
    _install_session_notices(access)
    try:
        yield access, AuthService(access), BlogService(access)
    finally:
        await access.close()


def _load(config_file: Optional[Path]) -> Settings:
    settings = load_settings(config_file)
    configure_logging(settings)
    return settings


def _fail(error: Exception) -> None:
    message = error.message if isinstance(error, (ApiError, AuthError)) else str(error)
    console.print(f"[bold red]Error:[/bold red] {message}", style="red")
    raise typer.Exit(code=1)


@app.command("login")
def login(
    email: str = typer.Option(..., "--email", "-e", prompt=True, help="Account email"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """Sign in with email and password."""
    settings = _load(config_file)
    if not settings.features.enable_email_auth:
        _fail(RuntimeError("Email sign-in is disabled"))

    async def _run():
        async with open_client(settings) as (_, auth, _blogs):
            return await auth.login(email, password)

    try:
        result = run_async_safely(_run())
    except (ApiError, AuthError, RuntimeError) as e:
        _fail(e)
    console.print(f"[green]✓ Signed in as {result.user.name} <{result.user.email}>[/green]")


@app.command("register")
def register(
    email: str = typer.Option(..., "--email", "-e", prompt=True, help="Account email"),
    name: str = typer.Option(..., "--name", "-n", prompt=True, help="Display name"),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True
    ),
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """Create an account."""
    settings = _load(config_file)
    if not settings.features.enable_email_auth:
        _fail(RuntimeError("Email registration is disabled"))

    async def _run():
        async with open_client(settings) as (_, auth, _blogs):
            return await auth.register(email, password, name)

    try:
        result = run_async_safely(_run())
    except (ApiError, AuthError, RuntimeError) as e:
        _fail(e)
    console.print(f"[green]✓ Registered and signed in as {result.user.email}[/green]")


@app.command("logout")
def logout(config_file: Optional[Path] = ConfigOption) -> None:
    """Sign out and forget the stored credentials."""
    settings = _load(config_file)

    async def _run():
        async with open_client(settings) as (_, auth, _blogs):
            await auth.logout()

    try:
        run_async_safely(_run())
    except AuthError as e:
        _fail(e)
    console.print("[green]✓ Signed out[/green]")


@app.command("whoami")
def whoami(config_file: Optional[Path] = ConfigOption) -> None:
    """Show the signed-in user."""
    settings = _load(config_file)

    async def _run():
        async with open_client(settings) as (_, auth, _blogs):
            return await auth.get_current_user()

    try:
        user = run_async_safely(_run())
    except (ApiError, AuthError) as e:
        _fail(e)

    table = Table(title="Profile")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Name", user.name)
    table.add_row("Email", user.email)
    table.add_row("Role", user.role or "-")
    table.add_row("Verified", "Yes" if user.is_verified else "No")
    console.print(table)


@app.command("profile")
def update_profile(
    name: Optional[str] = typer.Option(None, "--name", "-n", help="New display name"),
    avatar: Optional[str] = typer.Option(None, "--avatar", "-a", help="New avatar URL"),
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """Update the signed-in user's profile."""
    settings = _load(config_file)
    if not settings.features.enable_profile_editing:
        _fail(RuntimeError("Profile editing is disabled"))
    if name is None and avatar is None:
        _fail(RuntimeError("Nothing to update: pass --name and/or --avatar"))

    async def _run():
        async with open_client(settings) as (_, auth, _blogs):
            return await auth.update_profile(name=name, avatar=avatar)

    try:
        user = run_async_safely(_run())
    except (ApiError, AuthError) as e:
        _fail(e)
    console.print(f"[green]✓ Profile updated for {user.email}[/green]")


@app.command("blogs")
def list_blogs(
    tag: Optional[str] = typer.Option(None, "--tag", "-t"),
    author: Optional[str] = typer.Option(None, "--author"),
    search: Optional[str] = typer.Option(None, "--search", "-s"),
    page: Optional[int] = typer.Option(None, "--page", min=1),
    limit: Optional[int] = typer.Option(None, "--limit", min=1),
    sort: Optional[str] = typer.Option(None, "--sort"),
    order: Optional[str] = typer.Option(None, "--order", help="asc or desc"),
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """List blog posts."""
    settings = _load(config_file)

    async def _run():
        async with open_client(settings) as (_, _auth, blogs):
            return await blogs.get_all_blogs(
                tag=tag, author=author, search=search, page=page, limit=limit, sort=sort, order=order
            )

    try:
        posts = run_async_safely(_run())
    except (ApiError, AuthError, ValueError) as e:
        _fail(e)

    table = Table(title=f"Blogs ({len(posts)})")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Author", style="green")
    table.add_column("Published", style="yellow")
    table.add_column("Tags", style="magenta")
    for post in posts:
        table.add_row(post.id, post.title, post.author, post.published_date, ", ".join(post.tags))
    console.print(table)


@app.command("blog")
def show_blog(
    blog_id: Optional[str] = typer.Argument(None, help="Blog ID"),
    slug: Optional[str] = typer.Option(None, "--slug", help="Look the post up by slug instead"),
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """Read a single blog post."""
    if not blog_id and not slug:
        _fail(RuntimeError("Pass a blog ID or --slug"))
    settings = _load(config_file)

    async def _run():
        async with open_client(settings) as (_, _auth, blogs):
            if slug:
                return await blogs.get_blog_by_slug(slug)
            return await blogs.get_blog_by_id(blog_id)

    try:
        post = run_async_safely(_run())
    except (ApiError, AuthError) as e:
        _fail(e)

    console.print(
        Panel.fit(
            f"[bold]{post.title}[/bold]\n"
            f"[italic]{post.author} · {post.published_date} · {post.read_time}[/italic]",
            border_style="cyan",
        )
    )
    console.print(Markdown(post.content or post.excerpt))


@app.command("tags")
def list_tags(config_file: Optional[Path] = ConfigOption) -> None:
    """List all tags."""
    settings = _load(config_file)

    async def _run():
        async with open_client(settings) as (_, _auth, blogs):
            return await blogs.get_all_tags()

    try:
        tags = run_async_safely(_run())
    except (ApiError, AuthError) as e:
        _fail(e)
    console.print(", ".join(tags) if tags else "[dim]No tags[/dim]")


@app.command("status")
def show_status(config_file: Optional[Path] = ConfigOption) -> None:
    """Show the locally stored session."""
    settings = _load(config_file)
    try:
        status = build_credential_store(settings).status()
    except AuthError as e:
        _fail(e)

    table = Table(title="Session Status")
    table.add_column("API", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Expires", style="yellow")
    table.add_column("Refresh Token", style="magenta")
    table.add_row(
        settings.api.base_url,
        "✓ Signed in" if status["authenticated"] else "✗ Signed out",
        status["expires_at"].isoformat() if status["expires_at"] else "N/A",
        "Present" if status["has_refresh_token"] else "Missing",
    )
    console.print(table)


@app.command("version")
def show_version() -> None:
    """Show version information."""
    settings = get_settings()

    table = Table(title=f"{settings.app.app_name} v{settings.app.version}")
    table.add_column("Component", style="cyan")
    table.add_column("Version/Status", style="green")

    table.add_row("Python", sys.version.split()[0])
    table.add_row("Environment", settings.app.environment.value)
    table.add_row("Log Level", settings.app.log_level.value)
    table.add_row("API", settings.api.base_url)
    table.add_row("Email Auth", "Enabled" if settings.features.enable_email_auth else "Disabled")
    table.add_row("SSO", "Enabled" if settings.features.is_any_sso_enabled() else "Disabled")

    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
