"""Taskboard CLI — serve the app and maintain stored credentials."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from pydantic import ValidationError
from taskboard_auth import LINEAR_PROVIDER, CredentialStorage, create_credential_storage, describe_expiration, is_near_expiry

from taskboard_api.settings import Settings

T = TypeVar("T")

app = typer.Typer(name="taskboard", help="Taskboard CLI — Linear actor=app credential maintenance.")


def _load_settings() -> Settings:
    try:
        return Settings.from_env()
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) or "settings" for err in exc.errors()})
        typer.echo(f"Invalid configuration: {', '.join(fields)}", err=True)
        raise typer.Exit(code=1) from exc


def open_storage(settings: Settings) -> CredentialStorage:
    """Open the server's credential storage from this process.

    The memory backend lives inside the server process, so a CLI process
    would only ever see its own empty store.
    """
    if settings.credential_backend == "memory":
        typer.echo(
            "The memory credential backend is per-process; the CLI cannot reach the server's credentials. "
            "Set CREDENTIAL_BACKEND=redis (and REDIS_URL) to use this command.",
            err=True,
        )
        raise typer.Exit(code=1)
    return create_credential_storage(settings.storage_config())


def _with_storage(action: Callable[[CredentialStorage], Awaitable[T]]) -> T:
    storage = open_storage(_load_settings())

    async def _run() -> T:
        try:
            return await action(storage)
        finally:
            await storage.close()

    return asyncio.run(_run())


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address."),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port."),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes (development only)."),
) -> None:
    """Run the API server with uvicorn."""
    _load_settings()

    import uvicorn

    uvicorn.run("taskboard_api:app", host=host, port=port, reload=reload)


@app.command()
def status(
    provider: str = typer.Option(LINEAR_PROVIDER, "--provider", help="Integration to inspect."),
) -> None:
    """Show the stored credential's expiration status."""
    record = _with_storage(lambda storage: storage.get_token(provider))
    if record is None:
        typer.echo(f"No credential stored for {provider}.")
        raise typer.Exit(code=1)

    info = describe_expiration(record)
    typer.echo(f"Provider:   {record.provider}")
    typer.echo(f"Expires at: {info.expires_at.isoformat()}")
    typer.echo(f"Remaining:  {info.time_until_expiration}")
    if info.is_expired:
        typer.echo("Credential has expired. Re-authorize from /auth.")
        raise typer.Exit(code=1)
    if is_near_expiry(record):
        typer.echo("Credential expires within 24 hours. Re-authorize from /auth.")


@app.command()
def cleanup() -> None:
    """Delete expired or corrupt stored credentials."""
    count = _with_storage(lambda storage: storage.cleanup_expired_tokens())
    typer.echo(f"Removed {count} expired credential(s).")


@app.command()
def clear(
    provider: str | None = typer.Option(None, "--provider", help="Only clear this integration's credential."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete stored credentials without contacting the provider."""
    target = provider or "ALL providers"
    if not yes:
        typer.confirm(f"Delete stored credentials for {target}?", abort=True)
    _with_storage(lambda storage: storage.clear_tokens(provider))
    typer.echo(f"Cleared credentials for {target}.")


def main() -> None:
    app()
