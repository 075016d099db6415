"""
Learnova Realtime CLI.

Command-line interface for running the gateway and working with its tokens.
"""

import sys

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="learnova-realtime",
    help="Learnova Realtime Gateway CLI",
    add_completion=False,
)
console = Console()

SECRET_FIELDS = frozenset({"jwt_secret", "database_url"})


def _mask(value: str) -> str:
    if len(value) <= 4:
        return "****"
    return value[:2] + "*" * (len(value) - 4) + value[-2:]


# =============================================================================
# Server Commands
# =============================================================================

@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(None, help="Port (default: WS_GATEWAY_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the realtime gateway with uvicorn."""
    import uvicorn
    from shared.config.settings import settings

    port = port or settings.ws_gateway_port
    console.print(f"[blue]Starting realtime gateway on {host}:{port}[/blue]")
    uvicorn.run("realtime_gateway.main:app", host=host, port=port, reload=reload)


@app.command()
def health(
    url: str = typer.Option("http://localhost:5000/ws/health", help="Health endpoint URL"),
):
    """Check a running gateway."""
    import time
    import httpx

    table = Table(title="Gateway Health")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    try:
        start = time.time()
        response = httpx.get(url, timeout=5.0)
        elapsed = (time.time() - start) * 1000
    except httpx.HTTPError as e:
        console.print(f"[red]✗ {type(e).__name__}: {e}[/red]")
        raise typer.Exit(1)

    if response.status_code != 200:
        console.print(f"[red]✗ Status {response.status_code}[/red]")
        raise typer.Exit(1)

    body = response.json()
    for key in ("status", "version", "environment", "total_connections", "users_present", "rooms"):
        table.add_row(key, str(body.get(key, "?")))
    table.add_row("response_time", f"{elapsed:.0f}ms")
    console.print(table)


# =============================================================================
# Token Commands
# =============================================================================

@app.command()
def issue_token(
    user_id: str = typer.Option(..., "--user-id", help="Identity claim (userId)"),
    email: str = typer.Option(None, "--email", help="Optional email claim"),
    ttl_days: int = typer.Option(None, "--ttl-days", help="Lifetime in days (default: JWT_ACCESS_TOKEN_EXPIRE_DAYS)"),
):
    """Sign an access token the gateway will accept."""
    from shared.config.logging import audit_token_event, setup_logging
    from shared.config.settings import settings
    from shared.security.auth import sign_jwt

    setup_logging()
    if not user_id.strip():
        console.print("[red]✗ --user-id must not be empty[/red]")
        raise typer.Exit(1)

    days = ttl_days if ttl_days is not None else settings.jwt_access_token_expire_days
    if days <= 0:
        console.print("[red]✗ --ttl-days must be positive[/red]")
        raise typer.Exit(1)

    payload = {"userId": user_id.strip()}
    if email:
        payload["email"] = email

    token = sign_jwt(payload, ttl_seconds=days * 24 * 60 * 60)
    audit_token_event("ISSUED", user_id=payload["userId"], token_type="access", ttl_days=days)
    # Plain print so the token can be piped
    print(token)


@app.command()
def decode_token(
    token: str = typer.Argument(..., help="JWT to verify"),
):
    """Verify a token and show its claims."""
    from datetime import datetime, timezone
    from shared.security.auth import TokenError, extract_identity, verify_jwt

    try:
        claims = verify_jwt(token)
        identity = extract_identity(claims)
    except TokenError as e:
        console.print(f"[red]✗ {e.detail} ({e.reason})[/red]")
        raise typer.Exit(1)

    table = Table(title="Token Claims")
    table.add_column("Claim", style="cyan")
    table.add_column("Value", style="green")

    for key, value in claims.items():
        if key in ("iat", "exp") and isinstance(value, int):
            value = f"{value} ({datetime.fromtimestamp(value, tz=timezone.utc).isoformat()})"
        table.add_row(key, str(value))

    console.print(table)
    console.print(f"[green]✓ Valid token for user {identity.user_id}[/green]")


# =============================================================================
# Config Commands
# =============================================================================

@app.command()
def show_config():
    """Show effective settings (secrets masked)."""
    from shared.config.settings import settings

    table = Table(title="Effective Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.model_dump().items():
        shown = _mask(str(value)) if key in SECRET_FIELDS else str(value)
        table.add_row(key, shown)

    console.print(table)

    errors = settings.validate_production_secrets()
    for error in errors:
        console.print(f"[yellow]! {error}[/yellow]")


@app.command()
def version():
    """Show version information."""
    from realtime_gateway.main import VERSION

    table = Table(title="Learnova Realtime Version")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")

    table.add_row("Gateway", VERSION)
    table.add_row("CLI", "1.0.0")
    table.add_row("Python", sys.version.split()[0])

    console.print(table)


if __name__ == "__main__":
    app()
