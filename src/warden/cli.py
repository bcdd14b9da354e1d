"""
CLI entry point for Warden.

This module provides the Typer-based command-line interface for Warden.
It is an inspection tool: every command answers a question about what a
given user may see or do.

Commands:
    init        Create the database schema, optionally with demo data
    users       List user accounts
    login       Open a session and print its token
    whoami      Resolve a session token to its principal
    logout      Revoke a session token
    rules       Show the rule set of a user
    check       Decide one request and explain the outcome
    projects    List the projects a user can see
    documents   List the documents a user can see in a project

Architecture Note:
    The CLI is intentionally thin. It resolves the user, builds a
    RequestContext and delegates to the policy core and resource services.
"""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Any, NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from warden import __version__
from warden.config import Settings, load_settings
from warden.context import Clock, RequestContext
from warden.errors import WardenError
from warden.policy.engine import PolicyEngine
from warden.schema import ALL_FIELDS, Action, PolicyRule, Principal, ResourceType
from warden.seed import seed
from warden.services import DocumentService, ProjectService
from warden.session import SessionManager
from warden.store import WardenDB

# Initialize Typer app with metadata
app = typer.Typer(
    name="warden",
    help="Inspect attribute-based access control decisions.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich consoles for formatted output
console = Console()
err_console = Console(stderr=True)

EmailOption = Annotated[
    str,
    typer.Option("--as", "-u", help="Email address of the user to act as."),
]
DbOption = Annotated[
    Optional[Path],
    typer.Option("--db", help="Path to the SQLite database. Overrides the settings."),
]
AtOption = Annotated[
    Optional[datetime],
    typer.Option("--at", help="Evaluate as of this UTC date/time instead of now."),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output results in JSON format."),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]warden[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    config: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to a settings YAML file. Defaults to $WARDEN_CONFIG.",
            exists=True,
            dir_okay=False,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            help="Log policy decisions at debug level.",
        ),
    ] = False,
) -> None:
    """
    Warden - Attribute-based access control for projects and documents.

    Build a user's rule set, decide requests against it, and see exactly
    which records and fields it exposes.
    """
    try:
        settings = load_settings(config)
    except WardenError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)

    _configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = settings


def _configure_logging(level: str) -> None:
    """Route the warden loggers to stderr through rich."""
    logger = logging.getLogger("warden")
    logger.setLevel(level)
    if not logger.handlers:
        logger.addHandler(RichHandler(console=err_console, show_path=False))


# =============================================================================
# Shared helpers
# =============================================================================


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj if isinstance(ctx.obj, Settings) else Settings()


def _open_db(ctx: typer.Context, db: Path | None, must_exist: bool = True) -> WardenDB:
    db_path = db or _settings(ctx).database_path
    if must_exist and not Path(db_path).exists():
        err_console.print(f"[yellow]No database found at {db_path}[/yellow]")
        err_console.print("[dim]Run 'warden init --seed' first.[/dim]")
        raise typer.Exit(code=1)
    return WardenDB(db_path)


def _principal_for(db: WardenDB, email: str) -> Principal:
    user = db.get_user_by_email(email)
    if user is None:
        err_console.print(f"[red]Unknown user: {email}[/red]")
        raise typer.Exit(code=1)
    return user.to_principal()


def _clock_at(at: datetime | None) -> Clock | None:
    """Fixed clock for --at, or None for the real one."""
    if at is None:
        return None
    instant = at if at.tzinfo is not None else at.replace(tzinfo=UTC)
    return lambda: instant


def _request_context(
    ctx: typer.Context,
    db: WardenDB,
    email: str,
    at: datetime | None = None,
) -> RequestContext:
    principal = _principal_for(db, email)
    clock = _clock_at(at)
    if clock is None:
        return RequestContext(principal, db, settings=_settings(ctx))
    return RequestContext(principal, db, clock=clock, settings=_settings(ctx))


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _fail(error: WardenError, json_output: bool) -> NoReturn:
    """Report a Warden error and exit non-zero."""
    if json_output:
        _print_json({"error": True, **error.to_dict()})
    else:
        err_console.print(f"[red]{error}[/red]")
    raise typer.Exit(code=1)


def _fields_display(rule: PolicyRule) -> str:
    if rule.fields == ALL_FIELDS:
        return "*"
    return ", ".join(sorted(rule.fields))


# =============================================================================
# Commands
# =============================================================================


@app.command()
def init(
    ctx: typer.Context,
    with_seed: Annotated[
        bool,
        typer.Option("--seed", help="Replace the contents with demo data."),
    ] = False,
    db: DbOption = None,
) -> None:
    """
    Create the database schema.

    Example:
        $ warden init --seed --db demo.db
    """
    try:
        with _open_db(ctx, db, must_exist=False) as database:
            if with_seed:
                counts = seed(database)
                console.print(
                    f"[green]Seeded[/green] {counts['users']} users, "
                    f"{counts['projects']} projects, {counts['documents']} documents"
                )
            else:
                console.print(f"[green]Initialized[/green] {database.db_path}")
    except WardenError as e:
        _fail(e, json_output=False)


@app.command("users")
def list_users(
    ctx: typer.Context,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List user accounts with their role and department."""
    with _open_db(ctx, db) as database:
        users = database.list_users()

    if json_output:
        _print_json([u.model_dump(mode="json") for u in users])
        return

    if not users:
        console.print("[dim]No users found.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Email", style="cyan")
    table.add_column("Name")
    table.add_column("Role")
    table.add_column("Department")
    for user in users:
        table.add_row(user.email, user.name, user.role.value, user.department)
    console.print(table)


@app.command()
def login(
    ctx: typer.Context,
    email: Annotated[str, typer.Argument(help="Email address of the user.")],
    db: DbOption = None,
) -> None:
    """
    Open a session for a user and print the token.

    Example:
        $ warden login author.eng@example.com
    """
    with _open_db(ctx, db) as database:
        token = SessionManager(database, _settings(ctx)).login(email)

    if token is None:
        err_console.print(f"[red]Unknown user: {email}[/red]")
        raise typer.Exit(code=1)
    print(token)


@app.command()
def whoami(
    ctx: typer.Context,
    token: Annotated[str, typer.Argument(help="Session token from 'warden login'.")],
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Resolve a session token to the principal it stands for."""
    with _open_db(ctx, db) as database:
        principal = SessionManager(database, _settings(ctx)).current_principal(token)

    if principal is None:
        err_console.print("[yellow]Anonymous: the token is unknown or expired[/yellow]")
        raise typer.Exit(code=1)

    if json_output:
        _print_json(principal.model_dump(mode="json"))
    else:
        console.print(
            f"[cyan]{principal.id}[/cyan] {principal.role.value} in {principal.department}"
        )


@app.command()
def logout(
    ctx: typer.Context,
    token: Annotated[str, typer.Argument(help="Session token to revoke.")],
    db: DbOption = None,
) -> None:
    """Revoke a session token."""
    with _open_db(ctx, db) as database:
        SessionManager(database, _settings(ctx)).logout(token)
    console.print("[green]Logged out[/green]")


@app.command()
def rules(
    ctx: typer.Context,
    email: EmailOption,
    at: AtOption = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Show the rule set a user gets for a request.

    Example:
        $ warden rules --as author.eng@example.com --at 2026-10-24
    """
    with _open_db(ctx, db) as database:
        try:
            rule_set = _request_context(ctx, database, email, at).rule_set
        except WardenError as e:
            _fail(e, json_output)

    if json_output:
        _print_json({
            "principal": rule_set.principal.model_dump(mode="json"),
            "built_at": rule_set.built_at.isoformat(),
            "is_weekend": rule_set.is_weekend,
            "rules": [
                {
                    "resource_type": rule.resource_type.value,
                    "action": rule.action.value,
                    "condition": str(rule.condition) if rule.condition else None,
                    "fields": "*" if rule.has_all_fields else sorted(rule.fields),
                }
                for rule in rule_set.rules
            ],
        })
        return

    principal = rule_set.principal
    console.print(
        f"[bold]{email}[/bold] ({principal.role.value}, {principal.department})"
        f"{' [yellow]weekend[/yellow]' if rule_set.is_weekend else ''}"
    )

    table = Table(show_header=True, header_style="bold")
    table.add_column("Resource", style="cyan")
    table.add_column("Action")
    table.add_column("Condition")
    table.add_column("Fields")
    for rule in rule_set.rules:
        table.add_row(
            rule.resource_type.value,
            rule.action.value,
            str(rule.condition) if rule.condition else "[dim]always[/dim]",
            _fields_display(rule),
        )
    console.print(table)
    console.print(f"[dim]{rule_set.rule_count} rules[/dim]")


@app.command()
def check(
    ctx: typer.Context,
    resource: Annotated[ResourceType, typer.Argument(help="Resource type.")],
    action: Annotated[Action, typer.Argument(help="Action to decide.")],
    email: EmailOption,
    record_id: Annotated[
        Optional[str],
        typer.Option("--id", help="Decide against this record instead of the type."),
    ] = None,
    field: Annotated[
        Optional[str],
        typer.Option("--field", "-f", help="Ask about a single field."),
    ] = None,
    at: AtOption = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Decide one request and explain the outcome.

    Exits with 0 when the request is allowed and 1 when it is denied.

    Example:
        $ warden check document update --as author.eng@example.com --id <doc-id>
    """
    with _open_db(ctx, db) as database:
        try:
            context = _request_context(ctx, database, email, at)
            instance = None
            if record_id is not None:
                instance = database.find_by_id(resource, record_id)
                if instance is None:
                    err_console.print(f"[red]{resource.value.capitalize()} not found: {record_id}[/red]")
                    raise typer.Exit(code=1)
            decision = PolicyEngine(context.rule_set).evaluate(resource, action, instance, field)
        except WardenError as e:
            _fail(e, json_output)

    if json_output:
        _print_json({
            "resource_type": resource.value,
            "action": action.value,
            "record_id": record_id,
            "field": field,
            **decision.model_dump(),
        })
    elif decision.allowed:
        console.print(f"[green]ALLOW[/green] {decision.reason}")
        console.print(f"[dim]rule: {decision.rule_matched}[/dim]")
    else:
        console.print(f"[red]DENY[/red] {decision.reason}")
        console.print(f"[dim]rule: {decision.rule_matched}[/dim]")

    raise typer.Exit(code=0 if decision.allowed else 1)


@app.command()
def projects(
    ctx: typer.Context,
    email: EmailOption,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    List the projects a user can see, sorted by name.

    Example:
        $ warden projects --as viewer.marketing@example.com
    """
    with _open_db(ctx, db) as database:
        try:
            visible = ProjectService(_request_context(ctx, database, email)).list_projects(
                ordered=True
            )
        except WardenError as e:
            _fail(e, json_output)

    if json_output:
        _print_json(visible)
        return

    if not visible:
        console.print("[dim]No projects visible.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Project ID", style="cyan")
    table.add_column("Name")
    table.add_column("Department")
    for project in visible:
        table.add_row(
            project["id"],
            project.get("name", ""),
            project.get("department") or "[dim]all[/dim]",
        )
    console.print(table)


@app.command()
def documents(
    ctx: typer.Context,
    project_id: Annotated[str, typer.Argument(help="Project to list documents of.")],
    email: EmailOption,
    at: AtOption = None,
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    List the documents a user can see in a project, oldest first.

    Fields the user may not read are left out.

    Example:
        $ warden documents <project-id> --as author.eng@example.com
    """
    with _open_db(ctx, db) as database:
        try:
            visible = DocumentService(
                _request_context(ctx, database, email, at)
            ).list_project_documents(project_id)
        except WardenError as e:
            _fail(e, json_output)

    if json_output:
        _print_json(visible)
        return

    if not visible:
        console.print("[dim]No documents visible.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Document ID", style="cyan")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Locked")
    for document in visible:
        status = document.get("status")
        locked = document.get("is_locked")
        table.add_row(
            document["id"],
            document.get("title", ""),
            status.value if status is not None else "[dim]-[/dim]",
            "[dim]-[/dim]" if locked is None else ("yes" if locked else "no"),
        )
    console.print(table)


if __name__ == "__main__":
    app()
