"""CLI commands for the practice tracker.

- serve: run the Web API with uvicorn
- init-db: create the database schema
- due: list a user's problems due for review
- cleanup-potd: remove expired Problem-of-the-Day entries
- presets: show the review interval presets
"""

import typer
from rich.console import Console
from rich.table import Table

from practice.config.app_config import load_app_config
from practice.config.logging_config import configure_logging
from practice.core.models import User
from practice.core.potd_cleanup import cleanup_expired_potd_problems
from practice.core.spaced_repetition import INTERVAL_PRESETS, next_review_problems
from practice.db import problems_repository, users_repository
from practice.db.database import NotFoundError, current_db_path, init_db

app = typer.Typer(
    name="practice",
    help="Coding practice tracker with spaced-repetition reviews.",
    no_args_is_help=True,
)

console = Console()


def _user_or_exit(email: str) -> User:
    try:
        return users_repository.require_user_by_email(email)
    except NotFoundError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the Web API."""
    import uvicorn

    configure_logging()
    console.print(f"[green]✓ Serving on http://{host}:{port}[/green]")
    uvicorn.run("practice.web.api:app", host=host, port=port, reload=reload)


@app.command(name="init-db")
def init_database() -> None:
    """Create the database schema."""
    configure_logging()
    init_db()
    console.print(f"[green]✓ Database ready[/green] [dim]{current_db_path()}[/dim]")


@app.command()
def due(
    email: str = typer.Option(..., "--email", "-e", help="User email"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum rows"),
) -> None:
    """List problems due for review."""
    user = _user_or_exit(email)
    problems = problems_repository.list_problems(user.id, is_review=True, limit=None)
    due_problems = next_review_problems(problems, limit=limit)

    if not due_problems:
        console.print("[green]Nothing due for review[/green]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Title", style="cyan", width=40)
    table.add_column("Platform", width=12)
    table.add_column("Difficulty", width=10)
    table.add_column("Repetition", justify="center", width=10)
    table.add_column("Due", width=26)

    for problem in due_problems:
        table.add_row(
            problem.title,
            problem.platform,
            problem.difficulty or "-",
            str(problem.repetition),
            problem.next_review_date or "-",
        )

    console.print(f"\n[bold]Due for review ({len(due_problems)}):[/bold]\n")
    console.print(table)


@app.command(name="cleanup-potd")
def cleanup_potd(
    email: str = typer.Option(..., "--email", "-e", help="User email"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report without deleting"),
) -> None:
    """Remove expired POTD problems the user never worked on."""
    configure_logging()
    user = _user_or_exit(email)
    problems = problems_repository.list_problems(user.id, limit=None)
    retention = load_app_config().review.potd_retention_days
    result = cleanup_expired_potd_problems(problems, retention_days=retention)

    for problem in result.removed:
        console.print(f"  [dim]-[/dim] {problem.title}")

    if dry_run:
        console.print(f"[yellow]⚠ Dry run:[/yellow] {result.summary()}")
        return

    if result.removed:
        problems_repository.delete_problems(user.id, [p.id for p in result.removed])
    console.print(f"[green]✓ {result.summary()}[/green]")


@app.command()
def presets() -> None:
    """Show the review interval presets (days)."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Preset", style="cyan")
    table.add_column("Intervals (days)")

    for name, intervals in INTERVAL_PRESETS.items():
        table.add_row(name, ", ".join(str(i) for i in intervals))
    table.add_row("default", ", ".join(str(i) for i in load_app_config().review.default_intervals))

    console.print(table)


if __name__ == "__main__":
    app()
