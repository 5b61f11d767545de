from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import Settings, load_settings
from .db.session import create_schema, get_session, init_engine
from .services import feeds as feed_service
from .services import friends as friend_service
from .services import users as user_service
from .services.merge import MergedFilm
from .services.tmdb import TMDBClient

console = Console()

app = typer.Typer(
    help="cineclub catalog and feed CLI.",
    no_args_is_help=True,
    rich_markup_mode="markdown",
)
db_app = typer.Typer(help="Database maintenance.", no_args_is_help=True)
user_app = typer.Typer(help="Manage users and API keys.", no_args_is_help=True)
friends_app = typer.Typer(help="Manage friendships.", no_args_is_help=True)
feed_app = typer.Typer(help="Print feeds.", no_args_is_help=True)

app.add_typer(db_app, name="db")
app.add_typer(user_app, name="user")
app.add_typer(friends_app, name="friends")
app.add_typer(feed_app, name="feed")


def get_state(ctx: typer.Context) -> Dict[str, Settings]:
    return ctx.ensure_object(dict)  # type: ignore[return-value]


@contextmanager
def tmdb_client(settings: Settings) -> Iterator[Optional[TMDBClient]]:
    if not settings.tmdb.api_key:
        console.print("[yellow]TMDB_API_KEY not set[/yellow]; showing local catalog only.")
        yield None
        return
    client = TMDBClient(settings)
    try:
        yield client
    finally:
        client.close()


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to TOML config file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Application entry point: load configuration."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    settings = load_settings(config_path=config)
    state = get_state(ctx)
    state["settings"] = settings
    init_engine(settings)
    console.log(f"Loaded configuration from {config or 'config/default.toml'}")


@db_app.command("init")
def db_init(ctx: typer.Context) -> None:
    """Create missing tables."""
    settings = get_state(ctx)["settings"]
    create_schema(settings)
    console.print("[green]Schema ready[/green].")


@user_app.command("create")
def user_create(
    ctx: typer.Context,
    username: str = typer.Argument(..., help="Unique username."),
    display_name: Optional[str] = typer.Option(None, "--display-name", help="Public display name."),
) -> None:
    """Create (or reuse) a user and print a fresh API key."""
    settings = get_state(ctx)["settings"]
    with get_session(settings) as session:
        user = user_service.get_or_create_user(session, username, display_name)
        api_key = user_service.issue_api_key(session, user)
        user_id = user.id
    console.print(f"[green]User[/green] '{username}' (id={user_id}) API key: [bold]{api_key}[/bold]")


@friends_app.command("add")
def friends_add(
    ctx: typer.Context,
    first: str = typer.Argument(..., help="First username."),
    second: str = typer.Argument(..., help="Second username."),
) -> None:
    settings = get_state(ctx)["settings"]
    with get_session(settings) as session:
        user_a = user_service.get_user_by_username(session, first)
        user_b = user_service.get_user_by_username(session, second)
        if not user_a or not user_b:
            typer.echo("Both users must exist.")
            raise typer.Exit(code=1)
        friend_service.add_friendship(session, user_a.id, user_b.id)
    console.print(f"[green]Linked[/green] {first} and {second}.")


@feed_app.command("global")
def feed_global(ctx: typer.Context) -> None:
    """Show the public feed."""
    settings = get_state(ctx)["settings"]
    with tmdb_client(settings) as client, get_session(settings) as session:
        payload = feed_service.global_feed(session, client, settings)
        _print_feed(payload)


@feed_app.command("friends")
def feed_friends(
    ctx: typer.Context,
    username: str = typer.Option(..., "--user", "-u", help="Requesting username."),
) -> None:
    """Show the feed of a user's friends."""
    settings = get_state(ctx)["settings"]
    with tmdb_client(settings) as client, get_session(settings) as session:
        user = user_service.get_user_by_username(session, username)
        if not user:
            typer.echo(f"User {username} not found.")
            raise typer.Exit(code=1)
        payload = feed_service.friend_feed(session, client, settings, user.id)
        _print_feed(payload)


@app.command("search")
def search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Title fragment."),
) -> None:
    """Search local and TMDB films by title."""
    settings = get_state(ctx)["settings"]
    with tmdb_client(settings) as client, get_session(settings) as session:
        films = feed_service.search_films(session, client, settings, query)
    if not films:
        console.print("[yellow]No films found[/yellow].")
        return
    console.print(_films_table(f"Results for '{query}'", films))


def _print_feed(payload: feed_service.FeedPayload) -> None:
    comments = Table(title=f"Latest comments ({payload.total})")
    comments.add_column("When")
    comments.add_column("User")
    comments.add_column("Film")
    comments.add_column("Rating", justify="right")
    comments.add_column("Comment")
    for entry in payload.feed:
        comments.add_row(
            entry.created_at.strftime("%Y-%m-%d %H:%M") if entry.created_at else "-",
            entry.username,
            entry.film_title,
            str(entry.rating) if entry.rating is not None else "-",
            entry.comment,
        )
    console.print(comments)
    console.print(_films_table("Best rated", payload.top_rated_films))
    console.print(_films_table("Most recent", payload.recent_films))


def _films_table(title: str, films: List[MergedFilm]) -> Table:
    table = Table(title=title)
    table.add_column("Source")
    table.add_column("Title")
    table.add_column("Release")
    table.add_column("Avg", justify="right")
    table.add_column("Votes", justify="right")
    for film in films:
        table.add_row(
            f"local #{film.id}" if film.is_local else f"tmdb #{film.tmdb_id}",
            film.title,
            film.release_date.isoformat() if film.release_date else "-",
            f"{film.average_rating:.1f}",
            str(film.vote_count),
        )
    return table


if __name__ == "__main__":
    app()
