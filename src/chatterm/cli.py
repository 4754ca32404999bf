"""Command-line interface for chatterm.

Usage example:
    chatterm --config ~/.config/chatterm/config.json
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from chatterm.client import ChatClient
from chatterm.config import ConfigStore, load_config
from chatterm.session import WebSocketSession

DEFAULT_CONFIG = Path("config.json")

app = typer.Typer(
    name="chatterm",
    help="Terminal client for a live text chat.",
    add_completion=False,
)

error_console = Console(stderr=True)


def print_error(message: str) -> None:
    """Print a consistently styled error message to stderr."""
    error_console.print(f"[bold red]Error:[/bold red] {message}")


@app.command()
def run(
    config: Annotated[
        Path, typer.Option("--config", "-c", help="Path to the JSON configuration file.")
    ] = DEFAULT_CONFIG,
) -> None:
    """Connect to the chat and open the terminal UI."""
    try:
        cfg = load_config(config)
    except FileNotFoundError:
        print_error(f"Config file not found: {config}")
        raise typer.Exit(code=1) from None
    except ValueError as exc:
        print_error(f"Malformed config: {exc} ({config})")
        raise typer.Exit(code=1) from None

    from chatterm.tui.app import ChatApp

    logging.getLogger("chatterm").setLevel(logging.DEBUG)

    store = ConfigStore(cfg, path=config)
    session = WebSocketSession(cfg.endpoint, cfg.auth_token)
    client = ChatClient(store, session)
    ChatApp(client).run()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
