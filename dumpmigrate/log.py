"""Logging and terminal progress for the command line tools."""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

FILE_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"


def configure_logging(
    *,
    log_file: str | None = None,
    verbose: bool = False,
    console: Console | None = None,
) -> None:
    """Route library logging to the terminal and, optionally, an appended file."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [
        RichHandler(console=console or Console(stderr=True), show_path=False)
    ]
    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(level=level, format="%(message)s", handlers=handlers, force=True)


def make_progress(console: Console | None = None) -> Progress:
    """Progress display shared by the command line tools."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.description}[/bold]"),
        BarColumn(bar_width=None),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    )
