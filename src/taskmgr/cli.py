"""Command line interface for the task manager."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import httpx
import typer
import uvicorn
import yaml
from rich.console import Console
from rich.table import Table

from .clients import TaskManagerClient
from .config import ConfigError, Settings
from .logging_setup import setup_logging
from .models import NewTaskRequest, Task, TaskResponse, TaskStatus
from .rpc import SendResult

app = typer.Typer(help="Task manager service CLI")
console = Console()

T = TypeVar("T")

DEFAULT_URL = "http://127.0.0.1:8000"


def _load_settings(config_path: Optional[Path]) -> Settings:
    try:
        return Settings.load(config_path)
    except ConfigError as exc:
        console.print(f"[red]Invalid configuration:[/] {exc}")
        raise typer.Exit(code=2) from exc


def _call(url: str, fn: Callable[[TaskManagerClient], Awaitable[SendResult[T]]]) -> T:
    async def runner() -> SendResult[T]:
        async with TaskManagerClient(url) as client:
            return await fn(client)

    try:
        result = asyncio.run(runner())
    except httpx.InvalidURL as exc:
        console.print(f"[red]Invalid URL[/] {url}: {exc}")
        raise typer.Exit(code=1) from exc
    if not result.ok:
        detail = f": {result.error}" if result.error else ""
        console.print(f"[red]{result.outcome.value}[/] calling {url}{detail}")
        raise typer.Exit(code=1)
    return result.value


def _render_tasks(tasks: List[Task], title: str = "Tasks") -> None:
    table = Table(title=title, show_lines=True)
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Assignee")
    table.add_column("Description")
    for task in tasks:
        table.add_row(task.id, task.title, task.status.value, task.assigned_to or "-", task.description)
    console.print(table)


def _render_response(response: TaskResponse) -> None:
    colour = "green" if response.success else "red"
    console.print(f"[{colour}]{response.message}[/]")
    if response.task is not None:
        _render_tasks([response.task], title="Task")
    if response.success and not response.storage_status:
        console.print("[yellow]Task was not persisted to storage.[/]")


def _parse_status(value: str) -> TaskStatus:
    for status in TaskStatus:
        if value.strip().lower() in {status.value.lower(), status.name.lower()}:
            return status
    choices = ", ".join(status.value for status in TaskStatus)
    raise typer.BadParameter(f"Unknown status {value!r}; choose from {choices}")


@app.command()
def serve(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to YAML configuration"),
    host: Optional[str] = typer.Option(None, help="Override server.host"),
    port: Optional[int] = typer.Option(None, help="Override server.port"),
) -> None:
    """Run the task manager under uvicorn."""
    from .web.server import create_app

    settings = _load_settings(config_path)
    setup_logging(settings.logging.level, log_file=settings.logging.file)
    bind_host = host or settings.server.host
    bind_port = port or settings.server.port
    console.print(
        f"[bold green]Serving[/] {settings.name} on {bind_host}:{bind_port} "
        f"(storage={settings.storage.backend})"
    )
    uvicorn.run(create_app(settings), host=bind_host, port=bind_port, log_config=None)


@app.command("config")
def show_config(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to YAML configuration"),
) -> None:
    """Print the effective settings after environment overrides."""
    settings = _load_settings(config_path)
    console.print(yaml.safe_dump(settings.as_dict(), sort_keys=False))


@app.command("list")
def list_tasks(
    status: Optional[str] = typer.Option(None, help="Only tasks with this status"),
    url: str = typer.Option(DEFAULT_URL, help="Task manager base URL"),
) -> None:
    """List tasks from a running service."""
    if status is None:
        tasks = _call(url, lambda client: client.get_all_tasks())
        _render_tasks(tasks)
        return
    wanted = _parse_status(status)
    tasks = _call(url, lambda client: client.get_tasks_by_status(wanted))
    _render_tasks(tasks, title=f"{wanted.value} tasks")


@app.command()
def show(
    task_id: str = typer.Argument(..., help="Task identifier"),
    url: str = typer.Option(DEFAULT_URL, help="Task manager base URL"),
) -> None:
    """Show one task."""
    _render_response(_call(url, lambda client: client.get_task(task_id)))


@app.command()
def add(
    title: str = typer.Argument(..., help="Task title"),
    description: str = typer.Option("", help="Task description"),
    assign: Optional[str] = typer.Option(None, help="Assignee identifier"),
    url: str = typer.Option(DEFAULT_URL, help="Task manager base URL"),
) -> None:
    """Create a task."""
    request = NewTaskRequest(title=title, description=description, assigned_to=assign)
    _render_response(_call(url, lambda client: client.create_task(request)))


@app.command("set-status")
def set_status(
    task_id: str = typer.Argument(..., help="Task identifier"),
    status: str = typer.Argument(..., help="Pending, InProgress, Completed or Cancelled"),
    url: str = typer.Option(DEFAULT_URL, help="Task manager base URL"),
) -> None:
    """Change a task's status."""
    new_status = _parse_status(status)
    _render_response(_call(url, lambda client: client.update_task_status(task_id, new_status)))


@app.command()
def stats(url: str = typer.Option(DEFAULT_URL, help="Task manager base URL")) -> None:
    """Print registry statistics."""
    result: Any = _call(url, lambda client: client.get_statistics())
    table = Table(title="Statistics")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for key, value in result.model_dump().items():
        table.add_row(key, str(value))
    console.print(table)


if __name__ == "__main__":  # pragma: no cover
    app()
