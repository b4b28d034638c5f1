"""Command line interface over the branching core."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, NoReturn

import click
from rich.console import Console
from rich.table import Table

from threadfork.branching import (
    RetryCoordinator,
    list_branch_messages,
    list_branches,
    list_variants,
    summarize_branches,
)
from threadfork.config import Settings, load_settings
from threadfork.errors import ConfigError, ThreadforkError
from threadfork.lib.log import configure_logging
from threadfork.storage import MessageRecord, create_store
from threadfork.types import MAIN_BRANCH
from threadfork.version import THREADFORK_VERSION


@dataclass
class AppEnv:
    settings: Settings
    console: Console

    def coordinator(self) -> RetryCoordinator:
        return RetryCoordinator(create_store(self.settings), self.settings)


def fail(command: str, message: str) -> NoReturn:
    raise SystemExit(f"{command}: {message}")


def _short(value: str | None, width: int = 12) -> str:
    if not value:
        return "-"
    return value if len(value) <= width else value[:width] + "…"


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2))


def _message_payload(message: MessageRecord) -> dict[str, Any]:
    return message.model_dump(mode="json")


def _messages_table(title: str, messages: list[MessageRecord]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Role")
    table.add_column("Variant", justify="right")
    table.add_column("Branch", style="green", no_wrap=True)
    table.add_column("Status")
    table.add_column("Content")
    for index, message in enumerate(messages, start=1):
        table.add_row(
            str(index),
            _short(message.message_id),
            message.role.value,
            message.branch_id or "root",
            _short(message.conversation_branch_id, 20),
            message.status.value,
            _short(message.content.replace("\n", " "), 48),
        )
    return table


@click.group()
@click.option("--db", "db_path", type=click.Path(path_type=Path), help="Path to the SQLite database")
@click.option("--config", type=click.Path(path_type=Path), help="Path to config file")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON")
@click.version_option(THREADFORK_VERSION, prog_name="threadfork")
@click.pass_context
def cli(ctx: click.Context, db_path: Path | None, config: Path | None, verbose: bool, json_logs: bool) -> None:
    """Retry and edit conversation messages as variants."""
    try:
        settings = load_settings(config)
    except ConfigError as exc:
        fail("threadfork", str(exc))
    if db_path is not None:
        settings = settings.model_copy(update={"db_path": db_path.expanduser()})
    configure_logging(verbose=verbose or settings.verbose, json_logs=json_logs or settings.json_logs)
    ctx.obj = AppEnv(settings=settings, console=Console())


@cli.command("append")
@click.argument("thread_id")
@click.argument("role", type=click.Choice(["user", "assistant"]))
@click.argument("content")
@click.option("--parent", "parent_id", help="Message this one replies to")
@click.option("--model", help="Model that produced an assistant message")
@click.pass_obj
def append_command(
    env: AppEnv, thread_id: str, role: str, content: str, parent_id: str | None, model: str | None
) -> None:
    """Append a message to a thread."""
    try:
        message = env.coordinator().append_message(
            thread_id, role, content, parent_message_id=parent_id, model=model
        )
    except ThreadforkError as exc:
        fail("append", str(exc))
    _echo_json(_message_payload(message))


@cli.command("retry")
@click.argument("message_id")
@click.option("--model", help="Generate the variant with a different model")
@click.pass_obj
def retry_command(env: AppEnv, message_id: str, model: str | None) -> None:
    """Create a new variant of MESSAGE_ID.

    Examples:
        threadfork retry 3f2a...
        threadfork retry 3f2a... --model gpt-4o
    """
    try:
        variant = env.coordinator().retry(message_id, model=model)
    except ThreadforkError as exc:
        fail("retry", str(exc))
    _echo_json(_message_payload(variant))


@cli.command("edit")
@click.argument("message_id")
@click.argument("content")
@click.pass_obj
def edit_command(env: AppEnv, message_id: str, content: str) -> None:
    """Create an edited variant of the user message MESSAGE_ID."""
    try:
        variant = env.coordinator().edit(message_id, content)
    except ThreadforkError as exc:
        fail("edit", str(exc))
    _echo_json(_message_payload(variant))


@cli.command("complete")
@click.argument("message_id")
@click.argument("content")
@click.pass_obj
def complete_command(env: AppEnv, message_id: str, content: str) -> None:
    """Store generated CONTENT for a pending message."""
    try:
        message = create_store(env.settings).complete_message(message_id, content)
    except ThreadforkError as exc:
        fail("complete", str(exc))
    _echo_json(_message_payload(message))


@cli.command("fail")
@click.argument("message_id")
@click.argument("error")
@click.pass_obj
def fail_command(env: AppEnv, message_id: str, error: str) -> None:
    """Mark a pending message as failed with ERROR."""
    try:
        message = create_store(env.settings).fail_message(message_id, error)
    except ThreadforkError as exc:
        fail("fail", str(exc))
    _echo_json(_message_payload(message))


@cli.command("variants")
@click.argument("message_id")
@click.option("--json", "json_output", is_flag=True, help="Output JSON")
@click.pass_obj
def variants_command(env: AppEnv, message_id: str, json_output: bool) -> None:
    """List the root of MESSAGE_ID and all of its variants."""
    store = create_store(env.settings)
    try:
        forms = list_variants(store, message_id, max_hops=env.settings.max_resolve_hops)
    except ThreadforkError as exc:
        fail("variants", str(exc))
    if json_output:
        _echo_json([_message_payload(m) for m in forms])
        return
    env.console.print(_messages_table(f"Variants of {forms[0].id}", forms))


@cli.command("branch")
@click.argument("conversation_branch_id")
@click.option("--thread", "thread_id", help="Restrict to one thread")
@click.option("--json", "json_output", is_flag=True, help="Output JSON")
@click.pass_obj
def branch_command(env: AppEnv, conversation_branch_id: str, thread_id: str | None, json_output: bool) -> None:
    """List the messages of a conversation branch in order."""
    try:
        messages = list_branch_messages(create_store(env.settings), conversation_branch_id, thread_id=thread_id)
    except ThreadforkError as exc:
        fail("branch", str(exc))
    if json_output:
        _echo_json([_message_payload(m) for m in messages])
        return
    if not messages:
        env.console.print(f"No messages on branch {conversation_branch_id}.")
        return
    env.console.print(_messages_table(f"Branch {conversation_branch_id}", messages))


@cli.command("branches")
@click.argument("thread_id")
@click.option("--json", "json_output", is_flag=True, help="Output JSON")
@click.option("--ids", "ids_only", is_flag=True, help="Print only the branch ids, one per line")
@click.pass_obj
def branches_command(env: AppEnv, thread_id: str, json_output: bool, ids_only: bool) -> None:
    """List the conversation branches of a thread."""
    store = create_store(env.settings)
    try:
        if ids_only:
            branch_ids = list_branches(store, thread_id)
        else:
            summaries = summarize_branches(store, thread_id)
    except ThreadforkError as exc:
        fail("branches", str(exc))
    if ids_only:
        # "main" first, the rest sorted
        ordered = sorted(branch_ids, key=lambda b: (b != MAIN_BRANCH, b))
        if json_output:
            _echo_json(ordered)
        else:
            for branch_id in ordered:
                click.echo(branch_id)
        return
    if json_output:
        _echo_json(
            [
                {
                    "conversation_branch_id": s.conversation_branch_id,
                    "branch_point": s.branch_point,
                    "message_count": s.message_count,
                    "first_created_at": s.first_created_at.isoformat(),
                    "last_created_at": s.last_created_at.isoformat(),
                }
                for s in summaries
            ]
        )
        return
    if not summaries:
        env.console.print(f"Thread {thread_id} has no messages.")
        return
    table = Table(title=f"Branches of {thread_id}", show_header=True, header_style="bold magenta")
    table.add_column("Branch", style="green", no_wrap=True)
    table.add_column("Branch point", style="cyan")
    table.add_column("Messages", justify="right")
    table.add_column("Last activity")
    for summary in summaries:
        table.add_row(
            summary.conversation_branch_id,
            _short(summary.branch_point),
            str(summary.message_count),
            summary.last_created_at.isoformat(timespec="seconds"),
        )
    env.console.print(table)


__all__ = ["AppEnv", "cli", "fail"]
