"""Terminal rendering of tool results with rich."""

from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from gmail_assistant.tools.dispatcher import ToolResult

BODY_DISPLAY_LIMIT = 2000
_PREVIEW_CHARS = 80

console = Console(width=200)


def render_result(result: ToolResult, out: Console | None = None) -> None:
    """Print one tool outcome: cancelled, error or a per-tool success view."""
    out = out or console
    for warning in result.warnings:
        out.print(f"[yellow]Warning: {escape(warning)}[/yellow]")

    if result.error is not None:
        out.print(
            f"[red]✗ {result.tool} failed ({result.error.kind.value}): "
            f"{escape(result.error.message)}[/red]"
        )
        return

    payload = result.payload or {}
    if result.cancelled:
        out.print(f"[yellow]✗ {payload.get('operation', result.tool)} cancelled[/yellow]")
        return

    renderer = _RENDERERS.get(result.tool)
    if renderer is not None:
        renderer(payload, out)


def _render_search(payload: dict[str, Any], out: Console) -> None:
    messages = payload.get("messages") or []
    if not messages:
        out.print(f"[yellow]No emails found for {payload.get('query', '')!r}.[/yellow]")
        return

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=3)
    table.add_column("Subject", max_width=40)
    table.add_column("From", max_width=30)
    table.add_column("Date", max_width=25)
    table.add_column("", width=2)
    table.add_column("Preview", max_width=60, style="dim")

    for i, msg in enumerate(messages, start=1):
        unread = "UNREAD" in (msg.get("labelIds") or [])
        table.add_row(
            str(i),
            escape(msg.get("subject") or "(No subject)"),
            escape(msg.get("from", "")),
            escape(msg.get("date", "")),
            "[yellow]●[/yellow]" if unread else "",
            escape(str(msg.get("snippet", ""))[:_PREVIEW_CHARS]),
        )

    out.print(f"\nFound [bold]{len(messages)}[/bold] email(s)\n")
    out.print(table)


def _render_email(payload: dict[str, Any], out: Console) -> None:
    body = payload.get("body") or payload.get("snippet") or ""
    lines = [
        f"[bold]From:[/bold] {escape(payload.get('from', ''))}",
        f"[bold]To:[/bold] {escape(payload.get('to', ''))}",
    ]
    if payload.get("cc"):
        lines.append(f"[bold]Cc:[/bold] {escape(payload['cc'])}")
    lines.append(f"[bold]Date:[/bold] {escape(payload.get('date', ''))}")
    lines.append("")
    lines.append(escape(body[:BODY_DISPLAY_LIMIT]))
    if len(body) > BODY_DISPLAY_LIMIT:
        lines.append("\n[dim]... (truncated for display)[/dim]")

    attachments = payload.get("attachments") or []
    if attachments:
        lines.append("\n[bold]Attachments:[/bold]")
        lines.extend(
            f"  • {escape(a.get('filename', ''))} ({a.get('mimeType', '')}, {a.get('size', 0)} bytes)"
            for a in attachments
        )

    out.print(Panel(
        "\n".join(lines),
        title=f"[bold]{escape(payload.get('subject') or '(No subject)')}[/bold]",
        border_style="blue",
    ))


def _render_send(payload: dict[str, Any], out: Console) -> None:
    out.print("[green]✓ Email sent[/green]")
    if payload.get("id"):
        out.print(f"  [dim]Message ID: {payload['id']}[/dim]")


def _render_modify(payload: dict[str, Any], out: Console) -> None:
    count = int(payload.get("modified", 0))
    out.print(f"[green]✓ Labels updated[/green] [dim]({count} email{'s' if count != 1 else ''})[/dim]")


def _render_batch(payload: dict[str, Any], out: Console) -> None:
    out.print(f"[green]✓ Batch {payload.get('operation', '')} completed[/green]")
    out.print(f"  [dim]Affected {payload.get('affected', 0)} email(s)[/dim]")


def _render_labels(payload: dict[str, Any], out: Console) -> None:
    labels = payload.get("labels") or []
    if not labels:
        out.print("[yellow]No labels found.[/yellow]")
        return
    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("Name")
    table.add_column("ID", style="dim")
    table.add_column("Type", width=8)
    for lbl in sorted(labels, key=lambda entry: (entry.get("type") != "user", entry.get("name", "").lower())):
        table.add_row(escape(lbl.get("name", "")), lbl.get("id", ""), lbl.get("type", ""))
    out.print(table)


def _render_label_created(payload: dict[str, Any], out: Console) -> None:
    out.print(f"[green]✓ Label created:[/green] {escape(payload.get('name', ''))}")


def _format_mapping(mapping: dict[str, Any]) -> str:
    return ", ".join(
        f"{key}: {', '.join(map(str, value)) if isinstance(value, list) else value}"
        for key, value in mapping.items()
        if value not in (None, [], "")
    )


def _render_filter_created(payload: dict[str, Any], out: Console) -> None:
    out.print(f"[green]✓ Filter created[/green] [dim](id {payload.get('id', '')})[/dim]")
    out.print(f"  Criteria: {escape(_format_mapping(payload.get('criteria') or {}))}")
    out.print(f"  Actions:  {escape(_format_mapping(payload.get('action') or {}))}")


def _render_filters(payload: dict[str, Any], out: Console) -> None:
    filters = payload.get("filters") or []
    if not filters:
        out.print("[yellow]No filters found.[/yellow]")
        return
    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Criteria")
    table.add_column("Actions")
    for f in filters:
        table.add_row(
            f.get("id", ""),
            escape(_format_mapping(f.get("criteria") or {})),
            escape(_format_mapping(f.get("action") or {})),
        )
    out.print(table)


def _render_filter_deleted(payload: dict[str, Any], out: Console) -> None:
    out.print(f"[green]✓ Filter deleted[/green] [dim]({payload.get('filterId', '')})[/dim]")


_RENDERERS = {
    "search_emails": _render_search,
    "read_email": _render_email,
    "send_email": _render_send,
    "modify_labels": _render_modify,
    "batch_operation": _render_batch,
    "list_labels": _render_labels,
    "create_label": _render_label_created,
    "create_filter": _render_filter_created,
    "list_filters": _render_filters,
    "delete_filter": _render_filter_deleted,
}
