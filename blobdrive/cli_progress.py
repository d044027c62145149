"""Console rendering, progress and confirmation helpers for the blobdrive CLI."""
from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Iterable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.prompt import Prompt
from rich.table import Table

from .models import BatchResult, ConfirmationDecision, FileRecord, PriceQuote
from .services.blob_client import is_synthetic
from .utils.events import ItemProgress

console = Console()

CANCEL_CHOICE = "cancel"


def _echo(message: str) -> None:
    console.print(message)


def _human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def _money(value: Optional[float], unit: str = "$") -> str:
    if value is None:
        return "-"
    return f"{unit}{value:.4f}" if unit == "$" else f"{value:.6f} {unit}"


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]blobdrive[/bold green]",
        subtitle="[dim]blob store uploader[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_quote(quote: PriceQuote, title: Optional[str] = None) -> None:
    """Render tiers and the cost breakdown of a quote."""
    tiers = Table(title=title or f"Quote for {_human_size(quote.size_bytes)} x {quote.epochs} epoch(s)")
    tiers.add_column("Tier", style="bold cyan")
    tiers.add_column("Name")
    tiers.add_column("Unit", justify="right")
    tiers.add_column("Total", justify="right")
    tiers.add_column("Native", justify="right")
    tiers.add_column("")
    for tier in quote.tiers:
        marker = "[green]recommended[/green]" if tier.key == quote.recommended_tier_key else ""
        tiers.add_row(
            tier.key,
            tier.name,
            _money(tier.unit_price),
            _money(tier.total_price),
            _money(tier.native_total_price, "SUI"),
            marker,
        )
    console.print(tiers)

    steps = Table.grid(padding=(0, 2))
    steps.add_column(style="dim")
    steps.add_column(justify="right")
    for step in quote.steps:
        steps.add_row(step.step, _money(step.fee))
    console.print(steps)
    _echo(f"[dim]source: {quote.source}[/dim]")


def render_records(records: Iterable[FileRecord], title: str = "Files") -> None:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Kind")
    table.add_column("Size", justify="right")
    table.add_column("Uploaded")
    table.add_column("Content ID")
    table.add_column("Flags")
    count = 0
    for record in records:
        flags = []
        if record.starred:
            flags.append("[yellow]starred[/yellow]")
        if record.trashed:
            flags.append("[red]trashed[/red]")
        content = f"[dim]{record.content_id}[/dim]" if is_synthetic(record.content_id) else record.content_id
        table.add_row(
            record.id,
            record.name,
            record.media_kind.value,
            _human_size(record.size_bytes),
            record.created_at.strftime("%Y-%m-%d %H:%M"),
            content,
            " ".join(flags),
        )
        count += 1
    if count == 0:
        _echo(f"[dim]{title}: no files[/dim]")
        return
    console.print(table)


class InteractiveConfirmSurface:
    """Shows each quote and asks for a tier (or cancel) on the terminal."""

    async def __call__(self, quote: PriceQuote) -> ConfirmationDecision:
        render_quote(quote)
        choices = quote.tier_keys + [CANCEL_CHOICE]
        # Prompt.ask blocks, keep the event loop free while waiting
        answer = await asyncio.to_thread(
            Prompt.ask,
            "Choose a tier",
            choices=choices,
            default=quote.recommended_tier_key,
            console=console,
        )
        if answer == CANCEL_CHOICE:
            return ConfirmationDecision.cancel()
        return ConfirmationDecision.approve(answer)


class BatchProgressDisplay:
    """Event-based console display for a batch upload."""

    def __init__(self, total: int):
        self._total = max(total, 1)
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=36),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            console=console,
            transient=True,
        )
        self._task_id: Optional[TaskID] = None

    def start(self) -> None:
        self._progress.start()
        self._task_id = self._progress.add_task("batch", label=f"Batch ({self._total} file(s))", total=100)

    def stop(self) -> None:
        self._progress.stop()

    def on_item_status(self, item: ItemProgress) -> None:
        stamp = time.strftime("%H:%M:%S")
        if item.status == "awaiting_confirmation":
            # The prompt needs a clean terminal
            self._progress.stop()
            return
        if item.status == "uploading":
            self._progress.start()
        palette = {"uploaded": "green", "error": "red", "cancelled": "yellow"}
        color = palette.get(item.status)
        if color is None:
            return
        detail = item.content_id or item.error
        self._progress.console.print(
            f"[dim]{stamp}[/dim] [{color}]{item.status:<9}[/{color}] {item.name}"
            + (f" [dim]{detail}[/dim]" if detail else "")
        )

    def on_progress(self, percent: int) -> None:
        if self._task_id is not None:
            self._progress.update(self._task_id, completed=percent)

    def on_finish(self, result: BatchResult) -> None:
        self.stop()
        _echo(
            f"[bold]Finished[/bold] uploaded={result.uploaded} cancelled={result.cancelled} "
            f"failed={result.failed} total={len(result.items)}"
        )
