"""
Terminal rendering of duplicate listings and resolution sessions.

Shows each group side by side with its keep/trash decisions.
"""

from datetime import datetime
from typing import Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from media_dedup.core.models import (
    BatchResult,
    Decision,
    DuplicateGroup,
    DuplicateSummary,
    GroupPage,
    MatchKind,
)
from media_dedup.core.session import ResolutionSession


def format_size(size_bytes: int) -> str:
    """Human readable size, e.g. '1.4 MB'."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    if size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"


def describe_match(group: DuplicateGroup) -> str:
    if group.match_kind is MatchKind.EXACT:
        return "Exact match"
    return f"Similar (distance ≤{group.max_distance})"


class ReviewUI:
    """Terminal-based review interface using Rich."""

    def __init__(self, console: Optional[Console] = None):
        """
        Initialize review UI.

        Args:
            console: Rich console instance (creates new one if None)
        """
        self.console = console or Console()

    def show_summary(self, summary: DuplicateSummary) -> None:
        """Show exact and similar group counts."""
        table = Table(title="Duplicate Summary", box=box.ROUNDED)
        table.add_column("Kind", style="cyan")
        table.add_column("Groups", justify="right", style="green")
        table.add_column("Files", justify="right")

        table.add_row("Exact copies", str(summary.exact_groups), str(summary.exact_files))
        table.add_row(
            "Visually similar", str(summary.similar_groups), str(summary.similar_files)
        )
        self.console.print(table)

        if summary.unhashed_files:
            self.console.print(
                f"[yellow]⚠ {summary.unhashed_files} files have no content hash "
                "and cannot be matched as exact copies[/yellow]"
            )
        if summary.unfingerprinted_images:
            self.console.print(
                f"[yellow]⚠ {summary.unfingerprinted_images} images have no "
                "similarity fingerprint and cannot be matched as similar[/yellow]"
            )

    def show_page(self, page: GroupPage, max_groups: int = 10) -> None:
        """
        Show the groups of one page and the folder pairs they share.

        Args:
            page: Page returned by the grouper
            max_groups: Number of groups to print in full
        """
        if not page.groups:
            self.console.print("[green]✓ No duplicates found![/green]")
            return

        self.console.print(
            f"[bold green]{page.total_groups} {page.match_kind.value} groups[/bold green] "
            f"[dim](page {page.page}, {len(page.groups)} shown)[/dim]\n"
        )

        for group in page.groups[:max_groups]:
            table = Table(
                title=f"Group {group.group_index + 1} · {describe_match(group)}",
                box=box.SIMPLE,
                header_style="bold cyan",
            )
            table.add_column("File")
            table.add_column("Size", justify="right")
            table.add_column("Resolution", justify="right")

            for member in group.members:
                name = member.full_path
                if member.id == group.suggested_keep_id:
                    name += " [dim](suggested)[/dim]"
                table.add_row(name, format_size(member.size_bytes), _resolution(member))

            self.console.print(table)

        if len(page.groups) > max_groups:
            self.console.print(
                f"[dim]... and {len(page.groups) - max_groups} more groups[/dim]\n"
            )

        batchable = [sg for sg in page.folder_super_groups if len(sg.group_indices) > 1]
        if batchable:
            table = Table(title="Mirrored folders", box=box.ROUNDED)
            table.add_column("Folder A", style="cyan")
            table.add_column("Folder B", style="cyan")
            table.add_column("Groups", justify="right")
            for super_group in batchable:
                table.add_row(
                    super_group.folders[0],
                    super_group.folders[1],
                    str(len(super_group.group_indices)),
                )
            self.console.print(table)

    def render_group(self, session: ResolutionSession) -> None:
        """Show the session's current group with its decisions."""
        group = session.current_group
        if group is None:
            self.console.print("[green]✓ All groups resolved[/green]")
            return

        self.console.print(
            f"[dim]{session.cursor + 1}/{len(session.groups)} groups · "
            f"{session.resolved_count} resolved[/dim]"
        )

        table = Table(
            title=f"Group {group.group_index + 1} · {describe_match(group)}",
            box=box.DOUBLE,
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("#", style="dim", width=3)
        table.add_column("File", style="cyan")
        table.add_column("Folder")
        table.add_column("Resolution", justify="right")
        table.add_column("Size", justify="right")
        table.add_column("Modified", justify="right")
        table.add_column("Rating", justify="center")
        table.add_column("Action", justify="center")

        for position, member in enumerate(group.members, 1):
            decision = session.decision_of(group.group_index, member.id)
            if decision is Decision.KEEP:
                action = "[green]KEEP ✓[/green]"
            elif decision is Decision.TRASH:
                action = "[red]TRASH ✗[/red]"
            else:
                action = "[dim]-[/dim]"
            if member.id == group.suggested_keep_id and decision is Decision.KEEP:
                action += " [dim](suggested)[/dim]"

            modified = (
                datetime.fromtimestamp(member.modified_time).strftime("%Y-%m-%d")
                if member.modified_time
                else "N/A"
            )
            stars = "★" * member.rating + "☆" * (5 - member.rating) if member.rating else ""

            table.add_row(
                str(position),
                member.filename,
                member.directory_path or ".",
                _resolution(member),
                format_size(member.size_bytes),
                modified,
                stars,
                action,
            )

        self.console.print(table)

        super_group = session.super_group_for(group.group_index)
        if super_group is not None and len(super_group.group_indices) > 1:
            self.console.print(
                f"[yellow]Per-folder rule available ({len(super_group.group_indices)} groups):[/yellow] "
                f"{super_group.folders[0]} ⇄ {super_group.folders[1]}"
            )

    def show_batch_result(self, result: BatchResult) -> None:
        """Show how a trash batch went, listing failures as warnings."""
        style = "green" if not result.failures else "yellow"
        self.console.print(
            Panel(
                f"[bold {style}]Trashed {result.trashed}/{len(result.outcomes)} files[/bold {style}]\n"
                f"Groups resolved: {result.groups_resolved}",
                title="Trash Result",
                box=box.ROUNDED,
            )
        )
        for failure in result.failures:
            self.console.print(f"  [yellow]⚠ {failure.file_id}: {failure.error}[/yellow]")


def _resolution(member) -> str:
    if member.width and member.height:
        return f"{member.width}×{member.height}"
    return "N/A"
