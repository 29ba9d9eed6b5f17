"""Command-line interface for media-dedup."""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from media_dedup import __version__
from media_dedup.core.errors import DataUnavailableError
from media_dedup.core.executor import TrashExecutor
from media_dedup.core.grouper import Grouper
from media_dedup.core.models import GroupPage
from media_dedup.core.service import DuplicateService
from media_dedup.core.session import ResolutionSession
from media_dedup.platforms.catalog import SqliteCatalog
from media_dedup.platforms.trash import LibraryTrasher, RecycleBinTrasher
from media_dedup.ui.review import ReviewUI
from media_dedup.utils.config import Config
from media_dedup.utils.logger import set_package_level, setup_logger

console = Console()
logger = setup_logger(__name__)

library_option = click.option(
    "--library",
    "-l",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    required=True,
    help="Library root containing the catalog",
)
type_option = click.option(
    "--type",
    "-t",
    "match_kind",
    type=click.Choice(["exact", "similar"], case_sensitive=False),
    default="exact",
    show_default=True,
    help="Kind of duplicates to work on",
)
threshold_option = click.option(
    "--threshold",
    type=int,
    help="Similarity threshold (Hamming distance, default: from config)",
)
trash_option = click.option(
    "--recycle-bin/--library-trash",
    default=None,
    help="Send files to the recycle bin or to the library's trash folder "
    "(default: from config)",
)
subdir_option = click.option(
    "--subdir",
    help="Only consider groups under this folder (relative to the library)",
)


def _open_service(
    ctx: click.Context, library: Path, recycle_bin: Optional[bool] = None
) -> DuplicateService:
    config: Config = ctx.obj.get("config") or Config()

    try:
        catalog = SqliteCatalog(config.get_catalog_path(library), library_root=library)
    except DataUnavailableError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)
    logger.debug(f"Opened catalog {catalog.db_path}")

    if recycle_bin is None:
        recycle_bin = bool(config.get("trash.use_recycle_bin", True))
    trasher = (
        RecycleBinTrasher()
        if recycle_bin
        else LibraryTrasher(config.get_library_trash_dir(library))
    )

    grouper = Grouper(
        catalog,
        default_threshold=config.similarity_threshold,
        max_per_page=config.max_per_page,
        show_progress=ctx.obj.get("verbose", False),
    )
    return DuplicateService(catalog, trasher, grouper=grouper, library_root=library)


@click.group()
@click.version_option(version=__version__, prog_name="media-dedup")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file (default: ~/.media-dedup/config.json)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_file: Optional[Path]) -> None:
    """
    Media Dedup - find and safely resolve duplicate files in a media library.

    Works on a catalog of content hashes and perceptual fingerprints and
    never removes the last copy of a file.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = Config(config_file) if config_file else None

    if verbose:
        set_package_level(logging.DEBUG)


@cli.command()
@library_option
@threshold_option
@subdir_option
@click.pass_context
def summary(
    ctx: click.Context, library: Path, threshold: Optional[int], subdir: Optional[str]
) -> None:
    """Show how many exact and similar duplicate groups the library has."""
    service = _open_service(ctx, library)
    try:
        result = service.fetch_summary(threshold, subdir)
    except DataUnavailableError as e:
        console.print(f"[red]✗ Catalog unavailable:[/red] {e}")
        sys.exit(1)

    ReviewUI(console).show_summary(result)


@cli.command(name="list")
@library_option
@type_option
@threshold_option
@subdir_option
@click.option("--page", "-p", type=int, default=1, show_default=True, help="Page number")
@click.option("--per-page", type=int, default=None, help="Groups per page")
@click.option("--json", "as_json", is_flag=True, help="Print the page as JSON")
@click.pass_context
def list_groups(
    ctx: click.Context,
    library: Path,
    match_kind: str,
    threshold: Optional[int],
    subdir: Optional[str],
    page: int,
    per_page: Optional[int],
    as_json: bool,
) -> None:
    """
    List duplicate groups, one page at a time.

    Example:
        media-dedup list --library ~/Pictures --type similar --threshold 6
    """
    service = _open_service(ctx, library)
    config: Config = ctx.obj.get("config") or Config()

    try:
        result = service.fetch_groups(
            match_kind, threshold, page, per_page or config.per_page, subdir
        )
    except DataUnavailableError as e:
        console.print(f"[red]✗ Catalog unavailable:[/red] {e}")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(_page_to_dict(result), indent=2))
    else:
        ReviewUI(console).show_page(result)


@cli.command()
@library_option
@type_option
@threshold_option
@trash_option
@subdir_option
@click.option("--yes", "-y", is_flag=True, help="Confirm every group without asking")
@click.pass_context
def resolve(
    ctx: click.Context,
    library: Path,
    match_kind: str,
    threshold: Optional[int],
    recycle_bin: Optional[bool],
    subdir: Optional[str],
    yes: bool,
) -> None:
    """
    Walk through duplicate groups, keeping the suggested file of each.

    Every group starts with its suggested keeper marked KEEP and the other
    files marked TRASH. Answer 'n' to skip a group.
    """
    service = _open_service(ctx, library, recycle_bin)
    config: Config = ctx.obj.get("config") or Config()
    session = ResolutionSession(
        service.grouper,
        match_kind,
        threshold=threshold,
        per_page=config.per_page,
        subdir=subdir,
    )
    executor = TrashExecutor(service)
    review_ui = ReviewUI(console)

    # Member sets already offered; a skipped or partly failed group that comes
    # back unchanged after a refill is not offered again.
    offered = set()
    try:
        session.load()
        while True:
            group = next(
                (g for g in session.groups if frozenset(g.member_ids) not in offered),
                None,
            )
            if group is None:
                if not session.has_more_pages:
                    break
                session.next_page()
                continue

            offered.add(frozenset(group.member_ids))
            session.select(group.group_index)
            review_ui.render_group(session)

            if not yes and not click.confirm("Trash the files marked TRASH?", default=True):
                continue

            result = executor.confirm_group(session, group.group_index)
            if result.outcomes:
                review_ui.show_batch_result(result)

        totals = service.fetch_summary(threshold, subdir)
    except DataUnavailableError as e:
        console.print(f"[red]✗ Catalog unavailable:[/red] {e}")
        sys.exit(1)

    console.print(
        f"\n[bold green]✓ {session.resolved_count} group(s) resolved[/bold green]"
    )
    review_ui.show_summary(totals)


@cli.command(name="folder-rule")
@library_option
@type_option
@threshold_option
@trash_option
@subdir_option
@click.option("--keep", "keep_folder", required=True, help="Folder whose copies are kept")
@click.option("--trash", "trash_folder", required=True, help="Folder whose copies are trashed")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt")
@click.pass_context
def folder_rule(
    ctx: click.Context,
    library: Path,
    match_kind: str,
    threshold: Optional[int],
    recycle_bin: Optional[bool],
    keep_folder: str,
    trash_folder: str,
    subdir: Optional[str],
    yes: bool,
) -> None:
    """
    Keep one folder and trash its mirror across every group the two share.

    Example:
        media-dedup folder-rule -l ~/Pictures --keep vacation --trash vacation_copy
    """
    if keep_folder == trash_folder:
        console.print("[red]✗ Keep and trash folders must differ.[/red]")
        sys.exit(1)

    service = _open_service(ctx, library, recycle_bin)

    if not yes:
        console.print("[bold yellow]⚠ Warning:[/bold yellow]")
        console.print(f"  Keep:  {keep_folder}")
        console.print(f"  Trash: every {match_kind} duplicate under {trash_folder}")
        if not click.confirm("Proceed?", default=False):
            console.print("[yellow]Cancelled.[/yellow]")
            return

    try:
        result = service.trash_folder_rule(
            match_kind, keep_folder, trash_folder, threshold, subdir
        )
    except DataUnavailableError as e:
        console.print(f"[red]✗ Catalog unavailable:[/red] {e}")
        sys.exit(1)

    ReviewUI(console).show_batch_result(result)


def _page_to_dict(page: GroupPage) -> dict:
    """Plain dictionary form of a page for JSON output."""
    return {
        "type": page.match_kind.value,
        "page": page.page,
        "per_page": page.per_page,
        "total_groups": page.total_groups,
        "groups": [
            {
                "group_index": group.group_index,
                "match_type": group.match_kind.value,
                "hash": group.content_hash,
                "max_distance": group.max_distance,
                "suggested_keep_id": group.suggested_keep_id,
                "files": [
                    {
                        "id": member.id,
                        "filename": member.filename,
                        "directory_path": member.directory_path,
                        "size": member.size_bytes,
                        "width": member.width,
                        "height": member.height,
                        "rating": member.rating,
                        "media_type": member.media_kind.value,
                        "tags": sorted(member.tags),
                    }
                    for member in group.members
                ],
            }
            for group in page.groups
        ],
        "folder_super_groups": [
            {"folders": list(sg.folders), "group_indices": list(sg.group_indices)}
            for sg in page.folder_super_groups
        ],
    }


def main() -> None:
    """Main entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
