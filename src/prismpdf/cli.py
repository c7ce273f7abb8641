#!/usr/bin/env python3
"""
PrismPDF CLI: merge, split and reorganize PDF files from the terminal.

Usage:
    python -m prismpdf <command> [options]

Commands:
    merge       Merge several files (PDFs or images) into one PDF
    extract     Extract selected pages to a new PDF
    split-all   Split every page into its own PDF, packed in a ZIP
    reorder     Reorder, rotate, duplicate or drop pages
    compress    Re-save a PDF with object streams to reduce its size
    info        Show page count and size
    preview     Render one page to PNG
    workspace   List, add, export or delete stored files

Any input may be given as ``workspace:<id>`` to read a stored file.

Examples:
    prismpdf merge a.pdf b.pdf scan.jpg -o merged.pdf
    prismpdf extract input.pdf --pages 2,4-6 -o extracted.pdf
    prismpdf split-all input.pdf -o pages.zip
    prismpdf reorder input.pdf --order 3,1,2 --rotate 1:90 -o organized.pdf
    prismpdf compress input.pdf --to-workspace
    prismpdf workspace list
    prismpdf workspace export <id> -o copy.pdf
"""

import argparse
import asyncio
import locale
import sys
from pathlib import Path

from prismpdf.config import APP_VERSION
from prismpdf.constants import DEFAULT_PREVIEW_SCALE, VALID_ROTATIONS
from prismpdf.services.document_backend import (
    PageRenderer,
    from_data_uri,
    open_source,
    read_source_bytes,
)
from prismpdf.services.operations import (
    CompressWorkflow,
    Destination,
    MergeWorkflow,
    OperationResult,
    OperationSession,
    ReorderWorkflow,
    SourceInput,
    SplitWorkflow,
)
from prismpdf.services.workspace_store import WorkspaceBackend, WorkspaceStore
from prismpdf.utils.config_manager import get_config_manager
from prismpdf.utils.exceptions import PrismPdfError
from prismpdf.utils.file_utils import atomic_write_bytes
from prismpdf.utils.format_utils import format_file_size, format_timestamp
from prismpdf.utils.i18n import _
from prismpdf.utils.logger import logger, set_verbose

WORKSPACE_PREFIX = "workspace:"


def _setup_environment() -> None:
    """Use the user's locale for messages, but C numeric formatting."""
    try:
        locale.setlocale(locale.LC_ALL, "")
        locale.setlocale(locale.LC_NUMERIC, "C")
    except locale.Error:
        locale.setlocale(locale.LC_ALL, "C")


# ---------------------------------------------------------------------------
# Argument parsers (shared)
# ---------------------------------------------------------------------------


def _parse_page_list(text: str) -> list[int]:
    """Parse a page specification string into a sorted list of page numbers.

    Supports: "3", "1-5", "1,3,7", "1-3,7,10-12"

    Returns:
        Sorted, de-duplicated list of 1-indexed page numbers.
    """
    pages: set[int] = set()
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                start_s, end_s = part.split("-", 1)
                pages.update(range(int(start_s.strip()), int(end_s.strip()) + 1))
            else:
                pages.add(int(part))
        except ValueError:
            raise ValueError(
                f"Invalid page specification '{part}'. "
                "Use numbers and ranges like '1-5' or '1,3,7'."
            ) from None
    return sorted(p for p in pages if p >= 1)


def _parse_order(text: str) -> list[int]:
    """Parse an output order such as "3,1,1,2" (pages may repeat)."""
    order: list[int] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            page = int(part)
        except ValueError:
            raise ValueError(f"Invalid page number '{part}' in order.") from None
        if page < 1:
            raise ValueError(f"Page numbers start at 1, got {page}.")
        order.append(page)
    return order


def _parse_rotations(text: str) -> dict[int, int]:
    """Parse rotations such as "1:90,3:180,4" (no angle means 90).

    Returns:
        Mapping of 1-based output position to clockwise degrees.
    """
    rotations: dict[int, int] = {}
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        position_s, _sep, degrees_s = part.partition(":")
        try:
            position = int(position_s)
            degrees = int(degrees_s) if degrees_s else 90
        except ValueError:
            raise ValueError(f"Invalid rotation '{part}'. Use 'PAGE' or 'PAGE:DEGREES'.") from None
        if degrees % 360 not in VALID_ROTATIONS:
            raise ValueError(f"Rotation must be a multiple of 90, got {degrees}.")
        rotations[position] = (rotations.get(position, 0) + degrees) % 360
    return rotations


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with subcommands."""
    p = argparse.ArgumentParser(
        prog="prismpdf",
        description=_("PrismPDF: merge, split and reorganize PDF files locally."),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    p.add_argument("-v", "--verbose", action="store_true", help=_("Verbose logging (DEBUG)"))
    p.add_argument(
        "--workspace-dir",
        type=Path,
        default=None,
        help=_("Workspace directory (default: from settings)"),
    )

    sub = p.add_subparsers(dest="command", help=_("Available commands"))

    def add_output(parser: argparse.ArgumentParser, what: str) -> None:
        dest = parser.add_mutually_exclusive_group()
        dest.add_argument("-o", "--output", type=Path, default=None, help=what)
        dest.add_argument(
            "--to-workspace",
            action="store_true",
            help=_("Store the result in the workspace instead of writing a file"),
        )
        parser.add_argument("--name", default=None, help=_("Name of the produced file"))

    # --- merge ---
    merge_p = sub.add_parser("merge", help=_("Merge several files into one PDF"))
    merge_p.add_argument("inputs", nargs="+", help=_("Input files, in output order"))
    add_output(merge_p, _("Output PDF file"))

    # --- extract ---
    extract_p = sub.add_parser("extract", help=_("Extract pages to a new PDF"))
    extract_p.add_argument("input", help=_("Input PDF file"))
    extract_p.add_argument(
        "--pages",
        type=str,
        required=True,
        help=_("Pages to extract (e.g. '1-5', '1,3,7'). Output keeps document order."),
    )
    add_output(extract_p, _("Output PDF file"))

    # --- split-all ---
    split_p = sub.add_parser("split-all", help=_("Split every page into a ZIP of PDFs"))
    split_p.add_argument("input", help=_("Input PDF file"))
    add_output(split_p, _("Output ZIP file"))

    # --- reorder ---
    reorder_p = sub.add_parser("reorder", help=_("Reorder, rotate and delete pages"))
    reorder_p.add_argument("input", help=_("Input PDF file"))
    reorder_p.add_argument(
        "--order",
        type=str,
        default=None,
        help=_("New page order, e.g. '3,1,2'. Repeated pages are duplicated, missing ones dropped."),
    )
    reorder_p.add_argument(
        "--rotate",
        type=str,
        default=None,
        help=_("Rotate output pages clockwise, e.g. '1:90,3:180' or '2' for 90°."),
    )
    reorder_p.add_argument(
        "--delete",
        type=str,
        default=None,
        help=_("Output pages to delete after reordering, e.g. '2,5-6'."),
    )
    add_output(reorder_p, _("Output PDF file"))

    # --- compress ---
    compress_p = sub.add_parser("compress", help=_("Re-save a PDF with object streams"))
    compress_p.add_argument("input", help=_("Input PDF file"))
    add_output(compress_p, _("Output PDF file"))

    # --- info ---
    info_p = sub.add_parser("info", help=_("Show page count and size"))
    info_p.add_argument("input", help=_("Input PDF file"))

    # --- preview ---
    preview_p = sub.add_parser("preview", help=_("Render one page to PNG"))
    preview_p.add_argument("input", help=_("Input PDF file"))
    preview_p.add_argument("--page", type=int, default=1, help=_("Page number (default: 1)"))
    preview_p.add_argument(
        "--scale",
        type=float,
        default=DEFAULT_PREVIEW_SCALE,
        help=_("Zoom factor, 1.0 = 72 dpi (default: 1.0)"),
    )
    preview_p.add_argument(
        "-o", "--output", type=Path, default=None, help=_("PNG file (default: print data URI)")
    )

    # --- workspace ---
    ws_p = sub.add_parser("workspace", help=_("Manage stored files"))
    ws_sub = ws_p.add_subparsers(dest="workspace_command", help=_("Workspace commands"))
    ws_sub.add_parser("list", help=_("List stored files, newest first"))
    ws_add = ws_sub.add_parser("add", help=_("Store a file"))
    ws_add.add_argument("file", type=Path, help=_("File to store"))
    ws_add.add_argument("--name", default=None, help=_("Stored name (default: file name)"))
    ws_export = ws_sub.add_parser("export", help=_("Write a stored file to disk"))
    ws_export.add_argument("id", help=_("Stored file id"))
    ws_export.add_argument("-o", "--output", type=Path, default=None, help=_("Output path"))
    ws_delete = ws_sub.add_parser("delete", help=_("Delete stored files"))
    ws_delete.add_argument("ids", nargs="+", help=_("Stored file ids"))

    return p


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _open_store(args) -> WorkspaceStore:
    if args.workspace_dir is not None:
        return WorkspaceStore(args.workspace_dir)
    return WorkspaceStore(get_config_manager().workspace_dir)


def _source_input(spec: str, store: WorkspaceBackend) -> SourceInput:
    """Turn a command-line input into a SourceInput."""
    if spec.startswith(WORKSPACE_PREFIX):
        return SourceInput.from_workspace(store, spec[len(WORKSPACE_PREFIX) :])
    return SourceInput.from_path(spec)


def _print_notification(level: str, message: str) -> None:
    if level == "error":
        print(f"Error: {message}", file=sys.stderr)
    elif level == "warning":
        print(f"Warning: {message}", file=sys.stderr)
    else:
        print(message)


def _workflow_kwargs(args) -> dict:
    return {
        "store": _open_store(args),
        "session": OperationSession(_print_notification),
        "settings": get_config_manager(),
    }


def _destination(args) -> Destination:
    return Destination.WORKSPACE if args.to_workspace else Destination.DOWNLOAD


def _exit_code(result: OperationResult | None) -> int:
    if result is None or not result.success:
        return 1
    if result.stored is not None:
        print(f"{result.stored.id}\t{result.stored.name}")
    return 0


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_merge(args) -> int:
    """Handle the 'merge' command."""
    workflow = MergeWorkflow(**_workflow_kwargs(args))
    for spec in args.inputs:
        workflow.add_input(_source_input(spec, workflow.store))
    result = asyncio.run(workflow.merge(_destination(args), args.output, args.name))
    return _exit_code(result)


def _cmd_extract(args) -> int:
    """Handle the 'extract' command."""
    pages = _parse_page_list(args.pages)
    workflow = SplitWorkflow(**_workflow_kwargs(args))

    async def run() -> OperationResult | None:
        await workflow.open(_source_input(args.input, workflow.store))
        try:
            for page in pages:
                workflow.toggle_select(page - 1)
            return await workflow.extract_selected(_destination(args), args.output, args.name)
        finally:
            workflow.close()

    return _exit_code(asyncio.run(run()))


def _cmd_split_all(args) -> int:
    """Handle the 'split-all' command."""
    workflow = SplitWorkflow(**_workflow_kwargs(args))

    async def run() -> OperationResult | None:
        await workflow.open(_source_input(args.input, workflow.store))
        try:
            return await workflow.split_all(_destination(args), args.output, args.name)
        finally:
            workflow.close()

    return _exit_code(asyncio.run(run()))


def apply_reorder(
    workflow: ReorderWorkflow,
    order: list[int] | None = None,
    rotations: dict[int, int] | None = None,
    deletions: list[int] | None = None,
) -> None:
    """Apply command-line edits to an opened ReorderWorkflow.

    Args:
        workflow: Workflow with a source already open
        order: 1-based source pages in output order; repeats duplicate a
            page, omitted pages are dropped
        rotations: 1-based output position -> clockwise degrees
        deletions: 1-based output positions to delete, after reordering
    """
    originals = list(workflow.page_set)

    if order:
        placed: list[str] = []
        used: set[str] = set()
        for page in order:
            if page > len(originals):
                raise ValueError(f"Page {page} does not exist (document has {len(originals)} pages).")
            ref = originals[page - 1]
            if ref.id in used:
                placed.append(workflow.duplicate(ref.id))
            else:
                used.add(ref.id)
                placed.append(ref.id)
        for ref in originals:
            if ref.id not in used:
                workflow.remove(ref.id)
        for target, page_id in enumerate(placed):
            workflow.move(page_id, target)

    current = list(workflow.page_set)
    for position, degrees in (rotations or {}).items():
        if not 1 <= position <= len(current):
            raise ValueError(f"Cannot rotate page {position}: out of range.")
        for _step in range(degrees // 90):
            workflow.rotate(current[position - 1].id)

    for position in deletions or []:
        if not 1 <= position <= len(current):
            raise ValueError(f"Cannot delete page {position}: out of range.")
        workflow.remove(current[position - 1].id)


def _cmd_reorder(args) -> int:
    """Handle the 'reorder' command."""
    order = _parse_order(args.order) if args.order else None
    rotations = _parse_rotations(args.rotate) if args.rotate else None
    deletions = _parse_page_list(args.delete) if args.delete else None
    workflow = ReorderWorkflow(**_workflow_kwargs(args))

    async def run() -> OperationResult | None:
        await workflow.open(_source_input(args.input, workflow.store))
        try:
            apply_reorder(workflow, order, rotations, deletions)
            return await workflow.save(_destination(args), args.output, args.name)
        finally:
            workflow.close()

    return _exit_code(asyncio.run(run()))


def _cmd_compress(args) -> int:
    """Handle the 'compress' command."""
    workflow = CompressWorkflow(**_workflow_kwargs(args))
    source_input = _source_input(args.input, workflow.store)
    result = asyncio.run(workflow.compress(source_input, _destination(args), args.output))
    return _exit_code(result)


def _read_input(spec: str, store: WorkspaceBackend) -> tuple[str, bytes]:
    source_input = _source_input(spec, store)
    return source_input.name, source_input.read()


def _cmd_info(args) -> int:
    """Handle the 'info' command."""
    name, data = _read_input(args.input, _open_store(args))
    with open_source(data, name) as source:
        print(f"File:       {source.name}")
        print(f"Pages:      {source.page_count}")
        print(f"Size:       {format_file_size(source.size)} ({source.size:,} bytes)")
        print(f"Version:    PDF {source.pdf.pdf_version}")
    return 0


def _cmd_preview(args) -> int:
    """Handle the 'preview' command."""
    name, data = _read_input(args.input, _open_store(args))
    # Image inputs are previewed as the PDF page they become
    with open_source(data, name) as source:
        data = source.data
    uri = PageRenderer().render_page_to_image(data, args.page, args.scale)
    if args.output is None:
        print(uri)
        return 0
    atomic_write_bytes(args.output, from_data_uri(uri))
    print(f"Rendered page {args.page} → {args.output}")
    return 0


def _cmd_workspace(args) -> int:
    """Handle the 'workspace' subcommands."""
    store = _open_store(args)
    command = args.workspace_command

    if command == "list":
        records = store.list()
        if not records:
            print(_("Workspace is empty"))
            return 0
        for record in records:
            print(
                f"{record.id}  {format_timestamp(record.created_at)}  "
                f"{format_file_size(record.size):>10}  {record.type:<16}  {record.name}"
            )
        return 0

    if command == "add":
        data = read_source_bytes(args.file)
        record = store.save(data, args.name or args.file.name)
        print(f"{record.id}\t{record.name}")
        return 0

    if command == "export":
        record = store.get(args.id)
        content = store.get_content(args.id) if record else None
        if record is None or content is None:
            print(f"Error: no workspace file {args.id}", file=sys.stderr)
            return 1
        target = args.output or Path.cwd() / record.name
        if target.is_dir():
            target = target / record.name
        atomic_write_bytes(target, content)
        print(f"Exported {record.name} → {target}")
        return 0

    if command == "delete":
        for file_id in args.ids:
            store.delete(file_id)
        print(_("Deleted {count} file(s)").format(count=len(args.ids)))
        return 0

    print("Error: choose one of: list, add, export, delete", file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    _setup_environment()

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    set_verbose(args.verbose)

    handlers = {
        "merge": _cmd_merge,
        "extract": _cmd_extract,
        "split-all": _cmd_split_all,
        "reorder": _cmd_reorder,
        "compress": _cmd_compress,
        "info": _cmd_info,
        "preview": _cmd_preview,
        "workspace": _cmd_workspace,
    }

    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except (PrismPdfError, ValueError, OSError) as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        message = e.message if isinstance(e, PrismPdfError) else str(e)
        print(f"Error: {message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
