#!/usr/bin/env python3
"""
ox: CLI for ordex ordinal workspaces

Usage:
    ox scan docs/                  # List ordinal items in order
    ox renumber docs/              # Renumber to 10, 20, 30, ...
    ox move up docs/00020_b.md     # Swap with the previous item
    ox attach notes.md photo.png   # Fingerprint a file and print a link
    ox repair                      # Fix links to moved attachments
"""

from __future__ import annotations

import asyncio
import difflib
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, NoReturn

import click
from click.exceptions import ClickException, UsageError

from . import __version__ as ORDEX_VERSION


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


def output(data, as_json: bool = False):
    """Output data as JSON or formatted text."""
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        click.echo(data)


def _handle_error(
    ctx: click.Context,
    error: Exception,
    fallback_message: str | None = None,
    exit_code: int = 1,
) -> NoReturn:
    """Handle an error with optional JSON output.

    If --json-errors is enabled, outputs structured JSON error.
    Otherwise, outputs human-readable error message.
    """
    from .errors import OrdexError, format_error_json

    json_errors = ctx.obj.get("json_errors", False) if ctx.obj else False

    if isinstance(error, OrdexError):
        if json_errors:
            click.echo(error.to_json(), err=True)
        else:
            click.echo(f"Error: {error.message}", err=True)
            suggestion = error.details.get("suggestion") if error.details else None
            if suggestion:
                click.echo(f"Hint: {suggestion}", err=True)
    else:
        message = fallback_message or str(error)
        if json_errors:
            code = _infer_error_code(error, message)
            click.echo(format_error_json(code, message), err=True)
        else:
            click.echo(f"Error: {message}", err=True)

    sys.exit(exit_code)


def _infer_error_code(error: Exception, message: str):
    """Infer an error code for exceptions that are not OrdexErrors."""
    from .config import ConfigurationError
    from .errors import ErrorCode

    if isinstance(error, ConfigurationError):
        return ErrorCode.CONFIGURATION_ERROR
    if isinstance(error, FileNotFoundError):
        return ErrorCode.ENTRY_NOT_FOUND
    if isinstance(error, FileExistsError):
        return ErrorCode.ENTRY_EXISTS
    if isinstance(error, PermissionError):
        return ErrorCode.PERMISSION_DENIED

    message_lower = message.lower()
    if "already exists" in message_lower or "already initialized" in message_lower:
        return ErrorCode.ENTRY_EXISTS
    if "into itself" in message_lower or "invalid path" in message_lower:
        return ErrorCode.INVALID_PATH

    return ErrorCode.FILE_READ_ERROR


def format_json_error(code: str, message: str, details: dict | None = None) -> str:
    """Format an error as JSON for --json-errors output."""
    error: dict[str, dict[str, object]] = {"error": {"code": code, "message": message}}
    if details:
        error["error"]["details"] = details
    return json.dumps(error)


def get_error_code_for_exception(exc: Exception) -> str:
    """Map Click exceptions to error codes."""
    if isinstance(exc, click.BadParameter):
        return "INVALID_ARGUMENT"
    elif isinstance(exc, click.MissingParameter):
        return "MISSING_ARGUMENT"
    elif isinstance(exc, click.NoSuchOption):
        return "UNKNOWN_OPTION"
    elif isinstance(exc, UsageError):
        return "USAGE_ERROR"
    elif isinstance(exc, ClickException):
        return "CLI_ERROR"
    return "UNKNOWN_ERROR"


class JsonErrorGroup(click.Group):
    """Click group that formats errors as JSON when --json-errors is set.

    This handles Click validation errors (bad option values, missing args, etc.)
    that occur before the command callback is invoked. Also provides typo
    suggestions for unknown commands.
    """

    def resolve_command(self, ctx, args):
        """Override to suggest similar commands for typos."""
        try:
            return super().resolve_command(ctx, args)
        except UsageError as e:
            cmd_name = args[0] if args else ""
            if cmd_name and "No such command" in str(e):
                matches = difflib.get_close_matches(cmd_name, self.list_commands(ctx), n=1, cutoff=0.6)
                if matches:
                    raise UsageError(f"No such command '{cmd_name}'. Did you mean '{matches[0]}'?")
            raise

    def invoke(self, ctx):
        """Override invoke to catch and format errors."""
        try:
            return super().invoke(ctx)
        except ClickException as e:
            if ctx.params.get("json_errors"):
                code = get_error_code_for_exception(e)
                click.echo(format_json_error(code, e.format_message()), err=True)
                raise SystemExit(1)
            raise

    def main(
        self,
        args: Sequence[str] | None = None,
        prog_name: str | None = None,
        complete_var: str | None = None,
        standalone_mode: bool = True,
        **extra: Any,
    ) -> Any:
        """Override main to catch errors during argument parsing.

        When --json-errors appears anywhere on the command line it is moved
        to the front, and Click runs with standalone_mode=False so parse
        errors surface as exceptions we can format.
        """
        argv = list(args) if args is not None else list(sys.argv[1:])
        if "--json-errors" not in argv:
            return super().main(args, prog_name, complete_var, standalone_mode, **extra)

        argv = [a for a in argv if a != "--json-errors"]
        argv.insert(0, "--json-errors")

        try:
            return super().main(argv, prog_name, complete_var, standalone_mode=False, **extra)
        except ClickException as e:
            code = get_error_code_for_exception(e)
            click.echo(format_json_error(code, e.format_message()), err=True)
            raise SystemExit(1)
        except SystemExit:
            raise
        except Exception as e:
            click.echo(format_json_error("INTERNAL_ERROR", str(e)), err=True)
            raise SystemExit(1)


# ─────────────────────────────────────────────────────────────────────────────
# Workspace helpers
# ─────────────────────────────────────────────────────────────────────────────


def _settings_for(path: Path):
    """Settings of the workspace containing path (defaults outside one)."""
    from .config import discover_workspace_root, find_workspace_root
    from .context import get_settings

    start = path if path.is_dir() else path.parent
    return get_settings(discover_workspace_root(start) or find_workspace_root())


def _default_root() -> Path:
    from .config import find_workspace_root

    return find_workspace_root() or Path.cwd()


def _dump(model) -> dict:
    return model.model_dump(mode="json")


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group(cls=JsonErrorGroup)
@click.version_option(version=ORDEX_VERSION, prog_name="ox")
@click.option(
    "--json-errors",
    "json_errors",
    is_flag=True,
    help="Output errors as JSON (for programmatic use)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    envvar="ORDEX_QUIET",
    help="Suppress warnings, show only errors and essential output",
)
@click.pass_context
def cli(ctx: click.Context, json_errors: bool, quiet: bool):
    """ox: keep ordinal-prefixed files in order and their links intact.

    \b
    Ordinal sequences (00010_intro.md, 00020_setup.md, ...):
      ox scan docs/                      # List items in order
      ox renumber docs/                  # Renumber to 10, 20, 30, ...
      ox renumber-all                    # Every ordinal folder in the workspace
      ox insert docs/00020_setup.md      # Create 00021_new.md after it
      ox move up docs/00020_setup.md     # Swap with the previous item
      ox cut docs/00020_setup.md         # Then: ox paste other/00010_a.md
      ox relocate SOURCE TARGET          # Cut and paste in one step

    \b
    Attachments and links:
      ox hash photo.png                  # Content fingerprint
      ox attach notes.md photo.png       # Rename with fingerprint, print link
      ox assign-id notes.md              # Embed a stable identifier
      ox link index.md notes.md          # Identifier link to notes.md
      ox repair                          # Fix broken links, mark orphans

    \b
    For programmatic error handling:
      ox --json-errors renumber docs/    # Errors output as JSON with error codes

    \b
    For quieter output:
      ox --quiet repair                  # Suppress warnings
      ORDEX_QUIET=1 ox repair            # Or use environment variable
    """
    from ._logging import set_quiet_mode

    ctx.ensure_object(dict)
    ctx.obj["json_errors"] = json_errors
    ctx.obj["quiet"] = quiet

    if quiet:
        set_quiet_mode(True)


@cli.command()
@click.option("--path", "-p", type=click.Path(file_okay=False), help="Workspace directory (default: cwd)")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing .ordexconfig")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def init(ctx: click.Context, path: str | None, force: bool, as_json: bool):
    """Mark a directory as an ordex workspace.

    Writes a commented .ordexconfig with the default globs and markers.

    \b
    Examples:
      ox init
      ox init --path notes/
    """
    from .context import write_default_config

    workspace = Path(path) if path else Path.cwd()
    try:
        config_file = write_default_config(workspace, force=force)
    except (FileExistsError, OSError) as e:
        _handle_error(ctx, e)

    if as_json:
        output({"workspace": str(workspace), "config_file": str(config_file)}, as_json=True)
    else:
        click.echo(f"Initialized workspace at {workspace}")
        click.echo(f"  Config: {config_file}")


# ─────────────────────────────────────────────────────────────────────────────
# Ordinal Commands
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.argument("directory", type=click.Path(file_okay=False, path_type=Path), default=".")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def scan(ctx: click.Context, directory: Path, as_json: bool):
    """List a folder's ordinal items in sequence order.

    \b
    Examples:
      ox scan docs/
      ox scan --json
    """
    from .core import scan as core_scan

    try:
        items = run_async(core_scan(directory))
    except Exception as e:
        _handle_error(ctx, e)

    if as_json:
        output([_dump(item) for item in items], as_json=True)
        return

    if not items:
        click.echo("No ordinal items found.")
        return
    for item in items:
        marker = "/" if item.is_directory else ""
        click.echo(f"{item.ordinal:>6}  {item.original_name}{marker}")


@cli.command()
@click.argument("directory", type=click.Path(file_okay=False, path_type=Path), default=".")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def renumber(ctx: click.Context, directory: Path, as_json: bool):
    """Renumber a folder's ordinal items to 10, 20, 30, ...

    Order is preserved. Refuses to run if two items share a name after
    their prefix.

    \b
    Examples:
      ox renumber docs/
    """
    from .core import renumber as core_renumber

    try:
        result = run_async(core_renumber(directory))
    except Exception as e:
        _handle_error(ctx, e)

    if as_json:
        output(_dump(result), as_json=True)
    elif result.renamed:
        click.echo(f"✓ Renumbered {len(result.renamed)} of {result.items} item(s) in {directory}")
    else:
        click.echo(f"Already in order ({result.items} item(s))")


@cli.command("renumber-all")
@click.argument("root", type=click.Path(file_okay=False, path_type=Path), required=False)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def renumber_all(ctx: click.Context, root: Path | None, as_json: bool):
    """Renumber every ordinal folder under ROOT (default: workspace root).

    Folders that fail are reported and skipped; the rest are still renumbered.
    """
    from .core import renumber_all as core_renumber_all

    root = root or _default_root()
    try:
        summary = run_async(core_renumber_all(root, _settings_for(root)))
    except Exception as e:
        _handle_error(ctx, e)

    if as_json:
        output(_dump(summary), as_json=True)
    else:
        click.echo(
            f"✓ Renumbered {summary.directories_processed} folder(s), "
            f"{summary.items_renumbered} item(s) ({summary.items_renamed} renamed)"
        )
        for skipped in summary.skipped:
            click.echo(f"  Skipped (unreadable): {skipped}")
        for error in summary.errors:
            click.echo(f"  Error: {error}", err=True)

    if summary.errors:
        sys.exit(1)


@cli.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--folder", "is_folder", is_flag=True, help="Create a folder instead of a file")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing item without asking")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def insert(ctx: click.Context, path: Path, is_folder: bool, force: bool, as_json: bool):
    """Create a new item right after PATH.

    \b
    Examples:
      ox insert docs/00020_setup.md           # Creates docs/00021_new.md
      ox insert docs/00020_setup.md --folder  # Creates docs/00021_new/
    """
    from .core import insert_after
    from .errors import EntryExists

    try:
        result = run_async(insert_after(path, directory=is_folder, overwrite=force))
    except EntryExists as e:
        if as_json or not sys.stdin.isatty():
            _handle_error(ctx, e)
        if not click.confirm(f'"{e.path.name}" already exists. Overwrite it?', default=False):
            click.echo("Aborted.")
            return
        try:
            result = run_async(insert_after(path, directory=is_folder, overwrite=True))
        except Exception as e2:
            _handle_error(ctx, e2)
    except Exception as e:
        _handle_error(ctx, e)

    if as_json:
        output(_dump(result), as_json=True)
    else:
        click.echo(f"✓ Created {result.path}")


@cli.command()
@click.argument("direction", type=click.Choice(["up", "down"]))
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def move(ctx: click.Context, direction: str, path: Path, as_json: bool):
    """Swap PATH with its previous (up) or next (down) item.

    \b
    Examples:
      ox move up docs/00020_setup.md
      ox move down docs/00020_setup.md
    """
    from .core import move as core_move

    try:
        result = run_async(core_move(path, direction))  # type: ignore[arg-type]
    except Exception as e:
        _handle_error(ctx, e)

    if as_json:
        output(_dump(result), as_json=True)
    elif result.status == "at_boundary":
        click.echo(f"{path.name} is already at the {'top' if direction == 'up' else 'bottom'}")
    else:
        click.echo(f"✓ {path.name} -> {result.path.name}")


@cli.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def cut(ctx: click.Context, path: Path, as_json: bool):
    """Remember PATH for a later `ox paste`."""
    from .config import get_workspace_root
    from .core import cut as core_cut

    try:
        item = run_async(core_cut(path, get_workspace_root()))
    except Exception as e:
        _handle_error(ctx, e)

    if as_json:
        output(_dump(item), as_json=True)
    else:
        click.echo(f"Cut ready: {item.original_name}")


@cli.command()
@click.argument("target", type=click.Path(path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def paste(ctx: click.Context, target: Path, as_json: bool):
    """Move the cut item into TARGET's slot.

    TARGET and every later item in its folder shift down by one step.
    """
    from .config import get_workspace_root
    from .core import paste as core_paste

    try:
        result = run_async(core_paste(target, get_workspace_root()))
    except Exception as e:
        _handle_error(ctx, e)

    _echo_relocate(result, as_json)


@cli.command()
@click.argument("source", type=click.Path(path_type=Path))
@click.argument("target", type=click.Path(path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def relocate(ctx: click.Context, source: Path, target: Path, as_json: bool):
    """Move SOURCE into TARGET's slot (cut and paste in one step).

    \b
    Examples:
      ox relocate docs/00050_faq.md docs/00020_setup.md
      ox relocate drafts/idea.md docs/00030_usage.md
    """
    from .core import relocate as core_relocate

    try:
        result = run_async(core_relocate(source, target))
    except Exception as e:
        _handle_error(ctx, e)

    _echo_relocate(result, as_json)


def _echo_relocate(result, as_json: bool) -> None:
    if as_json:
        output(_dump(result), as_json=True)
    elif result.status == "unchanged":
        click.echo("Nothing to move: source and target are the same item")
    else:
        click.echo(f"✓ Moved to {result.path} ({result.shifted} item(s) shifted)")


# ─────────────────────────────────────────────────────────────────────────────
# Attachment and Identifier Commands
# ─────────────────────────────────────────────────────────────────────────────


@cli.command("hash")
@click.argument("file", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def hash_cmd(ctx: click.Context, file: Path, as_json: bool):
    """Print the content fingerprint of FILE."""
    from .core import hash_file

    try:
        fingerprint = run_async(hash_file(file))
    except Exception as e:
        _handle_error(ctx, e)

    if as_json:
        output({"path": str(file), "fingerprint": fingerprint}, as_json=True)
    else:
        click.echo(fingerprint)


@cli.command()
@click.argument("document", type=click.Path(dir_okay=False, path_type=Path))
@click.argument("file", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--append", is_flag=True, help="Append the link to DOCUMENT")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def attach(ctx: click.Context, document: Path, file: Path, append: bool, as_json: bool):
    """Name FILE with its fingerprint and print a link to it from DOCUMENT.

    \b
    Examples:
      ox attach notes.md assets/photo.png
      ox attach notes.md assets/photo.png --append
    """
    from .core import attach_file

    try:
        result = run_async(attach_file(document, file, _settings_for(document.resolve()), append=append))
    except Exception as e:
        _handle_error(ctx, e)

    if as_json:
        output(_dump(result), as_json=True)
    else:
        click.echo(result.link)


@cli.command("attach-bytes")
@click.argument("directory", type=click.Path(file_okay=False, path_type=Path))
@click.option("--stem", default="image", show_default=True, help="Name before the fingerprint")
@click.option("--ext", "extension", default=".png", show_default=True, help="File extension")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def attach_bytes(ctx: click.Context, directory: Path, stem: str, extension: str, as_json: bool):
    """Save bytes from stdin into DIRECTORY as a fingerprinted attachment.

    \b
    Examples:
      xclip -selection clipboard -t image/png -o | ox attach-bytes assets/
    """
    from .core import save_attachment_bytes

    data = click.get_binary_stream("stdin").read()
    if not data:
        _handle_error(ctx, ValueError("No data on stdin"))

    try:
        path = run_async(save_attachment_bytes(directory, data, stem, extension, _settings_for(directory.resolve())))
    except Exception as e:
        _handle_error(ctx, e)

    if as_json:
        output({"path": str(path)}, as_json=True)
    else:
        click.echo(str(path))


@cli.command("assign-id")
@click.argument("file", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def assign_id(ctx: click.Context, file: Path, as_json: bool):
    """Embed a stable identifier on FILE's first line (at most once)."""
    from .core import assign_identifier

    try:
        result = run_async(assign_identifier(file, _settings_for(file.resolve())))
    except Exception as e:
        _handle_error(ctx, e)

    if as_json:
        output(_dump(result), as_json=True)
    else:
        click.echo(result.identifier)


@cli.command()
@click.argument("document", type=click.Path(dir_okay=False, path_type=Path))
@click.argument("target", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--text", help="Link text (default: TARGET's name)")
@click.option("--append", is_flag=True, help="Append the link to DOCUMENT")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def link(ctx: click.Context, document: Path, target: Path, text: str | None, append: bool, as_json: bool):
    """Print an identifier link from DOCUMENT to TARGET.

    TARGET gets an identifier first if it has none, so the link survives
    moves and renames (`ox repair` follows it).
    """
    from .core import link_identifier

    try:
        rendered = run_async(
            link_identifier(document, target, text=text, settings=_settings_for(document.resolve()), append=append)
        )
    except Exception as e:
        _handle_error(ctx, e)

    if as_json:
        output({"document": str(document), "target": str(target), "link": rendered}, as_json=True)
    else:
        click.echo(rendered)


@cli.command()
@click.argument("key")
@click.option("--root", type=click.Path(file_okay=False, path_type=Path), help="Folder to search")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def locate(ctx: click.Context, key: str, root: Path | None, as_json: bool):
    """Print where the file with fingerprint or identifier KEY lives now."""
    from .core import locate as core_locate

    root = root or _default_root()
    try:
        kind, path = run_async(core_locate(root, key, _settings_for(root)))
    except Exception as e:
        _handle_error(ctx, e)

    if as_json:
        output({"key": key.lower(), "kind": kind.value, "path": str(path)}, as_json=True)
    else:
        click.echo(str(path))


# ─────────────────────────────────────────────────────────────────────────────
# Repair Command
# ─────────────────────────────────────────────────────────────────────────────


@cli.command()
@click.argument("root", type=click.Path(file_okay=False, path_type=Path), required=False)
@click.option("--dry-run", is_flag=True, help="Report changes without writing or renaming")
@click.option("--no-orphans", is_flag=True, help="Do not mark unreferenced attachments")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def repair(ctx: click.Context, root: Path | None, dry_run: bool, no_orphans: bool, as_json: bool):
    """Fix broken attachment and identifier links under ROOT.

    Broken links are rewritten to their targets' current locations. Links
    whose target cannot be found are reported, never removed. Attachments
    that no document links to are renamed with an ORPHAN- prefix.

    \b
    Examples:
      ox repair
      ox repair docs/ --dry-run
      ox repair --json
    """
    from .core import repair_links

    root = root or _default_root()
    try:
        summary = run_async(repair_links(root, _settings_for(root), dry_run=dry_run, orphans=not no_orphans))
    except Exception as e:
        _handle_error(ctx, e)

    if as_json:
        data = _dump(summary)
        data["orphans_found"] = summary.orphans_found
        data["dry_run"] = dry_run
        output(data, as_json=True)
        return

    prefix = "Would repair" if dry_run else "✓ Repaired"
    click.echo(
        f"{prefix} {summary.links_repaired} link(s) in {summary.documents_modified} document(s) "
        f"({summary.documents_scanned} scanned)"
    )
    if summary.links_repaired:
        click.echo(
            f"  {summary.hash_links_repaired} attachment link(s), "
            f"{summary.identifier_links_repaired} identifier link(s)"
        )
    if summary.orphans is not None:
        click.echo(f"  Orphaned attachments: {summary.orphans_found} ({len(summary.orphans.marked)} newly marked)")
        for failure in summary.orphans.failed:
            click.echo(f"  Could not mark orphan: {failure}", err=True)
    if summary.missing:
        click.echo(f"  Missing targets ({len(summary.missing)}):")
        for missing in summary.missing:
            click.echo(f"    {missing}")


def main():
    """Entry point for ox CLI."""
    from ._logging import configure_logging

    configure_logging()
    cli()


if __name__ == "__main__":
    main()
