# repoviewer/cli.py

from pathlib import Path
from typing import Optional, List

import typer
from loguru import logger
from pydantic import ValidationError

from .services.logging import setup_logging
from .config.loader import get_config, save_config, update_config
from .config.paths import get_user_config_file
from .config.schema import AppConfig
from .core.collection import Collection
from .core.errors import CollectionError, ExportError, ListingError, NotCollectable
from .core.exporter import default_export_name, render_markdown, render_tree, write_export
from .core.fs_listing import IgnoreMatcher, ListingFilter
from .core.git_repo import find_repository_root
from .core.models import format_size
from .core.token_counter import count_tokens
from . import __version__

app = typer.Typer(help="RepoViewer - collect repository files and directory trees as text for LLMs.")


def version_callback(value: bool):
    if value:
        typer.echo(f"RepoViewer Version: {__version__}")
        raise typer.Exit()


@app.callback()
def main_options(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    version: Optional[bool] = typer.Option(None, "--version", callback=version_callback, is_eager=True, help="Show version and exit."),
):
    """ Main callback to set up logging """
    log_level = "DEBUG" if verbose else "INFO"
    setup_logging(level=log_level, verbose=verbose)
    logger.debug(f"Log level set to: {log_level}")
    ctx.ensure_object(dict)
    ctx.obj["VERBOSE"] = verbose


def _resolve_target_dir(raw_path: Optional[Path]) -> Path:
    """Validates a directory argument; quotes pasted around it are tolerated."""
    if raw_path is None:
        return Path.cwd()
    path = Path(str(raw_path).strip().strip('"').strip())
    if not path.exists():
        logger.error(f"Directory not found: {raw_path}")
        raise typer.Exit(code=1)
    if not path.is_dir():
        logger.error(f"Not a directory: {raw_path}")
        raise typer.Exit(code=1)
    return path.resolve()


def _ignore_matcher(directory: Path) -> Optional[IgnoreMatcher]:
    git_root = find_repository_root(directory)
    if git_root is None:
        return None
    return IgnoreMatcher.for_repository(git_root, get_config().extra_ignore_patterns)


def _deliver(text: str, output: Optional[Path], copy: bool) -> None:
    if copy:
        from .services.clipboard import copy_text
        copy_text(text)
        logger.success("Copied to clipboard.")
    if output is not None:
        write_export(text, output)
        logger.success(f"Written to: {output}")


@app.command()
def tree(
    path: Optional[Path] = typer.Argument(None, help="Directory to draw (default: current directory)."),
    depth: Optional[int] = typer.Option(None, "--depth", "-d", help="Maximum depth (default from config; 0 for unlimited)."),
    hidden: bool = typer.Option(False, "--hidden", help="Include hidden files."),
    show_all: bool = typer.Option(False, "--all", help="Include files ignored by .gitignore."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the tree to this file instead of stdout."),
    copy: bool = typer.Option(False, "--copy", "-c", help="Copy the tree to the clipboard instead of stdout."),
):
    """
    Prints the directory tree of PATH and exits.
    """
    config = get_config()
    target = _resolve_target_dir(path)
    depth_limit = config.tree_depth if depth is None else (depth or None)
    show_hidden = hidden or config.show_hidden
    show_ignored = show_all or config.show_ignored
    logger.debug(f"Rendering tree for {target} (depth={depth_limit}, hidden={show_hidden}, all={show_ignored})")

    try:
        text = render_tree(target, depth_limit, show_hidden, show_ignored, _ignore_matcher(target))
        if output is None and not copy:
            typer.echo(text, nl=False)
            return
        _deliver(text, output, copy)
    except ExportError as e:
        logger.error(f"Tree export failed: {e}")
        raise typer.Exit(code=1)
    except Exception as e:
        logger.exception(f"Unexpected error while rendering tree: {e}")
        raise typer.Exit(code=1)


@app.command()
def bundle(
    paths: List[Path] = typer.Argument(..., help="Files and directories to collect (directories are expanded recursively)."),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help="Directory display paths are relative to (default: current directory)."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Markdown output file (default: code_context_<timestamp>.md in the root)."),
    copy: bool = typer.Option(False, "--copy", "-c", help="Copy the markdown to the clipboard instead of writing a file."),
    hidden: bool = typer.Option(False, "--hidden", help="Include hidden files when expanding directories."),
    show_all: bool = typer.Option(False, "--all", help="Include files ignored by .gitignore when expanding directories."),
):
    """
    Collects files into a markdown bundle with one fenced block per file.
    """
    config = get_config()
    root_dir = _resolve_target_dir(root)
    git_root = find_repository_root(root_dir)
    matcher = IgnoreMatcher.for_repository(git_root, config.extra_ignore_patterns) if git_root else None
    filters = ListingFilter(hidden or config.show_hidden, show_all or config.show_ignored, matcher)
    collection = Collection(root_dir, git_root=git_root,
                            max_file_size=config.max_file_size_bytes, max_expand_depth=config.max_expand_depth)

    skipped = 0
    for raw in paths:
        candidate = raw if raw.is_absolute() else Path.cwd() / raw
        try:
            if candidate.is_dir():
                report = collection.add_directory(candidate, filters)
                for skipped_path, reason in report.skipped + report.errors:
                    logger.warning(f"Skipped {skipped_path}: {reason}")
                skipped += len(report.skipped) + report.errored
            else:
                collection.add(candidate)
        except (NotCollectable, CollectionError, ListingError) as e:
            logger.warning(f"Skipped {raw}: {e}")
            skipped += 1

    if collection.is_empty:
        logger.error("No collectable files selected. Aborting.")
        raise typer.Exit(code=1)
    logger.info(f"Collected {len(collection)} files ({format_size(collection.total_size_bytes)}), skipped {skipped}.")

    try:
        markdown = render_markdown(collection)
        if not copy and output is None:
            output = root_dir / default_export_name()
        _deliver(markdown, output, copy)
    except ExportError as e:
        logger.error(f"Bundle export failed: {e}")
        raise typer.Exit(code=1)
    except Exception as e:
        logger.exception(f"Unexpected error while writing bundle: {e}")
        raise typer.Exit(code=1)
    logger.info(f"Token estimate: ~{count_tokens(markdown, config.token_encoding)} tokens")


@app.command("config")
def config_command(
    settings: Optional[List[str]] = typer.Option(None, "--set", "-s", help="KEY=VALUE to store; repeatable. Lists take comma-separated values."),
    reset: bool = typer.Option(False, "--reset", help="Restore the default configuration."),
):
    """
    Shows the effective configuration, or changes the saved one.
    """
    if reset:
        if not save_config(AppConfig()):
            raise typer.Exit(code=1)
        logger.success(f"Configuration reset: {get_user_config_file()}")
    if settings:
        changes = {}
        for item in settings:
            key, sep, value = item.partition("=")
            key = key.strip().replace("-", "_")
            if not sep or key not in AppConfig.model_fields:
                logger.error(f"Invalid setting '{item}'. Known keys: {', '.join(AppConfig.model_fields)}")
                raise typer.Exit(code=1)
            changes[key] = [p.strip() for p in value.split(",") if p.strip()] if key == "extra_ignore_patterns" else value.strip()
        try:
            saved = update_config(**changes)
        except ValidationError as e:
            logger.error(f"Invalid configuration value: {e}")
            raise typer.Exit(code=1)
        if saved is None:
            logger.error(f"Configuration not saved: {get_user_config_file()}")
            raise typer.Exit(code=1)
        logger.success(f"Configuration saved: {get_user_config_file()}")
    typer.echo(get_config().model_dump_json(indent=4))


if __name__ == "__main__":
    app()
