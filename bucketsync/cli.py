"""CLI interface for bucketsync."""

import dataclasses
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional

import click

from .cli_progress import run_sync_with_progress
from .config import SyncConfig, config, load_sync_config_from_json
from .exceptions import BucketSyncError, SyncCancelledError, SyncConfigError
from .output import OutputFormatter
from .storage import S3ObjectStore, create_s3_client
from .sync import SyncAction, SyncDirection, SyncEngine, SyncResult

logger = logging.getLogger(__name__)


def sync_options(func: Callable) -> Callable:
    """Options shared by every command that talks to a bucket."""
    options = [
        click.option("--bucket", "-b", help="Bucket name"),
        click.option("--prefix", "-p", help="Key prefix inside the bucket"),
        click.option(
            "--workspace",
            "-w",
            type=click.Path(file_okay=False, path_type=Path),
            help="Local workspace directory",
        ),
        click.option("--region", help="AWS region (default: AWS_REGION)"),
        click.option("--endpoint-url", help="Custom S3 endpoint (MinIO, LocalStack)"),
        click.option(
            "--ignore",
            "-i",
            multiple=True,
            help="Ignore pattern in .gitignore syntax (repeatable)",
        ),
        click.option(
            "--download-concurrency",
            type=int,
            default=None,
            help="Parallel downloads (default: 50)",
        ),
        click.option(
            "--upload-concurrency",
            type=int,
            default=None,
            help="Parallel uploads (default: 10)",
        ),
        click.option("--no-progress", is_flag=True, help="Disable progress bars"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_sync_config(
    ctx: Any,
    bucket: Optional[str],
    prefix: Optional[str],
    workspace: Optional[Path],
    region: Optional[str],
    endpoint_url: Optional[str],
    ignore: tuple[str, ...],
    download_concurrency: Optional[int],
    upload_concurrency: Optional[int],
    delete_remote: Optional[bool] = None,
) -> SyncConfig:
    """Merge command line options, the --config file and user defaults.

    Command line options win over the JSON file, which wins over the
    environment and ``~/.config/bucketsync/config``.

    Raises:
        SyncConfigError: If required options are missing or invalid
    """
    overrides: dict[str, Any] = {
        "bucket": bucket,
        "prefix": prefix,
        "workspace_dir": workspace,
        "region": region,
        "endpoint_url": endpoint_url,
        "download_concurrency": download_concurrency,
        "upload_concurrency": upload_concurrency,
        "ignore_patterns": list(ignore) if ignore else None,
        "delete_remote_on_push": delete_remote or None,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}

    config_file = ctx.obj.get("config_file")
    if config_file is not None:
        base = load_sync_config_from_json(config_file)
        return dataclasses.replace(base, **overrides)

    defaults = {
        "bucket": config.bucket,
        "prefix": config.prefix,
        "region": config.region,
        "endpoint_url": config.endpoint_url,
    }
    for name, value in defaults.items():
        if name not in overrides and value is not None:
            overrides[name] = value
    return SyncConfig.from_env(**overrides)


def create_store(sync_config: SyncConfig) -> S3ObjectStore:
    """Create the S3 store for a configuration."""
    client = create_s3_client(
        region=sync_config.region,
        endpoint_url=sync_config.endpoint_url,
        max_pool_connections=max(
            sync_config.download_concurrency, sync_config.upload_concurrency
        ),
    )
    return S3ObjectStore(client=client)


def _report_result(
    out: OutputFormatter, title: str, result: SyncResult, direction: SyncDirection
) -> None:
    if out.json_output:
        out.output_json(result.to_dict())
        return

    if direction == SyncDirection.PULL:
        items = [("Downloaded", f"{result.downloaded_files or 0} files")]
    else:
        items = [("Uploaded", f"{result.uploaded_files or 0} files")]
    items.append(("Deleted", f"{result.deleted_files or 0} files"))
    items.append(("Unchanged", f"{result.skipped_files} files"))
    if result.errors:
        items.append(("Failed", f"{len(result.errors)} errors"))
    items.append(("Duration", f"{result.duration_ms / 1000:.2f}s"))
    out.print_summary(title, items)

    for error in result.errors:
        out.error(error)
    if result.success:
        out.success(title)


def _run_sync(ctx: Any, direction: SyncDirection, options: dict[str, Any]) -> None:
    out: OutputFormatter = ctx.obj["out"]
    no_progress = options.pop("no_progress")

    try:
        sync_config = build_sync_config(ctx, **options)
    except SyncConfigError as e:
        out.error(f"Invalid configuration: {e}")
        ctx.exit(1)
        return  # Unreachable, but helps type checker

    if not out.quiet:
        out.info(f"Bucket:    s3://{sync_config.bucket}/{sync_config.prefix}")
        out.info(f"Workspace: {sync_config.workspace_dir}")
        out.info("")  # Empty line for readability

    cancel_event = threading.Event()
    show_progress = not (no_progress or out.quiet or out.json_output)
    title = "Pull Complete" if direction == SyncDirection.PULL else "Push Complete"

    try:
        with SyncEngine(sync_config, create_store(sync_config)) as engine:
            result = run_sync_with_progress(
                engine, direction, show_progress=show_progress, cancel_event=cancel_event
            )
    except KeyboardInterrupt:
        cancel_event.set()
        out.warning("\nSync cancelled by user")
        ctx.exit(130)
        return
    except SyncCancelledError as e:
        out.warning(str(e))
        ctx.exit(130)
        return
    except BucketSyncError as e:
        out.error(f"Sync failed: {e}")
        ctx.exit(1)
        return

    _report_result(out, title, result, direction)
    if not result.success:
        ctx.exit(1)


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file with sync options",
)
@click.version_option(package_name="bucketsync")
@click.pass_context
def main(
    ctx: Any, quiet: bool, json: bool, verbose: bool, config_file: Optional[Path]
) -> None:
    """bucketsync - Mirror an S3 bucket prefix and a local workspace."""
    # Store settings in context for subcommands to access
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["config_file"] = config_file
    ctx.obj["verbose"] = verbose

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("bucketsync").setLevel(logging.DEBUG)
        # boto is very chatty at DEBUG
        logging.getLogger("botocore").setLevel(logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--bucket", "-b", prompt="Default bucket", help="Default bucket")
@click.option("--prefix", "-p", default="", help="Default key prefix")
@click.option("--region", default=None, help="Default AWS region")
@click.option("--endpoint-url", default=None, help="Default S3 endpoint")
@click.pass_context
def init(
    ctx: Any,
    bucket: str,
    prefix: str,
    region: Optional[str],
    endpoint_url: Optional[str],
) -> None:
    """Store default bucket settings.

    Writes ~/.config/bucketsync/config so later commands can omit --bucket
    and --prefix.
    """
    out: OutputFormatter = ctx.obj["out"]

    values = {"bucket": bucket, "prefix": prefix}
    if region:
        values["region"] = region
    if endpoint_url:
        values["endpoint_url"] = endpoint_url

    try:
        config_path = config.save(values)
    except OSError as e:
        out.error(f"Could not write configuration: {e}")
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json({"configFile": str(config_path), **values})
        return
    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "✓ Configuration saved successfully"),
            ("Config file", str(config_path)),
        ],
    )


@main.command()
@sync_options
@click.pass_context
def pull(ctx: Any, **options: Any) -> None:
    """Make the workspace an exact mirror of the bucket prefix.

    New and changed objects are downloaded; local files that no longer
    exist remotely are deleted.

    Examples:
        bucketsync pull -b my-bucket -p workspaces/demo -w ./demo
        bucketsync pull -b my-bucket -p demo -w ./demo -i "*.log" -i build/
    """
    _run_sync(ctx, SyncDirection.PULL, options)


@main.command()
@sync_options
@click.option(
    "--delete-remote",
    is_flag=True,
    help="Also delete remote objects that no longer exist locally",
)
@click.pass_context
def push(ctx: Any, delete_remote: bool, **options: Any) -> None:
    """Upload new and changed workspace files.

    Remote objects are never deleted unless --delete-remote is given.

    Examples:
        bucketsync push -b my-bucket -p workspaces/demo -w ./demo
        bucketsync push -b my-bucket -p demo -w ./demo --delete-remote
    """
    options["delete_remote"] = delete_remote
    _run_sync(ctx, SyncDirection.PUSH, options)


@main.command()
@sync_options
@click.pass_context
def status(ctx: Any, **options: Any) -> None:
    """Show what pull and push would do, without changing anything."""
    out: OutputFormatter = ctx.obj["out"]
    options.pop("no_progress")

    try:
        sync_config = build_sync_config(ctx, **options)
    except SyncConfigError as e:
        out.error(f"Invalid configuration: {e}")
        ctx.exit(1)
        return

    try:
        with SyncEngine(sync_config, create_store(sync_config)) as engine:
            plans = {
                direction: engine.plan(direction)
                for direction in (SyncDirection.PULL, SyncDirection.PUSH)
            }
            decisions = {
                direction: engine.comparator.decide(
                    plan, direction, delete_remote=sync_config.delete_remote_on_push
                )
                for direction, plan in plans.items()
            }
    except BucketSyncError as e:
        out.error(f"Status failed: {e}")
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(
            {
                direction.value: {
                    "toTransfer": list(plan.to_transfer),
                    "toDelete": list(plan.to_delete),
                    "unchanged": plan.unchanged,
                }
                for direction, plan in plans.items()
            }
        )
        return

    symbols = {
        SyncAction.DOWNLOAD: "↓",
        SyncAction.UPLOAD: "↑",
        SyncAction.DELETE_LOCAL: "✗",
        SyncAction.DELETE_REMOTE: "✗",
        SyncAction.SKIP: "·",
    }
    for direction in (SyncDirection.PULL, SyncDirection.PUSH):
        plan = plans[direction]
        out.print(f"{direction.value.capitalize()}:")
        if plan.is_empty:
            out.print("  Up to date")
        for decision in decisions[direction]:
            out.print(
                f"  {symbols[decision.action]} {decision.relative_path} "
                f"({decision.reason})"
            )
        out.print(f"  {plan.unchanged} unchanged")
