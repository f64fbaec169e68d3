"""Command-line interface for the cloud storage API."""

import logging
from pathlib import Path
from typing import Any, Optional

import click
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from . import __version__
from .api import CloudStoreClient
from .config import config, is_sensitive_key, mask_value, normalize_key
from .exceptions import CloudStoreAPIError, CloudStoreError
from .models import ApiKeyInfo, AuthTokens, FileInfo, FilePage, FolderInfo, UserInfo
from .output import OutputFormatter
from .utils import format_size, format_timestamp, truncate

logger = logging.getLogger(__name__)


def _make_client(ctx: Any) -> CloudStoreClient:
    """Create a client from stored settings plus command-line overrides."""
    client_config = config.client_config(
        api_url=ctx.obj.get("api_url"), api_key=ctx.obj.get("api_key")
    )
    logger.debug(
        "Using %s with %s credential",
        client_config.base_url,
        client_config.credential.kind,
    )
    client = CloudStoreClient(client_config)
    ctx.call_on_close(client.close)
    return client


def _fail(ctx: Any, out: OutputFormatter, error: CloudStoreError) -> None:
    if out.json_output and isinstance(error, CloudStoreAPIError):
        out.output_json({"error": error.to_dict()})
    out.error(str(error))
    ctx.exit(1)


@click.group()
@click.option("--api-url", envvar="CLOUD_STORAGE_API_URL", help="API base URL")
@click.option("--api-key", "-k", help="API key (overrides stored credentials)")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: Any,
    api_url: Optional[str],
    api_key: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """Cloud Storage CLI - manage files, folders and API keys."""
    ctx.ensure_object(dict)
    ctx.obj["api_url"] = api_url
    ctx.obj["api_key"] = api_key
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("cloudstore").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


# =========================
# config
# =========================


@main.group("config")
def config_group() -> None:
    """Show and change stored settings."""


@config_group.command("show")
@click.pass_context
def config_show(ctx: Any) -> None:
    """Show current settings (secrets are masked)."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        settings = config.load()
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    values = {
        "api_url": settings.api_url,
        "access_token": mask_value(settings.access_token),
        "refresh_token": mask_value(settings.refresh_token),
        "api_key": mask_value(settings.api_key),
    }
    if out.json_output:
        out.output_json({**values, "config_file": str(config.get_config_path())})
        return
    out.print_summary(
        "Configuration",
        [
            ("Config file", config.get_config_path()),
            ("API URL", values["api_url"]),
            ("Access token", values["access_token"]),
            ("Refresh token", values["refresh_token"]),
            ("API key", values["api_key"]),
        ],
    )


@config_group.command("get")
@click.argument("key")
@click.option("--show-secret", is_flag=True, help="Do not mask secret values")
@click.pass_context
def config_get(ctx: Any, key: str, show_secret: bool) -> None:
    """Print the value of KEY (api-url, api-key, access-token, refresh-token)."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        value = config.get_value(key)
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if is_sensitive_key(key) and not show_secret:
        value = mask_value(value)
    if out.json_output:
        out.output_json({normalize_key(key): value})
    else:
        out.print(value)


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: Any, key: str, value: str) -> None:
    """Store VALUE under KEY."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        config.set_value(key, value)
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    shown = mask_value(value) if is_sensitive_key(key) else value
    out.success(f"Set {normalize_key(key)} = {shown}")


# =========================
# auth
# =========================


@main.group()
def auth() -> None:
    """Log in, log out and manage tokens."""


@auth.command()
@click.argument("username")
@click.option("--password", prompt=True, hide_input=True, help="Account password")
@click.pass_context
def login(ctx: Any, username: str, password: str) -> None:
    """Log in as USERNAME and store the returned tokens."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        client = _make_client(ctx)
        result = client.login(username, password)
        tokens = AuthTokens.from_dict(result or {})
        config.save_tokens(tokens.access_token, tokens.refresh_token or "")
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(result)
        return
    out.success("Login successful!")
    if tokens.user:
        out.print(f"User: {tokens.user.username} ({tokens.user.email})")
    out.print(f"Access token expires in: {tokens.expires_in} seconds")
    out.print(f"Refresh token expires in: {tokens.refresh_expires_in} seconds")
    out.info("Tokens saved to configuration.")


@auth.command()
@click.argument("username")
@click.argument("email")
@click.option(
    "--password",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="Account password",
)
@click.pass_context
def register(ctx: Any, username: str, email: str, password: str) -> None:
    """Register a new account."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        client = _make_client(ctx)
        result = client.register(username, email, password)
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(result)
        return
    user = UserInfo.from_dict(result or {})
    out.success("Registration successful!")
    out.print_summary(
        "Account",
        [("User ID", user.id), ("Username", user.username), ("Email", user.email)],
    )
    out.info(f"You can now log in with: cloud-storage-cli auth login {user.username}")


@auth.command()
@click.pass_context
def logout(ctx: Any) -> None:
    """Invalidate the refresh token and clear stored tokens."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        _, refresh_token = config.get_stored_tokens()
        if refresh_token:
            try:
                _make_client(ctx).logout(refresh_token)
            except CloudStoreError as e:
                # Local tokens are cleared regardless
                out.warning(f"Warning: failed to call logout endpoint: {e}")
        config.clear_tokens()
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    out.success("Logged out successfully. Tokens cleared from configuration.")


@auth.command()
@click.pass_context
def refresh(ctx: Any) -> None:
    """Get a new access token using the stored refresh token."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        _, refresh_token = config.get_stored_tokens()
        if not refresh_token:
            out.error("No refresh token found. Please login first using 'auth login'")
            ctx.exit(1)
        result = _make_client(ctx).refresh(refresh_token)
        tokens = AuthTokens.from_dict(result or {})
        config.save_tokens(tokens.access_token, tokens.refresh_token or refresh_token)
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(result)
        return
    out.success("Token refreshed successfully!")
    out.print(f"New access token expires in: {tokens.expires_in} seconds")


@auth.command()
@click.pass_context
def me(ctx: Any) -> None:
    """Show the logged-in user."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        result = _make_client(ctx).get_current_user()
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(result)
        return
    user = UserInfo.from_dict(result or {})
    out.print_summary(
        "Current user",
        [
            ("User ID", user.id),
            ("Username", user.username),
            ("Email", user.email),
            ("Active", user.active),
            ("Created at", format_timestamp(user.created_at)),
            ("Last login", format_timestamp(user.last_login_at)),
        ],
    )


# =========================
# file
# =========================


@main.group("file")
def file_group() -> None:
    """Upload, download and manage files."""


def _print_file(out: OutputFormatter, title: str, file_info: FileInfo) -> None:
    out.print_summary(
        title,
        [
            ("File ID", file_info.id),
            ("Filename", file_info.filename),
            ("Content type", file_info.content_type or "-"),
            ("Size", format_size(file_info.file_size)),
            ("Folder path", file_info.folder_path or "(none)"),
            ("URL", file_info.url or "-"),
            ("Created at", format_timestamp(file_info.created_at)),
        ],
    )


def _print_file_page(out: OutputFormatter, page: FilePage) -> None:
    if not page.files:
        out.print("No files found.")
        return
    out.print_table(
        f"Files (Page {page.page_number + 1} of {max(page.total_pages, 1)}, "
        f"Total: {page.total_elements})",
        ["ID", "Filename", "Content Type", "Size", "Folder", "Created At"],
        [
            (
                f.id,
                truncate(f.filename, 30),
                truncate(f.content_type, 20),
                format_size(f.file_size),
                f.folder_path or "-",
                format_timestamp(f.created_at),
            )
            for f in page.files
        ],
    )
    if page.has_more:
        out.info(f"More results available: use --page {page.page_number + 1}")


@file_group.command("upload")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--folder-path", help="Destination folder (e.g. /photos/2024)")
@click.option("--filename", help="Store the file under this name")
@click.pass_context
def file_upload(
    ctx: Any, file_path: str, folder_path: Optional[str], filename: Optional[str]
) -> None:
    """Upload FILE_PATH."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        out.progress_message(f"Uploading {Path(file_path).name}...")
        result = _make_client(ctx).upload(file_path, folder_path, filename)
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(result)
        return
    out.success("File uploaded successfully!")
    _print_file(out, "File", FileInfo.from_dict(result or {}))


@file_group.command("list")
@click.option("--page", type=int, default=0, help="Page number (0-based)")
@click.option("--size", type=int, default=20, help="Page size (max: 100)")
@click.option("--sort", default="createdAt,desc", help="Sort field and direction")
@click.option("--content-type", help="Filter by content type (e.g. image/jpeg)")
@click.option("--folder-path", help="Filter by folder path (e.g. /photos/2024)")
@click.pass_context
def file_list(
    ctx: Any,
    page: int,
    size: int,
    sort: str,
    content_type: Optional[str],
    folder_path: Optional[str],
) -> None:
    """List files."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        result = _make_client(ctx).list_files(
            page=page,
            size=size,
            sort=sort,
            content_type=content_type,
            folder_path=folder_path,
        )
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(result)
        return
    _print_file_page(out, FilePage.from_dict(result or {}))


@file_group.command("search")
@click.argument("query")
@click.option("--page", type=int, default=0, help="Page number (0-based)")
@click.option("--size", type=int, default=20, help="Page size (max: 100)")
@click.option("--content-type", help="Filter by content type (e.g. image/jpeg)")
@click.option("--folder-path", help="Filter by folder path (e.g. /photos/2024)")
@click.pass_context
def file_search(
    ctx: Any,
    query: str,
    page: int,
    size: int,
    content_type: Optional[str],
    folder_path: Optional[str],
) -> None:
    """Search files by QUERY."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        result = _make_client(ctx).search_files(
            query,
            page=page,
            size=size,
            content_type=content_type,
            folder_path=folder_path,
        )
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(result)
        return
    _print_file_page(out, FilePage.from_dict(result or {}))


@file_group.command("info")
@click.pass_context
def file_info(ctx: Any) -> None:
    """Show storage statistics."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        result = _make_client(ctx).get_file_statistics()
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(result)
        return
    stats = result or {}
    out.print_summary(
        "File Storage Information",
        [
            ("Total files", stats.get("totalFiles", 0)),
            ("Storage used", stats.get("storageUsed", "-")),
            ("Average file size", format_size(int(stats.get("averageFileSize") or 0))),
        ],
    )
    by_type = stats.get("byContentType") or {}
    if by_type:
        out.print_table(
            "By Content Type",
            ["Content Type", "Count"],
            sorted(by_type.items()),
        )


@file_group.command("download")
@click.argument("identifier")
@click.option(
    "--output",
    "-o",
    default="",
    help="Output file or directory (default: current directory)",
)
@click.pass_context
def file_download(ctx: Any, identifier: str, output: str) -> None:
    """Download a file by ID or stored path.

    IDENTIFIER: File UUID or path such as /photos/2024/image.jpg
    """
    out: OutputFormatter = ctx.obj["out"]
    progress = Progress(
        TextColumn("[bold blue]Downloading"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
        transient=True,
        disable=out.quiet or out.json_output,
    )
    try:
        with progress:
            task = progress.add_task("download", total=None)

            def on_progress(done: int, total: int) -> None:
                progress.update(task, completed=done, total=total or None)

            saved_path = _make_client(ctx).download(
                identifier, output, progress_callback=on_progress
            )
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    size = saved_path.stat().st_size if saved_path.exists() else 0
    if out.json_output:
        out.output_json({"path": str(saved_path), "size": size})
        return
    out.success("File downloaded successfully!")
    out.print(f"File path: {saved_path}")
    out.print(f"File size: {format_size(size)}")


@file_group.command("update")
@click.argument("file_id")
@click.option("--filename", help="New filename")
@click.option("--folder-path", help="New folder path (e.g. /documents)")
@click.pass_context
def file_update(
    ctx: Any, file_id: str, filename: Optional[str], folder_path: Optional[str]
) -> None:
    """Rename or move FILE_ID."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        result = _make_client(ctx).update_file(
            file_id, filename=filename, folder_path=folder_path
        )
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(result)
        return
    out.success("File updated successfully!")
    _print_file(out, "File", FileInfo.from_dict(result or {}))


@file_group.command("delete")
@click.argument("file_id")
@click.option("--confirm", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def file_delete(ctx: Any, file_id: str, confirm: bool) -> None:
    """Delete FILE_ID."""
    out: OutputFormatter = ctx.obj["out"]
    if not confirm and not click.confirm(
        f"Are you sure you want to delete file '{file_id}'?", default=False
    ):
        out.warning("Delete cancelled.")
        return

    try:
        _make_client(ctx).delete_file(file_id)
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json({"deleted": file_id})
    else:
        out.success(f"File '{file_id}' deleted successfully.")


# =========================
# folder
# =========================


@main.group()
def folder() -> None:
    """Create, list and delete folders."""


@folder.command("create")
@click.argument("path")
@click.option("--description", help="Folder description")
@click.pass_context
def folder_create(ctx: Any, path: str, description: Optional[str]) -> None:
    """Create folder PATH (e.g. /photos/2024)."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        result = _make_client(ctx).create_folder(path, description)
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(result)
        return
    info = FolderInfo.from_dict(result or {"path": path})
    out.success("Folder created successfully!")
    out.print(f"Path: {info.path}")
    if info.description:
        out.print(f"Description: {info.description}")


@folder.command("list")
@click.option("--parent-path", help="Only list folders below this path")
@click.pass_context
def folder_list(ctx: Any, parent_path: Optional[str]) -> None:
    """List folders."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        result = _make_client(ctx).list_folders(parent_path)
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(result)
        return
    folders = [FolderInfo.from_dict(item) for item in result or []]
    if not folders:
        out.print("No folders found.")
        return
    out.print_table(
        f"Folders ({len(folders)})",
        ["Path", "Description", "Files", "Created At"],
        [
            (f.path, f.description or "-", f.file_count, format_timestamp(f.created_at))
            for f in folders
        ],
    )


@folder.command("delete")
@click.argument("path")
@click.option("--force", "-f", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def folder_delete(ctx: Any, path: str, force: bool) -> None:
    """Delete folder PATH."""
    out: OutputFormatter = ctx.obj["out"]
    if not force and not click.confirm(
        f"Are you sure you want to delete folder '{path}'? This cannot be undone.",
        default=False,
    ):
        out.warning("Delete cancelled.")
        return

    try:
        _make_client(ctx).delete_folder(path)
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json({"deleted": path})
    else:
        out.success(f"Folder '{path}' deleted successfully.")


@folder.command("info")
@click.argument("path")
@click.pass_context
def folder_info(ctx: Any, path: str) -> None:
    """Show statistics for folder PATH."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        result = _make_client(ctx).get_folder_statistics(path)
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(result)
        return
    stats = result or {}
    out.print_summary(
        f"Folder {path}",
        [
            ("Total files", stats.get("totalFiles", 0)),
            ("Total size", format_size(int(stats.get("totalSize") or 0))),
            ("Average file size", format_size(int(stats.get("averageFileSize") or 0))),
        ],
    )
    by_type = stats.get("byContentType") or {}
    if by_type:
        out.print_table(
            "By Content Type", ["Content Type", "Count"], sorted(by_type.items())
        )


# =========================
# apikey
# =========================


@main.group()
def apikey() -> None:
    """Generate, list and revoke API keys."""


def _api_key_rows(key: ApiKeyInfo) -> list[tuple[str, Any]]:
    return [
        ("API Key ID", key.id),
        ("Name", key.name),
        ("Active", key.active),
        ("Created at", format_timestamp(key.created_at)),
        ("Expires at", format_timestamp(key.expires_at) if key.expires_at else "Never"),
        ("Last used", format_timestamp(key.last_used_at) if key.last_used_at else "Never"),
    ]


@apikey.command("generate")
@click.option("--name", required=True, help="API key name")
@click.option(
    "--expires-at", help="Expiry in RFC3339 format (e.g. 2025-12-31T23:59:59Z)"
)
@click.pass_context
def apikey_generate(ctx: Any, name: str, expires_at: Optional[str]) -> None:
    """Generate a new API key. The key is shown only once."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        result = _make_client(ctx).generate_api_key(name, expires_at)
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(result)
        return
    key = ApiKeyInfo.from_dict(result or {})
    out.success("API key generated successfully!")
    out.warning(
        "This API key will only be displayed once. Store it securely."
    )
    out.print_summary("API key", _api_key_rows(key) + [("API Key", key.key or "-")])
    if key.key:
        out.info(f"To use this API key: cloud-storage-cli config set api-key {key.key}")
    else:
        out.error("API key was not returned by the server")
        ctx.exit(1)


@apikey.command("list")
@click.pass_context
def apikey_list(ctx: Any) -> None:
    """List API keys."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        result = _make_client(ctx).list_api_keys()
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(result)
        return
    keys = [ApiKeyInfo.from_dict(item) for item in result or []]
    if not keys:
        out.print("No API keys found.")
        return
    out.print_table(
        f"API Keys ({len(keys)})",
        ["ID", "Name", "Active", "Created At", "Expires At"],
        [
            (
                k.id,
                k.name,
                "yes" if k.active else "no",
                format_timestamp(k.created_at),
                format_timestamp(k.expires_at) if k.expires_at else "Never",
            )
            for k in keys
        ],
    )


@apikey.command("get")
@click.argument("api_key_id")
@click.pass_context
def apikey_get(ctx: Any, api_key_id: str) -> None:
    """Show API key API_KEY_ID."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        result = _make_client(ctx).get_api_key(api_key_id)
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(result)
        return
    out.print_summary("API key", _api_key_rows(ApiKeyInfo.from_dict(result or {})))


@apikey.command("revoke")
@click.argument("api_key_id")
@click.option("--force", "-f", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def apikey_revoke(ctx: Any, api_key_id: str, force: bool) -> None:
    """Revoke API key API_KEY_ID."""
    out: OutputFormatter = ctx.obj["out"]
    if not force and not click.confirm(
        f"Are you sure you want to revoke API key '{api_key_id}'?", default=False
    ):
        out.warning("Revoke cancelled.")
        return

    try:
        _make_client(ctx).revoke_api_key(api_key_id)
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json({"revoked": api_key_id})
    else:
        out.success(f"API key '{api_key_id}' revoked successfully.")


# =========================
# batch
# =========================


@main.group()
def batch() -> None:
    """Inspect batch jobs."""


@batch.command("status")
@click.argument("batch_id")
@click.pass_context
def batch_status(ctx: Any, batch_id: str) -> None:
    """Show status and progress of batch job BATCH_ID."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        result = _make_client(ctx).get_batch_status(batch_id)
    except CloudStoreError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(result)
        return
    status = result or {}
    out.print_summary(
        f"Batch {batch_id}",
        [
            ("Status", status.get("status", "-")),
            ("Job type", status.get("jobType", "-")),
            ("Progress", f"{status.get('progress', 0)}%"),
            ("Processed", f"{status.get('processedItems', 0)}/{status.get('totalItems', 0)}"),
            ("Failed", status.get("failedItems", 0)),
            ("Created at", format_timestamp(status.get("createdAt"))),
            ("Completed at", format_timestamp(status.get("completedAt"))),
        ],
    )
    if status.get("errorMessage"):
        out.warning(f"Error: {status['errorMessage']}")


if __name__ == "__main__":
    main()
