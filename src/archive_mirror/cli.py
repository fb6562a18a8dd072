"""CLI interface for archive-mirror."""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Tuple

import click
from tqdm import tqdm

from . import config
from .client import ArchiveClient
from .errors import ArchiveError
from .index import IndexCache
from .models import Attachment, Catalog, PostDetail, PostSummary
from .saver import AttachmentSaver
from .search import search_posts
from .utils import format_timestamp


def _open_client(server_id: Optional[str]) -> ArchiveClient:
    try:
        server = config.get_server(server_id) if server_id else config.default_server()
    except KeyError as e:
        raise click.BadParameter(str(e.args[0]), param_hint="--server")
    return ArchiveClient(server)


def _run(coro):
    """Run a coroutine, turning library errors into clean CLI failures."""
    try:
        return asyncio.run(coro)
    except ArchiveError as e:
        raise click.ClickException(e.user_message) from e


def _find_post(catalog: Catalog, key: str) -> PostSummary:
    post = catalog.find_post(key)
    if post is None:
        raise click.ClickException(f"No post with id or code {key!r}")
    return post


def _format_post(post: PostSummary) -> str:
    tags = ", ".join(post.tags)
    line = f"{post.code or '-':<10} {post.title}  [{post.channel_name or post.channel_path}]"
    if tags:
        line += f"  ({tags})"
    return f"{line}  {format_timestamp(post.archived_at)}"


server_option = click.option(
    "--server",
    envvar="ARCHIVE_MIRROR_SERVER",
    default=None,
    help="Remote source id (see `servers`)",
)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose):
    """archive-mirror - browse and download from file-based design archives."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
def servers():
    """List the known remote sources."""
    default_id = config.default_server().id
    for server in config.SERVERS:
        marker = "*" if server.id == default_id else " "
        click.echo(f"{marker} {server.id:<10} {server.name:<20} {server.description}")


@main.command()
@server_option
def channels(server):
    """List the channels of a source with their post counts."""
    _run(_channels(server))


async def _channels(server_id: Optional[str]):
    async with _open_client(server_id) as client:
        catalog = await IndexCache(client).ensure()
    for channel in catalog.channels:
        click.echo(
            f"{channel.code or '-':<8} {channel.name or channel.path:<30} "
            f"{channel.category or '':<20} {channel.entry_count:>5}"
        )
    click.echo(f"{len(catalog.posts)} posts in {len(catalog.channels)} channels")


@main.command()
@click.argument("query", required=False, default="")
@server_option
@click.option("--sort", type=click.Choice(config.SORT_OPTIONS), default=config.DEFAULT_SORT,
              help="Sort order")
@click.option("--tag", default=None, help="Only posts with a tag containing this text")
@click.option("--include", "include_tags", multiple=True, help="Required tag (repeatable)")
@click.option("--exclude", "exclude_tags", multiple=True, help="Forbidden tag (repeatable)")
@click.option("--channel", "channel_paths", multiple=True, help="Channel path (repeatable)")
@click.option("--page", default=1, type=int, help="Page number")
@click.option("--per-page", default=config.DEFAULT_PAGE_SIZE, type=int, help="Results per page")
def search(query, server, sort, tag, include_tags, exclude_tags, channel_paths, page, per_page):
    """Search posts by name or code."""
    _run(_search(server, query, sort, tag, include_tags, exclude_tags, channel_paths, page, per_page))


async def _search(
    server_id: Optional[str],
    query: str,
    sort: str,
    tag: Optional[str],
    include_tags: Tuple[str, ...],
    exclude_tags: Tuple[str, ...],
    channel_paths: Tuple[str, ...],
    page: int,
    per_page: int,
):
    async with _open_client(server_id) as client:
        catalog = await IndexCache(client).ensure()
    result = search_posts(
        catalog,
        query=query,
        sort=sort,
        include_tags=include_tags,
        exclude_tags=exclude_tags,
        channel_paths=channel_paths,
        page=page,
        page_size=per_page,
        tag=tag,
    )
    for post in result.items:
        click.echo(_format_post(post))
    click.echo(f"Page {page}/{result.total_pages} - {result.total_items} matching posts")


def _print_detail(detail: PostDetail) -> None:
    summary = detail.summary
    click.echo(f"{summary.code or '-'}  {summary.title}")
    click.echo(f"Channel: {summary.channel_name or summary.channel_path}")
    if detail.authors:
        click.echo(f"Authors: {', '.join(detail.authors)}")
    if summary.tags:
        click.echo(f"Tags: {', '.join(summary.tags)}")
    click.echo(
        f"Archived: {format_timestamp(detail.archived_at)}  "
        f"Updated: {format_timestamp(detail.updated_at)}"
    )

    for section in detail.record_sections:
        click.echo("")
        if section.title:
            click.echo("#" * max(section.depth, 1) + " " + section.title)
        for line in section.lines:
            click.echo(line)

    if detail.images:
        click.echo("")
        click.echo("Images:")
        for image in detail.images:
            caption = f" - {image.description}" if image.description else ""
            click.echo(f"  {image.url}{caption}")

    if detail.attachments:
        click.echo("")
        click.echo("Attachments:")
        for number, attachment in enumerate(detail.attachments, start=1):
            kind = "world" if attachment.is_world else ("file" if attachment.is_downloadable else "link")
            size = f" {attachment.size_text}" if attachment.size_text else ""
            click.echo(f"  {number}. [{kind}] {attachment.name}{size}")


@main.command()
@click.argument("post_key")
@server_option
def show(post_key, server):
    """Show one post (by id or code) with its records and attachments."""
    _run(_show(server, post_key))


async def _show(server_id: Optional[str], post_key: str):
    async with _open_client(server_id) as client:
        cache = IndexCache(client)
        catalog = await cache.ensure()
        detail = await cache.fetch_post_detail(_find_post(catalog, post_key))
    _print_detail(detail)


def _choose_attachment(detail: PostDetail, name: Optional[str], index: Optional[int]) -> Attachment:
    if index is not None:
        if not 1 <= index <= len(detail.attachments):
            raise click.ClickException(f"Post has {len(detail.attachments)} attachments, not {index}")
        return detail.attachments[index - 1]
    if name:
        for attachment in detail.attachments:
            if attachment.name.lower() == name.lower():
                return attachment
        raise click.ClickException(f"No attachment named {name!r}")
    downloadable = detail.downloadable_attachments
    if not downloadable:
        raise click.ClickException("Post has no downloadable attachments")
    return downloadable[0]


@main.command()
@click.argument("post_key")
@server_option
@click.option("--attachment", "attachment_name", default=None, help="Attachment file name")
@click.option("--index", "attachment_index", default=None, type=int, help="Attachment number from `show`")
@click.option("--output", "output_dir", envvar="ARCHIVE_MIRROR_OUTPUT", default="downloads",
              type=click.Path(file_okay=False), help="Download folder")
@click.option("--worlds-dir", envvar="ARCHIVE_MIRROR_WORLDS", default=None,
              type=click.Path(file_okay=False), help="Folder for extracted worlds (default: --output)")
def download(post_key, server, attachment_name, attachment_index, output_dir, worlds_dir):
    """Download an attachment of a post; world archives are extracted."""
    _run(_download(server, post_key, attachment_name, attachment_index, output_dir, worlds_dir))


async def _download(
    server_id: Optional[str],
    post_key: str,
    attachment_name: Optional[str],
    attachment_index: Optional[int],
    output_dir: str,
    worlds_dir: Optional[str],
):
    async with _open_client(server_id) as client:
        cache = IndexCache(client)
        catalog = await cache.ensure()
        detail = await cache.fetch_post_detail(_find_post(catalog, post_key))
        attachment = _choose_attachment(detail, attachment_name, attachment_index)

        with AttachmentSaver(client, Path(output_dir), worlds_dir) as saver:
            with tqdm(desc=attachment.name, unit="B", unit_scale=True, leave=False) as pbar:
                def progress(advance: int, total: Optional[int]) -> None:
                    if total and pbar.total != total:
                        pbar.total = total
                        pbar.refresh()
                    pbar.update(advance)

                result = await saver.fetch_and_save(attachment, progress)

    if result.is_world_download:
        click.echo(f"Extracted world to {result.path}")
    else:
        click.echo(f"Saved to {result.path}")


if __name__ == "__main__":
    main()
