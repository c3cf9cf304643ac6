"""canoe CLI tool."""

import asyncio
import logging

import click
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from canoe.core.client import S3ClientManager
from canoe.core.exceptions import CanoeConfigurationError, CanoeError
from canoe.core.service import Canoe
from canoe.core.settings import CanoeSettings


def _settings(endpoint: str | None, **overrides) -> CanoeSettings:
    values = {key: value for key, value in overrides.items() if value is not None}
    if endpoint:
        values["aws_url"] = endpoint
    try:
        return CanoeSettings(**values)
    except ValidationError as e:
        raise CanoeConfigurationError(f"Invalid settings: {e}") from e


def _run(coro) -> None:
    """Run a coroutine, reporting S3 and canoe errors as CLI errors."""
    try:
        asyncio.run(coro)
    except (CanoeError, ClientError, BotoCoreError) as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log every S3 request")
def cli(verbose):
    """canoe CLI - Stream objects to and from S3."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if verbose:
        # botocore is very chatty at DEBUG
        logging.getLogger("botocore").setLevel(logging.INFO)
        logging.getLogger("aiobotocore").setLevel(logging.INFO)


@cli.command()
@click.argument("bucket")
@click.argument("key")
@click.argument("source", type=click.File("rb"), default="-")
@click.option("--part-size", type=int, help="Part size in bytes (minimum 5 MiB)")
@click.option("--content-type", help="Content-Type of the uploaded object")
@click.option("--endpoint", help="S3 endpoint URL (for LocalStack)")
def upload(bucket, key, source, part_size, content_type, endpoint):
    """Upload SOURCE (default: stdin) to s3://BUCKET/KEY."""

    async def _upload():
        settings = _settings(endpoint, s3_part_size=part_size)
        manager = S3ClientManager(settings)
        params = {"ContentType": content_type} if content_type else {}

        async with manager.get_async_client() as s3_client:
            canoe = Canoe(s3_client, settings)
            stream = canoe.create_write_stream(bucket, key, **params)
            try:
                written = await stream.write_from(source)
                await stream.close()
            except Exception:
                await stream.abort()
                raise

        click.echo(
            f"✅ Uploaded {written} bytes to s3://{bucket}/{key} "
            f"in {len(stream.parts)} part(s)",
            err=True,
        )

    _run(_upload())


@cli.command()
@click.argument("bucket")
@click.argument("prefix", default="")
@click.option("--endpoint", help="S3 endpoint URL (for LocalStack)")
def cat(bucket, prefix, endpoint):
    """Write every object under s3://BUCKET/PREFIX to stdout, in key order."""

    async def _cat():
        settings = _settings(endpoint)
        manager = S3ClientManager(settings)
        out = click.get_binary_stream("stdout")

        async with manager.get_async_client() as s3_client:
            canoe = Canoe(s3_client, settings)
            async with await canoe.create_prefixed_read_stream(bucket, prefix) as reader:
                async for chunk in reader:
                    out.write(chunk)
        out.flush()

    _run(_cat())


@cli.command()
@click.argument("bucket")
@click.argument("prefix", default="")
@click.option("--endpoint", help="S3 endpoint URL (for LocalStack)")
def ls(bucket, prefix, endpoint):
    """List the keys under s3://BUCKET/PREFIX."""

    async def _ls():
        settings = _settings(endpoint)
        manager = S3ClientManager(settings)

        async with manager.get_async_client() as s3_client:
            keys = await Canoe(s3_client, settings).list_keys(bucket, prefix)

        for key in keys:
            click.echo(key)

    _run(_ls())


@cli.command()
def version():
    """Show canoe version."""
    from canoe import __version__

    click.echo(f"canoe version: {__version__}")


if __name__ == "__main__":
    cli()
