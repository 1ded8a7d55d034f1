"""CLI entry point for api-mock-studio."""

import logging
import time
from pathlib import Path

import click

from api_mock_studio import config
from api_mock_studio.collection.base import Collection
from api_mock_studio.collection.detect import detect_format
from api_mock_studio.collection.loader import CollectionLoadError, dump_collections, load_collections
from api_mock_studio.export.openapi import export_to_openapi
from api_mock_studio.mock.controller import MockServerController


def _load(doc_path: Path, fmt: str = "auto") -> list[Collection]:
    if fmt == "auto":
        fmt = detect_format(doc_path)
    click.echo(f"Loading {doc_path} (format: {fmt})...")
    try:
        return load_collections(doc_path, fmt)
    except CollectionLoadError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option("--log-level", default=config.LOG_LEVEL, envvar="API_MOCK_STUDIO_LOG_LEVEL",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False), help="Logging level.")
def main(log_level: str):
    """API Mock Studio: export collections to OpenAPI and serve them as mocks."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command(name="import")
@click.argument("doc_path", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output path for the collection JSON.")
@click.option("--format", "fmt", default="auto", type=click.Choice(["auto", "openapi", "postman"]), help="Source format.")
def import_cmd(doc_path: Path, output: Path, fmt: str):
    """Convert an OpenAPI or Postman document into a collection file."""
    collections = _load(doc_path, fmt)
    endpoint_count = sum(len(list(c.all_endpoints())) for c in collections)
    click.echo(f"Found {endpoint_count} endpoints.")

    dump_collections(collections, output)
    click.echo(f"Collection saved to {output}")


@main.command()
@click.argument("collection_path", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output file for the OpenAPI document.")
@click.option("--format", "fmt", default=None, type=click.Choice(["json", "yaml"]), help="Output format (default: from file extension).")
@click.option("--collection-id", default=None, help="Collection to export when the file holds several.")
def export(collection_path: Path, output: Path, fmt: str | None, collection_id: str | None):
    """Export a collection as an OpenAPI 3.0 document."""
    collections = _load(collection_path)
    if collection_id is not None:
        collections = [c for c in collections if c.id == collection_id]
        if not collections:
            raise click.ClickException(f"No collection with id {collection_id!r}")
    if len(collections) > 1:
        raise click.ClickException("File holds several collections; choose one with --collection-id")

    if fmt is None:
        fmt = "yaml" if output.suffix in (".yaml", ".yml") else "json"

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(export_to_openapi(collections[0], fmt), encoding="utf-8")
    click.echo(f"OpenAPI document saved to {output}")


@main.command()
@click.argument("collection_paths", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option("--port", default=None, type=int, help="Port to listen on (persisted).")
@click.option("--host", default=config.HOST, envvar="API_MOCK_STUDIO_HOST", help="Interface to bind.")
@click.option("--settings", "settings_path", default=config.SETTINGS_FILE, type=click.Path(path_type=Path),
              help="Settings file.")
@click.option("--enable-all", is_flag=True, help="Enable every loaded collection before starting.")
def serve(collection_paths: tuple[Path, ...], port: int | None, host: str, settings_path: Path, enable_all: bool):
    """Serve collections as a mock HTTP server until interrupted."""
    collections: list[Collection] = []
    for path in collection_paths:
        collections.extend(_load(path))

    controller = MockServerController.from_settings_file(collections, settings_path, host=host)

    if port is not None:
        result = controller.handle_update_port(port)
        if not result.success:
            raise click.ClickException(result.message)

    if enable_all:
        enabled = set(controller.get_settings().enabled_collections)
        for c in collections:
            if c.id not in enabled:
                result = controller.handle_toggle_collection(c.id)
                if not result.success:
                    raise click.ClickException(result.message)

    result = controller.handle_start()
    if not result.success:
        raise click.ClickException(result.message)
    click.echo(f"{result.message}. Press Ctrl+C to stop.")

    try:
        while controller.get_status()["running"]:
            time.sleep(0.5)
    except KeyboardInterrupt:
        pass
    finally:
        click.echo("Stopping...")
        controller.handle_stop()
