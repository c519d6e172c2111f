from datetime import datetime, timezone
from pathlib import Path

import click
import yaml

from catalog_cd.errors import RateLimitError
from catalog_cd.models.external import (
    DEFAULT_CATALOG_NAME,
    DEFAULT_RESOURCES_TARBALL_NAME,
    ExternalSpec,
)
from catalog_cd.services.config_loader import build_repository_spec, load_external_spec
from catalog_cd.services.fetcher import DEFAULT_MAX_WORKERS, fetch_from_externals
from catalog_cd.services.fs_generator import generate_filesystem
from catalog_cd.services.github_client import DEFAULT_TIMEOUT, RepositoryClient, create_http_client
from catalog_cd.services.validator import validate_index
from catalog_cd.utils.logger import setup_logging


class AliasedGroup(click.Group):
    _aliases = {"gen": "generate", "from": "generate-from", "v": "validate"}

    def get_command(self, ctx, cmd_name):
        return super().get_command(ctx, self._aliases.get(cmd_name, cmd_name))


@click.group(cls=AliasedGroup)
@click.option("--log-level", default="WARNING", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Logging level")
@click.option("--log-file", default=None, type=click.Path(dir_okay=False), help="Also write logs to this file")
def cli(log_level, log_file):
    """Build partial file-based catalogs from external repository releases."""
    setup_logging(log_level, log_file)


def _fetch_options(func):
    func = click.option("--timeout", default=DEFAULT_TIMEOUT, show_default=True, type=float,
                        help="Per-request timeout in seconds")(func)
    func = click.option("--workers", default=DEFAULT_MAX_WORKERS, show_default=True,
                        type=click.IntRange(min=1), help="Repositories fetched in parallel")(func)
    return func


@cli.command("generate-from")
@click.option("--name", default="", help="Name of the repository to pull")
@click.option("--url", required=True, help="URL of the repository to pull")
@click.option("--type", "resource_type", required=True, help="Type of resource to pull")
@click.option("--ignore-versions", default="", help="Comma-separated versions to ignore while pulling")
@click.option("--catalog-name", default=DEFAULT_CATALOG_NAME, show_default=True, help="Contract name to pull")
@click.option("--resource-tarball-name", default=DEFAULT_RESOURCES_TARBALL_NAME, show_default=True,
              help="Resource file to pull")
@_fetch_options
@click.argument("target", type=click.Path(file_okay=False, path_type=Path))
def generate_from(name, url, resource_type, ignore_versions, catalog_name, resource_tarball_name,
                  timeout, workers, target):
    """Generate a partial file-based catalog in TARGET from one repository.

    \b
      $ catalog-cd generate-from \\
          --name=foo --url=https://github.com/openshift-pipelines/task-containers \\
          --type=tasks /path/to/catalog/target
    """
    try:
        repo = build_repository_spec(
            name=name,
            url=url,
            type=resource_type,
            ignoreVersions=ignore_versions,
            catalogName=catalog_name,
            resourcesTarballName=resource_tarball_name,
        )
        click.echo(f"Generating a partial catalog from {url} (type: {resource_type})")
        _run(ExternalSpec(repositories=[repo]), resource_type, target, timeout, workers)

    except click.ClickException:
        raise
    except RateLimitError as e:
        raise click.ClickException(_rate_limit_message(e))
    except Exception as e:
        raise click.ClickException(str(e))


@cli.command()
@click.option("--config", "-c", required=True, type=click.Path(exists=True, path_type=Path),
              help="Path to YAML external repositories config")
@click.option("--type", "resource_type", required=True, help="Type of resource to generate")
@_fetch_options
@click.argument("target", type=click.Path(file_okay=False, path_type=Path))
def generate(config, resource_type, timeout, workers, target):
    """Generate a partial file-based catalog in TARGET from an externals config."""
    try:
        external = load_external_spec(config)
        if not external.repositories:
            click.echo("No repositories found in config.")
            return
        click.echo(f"Generating a partial catalog from {len(external.repositories)} repositories "
                   f"(type: {resource_type})")
        _run(external, resource_type, target, timeout, workers)

    except click.ClickException:
        raise
    except RateLimitError as e:
        raise click.ClickException(_rate_limit_message(e))
    except Exception as e:
        raise click.ClickException(str(e))


@cli.command("validate")
@click.option("--input", "-i", "input_file", required=True, type=click.Path(exists=True, path_type=Path),
              help="Catalog index file to validate")
def validate(input_file):
    """Validate a catalog index.yaml against the JSON Schema."""
    try:
        data = yaml.safe_load(Path(input_file).read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise click.ClickException(f"Invalid YAML in {input_file}: {e}")

    errors = validate_index(data)
    if errors:
        click.echo(f"Validation FAILED: {input_file}", err=True)
        for error in errors:
            click.echo(f"  - {error}", err=True)
        raise click.ClickException("Index does not conform to JSON Schema")

    click.echo(f"Index is valid: {input_file}")


def _run(external: ExternalSpec, resource_type: str, target: Path, timeout: float, workers: int):
    with create_http_client(timeout=timeout) as http:
        catalog = fetch_from_externals(
            external,
            RepositoryClient(http),
            resource_type=resource_type,
            max_workers=workers,
        )
    rows = generate_filesystem(target, catalog, resource_type)
    click.echo(f"Catalog written to {target} ({len(rows)} {resource_type})")


def _rate_limit_message(error: RateLimitError) -> str:
    message = str(error)
    if error.reset_at:
        reset = datetime.fromtimestamp(error.reset_at, tz=timezone.utc)
        message += f"; limit resets at {reset:%Y-%m-%dT%H:%M:%SZ}, re-run after that"
    return message
