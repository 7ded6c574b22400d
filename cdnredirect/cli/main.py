"""CLI commands for inspecting IP ranges and redirect decisions."""

import logging
from pathlib import Path
from typing import Any

import click

from cdnredirect.config.loader import load_middleware_options
from cdnredirect.config.policies import IPFilter
from cdnredirect.errors import ConfigError, RangeSourceError, SigningError
from cdnredirect.ipranges.constants import DEFAULT_IP_RANGES_URL
from cdnredirect.ipranges.rangeset import RangeSet
from cdnredirect.ipranges.source import RangeSource
from cdnredirect.middleware.cloudfront import new_cloudfront_middleware
from cdnredirect.middleware.driver import ClientRequest
from cdnredirect.observability.logging import configure_logging
from cdnredirect.settings import get_settings


class StaticKeyDriver:
    """Stand-in storage driver whose edge keys are a fixed prefix plus the path."""

    def __init__(self, bucket_prefix: str = "") -> None:
        """Initialize the driver.

        Args:
            bucket_prefix: Prefix prepended to every content path.
        """
        self._bucket_prefix = bucket_prefix.strip("/")

    def redirect_url(self, request: ClientRequest, path: str) -> str | None:  # noqa: ARG002
        """The stand-in driver has no origin redirect of its own."""
        return None

    def edge_key(self, path: str) -> str:
        """Join the bucket prefix and the content path."""
        key = path.lstrip("/")
        if self._bucket_prefix:
            return f"{self._bucket_prefix}/{key}"
        return key


def _summarize(range_set: RangeSet) -> dict[str, int]:
    """Count ranges per region.

    Args:
        range_set: Snapshot to summarize.

    Returns:
        Mapping of region label to range count.
    """
    counts: dict[str, int] = {}
    for network_range in range_set.ranges:
        region = network_range.region or "-"
        counts[region] = counts.get(region, 0) + 1
    return counts


@click.group()
@click.option(
    "--json-logs/--console-logs",
    default=None,
    help="Log format (defaults to CDNREDIRECT_JSON_LOGS).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, json_logs: bool | None, verbose: bool) -> None:
    """Inspect CloudFront redirect middleware behavior."""
    settings = get_settings()
    level = logging.DEBUG if verbose else settings.log_level_number
    configure_logging(
        level=level,
        json_format=settings.json_logs if json_logs is None else json_logs,
    )
    ctx.ensure_object(dict)


@main.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML file with middleware options (iprangesurl, awsregion).",
)
@click.option("--url", default=None, help="Range document URL override.")
@click.option("--region", "regions", multiple=True, help="Region to keep.")
@click.option("--address", "addresses", multiple=True, help="Address to test.")
def ranges(
    config_path: Path | None,
    url: str | None,
    regions: tuple[str, ...],
    addresses: tuple[str, ...],
) -> None:
    """Fetch the range document once and report what it contains."""
    options: dict[str, Any] = {}
    try:
        if config_path is not None:
            options = load_middleware_options(config_path)

        document_url = url or str(options.get("iprangesurl") or DEFAULT_IP_RANGES_URL)
        selected = list(regions)
        filtered_by = str(options.get("ipfilteredby") or "").strip().lower()
        if (
            not selected
            and filtered_by == IPFilter.AWS_REGION.value
            and isinstance(options.get("awsregion"), str)
        ):
            selected = options["awsregion"].split(",")

        range_set = RangeSource().fetch(document_url, selected)
    except (ConfigError, RangeSourceError) as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"ipv4 ranges: {len(range_set.ipv4_ranges)}")
    click.echo(f"ipv6 ranges: {len(range_set.ipv6_ranges)}")
    for region, count in sorted(_summarize(range_set).items()):
        click.echo(f"  {region}: {count}")
    for address in addresses:
        verdict = "inside" if range_set.contains(address) else "outside"
        click.echo(f"{address}: {verdict}")


@main.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="YAML file with middleware options.",
)
@click.option("--address", required=True, help="Originating client address.")
@click.option("--path", "content_path", required=True, help="Content path.")
@click.option("--bucket-prefix", default="", help="Object key prefix in the bucket.")
def resolve(
    config_path: Path,
    address: str,
    content_path: str,
    bucket_prefix: str,
) -> None:
    """Run one redirect decision and print the outcome."""
    try:
        options = load_middleware_options(config_path)
        middleware = new_cloudfront_middleware(StaticKeyDriver(bucket_prefix), options)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    try:
        url = middleware.redirect_url(ClientRequest(remote_addr=address), content_path)
    except SigningError as e:
        raise click.ClickException(str(e)) from e
    finally:
        middleware.close()

    click.echo(url or "origin")


if __name__ == "__main__":
    main()
