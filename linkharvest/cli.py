"""CLI entry-points for the link harvester."""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .ato_link import AtoDecodeError, AtoLinkState
from .harvester import LinkHarvester, MissingInputError
from .links import LinkKind, classify_link, count_kinds
from .profiles import ATO_PROFILE, PROFILES, TIO_PROFILE, ConfigError, HarvestProfile, TimemapConfig
from .timemap import TimemapError
from .tio_link import TioDecodeError, TioLinkState, is_v2_link

logger = logging.getLogger("linkharvest.cli")

console = Console(stderr=True)

EXIT_MISSING_INPUT = 1
EXIT_PIPELINE_FAILURE = 2


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )
    # Suppress noisy libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def _print_counts(title: str, counts: dict) -> None:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="bold")
    table.add_column("Count", justify="right")
    for key, val in counts.items():
        table.add_row(key, str(val))
    console.print(table)


def _run_profile(profile: HarvestProfile, cfg: TimemapConfig, base_dir: Path) -> None:
    """Run one harvest and exit with the documented status on failure."""
    try:
        with LinkHarvester(profile, config=cfg, base_dir=base_dir) as h:
            result = h.run()
    except MissingInputError as exc:
        click.echo(str(exc), err=True)
        sys.exit(EXIT_MISSING_INPUT)
    except TimemapError as exc:
        logger.error("Timemap request failed: %s", exc)
        sys.exit(EXIT_PIPELINE_FAILURE)
    except OSError as exc:
        logger.error("I/O error: %s", exc)
        sys.exit(EXIT_PIPELINE_FAILURE)
    console.print(f"[green]✓[/green] Wrote {len(result.links)} links to {result.output_path}")
    _print_counts("Harvest Summary", result.stats)
    _print_counts("Links by Kind", result.kinds)


@click.group()
@click.option("--timemap-url", envvar="LINKHARVEST_TIMEMAP_URL", default=TimemapConfig.base_url,
              show_default=True, help="Wayback timemap endpoint")
@click.option("--timeout", envvar="LINKHARVEST_TIMEOUT", default=TimemapConfig.timeout,
              type=click.FloatRange(min=0, min_open=True),
              show_default=True, help="Request timeout in seconds")
@click.option("--limit", envvar="LINKHARVEST_LIMIT", default=TimemapConfig.limit, type=click.IntRange(min=1),
              show_default=True, help="Maximum captures per timemap prefix")
@click.option("--user-agent", envvar="LINKHARVEST_USER_AGENT", default=TimemapConfig.user_agent,
              show_default=True, help="User-Agent header for timemap requests")
@click.option("-C", "--directory", default=".", type=click.Path(file_okay=False, path_type=Path),
              help="Directory holding the input and output files")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, timemap_url: str, timeout: float, limit: int, user_agent: str,
        directory: Path, verbose: bool) -> None:
    """Link harvester - collect Attempt This Online and Try It Online links.

    Reads links from a Stack Exchange Data Explorer export and from the
    Wayback Machine timemap index, and writes them sorted and deduplicated.
    """
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["cfg"] = TimemapConfig(
        base_url=timemap_url,
        timeout=timeout,
        limit=limit,
        user_agent=user_agent,
    )
    ctx.obj["directory"] = directory


# ─── Commands ────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def ato(ctx: click.Context) -> None:
    """Harvest Attempt This Online run links into ato_links.txt."""
    _run_profile(ATO_PROFILE, ctx.obj["cfg"], ctx.obj["directory"])


@cli.command()
@click.pass_context
def tio(ctx: click.Context) -> None:
    """Harvest Try It Online links into tio_links.txt."""
    _run_profile(TIO_PROFILE, ctx.obj["cfg"], ctx.obj["directory"])


@cli.command(name="profiles")
def list_profiles() -> None:
    """List the available harvest profiles."""
    table = Table(title="Harvest Profiles", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="bold")
    table.add_column("Input")
    table.add_column("Timemap prefixes")
    table.add_column("Output")
    for p in PROFILES.values():
        table.add_row(p.name, p.input_file, ", ".join(p.timemap_prefixes), p.output_file)
    console.print(table)


@cli.command()
@click.argument("links_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def classify(links_file: Path) -> None:
    """Count the links in LINKS_FILE by code runner.

    Example: linkharvest classify tio_links.txt
    """
    with open(links_file, encoding="utf-8") as f:
        counts = count_kinds(line.rstrip("\n") for line in f if line.strip())
    _print_counts(f"{links_file.name} by Kind", counts)


def _decode_link(url: str) -> bool:
    """Decode one link; False when its format has no decoder."""
    kind = classify_link(url)
    if kind is LinkKind.ATO:
        AtoLinkState.decode(url)
        return True
    if kind in (LinkKind.TIO, LinkKind.TIO_NEXUS, LinkKind.TRY_IT_ONLINE):
        if is_v2_link(url):
            return False
        TioLinkState.decode_v1(url)
        return True
    return False


@cli.command()
@click.argument("links_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--strict", is_flag=True, help="Exit 1 if any link fails to decode")
def verify(links_file: Path, strict: bool) -> None:
    """Decode the program state carried by each link in LINKS_FILE.

    ATO links and TIO v1 links are decoded; compressed TIO v2 links and
    unrecognised URLs are counted as skipped.
    """
    counts = {"decoded": 0, "skipped": 0, "failed": 0}
    with open(links_file, encoding="utf-8") as f:
        for line in f:
            url = line.rstrip("\n")
            if not url.strip():
                continue
            try:
                decoded = _decode_link(url)
            except (AtoDecodeError, TioDecodeError) as exc:
                logger.warning("Cannot decode %s: %s", url, exc)
                counts["failed"] += 1
                continue
            counts["decoded" if decoded else "skipped"] += 1
    _print_counts(f"{links_file.name} Decoding", counts)
    if strict and counts["failed"]:
        sys.exit(1)


# ─── Standalone scripts (no arguments) ───────────────────────────


def _standalone(profile: HarvestProfile) -> click.Command:
    @click.command(name=f"get-{profile.name}-links", help=f"Harvest {profile.name} links into {profile.output_file}.")
    def command() -> None:
        _setup_logging(False)
        try:
            cfg = TimemapConfig.from_env()
        except ConfigError as exc:
            raise click.UsageError(str(exc)) from exc
        _run_profile(profile, cfg, Path.cwd())
    return command


get_ato_links = _standalone(ATO_PROFILE)
get_tio_links = _standalone(TIO_PROFILE)


def main(argv: Optional[list] = None) -> None:
    cli(argv)


if __name__ == "__main__":
    main()
