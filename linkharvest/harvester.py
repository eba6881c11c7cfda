"""
Link harvester: input file + Wayback timemap -> sorted, deduplicated link list.

One run of a HarvestProfile checks that its input file is present,
extracts links from it, lists archived captures under each timemap
prefix, canonicalizes everything, and replaces the output file with the
sorted unique result.
"""

import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from itertools import chain
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Union

from .links import apply_rewrites, count_kinds, extract_links_from_file, sort_unique
from .profiles import HarvestProfile, TimemapConfig
from .timemap import TimemapClient

logger = logging.getLogger("linkharvest.harvester")

_LINE_BREAK = re.compile(r"[\r\n]+")


class HarvestError(Exception):
    """Base class for harvest failures."""


class MissingInputError(HarvestError):
    """Raised when the profile's input file has not been downloaded yet."""

    def __init__(self, path: Path, message: str):
        super().__init__(message)
        self.path = path


@dataclass
class HarvestResult:
    """Outcome of a completed run."""
    links: List[str]
    output_path: Path
    stats: Dict[str, int] = field(default_factory=dict)
    kinds: Dict[str, int] = field(default_factory=dict)


def write_links(path: Union[str, Path], links: Iterable[str]) -> None:
    """
    Replace `path` with one link per line.

    The file is written next to its destination and renamed into place,
    so readers never see a partial list and a failed write leaves the
    previous file untouched.
    """
    path = Path(path)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            for link in links:
                f.write(link)
                f.write("\n")
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise


class LinkHarvester:
    """Runs one HarvestProfile against a working directory."""

    def __init__(
        self,
        profile: HarvestProfile,
        config: Optional[TimemapConfig] = None,
        client: Optional[TimemapClient] = None,
        base_dir: Optional[Union[str, Path]] = None,
    ):
        """
        Args:
            profile: What to harvest and where to write it
            config: Timemap settings, read from the environment when omitted
            client: Timemap client to use; one is created (and closed) otherwise
            base_dir: Directory holding the input and output files (default: cwd)
        """
        self.profile = profile
        self.config = config or TimemapConfig.from_env()
        self._owns_client = client is None
        self.client = client or TimemapClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            user_agent=self.config.user_agent,
        )
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        self.stats = {"local": 0, "remote": 0, "rewritten": 0, "unique": 0}

    @property
    def input_path(self) -> Path:
        return self.base_dir / self.profile.input_file

    @property
    def output_path(self) -> Path:
        return self.base_dir / self.profile.output_file

    def check_input(self) -> Path:
        path = self.input_path
        if not path.is_file():
            raise MissingInputError(path, self.profile.missing_input_message)
        return path

    def local_links(self, path: Path) -> Iterator[str]:
        """Links found in the input file, with the profile's input rewrites applied."""
        links = extract_links_from_file(path, self.profile.link_pattern)
        for link in apply_rewrites(links, self.profile.input_rewrites):
            self.stats["local"] += 1
            yield link

    def remote_links(self) -> Iterator[str]:
        """Archived URLs under every timemap prefix, one request per prefix."""
        for prefix in self.profile.timemap_prefixes:
            for original in self.client.original_urls(prefix, limit=self.config.limit):
                links = [part for part in _LINE_BREAK.split(original) if part]
                if len(links) != 1 or links[0] != original:
                    # The output holds one link per line
                    logger.warning("Splitting archived URL with line breaks: %r", original)
                for link in links:
                    self.stats["remote"] += 1
                    yield link

    def _canonicalize(self, links: Iterable[str]) -> Iterator[str]:
        rewrites = self.profile.output_rewrites
        for link in links:
            canonical = link
            for rewrite in rewrites:
                canonical = rewrite.apply(canonical)
            if canonical != link:
                self.stats["rewritten"] += 1
            yield canonical

    def collect(self) -> List[str]:
        """
        Gather, canonicalize, sort and deduplicate links from both sources.

        Raises:
            MissingInputError: The input file is absent; nothing is fetched
            TimemapError: A timemap request or its decoding failed
            OSError: The input file could not be read
        """
        path = self.check_input()
        logger.info("Extracting %s links from %s", self.profile.name, path)
        merged = chain(self.local_links(path), self.remote_links())
        links = sort_unique(self._canonicalize(merged))
        self.stats["unique"] = len(links)
        logger.info(
            "Collected %d links (%d from file, %d archived, %d rewritten)",
            len(links), self.stats["local"], self.stats["remote"], self.stats["rewritten"],
        )
        return links

    def run(self) -> HarvestResult:
        """Collect links and replace the output file with them."""
        links = self.collect()
        write_links(self.output_path, links)
        logger.info("Wrote %d links to %s", len(links), self.output_path)
        return HarvestResult(
            links=links,
            output_path=self.output_path,
            stats=dict(self.stats),
            kinds=count_kinds(links),
        )

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> "LinkHarvester":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
