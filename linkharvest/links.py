"""
Link extraction, canonicalization and classification.

Pure helpers used by the harvester: pulling link substrings out of text,
rewriting alternate link spellings into their preferred form, and
ordering the final list.
"""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, List, Pattern, Sequence, Union
from urllib.parse import urlsplit

ATO_HOST = "ato.pxeger.com"
TIO_HOST = "tio.run"
TRY_IT_ONLINE_HOST = "tryitonline.net"


class LinkKind(Enum):
    """Code runner a share link belongs to."""
    ATO = "ato"                    # https://ato.pxeger.com/run?...
    TIO = "tio"                    # https://tio.run/##...
    TIO_NEXUS = "tio-nexus"        # https://tio.run/nexus/<language>#...
    TRY_IT_ONLINE = "tryitonline"  # http://<language>.tryitonline.net/#...
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Rewrite:
    """Literal replacement of the first occurrence of `old` with `new`."""
    old: str
    new: str

    def matches(self, url: str) -> bool:
        return self.old in url

    def apply(self, url: str) -> str:
        return url.replace(self.old, self.new, 1)


def _compile(pattern: Union[str, Pattern[str]]) -> Pattern[str]:
    if isinstance(pattern, str):
        return re.compile(pattern)
    return pattern


def extract_links(lines: Iterable[str], pattern: Union[str, Pattern[str]]) -> Iterator[str]:
    """
    Yield every match of `pattern` in `lines`, in order of occurrence.

    Each line is scanned on its own, so a match never spans a line break.
    Several links on one line are yielded left to right.

    Args:
        lines: Text lines (trailing newlines are ignored)
        pattern: Regular expression for a single link

    Yields:
        The full text of each match
    """
    regex = _compile(pattern)
    for line in lines:
        for match in regex.finditer(line.rstrip("\r\n")):
            yield match.group(0)


def extract_links_from_file(path: Union[str, Path], pattern: Union[str, Pattern[str]]) -> Iterator[str]:
    """Yield every link matching `pattern` in the text file at `path`."""
    with open(path, encoding="utf-8", errors="replace", newline="") as f:
        yield from extract_links(f, pattern)


def apply_rewrites(urls: Iterable[str], rewrites: Sequence[Rewrite]) -> Iterator[str]:
    """Apply each rewrite, in order, to every URL."""
    for url in urls:
        for rewrite in rewrites:
            url = rewrite.apply(url)
        yield url


def sort_unique(urls: Iterable[str]) -> List[str]:
    """Return the URLs sorted by code point with duplicates removed."""
    return sorted(set(urls))


def classify_link(url: str) -> LinkKind:
    """
    Tell which code runner a share link points at.

    Args:
        url: A harvested link, e.g. "https://tio.run/nexus/retina#code=..."

    Returns:
        The LinkKind, or LinkKind.UNKNOWN for anything unrecognised

    Example:
        >>> classify_link("http://05ab1e.tryitonline.net/#code=OUxK&input=")
        <LinkKind.TRY_IT_ONLINE: 'tryitonline'>
    """
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return LinkKind.UNKNOWN
    if parts.scheme not in ("http", "https"):
        return LinkKind.UNKNOWN

    host = (parts.hostname or "").lower()
    if host == TIO_HOST:
        if parts.path.startswith("/nexus/"):
            return LinkKind.TIO_NEXUS
        return LinkKind.TIO
    if host == TRY_IT_ONLINE_HOST or host.endswith("." + TRY_IT_ONLINE_HOST):
        return LinkKind.TRY_IT_ONLINE
    if host == ATO_HOST and parts.path.startswith("/run"):
        return LinkKind.ATO
    return LinkKind.UNKNOWN


def count_kinds(urls: Iterable[str]) -> dict:
    """Count links per LinkKind value, in LinkKind declaration order."""
    counts = {kind.value: 0 for kind in LinkKind}
    for url in urls:
        counts[classify_link(url).value] += 1
    return counts
