"""Harvest profiles and runtime configuration."""

import os
from dataclasses import dataclass, field
from typing import Callable, Dict, Tuple, TypeVar

from .links import Rewrite
from .timemap.timemap_api import DEFAULT_BASE_URL, DEFAULT_LIMIT, DEFAULT_TIMEOUT, DEFAULT_USER_AGENT

T = TypeVar("T", int, float)


class ConfigError(ValueError):
    """Raised when an environment override is not usable."""

    def __init__(self, variable: str, message: str):
        super().__init__(message)
        self.variable = variable


def _env_number(name: str, convert: Callable[[str], T], default: T) -> T:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = convert(raw)
    except ValueError:
        raise ConfigError(name, f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(name, f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class TimemapConfig:
    """Timemap endpoint settings."""
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    limit: int = DEFAULT_LIMIT  # captures per prefix
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls) -> "TimemapConfig":
        """
        Read overrides from LINKHARVEST_* variables.

        Raises:
            ConfigError: A numeric variable does not parse or is not positive
        """
        return cls(
            base_url=os.getenv("LINKHARVEST_TIMEMAP_URL", DEFAULT_BASE_URL),
            timeout=_env_number("LINKHARVEST_TIMEOUT", float, DEFAULT_TIMEOUT),
            limit=_env_number("LINKHARVEST_LIMIT", int, DEFAULT_LIMIT),
            user_agent=os.getenv("LINKHARVEST_USER_AGENT", DEFAULT_USER_AGENT),
        )


@dataclass(frozen=True)
class HarvestProfile:
    """
    Everything one harvest needs to know about its sources.

    `input_rewrites` apply to links found in the input file only;
    `output_rewrites` apply to the merged list from both sources.
    """
    name: str
    input_file: str
    download_hint: str
    link_pattern: str
    timemap_prefixes: Tuple[str, ...]
    output_file: str
    input_rewrites: Tuple[Rewrite, ...] = field(default_factory=tuple)
    output_rewrites: Tuple[Rewrite, ...] = field(default_factory=tuple)

    @property
    def missing_input_message(self) -> str:
        return f"Download {self.input_file} from {self.download_hint}"


ATO_PROFILE = HarvestProfile(
    name="ato",
    input_file="QueryResults.csv",
    download_hint="https://data.stackexchange.com/codegolf/query/1722463",
    link_pattern=r'https://ato\.pxeger\.com/run[^"<)\s]+',
    timemap_prefixes=("ato.pxeger.com/run",),
    output_file="ato_links.txt",
    # Older posts dropped the `?` before the schema version
    output_rewrites=(Rewrite("https://ato.pxeger.com/run1", "https://ato.pxeger.com/run?1"),),
)

TIO_PROFILE = HarvestProfile(
    name="tio",
    input_file="QueryResults.csv",
    download_hint="https://data.stackexchange.com/codegolf/query/1766445",
    link_pattern=r'https?://(?:[a-z0-9]+\.)*(?:tio\.run|tryitonline\.net)[^"\'<)\s]+',
    timemap_prefixes=("tio.run", "tryitonline.net"),
    output_file="tio_links.txt",
    # Post bodies are HTML
    input_rewrites=(Rewrite("&amp;", "&"),),
)

PROFILES: Dict[str, HarvestProfile] = {p.name: p for p in (ATO_PROFILE, TIO_PROFILE)}


def get_profile(name: str) -> HarvestProfile:
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(f"Unknown profile {name!r} (expected one of: {', '.join(PROFILES)})") from None
