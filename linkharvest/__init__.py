"""
linkharvest - Collect code-share links for online code runners.

Combines links found in a Stack Exchange Data Explorer export with the
captures listed by the Wayback Machine timemap API, and writes sorted,
deduplicated link lists for Attempt This Online and Try It Online. The
program state carried by ATO links and TIO v1 links can be decoded too.
"""

__version__ = "0.1.0"

from .ato_link import AtoDecodeError, AtoLinkState
from .harvester import HarvestError, HarvestResult, LinkHarvester, MissingInputError, write_links
from .links import LinkKind, Rewrite, classify_link
from .profiles import ATO_PROFILE, PROFILES, TIO_PROFILE, ConfigError, HarvestProfile, TimemapConfig, get_profile
from .tio_link import TioDecodeError, TioLinkState

__all__ = [
    "LinkHarvester",
    "HarvestResult",
    "HarvestError",
    "MissingInputError",
    "write_links",
    "HarvestProfile",
    "TimemapConfig",
    "ConfigError",
    "ATO_PROFILE",
    "TIO_PROFILE",
    "PROFILES",
    "get_profile",
    "LinkKind",
    "Rewrite",
    "classify_link",
    "AtoLinkState",
    "AtoDecodeError",
    "TioLinkState",
    "TioDecodeError",
]
