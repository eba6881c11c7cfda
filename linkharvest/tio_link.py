"""
Try It Online share links, v1 format.

v1 links keep the program in the URL fragment as base64 fields:

    http://<language>.tryitonline.net/#code=...&input=...&args=a+b&debug=on
    https://tio.run/nexus/<language>#code=...&input=...
    https://tio.run/#<language>#code=...&input=...

The compressed v2 format (`https://tio.run/##...`) is not decoded.
"""

import base64
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List
from urllib.parse import urlsplit

from .ato_link import urlsafe_b64decode_strict, urlsafe_b64encode_nopad
from .links import TIO_HOST, TRY_IT_ONLINE_HOST

_STANDARD_NO_PAD = re.compile(r"[A-Za-z0-9+/]*")


class TioSchema(Enum):
    V1 = "v1"
    V2 = "v2"


class TioDomain(Enum):
    TIO = "tio"                    # TIO v2 site, https://tio.run/
    TIO_NEXUS = "tio-nexus"        # https://tio.run/nexus/
    TRY_IT_ONLINE = "tryitonline"  # TIO v1, http://<language>.tryitonline.net/


class TioDecodeError(ValueError):
    """Raised when a TIO link cannot be decoded."""


def decode_field(value: str) -> str:
    """Decode one base64 fragment field as UTF-8 text."""
    try:
        data = urlsafe_b64decode_strict(value)
    except ValueError as err:
        # A few links use `+` from the standard alphabet
        if not _STANDARD_NO_PAD.fullmatch(value) or len(value) % 4 == 1:
            raise TioDecodeError(f"base64 decode: {err}") from err
        data = base64.b64decode(value + "=" * (-len(value) % 4))
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise TioDecodeError(f"UTF-8 decode: {e}") from e


def is_v2_link(url: str) -> bool:
    """True for compressed `https://tio.run/##...` links."""
    parts = urlsplit(url)
    return (parts.hostname or "").lower() == TIO_HOST and parts.fragment.startswith("#")


@dataclass
class TioLinkState:
    """Program state carried by a TIO link."""
    schema: TioSchema = TioSchema.V2
    domain: TioDomain = TioDomain.TIO
    language: str = ""
    code: str = ""
    input: str = ""
    args: List[str] = field(default_factory=list)
    debug: bool = False

    @classmethod
    def decode_v1(cls, url: str) -> "TioLinkState":
        """
        Decode a Try It Online share link with the v1 format.

        Raises:
            TioDecodeError: Unknown domain, two languages, a repeated or
                unknown field, a field holding `=`, or bad base64/UTF-8
        """
        try:
            parts = urlsplit(url)
        except ValueError as e:
            raise TioDecodeError(f"URL parse: {e}") from e
        if not parts.scheme or not parts.netloc:
            raise TioDecodeError(f"URL parse: not an absolute URL: {url!r}")

        host = (parts.hostname or "").lower()
        language = None
        if host == TIO_HOST:
            if parts.path.startswith("/nexus/"):
                language = parts.path[len("/nexus/"):]
                domain = TioDomain.TIO_NEXUS
            else:
                domain = TioDomain.TIO
        elif host == TRY_IT_ONLINE_HOST:
            domain = TioDomain.TRY_IT_ONLINE
        elif host.endswith("." + TRY_IT_ONLINE_HOST):
            language = host[: -len("." + TRY_IT_ONLINE_HOST)]
            domain = TioDomain.TRY_IT_ONLINE
        else:
            raise TioDecodeError(f"unknown domain: {host}")

        fragment = parts.fragment
        if "#" in fragment:
            if language is not None:
                raise TioDecodeError("multiple languages")
            language, fragment = fragment.split("#", 1)

        state = cls(schema=TioSchema.V1, domain=domain, language=language or "")
        seen = set()
        for item in fragment.split("&"):
            if "=" not in item:
                continue
            key, value = item.split("=", 1)
            if "=" in value:
                # TIO ignores anything after a second `=`, but never encodes it
                raise TioDecodeError("field value contains `=`")
            if key not in ("code", "input", "args", "debug"):
                raise TioDecodeError(f"unknown field: {key}")
            if key in seen:
                raise TioDecodeError(f"duplicate field: {key}")
            seen.add(key)
            if key == "code":
                state.code = decode_field(value)
            elif key == "input":
                state.input = decode_field(value)
            elif key == "args":
                state.args = [decode_field(arg) for arg in value.split("+")]
            else:
                state.debug = True
        return state

    def encode_v1(self) -> str:
        """Encode this state as a v1 link."""
        if self.schema is not TioSchema.V1:
            raise ValueError(f"cannot encode a {self.schema.value} state as v1")
        if self.domain is TioDomain.TIO:
            url = f"https://{TIO_HOST}/#{self.language}"
        elif self.domain is TioDomain.TIO_NEXUS:
            url = f"https://{TIO_HOST}/nexus/{self.language}"
        elif not self.language:
            url = f"http://{TRY_IT_ONLINE_HOST}/"
        else:
            url = f"http://{self.language}.{TRY_IT_ONLINE_HOST}/"

        url += "#code=" + _b64(self.code) + "&input=" + _b64(self.input)
        if self.args:
            url += "&args=" + "+".join(_b64(arg) for arg in self.args)
        if self.debug:
            url += "&debug=on"
        return url


def _b64(text: str) -> str:
    return urlsafe_b64encode_nopad(text.encode("utf-8"))


def decode_v1(url: str) -> TioLinkState:
    return TioLinkState.decode_v1(url)


def encode_v1(state: TioLinkState) -> str:
    return state.encode_v1()
