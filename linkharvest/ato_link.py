"""
Attempt This Online share links.

An ATO run link carries the whole editor state in its query string:

    https://ato.pxeger.com/run?1=<base64url(raw DEFLATE(MessagePack array))>

The key is the schema version (`0` or `1`); the MessagePack payload is a
fixed-length array of strings whose layout depends on that version. A
separate `L` (or `l`) key may name the language on its own.

Example:
    >>> state = AtoLinkState.decode("https://ato.pxeger.com/run?L=python")
    >>> state.language
    'python'
"""

import base64
import re
import zlib
from dataclasses import dataclass, fields
from enum import Enum
from typing import List, Optional, Tuple
from urllib.parse import parse_qsl, urlsplit

import msgpack

from .links import ATO_HOST

RUN_URL = f"https://{ATO_HOST}/run"

# Characters ATO's decoder drops before decoding base64
_BASE64_JUNK = re.compile(r"[^A-Za-z0-9+/\-_]+")
_URLSAFE_NO_PAD = re.compile(r"[A-Za-z0-9\-_]*")


class AtoSchema(Enum):
    """Schema version, which is also the query key of the payload."""
    V0 = "0"
    V1 = "1"


# MessagePack array layout per schema
_V0_FIELDS = (
    "language", "header", "header_encoding", "code", "code_encoding",
    "footer", "footer_encoding", "input", "input_encoding",
)
_V1_FIELDS = (
    "language", "options", "header", "header_encoding", "code", "code_encoding",
    "footer", "footer_encoding", "program_arguments", "input", "input_encoding",
)
_LAYOUT = {AtoSchema.V0: _V0_FIELDS, AtoSchema.V1: _V1_FIELDS}


class AtoDecodeError(ValueError):
    """Raised when an ATO link cannot be decoded."""


class AtoEncodeError(Exception):
    """Raised when an ATO link state cannot be encoded."""


def urlsafe_b64decode_strict(data: str) -> bytes:
    """Decode unpadded URL-safe base64, rejecting any other character."""
    if not _URLSAFE_NO_PAD.fullmatch(data) or len(data) % 4 == 1:
        raise ValueError(f"invalid URL-safe base64: {data[:40]!r}")
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def urlsafe_b64encode_nopad(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _lenient_b64decode(data: str) -> bytes:
    # Few links carry stray characters, so the strict decode goes first.
    # Standard-alphabet `+` and `/` survive tidying and still fail.
    try:
        return urlsafe_b64decode_strict(data)
    except ValueError as err:
        tidy = _BASE64_JUNK.sub("", data)
        try:
            return urlsafe_b64decode_strict(tidy)
        except ValueError:
            raise AtoDecodeError(f"base64 decode: {err}") from err


def inflate_raw(data: bytes) -> bytes:
    try:
        return zlib.decompress(data, -zlib.MAX_WBITS)
    except zlib.error as e:
        raise AtoDecodeError(f"DEFLATE decompress: {e}") from e


def deflate_raw(data: bytes, level: int = 9) -> bytes:
    compressor = zlib.compressobj(level, zlib.DEFLATED, -zlib.MAX_WBITS)
    return compressor.compress(data) + compressor.flush()


@dataclass
class AtoLinkState:
    """Editor state carried by an ATO link. Every field is kept as the raw string."""
    schema: AtoSchema = AtoSchema.V1
    language: str = ""
    options: str = ""
    header: str = ""
    header_encoding: str = ""
    code: str = ""
    code_encoding: str = ""
    footer: str = ""
    footer_encoding: str = ""
    program_arguments: str = ""
    input: str = ""
    input_encoding: str = ""

    @classmethod
    def decode(cls, url: str) -> "AtoLinkState":
        """
        Decode an Attempt This Online share link.

        Args:
            url: e.g. "https://ato.pxeger.com/run?1=m72kNGE..."

        Returns:
            The decoded state. A link without a payload decodes to the
            default state, with the `L` language applied if present.

        Raises:
            AtoDecodeError: Unknown query key, repeated schema or language,
                or a payload that is not base64/DEFLATE/MessagePack
        """
        payload, language = cls.decode_url(url)
        state = cls.from_msgpack(*payload) if payload is not None else cls()
        if language is not None and not state.language:
            state.language = language
        return state

    @staticmethod
    def decode_url(url: str) -> Tuple[Optional[Tuple[AtoSchema, bytes]], Optional[str]]:
        """Split a link into its (schema, MessagePack bytes) payload and `L` language."""
        try:
            parts = urlsplit(url)
        except ValueError as e:
            raise AtoDecodeError(f"URL parse: {e}") from e
        if not parts.scheme or not parts.netloc:
            raise AtoDecodeError(f"URL parse: not an absolute URL: {url!r}")

        payload = None
        language = None
        for key, value in parse_qsl(parts.query, keep_blank_values=True):
            if key in ("L", "l"):
                if language is not None:
                    raise AtoDecodeError("multiple languages")
                language = value
                continue
            try:
                schema = AtoSchema(key)
            except ValueError:
                raise AtoDecodeError(f"unknown key `{key}` in query string") from None
            if payload is not None:
                # ATO would pick the highest version, but never generates this
                raise AtoDecodeError("multiple schema versions")
            payload = (schema, value)

        if payload is None:
            return None, language
        schema, data = payload
        return (schema, inflate_raw(_lenient_b64decode(data))), language

    @classmethod
    def from_msgpack(cls, schema: AtoSchema, data: bytes) -> "AtoLinkState":
        layout = _LAYOUT[schema]
        try:
            values = msgpack.unpackb(data, raw=False)
        except (ValueError, msgpack.exceptions.UnpackException) as e:
            raise AtoDecodeError(f"MessagePack deserialize: {e}") from e
        if (
            not isinstance(values, list)
            or len(values) != len(layout)
            or not all(isinstance(v, str) for v in values)
        ):
            raise AtoDecodeError(
                f"MessagePack deserialize: expected {len(layout)} strings for schema {schema.value}"
            )
        return cls(schema=schema, **dict(zip(layout, values)))

    def to_msgpack(self) -> bytes:
        values: List[str] = [getattr(self, name) for name in _LAYOUT[self.schema]]
        try:
            return msgpack.packb(values, use_bin_type=True)
        except (TypeError, ValueError) as e:
            raise AtoEncodeError(f"MessagePack serialize: {e}") from e

    def encode(self, level: int = 9) -> str:
        """Encode this state as an ATO run link."""
        payload = urlsafe_b64encode_nopad(deflate_raw(self.to_msgpack(), level))
        return f"{RUN_URL}?{self.schema.value}={payload}"

    def to_dict(self) -> dict:
        result = {f.name: getattr(self, f.name) for f in fields(self)}
        result["schema"] = self.schema.value
        return result


def decode(url: str) -> AtoLinkState:
    return AtoLinkState.decode(url)


def encode(state: AtoLinkState) -> str:
    return state.encode()
