"""
Metadata — ordered header entries for a call, and the encoder from raw credential metadata.
Keys ending in "-bin" carry bytes; all other keys carry ASCII text.
"""
from __future__ import annotations

import base64
import binascii
import re
from typing import Iterable, Iterator, Mapping, Sequence, Union

BINARY_SUFFIX = "-bin"

_KEY_RE = re.compile(r"^[0-9a-z_.\-]+$")

HeaderValue = Union[str, bytes]


def is_binary_key(key: str) -> bool:
    return key.endswith(BINARY_SUFFIX)


def _normalize_key(key: str) -> str:
    if not isinstance(key, str):
        raise TypeError(f"Metadata key must be str, got {type(key).__name__}")
    name = key.lower()
    if not _KEY_RE.match(name):
        raise ValueError(f"Invalid metadata key: {key!r}")
    return name


class Metadata:
    """
    Multimap of header entries in insertion order. put() never replaces:
    several values for one key stay separate entries.
    """

    def __init__(self, entries: Iterable[tuple[str, HeaderValue]] = ()) -> None:
        self._entries: list[tuple[str, HeaderValue]] = []
        for key, value in entries:
            self.put(key, value)

    def put(self, key: str, value: HeaderValue) -> None:
        name = _normalize_key(key)
        if is_binary_key(name):
            if not isinstance(value, (bytes, bytearray)):
                raise TypeError(f"Binary header {name!r} requires bytes, got {type(value).__name__}")
            value = bytes(value)
        elif not isinstance(value, str):
            raise TypeError(f"Text header {name!r} requires str, got {type(value).__name__}")
        elif not value.isascii():
            raise ValueError(f"Text header {name!r} must be ASCII")
        self._entries.append((name, value))

    def get(self, key: str) -> HeaderValue | None:
        """Last value for key, or None."""
        name = key.lower()
        for entry_key, value in reversed(self._entries):
            if entry_key == name:
                return value
        return None

    def get_all(self, key: str) -> list[HeaderValue]:
        name = key.lower()
        return [value for entry_key, value in self._entries if entry_key == name]

    def keys(self) -> list[str]:
        return list(dict.fromkeys(key for key, _ in self._entries))

    def merge(self, other: Metadata) -> None:
        self._entries.extend(other)

    def to_http_headers(self) -> list[tuple[str, str]]:
        """Entries as HTTP header pairs; binary values are base64 without padding."""
        headers: list[tuple[str, str]] = []
        for key, value in self._entries:
            if isinstance(value, bytes):
                headers.append((key, base64.b64encode(value).decode("ascii").rstrip("=")))
            else:
                headers.append((key, value))
        return headers

    @classmethod
    def from_http_headers(cls, headers: Iterable[tuple[str, str]]) -> Metadata:
        """Inverse of to_http_headers. Entries that are not valid metadata are skipped."""
        metadata = cls()
        for key, value in headers:
            try:
                if is_binary_key(key.lower()):
                    metadata.put(key, _b64decode(value))
                else:
                    metadata.put(key, value)
            except ValueError:
                continue
        return metadata

    def __iter__(self) -> Iterator[tuple[str, HeaderValue]]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and any(k == key.lower() for k, _ in self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Metadata):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"Metadata({self._entries!r})"


def _b64decode(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.b64decode(padded, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 value: {value!r}") from e


def to_headers(raw: Mapping[str, Sequence[str]] | None) -> Metadata:
    """
    Encode raw credential metadata (key -> list of values) into header entries.
    "-bin" values are base64-decoded to bytes; text values are kept as is. None gives empty Metadata.
    """
    headers = Metadata()
    if raw is None:
        return headers
    for key, values in raw.items():
        if is_binary_key(key.lower()):
            for value in values:
                headers.put(key, _b64decode(value))
        else:
            for value in values:
                headers.put(key, value)
    return headers
