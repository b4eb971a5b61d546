"""String helpers shared by the storage and web layers."""

from __future__ import annotations

import hashlib
from collections.abc import Callable, Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class Address:
    """An e-mail address with an optional display name."""

    name: str = ""
    address: str = ""

    def __str__(self) -> str:
        return string_address(self)


def hash_mailbox_name(mailbox: str) -> str:
    """Return the hex SHA-1 digest of a mailbox name."""
    return hashlib.sha1(mailbox.encode("utf-8")).hexdigest()


def string_address(address: Address | None) -> str:
    """Render an address as ``Name <address>``; ``None`` renders as an empty string."""
    if address is None:
        return ""
    parts = []
    if address.name:
        parts.append(address.name + " ")
    if address.address:
        parts.append(f"<{address.address}>")
    return "".join(parts)


def string_address_list(addresses: Iterable[Address | None]) -> list[str]:
    """Render each address in turn with :func:`string_address`."""
    return [string_address(a) for a in addresses]


def make_path_prefixer(prefix: str) -> Callable[[str], str]:
    """Return a function that prepends the normalised ``prefix`` to URI paths."""
    prefix = prefix.strip("/")
    if prefix:
        prefix = "/" + prefix

    def prefixer(path: str) -> str:
        return prefix + path

    return prefixer


def match_with_wildcards(pattern: str, s: str) -> bool:
    """Test whether ``s`` matches ``pattern``, where ``*`` and ``?`` are wildcards."""
    # previous[j] holds whether s[:i-1] matches pattern[:j].
    previous = [False] * (len(pattern) + 1)
    previous[0] = True
    for j, p in enumerate(pattern, start=1):
        if p == "*":
            previous[j] = previous[j - 1]

    for ch in s:
        current = [False] * (len(pattern) + 1)
        for j, p in enumerate(pattern, start=1):
            if p == "*":
                current[j] = previous[j] or current[j - 1]
            if p == "?" or ch == p:
                current[j] = previous[j - 1]
        previous = current

    return previous[len(pattern)]