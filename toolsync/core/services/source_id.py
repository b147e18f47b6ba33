"""
Source identifiers: parsing and normalization.

Two textual forms are accepted everywhere:

    pkg:<provider>/<package...>     (legacy)
    <provider>:<package...>         (current)

Only the first separator is significant; package ids may themselves
contain ``/``, ``:`` or ``@``.
"""

from __future__ import annotations

import re

from toolsync.core.errors import InvalidIdentifierError
from toolsync.core.models.package import LATEST, PackageReference

LEGACY_PREFIX = "pkg:"

KNOWN_PROVIDERS: tuple[str, ...] = (
    "npm",
    "pypi",
    "golang",
    "cargo",
    "gem",
    "composer",
    "luarocks",
    "nuget",
    "opam",
    "github",
    "gitlab",
    "codeberg",
    "generic",
)

_DIGIT = re.compile(r"\d")


def normalize(raw: str) -> str:
    """Rewrite a legacy identifier into the current form.

    ``pkg:p/x/y`` becomes ``p:x/y``. Current-form input, and legacy input
    with no ``/`` after the prefix, are returned unchanged.
    """
    if raw.startswith(LEGACY_PREFIX):
        provider, sep, rest = raw[len(LEGACY_PREFIX):].partition("/")
        if sep:
            return f"{provider}:{rest}"
    return raw


def split(raw: str) -> tuple[str, str]:
    """Split on the first ``:``. No separator yields an empty provider."""
    provider, sep, package_id = raw.partition(":")
    if not sep:
        return "", ""
    return provider, package_id


def parse_reference(raw: str) -> PackageReference:
    """Parse and validate a source identifier in either form.

    Raises:
        InvalidIdentifierError: empty provider or package id, or a
            provider that is not known.
    """
    provider, package_id = split(normalize(raw.strip()))
    if not provider or not package_id:
        raise InvalidIdentifierError(
            f"Invalid package id '{raw}': expected '<provider>:<package>' "
            "or 'pkg:<provider>/<package>'"
        )
    if provider not in KNOWN_PROVIDERS:
        raise InvalidIdentifierError(
            f"Unsupported provider '{provider}' in '{raw}'. "
            f"Supported providers: {', '.join(KNOWN_PROVIDERS)}"
        )
    return PackageReference(provider=provider, package_id=package_id, raw_source_id=raw)


def split_version(arg: str) -> tuple[str, str]:
    """Split a user argument ``id[@version]`` into (id, version).

    The text after the last ``@`` is a version only when it is ``latest``
    or contains a digit, so scoped npm names like ``npm:@scope/pkg`` keep
    their leading ``@``.
    """
    base, sep, tail = arg.rpartition("@")
    if sep and base and not base.endswith(":") and (tail == LATEST or _DIGIT.search(tail)):
        return base, tail
    return arg, ""
