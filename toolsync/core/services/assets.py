"""
Asset resolution: platform targets, asset matching, template expansion.

Everything here is pure. Platform detection reads ``platform`` only
when no explicit (system, machine) pair is passed in.
"""

from __future__ import annotations

import platform
from collections.abc import Sequence

from toolsync.core.models.registry import AssetDescriptor

_OS_MAP = {
    "darwin": "darwin",
    "linux": "linux",
    "windows": "win",
}

# Both Go-style and uname-style machine names appear in the wild
_ARCH_MAP = {
    "amd64": "x64",
    "x86_64": "x64",
    "386": "x86",
    "i386": "x86",
    "i686": "x86",
    "arm64": "arm64",
    "aarch64": "arm64",
    "arm": "arm",
    "armv7l": "arm",
    "armv6l": "arm",
}

_GNU_SUFFIX = "_gnu"

_VERSION_TOKENS = ("{{version}}", "{{ version }}")
_STRIP_V_TOKENS = (
    '{{ version | strip_prefix "v" }}',
    '{{version | strip_prefix "v"}}',
)

_BIN_TOKEN = "{{source.asset.bin}}"
_BIN_KEY_PREFIX = "{{source.asset.bin."
_FILE_TOKEN = "{{source.asset.file}}"


def detect_target(system: str | None = None, machine: str | None = None) -> str:
    """Canonical ``<os>_<arch>`` token for a platform.

    >>> detect_target("Linux", "x86_64")
    'linux_x64'
    """
    os_name = (system if system is not None else platform.system()).lower()
    arch = (machine if machine is not None else platform.machine()).lower()
    return f"{_OS_MAP.get(os_name, os_name)}_{_ARCH_MAP.get(arch, arch)}"


def match_asset(assets: Sequence[AssetDescriptor], target: str) -> AssetDescriptor | None:
    """Find the asset built for ``target``.

    Exact matches win. Linux targets fall back to the ``_gnu`` variant
    that some registries use for glibc builds.
    """
    for asset in assets:
        if asset.target.matches(target):
            return asset
    if target.startswith("linux_"):
        gnu = target + _GNU_SUFFIX
        for asset in assets:
            if asset.target.matches(gnu):
                return asset
    return None


def resolve_template(template: str, version: str) -> str:
    """Substitute the version into a file template.

    The ``strip_prefix "v"`` filter is only expanded when the version
    actually starts with ``v``. Unknown tokens are left in place.
    """
    result = template
    for token in _VERSION_TOKENS:
        result = result.replace(token, version)
    if version.startswith("v"):
        for token in _STRIP_V_TOKENS:
            result = result.replace(token, version[1:])
    return result


def resolve_bin_path(
    template: str,
    asset: AssetDescriptor,
    bin_name: str,
    version: str = "",
) -> str:
    """Expand a registry ``bin`` template against the matched asset."""
    result = template

    if _BIN_TOKEN in result:
        value = ""
        if asset.bin is not None:
            value = asset.bin.lookup(bin_name)
        result = result.replace(_BIN_TOKEN, value)

    start = result.find(_BIN_KEY_PREFIX)
    if start >= 0:
        end = result.find("}}", start)
        if end > 0:
            key = result[start + len(_BIN_KEY_PREFIX):end]
            value = asset.bin.lookup(key) if asset.bin is not None else ""
            result = result.replace(_BIN_KEY_PREFIX + key + "}}", value)

    if _FILE_TOKEN in result:
        file_name, _ = split_asset_file(resolve_template(asset.file, version))
        result = result.replace(_FILE_TOKEN, file_name)

    return resolve_template(result, version) if version else result


def split_asset_file(file_spec: str) -> tuple[str, str]:
    """Split ``archive.tar.gz:subdir/`` into (file, subdir).

    A URL scheme separator is not mistaken for the subdirectory colon.
    """
    scheme, sep, rest = file_spec.partition("://")
    if not sep:
        scheme, rest = "", file_spec
    else:
        scheme += sep
    name, colon, subdir = rest.partition(":")
    if not colon:
        return file_spec, ""
    return scheme + name, subdir.strip("/")
