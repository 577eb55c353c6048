"""
Asset name parsing.

Upstream release assets follow `sing-box-{version}-{os}-{arch}[-{variant}].{ext}`
with inconsistent variant tails (`legacy-windows-7`, `legacy-macos-11`,
`softfloat`, ...). This module maps each name to a canonical
PlatformDescriptor, or `None` when the asset is not a core build.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from manifestor.constants import (
    ASSET_ARCHIVE_SUFFIXES,
    ASSET_PREFIX,
    ASSET_REJECT_MARKERS,
    ASSET_REJECT_SUFFIXES,
    ASSET_TOKEN_DELIMITER,
    OS_ALIASES,
    VARIANT_SUFFIX_RULES,
)
from manifestor.log_utils import logger

from .interfaces import PlatformDescriptor


def is_rejected_asset(asset_name: str) -> bool:
    """
    Return True for mobile builds, SBOM artifacts and package-manager formats.

    Checked before any structural parsing, so a rejected marker wins even when
    the rest of the name is well formed.
    """
    if any(marker in asset_name for marker in ASSET_REJECT_MARKERS):
        return True
    return asset_name.endswith(ASSET_REJECT_SUFFIXES)


def _strip_affixes(asset_name: str) -> Optional[str]:
    if not asset_name.startswith(ASSET_PREFIX):
        return None
    for suffix in ASSET_ARCHIVE_SUFFIXES:
        if asset_name.endswith(suffix):
            return asset_name[len(ASSET_PREFIX) : -len(suffix)]
    return None


def normalize_arch(
    base_arch: str,
    variant: Optional[str],
    rules: Iterable[Tuple[str, str]] = VARIANT_SUFFIX_RULES,
) -> str:
    """
    Fold a variant tail into the architecture.

    `rules` is evaluated top to bottom; the first marker contained in the
    variant decides the suffix. An unmatched variant is appended verbatim.

    >>> normalize_arch("amd64", "legacy-windows-7")
    'amd64-legacy'
    >>> normalize_arch("mips", None)
    'mips'
    """
    if not variant:
        return base_arch
    for marker, suffix in rules:
        if marker in variant:
            return f"{base_arch}-{suffix}"
    return f"{base_arch}-{variant}"


def _split_tokens(stem: str) -> List[str]:
    return stem.split(ASSET_TOKEN_DELIMITER)


def _find_os_index(tokens: Sequence[str]) -> int:
    for index, token in enumerate(tokens):
        if token in OS_ALIASES:
            return index
    return -1


def parse_asset_name(asset_name: str) -> Optional[PlatformDescriptor]:
    """
    Parse an upstream asset filename into a canonical platform descriptor.

    Tokens are scanned left to right so that OS names inside a variant tail
    (`darwin-amd64-legacy-macos-11`) cannot be mistaken for the platform OS.

    Parameters:
        asset_name (str): The raw upstream filename.

    Returns:
        Optional[PlatformDescriptor]: The descriptor, or `None` if the asset is
            not applicable. Never raises.
    """
    if not isinstance(asset_name, str) or not asset_name:
        return None
    if is_rejected_asset(asset_name):
        return None

    stem = _strip_affixes(asset_name)
    if not stem:
        return None

    tokens = _split_tokens(stem)
    os_index = _find_os_index(tokens)
    if os_index == -1:
        return None

    arch_index = os_index + 1
    if arch_index >= len(tokens) or not tokens[arch_index]:
        return None

    variant_tokens = tokens[arch_index + 1 :]
    variant = ASSET_TOKEN_DELIMITER.join(variant_tokens) or None

    descriptor = PlatformDescriptor(
        os=OS_ALIASES[tokens[os_index]],
        arch=normalize_arch(tokens[arch_index], variant),
        filename=asset_name,
    )
    logger.debug(f"Parsed {asset_name} -> {descriptor.os}/{descriptor.arch}")
    return descriptor
