"""
Version gating for persisted manifests.

Decides per channel (core binaries) or per scope (rule indices) whether the
upstream version moved since the previous run, and merges freshly computed
sections into the previous document so unaffected sections pass through
unchanged.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional

from manifestor.log_utils import logger

from .interfaces import ChannelManifest, Release


def channel_needs_update(previous: Any, release: Optional[Release]) -> bool:
    """
    Return True when `release` must be processed for a channel.

    Parameters:
        previous: The channel's section from the previous document (any shape).
        release (Optional[Release]): The freshly observed release, `None` if unavailable.

    Returns:
        bool: `False` without a release. Otherwise `True` if the tag changed or the
            previous section has no downloads.
    """
    if release is None:
        return False
    previous_manifest = ChannelManifest.from_dict(previous)
    if previous_manifest is None or previous_manifest.is_empty:
        return True
    return previous_manifest.tag != release.tag_name


def previous_tag(previous: Any) -> Optional[str]:
    manifest = ChannelManifest.from_dict(previous)
    return manifest.tag if manifest else None


def merge_channels(
    previous_document: Any,
    updates: Mapping[str, ChannelManifest],
    channels: Iterable[str],
    updated_at: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the next binary manifest document.

    Channels present in `updates` are replaced wholesale; every other channel is
    copied from `previous_document` as-is (an empty mapping if it had none).
    """
    previous = previous_document if isinstance(previous_document, dict) else {}
    document: Dict[str, Any] = {
        "updated_at": updated_at or datetime.now(timezone.utc).isoformat(),
    }
    for channel in channels:
        if channel in updates:
            document[channel] = updates[channel].to_dict()
        else:
            document[channel] = previous.get(channel) or {}
    return document


def scope_needs_update(
    previous_index: Any, marker: Optional[str], version: Optional[str]
) -> bool:
    """
    Return True when a rule scope must be re-indexed for `version`.

    Parameters:
        previous_index: The scope's previously persisted index (any shape).
        marker (Optional[str]): The persisted version marker of the last run.
        version (Optional[str]): The freshly observed version, `None` if unavailable.

    Returns:
        bool: `False` without a version. Otherwise `True` if the version differs
            from the marker, or the previous index is missing, malformed or has no rules.
    """
    if version is None:
        return False
    if not isinstance(previous_index, dict) or not previous_index.get("rules"):
        return True
    return marker != version


def rules_need_update(
    previous_indices: Mapping[str, Any], marker: Optional[str], version: Optional[str]
) -> Dict[str, bool]:
    """Decide for every scope whether it needs re-indexing."""
    decisions = {
        scope: scope_needs_update(previous_index, marker, version)
        for scope, previous_index in previous_indices.items()
    }
    for scope, needed in decisions.items():
        logger.debug(f"Scope {scope}: {'update' if needed else 'unchanged'}")
    return decisions
