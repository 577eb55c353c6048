"""
Update Orchestration

`CoreUpdater` refreshes the per-channel core binary manifest and
`RulesUpdater` refreshes the rule-set indices. Both read the previous state
once, decide per channel/scope what to recompute, and write at most once at
the end. Fatal conditions are raised before anything is written.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from manifestor.constants import (
    CHANNEL_ALPHA,
    CHANNEL_STABLE,
    CHANNELS,
    CORE_INFO_FILE,
    JSDELIVR_GH_BASE,
    RAW_GITHUB_BASE,
    RULE_SCOPES,
    RULE_VERSION_FILE,
    RULES_DIR_NAME,
    SIGNAL_UPDATE_JSON,
)
from manifestor.exceptions import FileSystemError, NoReleaseDataError, NoRulesFoundError
from manifestor.log_utils import logger
from manifestor.signals import emit_signal

from .channel import ReleaseChannelProcessor
from .files import atomic_write_json, atomic_write_text, read_json, read_text
from .github_source import GithubReleaseSource, GithubTreeSource
from .interfaces import ChannelManifest, Release, RuleIndex, RuleRecord
from .pipeline import ArchivePipeline
from .rules import build_rules_index
from .version_gate import (
    channel_needs_update,
    merge_channels,
    previous_tag,
    rules_need_update,
)


@dataclass
class CoreUpdateResult:
    """Outcome of a core manifest run."""

    updated_channels: Dict[str, str] = field(default_factory=dict)
    """Channel name -> release tag for every recomputed channel"""

    document: Optional[Dict[str, Any]] = None
    """The written document, `None` when nothing was written"""

    @property
    def written(self) -> bool:
        return self.document is not None


@dataclass
class RulesUpdateResult:
    """Outcome of a rules index run."""

    version: Optional[str] = None
    updated_scopes: List[str] = field(default_factory=list)
    rule_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def written(self) -> bool:
        return bool(self.updated_scopes)


class CoreUpdater:
    """
    Refreshes `core_info.json` from the upstream release feed.

    Parameters:
        config (Dict[str, Any]): Effective configuration (see `manifestor.config`).
        release_source (Optional[GithubReleaseSource]): Injected for tests; built from config otherwise.
        processor (Optional[ReleaseChannelProcessor]): Injected for tests; built from config otherwise.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        release_source: Optional[GithubReleaseSource] = None,
        processor: Optional[ReleaseChannelProcessor] = None,
    ):
        self.config = config
        self.static_dir = Path(config["STATIC_DIR"])
        self.manifest_path = self.static_dir / CORE_INFO_FILE
        self.release_source = release_source or GithubReleaseSource(
            config["UPSTREAM_REPO"], config.get("GITHUB_TOKEN")
        )
        self.processor = processor or ReleaseChannelProcessor(
            ArchivePipeline(), config["RESOURCE_REPO"], Path(config["DIST_DIR"])
        )

    def _resolve_alpha(self, previous_alpha: Any) -> Optional[Release]:
        alpha = self.release_source.find_latest_prerelease()
        if alpha is not None:
            return alpha
        # No prerelease in the recent window; fall back to the last known alpha tag
        known_tag = previous_tag(previous_alpha)
        if known_tag:
            logger.debug(f"No recent prerelease; looking up previous alpha {known_tag}")
            return self.release_source.get_release_by_tag(known_tag)
        return None

    def run(self) -> CoreUpdateResult:
        """
        Recompute changed channels and rewrite the manifest if any changed.

        Raises:
            NoReleaseDataError: If neither channel has usable release metadata.
            FileSystemError: If the manifest cannot be written.
        """
        logger.info("Checking release versions...")
        previous = read_json(str(self.manifest_path))
        if not isinstance(previous, dict):
            previous = {}

        releases = {
            CHANNEL_STABLE: self.release_source.get_latest_release(),
            CHANNEL_ALPHA: self._resolve_alpha(previous.get(CHANNEL_ALPHA)),
        }
        if all(release is None for release in releases.values()):
            raise NoReleaseDataError("No usable release metadata from upstream")

        result = CoreUpdateResult()
        updates: Dict[str, ChannelManifest] = {}
        for channel in CHANNELS:
            release = releases[channel]
            if not channel_needs_update(previous.get(channel), release):
                current = previous_tag(previous.get(channel))
                logger.info(f"{channel.capitalize()} is unchanged ({current})")
                continue
            updates[channel] = self.processor.process(release, channel)
            result.updated_channels[channel] = release.tag_name

        if not updates:
            logger.info("All channels are up to date, nothing to do.")
            return result

        document = merge_channels(previous, updates, CHANNELS)
        logger.info(f"Update detected, writing {self.manifest_path} ...")
        if not atomic_write_json(str(self.manifest_path), document):
            raise FileSystemError(
                "Could not write core manifest", path=str(self.manifest_path)
            )
        result.document = document

        for channel, tag in result.updated_channels.items():
            emit_signal(f"do_{channel}", "true")
            emit_signal(f"{channel}_tag", tag)
        emit_signal(SIGNAL_UPDATE_JSON, "true")
        return result


class RulesUpdater:
    """
    Refreshes the per-scope rule indices and the version marker.

    Parameters:
        config (Dict[str, Any]): Effective configuration (see `manifestor.config`).
        tree_source (Optional[GithubTreeSource]): Injected for tests; built from config otherwise.
        scopes (Optional[Dict[str, str]]): Scope name -> tree prefix.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        tree_source: Optional[GithubTreeSource] = None,
        scopes: Optional[Dict[str, str]] = None,
    ):
        self.config = config
        repo = config["RULES_REPO"]
        branch = config["RULES_BRANCH"]
        self.rules_dir = Path(config["STATIC_DIR"]) / RULES_DIR_NAME
        self.version_path = self.rules_dir / RULE_VERSION_FILE
        self.scopes = scopes or dict(RULE_SCOPES)
        self.base_url = f"{JSDELIVR_GH_BASE}/{repo}@{branch}"
        self.raw_base_url = f"{RAW_GITHUB_BASE}/{repo}/{branch}"
        self.tree_source = tree_source or GithubTreeSource(
            repo, branch, config.get("GITHUB_TOKEN")
        )

    def index_path(self, scope: str) -> Path:
        return self.rules_dir / f"{scope}.json"

    def run(self) -> RulesUpdateResult:
        """
        Re-index scopes whose version moved and write their indices.

        Missing upstream data leaves every persisted file untouched.

        Raises:
            NoRulesFoundError: If the tree yields no rule records in any scope.
            FileSystemError: If an index or the marker cannot be written.
        """
        logger.info(f"Processing rules from {self.config['RULES_REPO']}...")
        result = RulesUpdateResult()

        version = self.tree_source.get_version()
        if version is None:
            logger.warning("Rules version unavailable; keeping previous indices.")
            return result
        result.version = version

        marker = read_text(str(self.version_path))
        previous_indices = {
            scope: read_json(str(self.index_path(scope))) for scope in self.scopes
        }
        decisions = rules_need_update(previous_indices, marker, version)
        if not any(decisions.values()):
            logger.info(f"Rules are unchanged ({version}), skipping update.")
            return result

        paths = self.tree_source.get_paths()
        if paths is None:
            logger.warning("Rules tree unavailable; keeping previous indices.")
            return result

        records: Dict[str, List[RuleRecord]] = {
            scope: build_rules_index(paths, prefix) for scope, prefix in self.scopes.items()
        }
        result.rule_counts = {scope: len(found) for scope, found in records.items()}
        if not any(result.rule_counts.values()):
            raise NoRulesFoundError(
                "No rules found! Check path prefix.",
                details=", ".join(self.scopes.values()),
            )

        for scope, needed in decisions.items():
            if not needed:
                continue
            index = RuleIndex(
                version=version,
                base_url=self.base_url,
                raw_base_url=self.raw_base_url,
                rules=records[scope],
            )
            self._write_json(self.index_path(scope), index.to_dict())
            result.updated_scopes.append(scope)

        if not atomic_write_text(str(self.version_path), version):
            raise FileSystemError(
                "Could not write rules version marker", path=str(self.version_path)
            )

        emit_signal(SIGNAL_UPDATE_JSON, "true")
        counts = ", ".join(f"{scope}: {count}" for scope, count in result.rule_counts.items())
        logger.info(f"Rules updated to {version} ({counts})")
        return result

    def _write_json(self, path: Path, data: Dict[str, Any]) -> None:
        os.makedirs(path.parent, exist_ok=True)
        if not atomic_write_json(str(path), data):
            raise FileSystemError("Could not write rules index", path=str(path))
