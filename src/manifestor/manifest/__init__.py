"""
Manifestor Manifest Subsystem

Core Components:
- interfaces: Value objects and the artifact pipeline interface
- assets: Upstream asset name parsing
- rules: Rule-set file indexing and type resolution
- channel: Per-channel release processing
- pipeline: Download/unpack/repackage implementation
- version_gate: Recompute decisions and manifest merging
- github_source: GitHub release and tree lookups
- orchestrator: Core and rules update runs
- files: Atomic writes and persisted state readers
"""

from .assets import normalize_arch, parse_asset_name
from .channel import ReleaseChannelProcessor, WorkDir, build_download_url
from .github_source import GithubReleaseSource, GithubTreeSource
from .interfaces import (
    ArtifactPipeline,
    Asset,
    ChannelManifest,
    PlatformDescriptor,
    Release,
    RuleFile,
    RuleIndex,
    RuleRecord,
)
from .orchestrator import CoreUpdater, CoreUpdateResult, RulesUpdater, RulesUpdateResult
from .pipeline import ArchivePipeline
from .rules import build_rules_index, resolve_category, resolve_form
from .version_gate import channel_needs_update, merge_channels, scope_needs_update

__all__ = [
    # Interfaces
    "ArtifactPipeline",
    "Asset",
    "ChannelManifest",
    "PlatformDescriptor",
    "Release",
    "RuleFile",
    "RuleIndex",
    "RuleRecord",
    # Normalization
    "parse_asset_name",
    "normalize_arch",
    "build_rules_index",
    "resolve_form",
    "resolve_category",
    # Processing
    "ReleaseChannelProcessor",
    "WorkDir",
    "build_download_url",
    "ArchivePipeline",
    # Version gating
    "channel_needs_update",
    "merge_channels",
    "scope_needs_update",
    # Sources
    "GithubReleaseSource",
    "GithubTreeSource",
    # Orchestration
    "CoreUpdater",
    "CoreUpdateResult",
    "RulesUpdater",
    "RulesUpdateResult",
]
