"""
Core Interfaces for the Manifestor Subsystem

This module defines the value objects that flow between the name parser, the
rule indexer, the channel processor and the version gate, plus the abstract
artifact pipeline the channel processor delegates byte-level work to.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from manifestor.constants import TYPE_ALL

Pathish = Union[str, Path]

DownloadMap = Dict[str, Dict[str, str]]


@dataclass
class Asset:
    """Represents a downloadable asset from an upstream release."""

    name: str
    """The filename of the asset"""

    download_url: str
    """Direct URL to download the asset"""

    size: int = 0
    """File size in bytes"""


@dataclass
class Release:
    """Represents an upstream release."""

    tag_name: str
    """The release tag (e.g., 'v1.10.0')"""

    prerelease: bool = False
    """Whether this is a prerelease version"""

    published_at: Optional[str] = None
    """ISO 8601 timestamp when the release was published"""

    assets: List[Asset] = field(default_factory=list)
    """List of downloadable assets for this release"""


@dataclass(frozen=True)
class PlatformDescriptor:
    """Canonical platform key parsed from an upstream asset name."""

    os: str
    arch: str
    filename: str


@dataclass
class ChannelManifest:
    """Download map of one release channel."""

    version: str
    tag: str
    downloads: DownloadMap = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not any(self.downloads.values())

    def add_download(self, os_name: str, arch: str, url: str) -> bool:
        """
        Record a download URL, replacing any previous URL for the same key.

        Returns:
            bool: `True` if an existing entry was overwritten.
        """
        arches = self.downloads.setdefault(os_name, {})
        replaced = arch in arches
        arches[arch] = url
        return replaced

    def to_dict(self) -> Dict[str, Any]:
        return {"version": self.version, "tag": self.tag, "downloads": self.downloads}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["ChannelManifest"]:
        """Rebuild a manifest from its persisted form; `None` for anything malformed."""
        if not isinstance(data, dict):
            return None
        tag = data.get("tag")
        if not isinstance(tag, str) or not tag:
            return None
        downloads = data.get("downloads")
        if not isinstance(downloads, dict):
            downloads = {}
        return cls(
            version=str(data.get("version") or tag),
            tag=tag,
            downloads={
                os_name: dict(arches)
                for os_name, arches in downloads.items()
                if isinstance(arches, dict)
            },
        )


@dataclass(frozen=True)
class RuleFile:
    """One rule-set file in the upstream repository."""

    path: str
    form: str
    category: str


@dataclass
class RuleRecord:
    """A logical rule set, possibly backed by several files."""

    name: str
    form: str
    category: str
    files: List[RuleFile] = field(default_factory=list)

    def to_dict(self) -> Dict[str, str]:
        # File lists stay internal; the published index carries only the summary
        return {"name": self.name, "form": self.form, "category": self.category}


@dataclass
class RuleIndex:
    """Published index of one rule scope."""

    version: str
    base_url: str
    raw_base_url: str
    rules: List[RuleRecord] = field(default_factory=list)

    @property
    def homogeneous(self) -> bool:
        return all(record.form == TYPE_ALL for record in self.rules)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "baseUrl": self.base_url,
            "rawBaseUrl": self.raw_base_url,
            "homogeneous": self.homogeneous,
            "rules": [record.to_dict() for record in self.rules],
        }


class ArtifactPipeline(ABC):
    """
    Abstract base class for the byte-level artifact work of a channel.

    Every stage either returns its product or raises an ArtifactError subclass.
    All paths live inside the work directory handed in by the caller.
    """

    @abstractmethod
    def fetch(self, url: str, work_dir: Path, file_name: str) -> Path:
        """
        Download `url` into `work_dir` as `file_name`.

        Raises:
            TransferError: If the download fails.
        """

    @abstractmethod
    def unpack(self, archive_path: Path, extract_dir: Path) -> Path:
        """
        Unpack a `.zip` or `.tar.gz` archive into `extract_dir`.

        Raises:
            ExtractionError: If the archive cannot be unpacked.
        """

    @abstractmethod
    def locate_binary(self, extract_dir: Path, binary_name: str) -> Path:
        """
        Find `binary_name` anywhere below `extract_dir`.

        Raises:
            BinaryNotFoundError: If no such file exists.
        """

    @abstractmethod
    def repackage(
        self, binary_path: Path, staging_dir: Path, output_path: Path, executable: bool
    ) -> Path:
        """
        Write a zip at `output_path` holding only the binary at its root.

        Raises:
            PackagingError: If the archive cannot be written.
        """
