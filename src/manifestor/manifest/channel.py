"""
Release channel processing.

Builds one ChannelManifest from one upstream release: classify each asset,
push it through the artifact pipeline, and record a canonical download URL
for every asset that made it through. Assets are handled strictly one at a
time inside a single work directory owned by the channel run.
"""

import shutil
import tempfile
from pathlib import Path
from types import TracebackType
from typing import Optional, Type

from manifestor.constants import (
    CORE_ARCHIVE_TEMPLATE,
    CORE_BINARY_NAME,
    CORE_BINARY_NAME_WINDOWS,
    GITHUB_WEB_BASE,
)
from manifestor.exceptions import ArtifactError
from manifestor.log_utils import logger

from .assets import parse_asset_name
from .interfaces import (
    ArtifactPipeline,
    Asset,
    ChannelManifest,
    PlatformDescriptor,
    Release,
)


class WorkDir:
    """
    Scratch directory for one channel run.

    Created on enter, removed on exit (also when an exception escapes), and
    handed explicitly to every asset step.
    """

    def __init__(self, channel: str, parent: Optional[str] = None):
        self.channel = channel
        self.parent = parent
        self.path: Optional[Path] = None

    def __enter__(self) -> "WorkDir":
        self.path = Path(tempfile.mkdtemp(prefix=f"temp_{self.channel}_", dir=self.parent))
        logger.debug(f"Created work directory {self.path}")
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if self.path is not None:
            shutil.rmtree(self.path, ignore_errors=True)
            logger.debug(f"Removed work directory {self.path}")
            self.path = None

    def subdir(self, name: str) -> Path:
        if self.path is None:
            raise RuntimeError("WorkDir used outside of its context")
        return self.path / name


def binary_name_for(os_name: str) -> str:
    return CORE_BINARY_NAME_WINDOWS if os_name == "windows" else CORE_BINARY_NAME


def canonical_archive_name(descriptor: PlatformDescriptor) -> str:
    return CORE_ARCHIVE_TEMPLATE.format(os=descriptor.os, arch=descriptor.arch)


def build_download_url(resource_repo: str, tag: str, descriptor: PlatformDescriptor) -> str:
    """
    Build the stable download URL for a repackaged core archive.

    >>> build_download_url("me/res", "v1.0.0", PlatformDescriptor("linux", "amd64", "x"))
    'https://github.com/me/res/releases/download/v1.0.0/core-linux-amd64.zip'
    """
    return (
        f"{GITHUB_WEB_BASE}/{resource_repo}/releases/download/"
        f"{tag}/{canonical_archive_name(descriptor)}"
    )


def version_from_tag(tag: str) -> str:
    return tag[1:] if tag.startswith("v") else tag


class ReleaseChannelProcessor:
    """
    Turns one release into one ChannelManifest.

    Parameters:
        pipeline (ArtifactPipeline): Byte-level fetch/unpack/locate/repackage stages.
        resource_repo (str): `owner/name` of the repository hosting repackaged archives.
        dist_dir (Path): Root output directory; archives land in `dist_dir/<channel>`.
        work_parent (Optional[str]): Where to create the channel work directory.
    """

    def __init__(
        self,
        pipeline: ArtifactPipeline,
        resource_repo: str,
        dist_dir: Path,
        work_parent: Optional[str] = None,
    ):
        self.pipeline = pipeline
        self.resource_repo = resource_repo
        self.dist_dir = Path(dist_dir)
        self.work_parent = work_parent

    def _prepare_channel_dist(self, channel: str) -> Path:
        channel_dist = self.dist_dir / channel
        if channel_dist.exists():
            shutil.rmtree(channel_dist)
        channel_dist.mkdir(parents=True)
        return channel_dist

    def process(self, release: Release, channel: str) -> ChannelManifest:
        """
        Build the manifest for `release` on `channel`.

        Unclassifiable assets and assets failing any pipeline stage are skipped
        with a warning. A release with no usable asset yields an empty download map.
        """
        logger.info(f"[{channel}] New version detected: {release.tag_name}, processing...")
        manifest = ChannelManifest(
            version=version_from_tag(release.tag_name), tag=release.tag_name
        )
        channel_dist = self._prepare_channel_dist(channel)

        with WorkDir(channel, self.work_parent) as work_dir:
            for index, asset in enumerate(release.assets):
                descriptor = parse_asset_name(asset.name)
                if descriptor is None:
                    logger.debug(f"[{channel}] Skipping non-core asset: {asset.name}")
                    continue
                logger.info(f"[{channel}] Processing: {descriptor.os} - {descriptor.arch}")
                try:
                    self._process_asset(asset, descriptor, work_dir, channel_dist, index)
                except ArtifactError as e:
                    logger.warning(f"[{channel}] Skipping {asset.name}: {e}")
                    continue

                url = build_download_url(self.resource_repo, release.tag_name, descriptor)
                if manifest.add_download(descriptor.os, descriptor.arch, url):
                    logger.warning(
                        f"[{channel}] {descriptor.os}/{descriptor.arch} already present; "
                        f"{asset.name} replaces the earlier asset"
                    )

        if manifest.is_empty:
            logger.warning(f"[{channel}] No usable assets found in {release.tag_name}")
        return manifest

    def _process_asset(
        self,
        asset: Asset,
        descriptor: PlatformDescriptor,
        work_dir: WorkDir,
        channel_dist: Path,
        index: int,
    ) -> Path:
        # Per-asset names keep directories distinct when two assets share a platform key
        key = f"{index}_{descriptor.os}_{descriptor.arch}"
        archive = self.pipeline.fetch(asset.download_url, work_dir.subdir("downloads"), asset.name)
        extracted = self.pipeline.unpack(archive, work_dir.subdir(f"ext_{key}"))
        binary = self.pipeline.locate_binary(extracted, binary_name_for(descriptor.os))
        return self.pipeline.repackage(
            binary,
            work_dir.subdir(f"stage_{key}"),
            channel_dist / canonical_archive_name(descriptor),
            executable=descriptor.os != "windows",
        )
