"""
Artifact pipeline: download, unpack, locate and repackage core binaries.

Each stage raises an ArtifactError subclass on failure so the channel
processor can skip the asset and move on.
"""

import os
import shutil
import stat
import tarfile
import tempfile
import zipfile
from pathlib import Path

from manifestor import utils
from manifestor.constants import EXECUTABLE_PERMISSIONS, TAR_GZ_EXTENSION, ZIP_EXTENSION
from manifestor.exceptions import (
    BinaryNotFoundError,
    ExtractionError,
    PackagingError,
    TransferError,
)
from manifestor.log_utils import logger

from .files import is_safe_archive_member, safe_extract_path
from .interfaces import ArtifactPipeline


class ArchivePipeline(ArtifactPipeline):
    """ArtifactPipeline backed by requests, zipfile and tarfile."""

    def fetch(self, url: str, work_dir: Path, file_name: str) -> Path:
        target = Path(work_dir) / file_name
        if not utils.download_file_with_retry(url, str(target)):
            raise TransferError(f"Download failed: {url}", asset_name=file_name)
        return target

    def unpack(self, archive_path: Path, extract_dir: Path) -> Path:
        archive_path = Path(archive_path)
        extract_dir = Path(extract_dir)
        extract_dir.mkdir(parents=True, exist_ok=True)
        name = archive_path.name.lower()
        try:
            if name.endswith(ZIP_EXTENSION):
                self._unpack_zip(archive_path, extract_dir)
            elif name.endswith(TAR_GZ_EXTENSION):
                self._unpack_tar_gz(archive_path, extract_dir)
            else:
                raise ExtractionError(
                    "Unsupported archive format", asset_name=archive_path.name
                )
        except (zipfile.BadZipFile, tarfile.TarError, OSError) as e:
            raise ExtractionError(
                f"Error extracting archive {archive_path}",
                asset_name=archive_path.name,
                details=str(e),
            ) from e
        return extract_dir

    def _unpack_zip(self, archive_path: Path, extract_dir: Path) -> None:
        with zipfile.ZipFile(archive_path, "r") as zip_ref:
            for file_info in zip_ref.infolist():
                if file_info.is_dir():
                    continue
                if not is_safe_archive_member(file_info.filename):
                    logger.warning(
                        "Skipping unsafe archive member %s (possible traversal)",
                        file_info.filename,
                    )
                    continue
                try:
                    extract_path = safe_extract_path(str(extract_dir), file_info.filename)
                except ValueError as e:
                    logger.warning(f"Skipping unsafe extraction path: {e}")
                    continue
                os.makedirs(os.path.dirname(extract_path), exist_ok=True)
                with (
                    zip_ref.open(file_info) as source,
                    open(extract_path, "wb") as target,
                ):
                    shutil.copyfileobj(source, target)

    def _unpack_tar_gz(self, archive_path: Path, extract_dir: Path) -> None:
        with tarfile.open(archive_path, "r:gz") as tar_ref:
            for member in tar_ref.getmembers():
                # Links and devices are never needed to find a single binary
                if not member.isfile():
                    continue
                if not is_safe_archive_member(member.name):
                    logger.warning(
                        "Skipping unsafe archive member %s (possible traversal)",
                        member.name,
                    )
                    continue
                try:
                    extract_path = safe_extract_path(str(extract_dir), member.name)
                except ValueError as e:
                    logger.warning(f"Skipping unsafe extraction path: {e}")
                    continue
                source = tar_ref.extractfile(member)
                if source is None:
                    continue
                os.makedirs(os.path.dirname(extract_path), exist_ok=True)
                with source, open(extract_path, "wb") as target:
                    shutil.copyfileobj(source, target)

    def locate_binary(self, extract_dir: Path, binary_name: str) -> Path:
        matches = sorted(
            path for path in Path(extract_dir).rglob(binary_name) if path.is_file()
        )
        if not matches:
            raise BinaryNotFoundError(
                f"Binary {binary_name} not found in {extract_dir}",
                asset_name=binary_name,
            )
        if len(matches) > 1:
            logger.debug(f"Multiple {binary_name} found, using {matches[0]}")
        return matches[0]

    def repackage(
        self, binary_path: Path, staging_dir: Path, output_path: Path, executable: bool
    ) -> Path:
        binary_path = Path(binary_path)
        staging_dir = Path(staging_dir)
        output_path = Path(output_path)
        temp_path = None
        try:
            staging_dir.mkdir(parents=True, exist_ok=True)
            staged = staging_dir / binary_path.name
            shutil.move(str(binary_path), str(staged))
            if executable:
                os.chmod(staged, EXECUTABLE_PERMISSIONS)

            output_path.parent.mkdir(parents=True, exist_ok=True)
            # A failed write must leave any earlier archive at output_path intact
            temp_fd, temp_path = tempfile.mkstemp(
                dir=output_path.parent, prefix="tmp-", suffix=ZIP_EXTENSION
            )
            os.close(temp_fd)
            with zipfile.ZipFile(temp_path, "w", zipfile.ZIP_DEFLATED) as zf:
                info = zipfile.ZipInfo(staged.name)
                info.compress_type = zipfile.ZIP_DEFLATED
                mode = EXECUTABLE_PERMISSIONS if executable else 0o644
                info.external_attr = (stat.S_IFREG | mode) << 16
                with open(staged, "rb") as source, zf.open(info, "w") as target:
                    shutil.copyfileobj(source, target)
            os.replace(temp_path, output_path)
        except OSError as e:
            raise PackagingError(
                f"Could not package {binary_path.name} into {output_path}",
                asset_name=binary_path.name,
                details=str(e),
            ) from e
        finally:
            if temp_path and os.path.exists(temp_path):
                os.remove(temp_path)
        return output_path
