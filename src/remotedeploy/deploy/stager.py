"""Staging of published application output onto a remote file share."""

from __future__ import annotations

import shutil
import uuid
from pathlib import Path

from remotedeploy.lib.errors import ArtifactNotFoundError
from remotedeploy.lib.logging_config import get_logger
from remotedeploy.models.deployment import StagedDeployment

logger = get_logger(__name__)


def copy_directory(source: Path, destination: Path, copy_subdirs: bool = True) -> None:
    """Copy a directory tree file by file.

    Existing destination directories are reused, but existing files are never
    overwritten.

    Args:
        source: Directory to copy from
        destination: Directory to copy into, created if missing
        copy_subdirs: Descend into subdirectories

    Raises:
        ArtifactNotFoundError: If ``source`` is not an existing directory
        FileExistsError: If a destination file already exists
    """
    if not source.is_dir():
        raise ArtifactNotFoundError(str(source))

    destination.mkdir(parents=True, exist_ok=True)

    for entry in sorted(source.iterdir()):
        target = destination / entry.name
        if entry.is_dir():
            if copy_subdirs:
                copy_directory(entry, target, copy_subdirs=True)
            continue
        if target.exists():
            raise FileExistsError(f"Refusing to overwrite existing file: {target}")
        shutil.copy2(entry, target)


def remove_directory(path: Path) -> None:
    """Recursively delete a directory tree.

    Raises:
        ArtifactNotFoundError: If ``path`` does not exist
        OSError: For any other failure while deleting
    """
    if not path.exists():
        raise ArtifactNotFoundError(str(path))
    shutil.rmtree(path)


class ArtifactStager:
    """Copies published output to a fresh folder under a staging root."""

    def prepare(
        self, staging_root: Path, relative_executable_path: str
    ) -> StagedDeployment:
        """Reserve a fresh folder under ``staging_root`` without touching disk.

        The returned location is known before any file is copied, so a copy
        that fails part way can still be cleaned up.
        """
        folder_id = str(uuid.uuid4())
        deployed_folder = Path(staging_root) / folder_id
        return StagedDeployment(
            folder_id=folder_id,
            deployed_folder_path=deployed_folder,
            executable_path=deployed_folder / relative_executable_path,
        )

    def copy(self, local_root: Path, staged: StagedDeployment) -> None:
        """Copy ``local_root`` into a prepared staging folder.

        Raises:
            ArtifactNotFoundError: If ``local_root`` does not exist
            FileExistsError: If a file already exists in the staging folder
        """
        target = staged.deployed_folder_path
        logger.debug(f"Copying {local_root} to {target}")
        copy_directory(Path(local_root), target, copy_subdirs=True)

    def stage(self, local_root: Path, staging_root: Path) -> Path:
        """Copy ``local_root`` to ``staging_root/<new id>``.

        Args:
            local_root: Published application output
            staging_root: File share reachable from the target host

        Returns:
            Path of the folder created on the file share

        Raises:
            ArtifactNotFoundError: If ``local_root`` does not exist
        """
        staged = self.stage_deployment(local_root, staging_root, "")
        return staged.deployed_folder_path

    def stage_deployment(
        self,
        local_root: Path,
        staging_root: Path,
        relative_executable_path: str,
    ) -> StagedDeployment:
        """Stage the output and describe where its executable ended up."""
        staged = self.prepare(staging_root, relative_executable_path)
        self.copy(local_root, staged)
        return staged

    def remove(self, deployed_folder: Path) -> None:
        """Delete a previously staged folder."""
        remove_directory(Path(deployed_folder))
