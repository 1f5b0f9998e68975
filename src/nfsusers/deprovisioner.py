"""Volume deletion: retain the data, or soft delete it by renaming."""

from __future__ import annotations

import logging
import os
import posixpath
from typing import TYPE_CHECKING

from nfsusers.errors import ArchivalError
from nfsusers.logging import volume_context
from nfsusers.logging_schema import LogEvent
from nfsusers.metrics import DELETES, ERRORS
from nfsusers.models import VOLUME_SUBDIR, VolumeDescriptor

if TYPE_CHECKING:
    from nfsusers.config import ProvisionerConfig

logger = logging.getLogger(__name__)


class Deprovisioner:
    """Applies the configured delete policy.

    retain:  the orchestrator object goes away, files are untouched.
    archive: <data_dir>/pv-<owner> is renamed to <data_dir>/<prefix>-pv-<owner>.
             Rename only, an existing destination is never merged or replaced.
    """

    def __init__(self, config: ProvisionerConfig) -> None:
        self._config = config

    @property
    def policy(self) -> str:
        return self._config.storage.delete_policy

    def delete(self, descriptor: VolumeDescriptor) -> None:
        DELETES.labels(policy=self.policy).inc()
        with volume_context(descriptor.name, descriptor.owner):
            self._delete(descriptor)

    def _delete(self, descriptor: VolumeDescriptor) -> None:
        if self.policy == "retain":
            # The volume holds the user home, files are never deleted here
            logger.info(
                "Deleting volume from database only",
                extra={"event": LogEvent.VOLUME_RETAINED, "volume": descriptor.name},
            )
            return

        try:
            self._archive(descriptor)
        except ArchivalError as e:
            ERRORS.labels(operation="delete", error_code=e.code.value).inc()
            raise

    def root_for(self, descriptor: VolumeDescriptor) -> str:
        """Map the export path back to the allocation root on local disk."""
        export_root = self._config.export.path
        path = posixpath.normpath(descriptor.export.path)
        rel = posixpath.relpath(path, export_root)
        if rel == "." or rel.startswith(".."):
            raise ArchivalError(
                f"Export path is outside {export_root}",
                owner=descriptor.owner,
                path=descriptor.export.path,
            )

        parts = rel.split("/")
        if self._config.storage.use_volume_subpath and parts[-1] == VOLUME_SUBDIR:
            parts = parts[:-1]
        if len(parts) != 1:
            raise ArchivalError(
                "Export path does not name an allocation root",
                owner=descriptor.owner,
                path=descriptor.export.path,
            )
        return os.path.join(self._config.storage.data_dir, parts[0])

    def archived_path(self, root: str) -> str:
        parent, name = os.path.split(root)
        return os.path.join(parent, f"{self._config.storage.archive_prefix}-{name}")

    def _archive(self, descriptor: VolumeDescriptor) -> None:
        root = self.root_for(descriptor)
        target = self.archived_path(root)

        if not os.path.lexists(root):
            # Retried delete after a successful rename, or nothing was ever allocated
            logger.info(
                "Nothing to archive",
                extra={
                    "event": LogEvent.ARCHIVE_SKIPPED,
                    "volume": descriptor.name,
                    "path": root,
                    "already_archived": os.path.lexists(target),
                },
            )
            return

        if os.path.lexists(target):
            raise ArchivalError(
                "Archive destination already exists",
                owner=descriptor.owner,
                path=target,
            )

        try:
            os.rename(root, target)
        except OSError as e:
            raise ArchivalError(
                f"Failed to archive {root}",
                owner=descriptor.owner,
                path=target,
                cause=e,
            ) from e

        logger.info(
            "Volume archived",
            extra={
                "event": LogEvent.VOLUME_ARCHIVED,
                "volume": descriptor.name,
                "path": root,
                "archived_path": target,
            },
        )
