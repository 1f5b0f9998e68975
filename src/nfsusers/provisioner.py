"""Provisioning workflow: owner -> identity -> allocation -> seed -> descriptor."""

from __future__ import annotations

import logging
import os
import posixpath
import shutil
import time
from typing import TYPE_CHECKING

from nfsusers.archive import ArchiveExtractor, Chown
from nfsusers.errors import AllocationError, MissingOwnerAnnotationError, ProvisionerError
from nfsusers.identity import IdentityResolver
from nfsusers.logging import bind_owner, volume_context
from nfsusers.logging_schema import LogEvent
from nfsusers.metrics import ERRORS, PROVISION_DURATION
from nfsusers.models import (
    VOLUME_SUBDIR,
    BackingAllocation,
    NFSExport,
    ProvisionRequest,
    ReclaimPolicy,
    UserIdentity,
    VolumeDescriptor,
    directory_name,
)

if TYPE_CHECKING:
    from nfsusers.config import ProvisionerConfig

logger = logging.getLogger(__name__)

VOLUME_DIR_MODE = 0o740
PLACEHOLDER_DIR_MODE = 0o750
SENTINEL_MODE = 0o444


class ProvisioningWorkflow:
    """Idempotent per-owner volume provisioning.

    Steps run strictly in order within one call:
    1. Owner from the claim annotations (missing -> MissingOwnerAnnotationError)
    2. Identity from LDAP, or the configured default identity
    3. Sentinel present -> reuse the existing tree as is
    4. Sentinel absent -> remove any stale root and recreate the volume dir
    5. Seed (archive, placeholder dirs or nothing)
    6. Write the sentinel, always last
    7. Build the VolumeDescriptor

    Concurrent calls for the same owner are not serialized here.
    """

    def __init__(
        self,
        config: ProvisionerConfig,
        resolver: IdentityResolver | None = None,
        extractor: ArchiveExtractor | None = None,
        chown: Chown | None = None,
    ) -> None:
        self._config = config
        self._chown = chown or os.chown
        self._resolver = resolver or IdentityResolver(config.ldap)
        self._extractor = extractor or ArchiveExtractor(self._chown)

    def provision(self, request: ProvisionRequest) -> VolumeDescriptor:
        started = time.monotonic()
        outcome = "failed"
        try:
            with volume_context(request.volume_name):
                descriptor, outcome = self._provision(request)
            return descriptor
        except ProvisionerError as e:
            ERRORS.labels(operation="provision", error_code=e.code.value).inc()
            logger.warning(
                "Provision failed",
                extra={
                    "event": LogEvent.PROVISION_FAILED,
                    "volume": request.volume_name,
                    "error_code": e.code.value,
                    "error": str(e),
                },
            )
            raise
        finally:
            PROVISION_DURATION.labels(outcome=outcome).observe(time.monotonic() - started)

    def owner_of(self, request: ProvisionRequest) -> str:
        annotation = self._config.owner_annotation
        owner = request.annotations.get(annotation)
        if not owner:
            raise MissingOwnerAnnotationError(annotation)
        if "/" in owner or "\0" in owner or owner in (".", ".."):
            raise AllocationError(f"Invalid owner name '{owner}'", owner=owner)
        return owner

    def allocation_for(self, owner: str) -> BackingAllocation:
        storage = self._config.storage
        return BackingAllocation.for_owner(
            storage.data_dir, owner, subpath=storage.use_volume_subpath
        )

    def describe(self, request: ProvisionRequest, owner: str) -> VolumeDescriptor:
        export = self._config.export
        parts = [export.path, directory_name(owner)]
        if self._config.storage.use_volume_subpath:
            parts.append(VOLUME_SUBDIR)
        mount_path = posixpath.join(*parts)
        logger.info("NFS path for new volume: '%s:%s'", export.server, mount_path)
        return VolumeDescriptor(
            name=request.volume_name,
            owner=owner,
            capacity=request.capacity,
            access_modes=request.access_modes,
            export=NFSExport(server=export.server, path=mount_path),
            reclaim_policy=ReclaimPolicy.DELETE,
        )

    def _provision(self, request: ProvisionRequest) -> tuple[VolumeDescriptor, str]:
        owner = self.owner_of(request)
        bind_owner(owner)
        identity = self._identity(owner)
        allocation = self.allocation_for(owner)

        logger.info(
            "Provisioning volume",
            extra={
                "event": LogEvent.PROVISION_STARTED,
                "volume": request.volume_name,
                "owner": owner,
                "uid": identity.uid,
                "gid": identity.gid,
            },
        )

        if allocation.is_complete():
            logger.info(
                "Reusing existing allocation",
                extra={
                    "event": LogEvent.PROVISION_REUSED,
                    "volume": request.volume_name,
                    "path": allocation.root,
                },
            )
            return self.describe(request, owner), "reused"

        self._allocate(allocation, identity)
        self._seed(allocation, identity)
        self._mark_complete(allocation)

        logger.info(
            "Volume provisioned",
            extra={
                "event": LogEvent.PROVISION_COMPLETED,
                "volume": request.volume_name,
                "path": allocation.volume,
            },
        )
        return self.describe(request, owner), "created"

    def _identity(self, owner: str) -> UserIdentity:
        if self._config.ldap.enabled:
            return self._resolver.resolve(owner)
        storage = self._config.storage
        return UserIdentity(uid=storage.default_uid, gid=storage.default_gid)

    def _allocate(self, allocation: BackingAllocation, identity: UserIdentity) -> None:
        if os.path.lexists(allocation.root):
            logger.info(
                "Removing incomplete allocation",
                extra={"event": LogEvent.ALLOCATION_RESET, "path": allocation.root},
            )
            try:
                if os.path.isdir(allocation.root) and not os.path.islink(allocation.root):
                    shutil.rmtree(allocation.root)
                else:
                    os.remove(allocation.root)
            except OSError as e:
                raise AllocationError(
                    "Failed to remove directory",
                    owner=allocation.owner,
                    path=allocation.root,
                    cause=e,
                ) from e

        logger.info("Creating path %s", allocation.volume)
        try:
            os.makedirs(allocation.volume, mode=VOLUME_DIR_MODE)
            self._chown(allocation.volume, identity.uid, identity.gid)
        except OSError as e:
            raise AllocationError(
                "Failed to create directory",
                owner=allocation.owner,
                path=allocation.volume,
                cause=e,
            ) from e

    def _seed(self, allocation: BackingAllocation, identity: UserIdentity) -> None:
        storage = self._config.storage
        if storage.seed_mode == "archive":
            self._extractor.extract(
                storage.base_archive,
                storage.effective_work_dir,
                allocation.volume,
                allocation.owner,
                identity.uid,
                identity.gid,
            )
        elif storage.seed_mode == "placeholder":
            for name in storage.placeholder_dirs:
                path = os.path.join(allocation.volume, name)
                try:
                    os.makedirs(path, mode=PLACEHOLDER_DIR_MODE, exist_ok=True)
                    self._chown(path, identity.uid, identity.gid)
                except OSError as e:
                    raise AllocationError(
                        "Failed to create placeholder",
                        owner=allocation.owner,
                        path=path,
                        cause=e,
                    ) from e

    def _mark_complete(self, allocation: BackingAllocation) -> None:
        try:
            fd = os.open(
                allocation.sentinel, os.O_CREAT | os.O_WRONLY | os.O_TRUNC, SENTINEL_MODE
            )
            os.close(fd)
        except OSError as e:
            raise AllocationError(
                "Failed to write success marker",
                owner=allocation.owner,
                path=allocation.sentinel,
                cause=e,
            ) from e
