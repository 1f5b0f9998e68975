"""Domain models exchanged with the calling controller."""

import os
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

PV_NAME_PREFIX = "pv-"
VOLUME_SUBDIR = "volume"
SENTINEL_NAME = ".success"

# Largest valid POSIX id; (uid_t)-1 is reserved for "unchanged" in chown
MAX_ID = 2**32 - 2


class AccessMode(str, Enum):
    """Volume access modes as understood by the orchestrator."""

    READ_WRITE_ONCE = "ReadWriteOnce"
    READ_ONLY_MANY = "ReadOnlyMany"
    READ_WRITE_MANY = "ReadWriteMany"
    READ_WRITE_ONCE_POD = "ReadWriteOncePod"


class ReclaimPolicy(str, Enum):
    DELETE = "Delete"
    RETAIN = "Retain"


class ProvisionRequest(BaseModel):
    """Storage claim handed over by the controller."""

    model_config = ConfigDict(frozen=True)

    volume_name: str = Field(min_length=1)
    capacity: str = Field(min_length=1, description="Requested quantity, e.g. '5Gi'")
    access_modes: frozenset[AccessMode] = frozenset()
    annotations: dict[str, str] = Field(default_factory=dict)


class UserIdentity(BaseModel):
    """Numeric owner identity. Never cached, the directory is the source of truth."""

    model_config = ConfigDict(frozen=True)

    uid: int = Field(ge=0, le=MAX_ID)
    gid: int = Field(ge=0, le=MAX_ID)


class BackingAllocation(BaseModel):
    """On-disk directory tree of one provisioned volume.

    Lifecycle has two states: incomplete (root absent or partially seeded)
    and complete (sentinel present). The sentinel is written only after
    seeding succeeded.
    """

    model_config = ConfigDict(frozen=True)

    owner: str
    root: str
    volume: str
    sentinel: str

    @classmethod
    def for_owner(
        cls, data_dir: str, owner: str, subpath: bool = True
    ) -> "BackingAllocation":
        """Derive the layout; without subpath the root itself is the volume."""
        root = os.path.join(data_dir, directory_name(owner))
        return cls(
            owner=owner,
            root=root,
            volume=os.path.join(root, VOLUME_SUBDIR) if subpath else root,
            sentinel=os.path.join(root, SENTINEL_NAME),
        )

    def is_complete(self) -> bool:
        return os.path.exists(self.sentinel)


class NFSExport(BaseModel):
    """Network export endpoint mounted by the orchestrator."""

    model_config = ConfigDict(frozen=True)

    server: str
    path: str


class VolumeDescriptor(BaseModel):
    """Volume handed back to the controller, which persists it."""

    model_config = ConfigDict(frozen=True)

    name: str
    owner: str
    capacity: str
    access_modes: frozenset[AccessMode] = frozenset()
    export: NFSExport
    reclaim_policy: ReclaimPolicy = ReclaimPolicy.DELETE


class DeleteRequest(BaseModel):
    """Deletion of a previously provisioned volume."""

    model_config = ConfigDict(frozen=True)

    descriptor: VolumeDescriptor


def directory_name(owner: str) -> str:
    """Deterministic allocation directory name for an owner."""
    return f"{PV_NAME_PREFIX}{owner}"
