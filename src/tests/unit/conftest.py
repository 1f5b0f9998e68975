"""Shared fixtures for provisioner unit tests."""

import io
import os
import tarfile
from pathlib import Path
from typing import Any, Callable

import pytest

from nfsusers.config import ExportConfig, LdapConfig, ProvisionerConfig, StorageConfig
from nfsusers.models import AccessMode, ProvisionRequest

OWNER_ANNOTATION = "storage.example.com/owner"

SEED_ENTRIES: dict[str, bytes | None] = {
    "etc": None,
    "etc/profile": b"export PATH=$HOME/bin:$PATH\n",
    "bin": None,
    "README": b"welcome\n",
}


class ChownRecorder:
    """Stand-in for os.chown that records calls instead of changing owners."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, int, int]] = []

    def __call__(self, path: str, uid: int, gid: int) -> None:
        self.calls.append((path, uid, gid))

    @property
    def paths(self) -> set[str]:
        return {path for path, _, _ in self.calls}


class FakeConnection:
    """Minimal ldap3.Connection double exposing search/response/unbind."""

    def __init__(self, response: list[dict[str, Any]] | None = None, error: Exception | None = None) -> None:
        self.response = response or []
        self.error = error
        self.searches: list[dict[str, Any]] = []
        self.unbound = False

    def search(self, **kwargs: Any) -> bool:
        self.searches.append(kwargs)
        if self.error:
            raise self.error
        return bool(self.response)

    def unbind(self) -> bool:
        self.unbound = True
        return True


def ldap_entry(**attributes: Any) -> dict[str, Any]:
    return {"type": "searchResEntry", "dn": "uid=x,ou=users", "attributes": attributes}


def write_tar_gz(path: Path, entries: dict[str, bytes | None]) -> Path:
    """Write a gzip tar where None marks a directory entry."""
    with tarfile.open(path, "w:gz") as archive:
        for name, content in entries.items():
            info = tarfile.TarInfo(name)
            if content is None:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                archive.addfile(info)
            else:
                info.size = len(content)
                info.mode = 0o644
                archive.addfile(info, io.BytesIO(content))
    return path


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def seed_archive(tmp_path: Path) -> Path:
    return write_tar_gz(tmp_path / "base.tar.gz", SEED_ENTRIES)


@pytest.fixture
def chown() -> ChownRecorder:
    return ChownRecorder()


@pytest.fixture
def make_config(data_dir: Path, seed_archive: Path) -> Callable[..., ProvisionerConfig]:
    """Build a ProvisionerConfig rooted in the temporary data dir."""

    def _make(ldap_enabled: bool = True, **storage: Any) -> ProvisionerConfig:
        storage.setdefault("data_dir", str(data_dir))
        storage.setdefault("base_archive", str(seed_archive))
        return ProvisionerConfig(
            owner_annotation=OWNER_ANNOTATION,
            ldap=LdapConfig(enabled=ldap_enabled),
            storage=StorageConfig(**storage),
            export=ExportConfig(server="nfs.example.com", path="/exports/pvs"),
        )

    return _make


@pytest.fixture
def make_request() -> Callable[..., ProvisionRequest]:
    def _make(owner: str | None = "alice", volume_name: str = "pvc-1234") -> ProvisionRequest:
        annotations = {OWNER_ANNOTATION: owner} if owner is not None else {}
        return ProvisionRequest(
            volume_name=volume_name,
            capacity="5Gi",
            access_modes=frozenset({AccessMode.READ_WRITE_MANY}),
            annotations=annotations,
        )

    return _make


def tree(root: Path) -> set[str]:
    """All entries below root, relative to it."""
    found = set()
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            found.add(os.path.relpath(os.path.join(dirpath, name), root))
    return found
