"""Provisioner configuration using pydantic-settings.

Configuration hierarchy:
- LdapConfig: Directory service used to resolve owner uid/gid
- StorageConfig: Backing directory layout, seeding and delete policy
- ExportConfig: NFS endpoint handed to the orchestrator
- LoggingConfig: Logging behavior
- ServerConfig: HTTP surface for out-of-process controllers
- ProvisionerConfig: Main config aggregating all sub-configs

Environment variable prefix: NFSUSERS_
Example: NFSUSERS_STORAGE_DATA_DIR=/data
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from nfsusers.models import MAX_ID


def _absolute_dir(v: str, field: str) -> str:
    if not v:
        raise ValueError(f"{field} cannot be empty")
    if not v.startswith("/"):
        raise ValueError(
            f"Invalid {field} '{v}': must be an absolute path starting with '/'"
        )
    return v.rstrip("/") or "/"


class LdapConfig(BaseSettings):
    """LDAP directory configuration.

    The user filter is used internally in the form (&({user_filter}={username})).
    """

    model_config = SettingsConfigDict(env_prefix="NFSUSERS_LDAP_", frozen=True)

    enabled: bool = Field(
        default=True,
        description="Resolve owner uid/gid through LDAP (default identity otherwise)",
    )
    server: str = Field(
        default="ldap.example.com:389",
        description="Address of LDAP server where user data is stored",
    )
    base_dn: str = Field(
        default="ou=users,o=example,c=com",
        description="Base DN for user queries",
    )
    user_filter: str = Field(default="uid", description="Attribute matched against the owner")
    uid_attribute: str = Field(default="uidNumber", description="Attribute holding the user uid")
    gid_attribute: str = Field(default="uidNumber", description="Attribute holding the user gid")
    connect_timeout: float = Field(default=10.0, description="Connect timeout (seconds)")

    @field_validator("server", "base_dn", "user_filter", "uid_attribute", "gid_attribute")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("LDAP settings cannot be empty")
        return v


class StorageConfig(BaseSettings):
    """Backing directory configuration.

    Seed modes:
      archive     -> extract base_archive into the volume directory
      placeholder -> create placeholder_dirs inside the volume directory
      none        -> leave the volume directory empty
    """

    model_config = SettingsConfigDict(env_prefix="NFSUSERS_STORAGE_", frozen=True)

    data_dir: str = Field(
        default="/data",
        description="Path where pv's are created inside the container",
    )
    base_archive: str = Field(
        default="/data/base.tar.gz",
        description="Archive extracted into new volumes (only .tar.gz supported)",
    )
    work_dir: str | None = Field(
        default=None,
        description="Directory for temporary decompressed archives (default: data_dir)",
    )
    seed_mode: Literal["archive", "placeholder", "none"] = Field(default="archive")
    placeholder_dirs: list[str] = Field(default=["data"])
    use_volume_subpath: bool = Field(
        default=True,
        description="Export <root>/volume instead of the allocation root",
    )

    # Delete behavior
    delete_policy: Literal["retain", "archive"] = Field(default="retain")
    archive_prefix: str = Field(default="archived", description="Name prefix for archived roots")

    # Identity used when LDAP is disabled
    default_uid: int = Field(default=1000, ge=0, le=MAX_ID)
    default_gid: int = Field(default=1000, ge=0, le=MAX_ID)

    @field_validator("data_dir")
    @classmethod
    def validate_data_dir(cls, v: str) -> str:
        return _absolute_dir(v, "data_dir")

    @field_validator("work_dir")
    @classmethod
    def validate_work_dir(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _absolute_dir(v, "work_dir")

    @field_validator("placeholder_dirs")
    @classmethod
    def validate_placeholder_dirs(cls, v: list[str]) -> list[str]:
        for name in v:
            if not name or "/" in name or name in (".", ".."):
                raise ValueError(
                    f"Invalid placeholder directory '{name}': must be a plain name"
                )
        return v

    @field_validator("archive_prefix")
    @classmethod
    def validate_archive_prefix(cls, v: str) -> str:
        if not v or "/" in v:
            raise ValueError(f"Invalid archive_prefix '{v}': must be a plain name")
        return v

    @property
    def effective_work_dir(self) -> str:
        return self.work_dir or self.data_dir


class ExportConfig(BaseSettings):
    """NFS export configuration."""

    model_config = SettingsConfigDict(env_prefix="NFSUSERS_EXPORT_", frozen=True)

    server: str = Field(default="127.0.0.1", description="NFS server where pv's are stored")
    path: str = Field(default="/exports/pvs", description="NFS path where pv's are stored")

    @field_validator("server")
    @classmethod
    def validate_server(cls, v: str) -> str:
        if not v:
            raise ValueError("export server cannot be empty")
        return v

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        return _absolute_dir(v, "export path")


class LoggingConfig(BaseSettings):
    """Logging configuration.

    - text: Human-readable for local development
    - json: Structured logging for production (log aggregation)
    """

    model_config = SettingsConfigDict(env_prefix="NFSUSERS_LOGGING_", frozen=True)

    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: Literal["text", "json"] = Field(default="text")
    service_name: str = Field(default="nfsusers-provisioner", description="Service identifier in logs")


class ServerConfig(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(env_prefix="NFSUSERS_SERVER_", frozen=True)

    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(default=8082, description="Server port")
    api_key: str = Field(default="", description="API key for authentication")


class ProvisionerConfig(BaseSettings):
    """Main provisioner configuration aggregating all sub-configs.

    Environment variable prefix: NFSUSERS_
    Sub-configs use their own prefixes (NFSUSERS_LDAP_, NFSUSERS_STORAGE_, etc.)
    """

    model_config = SettingsConfigDict(
        env_prefix="NFSUSERS_",
        env_nested_delimiter="__",
        frozen=True,
    )

    name: str = Field(
        default="storage.example.com/custom",
        description="The name of this provisioner",
    )
    owner_annotation: str = Field(
        default="storage.example.com/owner",
        description="Annotation identifying the owner user of the provisioned pv",
    )

    ldap: LdapConfig = Field(default_factory=LdapConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @field_validator("name", "owner_annotation")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("provisioner name and owner annotation cannot be empty")
        return v

    @model_validator(mode="after")
    def validate_archive_seed(self) -> Self:
        """Archive seeding needs a gzip tar archive."""
        if self.storage.seed_mode == "archive" and not self.storage.base_archive:
            raise ValueError(
                "storage.base_archive is required when seed_mode is 'archive'. "
                "Set NFSUSERS_STORAGE_BASE_ARCHIVE env var."
            )
        return self

    def summary(self) -> dict[str, object]:
        """Effective settings for the startup log, secrets masked."""
        data = self.model_dump()
        if data["server"]["api_key"]:
            data["server"]["api_key"] = "***"
        return data


@lru_cache
def get_config() -> ProvisionerConfig:
    """Get cached provisioner configuration singleton."""
    return ProvisionerConfig()
