"""Owner identity resolution against an LDAP directory."""

from __future__ import annotations

import logging
from typing import Any, Callable

from ldap3 import SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from nfsusers.config import LdapConfig
from nfsusers.errors import IdentityLookupError
from nfsusers.logging_schema import LogEvent
from nfsusers.models import MAX_ID, UserIdentity

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[LdapConfig], Connection]


def open_connection(config: LdapConfig) -> Connection:
    """Open an anonymously bound, read-only connection."""
    server = Server(config.server, connect_timeout=config.connect_timeout)
    return Connection(server, auto_bind=True, read_only=True)


def user_filter(attribute: str, username: str) -> str:
    return f"(&({attribute}={escape_filter_chars(username)}))"


def _parse_id(entry: dict[str, Any], attribute: str, username: str) -> int:
    value = entry.get("attributes", {}).get(attribute)
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None:
        raise IdentityLookupError(
            f"Directory entry for user '{username}' has no '{attribute}' attribute",
            owner=username,
        )
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    text = str(value).strip()
    digits = text[1:] if text.startswith("-") else text
    if not (digits.isascii() and digits.isdigit()):
        raise IdentityLookupError(
            f"Attribute '{attribute}' of user '{username}' is not numeric ({text!r})",
            owner=username,
        )
    parsed = int(text)
    if parsed < 0:
        raise IdentityLookupError(
            f"Attribute '{attribute}' of user '{username}' is negative ({parsed})",
            owner=username,
        )
    if parsed > MAX_ID:
        raise IdentityLookupError(
            f"Attribute '{attribute}' of user '{username}' is out of range ({parsed})",
            owner=username,
        )
    return parsed


class IdentityResolver:
    """Maps an owner name to a numeric (uid, gid) pair.

    One connection per call; it is unbound on every exit path. The first
    matching entry is authoritative, further matches are not reconciled.
    """

    def __init__(
        self,
        config: LdapConfig,
        connection_factory: ConnectionFactory | None = None,
    ) -> None:
        self._config = config
        self._connect = connection_factory or open_connection

    def resolve(self, username: str) -> UserIdentity:
        config = self._config
        attributes = list(dict.fromkeys([config.uid_attribute, config.gid_attribute]))

        try:
            connection = self._connect(config)
        except LDAPException as e:
            raise IdentityLookupError(
                f"Failed to connect to LDAP server {config.server}",
                owner=username,
                cause=e,
            ) from e

        try:
            connection.search(
                search_base=config.base_dn,
                search_filter=user_filter(config.user_filter, username),
                search_scope=SUBTREE,
                attributes=attributes,
            )
            entries = [
                entry
                for entry in (connection.response or [])
                if entry.get("type") == "searchResEntry"
            ]
        except LDAPException as e:
            raise IdentityLookupError(
                f"LDAP search for user '{username}' failed",
                owner=username,
                cause=e,
            ) from e
        finally:
            connection.unbind()

        if not entries:
            raise IdentityLookupError(
                f"No directory entry for user '{username}' under {config.base_dn}",
                owner=username,
            )
        if len(entries) > 1:
            logger.debug(
                "Multiple directory entries matched, using the first",
                extra={"owner": username, "matches": len(entries)},
            )

        identity = UserIdentity(
            uid=_parse_id(entries[0], config.uid_attribute, username),
            gid=_parse_id(entries[0], config.gid_attribute, username),
        )
        logger.info(
            "Identity resolved",
            extra={
                "event": LogEvent.IDENTITY_RESOLVED,
                "owner": username,
                "uid": identity.uid,
                "gid": identity.gid,
            },
        )
        return identity
