"""Unit tests for IdentityResolver."""

from typing import Any

import pytest
from ldap3 import SUBTREE
from ldap3.core.exceptions import LDAPException, LDAPSocketOpenError

from conftest import FakeConnection, ldap_entry
from nfsusers.config import LdapConfig
from nfsusers.errors import ErrorCode, IdentityLookupError
from nfsusers.identity import IdentityResolver, user_filter


@pytest.fixture
def ldap_config() -> LdapConfig:
    return LdapConfig(
        server="ldap.test:389",
        base_dn="ou=users,o=example,c=com",
        user_filter="uid",
        uid_attribute="uidNumber",
        gid_attribute="gidNumber",
    )


def resolver_for(config: LdapConfig, connection: FakeConnection) -> IdentityResolver:
    return IdentityResolver(config, connection_factory=lambda _: connection)


class TestUserFilter:

    def test_equality_filter(self) -> None:
        assert user_filter("uid", "alice") == "(&(uid=alice))"

    def test_escapes_special_characters(self) -> None:
        assert user_filter("uid", "a*)(uid=*") == "(&(uid=a\\2a\\29\\28uid=\\2a))"


class TestResolve:

    def test_returns_uid_and_gid(self, ldap_config: LdapConfig) -> None:
        conn = FakeConnection([ldap_entry(uidNumber=1001, gidNumber=1001)])

        identity = resolver_for(ldap_config, conn).resolve("alice")

        assert (identity.uid, identity.gid) == (1001, 1001)

    def test_search_request(self, ldap_config: LdapConfig) -> None:
        conn = FakeConnection([ldap_entry(uidNumber="1001", gidNumber="100")])

        resolver_for(ldap_config, conn).resolve("alice")

        search = conn.searches[0]
        assert search["search_base"] == "ou=users,o=example,c=com"
        assert search["search_filter"] == "(&(uid=alice))"
        assert search["search_scope"] == SUBTREE
        assert search["attributes"] == ["uidNumber", "gidNumber"]

    def test_same_attribute_requested_once(self, ldap_config: LdapConfig) -> None:
        config = ldap_config.model_copy(update={"gid_attribute": "uidNumber"})
        conn = FakeConnection([ldap_entry(uidNumber="1001")])

        identity = resolver_for(config, conn).resolve("alice")

        assert conn.searches[0]["attributes"] == ["uidNumber"]
        assert identity.gid == 1001

    @pytest.mark.parametrize(
        "value,expected",
        [("1001", 1001), (1001, 1001), (["1001"], 1001), (b"1001", 1001), (" 42 ", 42)],
    )
    def test_parses_attribute_values(
        self, ldap_config: LdapConfig, value: Any, expected: int
    ) -> None:
        conn = FakeConnection([ldap_entry(uidNumber=value, gidNumber=value)])

        identity = resolver_for(ldap_config, conn).resolve("alice")

        assert identity.uid == expected

    def test_first_entry_wins(self, ldap_config: LdapConfig) -> None:
        conn = FakeConnection(
            [
                ldap_entry(uidNumber="1001", gidNumber="1001"),
                ldap_entry(uidNumber="2002", gidNumber="2002"),
            ]
        )

        identity = resolver_for(ldap_config, conn).resolve("alice")

        assert identity.uid == 1001

    def test_ignores_referrals(self, ldap_config: LdapConfig) -> None:
        conn = FakeConnection(
            [
                {"type": "searchResRef", "uri": ["ldap://other/"]},
                ldap_entry(uidNumber="7", gidNumber="8"),
            ]
        )

        identity = resolver_for(ldap_config, conn).resolve("alice")

        assert (identity.uid, identity.gid) == (7, 8)

    def test_connection_released(self, ldap_config: LdapConfig) -> None:
        conn = FakeConnection([ldap_entry(uidNumber="1", gidNumber="1")])

        resolver_for(ldap_config, conn).resolve("alice")

        assert conn.unbound is True


class TestResolveFailures:

    def test_connect_failure(self, ldap_config: LdapConfig) -> None:
        def refuse(_: LdapConfig) -> FakeConnection:
            raise LDAPSocketOpenError("connection refused")

        resolver = IdentityResolver(ldap_config, connection_factory=refuse)

        with pytest.raises(IdentityLookupError) as exc_info:
            resolver.resolve("alice")

        assert exc_info.value.code == ErrorCode.IDENTITY_LOOKUP_FAILED
        assert exc_info.value.owner == "alice"
        assert isinstance(exc_info.value.__cause__, LDAPSocketOpenError)

    def test_search_failure_releases_connection(self, ldap_config: LdapConfig) -> None:
        conn = FakeConnection(error=LDAPException("operations error"))

        with pytest.raises(IdentityLookupError):
            resolver_for(ldap_config, conn).resolve("alice")

        assert conn.unbound is True

    def test_no_entries(self, ldap_config: LdapConfig) -> None:
        conn = FakeConnection([])

        with pytest.raises(IdentityLookupError, match="No directory entry"):
            resolver_for(ldap_config, conn).resolve("ghost")

        assert conn.unbound is True

    def test_non_numeric_attribute(self, ldap_config: LdapConfig) -> None:
        conn = FakeConnection([ldap_entry(uidNumber="abc", gidNumber="1001")])

        with pytest.raises(IdentityLookupError, match="not numeric"):
            resolver_for(ldap_config, conn).resolve("alice")

    @pytest.mark.parametrize("value", ["1_001", "+5", "1e3", "٣", " "])
    def test_only_plain_decimal_accepted(self, ldap_config: LdapConfig, value: str) -> None:
        conn = FakeConnection([ldap_entry(uidNumber=value, gidNumber="1001")])

        with pytest.raises(IdentityLookupError, match="not numeric"):
            resolver_for(ldap_config, conn).resolve("alice")

    def test_missing_attribute(self, ldap_config: LdapConfig) -> None:
        conn = FakeConnection([ldap_entry(uidNumber="1001")])

        with pytest.raises(IdentityLookupError, match="no 'gidNumber' attribute"):
            resolver_for(ldap_config, conn).resolve("alice")

    def test_negative_attribute(self, ldap_config: LdapConfig) -> None:
        conn = FakeConnection([ldap_entry(uidNumber="-1", gidNumber="1001")])

        with pytest.raises(IdentityLookupError, match="negative"):
            resolver_for(ldap_config, conn).resolve("alice")

    @pytest.mark.parametrize("value", ["99999999999", str(2**32 - 1)])
    def test_attribute_above_id_range(self, ldap_config: LdapConfig, value: str) -> None:
        conn = FakeConnection([ldap_entry(uidNumber="1001", gidNumber=value)])

        with pytest.raises(IdentityLookupError, match="out of range"):
            resolver_for(ldap_config, conn).resolve("alice")

    def test_largest_id_accepted(self, ldap_config: LdapConfig) -> None:
        conn = FakeConnection([ldap_entry(uidNumber=str(2**32 - 2), gidNumber="1001")])

        identity = resolver_for(ldap_config, conn).resolve("alice")

        assert identity.uid == 2**32 - 2
