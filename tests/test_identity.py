from sddlhelp.guid import GUID
from sddlhelp.identity import (
    LDAP_PAGED_RESULT_OID_STRING, ChainedIdentityResolver, IdentityResolver, LDAPIdentityResolver, LDAPSearcher,
    NoNetworkResolver, WellKnownSIDResolver, domain_from_distinguished_name, format_account_name
)
from sddlhelp.sid import SID


class RecordingResolver(IdentityResolver):
    def __init__(self, answer=("CORP", "someone")):
        self.answer = answer
        self.calls = []

    def resolve(self, sid):
        self.calls.append(sid.toString())
        return self.answer


class FakeServerInfo(object):
    def __init__(self):
        self.other = {
            "defaultNamingContext": ["DC=corp,DC=local"],
            "schemaNamingContext": ["CN=Schema,CN=Configuration,DC=corp,DC=local"],
        }


class FakeServer(object):
    def __init__(self):
        self.info = FakeServerInfo()


class FakeSession(object):
    """Serves canned pages of LDAP entries, keyed by the search filter."""

    def __init__(self, pages):
        self.pages = pages
        self.searches = []
        self.response = []
        self.result = {}

    def search(self, base_dn, query, attributes=None, size_limit=0, paged_size=None, paged_cookie=None):
        self.searches.append((base_dn, query, paged_cookie))
        pages = self.pages.get(query, [[]])
        index = 0 if paged_cookie is None else int(paged_cookie.decode())
        self.response = pages[index]
        if index + 1 < len(pages):
            cookie = str(index + 1).encode()
        else:
            cookie = b""
        self.result = {"controls": {LDAP_PAGED_RESULT_OID_STRING: {"value": {"cookie": cookie}}}}


def _entry(dn, **attributes):
    return {"type": "searchResEntry", "dn": dn, "attributes": attributes}


def test_format_account_name():
    assert format_account_name("CORP", "john") == "CORP\\john"
    assert format_account_name("", "Everyone") == "Everyone"
    assert format_account_name(None, "Everyone") == "Everyone"


def test_well_known_resolver():
    resolver = WellKnownSIDResolver()
    assert resolver.resolve(SID.fromStrFormat("S-1-5-18")) == ("NT AUTHORITY", "SYSTEM")
    assert resolver.resolve(SID.fromStrFormat("S-1-1-0")) == ("", "Everyone")
    assert resolver.resolve(SID.fromStrFormat("S-1-5-21-1-2-3-1001")) is None


def test_well_known_guid_names():
    resolver = WellKnownSIDResolver()
    guid = GUID.fromFormatD("00299570-246d-11d0-a768-00aa006e0529")
    assert resolver.resolve_guid(guid) == "Extended Right User-Force-Change-Password"


def test_domain_from_distinguished_name():
    assert domain_from_distinguished_name("CN=john,CN=Users,DC=corp,DC=local") == "corp.local"
    assert domain_from_distinguished_name("CN=john") == ""


def test_ldap_searcher_follows_pages():
    session = FakeSession({
        "(objectClass=user)": [
            [_entry("CN=a,DC=corp,DC=local", sAMAccountName="a"), {"type": "searchResRef"}],
            [_entry("CN=B,DC=corp,DC=local", sAMAccountName="b")],
        ]
    })
    searcher = LDAPSearcher(FakeServer(), session)
    results = searcher.query("DC=corp,DC=local", "(objectClass=user)")
    assert sorted(results.keys()) == ["cn=a,dc=corp,dc=local", "cn=b,dc=corp,dc=local"]
    assert len(session.searches) == 2
    assert searcher.default_naming_context == "DC=corp,DC=local"


def test_ldap_resolver_and_cache():
    sid = "S-1-5-21-1-2-3-1104"
    session = FakeSession({
        "(objectSid=%s)" % sid: [[_entry("CN=John Doe,CN=Users,DC=corp,DC=local", sAMAccountName=["john"])]],
    })
    resolver = LDAPIdentityResolver(LDAPSearcher(FakeServer(), session))
    assert resolver.resolve(SID.fromStrFormat(sid)) == ("CORP.LOCAL", "john")
    assert resolver.resolve(SID.fromStrFormat(sid)) == ("CORP.LOCAL", "john")
    assert len(session.searches) == 1

    assert resolver.resolve(SID.fromStrFormat("S-1-5-21-1-2-3-9999")) is None
    assert resolver.resolve(SID.fromStrFormat("S-1-5-21-1-2-3-9999")) is None
    assert len(session.searches) == 2
    assert session.searches[0][0] == "DC=corp,DC=local"


def test_guid_map_from_schema():
    guid = GUID.fromFormatD("bf967a86-0de6-11d0-a285-00aa003049e2")
    session = FakeSession({
        "(schemaIDGUID=*)": [[_entry("CN=Computer,CN=Schema", schemaIDGUID=[guid.toRawBytes()], ldapDisplayName=["computer"])]],
    })
    searcher = LDAPSearcher(FakeServer(), session)
    searcher.generate_guid_map_from_ldap()
    resolver = LDAPIdentityResolver(searcher)
    assert resolver.resolve_guid(guid) == "LDAP Attribute computer"
    assert resolver.resolve_guid(GUID.fromFormatD("00000000-0000-0000-0000-000000000001")) is None


def test_no_network_resolver_skips_foreign_domain_accounts():
    inner = RecordingResolver()
    machine_sid = SID.fromStrFormat("S-1-5-21-10-20-30")
    resolver = NoNetworkResolver(inner, machine_sid=machine_sid)

    assert resolver.resolve(SID.fromStrFormat("S-1-5-21-99-98-97-1001")) is None
    assert resolver.resolve(SID.fromStrFormat("S-1-5-21-10-20-30-1001")) == ("CORP", "someone")
    assert resolver.resolve(SID.fromStrFormat("S-1-5-32-544")) == ("CORP", "someone")
    assert inner.calls == ["S-1-5-21-10-20-30-1001", "S-1-5-32-544"]


def test_no_network_resolver_without_machine_sid():
    inner = RecordingResolver()
    resolver = NoNetworkResolver(inner)
    assert resolver.resolve(SID.fromStrFormat("S-1-5-21-10-20-30-1001")) is None
    assert resolver.resolve(SID.fromStrFormat("S-1-5-18")) == ("CORP", "someone")


def test_chained_resolver():
    chain = ChainedIdentityResolver(WellKnownSIDResolver(), None, RecordingResolver(("CORP", "fallback")))
    assert chain.resolve(SID.fromStrFormat("S-1-5-18")) == ("NT AUTHORITY", "SYSTEM")
    assert chain.resolve(SID.fromStrFormat("S-1-5-21-1-2-3-1001")) == ("CORP", "fallback")
    assert len(chain.resolvers) == 2
