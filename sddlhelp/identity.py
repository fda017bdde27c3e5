#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# File name          : identity.py

import logging

from ldap3.core.exceptions import LDAPInvalidFilterError

from sddlhelp.guid import GUID
from sddlhelp.sid import SID


logger = logging.getLogger("sddlhelp")


# LDAP controls
# https://docs.microsoft.com/en-us/openspecs/windows_protocols/ms-adts/3c5e87db-4728-4f29-b164-01dd7d7391ea
LDAP_PAGED_RESULT_OID_STRING = "1.2.840.113556.1.4.319"


def format_account_name(domain, username):
    """Returns "domain\\username", or the bare username when there is no domain."""
    if domain is None or len(domain) == 0:
        return username
    return "%s\\%s" % (domain, username)


class IdentityResolver(object):
    """
    Maps a SID to the (domain, username) pair of the account it identifies.

    resolve() returns None when the SID is not known. Implementations may be slow (network
    lookups): callers that must not block run them under a timeout.
    """

    def resolve(self, sid):
        raise NotImplementedError

    def resolve_guid(self, guid):
        """Returns a display name for an object ACE GUID, or None."""
        return None


class WellKnownSIDResolver(IdentityResolver):
    """
    Resolves well-known SIDs (Everyone, NT AUTHORITY\\SYSTEM, BUILTIN\\Administrators, ...) from a static table.
    """

    def __init__(self, table=None):
        super(WellKnownSIDResolver, self).__init__()
        if table is None:
            table = SID.wellKnownSIDs
        self.table = table

    def resolve(self, sid):
        name = self.table.get(sid.toString(), None)
        if name is None:
            return None
        if "\\" in name:
            domain, username = name.split("\\", 1)
            return domain, username
        return "", name

    def resolve_guid(self, guid):
        return guid.wellKnownName()


class LDAPSearcher(object):
    """
    Runs paged LDAP queries over an established ldap3 session.

    Attributes:
        ldap_server (ldap3.Server): The server the session is bound to.
        ldap_session (ldap3.Connection): An established session with the LDAP server.
        schemaIDGUID (dict): schemaIDGUID -> schema object attributes, filled by generate_guid_map_from_ldap().
    """

    def __init__(self, ldap_server, ldap_session, debug=False):
        super(LDAPSearcher, self).__init__()
        self.ldap_server = ldap_server
        self.ldap_session = ldap_session
        self.debug = debug
        self.schemaIDGUID = {}

    def _server_attribute(self, name):
        value = self.ldap_server.info.other[name]
        if type(value) == list:
            value = value[0]
        return value

    @property
    def default_naming_context(self):
        return self._server_attribute("defaultNamingContext")

    def query(self, base_dn, query, attributes=['*'], page_size=1000):
        """
        Executes a paged LDAP search.

        Returns:
            dict: distinguishedName (lowercased) -> attributes of the entry.

        Raises:
            ldap3.core.exceptions.LDAPException: On any error other than an invalid filter, which is logged.
        """

        results = {}
        try:
            # https://ldap3.readthedocs.io/en/latest/searches.html#the-search-operation
            paged_cookie = None
            while True:
                self.ldap_session.search(
                    base_dn,
                    query,
                    attributes=attributes,
                    size_limit=0,
                    paged_size=page_size,
                    paged_cookie=paged_cookie
                )
                for entry in self.ldap_session.response:
                    if entry['type'] != 'searchResEntry':
                        continue
                    results[entry['dn'].lower()] = entry["attributes"]

                controls = self.ldap_session.result.get("controls", {})
                if LDAP_PAGED_RESULT_OID_STRING not in controls.keys():
                    break
                paged_cookie = controls[LDAP_PAGED_RESULT_OID_STRING]["value"]["cookie"]
                if len(paged_cookie) == 0:
                    break
        except LDAPInvalidFilterError:
            logger.error("Invalid Filter '%s' (LDAPInvalidFilterError)" % query)
        return results

    def generate_guid_map_from_ldap(self):
        if self.debug:
            print("[>] Extracting the list of schemaIDGUID ...")

        results = self.query(
            base_dn=self._server_attribute("schemaNamingContext"),
            query="(schemaIDGUID=*)",
            attributes=["schemaIDGUID", "ldapDisplayName"]
        )

        self.schemaIDGUID = {}
        for distinguishedName, attributes in results.items():
            raw_guid = attributes["schemaIDGUID"]
            if type(raw_guid) == list:
                raw_guid = raw_guid[0]
            __guid = GUID.load(data=raw_guid)
            if __guid is None:
                continue

            # Remove lists on some attributes
            for attribute in ["ldapDisplayName"]:
                if type(attributes.get(attribute)) == list:
                    attributes[attribute] = attributes[attribute][0]
            attributes["distinguishedName"] = distinguishedName
            self.schemaIDGUID[__guid.toFormatD()] = attributes

        if self.debug:
            print("[>] done, %d schemaIDGUID loaded." % len(self.schemaIDGUID.keys()))


def domain_from_distinguished_name(distinguishedName):
    """'CN=john,CN=Users,DC=corp,DC=local' -> 'corp.local'"""
    dc_parts = [part.strip()[3:] for part in distinguishedName.split(',') if part.strip().upper().startswith("DC=")]
    return '.'.join(dc_parts)


class LDAPIdentityResolver(IdentityResolver):
    """
    Resolves SIDs of domain accounts by searching the directory for (objectSid=<sid>).
    Lookups are cached, misses included.
    """

    def __init__(self, ldap_searcher, search_base=None):
        super(LDAPIdentityResolver, self).__init__()
        self.ldap_searcher = ldap_searcher
        self.search_base = search_base
        self.__cache = {}

    def resolve(self, sid):
        __sid_str_repr = sid.toString()
        if __sid_str_repr in self.__cache.keys():
            return self.__cache[__sid_str_repr]

        search_base = self.search_base
        if search_base is None:
            search_base = self.ldap_searcher.default_naming_context

        ldap_results = self.ldap_searcher.query(
            base_dn=search_base,
            query="(objectSid=%s)" % __sid_str_repr,
            attributes=["sAMAccountName"]
        )

        resolved = None
        if len(ldap_results.keys()) != 0:
            dn = list(ldap_results.keys())[0]
            sAMAccountName = ldap_results[dn]["sAMAccountName"]
            if type(sAMAccountName) == list:
                sAMAccountName = sAMAccountName[0]
            resolved = (domain_from_distinguished_name(dn).upper(), sAMAccountName)

        self.__cache[__sid_str_repr] = resolved
        return resolved

    def resolve_guid(self, guid):
        __guid = guid.toFormatD()
        if __guid in self.ldap_searcher.schemaIDGUID.keys():
            return "LDAP Attribute %s" % self.ldap_searcher.schemaIDGUID[__guid]["ldapDisplayName"]
        return None


class NoNetworkResolver(IdentityResolver):
    """
    Wraps a resolver and skips domain account SIDs (S-1-5-21-...), which would need a network
    round-trip, unless they belong to the local machine's own accounts.
    """

    def __init__(self, resolver, machine_sid=None):
        super(NoNetworkResolver, self).__init__()
        self.resolver = resolver
        self.machine_sid = machine_sid

    def resolve(self, sid):
        if sid.isNonUniqueSid() and not sid.isMachineLocal(self.machine_sid):
            return None
        return self.resolver.resolve(sid)

    def resolve_guid(self, guid):
        return self.resolver.resolve_guid(guid)


class ChainedIdentityResolver(IdentityResolver):
    """Asks each resolver in turn and returns the first answer."""

    def __init__(self, *resolvers):
        super(ChainedIdentityResolver, self).__init__()
        self.resolvers = [r for r in resolvers if r is not None]

    def resolve(self, sid):
        for resolver in self.resolvers:
            resolved = resolver.resolve(sid)
            if resolved is not None:
                return resolved
        return None

    def resolve_guid(self, guid):
        for resolver in self.resolvers:
            name = resolver.resolve_guid(guid)
            if name is not None:
                return name
        return None
