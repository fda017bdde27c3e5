#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# File name          : __main__.py

import argparse
import binascii
import os
import re
import sys

from sectools.windows.crypto import parse_lm_nt_hashes
from sectools.windows.ldap import init_ldap_session

from sddlhelp import VERSION
from sddlhelp.descriptor import NTSecurityDescriptor
from sddlhelp.exceptions import SddlHelpError
from sddlhelp.identity import ChainedIdentityResolver, LDAPIdentityResolver, LDAPSearcher, NoNetworkResolver, WellKnownSIDResolver
from sddlhelp.logger import Logger
from sddlhelp.permissions import OBJECT_TYPE_DESCRIPTIONS, VOCABULARIES
from sddlhelp.render import DescriptorRenderer, HumanDescriber
from sddlhelp.sddl import descriptor_to_sddl, sddl_to_descriptor
from sddlhelp.sid import SID


def parseArgs(argv=None):
    parser = argparse.ArgumentParser(prog="sddlhelp", add_help=True, description="Decode a security descriptor and describe its access rights with names specific to the protected object type")

    parser.add_argument("--version", action="version", version="sddlhelp v%s" % VERSION)
    parser.add_argument("-V", "--verbose", default=False, action="store_true", help="Verbose mode. (default: False)")

    source = parser.add_mutually_exclusive_group()
    source.add_argument("-v", "--value", default=None, type=str, help="The security descriptor in hexadecimal, or a file containing it")
    source.add_argument("-s", "--sddl", default=None, type=str, help="The security descriptor as an SDDL string")
    source.add_argument("-D", "--distinguishedName", default=None, type=str, help="The distinguishedName of the LDAP object whose ntSecurityDescriptor is described")
    source.add_argument("--list-object-types", default=False, action="store_true", help="List the object types known to --object-type and exit.")

    output = parser.add_argument_group("output")
    output.add_argument("-t", "--object-type", dest="object_type", default=None, type=str, metavar="TYPE", help="Object type whose permission names are used (file, dir, key, service, ntds, ...). \"sddl\" prints the SDDL string.")
    output.add_argument("--one-line", dest="one_line", default=False, action="store_true", help="Print all the permission names of an ACE on one line.")
    output.add_argument("--indent", default=0, type=int, help="Number of spaces in front of every line. (default: 0)")
    output.add_argument("--to-sddl", dest="to_sddl", default=False, action="store_true", help="Print the security descriptor as an SDDL string.")
    output.add_argument("--describe", action="store_true", default=False, help="Describe the raw structure.")
    output.add_argument("--summary", action="store_true", default=False, help="Generate a human readable summary of the rights.")
    output.add_argument("--machine-sid", dest="machine_sid", default=None, type=str, metavar="SID", help="Do not look up names of S-1-5-21-* accounts unless they belong to this machine or domain SID.")
    output.add_argument("--domain-sid", dest="domain_sid", default=None, type=str, metavar="SID", help="Domain SID that the domain aliases of --sddl (DA, DU, ...) are relative to.")
    output.add_argument("--timeout", default=5.0, type=float, help="Seconds to wait for the name of one SID. (default: 5)")

    parser.add_argument("--use-ldaps", action="store_true", default=False, help="Use LDAPS instead of LDAP")

    authconn = parser.add_argument_group("authentication & connection")
    authconn.add_argument("--dc-ip", action="store", metavar="ip address", help="IP Address of the domain controller or KDC (Key Distribution Center) for Kerberos. If omitted it will use the domain part (FQDN) specified in the identity parameter")
    authconn.add_argument("--kdcHost", dest="kdcHost", action="store", metavar="FQDN KDC", help="FQDN of KDC for Kerberos.")
    authconn.add_argument("-d", "--domain", dest="auth_domain", metavar="DOMAIN", action="store", help="(FQDN) domain to authenticate to")
    authconn.add_argument("-u", "--user", dest="auth_username", metavar="USER", action="store", help="user to authenticate with")

    secret = parser.add_argument_group()
    cred = secret.add_mutually_exclusive_group()
    cred.add_argument("--no-pass", action="store_true", help="don't ask for password (useful for -k)")
    cred.add_argument("-p", "--password", dest="auth_password", metavar="PASSWORD", action="store", help="password to authenticate with")
    cred.add_argument("-H", "--hashes", dest="auth_hashes", action="store", metavar="[LMHASH:]NTHASH", help="NT/LM hashes, format is LMhash:NThash")
    cred.add_argument("--aes-key", dest="auth_key", action="store", metavar="hex key", help="AES key to use for Kerberos Authentication (128 or 256 bits)")
    secret.add_argument("-k", "--kerberos", dest="use_kerberos", action="store_true", help="Use Kerberos authentication. Grabs credentials from .ccache file (KRB5CCNAME) based on target parameters. If valid credentials cannot be found, it will use the ones specified in the command line")

    if argv is None:
        argv = sys.argv[1:]
    if len(argv) == 0:
        parser.print_help()
        sys.exit(1)

    options = parser.parse_args(argv)

    if not options.list_object_types and options.value is None and options.sddl is None and options.distinguishedName is None:
        parser.print_help()
        print("\n[+] One of --value, --sddl or --distinguishedName is needed.\n")
        sys.exit(1)

    if options.distinguishedName is not None and options.auth_username is None:
        parser.print_help()
        print("\n[+] --distinguishedName needs LDAP credentials (--user).\n")
        sys.exit(1)

    if options.auth_username is not None:
        if options.auth_password is None and options.no_pass == False and options.auth_hashes is None:
            print("[+] No password of hashes provided and --no-pass is '%s'" % options.no_pass)
            from getpass import getpass
            if options.auth_domain is not None:
                options.auth_password = getpass("  | Provide a password for '%s\\%s':" % (options.auth_domain, options.auth_username))
            else:
                options.auth_password = getpass("  | Provide a password for '%s':" % options.auth_username)

    return options


def read_value(value):
    """
    Returns the bytes of a security descriptor given in hexadecimal, directly or in a file.

    Raises:
        ValueError: If the value is not hexadecimal.
    """
    if os.path.isfile(value):
        print("[+] Loading security descriptor from file '%s'" % value)
        with open(value, 'r') as f:
            value = f.read()
    value = re.sub(r'\s+', '', value)
    if value.lower().startswith("0x"):
        value = value[2:]
    if not re.compile(r'^([0-9a-fA-F]{2})+$').match(value):
        raise ValueError("The security descriptor value must be an even number of hexadecimal digits")
    return binascii.unhexlify(value)


def connect_ldap(options):
    auth_lm_hash, auth_nt_hash = "", ""
    if options.auth_hashes is not None:
        auth_lm_hash, auth_nt_hash = parse_lm_nt_hashes(options.auth_hashes)

    # Use AES Authentication key if available
    if options.auth_key is not None:
        options.use_kerberos = True
    if options.use_kerberos is True and options.kdcHost is None:
        print("[!] Specify KDC's Hostname of FQDN using the argument --kdcHost")
        return None

    # Try to authenticate with specified credentials
    print("[>] Try to authenticate as '%s\\%s' on %s ... " % (options.auth_domain, options.auth_username, options.dc_ip))
    ldap_server, ldap_session = init_ldap_session(
        auth_domain=options.auth_domain,
        auth_dc_ip=options.dc_ip,
        auth_username=options.auth_username,
        auth_password=options.auth_password,
        auth_lm_hash=auth_lm_hash,
        auth_nt_hash=auth_nt_hash,
        auth_key=options.auth_key,
        use_kerberos=options.use_kerberos,
        kdcHost=options.kdcHost,
        use_ldaps=options.use_ldaps
    )
    print("[+] Authentication successful!\n")
    ls = LDAPSearcher(
        ldap_server=ldap_server,
        ldap_session=ldap_session,
        debug=options.verbose
    )
    ls.generate_guid_map_from_ldap()
    return ls


def read_ldap_value(ls, distinguishedName):
    print("[+] Loading ntSecurityDescriptor from the LDAP object '%s'" % distinguishedName)
    results = ls.query(
        base_dn=distinguishedName,
        query="(distinguishedName=%s)" % distinguishedName,
        attributes=["ntSecurityDescriptor"]
    )
    if distinguishedName.lower() not in results.keys():
        print("[!] Could not find an object with the distinguishedName '%s'" % distinguishedName)
        return None
    raw_ntsd_value = results[distinguishedName.lower()]["ntSecurityDescriptor"]
    # This happens sometimes in results of the LDAP queries
    if type(raw_ntsd_value) == list:
        raw_ntsd_value = raw_ntsd_value[0]
    print("[+] ntSecurityDescriptor is loaded!")
    return raw_ntsd_value


def list_object_types():
    print("Object types:")
    width = max([len(tag) for tag in VOCABULARIES.keys()])
    for tag in VOCABULARIES.keys():
        print("  %s : %s" % (tag.ljust(width), OBJECT_TYPE_DESCRIPTIONS[tag]))


def main(argv=None):
    options = parseArgs(argv)

    Logger(level=("DEBUG" if options.verbose else "WARNING"))

    if options.list_object_types:
        list_object_types()
        return 0

    try:
        machine_sid = None
        if options.machine_sid is not None:
            machine_sid = SID.fromStrFormat(options.machine_sid)

        ls = None
        if options.auth_username is not None:
            ls = connect_ldap(options)
            if ls is None:
                return 1

        ldap_resolver = None
        if ls is not None:
            ldap_resolver = LDAPIdentityResolver(ldap_searcher=ls)
            if machine_sid is not None:
                ldap_resolver = NoNetworkResolver(ldap_resolver, machine_sid=machine_sid)
        identity_resolver = ChainedIdentityResolver(WellKnownSIDResolver(), ldap_resolver)

        # Read the security descriptor
        if options.sddl is not None:
            ntsd = sddl_to_descriptor(options.sddl, verbose=options.verbose, domain_sid=options.domain_sid)
        else:
            if options.distinguishedName is not None:
                raw_ntsd_value = read_ldap_value(ls, options.distinguishedName)
                if raw_ntsd_value is None:
                    return 1
            else:
                raw_ntsd_value = read_value(options.value)
            ntsd = NTSecurityDescriptor.fromRawBytes(raw_ntsd_value, verbose=options.verbose)

        if options.verbose:
            print("[>] Final result " + "".center(80, "="))

        with DescriptorRenderer(identity_resolver=identity_resolver, resolve_timeout=options.timeout) as renderer:
            if options.to_sddl:
                print(descriptor_to_sddl(ntsd))
            if options.describe or options.verbose:
                ntsd.describe()
            if not (options.to_sddl or options.describe or options.summary):
                print(renderer.render(
                    ntsd,
                    object_type=options.object_type,
                    one_permission_per_line=(not options.one_line),
                    indent=options.indent
                ), end='')

            if options.summary:
                print("\n" + "==[Summary]".ljust(80, '=') + "\n")
                print(HumanDescriber(ntsd=ntsd, object_type=(options.object_type or "ntds"), renderer=renderer).summary(), end='')

    except (SddlHelpError, ValueError) as e:
        print("[!] %s" % e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
