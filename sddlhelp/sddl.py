#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# File name          : sddl.py

import io
import logging
import re

from winacl.dtyp.security_descriptor import SECURITY_DESCRIPTOR

from sddlhelp.descriptor import NTSecurityDescriptor
from sddlhelp.exceptions import InvalidSecurityDescriptor, InvalidSIDFormat, SDDLConversionError
from sddlhelp.sid import SID


logger = logging.getLogger("sddlhelp")


# SDDL account aliases naming a fixed SID, which winacl stores as bare RIDs or does not know
# https://learn.microsoft.com/en-us/windows/win32/secauthz/sid-strings
SDDL_SID_ALIASES = {
    "AA": "S-1-5-32-579",
    "AC": "S-1-15-2-1",
    "AO": "S-1-5-32-548",
    "BA": "S-1-5-32-544",
    "BG": "S-1-5-32-546",
    "BO": "S-1-5-32-551",
    "BU": "S-1-5-32-545",
    "CD": "S-1-5-32-574",
    "CY": "S-1-5-32-569",
    "ED": "S-1-5-9",
    "ER": "S-1-5-32-573",
    "HA": "S-1-5-32-578",
    "HI": "S-1-16-12288",
    "IS": "S-1-5-32-568",
    "LS": "S-1-5-19",
    "LU": "S-1-5-32-559",
    "LW": "S-1-16-4096",
    "ME": "S-1-16-8192",
    "MU": "S-1-5-32-558",
    "NO": "S-1-5-32-556",
    "NS": "S-1-5-20",
    "OW": "S-1-3-4",
    "PO": "S-1-5-32-550",
    "PU": "S-1-5-32-547",
    "RA": "S-1-5-32-575",
    "RD": "S-1-5-32-555",
    "RE": "S-1-5-32-552",
    "RM": "S-1-5-32-580",
    "RU": "S-1-5-32-554",
    "SI": "S-1-16-16384",
    "SO": "S-1-5-32-549",
    "WR": "S-1-5-33",
}

# SDDL account aliases relative to a domain SID
SDDL_DOMAIN_RID_ALIASES = {
    "AP": 525,
    "CA": 517,
    "CN": 522,
    "DA": 512,
    "DC": 515,
    "DD": 516,
    "DG": 514,
    "DU": 513,
    "EA": 519,
    "EK": 527,
    "KA": 526,
    "LA": 500,
    "LG": 501,
    "PA": 520,
    "RO": 498,
    "RS": 553,
    "SA": 518,
}

# Two letter account fields: the owner, the group, and the last field of an ACE
SDDL_ACCOUNT_ALIAS = re.compile(r'(?<=[OG]:)[A-Z]{2}(?=[GDS]:|$)|(?<=;)[A-Z]{2}(?=\))')


def _domain_sid_string(domain_sid):
    if domain_sid is None:
        return None
    if isinstance(domain_sid, SID):
        return domain_sid.toString()
    try:
        return SID.fromStrFormat(domain_sid).toString()
    except InvalidSIDFormat as e:
        raise SDDLConversionError("Invalid domain SID '%s': %s" % (domain_sid, e))


def expand_sid_aliases(sddl, domain_sid=None):
    """
    Replaces the two letter account aliases of an SDDL string by SID strings.

    Builtin aliases (BA, BU, AO, ...) always expand to their S-1-5-32-* SID. Domain aliases
    (DA, DU, ...) expand to domain_sid followed by their RID. Other aliases are left as they are.

    Raises:
        SDDLConversionError: If a domain alias is used without a domain_sid.
    """
    domain_sid = _domain_sid_string(domain_sid)

    def __expand(match):
        alias = match.group(0)
        if alias in SDDL_SID_ALIASES:
            return SDDL_SID_ALIASES[alias]
        if alias in SDDL_DOMAIN_RID_ALIASES:
            if domain_sid is None:
                raise SDDLConversionError("The SDDL alias '%s' is relative to a domain, a domain SID is needed to convert it" % alias)
            return "%s-%d" % (domain_sid, SDDL_DOMAIN_RID_ALIASES[alias])
        return alias

    return SDDL_ACCOUNT_ALIAS.sub(__expand, sddl)


def descriptor_to_sddl(descriptor):
    """
    Converts a security descriptor to its SDDL string.

    Args:
        descriptor (NTSecurityDescriptor | bytes): The descriptor, parsed or in self-relative binary form.

    Raises:
        SDDLConversionError: If the descriptor cannot be serialized or converted.
    """
    if isinstance(descriptor, NTSecurityDescriptor):
        try:
            descriptor = descriptor.toRawBytes()
        except InvalidSecurityDescriptor as e:
            raise SDDLConversionError(str(e))
    if isinstance(descriptor, bytearray):
        descriptor = bytes(descriptor)
    if not isinstance(descriptor, bytes):
        raise SDDLConversionError("Cannot convert %s to SDDL" % type(descriptor).__name__)

    try:
        sd = SECURITY_DESCRIPTOR.from_buffer(io.BytesIO(descriptor))
        return sd.to_sddl()
    except Exception as e:
        logger.debug("winacl could not convert the security descriptor to SDDL: %r" % e)
        raise SDDLConversionError("Cannot convert the security descriptor to SDDL: %s" % e)



def sddl_to_bytes(sddl, domain_sid=None):
    """
    Converts an SDDL string to a self-relative binary security descriptor.

    Args:
        sddl (str): The SDDL string.
        domain_sid (str | SID): The domain SID that domain aliases (DA, DU, ...) are relative to.

    Raises:
        SDDLConversionError: If sddl is not a valid SDDL string.
    """
    if not isinstance(sddl, str) or len(sddl.strip()) == 0:
        raise SDDLConversionError("An SDDL string is required")
    expanded = expand_sid_aliases(sddl.strip(), domain_sid=domain_sid)
    try:
        sd = SECURITY_DESCRIPTOR.from_sddl(expanded, domain_sid=_domain_sid_string(domain_sid))
        return sd.to_bytes()
    except Exception as e:
        logger.debug("winacl could not parse SDDL '%s': %r" % (expanded, e))
        raise SDDLConversionError("Invalid SDDL '%s': %s" % (sddl, e))


def sddl_to_descriptor(sddl, verbose=False, domain_sid=None):
    """
    Parses an SDDL string into an NTSecurityDescriptor.

    Raises:
        SDDLConversionError: If sddl is not a valid SDDL string.
    """
    raw = sddl_to_bytes(sddl, domain_sid=domain_sid)
    try:
        return NTSecurityDescriptor.fromRawBytes(raw, verbose=verbose)
    except InvalidSecurityDescriptor as e:
        raise SDDLConversionError("SDDL '%s' gave an invalid security descriptor: %s" % (sddl, e))
