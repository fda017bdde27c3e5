#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# File name          : sid.py

from enum import Enum
import io
import re
import struct

from sddlhelp.exceptions import InvalidSIDFormat


class SID_IDENTIFIER_AUTHORITY(Enum):
    """
    Source: https://learn.microsoft.com/en-us/openspecs/windows_protocols/ms-dtyp/c6ce4275-3d90-4890-ab3a-514745e4637e
    """
    NULL_SID_AUTHORITY = 0x00
    WORLD_SID_AUTHORITY = 0x01
    LOCAL_SID_AUTHORITY = 0x02
    CREATOR_SID_AUTHORITY = 0x03
    NON_UNIQUE_AUTHORITY = 0x04
    SECURITY_NT_AUTHORITY = 0x05
    SECURITY_APP_PACKAGE_AUTHORITY = 0x0f
    SECURITY_MANDATORY_LABEL_AUTHORITY = 0x10
    SECURITY_SCOPED_POLICY_ID_AUTHORITY = 0x11
    SECURITY_AUTHENTICATION_AUTHORITY = 0x12


# First sub-authorities under SECURITY_NT_AUTHORITY
SECURITY_NT_NON_UNIQUE = 21
SECURITY_BUILTIN_DOMAIN_RID = 32
SECURITY_SERVICE_ID_BASE_RID = 80

SID_MAX_SUB_AUTHORITIES = 15


class SID(object):
    """
    Represents a Security Identifier (SID) and provides methods for conversion between its binary and string forms.

    A SID is an immutable value: a revision, a 48-bit identifier authority, and an ordered sequence of
    0 to 15 32-bit sub-authorities. The last sub-authority of an account SID is its relative identifier (RID).

    Attributes:
        revisionLevel (int): The revision level of the SID.
        identifierAuthority (int): The identifier authority value.
        subAuthorities (tuple): The sub-authorities, relative identifier included.
        bytesize (int): The size in bytes of the binary form.

    Methods:
        fromStrFormat(data): Class method to create a SID instance from a string representation.
        fromRawBytes(data): Class method to create a SID instance from raw bytes.
        sharesAuthorityPrefix(other): Tests whether one SID is the authority prefix of the other.
        hasAuthorityAndFirstSubAuthority(authority, rid): Tests the authority and the first sub-authority.

    See: https://learn.microsoft.com/en-us/windows-server/identity/ad-ds/manage/understand-security-identifiers
    https://learn.microsoft.com/en-us/openspecs/windows_protocols/ms-dtyp/f992ad60-0fe4-4b87-9fed-beb478836861
    """

    wellKnownSIDs = {
        "S-1-0-0": "NULL SID",
        "S-1-1-0": "Everyone",
        "S-1-2-0": "LOCAL",
        "S-1-2-1": "CONSOLE LOGON",
        "S-1-3-0": "CREATOR OWNER",
        "S-1-3-1": "CREATOR GROUP",
        "S-1-3-2": "CREATOR OWNER SERVER",
        "S-1-3-3": "CREATOR GROUP SERVER",
        "S-1-3-4": "OWNER RIGHTS",
        "S-1-5-1": "NT AUTHORITY\\DIALUP",
        "S-1-5-2": "NT AUTHORITY\\NETWORK",
        "S-1-5-3": "NT AUTHORITY\\BATCH",
        "S-1-5-4": "NT AUTHORITY\\INTERACTIVE",
        "S-1-5-6": "NT AUTHORITY\\SERVICE",
        "S-1-5-7": "NT AUTHORITY\\ANONYMOUS LOGON",
        "S-1-5-8": "NT AUTHORITY\\PROXY",
        "S-1-5-9": "NT AUTHORITY\\ENTERPRISE DOMAIN CONTROLLERS",
        "S-1-5-10": "NT AUTHORITY\\SELF",
        "S-1-5-11": "NT AUTHORITY\\Authenticated Users",
        "S-1-5-12": "NT AUTHORITY\\RESTRICTED",
        "S-1-5-13": "NT AUTHORITY\\TERMINAL SERVER USER",
        "S-1-5-14": "NT AUTHORITY\\REMOTE INTERACTIVE LOGON",
        "S-1-5-15": "NT AUTHORITY\\This Organization",
        "S-1-5-17": "NT AUTHORITY\\IUSR",
        "S-1-5-18": "NT AUTHORITY\\SYSTEM",
        "S-1-5-19": "NT AUTHORITY\\LOCAL SERVICE",
        "S-1-5-20": "NT AUTHORITY\\NETWORK SERVICE",
        "S-1-5-32": "BUILTIN\\BUILTIN",
        "S-1-5-32-544": "BUILTIN\\Administrators",
        "S-1-5-32-545": "BUILTIN\\Users",
        "S-1-5-32-546": "BUILTIN\\Guests",
        "S-1-5-32-547": "BUILTIN\\Power Users",
        "S-1-5-32-548": "BUILTIN\\Account Operators",
        "S-1-5-32-549": "BUILTIN\\Server Operators",
        "S-1-5-32-550": "BUILTIN\\Print Operators",
        "S-1-5-32-551": "BUILTIN\\Backup Operators",
        "S-1-5-32-552": "BUILTIN\\Replicator",
        "S-1-5-32-554": "BUILTIN\\Pre-Windows 2000 Compatible Access",
        "S-1-5-32-555": "BUILTIN\\Remote Desktop Users",
        "S-1-5-32-556": "BUILTIN\\Network Configuration Operators",
        "S-1-5-32-558": "BUILTIN\\Performance Monitor Users",
        "S-1-5-32-559": "BUILTIN\\Performance Log Users",
        "S-1-5-32-568": "BUILTIN\\IIS_IUSRS",
        "S-1-5-32-569": "BUILTIN\\Cryptographic Operators",
        "S-1-5-32-573": "BUILTIN\\Event Log Readers",
        "S-1-5-32-577": "BUILTIN\\RDS Management Servers",
        "S-1-5-32-578": "BUILTIN\\Hyper-V Administrators",
        "S-1-5-32-579": "BUILTIN\\Access Control Assistance Operators",
        "S-1-5-32-581": "BUILTIN\\System Managed Accounts Group",
        "S-1-5-32-583": "BUILTIN\\Device Owners",
        "S-1-5-64-10": "NT AUTHORITY\\NTLM Authentication",
        "S-1-5-80": "NT SERVICE\\ALL SERVICES",
        "S-1-5-80-956008885-3418522649-1831038044-1853292631-2271478464": "NT SERVICE\\TrustedInstaller",
        "S-1-5-83-0": "NT VIRTUAL MACHINE\\Virtual Machines",
        "S-1-5-84-0-0-0-0-0": "NT AUTHORITY\\USER MODE DRIVERS",
        "S-1-5-113": "NT AUTHORITY\\Local account",
        "S-1-5-114": "NT AUTHORITY\\Local account and member of Administrators group",
        "S-1-15-2-1": "APPLICATION PACKAGE AUTHORITY\\ALL APPLICATION PACKAGES",
        "S-1-15-2-2": "APPLICATION PACKAGE AUTHORITY\\ALL RESTRICTED APPLICATION PACKAGES",
        "S-1-16-0": "Mandatory Label\\Untrusted Mandatory Level",
        "S-1-16-4096": "Mandatory Label\\Low Mandatory Level",
        "S-1-16-8192": "Mandatory Label\\Medium Mandatory Level",
        "S-1-16-8448": "Mandatory Label\\Medium Plus Mandatory Level",
        "S-1-16-12288": "Mandatory Label\\High Mandatory Level",
        "S-1-16-16384": "Mandatory Label\\System Mandatory Level",
        "S-1-16-20480": "Mandatory Label\\Protected Process Mandatory Level",
        "S-1-18-1": "Authentication authority asserted identity",
        "S-1-18-2": "Service asserted identity",
    }

    def __init__(self, revisionLevel=1, identifierAuthority=0, subAuthorities=(), subAuthorityCount=None):
        subAuthorities = tuple(int(s) for s in subAuthorities)
        if subAuthorityCount is not None and subAuthorityCount != len(subAuthorities):
            raise InvalidSIDFormat(
                "SubAuthorityCount is %d but %d sub-authorities were given" % (subAuthorityCount, len(subAuthorities))
            )
        if len(subAuthorities) > SID_MAX_SUB_AUTHORITIES:
            raise InvalidSIDFormat("A SID holds at most %d sub-authorities, got %d" % (SID_MAX_SUB_AUTHORITIES, len(subAuthorities)))
        if not (0 <= revisionLevel <= 0xff):
            raise InvalidSIDFormat("Revision %r does not fit in one byte" % revisionLevel)
        if not (0 <= identifierAuthority < (1 << 48)):
            raise InvalidSIDFormat("IdentifierAuthority %r does not fit in 6 bytes" % identifierAuthority)
        for subAuthority in subAuthorities:
            if not (0 <= subAuthority <= 0xffffffff):
                raise InvalidSIDFormat("SubAuthority %r does not fit in 4 bytes" % subAuthority)

        self._revisionLevel = revisionLevel
        self._identifierAuthority = identifierAuthority
        self._subAuthorities = subAuthorities

    @property
    def revisionLevel(self):
        return self._revisionLevel

    @property
    def identifierAuthority(self):
        return self._identifierAuthority

    @property
    def subAuthorities(self):
        return self._subAuthorities

    @property
    def subAuthorityCount(self):
        return len(self._subAuthorities)

    @property
    def relativeIdentifier(self):
        if len(self._subAuthorities) == 0:
            return None
        return self._subAuthorities[-1]

    @property
    def bytesize(self):
        return 8 + 4 * len(self._subAuthorities)

    @classmethod
    def fromStrFormat(cls, data: str):
        """
        Creates a SID instance from a string representation.

        The expected string format is "S-1-5-21-2127521184-1604012920-1887927527-171278". An authority
        larger than 32 bits may be written as 0x followed by 12 hexadecimal digits.

        Args:
            data (str): The string representation of a SID.

        Returns:
            SID: An instance of the SID class populated with the parsed data.

        Raises:
            InvalidSIDFormat: If the string is not a SID string.
        """

        matched = re.match(r'^S-(\d+)-(0x[0-9a-f]{12}|\d+)((?:-\d+)*)$', data.strip(), re.IGNORECASE)
        if matched is None:
            raise InvalidSIDFormat("'%s' is not a SID string" % data)

        revisionLevel = int(matched.group(1))
        if matched.group(2).lower().startswith("0x"):
            identifierAuthority = int(matched.group(2), 16)
        else:
            identifierAuthority = int(matched.group(2))
        subAuthorities = [int(s) for s in matched.group(3).split('-') if len(s) != 0]

        return cls(revisionLevel, identifierAuthority, subAuthorities)

    @classmethod
    def fromRawBytes(cls, data: bytes):
        """
        Creates a SID instance from raw bytes.

        Only the first 8 + 4 * SubAuthorityCount bytes are consumed, trailing data is ignored.

        Args:
            data (bytes): The raw bytes representing a SID.

        Returns:
            SID: An instance of the SID class populated with the parsed data.

        Raises:
            InvalidSIDFormat: If the data is shorter than the advertised sub-authority count requires.
        """

        if len(data) < 8:
            raise InvalidSIDFormat("SID needs at least 8 bytes, got %d" % len(data))

        rawData = io.BytesIO(data)

        revisionLevel = struct.unpack('<B', rawData.read(1))[0]
        subAuthorityCount = struct.unpack('<B', rawData.read(1))[0]

        if subAuthorityCount > SID_MAX_SUB_AUTHORITIES:
            raise InvalidSIDFormat("SubAuthorityCount %d is larger than %d" % (subAuthorityCount, SID_MAX_SUB_AUTHORITIES))
        if len(data) < 8 + 4 * subAuthorityCount:
            raise InvalidSIDFormat(
                "SubAuthorityCount is %d but only %d bytes of sub-authorities are available" % (subAuthorityCount, len(data) - 8)
            )

        __high, __low = struct.unpack('>HI', rawData.read(6))
        identifierAuthority = (__high << 32) + __low

        subAuthorities = []
        for k in range(subAuthorityCount):
            subAuthorities.append(struct.unpack('<I', rawData.read(4))[0])

        return cls(revisionLevel, identifierAuthority, subAuthorities)

    def toRawBytes(self):
        """
        Converts the SID instance into its raw bytes representation.

        Returns:
            bytes: The raw bytes representation of the SID.
        """

        data = b''
        data += struct.pack("<B", self._revisionLevel)
        data += struct.pack("<B", len(self._subAuthorities))
        data += struct.pack(">HI", self._identifierAuthority >> 32, self._identifierAuthority & 0xffffffff)
        for __subAuthority in self._subAuthorities:
            data += struct.pack("<I", __subAuthority)
        return data

    def toString(self):
        """
        Converts the SID instance into its canonical string representation, S-<revision>-<authority>-<sub1>-...

        The authority is written in decimal, unless it does not fit in 32 bits, in which case it is written
        as 0x followed by the 12 hexadecimal digits of the 6-byte authority.

        Returns:
            str: The string representation of the SID.
        """

        if self._identifierAuthority >= (1 << 32):
            authority = "0x%012x" % self._identifierAuthority
        else:
            authority = "%d" % self._identifierAuthority

        elements = [str(self._revisionLevel), authority] + [str(s) for s in self._subAuthorities]

        return "S-%s" % '-'.join(elements)

    def sharesAuthorityPrefix(self, other):
        """
        Returns True if the shorter of the two SIDs is a prefix of the longer one: same revision, same
        authority, and its n sub-authorities are the first n sub-authorities of the other SID.

        Used to detect identities issued by the same authority, for instance accounts of the local machine
        compared against the machine SID.
        """

        if other is None:
            return False
        if self._revisionLevel != other.revisionLevel or self._identifierAuthority != other.identifierAuthority:
            return False
        if len(self._subAuthorities) <= len(other.subAuthorities):
            shorter, longer = self._subAuthorities, other.subAuthorities
        else:
            shorter, longer = other.subAuthorities, self._subAuthorities
        return longer[:len(shorter)] == shorter

    def hasAuthorityAndFirstSubAuthority(self, identifierAuthority, rid):
        """
        Returns True if the SID was issued by identifierAuthority and its first sub-authority is rid.
        A SID without any sub-authority never matches.
        """

        if isinstance(identifierAuthority, SID_IDENTIFIER_AUTHORITY):
            identifierAuthority = identifierAuthority.value
        if len(self._subAuthorities) == 0:
            return False
        return self._identifierAuthority == identifierAuthority and self._subAuthorities[0] == rid

    def isNtServiceSid(self):
        """Reports whether the SID is an NT SERVICE SID (S-1-5-80-...)"""
        return self.hasAuthorityAndFirstSubAuthority(SID_IDENTIFIER_AUTHORITY.SECURITY_NT_AUTHORITY, SECURITY_SERVICE_ID_BASE_RID)

    def isNonUniqueSid(self):
        """Reports whether the SID is a machine or domain account SID (S-1-5-21-...)"""
        return self.hasAuthorityAndFirstSubAuthority(SID_IDENTIFIER_AUTHORITY.SECURITY_NT_AUTHORITY, SECURITY_NT_NON_UNIQUE)

    def isMachineLocal(self, machineSid):
        """
        Returns True if this SID has the same base SID as the local machine's SID. Names of such SIDs
        can be looked up on the machine itself without going over the network.
        """

        if machineSid is None:
            return False
        return self.sharesAuthorityPrefix(machineSid)

    def wellKnownName(self):
        return self.wellKnownSIDs.get(self.toString(), None)

    def __eq__(self, other):
        if not isinstance(other, SID):
            return NotImplemented
        return (
            self._revisionLevel == other.revisionLevel
            and self._identifierAuthority == other.identifierAuthority
            and self._subAuthorities == other.subAuthorities
        )

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash((self._revisionLevel, self._identifierAuthority, self._subAuthorities))

    def __str__(self):
        """
        Returns the string representation of the SID, followed by its description if it is a well-known SID.
        """
        str_repr = self.toString()
        if str_repr not in self.wellKnownSIDs.keys():
            return "<SID '%s'>" % str_repr
        else:
            return "<SID '%s' (%s)>" % (str_repr, self.wellKnownSIDs[str_repr])

    __repr__ = __str__

    def describe(self, offset=0, indent=0, title="SID", displayName=None):
        indent_prompt = " │ " * indent
        print("%s<%s at offset \x1b[95m0x%x\x1b[0m (size=\x1b[95m0x%x\x1b[0m)>" % (indent_prompt, title, offset, self.bytesize))
        if displayName is None:
            displayName = self.wellKnownName()
        if displayName is None:
            print("%s │ \x1b[93mSID\x1b[0m : \x1b[96m%s\x1b[0m" % (indent_prompt, self.toString()))
        else:
            print("%s │ \x1b[93mSID\x1b[0m : \x1b[96m%s\x1b[0m (\x1b[94m%s\x1b[0m)" % (indent_prompt, self.toString(), displayName))
        print(''.join([" │ "]*indent + [" └─"]))
