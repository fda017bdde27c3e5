#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# File name          : descriptor.py

from enum import Enum
import binascii
import logging
import struct

from sddlhelp.acl import DiscretionaryAccessControlList, SystemAccessControlList
from sddlhelp.constants import SecurityDescriptorControl
from sddlhelp.exceptions import InvalidACL, InvalidSecurityDescriptor, InvalidSIDFormat
from sddlhelp.sid import SID


logger = logging.getLogger("sddlhelp")


SECURITY_DESCRIPTOR_REVISION = 1
SECURITY_DESCRIPTOR_HEADER_SIZE = 20


class AclState(Enum):
    """
    What a security descriptor says about one of its ACLs.

    ABSENT  : the *_PRESENT control bit is not set
    NULL    : the control bit is set but there is no ACL (a NULL DACL grants everyone full control)
    EMPTY   : an ACL with no entries (an empty DACL denies everyone)
    ENTRIES : an ACL with at least one entry
    INVALID : the ACL could not be parsed
    """
    ABSENT = "absent"
    NULL = "null"
    EMPTY = "empty"
    ENTRIES = "entries"
    INVALID = "invalid"


def acl_state(present, acl):
    if not present:
        return AclState.ABSENT
    elif acl is None:
        return AclState.NULL
    elif acl.ace_count == 0:
        return AclState.EMPTY
    return AclState.ENTRIES


class NTSecurityDescriptor(object):
    """
    A self-relative security descriptor: a 20-byte header followed by the owner SID, the group SID,
    the SACL and the DACL, each located by an offset from the start of the descriptor.

        Revision (1 byte), Sbz1 (1 byte), Control (2 bytes),
        OffsetOwner (4 bytes), OffsetGroup (4 bytes), OffsetSacl (4 bytes), OffsetDacl (4 bytes)

    A part that cannot be parsed does not stop the others from being parsed: its error is kept in
    owner_error, group_error, dacl_error or sacl_error, and the ACL state becomes AclState.INVALID.

    https://learn.microsoft.com/en-us/openspecs/windows_protocols/ms-dtyp/7d4dac05-9cef-4563-a058-f108abecce1d
    """

    def __init__(self, control=0, owner=None, group=None, dacl=None, sacl=None, revision=SECURITY_DESCRIPTOR_REVISION,
                 dacl_state=None, sacl_state=None, value=None):
        self.revision = revision
        control = SecurityDescriptorControl(control)
        if dacl is not None:
            control |= SecurityDescriptorControl.SE_DACL_PRESENT
        if sacl is not None:
            control |= SecurityDescriptorControl.SE_SACL_PRESENT
        self.control = control
        self.owner = owner
        self.group = group
        self.dacl = dacl
        self.sacl = sacl
        self.value = value
        #
        self.owner_error = None
        self.group_error = None
        self.dacl_error = None
        self.sacl_error = None
        #
        self.offset_owner = 0
        self.offset_group = 0
        self.offset_sacl = 0
        self.offset_dacl = 0
        #
        if dacl_state is None:
            dacl_state = acl_state(bool(control & SecurityDescriptorControl.SE_DACL_PRESENT), dacl)
        self.dacl_state = dacl_state
        if sacl_state is None:
            sacl_state = acl_state(bool(control & SecurityDescriptorControl.SE_SACL_PRESENT), sacl)
        self.sacl_state = sacl_state

    @classmethod
    def fromRawBytes(cls, data: bytes, verbose=False):
        """
        Parses a self-relative security descriptor.

        Raises:
            InvalidSecurityDescriptor: If data is not bytes, is shorter than the header, or has a revision other than 1.
        """
        if isinstance(data, bytearray):
            data = bytes(data)
        if not isinstance(data, bytes):
            raise InvalidSecurityDescriptor("A security descriptor is given as bytes, not %s" % type(data).__name__)

        if verbose:
            print("[>] Parsing %s\n  | value: %s" % (cls, binascii.hexlify(data)))

        if len(data) < SECURITY_DESCRIPTOR_HEADER_SIZE:
            raise InvalidSecurityDescriptor("Security descriptor header needs %d bytes, got %d" % (SECURITY_DESCRIPTOR_HEADER_SIZE, len(data)))

        revision, sbz1, control, offset_owner, offset_group, offset_sacl, offset_dacl = struct.unpack('<BBHIIII', data[:SECURITY_DESCRIPTOR_HEADER_SIZE])

        if revision != SECURITY_DESCRIPTOR_REVISION:
            raise InvalidSecurityDescriptor("Unsupported security descriptor revision %d" % revision)

        control = SecurityDescriptorControl(control)

        owner, owner_error = cls._parse_sid(data, offset_owner, "owner")
        group, group_error = cls._parse_sid(data, offset_group, "group")

        dacl, dacl_state, dacl_error = cls._parse_acl(
            data, offset_dacl, bool(control & SecurityDescriptorControl.SE_DACL_PRESENT), DiscretionaryAccessControlList, verbose
        )
        sacl, sacl_state, sacl_error = cls._parse_acl(
            data, offset_sacl, bool(control & SecurityDescriptorControl.SE_SACL_PRESENT), SystemAccessControlList, verbose
        )

        self = cls(
            control=control,
            owner=owner,
            group=group,
            dacl=dacl,
            sacl=sacl,
            revision=revision,
            dacl_state=dacl_state,
            sacl_state=sacl_state,
            value=data
        )
        # Keep the control word exactly as read
        self.control = control
        self.owner_error, self.group_error = owner_error, group_error
        self.dacl_error, self.sacl_error = dacl_error, sacl_error
        self.offset_owner, self.offset_group = offset_owner, offset_group
        self.offset_sacl, self.offset_dacl = offset_sacl, offset_dacl

        if verbose:
            self.describe()

        return self

    @staticmethod
    def _parse_sid(data, offset, title):
        if offset == 0:
            return None, None
        if offset < SECURITY_DESCRIPTOR_HEADER_SIZE or offset >= len(data):
            error = InvalidSIDFormat("The %s offset 0x%x is outside of the security descriptor" % (title, offset))
            logger.warning(str(error))
            return None, error
        try:
            return SID.fromRawBytes(data[offset:]), None
        except InvalidSIDFormat as e:
            logger.warning("Could not parse the %s SID: %s" % (title, e))
            return None, e

    @staticmethod
    def _parse_acl(data, offset, present, acl_class, verbose=False):
        if not present:
            # The offset is meaningless without the *_PRESENT control bit
            return None, AclState.ABSENT, None
        if offset == 0:
            return None, AclState.NULL, None
        if offset < SECURITY_DESCRIPTOR_HEADER_SIZE or offset >= len(data):
            error = InvalidACL("The %s offset 0x%x is outside of the security descriptor" % (acl_class.kind, offset))
            logger.warning(str(error))
            return None, AclState.INVALID, error
        try:
            acl = acl_class.fromRawBytes(data[offset:], verbose=verbose)
        except InvalidACL as e:
            logger.warning("Could not parse the %s: %s" % (acl_class.kind, e))
            return None, AclState.INVALID, e
        return acl, acl_state(True, acl), None

    def toRawBytes(self):
        """
        Serializes the descriptor in self-relative form, laid out as header, owner, group, DACL, SACL.

        Raises:
            InvalidSecurityDescriptor: If the DACL or the SACL is in the INVALID state.
        """
        control = self.control | SecurityDescriptorControl.SE_SELF_RELATIVE
        body = b''
        offsets = {"owner": 0, "group": 0, "dacl": 0, "sacl": 0}

        for name, sid in (("owner", self.owner), ("group", self.group)):
            if sid is not None:
                offsets[name] = SECURITY_DESCRIPTOR_HEADER_SIZE + len(body)
                body += sid.toRawBytes()

        for name, acl, state, flag in (
            ("dacl", self.dacl, self.dacl_state, SecurityDescriptorControl.SE_DACL_PRESENT),
            ("sacl", self.sacl, self.sacl_state, SecurityDescriptorControl.SE_SACL_PRESENT)
        ):
            if state == AclState.INVALID:
                raise InvalidSecurityDescriptor("Cannot serialize a security descriptor with an invalid %s" % name.upper())
            elif state == AclState.ABSENT:
                control &= ~flag
            elif state == AclState.NULL:
                control |= flag
            else:
                control |= flag
                offsets[name] = SECURITY_DESCRIPTOR_HEADER_SIZE + len(body)
                body += acl.toRawBytes()

        header = struct.pack(
            '<BBHIIII',
            self.revision, 0, int(control) & 0xffff,
            offsets["owner"], offsets["group"], offsets["sacl"], offsets["dacl"]
        )
        return header + body

    def describe(self, offset=0, indent=0):
        indent_prompt = " │ " * (indent + 1)
        print("<NTSecurityDescriptor>")
        print("%s<NTSecurityDescriptor_Header at offset \x1b[95m0x%x\x1b[0m (size=\x1b[95m0x%x\x1b[0m)>" % (indent_prompt, offset, SECURITY_DESCRIPTOR_HEADER_SIZE))
        print("%s │ \x1b[93mRevision\x1b[0m    : \x1b[96m0x%02x\x1b[0m" % (indent_prompt, self.revision))
        print("%s │ \x1b[93mControl\x1b[0m     : \x1b[96m0x%04x\x1b[0m (\x1b[94m%s\x1b[0m)" % (indent_prompt, self.control.value, self.control.name))
        print("%s │ \x1b[93mOffsetOwner\x1b[0m : \x1b[96m0x%08x\x1b[0m" % (indent_prompt, self.offset_owner))
        print("%s │ \x1b[93mOffsetGroup\x1b[0m : \x1b[96m0x%08x\x1b[0m" % (indent_prompt, self.offset_group))
        print("%s │ \x1b[93mOffsetSacl\x1b[0m  : \x1b[96m0x%08x\x1b[0m" % (indent_prompt, self.offset_sacl))
        print("%s │ \x1b[93mOffsetDacl\x1b[0m  : \x1b[96m0x%08x\x1b[0m" % (indent_prompt, self.offset_dacl))
        print("%s └─" % indent_prompt)

        for title, sid, sid_offset, error in (
            ("OwnerSID", self.owner, self.offset_owner, self.owner_error),
            ("GroupSID", self.group, self.offset_group, self.group_error)
        ):
            if sid is not None:
                sid.describe(offset=sid_offset, indent=indent + 1, title=title)
            elif error is not None:
                print("%s<%s is \x1b[91minvalid\x1b[0m: %s>" % (indent_prompt, title, error))
                print("%s └─" % indent_prompt)

        acls = [
            (self.offset_dacl, "DiscretionaryAccessControlList", self.dacl, self.dacl_state, self.dacl_error),
            (self.offset_sacl, "SystemAccessControlList", self.sacl, self.sacl_state, self.sacl_error),
        ]
        for acl_offset, title, acl, state, error in sorted(acls, key=lambda x: x[0]):
            if acl is not None:
                acl.describe(offset=acl_offset, indent=indent + 1)
            elif state == AclState.INVALID:
                print("%s<%s is \x1b[91minvalid\x1b[0m: %s>" % (indent_prompt, title, error))
                print("%s └─" % indent_prompt)
            elif state == AclState.NULL:
                print("%s<%s is \x1b[91mNULL\x1b[0m>" % (indent_prompt, title))
                print("%s └─" % indent_prompt)
            else:
                print("%s<%s is \x1b[91mnot present\x1b[0m>" % (indent_prompt, title))
                print("%s └─" % indent_prompt)
        print(" └─")
