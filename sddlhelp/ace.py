#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# File name          : ace.py

import binascii
import logging
import struct

from sddlhelp.constants import AccessControlEntry_Flags, AccessControlEntry_Type, AccessControlObjectTypeFlags
from sddlhelp.exceptions import AceDecodeError, InvalidSIDFormat
from sddlhelp.guid import GUID
from sddlhelp.sid import SID


logger = logging.getLogger("sddlhelp")


ACE_HEADER_SIZE = 4
ACCESS_MASK_SIZE = 4
OBJECT_FLAGS_SIZE = 4
GUID_SIZE = 16

# Header, access mask, then the trustee SID
SIMPLE_ACE_TYPES = frozenset([
    AccessControlEntry_Type.ACCESS_ALLOWED_ACE_TYPE,
    AccessControlEntry_Type.ACCESS_DENIED_ACE_TYPE,
    AccessControlEntry_Type.SYSTEM_AUDIT_ACE_TYPE,
    AccessControlEntry_Type.SYSTEM_ALARM_ACE_TYPE,
    AccessControlEntry_Type.ACCESS_ALLOWED_CALLBACK_ACE_TYPE,
    AccessControlEntry_Type.ACCESS_DENIED_CALLBACK_ACE_TYPE,
    AccessControlEntry_Type.SYSTEM_AUDIT_CALLBACK_ACE_TYPE,
    AccessControlEntry_Type.SYSTEM_ALARM_CALLBACK_ACE_TYPE,
    AccessControlEntry_Type.SYSTEM_MANDATORY_LABEL_ACE_TYPE,
])

# Header, access mask, presence flags, up to two GUIDs, then the trustee SID
OBJECT_ACE_TYPES = frozenset([
    AccessControlEntry_Type.ACCESS_ALLOWED_OBJECT_ACE_TYPE,
    AccessControlEntry_Type.ACCESS_DENIED_OBJECT_ACE_TYPE,
    AccessControlEntry_Type.SYSTEM_AUDIT_OBJECT_ACE_TYPE,
    AccessControlEntry_Type.SYSTEM_ALARM_OBJECT_ACE_TYPE,
    AccessControlEntry_Type.ACCESS_ALLOWED_CALLBACK_OBJECT_ACE_TYPE,
    AccessControlEntry_Type.ACCESS_DENIED_CALLBACK_OBJECT_ACE_TYPE,
    AccessControlEntry_Type.SYSTEM_AUDIT_CALLBACK_OBJECT_ACE_TYPE,
    AccessControlEntry_Type.SYSTEM_ALARM_CALLBACK_OBJECT_ACE_TYPE,
])

# Header, access mask, CompoundAceType (2 bytes), Reserved (2 bytes), server SID, client SID
COMPOUND_ACE_TYPES = frozenset([
    AccessControlEntry_Type.ACCESS_ALLOWED_COMPOUND_ACE_TYPE,
])


class UnknownAceType(object):
    """
    AceType byte that does not name any known ACE kind. Kept as a value so the entry can still be listed.
    """

    name = None

    def __init__(self, value):
        self.value = value

    def __eq__(self, other):
        if not isinstance(other, UnknownAceType):
            return NotImplemented
        return self.value == other.value

    def __hash__(self):
        return hash(("UnknownAceType", self.value))

    def __repr__(self):
        return "<UnknownAceType 0x%02x>" % self.value


def parse_ace_type(value):
    """Maps an AceType byte to an AccessControlEntry_Type member, or to an UnknownAceType."""
    if isinstance(value, (AccessControlEntry_Type, UnknownAceType)):
        return value
    try:
        return AccessControlEntry_Type(value)
    except ValueError:
        return UnknownAceType(value)


def is_object_ace_type(ace_type):
    return parse_ace_type(ace_type) in OBJECT_ACE_TYPES


def locate_trustee(ace_type, object_flags=None):
    """
    Returns the byte offset, from the start of the ACE, at which the trustee SID begins.

    Simple ACEs place it right after the header and the access mask (8). Object ACEs place it
    after the presence flags and the GUIDs those flags announce: 12 with neither GUID, 28 with
    exactly one, 44 with both. The compound ACE gives the offset of its server SID (12). ACE
    types that are not known are read as simple ACEs.

    Raises:
        AceDecodeError: If object_flags is not one of the four valid combinations for an object ACE.
    """
    ace_type = parse_ace_type(ace_type)

    if ace_type in OBJECT_ACE_TYPES:
        offset = ACE_HEADER_SIZE + ACCESS_MASK_SIZE + OBJECT_FLAGS_SIZE
        if object_flags == AccessControlObjectTypeFlags.NONE:
            return offset
        elif object_flags in (AccessControlObjectTypeFlags.ACE_OBJECT_TYPE_PRESENT, AccessControlObjectTypeFlags.ACE_INHERITED_OBJECT_TYPE_PRESENT):
            return offset + GUID_SIZE
        elif object_flags == (AccessControlObjectTypeFlags.ACE_OBJECT_TYPE_PRESENT | AccessControlObjectTypeFlags.ACE_INHERITED_OBJECT_TYPE_PRESENT):
            return offset + 2 * GUID_SIZE
        else:
            raise AceDecodeError("Invalid object ACE presence flags %r" % (object_flags,), ace_type=ace_type)

    elif ace_type in COMPOUND_ACE_TYPES:
        return ACE_HEADER_SIZE + ACCESS_MASK_SIZE + 4

    return ACE_HEADER_SIZE + ACCESS_MASK_SIZE


class AccessControlEntry(object):
    """
    A decoded Access Control Entry.

    Attributes:
        ace_type (AccessControlEntry_Type | UnknownAceType): The kind of ACE.
        flags (AccessControlEntry_Flags): Inheritance and audit flags.
        size (int): The AceSize field, the length of the whole record in bytes.
        mask (int): The 32-bit access mask.
        trustee (SID): The SID the ACE applies to, None if it could not be located.
        trustee_offset (int): Where the trustee starts inside the record.
        object_flags (int): Presence flags of object ACEs, None for other kinds.
        object_type (GUID): ObjectType of object ACEs, when present.
        inherited_object_type (GUID): InheritedObjectType of object ACEs, when present.
        application_data (bytes): Bytes after the trustee, conditional expressions of callback ACEs.

    https://learn.microsoft.com/en-us/openspecs/windows_protocols/ms-dtyp/628ebb1d-c509-4ea0-a10f-77ef97ca4586
    https://learn.microsoft.com/en-us/windows/win32/api/winnt/ns-winnt-ace_header
    """

    def __init__(self, ace_type, flags=0, mask=0, trustee=None, object_flags=None, object_type=None,
                 inherited_object_type=None, application_data=b'', size=None, trustee_offset=None, value=None):
        self.ace_type = parse_ace_type(ace_type)
        self.flags = AccessControlEntry_Flags(flags)
        self.mask = mask
        self.trustee = trustee
        self.object_flags = object_flags
        self.object_type = object_type
        self.inherited_object_type = inherited_object_type
        self.application_data = application_data
        if self.object_flags is None and self.ace_type in OBJECT_ACE_TYPES:
            self.object_flags = AccessControlObjectTypeFlags.NONE
            if object_type is not None:
                self.object_flags |= AccessControlObjectTypeFlags.ACE_OBJECT_TYPE_PRESENT
            if inherited_object_type is not None:
                self.object_flags |= AccessControlObjectTypeFlags.ACE_INHERITED_OBJECT_TYPE_PRESENT
        if trustee_offset is None:
            trustee_offset = locate_trustee(self.ace_type, self.object_flags)
        self.trustee_offset = trustee_offset
        self.value = value
        if size is None:
            size = len(self.toRawBytes())
        self.size = size

    @property
    def bytesize(self):
        return self.size

    @property
    def type_name(self):
        return self.ace_type.name

    def is_object_ace(self):
        return self.ace_type in OBJECT_ACE_TYPES

    @classmethod
    def fromRawBytes(cls, data: bytes, verbose=False):
        """
        Decodes one ACE record from the beginning of data. Bytes past AceSize are ignored.

        Raises:
            AceDecodeError: If the record is truncated, if its AceSize is smaller than its fixed part,
                            or if an object ACE carries invalid presence flags.
        """
        if verbose:
            print("[>] Parsing %s\n  | value: %s" % (cls, binascii.hexlify(data)))

        if len(data) < ACE_HEADER_SIZE:
            raise AceDecodeError("ACE header needs %d bytes, got %d" % (ACE_HEADER_SIZE, len(data)))

        raw_type, raw_flags, size = struct.unpack('<BBH', data[0:4])
        ace_type = parse_ace_type(raw_type)

        if size > len(data):
            raise AceDecodeError("AceSize is %d but only %d bytes are available" % (size, len(data)), ace_type=ace_type)
        if size < ACE_HEADER_SIZE + ACCESS_MASK_SIZE:
            raise AceDecodeError("AceSize %d is smaller than the header and access mask" % size, ace_type=ace_type)

        data = data[:size]
        mask = struct.unpack('<I', data[4:8])[0]

        object_flags, object_type, inherited_object_type = None, None, None
        if ace_type in OBJECT_ACE_TYPES:
            if size < 12:
                raise AceDecodeError("AceSize %d is too small for an object ACE" % size, ace_type=ace_type)
            object_flags = struct.unpack('<I', data[8:12])[0]
        trustee_offset = locate_trustee(ace_type, object_flags)

        if ace_type in OBJECT_ACE_TYPES and trustee_offset > size:
            raise AceDecodeError("AceSize %d is too small for the announced GUIDs" % size, ace_type=ace_type)

        if object_flags is not None:
            __guid_offset = 12
            if object_flags & AccessControlObjectTypeFlags.ACE_OBJECT_TYPE_PRESENT:
                object_type = GUID.fromRawBytes(data[__guid_offset:__guid_offset + GUID_SIZE])
                __guid_offset += GUID_SIZE
            if object_flags & AccessControlObjectTypeFlags.ACE_INHERITED_OBJECT_TYPE_PRESENT:
                inherited_object_type = GUID.fromRawBytes(data[__guid_offset:__guid_offset + GUID_SIZE])
            object_flags = AccessControlObjectTypeFlags(object_flags)

        trustee = None
        application_data = b''
        if isinstance(ace_type, UnknownAceType):
            # Best effort: read it as a simple ACE
            try:
                trustee = SID.fromRawBytes(data[trustee_offset:])
            except InvalidSIDFormat as e:
                logger.debug("No trustee in ACE of unknown type 0x%02x: %s" % (ace_type.value, e))
        else:
            try:
                trustee = SID.fromRawBytes(data[trustee_offset:])
            except InvalidSIDFormat as e:
                raise AceDecodeError("Invalid trustee SID at offset %d: %s" % (trustee_offset, e), ace_type=ace_type)

        if trustee is not None:
            application_data = data[trustee_offset + trustee.bytesize:]

        self = cls(
            ace_type=ace_type,
            flags=raw_flags,
            mask=mask,
            trustee=trustee,
            object_flags=object_flags,
            object_type=object_type,
            inherited_object_type=inherited_object_type,
            application_data=application_data,
            size=size,
            trustee_offset=trustee_offset,
            value=data
        )

        if verbose:
            self.describe()

        return self

    def toRawBytes(self):
        return encode_ace(
            ace_type=self.ace_type,
            flags=self.flags,
            mask=self.mask,
            trustee=self.trustee,
            object_type=self.object_type,
            inherited_object_type=self.inherited_object_type,
            application_data=self.application_data
        )

    def describe(self, ace_number=0, offset=0, indent=0):
        indent_prompt = " │ " * indent
        print("%s<AccessControlEntry #%d at offset \x1b[95m0x%x\x1b[0m (size=\x1b[95m0x%x\x1b[0m)>" % (indent_prompt, ace_number, offset, self.size))
        if self.ace_type.name is not None:
            print("%s │ \x1b[93mAceType\x1b[0m    : \x1b[96m0x%02x\x1b[0m (\x1b[94m%s\x1b[0m)" % (indent_prompt, self.ace_type.value, self.ace_type.name))
        else:
            print("%s │ \x1b[93mAceType\x1b[0m    : \x1b[96m0x%02x\x1b[0m (\x1b[91mUnknown\x1b[0m)" % (indent_prompt, self.ace_type.value))
        print("%s │ \x1b[93mAceFlags\x1b[0m   : \x1b[96m0x%02x\x1b[0m (\x1b[94m%s\x1b[0m)" % (indent_prompt, self.flags.value, self.flags.name))
        print("%s │ \x1b[93mAceSize\x1b[0m    : \x1b[96m0x%04x\x1b[0m" % (indent_prompt, self.size))
        print("%s │ \x1b[93mAccessMask\x1b[0m : \x1b[96m0x%08x\x1b[0m" % (indent_prompt, self.mask))
        if self.object_flags is not None:
            print("%s │ \x1b[93mFlags\x1b[0m      : \x1b[96m0x%08x\x1b[0m (\x1b[94m%s\x1b[0m)" % (indent_prompt, self.object_flags.value, self.object_flags.name))
            for title, guid in (("ObjectType", self.object_type), ("InheritedObjectType", self.inherited_object_type)):
                if guid is None:
                    continue
                if guid.wellKnownName() is not None:
                    print("%s │ \x1b[93m%s\x1b[0m : \x1b[96m%s\x1b[0m (\x1b[94m%s\x1b[0m)" % (indent_prompt, title, guid.toFormatD(), guid.wellKnownName()))
                else:
                    print("%s │ \x1b[93m%s\x1b[0m : \x1b[96m%s\x1b[0m" % (indent_prompt, title, guid.toFormatD()))
        if self.trustee is not None:
            self.trustee.describe(offset=offset + self.trustee_offset, indent=(indent + 1), title="Trustee")
        if len(self.application_data) != 0:
            print("%s │ \x1b[93mApplicationData\x1b[0m : \x1b[96m%s\x1b[0m" % (indent_prompt, binascii.hexlify(self.application_data).decode("UTF-8")))
        print(''.join([" │ "]*indent + [" └─"]))

    def __repr__(self):
        return "<AccessControlEntry %s mask=0x%08x trustee=%s>" % (
            self.ace_type.name or "0x%02x" % self.ace_type.value,
            self.mask,
            self.trustee.toString() if self.trustee is not None else None
        )


class MalformedAccessControlEntry(object):
    """
    Stands in an ACL for an entry that could not be decoded, so that the other entries still render.

    The header fields and the access mask are read when the bytes are there: ace_type needs 1 byte,
    flags 2 and mask 8 (within AceSize). Fields that cannot be read are None.
    """

    def __init__(self, index, value, error):
        self.index = index
        self.value = value
        self.error = error

        self.ace_type = getattr(error, "ace_type", None)
        self.flags = None
        self.mask = None
        if len(value) >= 1:
            self.ace_type = parse_ace_type(value[0])
        if len(value) >= 2:
            self.flags = AccessControlEntry_Flags(value[1])
        if len(value) >= ACE_HEADER_SIZE + ACCESS_MASK_SIZE and self.size >= ACE_HEADER_SIZE + ACCESS_MASK_SIZE:
            self.mask = struct.unpack('<I', value[4:8])[0]

    @property
    def size(self):
        if len(self.value) >= 4:
            return struct.unpack('<H', self.value[2:4])[0]
        return len(self.value)

    bytesize = size

    def describe(self, ace_number=0, offset=0, indent=0):
        indent_prompt = " │ " * indent
        print("%s<AccessControlEntry #%d at offset \x1b[95m0x%x\x1b[0m is \x1b[91mmalformed\x1b[0m>" % (indent_prompt, ace_number, offset))
        if self.ace_type is not None:
            print("%s │ \x1b[93mAceType\x1b[0m    : \x1b[96m0x%02x\x1b[0m (\x1b[94m%s\x1b[0m)" % (indent_prompt, self.ace_type.value, self.ace_type.name or "Unknown"))
        if self.mask is not None:
            print("%s │ \x1b[93mAccessMask\x1b[0m : \x1b[96m0x%08x\x1b[0m" % (indent_prompt, self.mask))
        print("%s │ \x1b[91m%s\x1b[0m" % (indent_prompt, self.error))
        print(''.join([" │ "]*indent + [" └─"]))

    def __repr__(self):
        return "<MalformedAccessControlEntry #%d: %s>" % (self.index, self.error)


def decode_ace(raw, verbose=False):
    """Decodes one ACE record. See AccessControlEntry.fromRawBytes."""
    return AccessControlEntry.fromRawBytes(raw, verbose=verbose)


def encode_ace(ace_type, flags=0, mask=0, trustee=None, object_type=None, inherited_object_type=None, application_data=b''):
    """
    Builds the binary form of an ACE. For object ACE kinds, the presence flags are derived from which
    GUIDs are given. The record is padded with zeroes to a multiple of 4 bytes.
    """
    ace_type = parse_ace_type(ace_type)

    body = struct.pack('<I', int(mask) & 0xffffffff)

    if ace_type in OBJECT_ACE_TYPES:
        object_flags = AccessControlObjectTypeFlags.NONE
        guids = b''
        if object_type is not None:
            object_flags |= AccessControlObjectTypeFlags.ACE_OBJECT_TYPE_PRESENT
            guids += object_type.toRawBytes()
        if inherited_object_type is not None:
            object_flags |= AccessControlObjectTypeFlags.ACE_INHERITED_OBJECT_TYPE_PRESENT
            guids += inherited_object_type.toRawBytes()
        body += struct.pack('<I', int(object_flags)) + guids
    elif ace_type in COMPOUND_ACE_TYPES:
        # CompoundAceType: COMPOUND_ACE_IMPERSONATION
        body += struct.pack('<HH', 1, 0)

    if trustee is not None:
        body += trustee.toRawBytes()
    body += application_data

    size = ACE_HEADER_SIZE + len(body)
    if size % 4 != 0:
        body += b'\x00' * (4 - size % 4)
        size = ACE_HEADER_SIZE + len(body)

    return struct.pack('<BBH', ace_type.value, int(flags) & 0xff, size) + body
