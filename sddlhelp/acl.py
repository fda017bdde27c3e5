#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# File name          : acl.py

import binascii
import logging
import struct

from sddlhelp.ace import AccessControlEntry, MalformedAccessControlEntry
from sddlhelp.constants import AccessControlList_Revision
from sddlhelp.exceptions import AceDecodeError, InvalidACL


logger = logging.getLogger("sddlhelp")


ACL_HEADER_SIZE = 8
MIN_ACL_REVISION = 2
MAX_ACL_REVISION = 4


class AccessControlList(object):
    """
    An ordered list of Access Control Entries, preceded by an 8-byte header:

        Revision (1 byte), Sbz1 (1 byte), AclSize (2 bytes), AceCount (2 bytes), Sbz2 (2 bytes)

    Entries keep their on-disk order. An entry that fails to decode is kept in its slot as a
    MalformedAccessControlEntry.

    https://learn.microsoft.com/en-us/openspecs/windows_protocols/ms-dtyp/20233ed8-a6c6-4097-aafa-dd545ed24428
    https://learn.microsoft.com/en-us/windows/win32/api/winnt/ns-winnt-acl
    """

    kind = "ACL"

    def __init__(self, revision=AccessControlList_Revision.ACL_REVISION.value, entries=None, size=None, ace_count=None, value=None):
        self.revision = revision
        self.entries = list(entries) if entries is not None else []
        self.value = value
        if ace_count is None:
            ace_count = len(self.entries)
        self.ace_count = ace_count
        if size is None:
            size = ACL_HEADER_SIZE + sum([len(self._entry_bytes(e)) for e in self.entries])
        self.size = size

    @property
    def bytesize(self):
        return self.size

    @property
    def malformed_entries(self):
        return [e for e in self.entries if isinstance(e, MalformedAccessControlEntry)]

    @classmethod
    def fromRawBytes(cls, data: bytes, verbose=False):
        """
        Parses an ACL from the beginning of data.

        Raises:
            InvalidACL: If the header is truncated, if the revision is not supported, or if AclSize
                        does not fit in data.
        """
        if verbose:
            print("[>] Parsing %s\n  | value: %s" % (cls, binascii.hexlify(data)))

        if len(data) < ACL_HEADER_SIZE:
            raise InvalidACL("ACL header needs %d bytes, got %d" % (ACL_HEADER_SIZE, len(data)))

        revision, sbz1, acl_size, ace_count, sbz2 = struct.unpack('<BBHHH', data[:ACL_HEADER_SIZE])

        if not (MIN_ACL_REVISION <= revision <= MAX_ACL_REVISION):
            raise InvalidACL("Unsupported ACL revision %d" % revision)
        if acl_size < ACL_HEADER_SIZE:
            raise InvalidACL("AclSize %d is smaller than the ACL header" % acl_size)
        if acl_size > len(data):
            raise InvalidACL("AclSize is %d but only %d bytes are available" % (acl_size, len(data)))

        data = data[:acl_size]

        # Parsing ACE entries
        entries = []
        offset = ACL_HEADER_SIZE
        for index in range(ace_count):
            remaining = data[offset:]
            try:
                ace = AccessControlEntry.fromRawBytes(remaining, verbose=verbose)
            except AceDecodeError as e:
                logger.warning("Could not decode ACE %d of the %s: %s" % (index, cls.kind, e))
                entries.append(MalformedAccessControlEntry(index, remaining, e))
                # Skip over the record if its header still gives a usable size
                if len(remaining) >= 4:
                    __size = struct.unpack('<H', remaining[2:4])[0]
                    if 4 <= __size <= len(remaining):
                        offset += __size
                        continue
                logger.warning("Stopping %s parsing at ACE %d, the next entry cannot be located" % (cls.kind, index))
                break
            entries.append(ace)
            offset += ace.size

        self = cls(revision=revision, entries=entries, size=acl_size, ace_count=ace_count, value=data)

        if verbose:
            self.describe()

        return self

    @staticmethod
    def _entry_bytes(entry):
        if isinstance(entry, MalformedAccessControlEntry):
            return entry.value[:entry.size]
        return entry.toRawBytes()

    def toRawBytes(self):
        body = b''.join([self._entry_bytes(e) for e in self.entries])
        header = struct.pack('<BBHHH', self.revision, 0, ACL_HEADER_SIZE + len(body), len(self.entries), 0)
        return header + body

    def describe(self, offset=0, indent=0):
        indent_prompt = " │ " * indent
        print("%s<%s at offset \x1b[95m0x%x\x1b[0m (size=\x1b[95m0x%x\x1b[0m)>" % (indent_prompt, self.__class__.__name__, offset, self.size))
        try:
            revision_name = AccessControlList_Revision(self.revision).name
        except ValueError:
            revision_name = "?"
        print("%s │ \x1b[93mRevision\x1b[0m : \x1b[96m0x%02x\x1b[0m (\x1b[94m%s\x1b[0m)" % (indent_prompt, self.revision, revision_name))
        print("%s │ \x1b[93mAclSize\x1b[0m  : \x1b[96m0x%04x\x1b[0m" % (indent_prompt, self.size))
        print("%s │ \x1b[93mAceCount\x1b[0m : \x1b[96m0x%04x\x1b[0m" % (indent_prompt, self.ace_count))
        offset += ACL_HEADER_SIZE
        ace_number = 0
        for ace in self.entries:
            ace_number += 1
            ace.describe(ace_number=ace_number, offset=offset, indent=(indent + 1))
            offset += ace.bytesize
        print(''.join([" │ "]*indent + [" └─"]))

    def __getitem__(self, key):
        return self.entries[key]

    def __iter__(self):
        yield from self.entries

    def __len__(self):
        return len(self.entries)


class DiscretionaryAccessControlList(AccessControlList):
    kind = "DACL"


class SystemAccessControlList(AccessControlList):
    kind = "SACL"
