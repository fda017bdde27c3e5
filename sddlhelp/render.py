#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# File name          : render.py

from concurrent.futures import ThreadPoolExecutor, TimeoutError
import logging

from sddlhelp.ace import MalformedAccessControlEntry
from sddlhelp.constants import ACE_FLAG_NAMES, CONTROL_FLAG_NAMES, AccessControlEntry_Flags, flag_names
from sddlhelp.descriptor import AclState, NTSecurityDescriptor
from sddlhelp.exceptions import InvalidSecurityDescriptor, SDDLConversionError
from sddlhelp.identity import format_account_name
from sddlhelp.permissions import lookup, resolve_permissions
from sddlhelp.sddl import descriptor_to_sddl, sddl_to_descriptor


logger = logging.getLogger("sddlhelp")


# Permission names are aligned under the access mask of the "    Perms: " line
PERMISSION_WHITESPACE = " " * 11

SDDL_OUTPUT = "sddl"


def _load_descriptor(descriptor):
    if descriptor is None:
        raise InvalidSecurityDescriptor("No security descriptor to render")
    if isinstance(descriptor, (bytes, bytearray)):
        if len(descriptor) == 0:
            raise InvalidSecurityDescriptor("Empty security descriptor")
        return NTSecurityDescriptor.fromRawBytes(bytes(descriptor))
    if not isinstance(descriptor, NTSecurityDescriptor):
        raise InvalidSecurityDescriptor("Cannot render a %s as a security descriptor" % type(descriptor).__name__)
    return descriptor


class DescriptorRenderer(object):
    """
    Renders security descriptors as text, with permission names specific to an object type.

    Attributes:
        identity_resolver (IdentityResolver): Gives account names for SIDs. None to show bare SIDs.
        resolve_timeout (float): Seconds to wait for one name lookup before falling back to the SID
                                 string. None waits as long as the resolver takes.
    """

    def __init__(self, identity_resolver=None, resolve_timeout=5.0, max_workers=4):
        self.identity_resolver = identity_resolver
        self.resolve_timeout = resolve_timeout
        self.max_workers = max_workers
        self.__executor = None

    def close(self):
        if self.__executor is not None:
            # A lookup that timed out may still be running, do not wait for it
            self.__executor.shutdown(wait=False)
            self.__executor = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def _lookup(self, function, value):
        if self.resolve_timeout is None:
            return function(value)
        if self.__executor is None:
            self.__executor = ThreadPoolExecutor(max_workers=self.max_workers)
        future = self.__executor.submit(function, value)
        return future.result(timeout=self.resolve_timeout)

    def resolve_sid(self, sid):
        """Returns the (domain, username) of sid, or None when it cannot be resolved in time."""
        if sid is None or self.identity_resolver is None:
            return None
        try:
            return self._lookup(self.identity_resolver.resolve, sid)
        except TimeoutError:
            logger.info("Name lookup of %s timed out after %s seconds" % (sid.toString(), self.resolve_timeout))
        except Exception as e:
            logger.info("Name lookup of %s failed: %s" % (sid.toString(), e))
        return None

    def sid_to_text(self, sid):
        """Returns "domain\\user (S-1-...)" when the SID resolves, the SID string otherwise."""
        if sid is None:
            return ""
        resolved = self.resolve_sid(sid)
        if resolved is None:
            return sid.toString()
        return "%s (%s)" % (format_account_name(*resolved), sid.toString())

    def guid_to_text(self, guid):
        name = None
        if self.identity_resolver is not None:
            try:
                name = self._lookup(self.identity_resolver.resolve_guid, guid)
            except TimeoutError:
                logger.info("Name lookup of GUID %s timed out" % guid.toFormatD())
            except Exception as e:
                logger.info("Name lookup of GUID %s failed: %s" % (guid.toFormatD(), e))
        if name is None:
            name = guid.wellKnownName()
        if name is None:
            return guid.toFormatD()
        return "%s (%s)" % (guid.toFormatD(), name)

    def render(self, descriptor, object_type=None, one_permission_per_line=True, indent=0):
        """
        Renders a security descriptor.

        Args:
            descriptor (NTSecurityDescriptor | bytes): The descriptor, parsed or in self-relative binary form.
            object_type (str): Names the permission vocabulary, "file", "key", ... Permission names are
                               not shown when it is None. "sddl" returns the SDDL string instead.
            one_permission_per_line (bool): One permission name per line, or all on the Perms line.
            indent (int): Number of spaces in front of every line.

        Raises:
            InvalidSecurityDescriptor: If the descriptor itself is missing or structurally invalid.
        """
        descriptor = _load_descriptor(descriptor)

        if object_type is not None and object_type.lower() == SDDL_OUTPUT:
            try:
                return descriptor_to_sddl(descriptor) + "\n"
            except SDDLConversionError as e:
                logger.warning(str(e))
                return "Error: %s\n" % e

        prefix = " " * indent
        lines = []

        control = int(descriptor.control)
        lines.append(prefix + ("Control:  0x%04X  (%s)" % (control, ' '.join(flag_names(CONTROL_FLAG_NAMES, control)))))

        for title, sid, error in (("Owner:    ", descriptor.owner, descriptor.owner_error), ("Group:    ", descriptor.group, descriptor.group_error)):
            if sid is not None:
                lines.append(prefix + title + self.sid_to_text(sid))
            elif error is not None:
                lines.append(prefix + title + "Invalid SID: %s" % error)

        lines += self.render_acl(
            "DACL", descriptor.dacl, descriptor.dacl_state, descriptor.dacl_error, object_type, one_permission_per_line, prefix
        )
        lines += self.render_acl(
            "SACL", descriptor.sacl, descriptor.sacl_state, descriptor.sacl_error, object_type, one_permission_per_line, prefix
        )
        return '\n'.join(lines) + "\n"

    def render_acl(self, kind, acl, state, error, object_type, one_permission_per_line, prefix):
        if state == AclState.ABSENT:
            return []
        elif state == AclState.NULL:
            if kind == "DACL":
                return [prefix + "NULL DACL (implicit Everyone/FullControl)"]
            return [prefix + "NULL SACL"]
        elif state == AclState.INVALID:
            return [prefix + "Invalid %s: %s" % (kind, error)]

        lines = [prefix + "ACEs in %s:  %d" % (kind, acl.ace_count)]
        if acl.ace_count == 0:
            if kind == "DACL":
                lines.append(prefix + "Empty DACL (implicit Deny-All)")
            else:
                lines.append(prefix + "Empty SACL")
            return lines

        for index, ace in enumerate(acl.entries):
            lines += self.render_ace(index, ace, object_type, one_permission_per_line, prefix)
        if len(acl.entries) < acl.ace_count:
            lines.append(prefix + "[%d ACEs could not be located]" % (acl.ace_count - len(acl.entries)))
        return lines

    def render_ace(self, index, ace, object_type=None, one_permission_per_line=True, prefix=""):
        lines = [prefix + "ACE %d." % index]

        malformed = isinstance(ace, MalformedAccessControlEntry)
        if malformed and (ace.ace_type is None or ace.mask is None):
            lines.append(prefix + "    [Malformed ACE: %s]" % ace.error)
            return lines

        if ace.ace_type.name is not None:
            lines.append(prefix + "    " + ace.ace_type.name)
        else:
            lines.append(prefix + "    [Unknown ACE type: 0x%02X]" % ace.ace_type.value)

        if malformed:
            lines.append(prefix + "    SID:   [Malformed ACE: %s]" % ace.error)
        elif ace.trustee is not None:
            lines.append(prefix + "    SID:   " + self.sid_to_text(ace.trustee))
        else:
            lines.append(prefix + "    SID:   [no trustee]")

        flags = int(ace.flags)
        if flags == 0:
            lines.append(prefix + "    Flags: None")
        else:
            lines.append(prefix + "    Flags: [0x%02X] %s" % (flags, ' '.join(flag_names(ACE_FLAG_NAMES, flags))))

        if not malformed and ace.object_type is not None:
            lines.append(prefix + "    ObjectType:          " + self.guid_to_text(ace.object_type))
        if not malformed and ace.inherited_object_type is not None:
            lines.append(prefix + "    InheritedObjectType: " + self.guid_to_text(ace.inherited_object_type))

        perms = prefix + "    Perms: [0x%08X]" % ace.mask
        if object_type is None:
            lines.append(perms)
            return lines

        names = render_permission_names(ace.mask, object_type)
        if one_permission_per_line:
            lines.append(perms)
            lines += [prefix + PERMISSION_WHITESPACE + name for name in names]
        else:
            lines.append(perms + " " + ' '.join(names))
        return lines


def render_permission_names(mask, object_type):
    """
    Returns the display names of the rights in mask: permission names, then the unresolved bits in hex.
    An unknown object type gives a single "Unrecognized object type: <tag>" entry.
    """
    if lookup(object_type) is None:
        return ["Unrecognized object type: %s" % object_type]
    names, residual = resolve_permissions(mask, object_type)
    if residual != 0:
        names = names + ["0x%08X" % residual]
    return names


def render_descriptor(descriptor, object_type=None, one_permission_per_line=True, indent=0, identity_resolver=None, resolve_timeout=5.0):
    """Renders a security descriptor as text. See DescriptorRenderer.render."""
    with DescriptorRenderer(identity_resolver=identity_resolver, resolve_timeout=resolve_timeout) as renderer:
        return renderer.render(
            descriptor,
            object_type=object_type,
            one_permission_per_line=one_permission_per_line,
            indent=indent
        )


def render_sddl(sddl, object_type=None, one_permission_per_line=True, indent=0, identity_resolver=None, resolve_timeout=5.0, domain_sid=None):
    """
    Converts an SDDL string to a security descriptor and renders it. domain_sid is needed for
    domain aliases such as DA or DU.

    Raises:
        SDDLConversionError: If sddl is not a valid SDDL string.
    """
    descriptor = sddl_to_descriptor(sddl, domain_sid=domain_sid)
    return render_descriptor(
        descriptor,
        object_type=object_type,
        one_permission_per_line=one_permission_per_line,
        indent=indent,
        identity_resolver=identity_resolver,
        resolve_timeout=resolve_timeout
    )


class HumanDescriber(object):
    """
    Explains the DACL of a security descriptor in one English sentence per ACE.
    """

    mapping = {
        "ADS_RIGHT_DS_CREATE_CHILD": "Create Child",
        "ADS_RIGHT_DS_DELETE_CHILD": "Delete Child",
        "ADS_RIGHT_ACTRL_DS_LIST": "List Contents",
        "ADS_RIGHT_DS_SELF": "Write Extended Properties",
        "ADS_RIGHT_DS_READ_PROP": "Read",
        "ADS_RIGHT_DS_WRITE_PROP": "Write",
        "ADS_RIGHT_DS_DELETE_TREE": "Delete Tree",
        "ADS_RIGHT_DS_LIST_OBJECT": "List Object",
        "ADS_RIGHT_DS_CONTROL_ACCESS": "Control Access",
        "ADS_RIGHT_DELETE": "Delete",
        "ADS_RIGHT_READ_CONTROL": "Read Control",
        "ADS_RIGHT_WRITE_DAC": "Write Dac",
        "ADS_RIGHT_WRITE_OWNER": "Write Owner",
        "ADS_RIGHT_SYNCHRONIZE": "Synchronize",
        "ADS_RIGHT_ACCESS_SYSTEM_SECURITY": "Access System Security",
        "ADS_RIGHT_GENERIC_ALL": "Generic All",
        "ADS_RIGHT_GENERIC_EXECUTE": "Generic Execute",
        "ADS_RIGHT_GENERIC_WRITE": "Generic Write",
        "ADS_RIGHT_GENERIC_READ": "Generic Read",
        "DELETE": "Delete",
        "READ_CONTROL": "Read Control",
        "WRITE_DAC": "Write Dac",
        "WRITE_OWNER": "Write Owner",
        "SYNCHRONIZE": "Synchronize",
        "GENERIC_ALL": "Generic All",
        "GENERIC_EXECUTE": "Generic Execute",
        "GENERIC_WRITE": "Generic Write",
        "GENERIC_READ": "Generic Read",
    }

    def __init__(self, ntsd, object_type="ntds", renderer=None):
        self.ntsd = ntsd
        self.object_type = object_type
        if renderer is None:
            renderer = DescriptorRenderer()
        self.renderer = renderer

    def summary(self):
        lines = ["Other objects have the following rights on this object:"]
        if self.ntsd.dacl_state == AclState.NULL:
            lines.append("Everyone has full control (NULL DACL).")
            return '\n'.join(lines) + "\n"
        elif self.ntsd.dacl is None:
            lines.append("No DACL to describe.")
            return '\n'.join(lines) + "\n"

        # Iterate on DACL entries
        entry_id = 0
        for ace in self.ntsd.dacl.entries:
            entry_id += 1
            lines.append(self.explain_ace(ace=ace, entry_id=entry_id))
        return '\n'.join(lines) + "\n"

    def explain_ace(self, ace, entry_id=0):
        if isinstance(ace, MalformedAccessControlEntry) or ace.trustee is None or ace.ace_type.name is None:
            return "%03d. \x1b[91mUNHANDLED\x1b[0m" % entry_id

        # Checking allowed rights
        if ace.ace_type.name.startswith("ACCESS_ALLOWED_"):
            str_ace_type = "\x1b[92mallowed\x1b[0m"
        elif ace.ace_type.name.startswith("ACCESS_DENIED_"):
            str_ace_type = "\x1b[91mnot allowed\x1b[0m"
        else:
            str_ace_type = "\x1b[93maudited\x1b[0m"

        resolved = self.renderer.resolve_sid(ace.trustee)
        if resolved is not None:
            identityDisplayName = format_account_name(*resolved)
        else:
            identityDisplayName = ace.trustee.toString()

        # Parse rights
        str_rights = self.explain_access_mask(ace.mask)

        # Parse target
        str_target = "me"
        if ace.object_type is not None:
            if ace.object_type.wellKnownName() is not None:
                str_target = "my " + ace.object_type.wellKnownName()
            else:
                str_target = ace.object_type.toFormatD()
        if ace.inherited_object_type is not None:
            if ace.inherited_object_type.wellKnownName() is not None:
                str_target += " (inherited from the %s)" % ace.inherited_object_type.wellKnownName()
            else:
                str_target += " (inherited from the object %s)" % ace.inherited_object_type.toFormatD()

        # Check inheritance
        if ace.flags & AccessControlEntry_Flags.INHERITED_ACE:
            return "%03d. '\x1b[94m%s\x1b[0m' is %s to \x1b[93m%s\x1b[0m on \x1b[95m%s\x1b[0m, by inheritance." % (entry_id, identityDisplayName, str_ace_type, str_rights, str_target)
        return "%03d. '\x1b[94m%s\x1b[0m' is %s to \x1b[93m%s\x1b[0m on \x1b[95m%s\x1b[0m" % (entry_id, identityDisplayName, str_ace_type, str_rights, str_target)

    def explain_access_mask(self, mask):
        rights = []
        for name in render_permission_names(mask, self.object_type):
            rights.append(self.mapping.get(name, name))
        return "%s" % ', '.join(rights)
