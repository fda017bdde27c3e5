import struct
import threading

import pytest

from sddlhelp.ace import encode_ace
from sddlhelp.acl import DiscretionaryAccessControlList, SystemAccessControlList
from sddlhelp.constants import AccessControlEntry_Type, SecurityDescriptorControl
from sddlhelp.descriptor import NTSecurityDescriptor
from sddlhelp.exceptions import InvalidSecurityDescriptor
from sddlhelp.guid import GUID
from sddlhelp.identity import IdentityResolver
from sddlhelp.render import DescriptorRenderer, HumanDescriber, render_descriptor, render_permission_names
from sddlhelp.sid import SID


EVERYONE = SID.fromStrFormat("S-1-1-0")
SYSTEM = SID.fromStrFormat("S-1-5-18")
ADMINISTRATORS = SID.fromStrFormat("S-1-5-32-544")
DOMAIN_USER = SID.fromStrFormat("S-1-5-21-1-2-3-1104")


class StaticResolver(IdentityResolver):
    def __init__(self, names):
        self.names = names

    def resolve(self, sid):
        return self.names.get(sid.toString(), None)


class FailingResolver(IdentityResolver):
    def resolve(self, sid):
        raise RuntimeError("lookup failed")


class BlockingResolver(IdentityResolver):
    def __init__(self):
        self.release = threading.Event()

    def resolve(self, sid):
        self.release.wait(5)
        return ("CORP", "late")


def _dacl(*aces):
    return DiscretionaryAccessControlList.fromRawBytes(
        struct.pack('<BBHHH', 2, 0, 8 + sum(len(a) for a in aces), len(aces), 0) + b''.join(aces)
    )


def _descriptor(*aces, owner=ADMINISTRATORS, group=SYSTEM):
    return NTSecurityDescriptor(
        control=SecurityDescriptorControl.SE_SELF_RELATIVE,
        owner=owner,
        group=group,
        dacl=_dacl(*aces)
    )


def test_render_file_descriptor():
    ntsd = _descriptor(
        encode_ace(AccessControlEntry_Type.ACCESS_ALLOWED_ACE_TYPE, flags=0x03, mask=0x001F01FF, trustee=ADMINISTRATORS),
        encode_ace(AccessControlEntry_Type.ACCESS_ALLOWED_ACE_TYPE, mask=0x10000001, trustee=EVERYONE),
    )
    text = render_descriptor(ntsd, object_type="file")
    assert text.splitlines() == [
        "Control:  0x8004  (SE_DACL_PRESENT SE_SELF_RELATIVE)",
        "Owner:    S-1-5-32-544",
        "Group:    S-1-5-18",
        "ACEs in DACL:  2",
        "ACE 0.",
        "    ACCESS_ALLOWED_ACE_TYPE",
        "    SID:   S-1-5-32-544",
        "    Flags: [0x03] CONTAINER_INHERIT_ACE OBJECT_INHERIT_ACE",
        "    Perms: [0x001F01FF]",
        "           FILE_ALL_ACCESS",
        "ACE 1.",
        "    ACCESS_ALLOWED_ACE_TYPE",
        "    SID:   S-1-1-0",
        "    Flags: None",
        "    Perms: [0x10000001]",
        "           GENERIC_ALL",
        "           FILE_READ_DATA",
    ]


def test_render_one_line_and_indent():
    ntsd = _descriptor(encode_ace(AccessControlEntry_Type.ACCESS_ALLOWED_ACE_TYPE, mask=0x10000001 | 0x00008000, trustee=EVERYONE))
    lines = render_descriptor(ntsd, object_type="FILE", one_permission_per_line=False, indent=2).splitlines()
    assert all(line.startswith("  ") for line in lines)
    assert "      Perms: [0x10008001] GENERIC_ALL FILE_READ_DATA 0x00008000" in lines


def test_render_without_object_type_shows_raw_mask_only():
    ntsd = _descriptor(encode_ace(AccessControlEntry_Type.ACCESS_ALLOWED_ACE_TYPE, mask=0x001F01FF, trustee=EVERYONE))
    lines = render_descriptor(ntsd).splitlines()
    assert lines[-1] == "    Perms: [0x001F01FF]"


def test_unrecognized_object_type_still_renders_the_entry():
    ntsd = _descriptor(encode_ace(AccessControlEntry_Type.ACCESS_DENIED_ACE_TYPE, flags=0x10, mask=0x00000001, trustee=EVERYONE))
    lines = render_descriptor(ntsd, object_type="bogus").splitlines()
    assert "    ACCESS_DENIED_ACE_TYPE" in lines
    assert "    SID:   S-1-1-0" in lines
    assert "    Flags: [0x10] INHERITED_ACE" in lines
    assert "    Perms: [0x00000001]" in lines
    assert "           Unrecognized object type: bogus" in lines


def test_render_permission_names():
    assert render_permission_names(0x001F01FF, "file") == ["FILE_ALL_ACCESS"]
    assert render_permission_names(0x00008000, "file") == ["0x00008000"]
    assert render_permission_names(1, "nope") == ["Unrecognized object type: nope"]


def test_null_and_empty_dacl_are_labelled_differently():
    null = NTSecurityDescriptor(control=SecurityDescriptorControl.SE_DACL_PRESENT)
    empty = NTSecurityDescriptor(dacl=DiscretionaryAccessControlList())
    absent = NTSecurityDescriptor()

    null_text = render_descriptor(null)
    empty_text = render_descriptor(empty)
    absent_text = render_descriptor(absent)

    assert "NULL DACL (implicit Everyone/FullControl)" in null_text
    assert "Empty DACL (implicit Deny-All)" not in null_text
    assert "ACEs in DACL:  0" in empty_text
    assert "Empty DACL (implicit Deny-All)" in empty_text
    assert "DACL" not in absent_text.replace("SE_DACL", "")


def test_sacl_states():
    null = NTSecurityDescriptor(control=SecurityDescriptorControl.SE_SACL_PRESENT)
    empty = NTSecurityDescriptor(sacl=SystemAccessControlList())
    assert "NULL SACL" in render_descriptor(null)
    assert "Empty SACL" in render_descriptor(empty)


def test_render_bytes():
    ntsd = _descriptor(encode_ace(AccessControlEntry_Type.ACCESS_ALLOWED_ACE_TYPE, mask=0x20019, trustee=EVERYONE))
    assert render_descriptor(ntsd.toRawBytes(), object_type="key") == render_descriptor(ntsd, object_type="key")
    assert "           KEY_READ" in render_descriptor(ntsd, object_type="key").splitlines()


@pytest.mark.parametrize("descriptor", [None, b"", b"\x01\x00", 42])
def test_invalid_descriptor_raises(descriptor):
    with pytest.raises(InvalidSecurityDescriptor):
        render_descriptor(descriptor)


def test_malformed_ace_is_reported_inline():
    good = encode_ace(AccessControlEntry_Type.ACCESS_ALLOWED_ACE_TYPE, mask=1, trustee=EVERYONE)
    bad = bytearray(encode_ace(AccessControlEntry_Type.ACCESS_ALLOWED_OBJECT_ACE_TYPE, mask=2, trustee=SYSTEM))
    bad[8:12] = struct.pack('<I', 6)
    last = encode_ace(AccessControlEntry_Type.ACCESS_DENIED_ACE_TYPE, mask=3, trustee=ADMINISTRATORS)
    lines = render_descriptor(_descriptor(good, bytes(bad), last), object_type="file").splitlines()
    assert "ACE 1." in lines
    assert any(line.startswith("    SID:   [Malformed ACE: ") for line in lines)
    assert "ACE 2." in lines
    assert "    SID:   S-1-5-32-544" in lines


def test_malformed_ace_keeps_its_header_and_rights():
    ace = bytearray(encode_ace(AccessControlEntry_Type.ACCESS_ALLOWED_OBJECT_ACE_TYPE, flags=0x10, mask=0x001F01FF, trustee=EVERYONE))
    ace[8:12] = struct.pack('<I', 6)
    lines = render_descriptor(_descriptor(bytes(ace)), object_type="file").splitlines()
    assert lines[4:10] == [
        "ACE 0.",
        "    ACCESS_ALLOWED_OBJECT_ACE_TYPE",
        "    SID:   [Malformed ACE: Invalid object ACE presence flags 6]",
        "    Flags: [0x10] INHERITED_ACE",
        "    Perms: [0x001F01FF]",
        "           FILE_ALL_ACCESS",
    ]


def test_ace_without_access_mask_is_reported_alone():
    good = encode_ace(AccessControlEntry_Type.ACCESS_ALLOWED_ACE_TYPE, mask=1, trustee=EVERYONE)
    broken = struct.pack('<BBHI', 0, 0, 2, 0)
    dacl = DiscretionaryAccessControlList.fromRawBytes(
        struct.pack('<BBHHH', 2, 0, 8 + len(good) + len(broken), 2, 0) + good + broken
    )
    lines = render_descriptor(NTSecurityDescriptor(dacl=dacl), object_type="file").splitlines()
    assert lines[-2] == "ACE 1."
    assert lines[-1].startswith("    [Malformed ACE: ")


def test_unknown_ace_type():
    raw = struct.pack('<BBHI', 0x42, 0, 8 + EVERYONE.bytesize, 0x1) + EVERYONE.toRawBytes()
    lines = render_descriptor(_descriptor(raw)).splitlines()
    assert "    [Unknown ACE type: 0x42]" in lines
    assert "    SID:   S-1-1-0" in lines


def test_invalid_dacl_is_reported_inline():
    raw = bytearray(NTSecurityDescriptor(owner=SYSTEM, control=SecurityDescriptorControl.SE_DACL_PRESENT).toRawBytes())
    raw[16:20] = struct.pack('<I', 0x200)
    lines = render_descriptor(bytes(raw)).splitlines()
    assert "Owner:    S-1-5-18" in lines
    assert any(line.startswith("Invalid DACL: ") for line in lines)


def test_object_ace_guids_are_shown():
    force_change_password = GUID.fromFormatD("00299570-246d-11d0-a768-00aa006e0529")
    ace = encode_ace(AccessControlEntry_Type.ACCESS_ALLOWED_OBJECT_ACE_TYPE, mask=0x100, trustee=EVERYONE, object_type=force_change_password)
    text = render_descriptor(_descriptor(ace), object_type="ntds")
    assert "    ObjectType:          00299570-246d-11d0-a768-00aa006e0529" in text
    assert "ADS_RIGHT_DS_CONTROL_ACCESS" in text


def test_names_from_identity_resolver():
    resolver = StaticResolver({
        "S-1-5-32-544": ("BUILTIN", "Administrators"),
        "S-1-1-0": ("", "Everyone"),
    })
    ntsd = _descriptor(encode_ace(AccessControlEntry_Type.ACCESS_ALLOWED_ACE_TYPE, mask=1, trustee=EVERYONE))
    lines = render_descriptor(ntsd, identity_resolver=resolver).splitlines()
    assert "Owner:    BUILTIN\\Administrators (S-1-5-32-544)" in lines
    assert "Group:    S-1-5-18" in lines
    assert "    SID:   Everyone (S-1-1-0)" in lines


def test_failing_resolver_falls_back_to_sid_string():
    ntsd = _descriptor(encode_ace(AccessControlEntry_Type.ACCESS_ALLOWED_ACE_TYPE, mask=1, trustee=DOMAIN_USER))
    lines = render_descriptor(ntsd, identity_resolver=FailingResolver()).splitlines()
    assert "Owner:    S-1-5-32-544" in lines
    assert "    SID:   S-1-5-21-1-2-3-1104" in lines


def test_slow_resolver_times_out():
    resolver = BlockingResolver()
    renderer = DescriptorRenderer(identity_resolver=resolver, resolve_timeout=0.05)
    try:
        assert renderer.sid_to_text(DOMAIN_USER) == "S-1-5-21-1-2-3-1104"
    finally:
        resolver.release.set()
        renderer.close()


def test_sddl_output_uses_the_codec(monkeypatch):
    import sddlhelp.render

    monkeypatch.setattr(sddlhelp.render, "descriptor_to_sddl", lambda descriptor: "O:BAG:SYD:(A;;FA;;;WD)")
    ntsd = _descriptor(encode_ace(AccessControlEntry_Type.ACCESS_ALLOWED_ACE_TYPE, mask=0x001F01FF, trustee=EVERYONE))
    assert render_descriptor(ntsd, object_type="SDDL") == "O:BAG:SYD:(A;;FA;;;WD)\n"


def test_rendering_does_not_modify_the_descriptor():
    ntsd = _descriptor(encode_ace(AccessControlEntry_Type.ACCESS_ALLOWED_ACE_TYPE, mask=0x001F01FF, trustee=EVERYONE))
    before = ntsd.toRawBytes()
    render_descriptor(ntsd, object_type="file")
    assert ntsd.toRawBytes() == before


def test_human_describer_summary():
    ntsd = _descriptor(
        encode_ace(AccessControlEntry_Type.ACCESS_ALLOWED_ACE_TYPE, mask=0x00020014, trustee=EVERYONE),
        encode_ace(AccessControlEntry_Type.ACCESS_DENIED_ACE_TYPE, flags=0x10, mask=0x00010000, trustee=SYSTEM),
    )
    lines = HumanDescriber(ntsd=ntsd).summary().splitlines()
    assert lines[0] == "Other objects have the following rights on this object:"
    assert lines[1].startswith("001. ")
    assert "S-1-1-0" in lines[1]
    assert "Read Control" in lines[1]
    assert "Write Extended Properties" not in lines[1]
    assert "by inheritance" in lines[2]
    assert "Delete" in lines[2]
