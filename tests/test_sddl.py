import struct

import pytest

from sddlhelp.ace import encode_ace
from sddlhelp.acl import DiscretionaryAccessControlList
from sddlhelp.constants import AccessControlEntry_Type, FILE_ALL_ACCESS, GENERIC_ALL
from sddlhelp.descriptor import AclState, NTSecurityDescriptor
from sddlhelp.exceptions import SDDLConversionError
from sddlhelp.render import render_sddl
from sddlhelp.sddl import descriptor_to_sddl, expand_sid_aliases, sddl_to_descriptor
from sddlhelp.sid import SID


EVERYONE = SID.fromStrFormat("S-1-1-0")
ADMINISTRATORS = SID.fromStrFormat("S-1-5-32-544")
SYSTEM = SID.fromStrFormat("S-1-5-18")


def test_sddl_to_descriptor():
    ntsd = sddl_to_descriptor("O:BAG:SYD:(A;;GA;;;WD)")
    assert ntsd.owner == ADMINISTRATORS
    assert ntsd.group == SYSTEM
    assert ntsd.dacl_state == AclState.ENTRIES
    assert ntsd.dacl[0].ace_type == AccessControlEntry_Type.ACCESS_ALLOWED_ACE_TYPE
    assert ntsd.dacl[0].mask == GENERIC_ALL
    assert ntsd.dacl[0].trustee == EVERYONE


def test_descriptor_to_sddl_and_back():
    ace = encode_ace(AccessControlEntry_Type.ACCESS_ALLOWED_ACE_TYPE, mask=GENERIC_ALL, trustee=EVERYONE)
    dacl = DiscretionaryAccessControlList.fromRawBytes(struct.pack('<BBHHH', 2, 0, 8 + len(ace), 1, 0) + ace)
    ntsd = NTSecurityDescriptor(owner=ADMINISTRATORS, group=SYSTEM, dacl=dacl)

    sddl = descriptor_to_sddl(ntsd)
    assert sddl.startswith("O:")
    assert descriptor_to_sddl(ntsd.toRawBytes()) == sddl

    parsed = sddl_to_descriptor(sddl)
    assert parsed.owner == ADMINISTRATORS
    assert parsed.group == SYSTEM
    assert [(a.mask, a.trustee) for a in parsed.dacl] == [(GENERIC_ALL, EVERYONE)]


def test_render_sddl():
    lines = render_sddl("O:BAG:SYD:(A;;GA;;;WD)", object_type="file").splitlines()
    assert "Owner:    S-1-5-32-544" in lines
    assert "           GENERIC_ALL" in lines


@pytest.mark.parametrize("sddl", ["", "   ", None])
def test_missing_sddl(sddl):
    with pytest.raises(SDDLConversionError):
        sddl_to_descriptor(sddl)


def test_unconvertible_descriptors():
    with pytest.raises(SDDLConversionError):
        descriptor_to_sddl(42)

    ntsd = NTSecurityDescriptor.fromRawBytes(struct.pack('<BBHIIII', 1, 0, 0x8004, 0, 0, 0, 0x400))
    assert ntsd.dacl_state == AclState.INVALID
    with pytest.raises(SDDLConversionError):
        descriptor_to_sddl(ntsd)


def test_builtin_aliases():
    ntsd = sddl_to_descriptor("O:BAG:SYD:(A;;FA;;;BA)(A;;FA;;;BU)")
    assert ntsd.owner == ADMINISTRATORS
    assert [(a.mask, a.trustee.toString()) for a in ntsd.dacl] == [
        (FILE_ALL_ACCESS, "S-1-5-32-544"),
        (FILE_ALL_ACCESS, "S-1-5-32-545"),
    ]


def test_domain_aliases_need_a_domain_sid():
    sddl = "O:DAG:DUD:(A;;FA;;;DA)"
    with pytest.raises(SDDLConversionError):
        sddl_to_descriptor(sddl)

    ntsd = sddl_to_descriptor(sddl, domain_sid="S-1-5-21-1-2-3")
    assert ntsd.owner == SID.fromStrFormat("S-1-5-21-1-2-3-512")
    assert ntsd.group == SID.fromStrFormat("S-1-5-21-1-2-3-513")
    assert ntsd.dacl[0].trustee == SID.fromStrFormat("S-1-5-21-1-2-3-512")


def test_invalid_domain_sid():
    with pytest.raises(SDDLConversionError):
        sddl_to_descriptor("O:DAD:(A;;FA;;;DA)", domain_sid="not a sid")


def test_expand_sid_aliases_only_touches_account_fields():
    assert expand_sid_aliases("O:BAG:SYD:PAI(A;OICI;FA;;;BA)(A;;RC;;;SY)") == (
        "O:S-1-5-32-544G:SYD:PAI(A;OICI;FA;;;S-1-5-32-544)(A;;RC;;;SY)"
    )
    assert expand_sid_aliases("D:(A;;FA;;;LS)", domain_sid=SID.fromStrFormat("S-1-5-21-1-2-3")) == "D:(A;;FA;;;S-1-5-19)"
