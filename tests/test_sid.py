import pytest

from sddlhelp.exceptions import InvalidSIDFormat
from sddlhelp.sid import SID, SID_IDENTIFIER_AUTHORITY, SECURITY_NT_NON_UNIQUE


def test_string_round_trip():
    sid = SID.fromStrFormat("S-1-5-21-2127521184-1604012920-1887927527-171278")
    assert sid.revisionLevel == 1
    assert sid.identifierAuthority == 5
    assert sid.subAuthorities == (21, 2127521184, 1604012920, 1887927527, 171278)
    assert sid.relativeIdentifier == 171278
    assert sid.toString() == "S-1-5-21-2127521184-1604012920-1887927527-171278"


def test_large_authority_is_written_in_hex():
    sid = SID(1, 0x0000FFFFFFFFFF, [1])
    assert sid.toString() == "S-1-0x00ffffffffff-1"
    assert SID.fromStrFormat("S-1-0x00ffffffffff-1") == sid


def test_authority_up_to_32_bits_is_decimal():
    sid = SID(1, 0xFFFFFFFF, [])
    assert sid.toString() == "S-1-4294967295"


def test_raw_bytes():
    raw = bytes.fromhex("010200000000000520000000" + "20020000")
    sid = SID.fromRawBytes(raw)
    assert sid.toString() == "S-1-5-32-544"
    assert sid.bytesize == 16
    assert sid.toRawBytes() == raw


def test_raw_bytes_trailing_data_is_ignored():
    raw = SID.fromStrFormat("S-1-5-18").toRawBytes()
    assert SID.fromRawBytes(raw + b"\xff" * 7).toString() == "S-1-5-18"


def test_truncated_raw_bytes_are_rejected():
    # Advertises two sub-authorities, carries one
    raw = bytes.fromhex("010200000000000520000000")
    with pytest.raises(InvalidSIDFormat):
        SID.fromRawBytes(raw)
    with pytest.raises(InvalidSIDFormat):
        SID.fromRawBytes(b"\x01\x00")


def test_count_mismatch_is_rejected():
    with pytest.raises(InvalidSIDFormat):
        SID(1, 5, [21, 1], subAuthorityCount=3)


def test_too_many_sub_authorities():
    with pytest.raises(InvalidSIDFormat):
        SID(1, 5, range(16))


@pytest.mark.parametrize("text", ["", "S-1", "X-1-5-18", "S-1-5-abc", "S-1-5--18"])
def test_bad_strings_are_rejected(text):
    with pytest.raises(InvalidSIDFormat):
        SID.fromStrFormat(text)


def test_equality_and_hash():
    a = SID.fromStrFormat("S-1-5-21-1-2-3-500")
    b = SID(1, 5, [21, 1, 2, 3, 500])
    assert a == b
    assert hash(a) == hash(b)
    assert len({a, b}) == 1
    assert a != SID(1, 5, [21, 1, 2, 3, 501])
    assert a != SID(1, 5, [21, 1, 2, 4, 500])


def test_shares_authority_prefix():
    machine = SID.fromStrFormat("S-1-5-21-1-2-3")
    account = SID.fromStrFormat("S-1-5-21-1-2-3-1001")
    other = SID.fromStrFormat("S-1-5-21-9-2-3-1001")
    assert machine.sharesAuthorityPrefix(account)
    assert account.sharesAuthorityPrefix(machine)
    assert not machine.sharesAuthorityPrefix(other)
    assert not machine.sharesAuthorityPrefix(SID(1, 4, [21, 1, 2, 3]))
    assert not machine.sharesAuthorityPrefix(None)


@pytest.mark.parametrize("text", ["S-1-1-0", "S-1-5-18", "S-1-5-21-1-2-3-500", "S-1-0x00ffffffffff-1"])
def test_shares_authority_prefix_with_itself(text):
    sid = SID.fromStrFormat(text)
    assert sid.sharesAuthorityPrefix(sid)


def test_has_authority_and_first_sub_authority():
    sid = SID.fromStrFormat("S-1-5-21-1-2-3-500")
    assert sid.hasAuthorityAndFirstSubAuthority(SID_IDENTIFIER_AUTHORITY.SECURITY_NT_AUTHORITY, SECURITY_NT_NON_UNIQUE)
    assert sid.hasAuthorityAndFirstSubAuthority(5, 21)
    assert not sid.hasAuthorityAndFirstSubAuthority(5, 32)
    assert not sid.hasAuthorityAndFirstSubAuthority(1, 21)


def test_no_sub_authorities_never_match():
    assert not SID(1, 5, []).hasAuthorityAndFirstSubAuthority(5, 0)


def test_classification():
    assert SID.fromStrFormat("S-1-5-80-123-456").isNtServiceSid()
    assert not SID.fromStrFormat("S-1-5-18").isNtServiceSid()
    assert SID.fromStrFormat("S-1-5-21-1-2-3-500").isNonUniqueSid()
    assert not SID.fromStrFormat("S-1-5-32-544").isNonUniqueSid()


def test_is_machine_local():
    machine = SID.fromStrFormat("S-1-5-21-10-20-30")
    assert SID.fromStrFormat("S-1-5-21-10-20-30-1001").isMachineLocal(machine)
    assert not SID.fromStrFormat("S-1-5-21-11-20-30-1001").isMachineLocal(machine)
    assert not SID.fromStrFormat("S-1-5-21-10-20-30-1001").isMachineLocal(None)


def test_well_known_name():
    assert SID.fromStrFormat("S-1-5-18").wellKnownName() == "NT AUTHORITY\\SYSTEM"
    assert SID.fromStrFormat("S-1-5-21-1-2-3-1001").wellKnownName() is None
