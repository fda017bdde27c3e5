import pytest

from sddlhelp.constants import (
    DELETE, FILE_ALL_ACCESS, FILE_GENERIC_READ, FILE_READ_DATA, GENERIC_ALL, GENERIC_READ, KEY_READ, READ_CONTROL, SYNCHRONIZE, WRITE_DAC
)
from sddlhelp.permissions import UNRECOGNIZED_OBJECT_TYPE, VOCABULARIES, lookup, resolve_permissions


def _mask_of(vocabulary, names):
    tables = vocabulary.aggregate + vocabulary.generic + vocabulary.specific + vocabulary.standard
    by_name = dict((name, mask) for mask, name in tables)
    result = 0
    for name in names:
        result |= by_name[name]
    return result


def test_lookup_is_case_insensitive():
    assert lookup("FILE") is lookup("file")
    assert lookup("Key").tag == "key"


def test_lookup_unknown():
    assert lookup("bogus") is None
    assert lookup(None) is None
    assert lookup("") is None


def test_every_tag_has_generic_and_standard_tables():
    for tag, vocabulary in VOCABULARIES.items():
        assert vocabulary.tag == tag
        assert len(vocabulary.generic) == 4
        assert len(vocabulary.standard) > 0


def test_names_are_unique_within_a_table():
    for vocabulary in VOCABULARIES.values():
        for table in (vocabulary.aggregate, vocabulary.generic, vocabulary.specific, vocabulary.standard):
            names = [name for mask, name in table]
            assert len(names) == len(set(names)), vocabulary.tag


def test_file_all_access():
    assert resolve_permissions(0x001F01FF, "file") == (["FILE_ALL_ACCESS"], 0)
    assert resolve_permissions(FILE_ALL_ACCESS, "file") == (["FILE_ALL_ACCESS"], 0)


def test_generic_then_specific():
    assert resolve_permissions(GENERIC_ALL | FILE_READ_DATA, "file") == (["GENERIC_ALL", "FILE_READ_DATA"], 0)


def test_specific_then_standard():
    names, residual = resolve_permissions(FILE_READ_DATA | DELETE | WRITE_DAC, "file")
    assert names == ["FILE_READ_DATA", "DELETE", "WRITE_DAC"]
    assert residual == 0


def test_residual_bits_are_returned():
    names, residual = resolve_permissions(GENERIC_READ | 0x00008000, "file")
    assert names == ["GENERIC_READ"]
    assert residual == 0x00008000


def test_unrecognized_object_type():
    assert resolve_permissions(0x1234, "bogus") == ([UNRECOGNIZED_OBJECT_TYPE], 0x1234)


def test_exact_aggregate_match_wins_over_decomposition():
    assert resolve_permissions(FILE_GENERIC_READ, "file") == (["FILE_GENERIC_READ"], 0)
    # Same bits against a type without that aggregate are decomposed
    names, residual = resolve_permissions(FILE_GENERIC_READ, "standard")
    assert "READ_CONTROL" in names
    assert "SYNCHRONIZE" in names


def test_first_aggregate_wins_on_shared_values():
    assert resolve_permissions(KEY_READ, "key") == (["KEY_READ"], 0)


def test_aggregate_needs_the_whole_mask():
    names, residual = resolve_permissions(FILE_ALL_ACCESS | GENERIC_READ, "file")
    assert "FILE_ALL_ACCESS" not in names
    assert names[0] == "GENERIC_READ"


def test_mask_is_truncated_to_32_bits():
    assert resolve_permissions((1 << 40) | READ_CONTROL, "file") == (["READ_CONTROL"], 0)


@pytest.mark.parametrize("tag", sorted(VOCABULARIES.keys()))
@pytest.mark.parametrize("mask", [0, 1, 0x3, 0x00100000, 0x000F003F, 0x001F01FF, 0x8000FFFF, 0xF3FFFFFF, 0xFFFFFFFF])
def test_no_bits_are_lost_or_counted_twice(tag, mask):
    vocabulary = lookup(tag)
    names, residual = resolve_permissions(mask, tag)

    if len(names) == 1 and names[0] in [name for m, name in vocabulary.aggregate]:
        assert residual == 0
        assert _mask_of(vocabulary, names) == mask
        return

    reported = 0
    for name in names:
        __mask = _mask_of(vocabulary, [name])
        assert reported & __mask == 0, name
        reported |= __mask
    assert reported | residual == mask
    assert reported & residual == 0


@pytest.mark.parametrize("tag", sorted(VOCABULARIES.keys()))
def test_every_aggregate_resolves_to_itself(tag):
    vocabulary = lookup(tag)
    seen = set()
    for mask, name in vocabulary.aggregate:
        if mask in seen:
            continue
        seen.add(mask)
        assert resolve_permissions(mask, tag) == ([name], 0)


def test_synchronize_is_a_standard_right():
    assert resolve_permissions(SYNCHRONIZE, "process") == (["SYNCHRONIZE"], 0)
