"""Tests for storyloom.models."""

import pytest
from pydantic import ValidationError

from storyloom.models import (
    ActivationSettings,
    Lorebook,
    LorebookEntry,
    SelectiveLogic,
)


class TestLorebookEntry:
    def test_defaults(self) -> None:
        e = LorebookEntry()
        assert e.enabled is True
        assert e.constant is False
        assert e.insertion_order == 100
        assert e.probability == 100
        assert e.selective_logic == SelectiveLogic.AND_ANY
        assert e.keys == []
        assert e.group == ""
        assert e.lorebook_name is None

    def test_accepts_camel_case(self) -> None:
        e = LorebookEntry.model_validate({
            "id": 3,
            "secondaryKeys": ["fire"],
            "insertionOrder": 250,
            "preventRecursion": True,
            "delayUntilRecursion": True,
        })
        assert e.secondary_keys == ["fire"]
        assert e.insertion_order == 250
        assert e.prevent_recursion is True
        assert e.delay_until_recursion is True

    def test_dumps_camel_case_by_alias(self) -> None:
        dumped = LorebookEntry(match_whole_words=True).model_dump(by_alias=True)
        assert dumped["matchWholeWords"] is True
        assert "match_whole_words" not in dumped

    def test_string_and_int_ids(self) -> None:
        assert LorebookEntry(id="a-1").id == "a-1"
        assert LorebookEntry(id=7).id == 7

    def test_invalid_keys_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LorebookEntry(keys="dragon")

    def test_token_cost_rounds_up(self) -> None:
        assert LorebookEntry(content="").token_cost == 0
        assert LorebookEntry(content="abcd").token_cost == 1
        assert LorebookEntry(content="abcde").token_cost == 2

    def test_group_key_trims(self) -> None:
        assert LorebookEntry(group="  weather ").group_key == "weather"
        assert LorebookEntry(group="   ").group_key == ""

    def test_unknown_selective_logic_kept(self) -> None:
        assert LorebookEntry(selective_logic=7).selective_logic == 7

    def test_serialise_roundtrip(self) -> None:
        e = LorebookEntry(id=1, keys=["dragon"], content="Big.", group="g", extensions={"x": 1})
        restored = LorebookEntry.model_validate_json(e.model_dump_json(by_alias=True))
        assert restored == e


class TestLorebook:
    def test_defaults(self) -> None:
        book = Lorebook()
        assert book.name == "Untitled Lorebook"
        assert book.entries == []
        assert book.recursive_scanning is True

    def test_nested_entries_validated(self) -> None:
        book = Lorebook.model_validate({"name": "B", "entries": [{"id": 1, "keys": ["k"]}]})
        assert isinstance(book.entries[0], LorebookEntry)


class TestActivationSettings:
    def test_defaults(self) -> None:
        s = ActivationSettings()
        assert (s.scan_depth, s.token_budget, s.recursion_depth, s.enable_recursion) == (
            2000, 1800, 3, True,
        )
        assert s.scan_chars == 8000
