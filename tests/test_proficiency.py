"""
Tests for proficiency extraction from structured and prose shapes.
"""

import pytest

from charforge.models import ProficiencyChoice, ProficiencySet
from charforge.normalizers.proficiency import (
    extract_proficiency_set,
    merge_choices,
    merge_sets,
    parse_proficiency_text,
)


class TestStructuredExtraction:

    def test_true_maps_become_fixed(self):
        result = extract_proficiency_set([{"insight": True, "religion": True}], "skills")
        assert result.fixed == ["Insight", "Religion"]
        assert result.choice is None

    def test_choose_block(self):
        result = extract_proficiency_set(
            [{"choose": {"from": ["arcana", "history", "nature"], "count": 2}}], "skills"
        )
        assert result.fixed == []
        assert result.choice.count == 2
        assert result.choice.from_ == ["Arcana", "History", "Nature"]

    def test_choose_defaults_to_one(self):
        result = extract_proficiency_set([{"choose": {"from": ["history"]}}], "skills")
        assert result.choice.count == 1

    def test_fixed_and_choice_together(self):
        result = extract_proficiency_set(
            [{"insight": True, "choose": {"from": ["history", "religion"]}}], "skills"
        )
        assert result.fixed == ["Insight"]
        assert result.choice.from_ == ["History", "Religion"]

    @pytest.mark.parametrize("value,count", [
        ([{"anyStandard": 2}], 2),
        ([{"any": 1}], 1),
        (["any"], 1),
    ])
    def test_any_markers(self, value, count):
        result = extract_proficiency_set(value, "languages")
        assert result.fixed == []
        assert result.choice == ProficiencyChoice(count=count, from_=["any"])

    def test_choose_from_filter_is_any(self):
        result = extract_proficiency_set([{"choose": {"fromFilter": "type=AT", "count": 1}}], "tools")
        assert result.choice.from_ == ["any"]

    def test_tools_canonicalized(self):
        result = extract_proficiency_set([{"thieves' tools": True}, "disguise kit"], "tools")
        assert result.fixed == ["Thieves' tools", "Disguise kit"]

    def test_numeric_value_is_typed_choice(self):
        result = extract_proficiency_set([{"gaming set": 1}], "tools")
        assert result.choice == ProficiencyChoice(count=1, from_=["Gaming set"])

    def test_single_element_accepted(self):
        result = extract_proficiency_set({"common": True, "elvish": True}, "languages")
        assert result.fixed == ["Common", "Elvish"]

    def test_duplicates_removed(self):
        result = extract_proficiency_set([{"insight": True}, {"insight": True}], "skills")
        assert result.fixed == ["Insight"]

    def test_none(self):
        assert extract_proficiency_set(None, "skills").is_empty()


class TestProseParsing:

    def test_tagged_list(self):
        result = parse_proficiency_text("{@skill Insight}, {@skill Religion}", "skills")
        assert result.fixed == ["Insight", "Religion"]
        assert result.choice is None

    def test_plain_list(self):
        result = parse_proficiency_text("Disguise kit, forgery kit", "tools")
        assert result.fixed == ["Disguise kit", "Forgery kit"]

    def test_choose_from_list(self):
        result = parse_proficiency_text("Choose two from Arcana, History, and Religion", "skills")
        assert result.fixed == []
        assert result.choice.count == 2
        assert result.choice.from_ == ["Arcana", "History", "Religion"]

    def test_type_of(self):
        result = parse_proficiency_text("One type of gaming set", "tools")
        assert result.choice == ProficiencyChoice(count=1, from_=["Gaming set"])

    def test_of_your_choice(self):
        result = parse_proficiency_text("Two of your choice", "languages")
        assert result.choice == ProficiencyChoice(count=2, from_=["any"])

    def test_fixed_plus_choice(self):
        result = parse_proficiency_text(
            "{@skill Insight}, plus one from among {@skill History} and {@skill Religion}",
            "skills",
        )
        assert result.fixed == ["Insight"]
        assert result.choice.count == 1
        assert result.choice.from_ == ["History", "Religion"]

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_text(self, text):
        assert parse_proficiency_text(text, "skills").is_empty()


class TestMerging:

    def test_merge_choices_adds_counts(self):
        merged = merge_choices(
            ProficiencyChoice(count=1, from_=["Arcana", "History"]),
            ProficiencyChoice(count=2, from_=["History", "Nature"]),
        )
        assert merged.count == 3
        assert merged.from_ == ["Arcana", "History", "Nature"]

    def test_merge_choices_with_none(self):
        choice = ProficiencyChoice(count=1, from_=["Arcana"])
        assert merge_choices(None, choice) is choice
        assert merge_choices(choice, None) is choice
        assert merge_choices(None, None) is None

    def test_merge_sets(self):
        merged = merge_sets(
            ProficiencySet(fixed=["Insight"]),
            ProficiencySet(fixed=["Insight", "Religion"], choice=ProficiencyChoice(count=1, from_=["any"])),
        )
        assert merged.fixed == ["Insight", "Religion"]
        assert merged.choice.count == 1
