"""Tests for favkit.identity: canonical ID grammar."""

from __future__ import annotations

import pytest
from favkit.identity import (
    CanonicalId,
    Category,
    card_id,
    category_of,
    compare_key,
    course_id,
    hack_id,
    is_canonical,
    membership_key,
    parse_step,
    step_id,
)


class TestBuilders:
    def test_course_id(self) -> None:
        assert course_id("CourseA") == "course:coursea"

    def test_card_id(self) -> None:
        assert card_id("CourseA", "Lesson1", 3) == "card:step:coursea:lesson1:idx3"

    def test_hack_id(self) -> None:
        assert hack_id("coursea", "lesson1", 0) == "hack:step:coursea:lesson1:idx0"

    def test_step_id_rejects_course(self) -> None:
        with pytest.raises(ValueError):
            step_id(Category.COURSE, "a", "b", 0)


class TestParseStep:
    @pytest.mark.parametrize(
        "raw",
        [
            "card:step:coursea:lesson1:idx3",
            "step:coursea:lesson1:idx3",
            "coursea:lesson1:idx3",
            "Card:Step:CourseA:Lesson1:idx3",
        ],
    )
    def test_card_spellings(self, raw: str) -> None:
        parsed = parse_step(raw)
        assert parsed == CanonicalId(Category.CARD, "coursea", "lesson1", 3)

    def test_hack(self) -> None:
        parsed = parse_step("hack:step:coursea:lesson1:idx7")
        assert parsed is not None
        assert parsed.category is Category.HACK
        assert str(parsed) == "hack:step:coursea:lesson1:idx7"

    @pytest.mark.parametrize(
        "raw",
        ["course:coursea", "coursea.lesson1.greeting", "step:coursea:lesson1:greeting", "a:b", ""],
    )
    def test_rejects_non_step(self, raw: str) -> None:
        assert parse_step(raw) is None

    def test_bare(self) -> None:
        parsed = parse_step("card:step:coursea:lesson1:idx3")
        assert parsed is not None
        assert parsed.bare() == "step:coursea:lesson1:idx3"


class TestIsCanonical:
    def test_canonical(self) -> None:
        assert is_canonical("course:coursea")
        assert is_canonical("card:step:coursea:lesson1:idx3")
        assert is_canonical("hack:step:coursea:lesson1:idx3")

    def test_not_canonical(self) -> None:
        assert not is_canonical("step:coursea:lesson1:idx3")
        assert not is_canonical("Card:step:coursea:lesson1:idx3")
        assert not is_canonical("course:")
        assert not is_canonical("coursea.lesson1.greeting")


class TestCategoryOf:
    def test_prefixes(self) -> None:
        assert category_of("course:a") is Category.COURSE
        assert category_of("card:step:a:b:idx0") is Category.CARD
        assert category_of("step:a:b:idx0") is Category.CARD
        assert category_of("hack:step:a:b:idx0") is Category.HACK

    def test_unknown(self) -> None:
        assert category_of("a.b.c") is None


class TestKeys:
    def test_compare_key_equates_card_spellings(self) -> None:
        assert compare_key("card:step:a:b:idx1") == compare_key("step:a:b:idx1")

    def test_compare_key_keeps_hack(self) -> None:
        assert compare_key("hack:step:a:b:idx1") == "hack:step:a:b:idx1"

    def test_membership_key_course(self) -> None:
        assert membership_key("course:CourseA") == "course:coursea"
        assert membership_key("coursea") == "course:coursea"

    def test_membership_key_card(self) -> None:
        assert membership_key("card:step:a:b:idx1") == "step:a:b:idx1"
        assert membership_key("step:a:b:idx1") == "step:a:b:idx1"
        assert membership_key("a:b:idx1") == "step:a:b:idx1"

    def test_membership_key_hack(self) -> None:
        assert membership_key("hack:step:a:b:idx1") == "hack:step:a:b:idx1"
        assert membership_key("hack:a:b:idx1") == "hack:step:a:b:idx1"
        assert membership_key("hack:card:step:a:b:idx1") == "hack:step:a:b:idx1"

    def test_membership_key_empty(self) -> None:
        assert membership_key("  ") == ""
