"""Tests for favkit.content and the in-memory providers."""

from __future__ import annotations

import pytest
from favkit.content import (
    ContentItem,
    ContentSchema,
    ItemKind,
    adapt_item,
    adapt_items,
    detect_schema,
)
from favkit.providers import DictTitleProvider, InMemoryContentProvider, RecordingAggregator


class TestItemKind:
    def test_known(self) -> None:
        assert ItemKind.parse("word") is ItemKind.WORD
        assert ItemKind.parse("Dialog") is ItemKind.DIALOG

    def test_tip_aliases(self) -> None:
        assert ItemKind.parse("lifehack") is ItemKind.TIP
        assert ItemKind.parse("hack") is ItemKind.TIP

    def test_unknown_defaults_to_phrase(self) -> None:
        assert ItemKind.parse(None) is ItemKind.PHRASE
        assert ItemKind.parse("quiz") is ItemKind.PHRASE


class TestDetectSchema:
    def test_current(self) -> None:
        assert detect_schema({"identifier": "x"}) is ContentSchema.CURRENT

    def test_legacy_v2(self) -> None:
        assert detect_schema({"stepId": "x", "titleRU": "a"}) is ContentSchema.LEGACY_V2

    def test_legacy_v1(self) -> None:
        assert detect_schema({"id": "x", "ru": "a"}) is ContentSchema.LEGACY_V1

    def test_unknown_raises(self) -> None:
        with pytest.raises(ValueError, match="Unrecognized"):
            detect_schema({"name": "x"})


class TestAdapt:
    def test_passthrough(self) -> None:
        item = ContentItem("greeting")
        assert adapt_item(item) is item

    def test_current(self) -> None:
        item = adapt_item(
            {"identifier": "greeting", "kind": "word", "primary_text": "hello", "secondary_text": "sawasdee"}
        )
        assert item == ContentItem("greeting", ItemKind.WORD, "hello", "sawasdee", "")

    def test_legacy_v2(self) -> None:
        item = adapt_item(
            {"stepId": "greeting", "titleRU": "hello", "subtitleTH": "sawasdee", "phonetic": "sa-wat-dee"}
        )
        assert item.identifier == "greeting"
        assert item.primary_text == "hello"
        assert item.secondary_text == "sawasdee"
        assert item.meta_text == "sa-wat-dee"

    def test_legacy_v1_tip(self) -> None:
        item = adapt_item({"id": "tones", "ru": "Tip", "tip": "Remember tones!"})
        assert item.is_tip
        assert item.secondary_text == "Remember tones!"

    def test_none_values_become_empty(self) -> None:
        item = adapt_item({"identifier": "x", "primary_text": None})
        assert item.primary_text == ""

    def test_mixed_list(self) -> None:
        items = adapt_items([{"identifier": "a"}, {"stepId": "b"}, {"id": "c"}])
        assert [i.identifier for i in items] == ["a", "b", "c"]


class TestInMemoryContentProvider:
    def test_items_and_lessons(self) -> None:
        provider = InMemoryContentProvider()
        provider.add_lesson("CourseA", "Lesson1", [{"identifier": "a"}])
        provider.add_lesson("coursea", "lesson2", [{"identifier": "b"}])
        assert [i.identifier for i in provider.items("LESSON1")] == ["a"]
        assert provider.lessons("coursea") == ["lesson1", "lesson2"]

    def test_unknown_lesson_is_empty(self) -> None:
        provider = InMemoryContentProvider()
        assert provider.items("nope") == []
        assert provider.lessons("nope") == []

    def test_replace_lesson(self) -> None:
        provider = InMemoryContentProvider()
        provider.add_lesson("c", "l", [{"identifier": "a"}])
        provider.add_lesson("c", "l", [{"identifier": "b"}])
        assert [i.identifier for i in provider.items("l")] == ["b"]
        assert provider.lessons("c") == ["l"]


class TestDictTitleProvider:
    def test_lookup_normalized(self) -> None:
        titles = DictTitleProvider({("CourseA", "Lesson1"): "Greetings"})
        assert titles.title("coursea", "lesson1") == "Greetings"
        assert titles.title("coursea", "lesson2") is None

    def test_set_title(self) -> None:
        titles = DictTitleProvider()
        titles.set_title("c", "l", "Numbers")
        assert titles.title("c", "l") == "Numbers"


class TestRecordingAggregator:
    def test_prefix_routed_membership(self) -> None:
        agg = RecordingAggregator()
        agg.set_favorites(
            frozenset({"course:a"}),
            frozenset({"card:step:a:b:idx0"}),
            frozenset({"hack:step:a:b:idx1"}),
        )
        assert agg.calls == 1
        assert agg.is_favorite_id("course:a")
        assert agg.is_favorite_id("card:step:a:b:idx0")
        assert agg.is_favorite_id("hack:step:a:b:idx1")
        assert not agg.is_favorite_id("hack:step:a:b:idx0")
