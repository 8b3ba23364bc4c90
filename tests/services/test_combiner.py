"""
Tests for the text combiner.
"""

import json

import pytest

from contentvault.services.pipeline.combiner import combine_content_for_embedding


FULL_FIELDS = dict(
    title="Sourdough bread",
    summary="A sourdough recipe",
    description="Weekend loaf",
    labels=["cooking", "bread"],
    metadata={"tags": ["baking", "yeast"], "difficulty": "medium", "cuisine": "french"},
    content="Mix flour and water.",
)


def test_parts_are_in_fixed_order():
    text = combine_content_for_embedding(**FULL_FIELDS)

    assert text.split("\n\n") == [
        "Title: Sourdough bread",
        "Summary: A sourdough recipe",
        "Description: Weekend loaf",
        "Tags: cooking, bread",
        "MetaTags: baking, yeast",
        'Metadata: {"cuisine": "french", "difficulty": "medium"}',
        "Content: Mix flour and water.",
    ]


def test_absent_fields_are_omitted():
    text = combine_content_for_embedding(title="Only a title", labels=[], metadata={"tags": []})

    assert text == "Title: Only a title"


def test_no_fields_gives_empty_string():
    assert combine_content_for_embedding() == ""


def test_content_is_truncated_with_marker():
    text = combine_content_for_embedding(content="x" * 2500, max_content_chars=2000)

    assert text == "Content: " + "x" * 2000 + "..."


def test_content_at_limit_is_not_truncated():
    text = combine_content_for_embedding(content="y" * 2000, max_content_chars=2000)

    assert text == "Content: " + "y" * 2000


def test_metadata_keys_are_sorted_for_determinism():
    a = combine_content_for_embedding(metadata={"b": 1, "a": 2})
    b = combine_content_for_embedding(metadata={"a": 2, "b": 1})

    assert a == b
    assert json.loads(a.removeprefix("Metadata: ")) == {"a": 2, "b": 1}


def test_same_fields_give_identical_output():
    assert combine_content_for_embedding(**FULL_FIELDS) == combine_content_for_embedding(**FULL_FIELDS)


@pytest.mark.parametrize("field,value", [
    ("title", "Rye bread"),
    ("summary", "Another summary"),
    ("description", "Weekday loaf"),
    ("labels", ["cooking"]),
    ("metadata", {"tags": ["baking"], "difficulty": "medium", "cuisine": "french"}),
    ("metadata", {"tags": ["baking", "yeast"], "difficulty": "hard", "cuisine": "french"}),
    ("content", "Mix rye flour and water."),
])
def test_changing_any_field_changes_output(field, value):
    original = combine_content_for_embedding(**FULL_FIELDS)
    changed = combine_content_for_embedding(**{**FULL_FIELDS, field: value})

    assert changed != original
