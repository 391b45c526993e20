"""Unit tests for gateway/allowlist/filter.py: field allowlist filtering.

Verifies:
  - Closure: every scalar path in the output is admitted by the allowlist
  - Disallowed fields are removed, never blanked
  - Nested objects (depth >= 5) and arrays of objects are filtered per element
  - Empty containers left after filtering are dropped
  - Keys containing path syntax cannot impersonate nested fields
  - Idempotence, and the input is never mutated
"""

from __future__ import annotations

import copy

import pytest

from gateway.allowlist.filter import filter_payload
from gateway.allowlist.loader import Allowlist, AllowlistRegistry
from gateway.models.payload import iter_strings, leaf_paths
from gateway.models.verdict import Category

# ─── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def deep_allowlist() -> Allowlist:
    return Allowlist(
        category=Category.CAMPAIGN,
        entries=(
            "a.b.c.d.e.f",
            "list[].items[].value",
            "tags",
            "matrix",
            "meta.title",
        ),
    )


@pytest.fixture
def campaign() -> Allowlist:
    return AllowlistRegistry.defaults().get(Category.CAMPAIGN)


@pytest.fixture
def analytics() -> Allowlist:
    return AllowlistRegistry.defaults().get(Category.ANALYTICS)


MESSY_PAYLOAD: dict = {
    "a": {"b": {"c": {"d": {"e": {"f": "deep", "g": "drop"}, "x": 1}}}},
    "list": [
        {"items": [{"value": "v1", "secret": "s"}, {"secret": "only"}], "owner": "o"},
        "stray scalar",
        {"items": []},
    ],
    "tags": ["one", "two", {"nested": "no"}],
    "matrix": [[1, 2], [3]],
    "meta": {"title": "T", "author": {"name": "N"}},
    "extra": {"meta": {"title": "not here"}},
}


# ─── Closure ──────────────────────────────────────────────────────────────────


class TestClosure:
    def test_every_output_leaf_is_admitted(self, deep_allowlist: Allowlist) -> None:
        result = filter_payload(MESSY_PAYLOAD, deep_allowlist)
        for path in leaf_paths(result):
            assert deep_allowlist.admits_leaf(path), f"{path!r} escaped the allowlist"

    def test_messy_payload_reduces_exactly(self, deep_allowlist: Allowlist) -> None:
        assert filter_payload(MESSY_PAYLOAD, deep_allowlist) == {
            "a": {"b": {"c": {"d": {"e": {"f": "deep"}}}}},
            "list": [{"items": [{"value": "v1"}]}],
            "tags": ["one", "two"],
            "matrix": [[1, 2], [3]],
            "meta": {"title": "T"},
        }

    def test_exact_entry_does_not_admit_an_object(self, deep_allowlist: Allowlist) -> None:
        assert filter_payload({"tags": {"x": "y"}}, deep_allowlist) == {}

    def test_descent_path_does_not_admit_a_scalar(self, deep_allowlist: Allowlist) -> None:
        assert filter_payload({"meta": "a scalar where an object belongs"}, deep_allowlist) == {}


# ─── Drop, never blank ────────────────────────────────────────────────────────


class TestDropNotBlank:
    def test_disallowed_keys_are_absent(self, campaign: Allowlist) -> None:
        payload = {
            "profile": {"name": "Hope Foundation", "email": "contact@hope.org"},
            "donors": [{"name": "John Doe", "email": "john@example.com"}],
        }
        result = filter_payload(payload, campaign)
        assert result == {"profile": {"name": "Hope Foundation"}}
        assert "donors" not in result
        assert "email" not in result["profile"]

    def test_no_dropped_value_survives_as_text(self, campaign: Allowlist) -> None:
        payload = {"profile": {"name": "Hope", "phone": "555-123-4567"}}
        assert "555-123-4567" not in list(iter_strings(filter_payload(payload, campaign)))

    def test_null_scalar_at_allowed_path_is_kept(self, campaign: Allowlist) -> None:
        assert filter_payload({"system": None}, campaign) == {"system": None}


# ─── Arrays ───────────────────────────────────────────────────────────────────


class TestArrays:
    def test_array_of_objects_filtered_per_element(self, campaign: Allowlist) -> None:
        payload = {
            "snippets": [
                {"title": "Spring", "content": "Help us grow", "author": "jane@x.org"},
                {"title": "Fall", "donor_ids": [1, 2, 3]},
            ]
        }
        assert filter_payload(payload, campaign) == {
            "snippets": [
                {"title": "Spring", "content": "Help us grow"},
                {"title": "Fall"},
            ]
        }

    def test_scalar_array_at_exact_path(self, campaign: Allowlist) -> None:
        payload = {"params": {"channels": ["mail", "email"], "list_id": 9}}
        assert filter_payload(payload, campaign) == {"params": {"channels": ["mail", "email"]}}

    def test_empty_array_is_dropped(self, campaign: Allowlist) -> None:
        assert filter_payload({"snippets": []}, campaign) == {}

    def test_array_emptied_by_filtering_is_dropped(self, campaign: Allowlist) -> None:
        assert filter_payload({"snippets": [{"author": "x"}, 3, "y"]}, campaign) == {}

    def test_analytics_rows_keep_aggregates_only(self, analytics: Allowlist) -> None:
        payload = {
            "metric": "retention",
            "data": [
                {"year": 2024, "donor_count": 120, "donor_name": "Jane Roe"},
                {"year": 2023, "donor_count": 98, "donor_email": "a@b.org"},
            ],
            "cohort_size": 218,
        }
        assert filter_payload(payload, analytics) == {
            "metric": "retention",
            "data": [{"year": 2024, "donor_count": 120}, {"year": 2023, "donor_count": 98}],
        }


# ─── Path confusion ───────────────────────────────────────────────────────────


class TestPathSyntaxKeys:
    @pytest.mark.parametrize("key", ["profile.name", "snippets[]", "a]b", "x[0]"])
    def test_keys_with_path_syntax_are_dropped(self, campaign: Allowlist, key: str) -> None:
        assert filter_payload({key: "value"}, campaign) == {}

    def test_empty_key_is_dropped(self, campaign: Allowlist) -> None:
        assert filter_payload({"": "value"}, campaign) == {}


# ─── Totality and purity ──────────────────────────────────────────────────────


class TestTotality:
    @pytest.mark.parametrize("payload", [None, [], "text", 7, [{"profile": {"name": "x"}}]])
    def test_non_object_payload_reduces_to_empty(self, campaign: Allowlist, payload: object) -> None:
        assert filter_payload(payload, campaign) == {}

    def test_idempotent(self, deep_allowlist: Allowlist) -> None:
        once = filter_payload(MESSY_PAYLOAD, deep_allowlist)
        assert filter_payload(once, deep_allowlist) == once

    def test_input_is_not_mutated(self, deep_allowlist: Allowlist) -> None:
        before = copy.deepcopy(MESSY_PAYLOAD)
        filter_payload(MESSY_PAYLOAD, deep_allowlist)
        assert MESSY_PAYLOAD == before

    def test_output_shares_no_containers_with_input(self, campaign: Allowlist) -> None:
        payload = {"profile": {"name": "Hope"}}
        result = filter_payload(payload, campaign)
        assert result["profile"] is not payload["profile"]
