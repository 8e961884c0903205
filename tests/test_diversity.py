"""
Diversity / Mixing Tests

Tests the capped merge of per-type ranked lists and exploration injection.

Test Scenarios:
---------------
1. Type cap: limit 12 over four types admits at most 3 of each type
2. Relaxation: a type with too few items leaves room that capped types fill
3. De-duplication by (entity_type, id)
4. Exploration: seeded rng gives deterministic surprise picks that keep the cap
5. Full pipeline over four types with two surprise picks keeps the cap

Run:
----
    pytest tests/test_diversity.py -v
"""

import random

import pytest

from recengine.models import RecommendationConfig
from recengine.stages import create_recommendation_set, inject_exploration, mix_ranked_lists, per_type_cap

from .conftest import ENTITY_TYPES, NOW, catalog_records, scored


def _ranked(entity_type: str, n: int, base: float, step: float = 0.01, tags=("beauty",)):
    return [scored(f"{entity_type}-{i}", round(base - i * step, 4), entity_type, tags=tags) for i in range(n)]


def _four_type_lists():
    """Creators score highest; every type has plenty of items."""
    return {
        "creator": _ranked("creator", 10, 0.95),
        "opportunity": _ranked("opportunity", 10, 0.80),
        "partner": _ranked("partner", 10, 0.70),
        "content": _ranked("content", 10, 0.60),
    }


def _counts(items):
    counts = {}
    for s in items:
        counts[s.entity_type] = counts.get(s.entity_type, 0) + 1
    return counts


class TestTypeCap:
    """Greedy capped merge."""

    def test_cap_formula(self):
        assert per_type_cap(12, 4) == 3
        assert per_type_cap(10, 4) == 3
        assert per_type_cap(5, 1) == 5

    def test_no_type_exceeds_cap(self):
        mixed = mix_ranked_lists(_four_type_lists(), 12, ENTITY_TYPES)
        assert len(mixed) == 12
        assert all(count <= 3 for count in _counts(mixed).values())

    def test_highest_scores_of_each_type_are_kept(self):
        mixed = mix_ranked_lists(_four_type_lists(), 12, ENTITY_TYPES)
        ids = {s.id for s in mixed}
        assert {"creator-0", "creator-1", "creator-2"} <= ids
        assert "creator-3" not in ids

    def test_zero_limit(self):
        assert mix_ranked_lists(_four_type_lists(), 0, ENTITY_TYPES) == []

    def test_input_not_mutated(self):
        per_type = _four_type_lists()
        before = {t: [s.id for s in items] for t, items in per_type.items()}
        mix_ranked_lists(per_type, 12, ENTITY_TYPES)
        assert {t: [s.id for s in items] for t, items in per_type.items()} == before


class TestRelaxation:
    """Short types leave room for capped types."""

    def test_capped_type_fills_remaining_slots(self):
        per_type = {
            "creator": _ranked("creator", 10, 0.9),
            "content": _ranked("content", 1, 0.5),
        }
        mixed = mix_ranked_lists(per_type, 6, ["creator", "content"])
        assert len(mixed) == 6
        assert _counts(mixed) == {"creator": 5, "content": 1}

    def test_fewer_items_than_limit(self):
        per_type = {"creator": _ranked("creator", 2, 0.9), "partner": []}
        mixed = mix_ranked_lists(per_type, 12, ["creator", "partner"])
        assert [s.id for s in mixed] == ["creator-0", "creator-1"]


class TestDeduplication:
    """An entity appears at most once in the mixed list."""

    def test_duplicates_removed(self):
        per_type = {"creator": [scored("dup", 0.9), scored("dup", 0.8), scored("other", 0.7)]}
        mixed = mix_ranked_lists(per_type, 5, ["creator"])
        assert [s.id for s in mixed] == ["dup", "other"]

    def test_same_id_different_type_kept(self):
        per_type = {
            "creator": [scored("x", 0.9, "creator")],
            "partner": [scored("x", 0.8, "partner")],
        }
        assert len(mix_ranked_lists(per_type, 4, ["creator", "partner"])) == 2


class TestExploration:
    """Surprise picks from unseen categories."""

    @pytest.fixture(autouse=True)
    def setup(self, make_profile):
        self.profile = make_profile(interests=["beauty"])
        self.per_type = {
            "creator": [
                scored("b1", 0.9, tags=["beauty"]),
                scored("b2", 0.8, tags=["beauty"]),
                scored("g1", 0.2, category="gaming"),
                scored("t1", 0.1, category="travel"),
            ]
        }
        self.mixed = mix_ranked_lists(self.per_type, 2, ["creator"])

    def _inject(self, seed: int, picks: int = 1):
        return inject_exploration(
            self.mixed, self.per_type, self.profile, 2, random.Random(seed), picks=picks, types=["creator"]
        )

    def test_surprise_replaces_lowest_regular_item(self):
        result = self._inject(7)
        assert len(result) == 2
        assert result[0].id == "b1"
        surprise = result[1]
        assert surprise.is_surprise
        assert surprise.id in {"g1", "t1"}
        assert surprise.total_score == pytest.approx(0.3)
        assert surprise.explanation.startswith("Something new: try")

    def test_seeded_rng_is_deterministic(self):
        first = [s.id for s in self._inject(42)]
        second = [s.id for s in self._inject(42)]
        assert first == second

    def test_no_unexplored_categories(self, make_profile):
        profile = make_profile(interests=["beauty", "gaming", "travel"])
        result = inject_exploration(self.mixed, self.per_type, profile, 2, random.Random(1), types=["creator"])
        assert [s.id for s in result] == [s.id for s in self.mixed]
        assert not any(s.is_surprise for s in result)

    def test_zero_picks(self):
        assert [s.id for s in self._inject(1, picks=0)] == ["b1", "b2"]

    def test_two_picks_keep_type_cap(self, make_profile):
        per_type = {}
        for i, entity_type in enumerate(ENTITY_TYPES):
            base = 0.9 - i * 0.1
            per_type[entity_type] = _ranked(entity_type, 3, base) + [
                scored(f"{entity_type}-gaming", 0.05, entity_type, category="gaming"),
                scored(f"{entity_type}-travel", 0.04, entity_type, category="travel"),
            ]
        profile = make_profile(interests=["beauty"])
        mixed = mix_ranked_lists(per_type, 12, ENTITY_TYPES)
        result = inject_exploration(mixed, per_type, profile, 12, random.Random(3), picks=2, types=ENTITY_TYPES)

        assert len(result) == 12
        assert sum(1 for s in result if s.is_surprise) == 2
        assert all(count <= 3 for count in _counts(result).values())
        assert len({(s.entity_type, s.id) for s in result}) == 12


class TestPipelineMix:
    """create_recommendation_set over the four-type catalog."""

    def test_two_surprises_keep_type_cap(self, make_profile):
        config = RecommendationConfig(
            exploration_picks=2,
            relevance_thresholds={t: 0.0 for t in ENTITY_TYPES},
        )
        profile = make_profile(interests=["tech"])
        rec_set = create_recommendation_set(
            profile,
            catalog_records(),
            ENTITY_TYPES,
            12,
            config=config,
            rng=random.Random(3),
            generated_at=NOW,
        )
        mixed = rec_set.mixed_list

        assert len(mixed) == 12
        assert sum(1 for s in mixed if s.is_surprise) == 2
        assert all(count <= 3 for count in _counts(mixed).values())
        assert len({(s.entity_type, s.id) for s in mixed}) == 12
        surprise_categories = {s.candidate.category for s in mixed if s.is_surprise}
        assert surprise_categories <= {"beauty", "fitness", "gaming"}
