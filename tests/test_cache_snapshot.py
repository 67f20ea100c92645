"""
Tests for the totals cache and the stored-snapshot fast path.
"""
import pytest

from estimator.cache import TotalsCache, fingerprint
from estimator.calculator import compute_costs
from estimator.limits import EngineLimits
from estimator.normalize import normalize_project
from estimator.snapshot import build_snapshot, project_balance, read_snapshot


def codes(result):
    return [e.code for e in result.errors]


class TestTotalsCache:
    """Tests for TotalsCache."""

    def test_hit_after_miss(self, make_project):
        cache = TotalsCache()
        first = compute_costs(make_project(), cache=cache)
        second = compute_costs(make_project(), cache=cache)
        assert first.model_dump() == second.model_dump()
        assert cache.stats() == {"hits": 1, "misses": 1, "size": 1, "hit_rate": 50.0}

    def test_returns_copies(self, make_project):
        cache = TotalsCache()
        first = compute_costs(make_project(), cache=cache)
        first.material_breakdown.clear()
        second = compute_costs(make_project(), cache=cache)
        assert len(second.material_breakdown) == 1

    def test_edited_project_is_a_new_key(self, make_project):
        cache = TotalsCache()
        compute_costs(make_project(), cache=cache)
        changed = compute_costs(make_project({"markup": 0.1}), cache=cache)
        assert changed.markup == pytest.approx(50.0)
        assert cache.misses == 2

    def test_limits_are_part_of_the_key(self, make_project):
        cache = TotalsCache()
        compute_costs(make_project(), cache=cache)
        capped = compute_costs(make_project(), cache=cache, limits=EngineLimits(max_units=80))
        assert capped.total_units == pytest.approx(80.0)
        assert len(cache) == 2

    def test_ingestion_errors_survive_cache_hits(self, make_project, make_item):
        project = make_project(items=[make_item(measurementType="cubic-yard")])
        cache = TotalsCache()
        first = compute_costs(project, cache=cache)
        second = compute_costs(project, cache=cache)
        assert codes(first) == codes(second)
        assert "UNKNOWN_MEASUREMENT_TYPE" in codes(second)

    def test_full_cache_is_cleared(self, make_project):
        cache = TotalsCache(max_entries=2)
        for markup in (0.1, 0.2, 0.3):
            compute_costs(make_project({"markup": markup}), cache=cache)
        assert len(cache) == 1

    def test_invalidate(self, make_project):
        cache = TotalsCache()
        raw = make_project()
        compute_costs(raw, cache=cache)
        cache.invalidate(normalize_project(raw).value)
        assert len(cache) == 0

    def test_clear_resets_stats(self, make_project):
        cache = TotalsCache()
        compute_costs(make_project(), cache=cache)
        cache.clear()
        assert cache.stats() == {"hits": 0, "misses": 0, "size": 0, "hit_rate": 0.0}

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            TotalsCache(max_entries=0)

    def test_fingerprint_ignores_customer_info(self, make_project):
        a = normalize_project(make_project(customer={"firstName": "A"})).value
        b = normalize_project(make_project(customer={"firstName": "B"})).value
        assert fingerprint(a) == fingerprint(b)


class TestSnapshot:
    """Stored totals are used only when they can be trusted."""

    def test_snapshot_fast_path(self, make_project):
        project = make_project(totals={"total": 999}, paymentDetails={"totalPaid": 200})
        view = project_balance(project)
        assert view.source == "snapshot"
        assert view.grand_total == pytest.approx(999.0)
        assert view.amount_remaining == pytest.approx(799.0)

    def test_grand_total_fallback(self, make_project):
        project = make_project(
            totals={"total": 0, "grandTotal": 800}, paymentDetails={"totalPaid": "100"}
        )
        assert project_balance(project).grand_total == pytest.approx(800.0)

    @pytest.mark.parametrize(
        "totals, details",
        [
            ({"total": "abc"}, {"totalPaid": 0}),
            ({"total": -5}, {"totalPaid": 0}),
            ({"total": 500}, {}),
        ],
    )
    def test_untrusted_snapshot_is_recomputed(self, make_project, totals, details):
        view = project_balance(make_project(totals=totals, paymentDetails=details))
        assert view.source == "computed"
        assert view.grand_total == pytest.approx(500.0)
        assert "UNTRUSTED_SNAPSHOT" in codes(view)

    def test_no_snapshot(self, make_project):
        view = project_balance(make_project({"payments": [{"amount": 100, "isPaid": True}]}))
        assert view.source == "computed"
        assert view.total_paid == pytest.approx(100.0)
        assert view.amount_remaining == pytest.approx(400.0)
        assert view.errors == []

    def test_built_snapshot_is_trusted(self, make_project):
        project = make_project({"payments": [{"amount": 100, "isPaid": True}]})
        project.update(build_snapshot(project))
        view = project_balance(project)
        assert view.source == "snapshot"
        assert view.grand_total == pytest.approx(500.0)
        assert view.total_paid == pytest.approx(100.0)

    def test_stale_snapshot_is_ignored(self, make_project, make_item):
        project = make_project()
        stored = build_snapshot(project)
        edited = make_project(items=[make_item(material=4)])
        edited.update(stored)
        view = project_balance(edited)
        assert view.source == "computed"
        assert view.grand_total == pytest.approx(700.0)

    def test_trust_can_be_disabled(self, make_project):
        project = make_project(totals={"total": 999}, paymentDetails={"totalPaid": 0})
        assert project_balance(project, trust_snapshot=False).source == "computed"

    def test_read_snapshot_carries_fingerprint(self, make_project):
        project = make_project()
        project.update(build_snapshot(project))
        snap = read_snapshot(normalize_project(project).value).value
        assert snap.fingerprint == fingerprint(normalize_project(project).value)

    def test_build_snapshot_shape(self, scenario_c):
        stored = build_snapshot(scenario_c)
        assert stored["totals"]["total"] == 639.6
        assert stored["paymentDetails"]["amountRemaining"] == 639.6
        assert stored["paymentDetails"]["isFullyPaid"] is False
