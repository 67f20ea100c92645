"""
Tests for cost aggregation and the adjustment pipeline.
"""
import copy
import math

import pytest

from estimator.calculator import compute_costs
from estimator.limits import EngineLimits
from estimator.models import MeasurementType, Project


def codes(result):
    return [e.code for e in result.errors]


class TestScenarios:
    """Reference figures for the basic pipeline."""

    def test_plain_item(self, make_project):
        res = compute_costs(make_project())
        assert res.material_cost == pytest.approx(200.0)
        assert res.labor_cost == pytest.approx(300.0)
        assert res.subtotal == pytest.approx(500.0)
        assert res.total_project_value == pytest.approx(500.0)
        assert res.errors == []

    def test_flat_waste(self, make_project):
        res = compute_costs(make_project({"wasteFactor": 0.1}))
        assert res.waste == pytest.approx(20.0)
        assert res.subtotal == pytest.approx(520.0)

    def test_tax_and_markup_on_subtotal(self, scenario_c):
        res = compute_costs(scenario_c)
        assert res.tax == pytest.approx(41.6)
        assert res.markup == pytest.approx(78.0)
        assert res.total_project_value == pytest.approx(639.6)

    def test_transportation_and_misc_fees(self, make_project):
        res = compute_costs(
            make_project(
                {
                    "transportationFee": 25,
                    "miscFees": [{"name": "Permit", "amount": 50}, {"name": "Refund", "amount": -10}],
                }
            )
        )
        assert res.transportation == pytest.approx(25.0)
        assert res.misc_fees_total == pytest.approx(50.0)
        assert res.total_project_value == pytest.approx(575.0)
        assert "MIN_VALUE_VIOLATION" in codes(res)

    def test_labor_discount(self, make_project):
        res = compute_costs(make_project({"laborDiscount": 0.1}))
        assert res.labor_cost_before_discount == pytest.approx(300.0)
        assert res.labor_discount_amount == pytest.approx(30.0)
        assert res.labor_cost == pytest.approx(270.0)
        assert res.subtotal == pytest.approx(470.0)


class TestWaste:
    """Waste entries fully replace the flat factor."""

    def test_entries_supersede_flat_factor(self, make_project):
        res = compute_costs(
            make_project(
                {
                    "wasteFactor": 0.1,
                    "wasteEntries": [{"surfaceName": "Floor", "surfaceCost": 150, "wasteFactor": 0.2}],
                }
            )
        )
        assert res.waste == pytest.approx(30.0)
        assert res.subtotal == pytest.approx(530.0)

    def test_waste_never_touches_labor(self, make_project, make_item):
        project = make_project({"wasteFactor": 0.5}, items=[make_item(material=0, labor=3)])
        res = compute_costs(project)
        assert res.waste == 0
        assert res.subtotal == pytest.approx(300.0)

    def test_out_of_range_rates_are_clamped(self, make_project):
        res = compute_costs(make_project({"taxRate": 0.5, "wasteFactor": 0.9}))
        # 0.25 max tax, 0.5 max waste
        assert res.waste == pytest.approx(100.0)
        assert res.tax == pytest.approx(600.0 * 0.25)
        assert codes(res).count("MAX_VALUE_VIOLATION") == 2


class TestUnits:
    """Billable quantities per measurement type."""

    def test_stored_sqft_beats_dimensions(self, make_project, make_item):
        item = make_item(material=1, labor=0, surfaces=[{"sqft": 50, "width": 10, "height": 10}])
        assert compute_costs(make_project(items=[item])).total_units == pytest.approx(50.0)

    def test_dimensions_when_no_stored_sqft(self, make_project, make_item):
        item = make_item(material=1, labor=0, surfaces=[{"width": 10, "height": 12}])
        assert compute_costs(make_project(items=[item])).material_cost == pytest.approx(120.0)

    def test_linear_and_unit_items(self, make_project, make_item):
        items = [
            make_item(material=1.5, labor=0, measurementType="linear-foot", surfaces=[{"linearFt": 40}]),
            make_item(material=100, labor=0, measurementType="by-unit", surfaces=[{"units": 3}]),
        ]
        res = compute_costs(make_project(items=items))
        assert res.material_cost == pytest.approx(360.0)
        labels = [line.unit_label for line in res.material_breakdown]
        assert labels == ["linear ft", "units"]

    def test_surface_overrides_item_type(self, make_project, make_item):
        item = make_item(
            material=1,
            labor=0,
            surfaces=[{"measurementType": "Linear Ft", "linearFt": 12}, {"sqft": 8}],
        )
        assert compute_costs(make_project(items=[item])).total_units == pytest.approx(20.0)

    def test_total_is_clamped_to_max_units(self, make_project, make_item):
        item = make_item(surfaces=[{"sqft": 30000}, {"sqft": 30000}])
        res = compute_costs(make_project(items=[item]))
        assert res.total_units == pytest.approx(50000.0)
        assert res.material_cost == pytest.approx(100000.0)
        assert "TOTAL_EXCEEDS_LIMIT" in codes(res)

    def test_custom_limits(self, make_project, make_item):
        item = make_item(surfaces=[{"sqft": 100}])
        res = compute_costs(make_project(items=[item]), limits=EngineLimits(max_units=80))
        assert res.total_units == pytest.approx(80.0)

    def test_fractional_units_are_used_and_flagged(self, make_project, make_item):
        item = make_item(material=10, labor=0, measurementType="by-unit", surfaces=[{"units": 2.5}])
        res = compute_costs(make_project(items=[item]))
        assert res.material_cost == pytest.approx(25.0)
        assert "DECIMAL_NOT_ALLOWED" in codes(res)


class TestMalformedInput:
    """Bad data is reported, never fatal."""

    def test_bad_surface_does_not_blank_siblings(self, make_project, make_item):
        item = make_item(surfaces=[{"sqft": 100}, "garbage", {"sqft": "abc"}])
        res = compute_costs(make_project(items=[item]))
        assert res.material_cost == pytest.approx(200.0)
        assert "INVALID_SURFACE" in codes(res)
        assert "INVALID_NUMBER" in codes(res)
        assert res.category_breakdowns[0].has_errors is True

    def test_numeric_strings(self, make_project, make_item):
        item = make_item(material="$2.00", labor="3", surfaces=[{"sqft": "1,000"}])
        res = compute_costs(make_project(items=[item]))
        assert res.total_project_value == pytest.approx(5000.0)

    def test_unknown_measurement_type_falls_back(self, make_project, make_item):
        item = make_item(measurementType="cubic-yard", surfaces=[{"sqft": 10}])
        res = compute_costs(make_project(items=[item]))
        assert res.total_units == pytest.approx(10.0)
        assert "UNKNOWN_MEASUREMENT_TYPE" in codes(res)

    def test_item_without_measurements(self, make_project, make_item):
        res = compute_costs(make_project(items=[make_item(surfaces=[])]))
        assert res.total_project_value == 0
        assert "NO_MEASUREMENTS" in codes(res)

    def test_non_finite_stage_is_zeroed(self, make_project, make_item):
        item = make_item(material=1e308, labor=3)
        res = compute_costs(make_project(items=[item]))
        assert math.isfinite(res.total_project_value)
        assert res.total_project_value == pytest.approx(300.0)
        assert "NON_FINITE_VALUE" in codes(res)
        assert res.material_breakdown == []
        assert [line.total for line in res.labor_breakdown] == [pytest.approx(300.0)]

    def test_missing_settings_and_categories(self):
        res = compute_costs({"customerInfo": {}})
        assert res.total_project_value == 0
        assert "INVALID_SETTINGS" in codes(res)
        assert "INVALID_CATEGORIES" in codes(res)

    def test_not_an_object(self):
        res = compute_costs(["not", "a", "project"])
        assert codes(res) == ["INVALID_PROJECT"]

    def test_negative_rate_counts_but_is_not_listed(self, make_project, make_item):
        items = [make_item(material=-2, labor=0), make_item(material=5, labor=0, name="Trim")]
        res = compute_costs(make_project(items=items))
        assert res.material_cost == pytest.approx(300.0)
        assert [line.item_name for line in res.material_breakdown] == ["Trim"]


class TestLegacyShapes:
    """Items from before surfaces[] existed."""

    def test_flat_sqft_item(self, make_project):
        item = {"name": "Old floor", "materialCost": 2, "laborCost": 3, "sqft": 100}
        res = compute_costs(make_project(items=[item]))
        assert res.total_project_value == pytest.approx(500.0)
        assert "LEGACY_ITEM_MEASUREMENTS" in codes(res)

    def test_flat_linear_item_infers_type(self, make_project):
        item = {"name": "Baseboard", "materialCost": 1, "laborCost": 0, "linearFt": 20}
        res = compute_costs(make_project(items=[item]))
        assert res.material_breakdown[0].unit_label == "linear ft"
        assert res.material_cost == pytest.approx(20.0)

    def test_items_key_alias(self, make_project, make_item):
        project = make_project()
        project["categories"][0] = {"key": "walls", "name": "Walls", "items": [make_item()]}
        assert compute_costs(project).total_project_value == pytest.approx(500.0)


class TestProperties:
    """Determinism, monotonicity and input immutability."""

    def test_idempotent(self, scenario_c):
        first = compute_costs(scenario_c)
        second = compute_costs(scenario_c)
        assert first.model_dump() == second.model_dump()

    def test_input_not_mutated(self, scenario_c):
        before = copy.deepcopy(scenario_c)
        compute_costs(scenario_c)
        assert scenario_c == before

    @pytest.mark.parametrize("sqft", [50, 100, 400])
    def test_more_area_never_costs_less(self, make_project, make_item, sqft):
        small = compute_costs(make_project(items=[make_item(surfaces=[{"sqft": sqft}])]))
        large = compute_costs(make_project(items=[make_item(surfaces=[{"sqft": sqft + 1}])]))
        assert large.total_project_value > small.total_project_value

    def test_canonical_project_passes_through(self, scenario_c):
        res = compute_costs(scenario_c)
        project = Project.model_validate(
            {
                "categories": [
                    {
                        "key": "walls",
                        "name": "Walls",
                        "workItems": [
                            {
                                "name": "Paint walls",
                                "measurementType": MeasurementType.SQUARE_FOOT,
                                "materialCost": 2,
                                "laborCost": 3,
                                "surfaces": [{"measure": {"kind": "square-foot", "sqft": 100}}],
                            }
                        ],
                    }
                ],
                "settings": {"wasteFactor": 0.1, "taxRate": 0.08, "markup": 0.15},
            }
        )
        assert compute_costs(project).total_project_value == pytest.approx(res.total_project_value)


class TestBreakdowns:
    def test_category_breakdown(self, make_project):
        res = compute_costs(make_project())
        cat = res.category_breakdowns[0]
        assert cat.key == "walls"
        assert cat.subtotal == pytest.approx(500.0)
        assert cat.item_count == 1
        assert cat.valid_item_count == 1
        assert cat.has_errors is False

    def test_rounded_copy(self, make_project, make_item):
        item = make_item(material=1.005, labor=0, surfaces=[{"sqft": 3}])
        res = compute_costs(make_project(items=[item]))
        assert res.material_cost == pytest.approx(3.015)
        assert res.rounded().material_cost == 3.02
        assert res.material_cost == pytest.approx(3.015)

    def test_camel_case_output(self, make_project):
        data = compute_costs(make_project()).model_dump(by_alias=True)
        assert "totalProjectValue" in data
        assert "workType" in data["materialBreakdown"][0]
