"""
Sensitivity Driver Tests
"""

import pytest

from sensitivity import Driver, apply_driver_value, driver_tornado, evaluate_driver, parse_drivers


@pytest.mark.unit
class TestDriverParsing:

    def test_parse_declared_drivers(self, recurring_document):
        drivers = parse_drivers(recurring_document)
        assert [driver.key for driver in drivers] == ["price", "cac"]
        assert drivers[0].range == [80, 100, 120]
        assert drivers[0].unit == "EUR"

    def test_two_point_range_gets_a_midpoint(self, recurring_document):
        cac = parse_drivers(recurring_document)[1]
        assert cac.range == [40, 50, 60]
        assert cac.label == "Customer acquisition cost"

    def test_malformed_entries_are_skipped(self):
        document = {"drivers": [
            {"key": "unsafe", "path": "meta.__proto__.x", "range": [1, 2]},
            {"key": "short", "path": "meta.periods", "range": [1]},
            {"key": "words", "path": "meta.periods", "range": ["low", "high"]},
            "not a driver",
            {"path": "meta.periods", "range": [12, 36]},
        ]}
        drivers = parse_drivers(document)
        assert len(drivers) == 1
        assert drivers[0].key == "meta.periods"

    def test_no_drivers(self):
        assert parse_drivers({}) == []
        assert parse_drivers(None) == []


@pytest.mark.unit
class TestDriverEvaluation:

    def test_apply_does_not_mutate(self, recurring_document):
        driver = parse_drivers(recurring_document)[0]
        updated = apply_driver_value(recurring_document, driver, 80)
        assert updated["assumptions"]["pricing"]["avg_unit_price"]["value"] == 80
        assert recurring_document["assumptions"]["pricing"]["avg_unit_price"]["value"] == 100

    def test_higher_price_raises_npv(self, recurring_document):
        result = evaluate_driver(recurring_document, parse_drivers(recurring_document)[0])
        npvs = [outcome.npv for outcome in result.outcomes]
        assert [outcome.value for outcome in result.outcomes] == [80, 100, 120]
        assert npvs[0] < npvs[1] < npvs[2]
        assert result.npv_swing == pytest.approx(npvs[2] - npvs[0])

    def test_tornado_orders_by_swing(self, recurring_document):
        results = driver_tornado(recurring_document)
        assert [result.driver.key for result in results] == ["price", "cac"]
        assert results[0].npv_swing >= results[1].npv_swing
        assert set(results[0].to_dict()) == {"driver", "outcomes", "npvSwing"}

    def test_path_through_a_scalar_raises(self, recurring_document):
        driver = Driver(key="bad", path="meta.title.value", range=[1, 2, 3])
        with pytest.raises(ValueError):
            evaluate_driver(recurring_document, driver)
