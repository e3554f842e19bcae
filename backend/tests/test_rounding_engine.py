"""
test_rounding_engine.py — Category reconciliation and contract truncation.
"""

from decimal import Decimal

from wallcost.models.catalog_schema import CatalogItem
from wallcost.models.rollup_models import CategoryInfo, PriceSeries, RoundingLayer, RowKind
from wallcost.services.rounding_engine import (
    authoritative_amounts,
    reconcile_category,
    truncate_contract_total,
    truncation_row,
)


def _item(material, labor, item_id="T-1"):
    return CatalogItem.model_validate({
        "id": item_id,
        "basic": {"item_name": "T", "unit_rates": {"material": material, "labor": labor}},
    })


_CAT = CategoryInfo(name="Framing", area=Decimal("10"), catalog_item_id="T-1")


class TestCategoryReconciliation:

    def test_correction_and_contract_scaling(self):
        """authoritative 10,000, displayed 9,998 → order +2; contract 2 × 1.2 = 2.40."""
        displayed = PriceSeries(material_amount=Decimal("9998.00"))
        row = reconcile_category(_CAT, {"T-1": _item(1000.0, 0.0)}, displayed, Decimal("1.2"))
        assert row.kind == RowKind.ROUNDING_CORRECTION
        assert row.rounding_layer == RoundingLayer.CATEGORY
        assert row.order.material_amount == Decimal("2.00")
        assert row.contract.material_amount == Decimal("2.40")
        assert row.order.material_unit == 0

    def test_displayed_plus_correction_is_exact(self):
        displayed = PriceSeries(material_amount=Decimal("3333.33"), labor_amount=Decimal("1666.67"))
        items = {"T-1": _item(333.3349, 166.6651)}
        row = reconcile_category(_CAT, items, displayed, Decimal("1"))
        authoritative = authoritative_amounts(_CAT, items)
        assert displayed.material_amount + row.order.material_amount == authoritative.material_amount
        assert displayed.labor_amount + row.order.labor_amount == authoritative.labor_amount

    def test_negative_correction(self):
        displayed = PriceSeries(labor_amount=Decimal("5000.05"))
        row = reconcile_category(_CAT, {"T-1": _item(0.0, 500.0)}, displayed, Decimal("1.5"))
        assert row.order.labor_amount == Decimal("-0.05")
        assert row.contract.labor_amount == Decimal("-0.08")

    def test_without_unit_rates_left_unreconciled(self, insulation_item):
        assert reconcile_category(_CAT, {"T-1": insulation_item}, PriceSeries(), Decimal("1")) is None
        assert reconcile_category(_CAT, {}, PriceSeries(), Decimal("1")) is None


class TestCategoryFedByTwoItems:
    """
    Framing fed by a stud item (10 m²) and a separate runner item (10 m²):
        authoritative = 1500 × 10 + 560.4 × 10 = 15,000 + 5,604 = 20,604.00
    """

    _SPLIT = CategoryInfo(
        name="Framing",
        area=Decimal("20"),
        catalog_item_id="STUD-1",
        item_areas=(("STUD-1", Decimal("10")), ("RUN-1", Decimal("10"))),
    )

    def _items(self, runner_rate=560.4):
        return {"STUD-1": _item(1500.0, 0.0, "STUD-1"), "RUN-1": _item(runner_rate, 0.0, "RUN-1")}

    def test_each_item_rate_on_its_own_area(self):
        authoritative = authoritative_amounts(self._SPLIT, self._items())
        assert authoritative.material_amount == Decimal("20604.00")
        assert authoritative.material_unit == Decimal("1030.20")

    def test_correction_is_only_the_drift(self):
        displayed = PriceSeries(material_amount=Decimal("20600.00"))
        row = reconcile_category(self._SPLIT, self._items(), displayed, Decimal("1"))
        assert row.order.material_amount == Decimal("4.00")

    def test_no_correction_when_items_price_at_their_rates(self):
        displayed = PriceSeries(material_amount=Decimal("20600.00"))
        row = reconcile_category(self._SPLIT, self._items(runner_rate=560.0), displayed, Decimal("1"))
        assert row.order.total_amount == 0

    def test_one_item_without_unit_rates_leaves_category_unreconciled(self, insulation_item):
        items = {"STUD-1": _item(1500.0, 0.0, "STUD-1"), "RUN-1": insulation_item}
        assert authoritative_amounts(self._SPLIT, items) is None
        assert reconcile_category(self._SPLIT, items, PriceSeries(), Decimal("1")) is None


class TestContractTruncation:

    def test_truncates_to_thousand(self):
        assert truncate_contract_total(Decimal("1234567")) == Decimal("-567")

    def test_keeps_cents(self):
        assert truncate_contract_total(Decimal("1234567.40")) == Decimal("-567.40")

    def test_exact_multiple(self):
        assert truncate_contract_total(Decimal("192000.00")) == 0

    def test_row_books_contract_material_only(self):
        row = truncation_row(Decimal("-567"))
        assert row.rounding_layer == RoundingLayer.TOTAL_TRUNCATION
        assert row.contract.material_amount == Decimal("-567")
        assert row.contract.labor_amount == 0
        assert row.order.total_amount == 0
