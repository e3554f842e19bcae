"""
test_component_extractor.py — Unit tests for layer extraction.

Tests cover:
  - Unit-price id parsing (timestamp suffix, "X-ABC" names, plain names)
  - Canonical layer ordering
  - Sub-component filtering, material kinds, cost roles and categories
  - Synthetic and not-found fallbacks
  - Concurrent catalog resolution (misses and timeouts degrade to None)
"""

import asyncio
from decimal import Decimal

from conftest import BOARD_ITEM_ID, MISSING_MATERIAL, STUD_ITEM_ID, make_wall
from wallcost.models.rollup_models import CostRole, IndirectKind, MaterialKind
from wallcost.models.wall_models import LayerPricing
from wallcost.services.component_extractor import (
    components_from_catalog_item,
    extract_wall_instance,
    layer_material_names,
    order_layer_keys,
    parse_unit_price_id,
    resolve_board_dimensions,
    resolve_catalog_items,
    synthetic_component,
)


# ===========================================================================
# Class 1: Unit-price id parsing
# ===========================================================================

class TestParseUnitPriceId:

    def test_stud_id_with_timestamp(self):
        assert parse_unit_price_id("unitPrice_C-STUD-@450-3600-50형-1759332998669") == ("C-STUD", "50형")

    def test_plain_name_with_spec(self):
        assert parse_unit_price_id("일반석고보드-9.5T") == ("일반석고보드", "9.5T")

    def test_board_id_with_timestamp(self):
        assert parse_unit_price_id("unitPrice_" + BOARD_ITEM_ID) == ("일반석고보드", "9.5T")

    def test_single_part_has_no_spec(self):
        assert parse_unit_price_id("SOUNDPROOF") == ("SOUNDPROOF", "")

    def test_lowercase_pair_is_not_joined(self):
        """Only a single capital followed by capitals is kept together."""
        assert parse_unit_price_id("c-stud-50형") == ("c", "50형")

    def test_empty(self):
        assert parse_unit_price_id("") == ("", "")
        assert parse_unit_price_id("unitPrice_") == ("", "")


# ===========================================================================
# Class 2: Layer ordering
# ===========================================================================

class TestOrderLayerKeys:

    def test_canonical_order_then_unknown_keys(self):
        keys = ["runner", "custom_b", "layer1_1", "column1", "custom_a", "layer3_1"]
        assert order_layer_keys(keys) == ["layer3_1", "layer1_1", "column1", "runner", "custom_b", "custom_a"]

    def test_material_names_first_seen(self, w1_walls):
        """layer1_1 precedes column1, duplicates across instances collapse."""
        assert layer_material_names(w1_walls) == [
            "unitPrice_" + BOARD_ITEM_ID,
            "unitPrice_" + STUD_ITEM_ID,
        ]


# ===========================================================================
# Class 3: Components from catalog items
# ===========================================================================

class TestComponentsFromCatalogItem:

    def test_fasteners_excluded(self, stud_item):
        comps = components_from_catalog_item(stud_item, 10.0)
        assert [c.name for c in comps] == ["C-STUD", "C-RUNNER"]

    def test_stud_and_runner_are_framing(self, stud_item):
        stud, runner = components_from_catalog_item(stud_item, 10.0)
        assert stud.material_kind == MaterialKind.STUD
        assert runner.material_kind == MaterialKind.RUNNER
        assert stud.category == runner.category == "Framing"
        assert stud.cost_role == CostRole.DIRECT

    def test_prices_are_per_area(self, stud_item):
        """
        stud material per m² = 1000 × 1.5 = 1500; labor is the stored per-m²
        amount (2000), not multiplied by quantity again.
        """
        stud, _ = components_from_catalog_item(stud_item, 10.0)
        assert stud.material_per_area == Decimal("1500")
        assert stud.labor_per_area == Decimal("2000")
        assert stud.area == Decimal("10")
        assert stud.catalog_item_id == stud_item.id

    def test_board_category_is_name_and_spec(self, board_item):
        board = components_from_catalog_item(board_item, 10.0)[0]
        assert board.material_kind == MaterialKind.BOARD
        assert board.category == "Gypsum board 9.5T"
        assert board.material_id == "GB-9.5"

    def test_surcharge_component_takes_first_direct_category(self, board_item):
        comps = components_from_catalog_item(board_item, 10.0)
        loss = comps[-1]
        assert loss.name == "자재로스"
        assert loss.cost_role == CostRole.INDIRECT
        assert loss.indirect_kind == IndirectKind.MATERIAL_LOSS
        assert loss.category == "Gypsum board 9.5T"


# ===========================================================================
# Class 4: Fallbacks
# ===========================================================================

class TestFallbacks:

    def test_priced_layer_without_catalog_item(self):
        """A catalog miss on a priced layer yields one direct component from the layer prices."""
        layer = LayerPricing(material_name="unitPrice_그라스울-50T-1759332998673",
                             material_price=5000.0, labor_price=2000.0)
        comp = synthetic_component(layer, 4.0)
        assert (comp.name, comp.spec) == ("그라스울", "50T")
        assert comp.material_kind == MaterialKind.INSULATION
        assert comp.category == "그라스울 50T"
        assert comp.material_unit_price == Decimal("5000")
        assert comp.labor_unit_price == Decimal("2000")
        assert comp.cost_role == CostRole.DIRECT
        assert comp.not_found is False

    def test_unpriced_layer_is_flagged_and_zero(self):
        layer = LayerPricing(material_name=MISSING_MATERIAL, material_price=999.0, found=False)
        comp = synthetic_component(layer, 5.0)
        assert comp.not_found is True
        assert comp.material_unit_price == 0
        assert comp.labor_unit_price == 0

    def test_catalog_item_without_components(self, stud_item):
        bare = stud_item.model_copy(update={"components": []})
        layer = LayerPricing(material_name="unitPrice_" + STUD_ITEM_ID, material_price=2060.0, labor_price=2000.0)
        comp = synthetic_component(layer, 10.0, bare)
        assert comp.name == "C-STUD"
        assert comp.category == "Framing"
        assert comp.catalog_item_id == STUD_ITEM_ID

    def test_unnamed_catalog_item_falls_back_to_id(self, insulation_item):
        bare = insulation_item.model_copy(update={
            "components": [],
            "basic": insulation_item.basic.model_copy(update={"item_name": ""}),
        })
        layer = LayerPricing(material_name="unitPrice_" + bare.id, material_price=4200.0)
        comp = synthetic_component(layer, 10.0, bare)
        assert comp.name == bare.id

    def test_empty_layers_skipped(self, stud_item):
        wall = make_wall("W9", 10.0, {"layer1_1": "", "column1": "unitPrice_" + STUD_ITEM_ID, "runner": "  "})
        layers = extract_wall_instance(wall, {"unitPrice_" + STUD_ITEM_ID: stud_item})
        assert [l.layer_key for l in layers] == ["column1"]

    def test_missing_layer_marks_extracted_layer(self, missing_wall):
        layers = extract_wall_instance(missing_wall, {})
        assert len(layers) == 1
        assert layers[0].not_found is True
        assert layers[0].material_name == MISSING_MATERIAL


# ===========================================================================
# Class 5: Catalog resolution
# ===========================================================================

class _SlowCatalog:
    async def find_catalog_item(self, name_or_id):
        await asyncio.sleep(1.0)
        return None

    async def find_material_dimensions(self, material_id):
        raise RuntimeError("dimension service down")


class TestResolveCatalogItems:

    def test_hits_and_misses(self, catalog):
        names = ["unitPrice_" + STUD_ITEM_ID, MISSING_MATERIAL]
        resolved = asyncio.run(resolve_catalog_items(catalog, names))
        assert resolved["unitPrice_" + STUD_ITEM_ID].id == STUD_ITEM_ID
        assert resolved[MISSING_MATERIAL] is None

    def test_timeout_degrades_to_none(self):
        resolved = asyncio.run(resolve_catalog_items(_SlowCatalog(), ["A-1"], timeout_s=0.01))
        assert resolved == {"A-1": None}

    def test_board_dimensions(self, catalog, board_item, stud_item):
        dims = asyncio.run(resolve_board_dimensions(catalog, [board_item, stud_item]))
        assert list(dims) == ["GB-9.5"]
        assert dims["GB-9.5"].width_mm == 1200

    def test_dimension_failure_is_skipped(self, board_item):
        assert asyncio.run(resolve_board_dimensions(_SlowCatalog(), [board_item])) == {}
