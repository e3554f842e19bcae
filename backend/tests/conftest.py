"""
conftest.py — Shared pytest fixtures for the wall cost rollup test suite.

No database or network fixtures are defined here.  The catalog is an
InMemoryCatalog built from the item dictionaries below.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``wallcost.*`` imports resolve regardless of where pytest is invoked.

Reference scenario (two instances of wall type "W1", 10 m² each):
    layer1_1  일반석고보드 9.5T   board 3000/m² material, 1500/m² labor,
                                  sheets 1200 × 2500 mm (3.0 m²)
    column1   C-STUD 50형         stud 1000 × 1.5/m², labor 2000/m²
                                  runner 800 × 0.7/m², no labor
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any wallcost imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


STUD_ITEM_ID = "C-STUD-@450-50형-1759332998669"
BOARD_ITEM_ID = "일반석고보드-9.5T-1759332998670"
INSULATION_ITEM_ID = "그라스울-50T-1759332998672"
MISSING_MATERIAL = "unitPrice_MISSING-X-1759332998671"


STUD_ITEM = {
    "id": STUD_ITEM_ID,
    "basic": {
        "item_name": "C-STUD",
        "spec": "50형",
        "size": "0.8T*60*45",
        "spacing": "@450",
        "unit": "M2",
        "work_type1": "경량",
        "work_type2": "벽체",
        # Authoritative: 2060.1 material so the category needs a +2.00 correction at 20 m²
        "unit_rates": {"material": 2060.1, "labor": 2000.0},
    },
    "components": [
        {"name": "C-STUD", "spec": "50형", "unit": "M", "material_unit_price": 1000.0,
         "labor_amount": 2000.0, "quantity": 1.5},
        {"name": "C-RUNNER", "spec": "50형", "unit": "M", "material_unit_price": 800.0,
         "quantity": 0.7},
        {"name": "Screw", "spec": "8x25", "unit": "EA", "material_unit_price": 10.0,
         "quantity": 20.0},
    ],
}

BOARD_ITEM = {
    "id": BOARD_ITEM_ID,
    "basic": {
        "item_name": "일반석고보드",
        "spec": "9.5T",
        "unit": "M2",
        "indirect_rates": {"material_loss": 90.0, "transport": 45.0,
                           "material_profit": 450.0, "tool_expense": 30.0},
        "unit_rates": {"material": 3000.0, "labor": 1500.0},
    },
    "components": [
        {"name": "Gypsum board", "spec": "9.5T", "unit": "M2", "material_id": "GB-9.5",
         "material_unit_price": 3000.0, "labor_unit_price": 1500.0, "quantity": 1.0},
        {"name": "Board screw", "spec": "6x25", "unit": "EA", "material_unit_price": 5.0,
         "quantity": 15.0},
        {"name": "자재로스", "spec": "", "unit": "M2", "material_unit_price": 90.0},
    ],
}

INSULATION_ITEM = {
    "id": INSULATION_ITEM_ID,
    "basic": {"item_name": "그라스울", "spec": "50T"},
    "components": [
        {"name": "Glass wool insulation", "spec": "50T", "unit": "M2",
         "material_unit_price": 4000.0, "labor_unit_price": 1000.0, "quantity": 1.05},
    ],
}

BOARD_DIMENSIONS = {"material_id": "GB-9.5", "width_mm": 1200, "height_mm": 2500, "thickness_mm": 9.5}


def make_wall(wall_name, area, layers, element_id=""):
    """
    layers: {layer_key: material_name} or {layer_key: (material_name, found, material_price, labor_price)}
    """
    from wallcost.models.wall_models import LayerPricing, WallCalculationResult

    pricing = {}
    for key, value in layers.items():
        if isinstance(value, tuple):
            name, found, material_price, labor_price = value
        else:
            name, found, material_price, labor_price = value, True, 0.0, 0.0
        pricing[key] = LayerPricing(
            material_name=name,
            material_price=material_price,
            labor_price=labor_price,
            found=found,
        )
    return WallCalculationResult(element_id=element_id, wall_name=wall_name, area=area, layer_pricing=pricing)


# ---------------------------------------------------------------------------
# Catalog fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def catalog_items():
    """Stud (formula surcharges), board (stored surcharges) and insulation (no unit rates)."""
    from wallcost.models.catalog_schema import CatalogItem
    return [CatalogItem.model_validate(d) for d in (STUD_ITEM, BOARD_ITEM, INSULATION_ITEM)]


@pytest.fixture(scope="session")
def stud_item(catalog_items):
    return catalog_items[0]


@pytest.fixture(scope="session")
def board_item(catalog_items):
    return catalog_items[1]


@pytest.fixture(scope="session")
def insulation_item(catalog_items):
    return catalog_items[2]


@pytest.fixture(scope="session")
def catalog(catalog_items):
    from wallcost.models.catalog_schema import MaterialDimensions
    from wallcost.services.catalog_engine import InMemoryCatalog
    return InMemoryCatalog(catalog_items, [MaterialDimensions.model_validate(BOARD_DIMENSIONS)])


@pytest.fixture(scope="session")
def engine(catalog):
    from wallcost.services.rollup_engine import CostRollupEngine
    return CostRollupEngine(catalog)


# ---------------------------------------------------------------------------
# Wall fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def w1_walls():
    """Two identical 10 m² instances of W1 (board + stud framing)."""
    layers = {
        "column1": "unitPrice_" + STUD_ITEM_ID,
        "layer1_1": "unitPrice_" + BOARD_ITEM_ID,
    }
    return [
        make_wall("W1", 10.0, layers, element_id="1001"),
        make_wall("W1", 10.0, layers, element_id="1002"),
    ]


@pytest.fixture
def missing_wall():
    """A 5 m² instance whose only layer was never priced."""
    return make_wall("W2", 5.0, {"infill": (MISSING_MATERIAL, False, 0.0, 0.0)}, element_id="2001")
