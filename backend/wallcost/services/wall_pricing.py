"""
Wall Pricing — prices one wall instance layer by layer.

Each layer's material is looked up in the catalog and priced per m² from
the item's unit rates (or, when it stores none, the sum of its
sub-components).  A material that cannot be found stays in the result with
``found=False`` and zero prices so the rollup can flag it.
"""
import asyncio
import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from wallcost import config
from wallcost.models.catalog_schema import CatalogItem
from wallcost.models.wall_models import LayerPricing, WallCalculationResult, WallInput
from wallcost.services.catalog_engine import CatalogLookup, safe_find_catalog_item
from wallcost.services.component_extractor import order_layer_keys
from wallcost.services.money import ZERO, round2, to_decimal

logger = logging.getLogger("wallcost-pricing")


def catalog_item_rates(item: CatalogItem) -> Tuple[Decimal, Decimal]:
    """(material, labor) per m² of the assembly."""
    if item.basic.unit_rates is not None:
        return to_decimal(item.basic.unit_rates.material), to_decimal(item.basic.unit_rates.labor)
    material = ZERO
    labor = ZERO
    for sub in item.components:
        material += to_decimal(sub.material_unit_price) * to_decimal(sub.quantity)
        labor += sub.labor_per_area()
    return material, labor


def layer_pricing_for(material_name: str, item: Optional[CatalogItem]) -> LayerPricing:
    if item is None:
        return LayerPricing(material_name=material_name, found=False)
    material, labor = catalog_item_rates(item)
    return LayerPricing(
        material_name=material_name,
        material_price=float(round2(material)),
        labor_price=float(round2(labor)),
        unit=item.basic.unit or config.DEFAULT_UNIT,
        work_type1=item.basic.work_type1,
        work_type2=item.basic.work_type2,
        found=True,
    )


async def price_wall(
    wall: WallInput,
    catalog: CatalogLookup,
    timeout_s: float = config.CATALOG_LOOKUP_TIMEOUT_S,
) -> WallCalculationResult:
    layer_keys = [
        key for key in order_layer_keys(wall.layers.keys())
        if (wall.layers[key] or "").strip()
    ]
    items = await asyncio.gather(*[
        safe_find_catalog_item(catalog, wall.layers[key], timeout_s) for key in layer_keys
    ])

    area = to_decimal(wall.area)
    layer_pricing = {}
    material_cost = ZERO
    labor_cost = ZERO
    for key, item in zip(layer_keys, items):
        pricing = layer_pricing_for(wall.layers[key], item)
        if not pricing.found:
            logger.warning(f"{wall.wall_name}/{key}: material not found: {pricing.material_name}")
        layer_pricing[key] = pricing
        material_cost += to_decimal(pricing.material_price) * area
        labor_cost += to_decimal(pricing.labor_price) * area

    return WallCalculationResult(
        element_id=wall.element_id,
        wall_name=wall.wall_name,
        area=wall.area,
        room_name=wall.room_name,
        level=wall.level,
        layer_pricing=layer_pricing,
        material_cost=float(round2(material_cost)),
        labor_cost=float(round2(labor_cost)),
        total_cost=float(round2(material_cost + labor_cost)),
    )


async def price_walls(
    walls: Iterable[WallInput],
    catalog: CatalogLookup,
    timeout_s: float = config.CATALOG_LOOKUP_TIMEOUT_S,
) -> List[WallCalculationResult]:
    return list(await asyncio.gather(*[price_wall(w, catalog, timeout_s) for w in walls]))
