"""
Grouper — merges components of all instances of one wall type.

Components sharing name|spec|unit|category collapse into one record whose
area is the sum of the merged areas.  Prices, per-unit quantity and catalog
references come from the first record seen.
"""
import logging
from dataclasses import replace
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from wallcost.models.rollup_models import CategoryInfo, Component, CostRole, ExtractedLayer
from wallcost.services.money import ZERO

logger = logging.getLogger("wallcost-grouper")


def _prices_diverge(first: Component, other: Component) -> bool:
    return (
        first.material_unit_price != other.material_unit_price
        or first.labor_unit_price != other.labor_unit_price
        or first.per_unit_quantity != other.per_unit_quantity
    )


def group_components(components: Iterable[Component]) -> Tuple[Component, ...]:
    """
    Merge by grouping key, keeping first-seen order.  Running it again on
    its own output changes nothing.
    """
    merged: Dict[str, Component] = {}
    for comp in components:
        existing = merged.get(comp.key)
        if existing is None:
            merged[comp.key] = comp
            continue
        if _prices_diverge(existing, comp):
            logger.warning(
                f"Price divergence for {comp.key}: "
                f"{existing.material_unit_price}/{existing.labor_unit_price} kept, "
                f"{comp.material_unit_price}/{comp.labor_unit_price} ignored"
            )
        merged[comp.key] = replace(
            existing,
            area=existing.area + comp.area,
            not_found=existing.not_found or comp.not_found,
        )
    return tuple(merged.values())


def group_layers(layers: Iterable[ExtractedLayer]) -> Tuple[Component, ...]:
    return group_components(comp for layer in layers for comp in layer.components)


def category_areas(layers: Iterable[ExtractedLayer]) -> Tuple[CategoryInfo, ...]:
    """
    A category gains the layer's wall area once for every (instance, layer)
    that put at least one direct component into it.  The area is also kept
    per catalog item so each item's own rates apply to its own share.
    """
    by_category: Dict[str, Dict[Optional[str], Decimal]] = {}
    for layer in layers:
        seen_in_layer: List[str] = []
        for comp in layer.components:
            if comp.cost_role != CostRole.DIRECT or comp.category in seen_in_layer:
                continue
            seen_in_layer.append(comp.category)
            item_areas = by_category.setdefault(comp.category, {})
            item_areas[comp.catalog_item_id] = item_areas.get(comp.catalog_item_id, ZERO) + layer.area
    return tuple(
        CategoryInfo(
            name=name,
            area=sum(item_areas.values(), ZERO),
            catalog_item_id=next((item_id for item_id in item_areas if item_id), None),
            item_areas=tuple(item_areas.items()),
        )
        for name, item_areas in by_category.items()
    )
