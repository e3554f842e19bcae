"""
Component Extractor — flattens a wall type's layers into atomic Components.

Each non-empty layer of every wall instance is resolved to a catalog item and
its sub-material list is turned into ``Component`` records.  Material kind,
cost role and category are decided here, once.

Catalog lookups are done up front (``resolve_catalog_items``) so that the
per-instance extraction below is a plain synchronous transformation.
"""
import asyncio
import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from wallcost import config
from wallcost.models.catalog_schema import CatalogItem, MaterialDimensions, SubComponent
from wallcost.models.rollup_models import Component, CostRole, ExtractedLayer, MaterialKind
from wallcost.models.wall_models import LayerPricing, WallCalculationResult
from wallcost.services.catalog_engine import (
    CatalogLookup,
    safe_find_catalog_item,
    safe_find_dimensions,
    strip_catalog_prefix,
)
from wallcost.services.cost_classifier import detect_material_kind, resolve_cost_role
from wallcost.services.money import to_decimal

logger = logging.getLogger("wallcost-extractor")

_TIMESTAMP_RE = re.compile(r"^\d{13}$")
_SINGLE_CAPITAL_RE = re.compile(r"^[A-Z]$")
_CAPITALS_RE = re.compile(r"^[A-Z]+$")

_FRAMING_KINDS = (MaterialKind.STUD, MaterialKind.RUNNER)
_SPEC_CATEGORY_KINDS = (MaterialKind.BOARD, MaterialKind.INSULATION)


def parse_unit_price_id(material_name: str) -> Tuple[str, str]:
    """
    Split a stored unit-price id into (item name, spec).

    "unitPrice_C-STUD-@450-3600-50형-1759332998669" -> ("C-STUD", "50형")
    "일반석고보드-9.5T"                              -> ("일반석고보드", "9.5T")

    A trailing 13-digit creation timestamp is dropped, the last remaining
    part is the spec, and a leading "X-ABC" pair (one capital, then
    capitals) is kept together as the name.
    """
    cleaned = strip_catalog_prefix(material_name)
    if not cleaned:
        return "", ""
    parts = cleaned.split("-")
    if len(parts) < 2:
        return cleaned, ""

    if _TIMESTAMP_RE.match(parts[-1]):
        parts.pop()
    spec = parts.pop() if parts else ""

    first = parts[0] if len(parts) > 0 else ""
    second = parts[1] if len(parts) > 1 else ""
    if first and second and _SINGLE_CAPITAL_RE.match(first) and _CAPITALS_RE.match(second):
        name = f"{first}-{second}"
    else:
        name = first
    return name or cleaned, spec


def order_layer_keys(keys: Iterable[str]) -> List[str]:
    """Canonical layer order first, unknown keys after in their given order."""
    keys = list(keys)
    known = [k for k in config.LAYER_ORDER if k in keys]
    extra = [k for k in keys if k not in config.LAYER_ORDER]
    return known + extra


def _spec_category(name: str, spec: str) -> str:
    return f"{name} {spec}".strip()


def _category_for(kind: MaterialKind, name: str, spec: str, fallback: str) -> str:
    if kind in _FRAMING_KINDS:
        return config.FRAMING_CATEGORY
    if kind in _SPEC_CATEGORY_KINDS:
        return _spec_category(name, spec)
    return fallback


def _first_direct_category(subs: Sequence[SubComponent]) -> str:
    for sub in subs:
        kind = detect_material_kind(sub.name)
        role, _ = resolve_cost_role(sub.name, kind)
        if role == CostRole.DIRECT:
            return _category_for(kind, sub.name, sub.spec, config.DEFAULT_CATEGORY)
    return config.DEFAULT_CATEGORY


def components_from_catalog_item(item: CatalogItem, area) -> Tuple[Component, ...]:
    """
    One Component per displayable or surcharge sub-component of ``item``.
    Fasteners, welding rods and other sundries are dropped here.
    """
    area = to_decimal(area)
    fallback_category = _first_direct_category(item.components)
    components = []
    for sub in item.components:
        kind = detect_material_kind(sub.name)
        role, indirect_kind = resolve_cost_role(sub.name, kind)
        if role == CostRole.EXCLUDED:
            continue
        components.append(Component(
            name=sub.name,
            spec=sub.spec,
            unit=sub.unit or config.DEFAULT_UNIT,
            category=_category_for(kind, sub.name, sub.spec, fallback_category),
            material_unit_price=to_decimal(sub.material_unit_price),
            labor_unit_price=sub.labor_per_area(),
            per_unit_quantity=to_decimal(sub.quantity),
            area=area,
            material_kind=kind,
            cost_role=role,
            indirect_kind=indirect_kind,
            catalog_item_id=item.id,
            material_id=sub.material_id,
        ))
    return tuple(components)


def synthetic_component(
    layer: LayerPricing,
    area,
    item: Optional[CatalogItem] = None,
) -> Component:
    """
    Single direct component standing in for a layer that has no usable
    sub-component list.  Priced from the layer itself; zero-priced and
    flagged when the layer was never priced either.
    """
    if item is not None:
        name, spec = item.display_name, item.basic.spec
    else:
        name, spec = parse_unit_price_id(layer.material_name)
    kind = detect_material_kind(name)
    not_found = item is None and not layer.found
    return Component(
        name=name,
        spec=spec,
        unit=layer.unit or config.DEFAULT_UNIT,
        category=_category_for(kind, name, spec, _spec_category(name, spec)),
        material_unit_price=to_decimal(0 if not_found else layer.material_price),
        labor_unit_price=to_decimal(0 if not_found else layer.labor_price),
        area=to_decimal(area),
        material_kind=kind,
        cost_role=CostRole.DIRECT,
        catalog_item_id=item.id if item is not None else None,
        not_found=not_found,
    )


def extract_layer(
    layer_key: str,
    layer: LayerPricing,
    area,
    item: Optional[CatalogItem],
) -> ExtractedLayer:
    if item is not None and item.components:
        components = components_from_catalog_item(item, area)
    else:
        components = (synthetic_component(layer, area, item),)
    not_found = any(c.not_found for c in components)
    return ExtractedLayer(
        layer_key=layer_key,
        material_name=layer.material_name,
        area=to_decimal(area),
        components=components,
        not_found=not_found,
    )


def extract_wall_instance(
    wall: WallCalculationResult,
    resolved: Mapping[str, Optional[CatalogItem]],
) -> Tuple[ExtractedLayer, ...]:
    """Extract every non-empty layer of one wall instance, in layer order."""
    layers = []
    for layer_key in order_layer_keys(wall.layer_pricing.keys()):
        layer = wall.layer_pricing[layer_key]
        if not (layer.material_name or "").strip():
            continue
        item = resolved.get(layer.material_name)
        if item is None:
            logger.debug(f"{wall.wall_name}/{layer_key}: no catalog item for {layer.material_name}")
        layers.append(extract_layer(layer_key, layer, wall.area, item))
    return tuple(layers)


def layer_material_names(walls: Iterable[WallCalculationResult]) -> List[str]:
    """Distinct non-empty layer material names, first-seen order."""
    names: Dict[str, None] = {}
    for wall in walls:
        for layer_key in order_layer_keys(wall.layer_pricing.keys()):
            name = wall.layer_pricing[layer_key].material_name
            if name and name.strip():
                names.setdefault(name, None)
    return list(names)


async def resolve_catalog_items(
    catalog: CatalogLookup,
    material_names: Sequence[str],
    timeout_s: float = config.CATALOG_LOOKUP_TIMEOUT_S,
) -> Dict[str, Optional[CatalogItem]]:
    """Look every material up concurrently; misses and failures map to None."""
    results = await asyncio.gather(*[
        safe_find_catalog_item(catalog, name, timeout_s) for name in material_names
    ])
    return dict(zip(material_names, results))


async def resolve_board_dimensions(
    catalog: CatalogLookup,
    items: Iterable[CatalogItem],
    timeout_s: float = config.CATALOG_LOOKUP_TIMEOUT_S,
) -> Dict[str, MaterialDimensions]:
    material_ids: Dict[str, None] = {}
    for item in items:
        for sub in item.components:
            if sub.material_id and detect_material_kind(sub.name) == MaterialKind.BOARD:
                material_ids.setdefault(sub.material_id, None)
    ids = list(material_ids)
    results = await asyncio.gather(*[
        safe_find_dimensions(catalog, material_id, timeout_s) for material_id in ids
    ])
    return {material_id: dim for material_id, dim in zip(ids, results) if dim is not None}
