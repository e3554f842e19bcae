"""
Quantity & display rules for component rows, dispatched on material kind.

Nothing computed here flows back into money columns: counts, sheet counts
and display quantities are for the reader only.
"""
import re
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional, Tuple

from wallcost.models.catalog_schema import CatalogItem, MaterialDimensions
from wallcost.models.rollup_models import Component, ComponentDisplay, MaterialKind
from wallcost.services.money import ZERO, round2, round3, round_int, safe_div, to_decimal

_THOUSAND = Decimal("1000")
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


def parse_section_size(size: str) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """"0.8T*60*45" -> ("0.8", "60", "45").  Missing parts come back as None."""
    parts = [p.strip() for p in (size or "").replace("×", "*").replace("x", "*").split("*")]
    values = []
    for part in parts[:3]:
        match = _NUMBER_RE.search(part)
        values.append(match.group(0) if match else None)
    while len(values) < 3:
        values.append(None)
    return values[0], values[1], values[2]


def parse_spacing(spacing: str) -> Optional[str]:
    """"@450" -> "450"."""
    match = _NUMBER_RE.search(spacing or "")
    return match.group(0) if match else None


def _format_mm(value: float) -> Optional[str]:
    if not value:
        return None
    d = to_decimal(value)
    return str(d.to_integral_value()) if d == d.to_integral_value() else str(d.normalize())


def board_conversion_factor(dimensions: Optional[MaterialDimensions]) -> Decimal:
    """Sheet area in m², rounded to 3 dp; zero when dimensions are unknown."""
    if dimensions is None:
        return ZERO
    width = to_decimal(dimensions.width_mm) / _THOUSAND
    height = to_decimal(dimensions.height_mm) / _THOUSAND
    return round3(width * height)


def display_quantity(component: Component) -> Decimal:
    if component.material_kind in (MaterialKind.STUD, MaterialKind.RUNNER):
        raw = component.area
    else:
        raw = component.area * component.per_unit_quantity
    if component.material_kind == MaterialKind.WELDING_ROD:
        return round2(raw)
    return Decimal(round_int(raw))


def board_sheet_counts(
    components: Iterable[Component],
    dimensions: Mapping[str, MaterialDimensions],
) -> Dict[str, int]:
    """
    Sheet count per board catalog item, taken from that item's first board
    component and shared by all of its board components.
    """
    counts: Dict[str, int] = {}
    for comp in components:
        if comp.material_kind != MaterialKind.BOARD or comp.catalog_item_id is None:
            continue
        if comp.catalog_item_id in counts:
            continue
        factor = board_conversion_factor(dimensions.get(comp.material_id or ""))
        quantity = comp.area * comp.per_unit_quantity
        counts[comp.catalog_item_id] = round_int(safe_div(quantity, factor))
    return counts


def component_display(
    component: Component,
    item: Optional[CatalogItem],
    dimensions: Mapping[str, MaterialDimensions],
    sheet_counts: Mapping[str, int],
) -> ComponentDisplay:
    kind = component.material_kind
    quantity = display_quantity(component)

    if kind in (MaterialKind.STUD, MaterialKind.RUNNER):
        thickness = width = height = spacing = None
        if item is not None:
            thickness, width, height = parse_section_size(item.basic.size)
            spacing = parse_spacing(item.basic.spacing)
        return ComponentDisplay(
            thickness=thickness,
            width=width,
            height=height,
            spacing=spacing,
            count=round_int(component.per_unit_quantity * component.area),
            display_quantity=quantity,
        )

    if kind == MaterialKind.BOARD:
        dims = dimensions.get(component.material_id or "")
        return ComponentDisplay(
            thickness=_format_mm(dims.thickness_mm) if dims else None,
            width=_format_mm(dims.width_mm) if dims else None,
            height=_format_mm(dims.height_mm) if dims else None,
            count=sheet_counts.get(component.catalog_item_id or "", 0),
            display_quantity=quantity,
            conversion_factor=board_conversion_factor(dims),
        )

    return ComponentDisplay(display_quantity=quantity)
