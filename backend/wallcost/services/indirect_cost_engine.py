"""
Indirect Cost Calculator — four surcharge lines per category.

Stored-rate mode uses per-m² rates kept with the catalog item (or carried by
the item's own surcharge sub-components).  Formula mode applies the item's
fixed percentages to the category's direct material and labor totals:

    loss      = M × loss%
    transport = M × transport%
    profit    = (M + loss + transport) × profit%
    tool      = L × tool%

Every amount is rounded to 2 dp before it feeds the next line.
"""
import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from wallcost import config
from wallcost.models.catalog_schema import CatalogItem, FixedRatePercents
from wallcost.models.rollup_models import (
    INDIRECT_KIND_ORDER,
    CategoryInfo,
    Component,
    IndirectCostLine,
    IndirectKind,
)
from wallcost.services.money import ZERO, round2, safe_div, to_decimal

logger = logging.getLogger("wallcost-indirect")

_HUNDRED = Decimal("100")


def indirect_line_name(category: str, kind: IndirectKind) -> str:
    return f"{category} {config.INDIRECT_LINE_LABELS[kind.value]}".strip()


def stored_rates(
    item: Optional[CatalogItem],
    indirect_components: Iterable[Component] = (),
) -> Optional[Dict[IndirectKind, Decimal]]:
    """
    Per-m² surcharge rates, or None when formula mode must be used.
    ``basic.indirect_rates`` wins; otherwise the surcharge sub-components
    are used if all four kinds are present.
    """
    if item is not None and item.basic.indirect_rates is not None:
        rates = item.basic.indirect_rates
        return {kind: to_decimal(getattr(rates, kind.value)) for kind in INDIRECT_KIND_ORDER}

    found: Dict[IndirectKind, Decimal] = {}
    for comp in indirect_components:
        if comp.indirect_kind is None or comp.indirect_kind in found:
            continue
        found[comp.indirect_kind] = comp.material_per_area + comp.labor_per_area
    if all(kind in found for kind in INDIRECT_KIND_ORDER):
        return found
    return None


RateShare = Tuple[Dict[IndirectKind, Decimal], Decimal]


def category_stored_rates(
    category: CategoryInfo,
    catalog_items: Mapping[str, CatalogItem],
    indirect_components: Iterable[Component] = (),
) -> Optional[List[RateShare]]:
    """
    (rates, area) for every catalog item feeding the category, or None as
    soon as one of them has no stored rates.
    """
    indirect_components = list(indirect_components)
    shares: List[RateShare] = []
    for item_id, area in category.areas_by_item():
        item = catalog_items.get(item_id) if item_id else None
        own = [c for c in indirect_components if c.catalog_item_id == item_id]
        rates = stored_rates(item, own)
        if rates is None:
            return None
        shares.append((rates, area))
    return shares


def stored_rate_lines(
    category: CategoryInfo,
    shares: List[RateShare],
) -> Tuple[IndirectCostLine, ...]:
    """Each item's rates times its own area, summed per surcharge kind."""
    lines = []
    for kind in INDIRECT_KIND_ORDER:
        amount = sum((round2(rates[kind] * area) for rates, area in shares), ZERO)
        if len(shares) == 1:
            unit_rate = round2(shares[0][0][kind])
        else:
            unit_rate = round2(safe_div(amount, category.area))
        lines.append(IndirectCostLine(
            name=indirect_line_name(category.name, kind),
            kind=kind,
            category=category.name,
            amount=amount,
            unit_rate=unit_rate,
            area=category.area,
        ))
    return tuple(lines)


def formula_lines(
    category: CategoryInfo,
    material_total: Decimal,
    labor_total: Decimal,
    fixed_rates: Optional[FixedRatePercents] = None,
) -> Tuple[IndirectCostLine, ...]:
    pct = fixed_rates or FixedRatePercents()
    percents = {kind: to_decimal(getattr(pct, kind.value)) for kind in INDIRECT_KIND_ORDER}

    loss = round2(material_total * percents[IndirectKind.MATERIAL_LOSS] / _HUNDRED)
    transport = round2(material_total * percents[IndirectKind.TRANSPORT] / _HUNDRED)
    profit_base = material_total + loss + transport
    profit = round2(profit_base * percents[IndirectKind.MATERIAL_PROFIT] / _HUNDRED)
    tool = round2(labor_total * percents[IndirectKind.TOOL_EXPENSE] / _HUNDRED)

    amounts = {
        IndirectKind.MATERIAL_LOSS: loss,
        IndirectKind.TRANSPORT: transport,
        IndirectKind.MATERIAL_PROFIT: profit,
        IndirectKind.TOOL_EXPENSE: tool,
    }
    return tuple(
        IndirectCostLine(
            name=indirect_line_name(category.name, kind),
            kind=kind,
            category=category.name,
            amount=amounts[kind],
            unit_rate=round2(safe_div(amounts[kind], category.area)) if category.area > 0 else ZERO,
            area=category.area,
            percent_rate=percents[kind],
        )
        for kind in INDIRECT_KIND_ORDER
    )


def compute_indirect_lines(
    category: CategoryInfo,
    catalog_items: Mapping[str, CatalogItem],
    material_total: Decimal,
    labor_total: Decimal,
    indirect_components: Iterable[Component] = (),
) -> Tuple[IndirectCostLine, ...]:
    """
    Loss, transport, profit and tool-expense lines for one category, in that
    order.  Formula mode takes its percentages from the category's first item.
    """
    shares = category_stored_rates(category, catalog_items, indirect_components)
    if shares is not None:
        logger.debug(f"{category.name}: stored-rate surcharges over {len(shares)} item(s)")
        return stored_rate_lines(category, shares)
    logger.debug(f"{category.name}: formula surcharges on M={material_total} L={labor_total}")
    item = catalog_items.get(category.catalog_item_id) if category.catalog_item_id else None
    return formula_lines(category, material_total, labor_total, item.fixed_rates if item else None)
