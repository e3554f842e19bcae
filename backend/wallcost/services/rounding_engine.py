"""
Rounding Reconciler.

Two independent layers:
  1. Category reconciliation: force the displayed component amounts of a
     category to add up to its authoritative unit-rate × area figure.
  2. Total truncation: cut the contract grand total down to a whole
     CONTRACT_TRUNCATION_UNIT.  Order figures are never truncated.
"""
import logging
from decimal import Decimal
from typing import Mapping, Optional

from wallcost import config
from wallcost.models.catalog_schema import CatalogItem
from wallcost.models.rollup_models import (
    CategoryInfo,
    PriceSeries,
    RollupRow,
    RoundingLayer,
    RowKind,
)
from wallcost.services.money import ZERO, round2, safe_div, to_decimal

logger = logging.getLogger("wallcost-rounding")


def authoritative_amounts(
    category: CategoryInfo,
    catalog_items: Mapping[str, CatalogItem],
) -> Optional[PriceSeries]:
    """
    Σ round2(unit rate × area) over the catalog items feeding the category,
    or None when any of them is unknown or carries no unit rates.
    """
    shares = category.areas_by_item()
    material_amount = ZERO
    labor_amount = ZERO
    for item_id, area in shares:
        item = catalog_items.get(item_id) if item_id else None
        if item is None or item.basic.unit_rates is None:
            return None
        material_amount += round2(to_decimal(item.basic.unit_rates.material) * area)
        labor_amount += round2(to_decimal(item.basic.unit_rates.labor) * area)
    return PriceSeries(
        material_unit=round2(safe_div(material_amount, category.area)),
        material_amount=material_amount,
        labor_unit=round2(safe_div(labor_amount, category.area)),
        labor_amount=labor_amount,
    )


def reconcile_category(
    category: CategoryInfo,
    catalog_items: Mapping[str, CatalogItem],
    displayed: PriceSeries,
    contract_ratio: Decimal,
) -> Optional[RollupRow]:
    """
    Category rounding row, or None when the category cannot be reconciled.
    The contract correction is the order correction scaled by the ratio.
    """
    authoritative = authoritative_amounts(category, catalog_items)
    if authoritative is None:
        logger.debug(f"{category.name}: no unit rates, left unreconciled")
        return None

    material_corr = authoritative.material_amount - displayed.material_amount
    labor_corr = authoritative.labor_amount - displayed.labor_amount
    order = PriceSeries(material_amount=material_corr, labor_amount=labor_corr)
    contract = PriceSeries(
        material_amount=round2(material_corr * contract_ratio),
        labor_amount=round2(labor_corr * contract_ratio),
    )
    if order.total_amount != 0:
        logger.debug(f"{category.name}: rounding correction {material_corr} / {labor_corr}")
    return RollupRow(
        kind=RowKind.ROUNDING_CORRECTION,
        label=f"{category.name} rounding adjustment".strip(),
        order=order,
        contract=contract,
        category=category.name,
        rounding_layer=RoundingLayer.CATEGORY,
    )


def truncate_contract_total(
    contract_subtotal_sum: Decimal,
    unit: Decimal = config.CONTRACT_TRUNCATION_UNIT,
) -> Decimal:
    """-(sum mod unit): 1,234,567 -> -567."""
    if unit <= 0:
        return ZERO
    return ZERO - (contract_subtotal_sum % unit)


def truncation_row(correction: Decimal) -> RollupRow:
    return RollupRow(
        kind=RowKind.ROUNDING_CORRECTION,
        label="Contract total truncation",
        order=PriceSeries(),
        contract=PriceSeries(material_amount=correction),
        rounding_layer=RoundingLayer.TOTAL_TRUNCATION,
    )
