"""
Catalog access for the rollup engine.

The engine only ever *reads* the catalog through the ``CatalogLookup``
protocol.  ``InMemoryCatalog`` is the implementation used by the API and the
tests; it can be filled from a JSON document or from tabular unit-price
sheets (one row per sub-component) via pandas.
"""
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

import pandas as pd

from wallcost import config
from wallcost.models.catalog_schema import (
    CatalogBasicInfo,
    CatalogItem,
    FixedRatePercents,
    IndirectRates,
    MaterialDimensions,
    SubComponent,
    UnitRates,
)

logger = logging.getLogger("wallcost-catalog")


class CatalogLookup(Protocol):
    async def find_catalog_item(self, name_or_id: str) -> Optional[CatalogItem]:
        ...

    async def find_material_dimensions(self, material_id: str) -> Optional[MaterialDimensions]:
        ...


def strip_catalog_prefix(material_name: str) -> str:
    name = (material_name or "").strip()
    if name.startswith(config.CATALOG_ID_PREFIX):
        name = name[len(config.CATALOG_ID_PREFIX):]
    return name


async def safe_find_catalog_item(
    catalog: CatalogLookup,
    name_or_id: str,
    timeout_s: float = config.CATALOG_LOOKUP_TIMEOUT_S,
) -> Optional[CatalogItem]:
    """Catalog lookup that degrades to None on miss, error or timeout."""
    try:
        return await asyncio.wait_for(catalog.find_catalog_item(name_or_id), timeout=timeout_s)
    except asyncio.TimeoutError:
        logger.warning(f"Catalog lookup timed out after {timeout_s}s: {name_or_id}")
    except Exception as e:
        logger.warning(f"Catalog lookup failed for {name_or_id}: {e}")
    return None


async def safe_find_dimensions(
    catalog: CatalogLookup,
    material_id: str,
    timeout_s: float = config.CATALOG_LOOKUP_TIMEOUT_S,
) -> Optional[MaterialDimensions]:
    try:
        return await asyncio.wait_for(catalog.find_material_dimensions(material_id), timeout=timeout_s)
    except asyncio.TimeoutError:
        logger.warning(f"Dimension lookup timed out after {timeout_s}s: {material_id}")
    except Exception as e:
        logger.warning(f"Dimension lookup failed for {material_id}: {e}")
    return None


class InMemoryCatalog:
    """
    Read-only catalog held in dictionaries.

    Items are found by id first, then by display name (first registered
    wins), so both ``C-STUD-@450-50형`` and ``C-STUD`` resolve.
    """

    def __init__(
        self,
        items: Iterable[CatalogItem] = (),
        dimensions: Iterable[MaterialDimensions] = (),
    ) -> None:
        self._by_id: Dict[str, CatalogItem] = {}
        self._by_name: Dict[str, CatalogItem] = {}
        self._dimensions: Dict[str, MaterialDimensions] = {}
        for item in items:
            self._by_id[item.id.strip()] = item
            self._by_name.setdefault(item.basic.item_name.strip(), item)
        for dim in dimensions:
            self._dimensions[dim.material_id.strip()] = dim

    def __len__(self) -> int:
        return len(self._by_id)

    def get(self, name_or_id: str) -> Optional[CatalogItem]:
        key = strip_catalog_prefix(name_or_id)
        return self._by_id.get(key) or self._by_name.get(key)

    async def find_catalog_item(self, name_or_id: str) -> Optional[CatalogItem]:
        return self.get(name_or_id)

    async def find_material_dimensions(self, material_id: str) -> Optional[MaterialDimensions]:
        return self._dimensions.get((material_id or "").strip())

    def summary(self) -> Dict[str, Any]:
        return {
            "items": len(self._by_id),
            "dimensions": len(self._dimensions),
            "with_stored_rates": sum(1 for i in self._by_id.values() if i.basic.indirect_rates),
            "with_unit_rates": sum(1 for i in self._by_id.values() if i.basic.unit_rates),
        }


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------

def load_catalog_json(path: str) -> InMemoryCatalog:
    """
    Load ``{"items": [...], "dimensions": [...]}`` into an InMemoryCatalog.
    Items failing validation are skipped with a warning.
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    items: List[CatalogItem] = []
    for entry in raw.get("items", []):
        try:
            items.append(CatalogItem.model_validate(entry))
        except ValueError as e:
            logger.warning(f"Skipping invalid catalog item {entry.get('id')}: {e}")
    dimensions = [MaterialDimensions.model_validate(d) for d in raw.get("dimensions", [])]
    logger.info(f"Catalog loaded from {path}: {len(items)} items, {len(dimensions)} dimensions")
    return InMemoryCatalog(items, dimensions)


def _cell(row: pd.Series, column: str, default: Any = None) -> Any:
    if column not in row.index:
        return default
    value = row[column]
    if pd.isna(value):
        return default
    return value


def _text(row: pd.Series, column: str) -> str:
    value = _cell(row, column, "")
    return str(value).strip()


def _number(row: pd.Series, column: str, default: Optional[float] = 0.0) -> Optional[float]:
    value = _cell(row, column, None)
    if value is None:
        return default
    try:
        return float(str(value).replace(",", ""))
    except ValueError:
        return default


def _optional_block(row: pd.Series, model, columns: Dict[str, str]):
    """Build ``model`` from prefixed columns only when every column is filled."""
    values = {field: _number(row, column, None) for field, column in columns.items()}
    if any(v is None for v in values.values()):
        return None
    return model(**values)


def catalog_from_dataframes(
    items_df: pd.DataFrame,
    components_df: pd.DataFrame,
    dimensions_df: Optional[pd.DataFrame] = None,
) -> InMemoryCatalog:
    """
    Build a catalog from unit-price sheets.

    items_df:       one row per assembly — id, item_name, spec, size, spacing,
                    height, unit, work_type1, work_type2, optional
                    rate_material_loss / rate_transport / rate_material_profit /
                    rate_tool_expense, optional unit_rate_material /
                    unit_rate_labor, optional pct_* overrides.
    components_df:  one row per sub-component — item_id, name, spec, unit,
                    material_id, material_unit_price, labor_unit_price,
                    labor_amount, quantity.  Row order is preserved.
    dimensions_df:  material_id, width_mm, height_mm, thickness_mm.
    """
    components_by_item: Dict[str, List[SubComponent]] = {}
    for _, row in components_df.iterrows():
        item_id = _text(row, "item_id")
        if not item_id:
            continue
        components_by_item.setdefault(item_id, []).append(SubComponent(
            name=_text(row, "name"),
            spec=_text(row, "spec"),
            unit=_text(row, "unit"),
            material_id=_text(row, "material_id") or None,
            material_unit_price=_number(row, "material_unit_price"),
            labor_unit_price=_number(row, "labor_unit_price"),
            labor_amount=_number(row, "labor_amount", None),
            quantity=_number(row, "quantity", 1.0),
        ))

    items: List[CatalogItem] = []
    for _, row in items_df.iterrows():
        item_id = _text(row, "id")
        if not item_id:
            continue
        indirect_rates = _optional_block(row, IndirectRates, {
            "material_loss": "rate_material_loss",
            "transport": "rate_transport",
            "material_profit": "rate_material_profit",
            "tool_expense": "rate_tool_expense",
        })
        unit_rates = _optional_block(row, UnitRates, {
            "material": "unit_rate_material",
            "labor": "unit_rate_labor",
        })
        defaults = config.DEFAULT_FIXED_RATES_PCT
        fixed_rates = FixedRatePercents(**{
            key: _number(row, f"pct_{key}", defaults[key]) for key in defaults
        })
        basic = CatalogBasicInfo(
            item_name=_text(row, "item_name") or item_id,
            spec=_text(row, "spec"),
            size=_text(row, "size"),
            spacing=_text(row, "spacing"),
            height=_text(row, "height"),
            unit=_text(row, "unit") or config.DEFAULT_UNIT,
            work_type1=_text(row, "work_type1"),
            work_type2=_text(row, "work_type2"),
            indirect_rates=indirect_rates,
            unit_rates=unit_rates,
        )
        items.append(CatalogItem(
            id=item_id,
            basic=basic,
            components=components_by_item.get(item_id, []),
            fixed_rates=fixed_rates,
        ))

    dimensions: List[MaterialDimensions] = []
    if dimensions_df is not None:
        for _, row in dimensions_df.iterrows():
            material_id = _text(row, "material_id")
            if not material_id:
                continue
            dimensions.append(MaterialDimensions(
                material_id=material_id,
                width_mm=_number(row, "width_mm"),
                height_mm=_number(row, "height_mm"),
                thickness_mm=_number(row, "thickness_mm"),
            ))

    orphaned = set(components_by_item) - {item.id for item in items}
    if orphaned:
        logger.warning(f"Sub-components reference unknown catalog items: {sorted(orphaned)}")
    return InMemoryCatalog(items, dimensions)


def load_catalog_csv(
    items_path: str,
    components_path: str,
    dimensions_path: Optional[str] = None,
) -> InMemoryCatalog:
    items_df = pd.read_csv(items_path, dtype=str)
    components_df = pd.read_csv(components_path, dtype=str)
    dimensions_df = pd.read_csv(dimensions_path, dtype=str) if dimensions_path else None
    catalog = catalog_from_dataframes(items_df, components_df, dimensions_df)
    logger.info(f"Catalog loaded from CSV: {catalog.summary()}")
    return catalog
