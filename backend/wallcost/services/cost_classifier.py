"""
Cost Classifier — decides what a sub-material *is* and how it is costed.

Material kind and cost role are resolved once, from the sub-component name,
when the extractor builds a ``Component``.  Later stages only read the enums;
they never search names again.  ``classify`` then splits grouped components
into the displayed (direct) set and the surcharge (indirect) set.
"""
import logging
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Tuple

from wallcost import config
from wallcost.models.rollup_models import Component, CostRole, IndirectKind, MaterialKind

logger = logging.getLogger("wallcost-classifier")

_KIND_BY_NAME = {kind.value: kind for kind in MaterialKind}
_DISPLAY_KINDS = frozenset(_KIND_BY_NAME[k] for k in config.DISPLAY_KINDS)


def detect_material_kind(name: str) -> MaterialKind:
    lowered = (name or "").lower()
    for kind_name, keywords in config.MATERIAL_KIND_KEYWORDS:
        if any(kw in lowered for kw in keywords):
            return _KIND_BY_NAME[kind_name]
    return MaterialKind.OTHER


def detect_indirect_term(name: str) -> Optional[str]:
    """Return the surcharge keyword group matched by ``name`` (e.g. 'material_loss'), or None."""
    lowered = (name or "").lower()
    for group, keywords in config.INDIRECT_KEYWORDS:
        if any(kw in lowered for kw in keywords):
            return group
    return None


def is_display_kind(kind: MaterialKind) -> bool:
    return kind in _DISPLAY_KINDS


def resolve_cost_role(name: str, kind: MaterialKind) -> Tuple[CostRole, Optional[IndirectKind]]:
    """
    Indirect keywords win over the display allow-list, so fastener-like
    surcharge rows are still recognised as surcharges.  A "rounding" row is
    indirect but stands for none of the four surcharge lines.
    """
    term = detect_indirect_term(name)
    if term is not None:
        indirect_kind = IndirectKind(term) if term != "rounding" else None
        return CostRole.INDIRECT, indirect_kind
    if is_display_kind(kind):
        return CostRole.DIRECT, None
    return CostRole.EXCLUDED, None


def indirect_display_name(component: Component) -> str:
    if component.category == config.DEFAULT_CATEGORY:
        return component.name
    return f"{component.category} {component.name}"


@dataclass(frozen=True)
class ClassifiedComponents:
    direct: Tuple[Component, ...]
    indirect: Tuple[Component, ...]


def classify(components: Iterable[Component]) -> ClassifiedComponents:
    """Split into direct and indirect sets; indirect names gain their category prefix."""
    direct = []
    indirect = []
    for comp in components:
        if comp.cost_role == CostRole.INDIRECT:
            indirect.append(replace(comp, name=indirect_display_name(comp)))
        elif comp.cost_role == CostRole.DIRECT:
            direct.append(comp)
    if indirect:
        logger.debug(f"Classified {len(direct)} direct / {len(indirect)} indirect components")
    return ClassifiedComponents(direct=tuple(direct), indirect=tuple(indirect))
