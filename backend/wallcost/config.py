"""
Rollup engine configuration — single source of truth for layer ordering,
material keyword tables, surcharge defaults and rounding units.

Import from here in all services rather than hardcoding values.
"""
from __future__ import annotations

import os
from decimal import Decimal

# ── Wall layers ────────────────────────────────────────────────────────────────
# Canonical layer order of a wall type: left finish layers, structure, right
# finish layers, then framing members.  Unknown layer keys follow in the order
# the caller supplied them.
LAYER_ORDER: list[str] = [
    "layer3_1",
    "layer2_1",
    "layer1_1",
    "column1",
    "infill",
    "layer1_2",
    "layer2_2",
    "layer3_2",
    "column2",
    "channel",
    "runner",
]

# Wall types store catalog ids with this prefix; the catalog itself does not.
CATALOG_ID_PREFIX: str = "unitPrice_"

DEFAULT_UNIT: str = "M2"


# ── Material kinds ─────────────────────────────────────────────────────────────
# Checked in this order: a "board screw" is a fastener, not a board.
MATERIAL_KIND_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("welding_rod", ("welding rod", "용접봉")),
    ("fastener",    ("screw", "anchor", "nail", "bolt", "rivet",
                     "피스", "앙카", "타정", "볼트", "리벳")),
    ("stud",        ("stud", "스터드")),
    ("runner",      ("runner", "track", "런너")),
    ("board",       ("board", "gypsum", "보드", "석고")),
    ("insulation",  ("insulation", "glass wool", "rock wool", "mineral wool",
                     "단열", "그라스울", "글라스울", "미네랄울", "암면")),
]

# Only these kinds are shown as direct component rows.
DISPLAY_KINDS: frozenset[str] = frozenset({"stud", "runner", "board", "insulation"})


# ── Indirect (surcharge) keywords ──────────────────────────────────────────────
# A sub-component whose name contains any of these is an indirect cost.  The
# first element names the surcharge it stands for; "rounding" has no line of
# its own.
INDIRECT_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("material_loss",   ("loss", "로스")),
    ("transport",       ("transport", "handling", "hoisting", "운반", "양중")),
    ("material_profit", ("profit", "margin", "이윤")),
    ("tool_expense",    ("tool", "공구손료", "기계경비")),
    ("rounding",        ("rounding", "단수")),
]


# ── Categories ────────────────────────────────────────────────────────────────
FRAMING_CATEGORY: str = "Framing"
DEFAULT_CATEGORY: str = ""          # uncategorized bucket; names pass through unchanged


# ── Surcharges ────────────────────────────────────────────────────────────────
# Formula-mode percentages used when a catalog item stores none of its own.
DEFAULT_FIXED_RATES_PCT: dict[str, float] = {
    "material_loss":   3.0,
    "transport":       1.5,
    "material_profit": 15.0,
    "tool_expense":    2.0,
}

INDIRECT_LINE_LABELS: dict[str, str] = {
    "material_loss":   "Material loss",
    "transport":       "Material transport & hoisting",
    "material_profit": "Material profit",
    "tool_expense":    "Tool wear & equipment",
}


# ── Rounding ──────────────────────────────────────────────────────────────────
# Contract grand totals are truncated down to a multiple of this unit.
CONTRACT_TRUNCATION_UNIT: Decimal = Decimal("1000")


# ── Contract ratio & lookups ──────────────────────────────────────────────────
DEFAULT_CONTRACT_RATIO: Decimal = Decimal(os.getenv("WALLCOST_DEFAULT_CONTRACT_RATIO", "1.0"))

# Ratios above this are rejected; contract figures stay within Decimal precision.
MAX_CONTRACT_RATIO: Decimal = Decimal(os.getenv("WALLCOST_MAX_CONTRACT_RATIO", "10"))

# Seconds allowed for a single catalog or dimension lookup before it is
# treated as "not found".
CATALOG_LOOKUP_TIMEOUT_S: float = float(os.getenv("WALLCOST_LOOKUP_TIMEOUT_S", "5.0"))
