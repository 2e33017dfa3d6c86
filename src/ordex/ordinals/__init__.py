"""Ordinal naming: scanning directories and planning renames."""

from .scanner import (
    ORDINAL_PATTERN,
    find_duplicate_suffixes,
    find_ordinal_directories,
    format_ordinal_prefix,
    item_from_path,
    ordinal_name,
    parse_ordinal,
    scan_ordinal_items,
    strip_ordinal_prefix,
)
from .sequencer import (
    MovePlan,
    RelocatePlan,
    plan_insert_after,
    plan_move_adjacent,
    plan_relocate,
    plan_renumber,
)

__all__ = [
    "ORDINAL_PATTERN",
    "MovePlan",
    "RelocatePlan",
    "find_duplicate_suffixes",
    "find_ordinal_directories",
    "format_ordinal_prefix",
    "item_from_path",
    "ordinal_name",
    "parse_ordinal",
    "plan_insert_after",
    "plan_move_adjacent",
    "plan_relocate",
    "plan_renumber",
    "scan_ordinal_items",
    "strip_ordinal_prefix",
]
