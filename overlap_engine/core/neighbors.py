"""Row and column relationships between rotation slots."""

from typing import Dict, List, Optional, Tuple

# Left to right as seen from behind the team's own endline
FRONT_ROW: Tuple[int, ...] = (4, 3, 2)
BACK_ROW: Tuple[int, ...] = (5, 6, 1)

# (front, back) per column, left to right
COLUMNS: Tuple[Tuple[int, int], ...] = ((4, 5), (3, 6), (2, 1))

# (left, right) adjacent pairs that must keep their order
ROW_PAIRS: Tuple[Tuple[int, int], ...] = ((4, 3), (3, 2), (5, 6), (6, 1))

COUNTERPARTS: Dict[int, int] = {
    front: back for front, back in COLUMNS
}
COUNTERPARTS.update({back: front for front, back in COLUMNS})

SLOT_LABELS: Dict[int, str] = {
    1: "Right Back",
    2: "Right Front",
    3: "Middle Front",
    4: "Left Front",
    5: "Left Back",
    6: "Middle Back",
}

SLOT_ABBREVIATIONS: Dict[int, str] = {
    1: "RB", 2: "RF", 3: "MF", 4: "LF", 5: "LB", 6: "MB",
}


def is_front_row(slot: int) -> bool:
    return slot in FRONT_ROW


def is_back_row(slot: int) -> bool:
    return slot in BACK_ROW


def row_of(slot: int) -> Tuple[int, ...]:
    """Row containing the slot."""
    if is_front_row(slot):
        return FRONT_ROW
    if is_back_row(slot):
        return BACK_ROW
    raise ValueError(f"Invalid rotation slot {slot}")


def left_neighbor(slot: int) -> Optional[int]:
    """Slot directly to the left in the same row, None at the left end."""
    row = row_of(slot)
    index = row.index(slot)
    return row[index - 1] if index > 0 else None


def right_neighbor(slot: int) -> Optional[int]:
    """Slot directly to the right in the same row, None at the right end."""
    row = row_of(slot)
    index = row.index(slot)
    return row[index + 1] if index < len(row) - 1 else None


def counterpart(slot: int) -> int:
    """Slot in the same column, opposite row."""
    if slot not in COUNTERPARTS:
        raise ValueError(f"Invalid rotation slot {slot}")
    return COUNTERPARTS[slot]


def all_neighbors(slot: int) -> Dict[str, Optional[int]]:
    return {
        "left": left_neighbor(slot),
        "right": right_neighbor(slot),
        "counterpart": counterpart(slot),
    }


def dependencies(slot: int) -> List[int]:
    """Slots whose positions bound this slot's legal rectangle."""
    return [s for s in all_neighbors(slot).values() if s is not None]


def dependents(slot: int) -> List[int]:
    """Slots whose legal rectangle depends on this slot."""
    # Neighbor relations are symmetric
    return dependencies(slot)


def row_name(slot: int) -> str:
    return "Front" if is_front_row(slot) else "Back"


def column_name(slot: int) -> str:
    for index, (front, back) in enumerate(COLUMNS):
        if slot in (front, back):
            return ("Left", "Middle", "Right")[index]
    raise ValueError(f"Invalid rotation slot {slot}")


def slot_label(slot: int) -> str:
    """Human-readable slot name, e.g. 'Left Front'."""
    if slot not in SLOT_LABELS:
        raise ValueError(f"Invalid rotation slot {slot}")
    return SLOT_LABELS[slot]


def position_description(slot: int) -> Dict[str, object]:
    return {
        "slot": slot,
        "label": slot_label(slot),
        "abbreviation": SLOT_ABBREVIATIONS[slot],
        "row": row_name(slot),
        "column": column_name(slot),
    }
