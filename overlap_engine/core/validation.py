"""Lineup shape checks (count, slots, server, coordinates)."""

from typing import Dict, List, Sequence

from .models import (
    PlayerState, Violation, ViolationCode, ALL_SLOTS,
    COURT_BOUNDS, EXTENDED_BOUNDS
)
from .tolerance import is_within_range


class ValidationError(Exception):
    """Custom validation error."""
    pass


class ConversionError(ValidationError):
    """A position could not be mapped between coordinate spaces."""
    pass


def validate_player_count(lineup: Sequence[PlayerState]) -> List[Violation]:
    """Lineup must have exactly six players."""
    if len(lineup) != 6:
        return [Violation(
            code=ViolationCode.INVALID_LINEUP,
            message=f"Invalid lineup: expected 6 players, got {len(lineup)}",
        )]
    return []


def validate_unique_slots(lineup: Sequence[PlayerState]) -> List[Violation]:
    """
    Every slot 1-6 must be occupied exactly once:
    - duplicate slots are reported together
    - missing slots are reported together
    """
    violations = []
    by_slot: Dict[int, List[PlayerState]] = {}
    for player in lineup:
        by_slot.setdefault(player.slot, []).append(player)

    duplicates = sorted(slot for slot, players in by_slot.items() if len(players) > 1)
    if duplicates:
        violations.append(Violation(
            code=ViolationCode.INVALID_LINEUP,
            slots=duplicates,
            message=f"Invalid lineup: duplicate rotation slots found: "
                    f"{', '.join(str(s) for s in duplicates)}",
        ))

    missing = [slot for slot in ALL_SLOTS if slot not in by_slot]
    if missing:
        violations.append(Violation(
            code=ViolationCode.INVALID_LINEUP,
            slots=missing,
            message=f"Invalid lineup: no player assigned to slots "
                    f"{', '.join(str(s) for s in missing)}",
        ))

    return violations


def validate_server_count(lineup: Sequence[PlayerState]) -> List[Violation]:
    """Exactly one player must be marked as server."""
    servers = [p.slot for p in lineup if p.is_server]
    if len(servers) != 1:
        return [Violation(
            code=ViolationCode.MULTIPLE_SERVERS,
            slots=sorted(servers),
            message=f"Invalid lineup: expected exactly 1 server, got {len(servers)}",
        )]
    return []


def validate_player_coordinates(lineup: Sequence[PlayerState]) -> List[Violation]:
    """Coordinates must be finite numbers."""
    bad = [p for p in lineup if not p.has_finite_position]
    if bad:
        return [Violation(
            code=ViolationCode.CONVERSION_ERROR,
            slots=sorted(p.slot for p in bad),
            message="Unable to read positions for "
                    + ", ".join(f"{p.name} ({p.x}, {p.y})" for p in bad),
        )]
    return []


def find_out_of_bounds(lineup: Sequence[PlayerState]) -> List[int]:
    """Slots standing outside the court (servers may use the service zone)."""
    slots = []
    for player in lineup:
        if not player.has_finite_position:
            continue
        bounds = EXTENDED_BOUNDS if player.is_server else COURT_BOUNDS
        inside = is_within_range(player.x, bounds.min_x, bounds.max_x) and \
            is_within_range(player.y, bounds.min_y, bounds.max_y)
        if not inside:
            slots.append(player.slot)
    return sorted(slots)


def check_lineup_shape(lineup: Sequence[PlayerState]) -> List[Violation]:
    """
    Shape problems that make ordering checks meaningless.
    A wrong player count short-circuits the remaining checks.
    """
    violations = validate_player_count(lineup)
    if violations:
        return violations

    violations.extend(validate_unique_slots(lineup))
    violations.extend(validate_server_count(lineup))
    violations.extend(validate_player_coordinates(lineup))
    return violations


def require_valid_lineup(lineup: Sequence[PlayerState]) -> None:
    """Raise ValidationError when the lineup shape is broken."""
    violations = check_lineup_shape(lineup)
    if violations:
        raise ValidationError("; ".join(v.message for v in violations))


def create_slot_map(lineup: Sequence[PlayerState]) -> Dict[int, PlayerState]:
    """Index players by rotation slot (last one wins on duplicates)."""
    return {player.slot: player for player in lineup}


def has_all_rotation_slots(slots: Sequence[int]) -> bool:
    return set(slots) == set(ALL_SLOTS)
