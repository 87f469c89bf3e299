"""Screen-facing facade over the rules engine, used by the court UI."""

import logging
from typing import Dict, Mapping, Optional, Tuple

from .core.models import (
    COURT_BOUNDS, EXTENDED_BOUNDS, CoordinateBounds, ConstraintBoundaries,
    ConstraintLine, PositionBounds,
    PositionValidationContext, RulesIntegrationConfig, ScreenPosition,
    ScreenValidationResult, Severity, ViolationCode, ViolationData
)
from .core.validation import find_out_of_bounds, create_slot_map, ConversionError
from .geometry.state import StateConverter
from .geometry.transform import CoordinateTransformer
from .rules.cache import BoundedCache
from .rules.constraints import ConstraintCalculator
from .rules.overlap import RulesEngine

logger = logging.getLogger("overlap_engine.integration")


class RulesIntegration:
    """
    Validation, constraint and snapping queries in screen pixels.

    Every public method degrades to a conservative result instead of
    raising: a failure here must not freeze a live drag.
    """

    def __init__(self, config: Optional[RulesIntegrationConfig] = None, cache_size: int = 256):
        self.config = config or RulesIntegrationConfig()
        self.cache_size = cache_size
        self._build()

    def _build(self):
        self.transformer = CoordinateTransformer(self.config.court_dimensions)
        self.converter = StateConverter(self.transformer)
        self.engine = RulesEngine()
        self.calculator = ConstraintCalculator(self.cache_size)
        # Keyed by pointer position; fixed capacity, oldest evicted first
        self._validation_cache = BoundedCache(self.cache_size)
        self._boundary_cache = BoundedCache(self.cache_size)

    def update_config(self, **changes) -> RulesIntegrationConfig:
        """Apply config changes (validated) and drop every cache."""
        merged = {**self.config.model_dump(), **changes}
        self.config = RulesIntegrationConfig(**merged)
        self._build()
        logger.info(f"Rules integration reconfigured: {sorted(changes)}")
        return self.config

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_lineup(
        self,
        positions: Mapping[str, ScreenPosition],
        rotation_map: Mapping[int, str],
        server_slot: Optional[int] = None
    ) -> ScreenValidationResult:
        """Validate a full lineup given in screen pixels."""
        server_slot = server_slot or self.config.server_slot
        try:
            states = self.converter.formation_to_states(positions, rotation_map, server_slot)
        except ConversionError as e:
            logger.warning(f"Lineup conversion failed: {e}")
            return self._error_result(
                ViolationCode.CONVERSION_ERROR,
                "Unable to read player positions",
                []
            )
        except Exception as e:
            logger.warning(f"Lineup could not be built from rotation map: {e}")
            return self._error_result(
                ViolationCode.INVALID_LINEUP,
                "Invalid lineup: rotation map could not be read",
                []
            )

        try:
            result = self.engine.validate_lineup(states)
            violations = [
                ViolationData(
                    code=v.code.value,
                    message=v.message,
                    affected_players=[rotation_map[s] for s in v.slots if s in rotation_map],
                    severity=_severity(v.code),
                )
                for v in result.violations
            ]

            for slot in find_out_of_bounds(states):
                violations.append(ViolationData(
                    code="OUT_OF_BOUNDS",
                    message=f"{rotation_map[slot]} is positioned outside the court",
                    affected_players=[rotation_map[slot]],
                    severity=Severity.WARNING,
                ))

            return ScreenValidationResult(is_valid=result.is_legal, violations=violations)
        except Exception as e:
            logger.warning(f"Error validating lineup: {e}")
            return self._error_result(
                ViolationCode.VALIDATION_ERROR,
                "Unable to validate lineup due to internal error",
                []
            )

    def validate_player_position(self, context: PositionValidationContext) -> ScreenValidationResult:
        """Validate one dragged player; memoised per exact context."""
        if not self.config.enable_real_time_validation:
            return ScreenValidationResult(is_valid=True)

        try:
            key = _context_key(context)
            cached = self._validation_cache.get(key)
            if cached is not None:
                return cached

            candidate = self.converter.player_position_to_court(context.current_position)
            positions = {**context.all_positions, context.player_id: context.current_position}
            states = self.converter.formation_to_states(
                positions, context.rotation_map, self.config.server_slot
            )
            is_server = self._is_server(context)

            is_valid = self.engine.is_valid_position(context.slot, candidate, states, is_server)

            violations = []
            boundaries = None
            snapped = None
            if not is_valid:
                lineup = self.engine.validate_lineup(states)
                violations = [
                    ViolationData(
                        code=v.code.value,
                        message=v.message,
                        affected_players=[context.player_id],
                        severity=Severity.ERROR,
                    )
                    for v in lineup.violations
                    if context.slot in v.slots
                ]
                if self.config.enable_constraint_boundaries:
                    boundaries = self.calculate_constraint_boundaries(context)
                if self.config.enable_position_snapping:
                    snapped = self.snap_to_valid_position(context)

            result = ScreenValidationResult(
                is_valid=is_valid,
                violations=violations,
                constraint_boundaries=boundaries,
                snapped_position=snapped,
            )
            self._validation_cache.put(key, result)
            return result
        except Exception as e:
            logger.warning(f"Error validating player position: {e}")
            return self._error_result(
                ViolationCode.VALIDATION_ERROR,
                "Unable to validate position due to internal error",
                [context.player_id]
            )

    # ------------------------------------------------------------------
    # Constraints and snapping
    # ------------------------------------------------------------------

    def court_constraints(self, context: PositionValidationContext) -> PositionBounds:
        """Constraint rectangle in court meters (cached by the calculator)."""
        states = self.converter.formation_to_states(
            context.all_positions, context.rotation_map, self.config.server_slot
        )
        return self.calculator.calculate_optimized_constraints(
            context.slot, create_slot_map(states), self._is_server(context)
        )

    def _is_server(self, context: PositionValidationContext) -> bool:
        return context.is_server or context.slot == self.config.server_slot

    def calculate_constraint_boundaries(self, context: PositionValidationContext) -> ConstraintBoundaries:
        """Guide lines and valid area in screen pixels; empty on error."""
        try:
            key = _boundary_key(context)
            cached = self._boundary_cache.get(key)
            if cached is not None:
                return cached

            full = EXTENDED_BOUNDS if self._is_server(context) else COURT_BOUNDS
            boundaries = self._to_screen_boundaries(self.court_constraints(context), full)
            self._boundary_cache.put(key, boundaries)
            return boundaries
        except Exception as e:
            logger.warning(f"Error calculating constraint boundaries: {e}")
            return ConstraintBoundaries()

    def snap_to_valid_position(self, context: PositionValidationContext) -> ScreenPosition:
        """Nearest legal position in pixels; the current position on error."""
        try:
            candidate = self.converter.player_position_to_court(context.current_position)
            states = self.converter.formation_to_states(
                context.all_positions, context.rotation_map, self.config.server_slot
            )
            snapped = self.engine.snap_to_valid_position(
                context.slot, candidate, states, context.is_server or None
            )
            return self.converter.court_to_player_position(snapped, is_custom=True)
        except Exception as e:
            logger.warning(f"Error snapping to valid position: {e}")
            return context.current_position

    def get_drag_constraints(
        self,
        player_id: str,
        slot: int,
        positions: Mapping[str, ScreenPosition],
        rotation_map: Mapping[int, str],
        is_server: bool = False
    ) -> Optional[CoordinateBounds]:
        """Drag clamp rectangle in pixels, None when it cannot be computed."""
        try:
            context = PositionValidationContext(
                player_id=player_id,
                slot=slot,
                current_position=positions[player_id],
                all_positions=dict(positions),
                rotation_map=dict(rotation_map),
                is_server=is_server,
            )
            boundaries = self.calculate_constraint_boundaries(context)
            if boundaries.valid_area is None:
                return None
            return boundaries.valid_area
        except Exception as e:
            logger.warning(f"Error getting drag constraints: {e}")
            return None

    def _to_screen_boundaries(self, bounds: PositionBounds, full: CoordinateBounds) -> ConstraintBoundaries:
        """Screen guide lines for every edge that is narrower than `full`."""
        area = self.transformer.court_bounds_to_screen(bounds)
        valid_area = CoordinateBounds(
            min_x=max(0.0, area.min_x),
            max_x=min(self.config.court_dimensions.width, area.max_x),
            min_y=max(0.0, area.min_y),
            max_y=area.max_y,
        )
        if not bounds.is_constrained:
            return ConstraintBoundaries(valid_area=valid_area)

        horizontal, vertical = [], []
        if bounds.min_y > full.min_y:
            horizontal.append(ConstraintLine(
                position=area.min_y, type="min", reason="Minimum Y position constraint"))
        if bounds.max_y < full.max_y:
            horizontal.append(ConstraintLine(
                position=area.max_y, type="max", reason="Maximum Y position constraint"))
        if bounds.min_x > full.min_x:
            vertical.append(ConstraintLine(
                position=area.min_x, type="min", reason="Minimum X position constraint"))
        if bounds.max_x < full.max_x:
            vertical.append(ConstraintLine(
                position=area.max_x, type="max", reason="Maximum X position constraint"))

        return ConstraintBoundaries(
            horizontal_lines=horizontal,
            vertical_lines=vertical,
            valid_area=valid_area,
        )

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def clear_cache(self) -> None:
        self._validation_cache.clear()
        self._boundary_cache.clear()
        self.calculator.clear_cache()

    def performance_metrics(self) -> Dict:
        return {
            "validation_cache_size": len(self._validation_cache),
            "constraint_cache_size": len(self._boundary_cache),
            "rules_engine_metrics": self.calculator.performance_metrics(),
        }

    @staticmethod
    def _error_result(code: ViolationCode, message: str, players) -> ScreenValidationResult:
        return ScreenValidationResult(
            is_valid=False,
            violations=[ViolationData(
                code=code.value,
                message=message,
                affected_players=list(players),
                severity=Severity.ERROR,
            )]
        )


def _severity(code: ViolationCode) -> Severity:
    if code in (ViolationCode.ROW_ORDER, ViolationCode.FRONT_BACK):
        return Severity.WARNING
    return Severity.ERROR


def _context_key(context: PositionValidationContext) -> Tuple:
    return (
        context.player_id,
        context.slot,
        context.current_position.x,
        context.current_position.y,
        context.is_server,
        tuple(sorted(context.rotation_map.items())),
        _others_key(context),
    )


def _boundary_key(context: PositionValidationContext) -> Tuple:
    return (
        context.slot,
        context.is_server,
        tuple(sorted(context.rotation_map.items())),
        _others_key(context),
    )


def _others_key(context: PositionValidationContext) -> Tuple:
    return tuple(sorted(
        (player_id, pos.x, pos.y)
        for player_id, pos in context.all_positions.items()
        if player_id != context.player_id
    ))
