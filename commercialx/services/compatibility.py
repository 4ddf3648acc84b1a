"""Weight distribution, GVWR/GAWR compliance and physical fit.

Pure computation over a vehicle config and an optional equipment config.
Missing data never fails a check outright: an unverifiable check is treated
as compliant and reported as a warning instead.
"""

import math

from commercialx.core.enums import (
    CAB_TO_AXLE_WHEELBASE_RATIO,
    DEFAULT_FRONT_AXLE_SHARE,
    DEFAULT_REAR_AXLE_SHARE,
    CompatibilityConfidence,
    CompatibilityStatus,
)
from commercialx.models.compatibility import CompatibilityCalculation
from commercialx.models.equipment import EquipmentConfigFields
from commercialx.models.vehicle import VehicleConfigFields
from commercialx.services.fuzzy_match import FuzzyMatchConfig


def _lbs(value: float) -> str:
    """Format a weight for warning text: 9500.0 -> '9,500'."""
    if not math.isfinite(value):
        return str(value)
    if value == int(value):
        return f"{int(value):,}"
    return f"{value:,.1f}"


def _axle_shares(equipment: EquipmentConfigFields | None) -> tuple[float, float]:
    if equipment is None:
        return DEFAULT_FRONT_AXLE_SHARE, DEFAULT_REAR_AXLE_SHARE
    front = equipment.front_axle_weight_distribution_percentage or DEFAULT_FRONT_AXLE_SHARE
    rear = equipment.rear_axle_weight_distribution_percentage or DEFAULT_REAR_AXLE_SHARE
    return front, rear


def cab_to_axle_fits(
    vehicle: VehicleConfigFields, equipment: EquipmentConfigFields | None
) -> bool:
    """Estimated cab-to-axle (wheelbase * 0.6) against the body's minimum."""
    if equipment is None or not equipment.minimum_cab_to_axle_inches:
        return True
    if not vehicle.wheelbase_inches:
        return True
    estimated = vehicle.wheelbase_inches * CAB_TO_AXLE_WHEELBASE_RATIO
    return estimated >= equipment.minimum_cab_to_axle_inches


def wheelbase_fits(
    vehicle: VehicleConfigFields, equipment: EquipmentConfigFields | None
) -> bool:
    if equipment is None:
        return True
    low = equipment.minimum_wheelbase_inches
    high = equipment.maximum_wheelbase_inches
    if not low and not high:
        return True
    wheelbase = vehicle.wheelbase_inches
    if not wheelbase:
        return True
    if low and wheelbase < low:
        return False
    if high and wheelbase > high:
        return False
    return True


def determine_confidence(
    vehicle: VehicleConfigFields, equipment: EquipmentConfigFields | None
) -> CompatibilityConfidence:
    """CALCULATED or ESTIMATED; VERIFIED only comes from manual sign-off."""
    equipment_weight = equipment.weight_lbs if equipment else None

    if vehicle.gawr_front_lbs and vehicle.gawr_rear_lbs and equipment_weight:
        if equipment.has_weight_distribution:
            return CompatibilityConfidence.CALCULATED
        return CompatibilityConfidence.ESTIMATED

    if vehicle.gvwr and vehicle.base_curb_weight_lbs and equipment_weight:
        return CompatibilityConfidence.CALCULATED

    return CompatibilityConfidence.ESTIMATED


class CompatibilityCalculator:
    """Computes a CompatibilityCalculation for a chassis + optional body.

    Stateless apart from the injected tolerance table; ``calculate`` is
    deterministic and safe to re-run whenever either config changes.
    """

    def __init__(self, match_config: FuzzyMatchConfig | None = None) -> None:
        self.match_config = match_config or FuzzyMatchConfig()

    def calculate(
        self,
        vehicle: VehicleConfigFields,
        equipment: EquipmentConfigFields | None = None,
    ) -> CompatibilityCalculation:
        warnings: list[str] = []

        # 1. Weights
        chassis_weight = vehicle.base_curb_weight_lbs or 0.0
        equipment_weight = (equipment.weight_lbs if equipment else None) or 0.0
        total = chassis_weight + equipment_weight

        # 2. Axle loads
        front_share, rear_share = _axle_shares(equipment)
        front_load = (
            chassis_weight * DEFAULT_FRONT_AXLE_SHARE + equipment_weight * front_share
        )
        rear_load = chassis_weight * DEFAULT_REAR_AXLE_SHARE + equipment_weight * rear_share

        # 3. GVWR
        gvwr = vehicle.gvwr
        gvwr_compliant = True
        if gvwr and gvwr > 0:
            gvwr_compliant = total <= gvwr
            if not gvwr_compliant:
                warnings.append(
                    f"Total weight ({_lbs(total)} lbs) exceeds GVWR ({_lbs(gvwr)} lbs) "
                    f"by {_lbs(total - gvwr)} lbs"
                )
        else:
            warnings.append("GVWR not available - cannot verify compliance")

        # 4. GAWR
        gawr_front_compliant = True
        gawr_rear_compliant = True
        gawr_front = vehicle.gawr_front_lbs
        gawr_rear = vehicle.gawr_rear_lbs
        if gawr_front and gawr_rear:
            gawr_front_compliant = front_load <= gawr_front
            gawr_rear_compliant = rear_load <= gawr_rear
            if not gawr_front_compliant:
                warnings.append(
                    f"Front axle weight ({_lbs(front_load)} lbs) exceeds GAWR front "
                    f"({_lbs(gawr_front)} lbs) by {_lbs(front_load - gawr_front)} lbs"
                )
            if not gawr_rear_compliant:
                warnings.append(
                    f"Rear axle weight ({_lbs(rear_load)} lbs) exceeds GAWR rear "
                    f"({_lbs(gawr_rear)} lbs) by {_lbs(rear_load - gawr_rear)} lbs"
                )
        elif equipment_weight > 0:
            warnings.append(
                "GAWR data not available - cannot verify axle weight compliance"
            )

        # 5. Payload
        payload_remaining = max(0.0, gvwr - total) if gvwr and gvwr > 0 else 0.0

        # 6. Physical fit
        cab_to_axle_ok = cab_to_axle_fits(vehicle, equipment)
        wheelbase_ok = wheelbase_fits(vehicle, equipment)
        if not cab_to_axle_ok:
            warnings.append("Cab-to-axle measurement may require frame extension")
        if not wheelbase_ok:
            warnings.append("Wheelbase outside equipment compatibility range")
        warnings.extend(self.check_gvwr_range(vehicle, equipment))

        # 7. Verdict
        if not gvwr_compliant:
            status = CompatibilityStatus.NOT_COMPATIBLE
        elif not (
            gawr_front_compliant and gawr_rear_compliant and cab_to_axle_ok and wheelbase_ok
        ):
            status = CompatibilityStatus.REQUIRES_MODIFICATION
        else:
            status = CompatibilityStatus.COMPATIBLE

        return CompatibilityCalculation(
            chassis_base_weight=chassis_weight,
            equipment_weight=equipment_weight,
            total_combined_weight=total,
            front_axle_weight=front_load,
            rear_axle_weight=rear_load,
            gvwr_compliant=gvwr_compliant,
            gawr_front_compliant=gawr_front_compliant,
            gawr_rear_compliant=gawr_rear_compliant,
            payload_remaining=payload_remaining,
            cab_to_axle_compatible=cab_to_axle_ok,
            wheelbase_compatible=wheelbase_ok,
            status=status,
            confidence=determine_confidence(vehicle, equipment),
            warnings=warnings,
        )

    def check_gvwr_range(
        self, vehicle: VehicleConfigFields, equipment: EquipmentConfigFields | None
    ) -> list[str]:
        """Warnings when the chassis GVWR falls outside the body's declared window.

        Bounds within the GVWR match tolerance are accepted. Advisory only:
        these warnings do not change the status.
        """
        if equipment is None or not vehicle.gvwr:
            return []

        tolerance = self.match_config.vehicle.gvwr_tolerance_lbs
        gvwr = vehicle.gvwr
        warnings = []
        if equipment.compatible_gvwr_min and gvwr < equipment.compatible_gvwr_min - tolerance:
            warnings.append(
                f"GVWR ({_lbs(gvwr)} lbs) is below equipment minimum "
                f"({_lbs(equipment.compatible_gvwr_min)} lbs)"
            )
        if equipment.compatible_gvwr_max and gvwr > equipment.compatible_gvwr_max + tolerance:
            warnings.append(
                f"GVWR ({_lbs(gvwr)} lbs) is above equipment maximum "
                f"({_lbs(equipment.compatible_gvwr_max)} lbs)"
            )
        return warnings
