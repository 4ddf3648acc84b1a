"""Find-or-create for the vehicle and equipment catalogs.

An incoming spec either describes an existing catalog config (within the
fuzzy tolerances) or a new one. Identity rows are looked up by exact natural
key; their configs are then compared field by field:

- vehicle: wheelbase, body style, drive type, GVWR, curb weight (percentage),
  overall dimensions, series
- equipment: length, width, height, weight, product line

A field present on only one side is skipped, except wheelbase and equipment
length, where a one-sided value is a non-match. Candidates are scanned
newest first and the first matching config wins.
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass
from datetime import date
from typing import Any

from commercialx.core.enums import DEFAULT_NEW_ENTRY_CONFIDENCE, DataSource, source_reliability
from commercialx.core.exceptions import ValidationFailure
from commercialx.core.logging import log_error, log_resolution
from commercialx.models.equipment import Equipment, EquipmentConfig, EquipmentSpec
from commercialx.models.vehicle import Vehicle, VehicleConfig, VehicleSpec
from commercialx.services.catalog_store import (
    EQUIPMENT,
    EQUIPMENT_CONFIG,
    VEHICLE,
    VEHICLE_CONFIG,
    CatalogStore,
    fetch_by_id,
)
from commercialx.services.enrichment import normalize_drive_type
from commercialx.services.fuzzy_match import (
    FuzzyMatchConfig,
    numbers_match,
    optional_exact_match,
    optional_numbers_match,
    optional_numbers_match_percentage,
    optional_strings_match,
)
from commercialx.services.quality import equipment_confidence, vehicle_confidence
from commercialx.utils.converters import is_populated

logger = logging.getLogger(__name__)

CANDIDATE_LIMIT = 10
MIN_MODEL_YEAR = 1900
VEHICLE_DIMENSIONS = ("length_inches", "width_inches", "height_inches")


@dataclass
class FindOrCreateResult:
    entity_id: int
    config_id: int
    created: bool
    # Additional configs that also matched; first match still wins
    competing_matches: int = 0


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------


def validate_vehicle_spec(spec: VehicleSpec) -> None:
    missing = spec.missing_identity_fields()
    if missing:
        raise ValidationFailure(
            f"Missing required vehicle fields: {', '.join(missing)}", missing
        )
    max_year = date.today().year + 2
    if not MIN_MODEL_YEAR <= spec.year <= max_year:
        raise ValidationFailure(
            f"Vehicle year must be between {MIN_MODEL_YEAR} and {max_year}", ["year"]
        )


def validate_equipment_spec(spec: EquipmentSpec) -> None:
    missing = spec.missing_identity_fields()
    if missing:
        raise ValidationFailure(
            f"Missing required equipment fields: {', '.join(missing)}", missing
        )


def vehicle_identity(spec: VehicleSpec) -> dict[str, Any]:
    """Exact natural key of a vehicle row, as stored."""
    return {"year": spec.year, "make_name": spec.make, "model_name": spec.model}


def equipment_identity(spec: EquipmentSpec) -> dict[str, Any]:
    identity: dict[str, Any] = {
        "manufacturer": spec.manufacturer,
        "equipment_type": spec.equipment_type,
    }
    if spec.product_line:
        identity["product_line"] = spec.product_line
    return identity


# -----------------------------------------------------------------------------
# Matching
# -----------------------------------------------------------------------------


def _required_numbers_match(
    a: float | None, b: float | None, tolerance: float
) -> bool:
    """Both absent passes; exactly one present fails."""
    if a is None and b is None:
        return True
    return numbers_match(a, b, tolerance)


def vehicle_config_matches(
    spec: VehicleSpec,
    vehicle: Vehicle,
    config: VehicleConfig,
    match_config: FuzzyMatchConfig,
) -> bool:
    tolerances = match_config.vehicle
    return (
        _required_numbers_match(
            spec.wheelbase_inches,
            config.wheelbase_inches,
            tolerances.wheelbase_tolerance_inches,
        )
        and optional_exact_match(spec.body_style, config.body_style)
        and optional_exact_match(
            normalize_drive_type(spec.drive_type), normalize_drive_type(config.drive_type)
        )
        and optional_numbers_match(spec.gvwr, config.gvwr, tolerances.gvwr_tolerance_lbs)
        and optional_numbers_match_percentage(
            spec.base_curb_weight_lbs,
            config.base_curb_weight_lbs,
            tolerances.weight_tolerance_percentage,
        )
        and all(
            optional_numbers_match(
                getattr(spec, dimension),
                getattr(config, dimension),
                tolerances.dimension_tolerance_inches,
            )
            for dimension in VEHICLE_DIMENSIONS
        )
        and optional_strings_match(spec.series, vehicle.series, match_config.strings)
    )


def equipment_config_matches(
    spec: EquipmentSpec,
    equipment: Equipment,
    config: EquipmentConfig,
    match_config: FuzzyMatchConfig,
) -> bool:
    tolerances = match_config.equipment
    return (
        _required_numbers_match(
            spec.length_inches, config.length_inches, tolerances.length_tolerance_inches
        )
        and optional_numbers_match(
            spec.width_inches, config.width_inches, tolerances.width_tolerance_inches
        )
        and optional_numbers_match(
            spec.height_inches, config.height_inches, tolerances.height_tolerance_inches
        )
        and optional_numbers_match(
            spec.weight_lbs, config.weight_lbs, tolerances.weight_tolerance_lbs
        )
        and optional_strings_match(
            spec.product_line, equipment.product_line, match_config.strings
        )
    )


# -----------------------------------------------------------------------------
# Resolver
# -----------------------------------------------------------------------------


class CatalogResolver:
    """Find-or-create for vehicles and equipment against a CatalogStore.

    Calls for the same natural key are serialised by an in-process lock;
    different keys proceed concurrently.
    """

    def __init__(
        self, store: CatalogStore, match_config: FuzzyMatchConfig | None = None
    ) -> None:
        self.store = store
        self.match_config = match_config or FuzzyMatchConfig()
        self._locks: weakref.WeakValueDictionary[tuple, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, key: tuple) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    # -- vehicles -------------------------------------------------------------

    async def find_or_create_vehicle(
        self, spec: VehicleSpec, dealer_id: int | None = None
    ) -> FindOrCreateResult:
        """Return the matching vehicle config, creating one if none matches.

        Raises ValidationFailure (before any store call) when year, make or
        model is missing or the year is out of range.
        """
        validate_vehicle_spec(spec)
        identity = vehicle_identity(spec)
        async with self._lock_for((VEHICLE, *identity.values())):
            result = await self._find_or_create_vehicle(spec, dealer_id)
        log_resolution(
            "vehicle",
            result.entity_id,
            result.config_id,
            result.created,
            result.competing_matches,
        )
        return result

    async def _find_or_create_vehicle(
        self, spec: VehicleSpec, dealer_id: int | None
    ) -> FindOrCreateResult:
        rows = await self.store.select(
            VEHICLE,
            vehicle_identity(spec),
            order_by=("created_at", "id"),
            descending=True,
            limit=CANDIDATE_LIMIT,
        )
        candidates = [Vehicle(**row) for row in rows]

        match: FindOrCreateResult | None = None
        competing = 0
        for vehicle in candidates:
            config_rows = await self.store.select(
                VEHICLE_CONFIG, {"vehicle_id": vehicle.id}, order_by=("id",)
            )
            for row in config_rows:
                config = VehicleConfig(**row)
                if not vehicle_config_matches(spec, vehicle, config, self.match_config):
                    continue
                if match is None:
                    match = FindOrCreateResult(vehicle.id, config.id, created=False)
                else:
                    competing += 1

        if match is not None:
            if competing:
                logger.warning(
                    "Vehicle %s %s %s matched %d additional configs; using config %s",
                    spec.year,
                    spec.make,
                    spec.model,
                    competing,
                    match.config_id,
                )
            match.competing_matches = competing
            return match

        config_fields = spec.config_fields()
        config_fields["drive_type"] = normalize_drive_type(spec.drive_type)

        # Same identity already catalogued: add a config rather than a duplicate vehicle
        parent = next(
            (
                v
                for v in candidates
                if optional_strings_match(spec.series, v.series, self.match_config.strings)
            ),
            None,
        )
        if parent is not None:
            config_row = await self.store.insert(
                VEHICLE_CONFIG,
                {
                    "vehicle_id": parent.id,
                    **config_fields,
                    "data_source": spec.data_source.value,
                },
            )
            logger.info(
                "Attached vehicle config %s to existing vehicle %s",
                config_row["id"],
                parent.id,
            )
            await self._update_vehicle_confidence(parent, VehicleConfig(**config_row))
            return FindOrCreateResult(parent.id, config_row["id"], created=True)

        vehicle_row = await self.store.insert(
            VEHICLE,
            {
                "year": spec.year,
                "make_name": spec.make,
                "model_name": spec.model,
                "series": spec.series,
                "data_source": spec.data_source.value,
                "created_by_dealer_id": dealer_id,
                "needs_verification": True,
                "confidence_score": DEFAULT_NEW_ENTRY_CONFIDENCE,
            },
        )
        config_row = await self.store.insert(
            VEHICLE_CONFIG,
            {
                "vehicle_id": vehicle_row["id"],
                **config_fields,
                "data_source": spec.data_source.value,
            },
        )
        logger.info(
            "Created vehicle %s (%s %s %s) with config %s",
            vehicle_row["id"],
            spec.year,
            spec.make,
            spec.model,
            config_row["id"],
        )

        await self._update_vehicle_confidence(
            Vehicle(**vehicle_row), VehicleConfig(**config_row)
        )
        return FindOrCreateResult(vehicle_row["id"], config_row["id"], created=True)

    async def _update_vehicle_confidence(
        self, vehicle: Vehicle, config: VehicleConfig
    ) -> None:
        score = round(vehicle_confidence(vehicle, config), 4)
        try:
            await self.store.update(VEHICLE, vehicle.id, {"confidence_score": score})
        except Exception as e:
            # Entity already exists with the default confidence; nothing to undo
            log_error("Failed to update vehicle confidence", e, vehicle_id=vehicle.id)

    async def enrich_vehicle_config(
        self, config_id: int, spec: VehicleSpec
    ) -> VehicleConfig:
        """Merge newer spec data into an existing config.

        Missing fields are always filled. Populated fields are overwritten
        only when the parent vehicle is unverified and ``spec`` comes from a
        more reliable source than the config. Raises NotFoundError.
        """
        config = VehicleConfig(**await fetch_by_id(self.store, VEHICLE_CONFIG, config_id))
        vehicle = Vehicle(**await fetch_by_id(self.store, VEHICLE, config.vehicle_id))

        incoming = spec.data_source
        current = DataSource.from_string(config.data_source)
        can_overwrite = not vehicle.is_verified and source_reliability(
            incoming
        ) > source_reliability(current)

        incoming_fields = spec.config_fields()
        incoming_fields["drive_type"] = normalize_drive_type(spec.drive_type)

        changes: dict[str, Any] = {}
        for field_name, value in incoming_fields.items():
            if not is_populated(value):
                continue
            existing = getattr(config, field_name)
            if not is_populated(existing) or (can_overwrite and existing != value):
                changes[field_name] = value

        if not changes:
            return config

        if can_overwrite:
            changes["data_source"] = incoming.value

        row = await self.store.update(VEHICLE_CONFIG, config_id, changes)
        updated = VehicleConfig(**row) if row else config.model_copy(update=changes)
        logger.info(
            "Enriched vehicle config %s: %s", config_id, ", ".join(sorted(changes))
        )

        await self._update_vehicle_confidence(vehicle, updated)
        return updated

    # -- equipment ------------------------------------------------------------

    async def find_or_create_equipment(
        self, spec: EquipmentSpec, dealer_id: int | None = None
    ) -> FindOrCreateResult:
        """Equipment counterpart of ``find_or_create_vehicle``."""
        validate_equipment_spec(spec)
        # Product line is left out: a lookup without one sees every line
        async with self._lock_for((EQUIPMENT, spec.manufacturer, spec.equipment_type)):
            result = await self._find_or_create_equipment(spec, dealer_id)
        log_resolution(
            "equipment",
            result.entity_id,
            result.config_id,
            result.created,
            result.competing_matches,
        )
        return result

    async def _find_or_create_equipment(
        self, spec: EquipmentSpec, dealer_id: int | None
    ) -> FindOrCreateResult:
        rows = await self.store.select(
            EQUIPMENT,
            equipment_identity(spec),
            order_by=("created_at", "id"),
            descending=True,
            limit=CANDIDATE_LIMIT,
        )
        candidates = [Equipment(**row) for row in rows]

        match: FindOrCreateResult | None = None
        competing = 0
        for equipment in candidates:
            config_rows = await self.store.select(
                EQUIPMENT_CONFIG, {"equipment_id": equipment.id}, order_by=("id",)
            )
            for row in config_rows:
                config = EquipmentConfig(**row)
                if not equipment_config_matches(
                    spec, equipment, config, self.match_config
                ):
                    continue
                if match is None:
                    match = FindOrCreateResult(equipment.id, config.id, created=False)
                else:
                    competing += 1

        if match is not None:
            if competing:
                logger.warning(
                    "Equipment %s %s matched %d additional configs; using config %s",
                    spec.manufacturer,
                    spec.equipment_type,
                    competing,
                    match.config_id,
                )
            match.competing_matches = competing
            return match

        parent = next(
            (
                e
                for e in candidates
                if optional_strings_match(
                    spec.product_line, e.product_line, self.match_config.strings
                )
            ),
            None,
        )
        if parent is not None:
            config_row = await self.store.insert(
                EQUIPMENT_CONFIG, {"equipment_id": parent.id, **spec.config_fields()}
            )
            logger.info(
                "Attached equipment config %s to existing equipment %s",
                config_row["id"],
                parent.id,
            )
            await self._update_equipment_confidence(parent, EquipmentConfig(**config_row))
            return FindOrCreateResult(parent.id, config_row["id"], created=True)

        equipment_row = await self.store.insert(
            EQUIPMENT,
            {
                "manufacturer": spec.manufacturer,
                "product_line": spec.product_line,
                "equipment_type": spec.equipment_type,
                "data_source": spec.data_source.value,
                "created_by_dealer_id": dealer_id,
                "needs_verification": True,
                "confidence_score": DEFAULT_NEW_ENTRY_CONFIDENCE,
            },
        )
        config_row = await self.store.insert(
            EQUIPMENT_CONFIG,
            {"equipment_id": equipment_row["id"], **spec.config_fields()},
        )
        logger.info(
            "Created equipment %s (%s %s) with config %s",
            equipment_row["id"],
            spec.manufacturer,
            spec.equipment_type,
            config_row["id"],
        )

        await self._update_equipment_confidence(
            Equipment(**equipment_row), EquipmentConfig(**config_row)
        )
        return FindOrCreateResult(equipment_row["id"], config_row["id"], created=True)

    async def _update_equipment_confidence(
        self, equipment: Equipment, config: EquipmentConfig
    ) -> None:
        score = round(equipment_confidence(equipment, config), 4)
        try:
            await self.store.update(EQUIPMENT, equipment.id, {"confidence_score": score})
        except Exception as e:
            log_error("Failed to update equipment confidence", e, equipment_id=equipment.id)
