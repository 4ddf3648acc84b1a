"""Enums for catalog and compliance constants."""

from enum import Enum


class DataSource(str, Enum):
    """Provenance of a catalog entry or vehicle spec."""

    VIN_DECODE_BOTH = "vin_decode_both"
    VIN_DECODE_NHTSA = "vin_decode_nhtsa"
    VIN_DECODE_EPA = "vin_decode_epa"
    OEM_API = "oem_api"
    ADMIN_CURATED = "admin_curated"
    DEALER_INPUT = "dealer_input"
    MANUAL_ENTRY = "manual_entry"
    UNKNOWN = "unknown"

    @classmethod
    def from_string(cls, value: "str | DataSource | None") -> "DataSource":
        """Convert a stored provenance tag to the enum.

        A missing tag means nobody recorded where the data came from, which is
        treated as manual entry. Any unrecognised tag maps to UNKNOWN.
        """
        if isinstance(value, DataSource):
            return value
        if not value:
            return cls.MANUAL_ENTRY
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN

    @property
    def has_registry_decode(self) -> bool:
        return self in (
            DataSource.VIN_DECODE_BOTH,
            DataSource.VIN_DECODE_NHTSA,
            DataSource.VIN_DECODE_EPA,
        )

    @property
    def has_fuel_economy_data(self) -> bool:
        return self in (DataSource.VIN_DECODE_BOTH, DataSource.VIN_DECODE_EPA)


def source_reliability(source: DataSource) -> float:
    """Reliability constant for a provenance kind, in [0.4, 1.0]."""
    if source is DataSource.VIN_DECODE_BOTH:
        return 1.0
    if source is DataSource.ADMIN_CURATED:
        return 0.95
    if source is DataSource.OEM_API:
        return 0.9
    if source is DataSource.VIN_DECODE_NHTSA:
        return 0.8
    if source is DataSource.VIN_DECODE_EPA:
        return 0.7
    if source is DataSource.DEALER_INPUT:
        return 0.6
    if source is DataSource.MANUAL_ENTRY:
        return 0.4
    return 0.5


class RegistryConfidence(str, Enum):
    """Confidence in a registry (VIN) decode, from critical-field coverage."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CompatibilityStatus(str, Enum):
    """Overall verdict for a chassis + equipment pairing."""

    COMPATIBLE = "compatible"
    REQUIRES_MODIFICATION = "requires_modification"
    NOT_COMPATIBLE = "not_compatible"


class CompatibilityConfidence(str, Enum):
    """How the compatibility verdict was obtained.

    VERIFIED is reserved for manual sign-off and never produced by the
    calculator.
    """

    VERIFIED = "verified"
    CALCULATED = "calculated"
    ESTIMATED = "estimated"


class ListingStep(str, Enum):
    """Ordered steps of listing creation."""

    RESOLVE_VEHICLE = "resolve_vehicle"
    RESOLVE_EQUIPMENT = "resolve_equipment"
    ENSURE_COMPATIBILITY_RECORD = "ensure_compatibility_record"
    CREATE_COMPLETE_CONFIGURATION = "create_complete_configuration"
    CREATE_LISTING_RECORD = "create_listing_record"


class ListingStatus(str, Enum):
    DRAFT = "draft"
    AVAILABLE = "available"
    PENDING = "pending"
    SOLD = "sold"
    ARCHIVED = "archived"


class ListingCondition(str, Enum):
    NEW = "new"
    USED = "used"
    CERTIFIED_PRE_OWNED = "certified_pre_owned"
    DEMO = "demo"


class ConfigurationType(str, Enum):
    STOCK_UNIT = "stock_unit"
    CUSTOM_BUILD = "custom_build"
    SPEC_UNIT = "spec_unit"


# Default axle load split for commercial chassis (front, rear)
DEFAULT_FRONT_AXLE_SHARE = 0.4
DEFAULT_REAR_AXLE_SHARE = 0.6

# Cab-to-axle is roughly this fraction of wheelbase
CAB_TO_AXLE_WHEELBASE_RATIO = 0.6

# Confidence assigned to a catalog entry created from dealer input
DEFAULT_NEW_ENTRY_CONFIDENCE = 0.7
