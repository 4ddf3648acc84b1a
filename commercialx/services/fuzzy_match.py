"""Tolerance-based equality for catalog matching.

Numeric fields match within an absolute or percentage tolerance; text fields
match on normalized Levenshtein similarity. All functions are pure and never
raise: absent values simply fail to match.
"""

from dataclasses import dataclass, field

from rapidfuzz.distance import Levenshtein

DEFAULT_SIMILARITY_THRESHOLD = 0.85


@dataclass(frozen=True)
class VehicleTolerances:
    wheelbase_tolerance_inches: float = 1.0  # commercial wheelbase specs are precise
    gvwr_tolerance_lbs: float = 100.0
    weight_tolerance_percentage: float = 0.05
    dimension_tolerance_inches: float = 2.0


@dataclass(frozen=True)
class EquipmentTolerances:
    length_tolerance_inches: float = 6.0
    width_tolerance_inches: float = 6.0
    height_tolerance_inches: float = 6.0
    weight_tolerance_lbs: float = 100.0


@dataclass(frozen=True)
class StringMatching:
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    case_sensitive: bool = False


@dataclass(frozen=True)
class FuzzyMatchConfig:
    """Immutable tolerance table injected into the resolver and calculator."""

    vehicle: VehicleTolerances = field(default_factory=VehicleTolerances)
    equipment: EquipmentTolerances = field(default_factory=EquipmentTolerances)
    strings: StringMatching = field(default_factory=StringMatching)


def numbers_match(a: float | None, b: float | None, tolerance: float) -> bool:
    """True iff both values are present and ``|a - b| <= tolerance``."""
    if a is None or b is None:
        return False
    return abs(a - b) <= tolerance


def numbers_match_percentage(
    a: float | None, b: float | None, tolerance_percentage: float
) -> bool:
    """Match within ``tolerance_percentage`` of the larger magnitude."""
    if a is None or b is None:
        return False
    if a == 0 and b == 0:
        return True
    tolerance = max(abs(a), abs(b)) * tolerance_percentage
    return abs(a - b) <= tolerance


def string_similarity(
    a: str | None, b: str | None, case_sensitive: bool = False
) -> float:
    """Levenshtein similarity in [0, 1]; 1.0 for identical, 0.0 if either is empty."""
    if not a or not b:
        return 0.0

    s1 = a.strip()
    s2 = b.strip()
    if not case_sensitive:
        s1 = s1.lower()
        s2 = s2.lower()

    if s1 == s2:
        return 1.0

    max_len = max(len(s1), len(s2))
    if max_len == 0:
        return 1.0

    return 1.0 - Levenshtein.distance(s1, s2) / max_len


def strings_match(
    a: str | None,
    b: str | None,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    case_sensitive: bool = False,
) -> bool:
    if not a or not b:
        return False
    return string_similarity(a, b, case_sensitive) >= threshold


# -----------------------------------------------------------------------------
# Optional-field helpers
#
# Used for fields where a value on only one side says nothing about whether
# the two records describe the same thing. The field is skipped (treated as
# matching) unless both sides carry a value.
# -----------------------------------------------------------------------------


def optional_numbers_match(
    a: float | None, b: float | None, tolerance: float
) -> bool:
    if a is None or b is None:
        return True
    return numbers_match(a, b, tolerance)


def optional_strings_match(
    a: str | None, b: str | None, strings: StringMatching = StringMatching()
) -> bool:
    if not a or not b:
        return True
    return strings_match(a, b, strings.similarity_threshold, strings.case_sensitive)


def optional_exact_match(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return True
    return a == b


def optional_numbers_match_percentage(
    a: float | None, b: float | None, tolerance_percentage: float
) -> bool:
    if a is None or b is None:
        return True
    return numbers_match_percentage(a, b, tolerance_percentage)
