"""
Constant tables for fitplan.

Weekday and meal-type orderings, measurement metrics and the default
delta windows used by the progress engine.  These never change at runtime;
values that users may tune are read through engine.config_loader instead.
"""

from typing import Final

# =============================================================================
# CALENDAR
# =============================================================================

# Monday-first civil week; index == datetime.date.weekday()
WEEKDAYS: Final[tuple[str, ...]] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

DAYS_PER_WEEK: Final[int] = 7

# nextTrainingDate scans offsets 0..7 inclusive
NEXT_TRAINING_SCAN_DAYS: Final[int] = 7

# cycle length of a plan without nutrition days
DEFAULT_CYCLE_WEEKS: Final[int] = 2

ISO_DATE_FORMAT: Final[str] = "%Y-%m-%d"

# =============================================================================
# NUTRITION
# =============================================================================

MEAL_TYPES: Final[tuple[str, ...]] = (
    "BREAKFAST",
    "MID_MORNING",
    "LUNCH",
    "SNACK",
    "DINNER",
    "DESSERT",
)

# =============================================================================
# PROGRESS
# =============================================================================

WEEKLY_DELTA_DAYS: Final[int] = 7
MONTHLY_DELTA_DAYS: Final[int] = 30  # calendar-month approximation, used for every trend

# Leading "DAY 2 -" / "DÍA 2:" prefix on imported training-day labels
BLOCK_LABEL_PREFIX_PATTERN: Final[str] = r"^(?:D[ÍI]A|DAY)\s*\d+\s*[-:]\s*"
BLOCK_LABEL_HAS_PREFIX_PATTERN: Final[str] = r"^(?:D[ÍI]A|DAY)\s*\d+"

# =============================================================================
# BODY MEASUREMENTS
# =============================================================================

MEASURE_METRICS: Final[tuple[tuple[str, str, str], ...]] = (
    # (field, display label, unit)
    ("weight_kg", "Bodyweight", "kg"),
    ("neck_cm", "Neck", "cm"),
    ("arm_cm", "Arm", "cm"),
    ("waist_cm", "Waist", "cm"),
    ("abdomen_cm", "Abdomen", "cm"),
    ("hip_cm", "Hip", "cm"),
    ("thigh_cm", "Thigh", "cm"),
)

MEASURE_FIELDS: Final[tuple[str, ...]] = tuple(m[0] for m in MEASURE_METRICS)

# =============================================================================
# USERS / BACKUP
# =============================================================================

ROLES: Final[tuple[str, ...]] = ("admin", "user")

BACKUP_VERSION: Final[int] = 1
BACKUP_SOURCE: Final[str] = "workout_backup_v1"
