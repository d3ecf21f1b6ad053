"""
Shared Data Models for RecompProjector

This module contains all shared dataclasses, enums and tuning constants used
by the partitioning calculator, the scenario projector and the DEXA
calibration code.

Unified data models provide:
- Type safety for the inputs fed to the heuristic
- Distinct types for the loss (fat fraction) and gain (muscle fraction) ratios
- Single source of truth for thresholds and bounds
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

# ============================================================================
# ENUMS
# ============================================================================


class TrainingAge(Enum):
    """Training experience levels"""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class BiologicalSex(Enum):
    """Biological sex"""

    MALE = "male"
    FEMALE = "female"


class ConfidenceLevel(Enum):
    """Confidence classification attached to a projection"""

    LOW = "low"
    REASONABLE = "reasonable"
    HIGH = "high"


class FFMIClassification(Enum):
    """Normalized FFMI categories"""

    BELOW_AVERAGE = "below_average"
    AVERAGE = "average"
    ABOVE_AVERAGE = "above_average"
    EXCELLENT = "excellent"
    SUPERIOR = "superior"
    SUSPICIOUS = "suspicious"


class PRatioConfidence(Enum):
    """Trust in a P-ratio learned from scan pairs"""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ScanConfidence(Enum):
    """Reliability of a single DEXA measurement"""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ============================================================================
# PARTITIONING DATA STRUCTURES
# ============================================================================


@dataclass(frozen=True)
class PartitioningInputs:
    """Physiological and behavioral inputs for one partitioning calculation"""

    avg_daily_protein_grams: float
    avg_daily_protein_per_kg_bw: float
    avg_weekly_training_sets: float  # Total sets across all muscles
    avg_daily_deficit_cals: float  # Informational only
    energy_balance_percent: float  # Negative = deficit, positive = surplus
    current_body_fat_percent: float
    current_lean_mass_kg: float
    training_age: TrainingAge
    is_enhanced: bool
    biological_sex: BiologicalSex
    chronological_age: Optional[float] = None
    personal_p_ratio_history: Tuple[float, ...] = ()

    def __post_init__(self):
        """Accept string enums and freeze the history into a tuple"""
        if isinstance(self.training_age, str):
            object.__setattr__(
                self, "training_age", TrainingAge(self.training_age.lower())
            )
        if isinstance(self.biological_sex, str):
            object.__setattr__(
                self, "biological_sex", BiologicalSex(self.biological_sex.lower())
            )
        if self.personal_p_ratio_history is None:
            object.__setattr__(self, "personal_p_ratio_history", ())
        elif not isinstance(self.personal_p_ratio_history, tuple):
            object.__setattr__(
                self, "personal_p_ratio_history", tuple(self.personal_p_ratio_history)
            )


@dataclass(frozen=True)
class LossPartitioning:
    """
    Fraction of a weight LOSS that comes from fat.

    Higher is better: 0.90 means 90% of the lost weight was fat.
    """

    final_p_ratio: float
    confidence_range: Tuple[float, float]
    factors: List[str] = field(default_factory=list)

    @property
    def spread(self) -> float:
        return self.confidence_range[1] - self.confidence_range[0]


# Public name used by callers of the calculator
PartitioningResult = LossPartitioning


@dataclass(frozen=True)
class GainPartitioning:
    """
    Fraction of a weight GAIN that comes from muscle.

    Higher is better: 0.50 means half of the gained weight was lean mass.
    """

    muscle_gain_ratio: float
    confidence_range: Tuple[float, float]
    factors: List[str] = field(default_factory=list)


# ============================================================================
# PROJECTION DATA STRUCTURES
# ============================================================================


@dataclass(frozen=True)
class ScenarioValues:
    """One value per projection scenario"""

    pessimistic: float
    expected: float
    optimistic: float

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "ScenarioValues":
        """Build from (pessimistic, expected, optimistic) ordered values"""
        pessimistic, expected, optimistic = values
        return cls(float(pessimistic), float(expected), float(optimistic))

    def as_dict(self) -> Dict[str, float]:
        return {
            "pessimistic": self.pessimistic,
            "expected": self.expected,
            "optimistic": self.optimistic,
        }


@dataclass(frozen=True)
class BodyCompProjection:
    """Projected body composition at a target weight"""

    ffmi: ScenarioValues
    body_fat_percent: ScenarioValues
    p_ratio_used: float
    confidence_level: ConfidenceLevel
    factors: List[str]

    # Intermediate masses behind the headline numbers
    lean_mass_kg: Optional[ScenarioValues] = None
    fat_mass_kg: Optional[ScenarioValues] = None


@dataclass(frozen=True)
class FFMIResult:
    """Fat-free mass index for a lean mass and height"""

    ffmi: float
    normalized_ffmi: float
    classification: FFMIClassification
    natural_limit: float
    percent_of_limit: float


# ============================================================================
# DEXA CALIBRATION DATA STRUCTURES
# ============================================================================


@dataclass(frozen=True)
class ScanConditions:
    """Measurement conditions affecting DEXA reliability"""

    time_of_day: str  # morning_fasted, morning_fed, afternoon, evening
    hydration_status: str  # normal, dehydrated, overhydrated, unknown
    recent_workout: bool  # Trained within 24h
    same_provider_as_previous: bool


@dataclass
class DexaScan:
    """Individual DEXA scan (masses in kg)"""

    scan_date: str  # MM/DD/YYYY format
    total_mass_kg: float
    fat_mass_kg: float
    lean_mass_kg: float
    body_fat_percent: float
    provider: Optional[str] = None
    bone_mineral_kg: Optional[float] = None
    conditions: Optional[ScanConditions] = None

    @property
    def date(self) -> datetime:
        return datetime.strptime(self.scan_date, "%m/%d/%Y")


@dataclass
class ScanPairAnalysis:
    """Change between two consecutive scans"""

    start_scan: DexaScan
    end_scan: DexaScan
    weight_change: float
    fat_change: float
    lean_change: float
    calculated_p_ratio: float
    duration_days: int
    is_valid: bool
    invalid_reason: Optional[str] = None


@dataclass
class CalibrationResult:
    """P-ratio learned from a user's scan history"""

    learned_p_ratio: float
    confidence: PRatioConfidence
    data_points: int
    scan_pairs: List[ScanPairAnalysis]


@dataclass
class PredictionAccuracyLog:
    """Predicted versus measured body composition"""

    prediction_date: str
    actual_date: str

    predicted_body_fat: float
    predicted_lean_mass: float
    predicted_fat_mass: float

    actual_body_fat: float
    actual_lean_mass: float
    actual_fat_mass: float

    # Actual - predicted
    body_fat_error: float
    lean_mass_error: float
    fat_mass_error: float

    within_range: bool

    predicted_p_ratio: float
    actual_p_ratio: float


@dataclass
class BodyCompChangeSummary:
    """Summary of a scan-to-scan change"""

    start_date: str
    end_date: str
    weight_change: float
    fat_change: float
    lean_change: float
    body_fat_change: float
    calculated_p_ratio: float
    p_ratio_quality: str


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================


def round_half_up(value: float, decimals: int = 0) -> float:
    """Round half up after scaling, so 0.585 -> 0.59 and 21.25 -> 21.3"""
    scale = 10**decimals
    return math.floor(value * scale + 0.5) / scale


def convert_dict_to_dexa_scan(scan: dict) -> DexaScan:
    """Convert a scan dict (JSON config format) to a DexaScan"""
    conditions = scan.get("conditions")
    if isinstance(conditions, dict):
        conditions = ScanConditions(**conditions)

    return DexaScan(
        scan_date=scan["date"],
        total_mass_kg=scan["total_mass_kg"],
        fat_mass_kg=scan["fat_mass_kg"],
        lean_mass_kg=scan["lean_mass_kg"],
        body_fat_percent=scan["body_fat_percent"],
        provider=scan.get("provider"),
        bone_mineral_kg=scan.get("bone_mineral_kg"),
        conditions=conditions,
    )


# ============================================================================
# CONSTANTS AND CONFIGURATIONS
# ============================================================================

# Loss-path P-ratio (fraction of lost weight that is fat)
BASELINE_P_RATIO = 0.75
P_RATIO_BOUNDS = (0.40, 0.95)
P_RATIO_UNCERTAINTY = {
    "with_history": 0.08,
    "heuristic_only": 0.15,
}

# Trust placed in the personal history mean, by number of scan pairs
HISTORY_TRUST_WEIGHTS = {
    1: 0.35,
    2: 0.55,
    3: 0.75,  # Three or more
}

# Spread of the confidence range below which a loss projection is trusted
CONFIDENCE_SPREAD_THRESHOLDS = {
    ConfidenceLevel.HIGH: 0.12,
    ConfidenceLevel.REASONABLE: 0.18,
}

# Gain-path muscle ratio (fraction of gained weight that is lean mass)
MUSCLE_GAIN_BASELINES = {
    TrainingAge.BEGINNER: 0.55,
    TrainingAge.INTERMEDIATE: 0.40,
    TrainingAge.ADVANCED: 0.30,
}
MUSCLE_GAIN_BOUNDS = (0.20, 0.80)
ENHANCED_MUSCLE_GAIN = {"multiplier": 1.5, "cap": 0.75}
MUSCLE_GAIN_RANGE = {"low_multiplier": 0.7, "high_multiplier": 1.3, "high_cap": 0.85}
GAIN_FACTOR_MESSAGE = "Weight gain partitioning has high individual variance"

# Natural FFMI ceiling used for percent-of-limit
NATURAL_FFMI_LIMIT = 25.0

# Scan pair validity (calibration)
SCAN_PAIR_LIMITS = {
    "min_weight_change_kg": 1.0,
    "min_duration_days": 14,
    "min_p_ratio": 0.3,
    "max_p_ratio": 1.1,
}

# Energy content of one kg of body mass change
KCAL_PER_KG = 7700
