"""
Scenario Projector for Body Composition

Turns a partitioning ratio, a starting body composition and a target weight
into three scenarios (pessimistic / expected / optimistic) of resulting
body fat percentage and FFMI.

The biology differs between losing and gaining weight, so there are two
branches with two distinct ratio types:

- Loss: LossPartitioning.final_p_ratio is the fraction of the loss that is
  FAT. The low end of the range is pessimistic (more lean lost).
- Gain: GainPartitioning.muscle_gain_ratio is the fraction of the gain that
  is MUSCLE. The low end of the range is pessimistic (more fat gained).

Key Features:
- Vectorized scenario arithmetic with NumPy
- Pluggable FFMI calculator (any callable returning ``normalized_ffmi``)
- Explicit errors for projections in the wrong direction
"""

import logging
from typing import Callable, Dict, Sequence, Tuple

import numpy as np

from ffmi import calculate_ffmi
from shared_models import (
    CONFIDENCE_SPREAD_THRESHOLDS,
    ENHANCED_MUSCLE_GAIN,
    GAIN_FACTOR_MESSAGE,
    KCAL_PER_KG,
    MUSCLE_GAIN_BASELINES,
    MUSCLE_GAIN_BOUNDS,
    MUSCLE_GAIN_RANGE,
    BodyCompProjection,
    ConfidenceLevel,
    FFMIResult,
    GainPartitioning,
    LossPartitioning,
    PartitioningInputs,
    ScenarioValues,
    round_half_up,
)

logger = logging.getLogger(__name__)

FFMICalculator = Callable[[float, float], FFMIResult]


# ============================================================================
# CUSTOM EXCEPTIONS
# ============================================================================


class ProjectionError(Exception):
    """Base class for projection errors"""

    pass


class WeightDirectionError(ProjectionError, ValueError):
    """Raised when a projection branch is called for the wrong weight direction"""

    pass


# ============================================================================
# SCENARIO ARITHMETIC
# ============================================================================


def _project_scenarios(
    current_weight_kg: float,
    predicted_weight_kg: float,
    current_body_fat_percent: float,
    height_cm: float,
    fat_fractions: Sequence[float],
    lean_fractions: Sequence[float],
    ffmi_calculator: FFMICalculator,
) -> Dict[str, ScenarioValues]:
    """
    Distribute a weight change into fat and lean mass for each scenario.

    Fractions are ordered (pessimistic, expected, optimistic).
    """
    weight_change_kg = predicted_weight_kg - current_weight_kg

    current_fat_kg = current_weight_kg * (current_body_fat_percent / 100)
    current_lean_kg = current_weight_kg - current_fat_kg

    fat_mass = current_fat_kg + weight_change_kg * np.asarray(fat_fractions, float)
    lean_mass = current_lean_kg + weight_change_kg * np.asarray(lean_fractions, float)
    body_fat = fat_mass / predicted_weight_kg * 100

    ffmi = [
        ffmi_calculator(float(lean), height_cm).normalized_ffmi for lean in lean_mass
    ]

    return {
        "fat_mass_kg": ScenarioValues.from_sequence(fat_mass),
        "lean_mass_kg": ScenarioValues.from_sequence(lean_mass),
        "body_fat_percent": ScenarioValues.from_sequence(body_fat),
        "ffmi": ScenarioValues.from_sequence(ffmi),
    }


def classify_loss_confidence(spread: float) -> ConfidenceLevel:
    """Confidence in a loss projection from the width of the P-ratio range"""
    if spread < CONFIDENCE_SPREAD_THRESHOLDS[ConfidenceLevel.HIGH]:
        return ConfidenceLevel.HIGH
    if spread < CONFIDENCE_SPREAD_THRESHOLDS[ConfidenceLevel.REASONABLE]:
        return ConfidenceLevel.REASONABLE
    return ConfidenceLevel.LOW


# ============================================================================
# WEIGHT LOSS
# ============================================================================


def predict_body_composition(
    current_weight_kg: float,
    predicted_weight_kg: float,
    current_body_fat_percent: float,
    height_cm: float,
    partitioning_result: LossPartitioning,
    ffmi_calculator: FFMICalculator = calculate_ffmi,
) -> BodyCompProjection:
    """
    Project body composition for a weight loss.

    Gains must go through predict_weight_gain_composition, which uses the
    muscle-gain model instead of the loss P-ratio.

    Raises:
        WeightDirectionError: If predicted_weight_kg >= current_weight_kg
    """
    if predicted_weight_kg >= current_weight_kg:
        raise WeightDirectionError(
            f"predict_body_composition only handles weight loss "
            f"({current_weight_kg} -> {predicted_weight_kg} kg); "
            f"use predict_weight_gain_composition for weight gain scenarios"
        )

    return predict_weight_loss_composition(
        current_weight_kg,
        predicted_weight_kg,
        current_body_fat_percent,
        height_cm,
        partitioning_result,
        ffmi_calculator=ffmi_calculator,
    )


def predict_weight_loss_composition(
    current_weight_kg: float,
    predicted_weight_kg: float,
    current_body_fat_percent: float,
    height_cm: float,
    partitioning_result: LossPartitioning,
    ffmi_calculator: FFMICalculator = calculate_ffmi,
) -> BodyCompProjection:
    """
    Project fat and lean loss for the low / mid / high P-ratios.

    Args:
        current_weight_kg: Starting weight
        predicted_weight_kg: Target weight, below the starting weight
        current_body_fat_percent: Starting body fat %
        height_cm: Height for FFMI
        partitioning_result: Output of calculate_p_ratio
        ffmi_calculator: FFMI function, defaults to ffmi.calculate_ffmi

    Returns:
        BodyCompProjection; a low ratio is pessimistic (more lean mass lost)

    Raises:
        WeightDirectionError: If predicted_weight_kg is not below current_weight_kg
    """
    if not isinstance(partitioning_result, LossPartitioning):
        raise TypeError(
            f"Weight loss projection needs a LossPartitioning, "
            f"got {type(partitioning_result).__name__}"
        )
    if predicted_weight_kg >= current_weight_kg:
        raise WeightDirectionError(
            f"Weight loss projection requires a lower target weight "
            f"({current_weight_kg} -> {predicted_weight_kg} kg)"
        )

    low, high = partitioning_result.confidence_range
    mid = partitioning_result.final_p_ratio

    fat_fractions = (low, mid, high)
    lean_fractions = tuple(1 - ratio for ratio in fat_fractions)

    scenarios = _project_scenarios(
        current_weight_kg,
        predicted_weight_kg,
        current_body_fat_percent,
        height_cm,
        fat_fractions,
        lean_fractions,
        ffmi_calculator,
    )

    confidence_level = classify_loss_confidence(high - low)

    logger.info(
        f"Loss projection {current_weight_kg:.1f} -> {predicted_weight_kg:.1f} kg: "
        f"expected BF {scenarios['body_fat_percent'].expected:.1f}%, "
        f"P-ratio {mid:.2f}, confidence {confidence_level.value}"
    )

    return BodyCompProjection(
        ffmi=scenarios["ffmi"],
        body_fat_percent=scenarios["body_fat_percent"],
        p_ratio_used=mid,
        confidence_level=confidence_level,
        factors=list(partitioning_result.factors),
        lean_mass_kg=scenarios["lean_mass_kg"],
        fat_mass_kg=scenarios["fat_mass_kg"],
    )


# ============================================================================
# WEIGHT GAIN
# ============================================================================


def calculate_muscle_gain_ratio(inputs: PartitioningInputs) -> GainPartitioning:
    """
    Fraction of a surplus-driven weight gain that ends up as muscle.

    Natural lifters typically see 30-50% muscle in a surplus, beginners more,
    advanced lifters less, enhanced lifters up to ~75%. Adjustments are
    multiplicative.
    """
    ratio = MUSCLE_GAIN_BASELINES[inputs.training_age]

    if inputs.is_enhanced:
        ratio = min(
            ENHANCED_MUSCLE_GAIN["cap"], ratio * ENHANCED_MUSCLE_GAIN["multiplier"]
        )

    if inputs.avg_daily_protein_per_kg_bw >= 2.0:
        ratio *= 1.1
    elif inputs.avg_daily_protein_per_kg_bw < 1.4:
        ratio *= 0.85

    # Barely training means the surplus is mostly stored as fat
    if inputs.avg_weekly_training_sets < 5:
        ratio *= 0.5
    elif inputs.avg_weekly_training_sets >= 20:
        ratio *= 1.1

    surplus_magnitude = abs(inputs.energy_balance_percent)
    if surplus_magnitude > 15:
        ratio *= 0.85
    elif surplus_magnitude < 5:
        ratio *= 1.1

    lower, upper = MUSCLE_GAIN_BOUNDS
    ratio = max(lower, min(upper, ratio))

    confidence_range = (
        ratio * MUSCLE_GAIN_RANGE["low_multiplier"],
        min(MUSCLE_GAIN_RANGE["high_cap"], ratio * MUSCLE_GAIN_RANGE["high_multiplier"]),
    )

    return GainPartitioning(
        muscle_gain_ratio=ratio,
        confidence_range=confidence_range,
        factors=[GAIN_FACTOR_MESSAGE],
    )


def predict_weight_gain_composition(
    current_weight_kg: float,
    predicted_weight_kg: float,
    current_body_fat_percent: float,
    height_cm: float,
    inputs: PartitioningInputs,
    ffmi_calculator: FFMICalculator = calculate_ffmi,
) -> BodyCompProjection:
    """
    Project muscle and fat gain for a weight gain.

    Confidence is always LOW: gain partitioning varies a lot between people.

    Raises:
        WeightDirectionError: If predicted_weight_kg is not above current_weight_kg
    """
    if predicted_weight_kg <= current_weight_kg:
        raise WeightDirectionError(
            f"Weight gain projection requires a higher target weight "
            f"({current_weight_kg} -> {predicted_weight_kg} kg)"
        )

    gain = calculate_muscle_gain_ratio(inputs)
    low, high = gain.confidence_range

    lean_fractions = (low, gain.muscle_gain_ratio, high)
    fat_fractions = tuple(1 - ratio for ratio in lean_fractions)

    scenarios = _project_scenarios(
        current_weight_kg,
        predicted_weight_kg,
        current_body_fat_percent,
        height_cm,
        fat_fractions,
        lean_fractions,
        ffmi_calculator,
    )

    logger.info(
        f"Gain projection {current_weight_kg:.1f} -> {predicted_weight_kg:.1f} kg: "
        f"muscle ratio {gain.muscle_gain_ratio:.2f}"
    )

    return BodyCompProjection(
        ffmi=scenarios["ffmi"],
        body_fat_percent=scenarios["body_fat_percent"],
        p_ratio_used=gain.muscle_gain_ratio,
        confidence_level=ConfidenceLevel.LOW,
        factors=list(gain.factors),
        lean_mass_kg=scenarios["lean_mass_kg"],
        fat_mass_kg=scenarios["fat_mass_kg"],
    )


# ============================================================================
# PLANNING UTILITIES
# ============================================================================


def explain_weight_loss_breakdown(
    projection: BodyCompProjection,
    current_weight_kg: float,
    current_body_fat_percent: float,
) -> Dict[str, Dict[str, float]]:
    """
    Fat and lean mass lost in each scenario of a loss projection.

    Returns:
        {"best_case" | "expected" | "worst_case": {"fat_loss", "lean_loss"}}
    """
    current_fat_kg = current_weight_kg * (current_body_fat_percent / 100)
    current_lean_kg = current_weight_kg - current_fat_kg

    scenario_names = {
        "best_case": "optimistic",
        "expected": "expected",
        "worst_case": "pessimistic",
    }

    breakdown = {}
    for label, scenario in scenario_names.items():
        breakdown[label] = {
            "fat_loss": current_fat_kg - getattr(projection.fat_mass_kg, scenario),
            "lean_loss": current_lean_kg - getattr(projection.lean_mass_kg, scenario),
        }
    return breakdown


def generate_weight_scenarios(
    current_weight_kg: float,
    current_body_fat_percent: float,
    height_cm: float,
    partitioning_result: LossPartitioning,
    weight_deltas: Sequence[float] = (-2.5, -5, -7.5, -10),
    ffmi_calculator: FFMICalculator = calculate_ffmi,
) -> Dict[float, BodyCompProjection]:
    """Loss projections for several target weights, keyed by target weight"""
    projections = {}
    for delta in weight_deltas:
        target_weight_kg = current_weight_kg + delta
        projections[target_weight_kg] = predict_body_composition(
            current_weight_kg,
            target_weight_kg,
            current_body_fat_percent,
            height_cm,
            partitioning_result,
            ffmi_calculator=ffmi_calculator,
        )
    return projections


def estimate_time_to_target(
    current_weight_kg: float, target_weight_kg: float, daily_deficit_cals: float
) -> Tuple[int, int]:
    """
    Time to reach a target weight at a fixed daily energy gap.

    Returns:
        (weeks, days), with days in 0-6

    Raises:
        ValueError: If daily_deficit_cals is not positive
    """
    if daily_deficit_cals <= 0:
        raise ValueError("daily_deficit_cals must be positive")

    calories = abs(target_weight_kg - current_weight_kg) * KCAL_PER_KG
    # Whole days, so the remainder is always 0-6
    total_days = int(round_half_up(calories / daily_deficit_cals))

    return divmod(total_days, 7)


def calculate_required_deficit(
    current_weight_kg: float, target_weight_kg: float, target_weeks: float
) -> int:
    """Daily energy gap (kcal) needed to reach a target weight in time"""
    if target_weeks <= 0:
        raise ValueError("target_weeks must be positive")

    calories = abs(target_weight_kg - current_weight_kg) * KCAL_PER_KG
    return int(round_half_up(calories / (target_weeks * 7)))
