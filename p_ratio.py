"""
Partitioning Ratio (P-ratio) Calculator

Predicts how a weight loss is partitioned between fat and lean mass. The
P-ratio is the fraction of the lost weight that is fat:

- 0.90 = 90% fat loss, 10% lean loss (excellent)
- 0.75 = baseline for a moderate cut with sensible training
- 0.50 = half of the loss is lean mass (crash diet territory)

The model is a fixed rule ladder starting from a 0.75 baseline. Each rule
moves the ratio by a fixed increment and, unless it is silent, adds a
human-readable factor explaining the move. Factors are reported in the order
the rules were applied. When the user has DEXA scan pairs of their own, the
heuristic is blended toward their observed mean with a trust weight that
grows with the number of pairs.

Research Foundation:
- Forbes (2000): "Body fat content influences the body composition response
  to nutrition and exercise"
- Helms et al. (2014): protein and training recommendations for contest prep
- Garthe et al. (2011): weight-loss rate and lean mass retention
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from shared_models import (
    BASELINE_P_RATIO,
    HISTORY_TRUST_WEIGHTS,
    P_RATIO_BOUNDS,
    P_RATIO_UNCERTAINTY,
    BiologicalSex,
    PartitioningInputs,
    PartitioningResult,
    TrainingAge,
    round_half_up,
)

logger = logging.getLogger(__name__)


# ============================================================================
# RULE TABLE
# ============================================================================


@dataclass(frozen=True)
class PartitioningRule:
    """
    One step of the P-ratio ladder.

    Rules sharing a ``factor`` name have mutually exclusive predicates, so at
    most one band per factor fires. A rule with ``message=None`` adjusts the
    ratio without adding an explanation.
    """

    factor: str
    predicate: Callable[[PartitioningInputs], bool]
    delta: float
    message: Optional[str]


def _deficit_magnitude(inputs: PartitioningInputs) -> Optional[float]:
    """Size of the deficit in % of maintenance, or None when not in a deficit"""
    if inputs.energy_balance_percent < 0:
        return abs(inputs.energy_balance_percent)
    return None


def _deficit_between(lower: float, upper: float) -> Callable[[PartitioningInputs], bool]:
    """Predicate for a deficit magnitude in (lower, upper]"""

    def predicate(inputs: PartitioningInputs) -> bool:
        magnitude = _deficit_magnitude(inputs)
        return magnitude is not None and lower < magnitude <= upper

    return predicate


def _small_deficit(inputs: PartitioningInputs) -> bool:
    magnitude = _deficit_magnitude(inputs)
    return magnitude is not None and magnitude < 10


def _age_at_least(lower: float, upper: float) -> Callable[[PartitioningInputs], bool]:
    """Predicate for a known chronological age in [lower, upper)"""

    def predicate(inputs: PartitioningInputs) -> bool:
        age = inputs.chronological_age
        return age is not None and lower <= age < upper

    return predicate


PARTITIONING_RULES: List[PartitioningRule] = [
    # 1. Body fat: leaner bodies defend fat stores harder
    PartitioningRule(
        "body_fat",
        lambda i: i.current_body_fat_percent < 10,
        -0.15,
        "Very low body fat (body protects fat stores)",
    ),
    PartitioningRule(
        "body_fat",
        lambda i: 10 <= i.current_body_fat_percent < 15,
        -0.10,
        "Low body fat",
    ),
    PartitioningRule(
        "body_fat",
        lambda i: i.current_body_fat_percent > 25,
        0.05,
        "Higher body fat (easier fat loss)",
    ),
    # 2. Protein intake
    PartitioningRule(
        "protein",
        lambda i: i.avg_daily_protein_per_kg_bw >= 2.2,
        0.08,
        "High protein intake (≥2.2g/kg)",
    ),
    PartitioningRule(
        "protein",
        lambda i: 1.8 <= i.avg_daily_protein_per_kg_bw < 2.2,
        0.05,
        "Good protein intake (1.8-2.2g/kg)",
    ),
    PartitioningRule(
        "protein",
        lambda i: i.avg_daily_protein_per_kg_bw < 1.4,
        -0.10,
        "Low protein intake (<1.4g/kg)",
    ),
    # 3. Weekly training volume (all muscles)
    PartitioningRule(
        "training_volume",
        lambda i: i.avg_weekly_training_sets >= 20,
        0.05,
        "High training volume (≥20 sets/week)",
    ),
    PartitioningRule(
        "training_volume",
        lambda i: 8 <= i.avg_weekly_training_sets < 12,
        -0.03,
        "Moderate training volume (8-12 sets/week)",
    ),
    PartitioningRule(
        "training_volume",
        lambda i: i.avg_weekly_training_sets < 8,
        -0.08,
        "Low training volume (<8 sets/week)",
    ),
    # 4. Deficit size; surpluses are handled by the muscle-gain model
    PartitioningRule(
        "energy_balance",
        _deficit_between(30, float("inf")),
        -0.12,
        "Very large deficit (>30%)",
    ),
    PartitioningRule(
        "energy_balance", _deficit_between(20, 30), -0.08, "Large deficit (20-30%)"
    ),
    PartitioningRule(
        "energy_balance", _deficit_between(15, 20), -0.04, "Moderate deficit (15-20%)"
    ),
    PartitioningRule("energy_balance", _small_deficit, 0.03, "Small deficit (<10%)"),
    # 5. Training age
    PartitioningRule(
        "training_age",
        lambda i: i.training_age == TrainingAge.BEGINNER,
        0.05,
        "Beginner (better body composition changes)",
    ),
    PartitioningRule(
        "training_age",
        lambda i: i.training_age == TrainingAge.ADVANCED,
        -0.03,
        "Advanced (harder to preserve muscle)",
    ),
    # 6. Enhanced status
    PartitioningRule(
        "enhanced",
        lambda i: i.is_enhanced,
        0.10,
        "Enhanced (better muscle preservation)",
    ),
    # 7. Anabolic resistance with age
    PartitioningRule(
        "age",
        _age_at_least(50, float("inf")),
        -0.05,
        "Age-related anabolic resistance (50+)",
    ),
    PartitioningRule(
        "age", _age_at_least(40, 50), -0.02, "Age-related anabolic resistance (40+)"
    ),
    # 8. Females above 20% body fat partition slightly better. Not reported.
    PartitioningRule(
        "sex",
        lambda i: i.biological_sex == BiologicalSex.FEMALE
        and i.current_body_fat_percent > 20,
        0.02,
        None,
    ),
]


def apply_partitioning_rules(
    inputs: PartitioningInputs,
    rules: Sequence[PartitioningRule] = PARTITIONING_RULES,
    baseline: float = BASELINE_P_RATIO,
) -> Tuple[float, List[str]]:
    """
    Run the rule ladder over the inputs.

    Returns:
        (unclamped ratio, factor messages in application order)
    """
    ratio = baseline
    factors = []

    for rule in rules:
        if not rule.predicate(inputs):
            continue
        ratio += rule.delta
        if rule.message is not None:
            factors.append(rule.message)

    return ratio, factors


# ============================================================================
# PERSONAL HISTORY BLEND
# ============================================================================


def history_trust_weight(data_points: int) -> float:
    """Weight given to the personal P-ratio mean for a number of scan pairs"""
    if data_points >= 3:
        return HISTORY_TRUST_WEIGHTS[3]
    if data_points == 2:
        return HISTORY_TRUST_WEIGHTS[2]
    return HISTORY_TRUST_WEIGHTS[1]


def blend_personal_history(
    ratio: float,
    history: Sequence[float],
    trust_weight: Callable[[int], float] = history_trust_weight,
) -> Tuple[float, Optional[str]]:
    """
    Pull the heuristic ratio toward the user's observed P-ratios.

    Args:
        ratio: Heuristic ratio from the rule ladder
        history: P-ratios measured from the user's own scan pairs
        trust_weight: Policy mapping the number of pairs to a blend weight

    Returns:
        (blended ratio, factor message) or (ratio, None) for an empty history
    """
    if not history:
        return ratio, None

    data_points = len(history)
    personal_mean = float(np.mean(history))
    weight = trust_weight(data_points)

    blended = ratio * (1 - weight) + personal_mean * weight
    message = (
        f"Using learned P-ratio from {data_points} DEXA scan pair(s) "
        f"({round(weight * 100)}% weight)"
    )
    return blended, message


# ============================================================================
# CALCULATOR
# ============================================================================


def _clamp(value: float, bounds: Tuple[float, float] = P_RATIO_BOUNDS) -> float:
    lower, upper = bounds
    return max(lower, min(upper, value))


def calculate_p_ratio(
    inputs: PartitioningInputs,
    trust_weight: Callable[[int], float] = history_trust_weight,
) -> PartitioningResult:
    """
    Calculate the loss-path P-ratio with a confidence range.

    Args:
        inputs: Current nutrition, training and body composition snapshot
        trust_weight: Policy for blending in personal scan history

    Returns:
        PartitioningResult with the ratio, its range and the applied factors
    """
    ratio, factors = apply_partitioning_rules(inputs)

    history = inputs.personal_p_ratio_history
    ratio, history_message = blend_personal_history(ratio, history, trust_weight)
    if history_message is not None:
        factors.append(history_message)

    final_ratio = round_half_up(_clamp(ratio), 2)

    # Narrower band once the user has their own data; wider with bigger
    # deficits or surpluses
    if history:
        base_uncertainty = P_RATIO_UNCERTAINTY["with_history"]
    else:
        base_uncertainty = P_RATIO_UNCERTAINTY["heuristic_only"]
    uncertainty = base_uncertainty * (1 + abs(inputs.energy_balance_percent) / 100)

    confidence_range = (
        _clamp(final_ratio - uncertainty),
        _clamp(final_ratio + uncertainty),
    )

    logger.debug(
        f"P-ratio {final_ratio:.2f} (range {confidence_range[0]:.3f}-"
        f"{confidence_range[1]:.3f}) from {len(factors)} factors"
    )

    return PartitioningResult(
        final_p_ratio=final_ratio,
        confidence_range=confidence_range,
        factors=factors,
    )


# ============================================================================
# DESCRIPTIONS
# ============================================================================


def get_p_ratio_quality(p_ratio: float) -> str:
    """Quality bucket for a P-ratio: excellent, good, fair or poor"""
    if p_ratio >= 0.85:
        return "excellent"
    if p_ratio >= 0.75:
        return "good"
    if p_ratio >= 0.65:
        return "fair"
    return "poor"


def get_p_ratio_description(p_ratio: float) -> str:
    if p_ratio >= 0.9:
        return "Excellent - almost all weight loss is from fat"
    elif p_ratio >= 0.8:
        return "Good - mostly fat loss with minimal muscle loss"
    elif p_ratio >= 0.7:
        return "Fair - some muscle loss expected"
    elif p_ratio >= 0.6:
        return "Poor - significant muscle loss expected"
    else:
        return "Very poor - high risk of muscle loss"
