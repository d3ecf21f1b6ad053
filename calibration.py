"""
DEXA Calibration

Learns a user's personal P-ratio from consecutive DEXA scan pairs. The
ratios measured here are what the calculator consumes as
``personal_p_ratio_history``.

A scan pair is only trusted when:
- total weight moved by at least 1 kg
- the scans are at least 14 days apart
- the measured ratio lies in [0.3, 1.1] (above 1.0 is possible during a
  recomp, where lean mass rises while fat falls)
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from p_ratio import get_p_ratio_quality
from shared_models import (
    SCAN_PAIR_LIMITS,
    BodyCompChangeSummary,
    CalibrationResult,
    DexaScan,
    PRatioConfidence,
    PredictionAccuracyLog,
    ScanConditions,
    ScanConfidence,
    ScanPairAnalysis,
)

logger = logging.getLogger(__name__)


def analyze_scan_pair(start_scan: DexaScan, end_scan: DexaScan) -> ScanPairAnalysis:
    """Measure the change between two scans and check it is usable"""
    weight_change = end_scan.total_mass_kg - start_scan.total_mass_kg
    fat_change = end_scan.fat_mass_kg - start_scan.fat_mass_kg
    lean_change = end_scan.lean_mass_kg - start_scan.lean_mass_kg
    duration_days = (end_scan.date - start_scan.date).days

    is_valid = True
    invalid_reason = None

    if abs(weight_change) < SCAN_PAIR_LIMITS["min_weight_change_kg"]:
        is_valid = False
        invalid_reason = "Weight change too small for reliable P-ratio calculation"

    if duration_days < SCAN_PAIR_LIMITS["min_duration_days"]:
        is_valid = False
        invalid_reason = "Scans too close together for reliable measurement"

    calculated_p_ratio = 0.0
    if abs(weight_change) >= SCAN_PAIR_LIMITS["min_weight_change_kg"]:
        calculated_p_ratio = fat_change / weight_change

        if not (
            SCAN_PAIR_LIMITS["min_p_ratio"]
            <= calculated_p_ratio
            <= SCAN_PAIR_LIMITS["max_p_ratio"]
        ):
            is_valid = False
            invalid_reason = (
                f"Calculated P-ratio ({calculated_p_ratio:.2f}) outside expected range"
            )

    if not is_valid:
        logger.info(
            f"Rejected scan pair {start_scan.scan_date} -> {end_scan.scan_date}: "
            f"{invalid_reason}"
        )

    return ScanPairAnalysis(
        start_scan=start_scan,
        end_scan=end_scan,
        weight_change=weight_change,
        fat_change=fat_change,
        lean_change=lean_change,
        calculated_p_ratio=calculated_p_ratio,
        duration_days=duration_days,
        is_valid=is_valid,
        invalid_reason=invalid_reason,
    )


def analyze_scan_history(scans: Sequence[DexaScan]) -> List[ScanPairAnalysis]:
    """Analyze every consecutive pair of scans in date order"""
    sorted_scans = sorted(scans, key=lambda scan: scan.date)
    return [
        analyze_scan_pair(start, end)
        for start, end in zip(sorted_scans, sorted_scans[1:])
    ]


def calibrate_p_ratio_from_scans(
    scans: Sequence[DexaScan],
) -> Optional[CalibrationResult]:
    """
    Learn a personal P-ratio from a scan history.

    Uses the median of the valid pair ratios to limit the effect of a single
    noisy scan.

    Returns:
        CalibrationResult, or None with fewer than two scans or no valid pairs
    """
    if len(scans) < 2:
        return None

    scan_pairs = analyze_scan_history(scans)
    valid_ratios = [pair.calculated_p_ratio for pair in scan_pairs if pair.is_valid]

    if not valid_ratios:
        return None

    learned_p_ratio = float(np.median(valid_ratios))
    std_dev = float(np.std(valid_ratios, ddof=1)) if len(valid_ratios) > 1 else 0.0

    if len(valid_ratios) >= 4 and std_dev < 0.08:
        confidence = PRatioConfidence.HIGH
    elif len(valid_ratios) >= 2 and std_dev < 0.12:
        confidence = PRatioConfidence.MEDIUM
    else:
        confidence = PRatioConfidence.LOW

    logger.info(
        f"Calibrated P-ratio {learned_p_ratio:.2f} from {len(valid_ratios)} "
        f"scan pair(s), confidence {confidence.value}"
    )

    return CalibrationResult(
        learned_p_ratio=learned_p_ratio,
        confidence=confidence,
        data_points=len(valid_ratios),
        scan_pairs=scan_pairs,
    )


def get_personal_p_ratio_history(scans: Sequence[DexaScan]) -> List[float]:
    """
    Valid P-ratios from weight-loss scan pairs, oldest first.

    Gain pairs are left out because the loss calculator blends these ratios
    with a fat-loss fraction. Recomp pairs above 1.0 are capped at 1.0, the
    same range accepted for a configured history.
    """
    return [
        min(pair.calculated_p_ratio, 1.0)
        for pair in analyze_scan_history(scans)
        if pair.is_valid and pair.weight_change < 0
    ]


def calculate_scan_confidence(conditions: ScanConditions) -> ScanConfidence:
    """Score how reliable a scan is from the conditions it was taken in"""
    score = 0

    # Fasted morning scans are the most repeatable
    if conditions.time_of_day == "morning_fasted":
        score += 3
    elif conditions.time_of_day == "morning_fed":
        score += 2
    else:
        score += 1

    if conditions.hydration_status == "normal":
        score += 2
    elif conditions.hydration_status == "unknown":
        score += 1

    # Training causes fluid shifts
    if not conditions.recent_workout:
        score += 1

    if conditions.same_provider_as_previous:
        score += 2

    if score >= 7:
        return ScanConfidence.HIGH
    if score >= 4:
        return ScanConfidence.MEDIUM
    return ScanConfidence.LOW


def get_body_comp_change_summary(
    start_scan: DexaScan, end_scan: DexaScan
) -> BodyCompChangeSummary:
    analysis = analyze_scan_pair(start_scan, end_scan)

    return BodyCompChangeSummary(
        start_date=start_scan.scan_date,
        end_date=end_scan.scan_date,
        weight_change=analysis.weight_change,
        fat_change=analysis.fat_change,
        lean_change=analysis.lean_change,
        body_fat_change=end_scan.body_fat_percent - start_scan.body_fat_percent,
        calculated_p_ratio=analysis.calculated_p_ratio,
        p_ratio_quality=get_p_ratio_quality(analysis.calculated_p_ratio),
    )


def compare_prediction_vs_actual(
    prediction: dict,
    actual_scan: DexaScan,
    start_scan: DexaScan,
    prediction_date: str,
) -> PredictionAccuracyLog:
    """
    Compare a stored prediction with the scan that followed it.

    Args:
        prediction: Dict with body_fat, lean_mass, fat_mass, p_ratio and
            body_fat_range ({"optimistic", "pessimistic"})
        actual_scan: Scan taken at the end of the prediction window
        start_scan: Scan the prediction started from
        prediction_date: Date the prediction was made (MM/DD/YYYY)
    """
    actual_analysis = analyze_scan_pair(start_scan, actual_scan)

    # Optimistic body fat is the lower bound for a loss
    body_fat_range = prediction["body_fat_range"]
    within_range = (
        body_fat_range["optimistic"]
        <= actual_scan.body_fat_percent
        <= body_fat_range["pessimistic"]
    )

    return PredictionAccuracyLog(
        prediction_date=prediction_date,
        actual_date=actual_scan.scan_date,
        predicted_body_fat=prediction["body_fat"],
        predicted_lean_mass=prediction["lean_mass"],
        predicted_fat_mass=prediction["fat_mass"],
        actual_body_fat=actual_scan.body_fat_percent,
        actual_lean_mass=actual_scan.lean_mass_kg,
        actual_fat_mass=actual_scan.fat_mass_kg,
        body_fat_error=actual_scan.body_fat_percent - prediction["body_fat"],
        lean_mass_error=actual_scan.lean_mass_kg - prediction["lean_mass"],
        fat_mass_error=actual_scan.fat_mass_kg - prediction["fat_mass"],
        within_range=within_range,
        predicted_p_ratio=prediction["p_ratio"],
        actual_p_ratio=actual_analysis.calculated_p_ratio,
    )


def format_p_ratio_as_percentage(p_ratio: float) -> str:
    return f"{round(p_ratio * 100)}% of loss was fat"


def explain_p_ratio_result(p_ratio: float) -> str:
    """Plain-language explanation of a measured P-ratio"""
    explanations = {
        "excellent": "Excellent! Almost all weight lost was fat, with minimal muscle loss.",
        "good": "Good result. Most weight lost was fat with some muscle loss.",
        "fair": "Fair result. Some muscle was lost along with fat.",
        "poor": "More muscle was lost than ideal. Consider adjusting protein, training, or deficit.",
    }
    return explanations[get_p_ratio_quality(p_ratio)]


def get_scans_needed_for_confidence(
    current_data_points: int,
    current_confidence: PRatioConfidence,
    target_confidence: PRatioConfidence,
) -> int:
    """Rough number of additional scan pairs needed to reach a confidence level"""
    order = [
        PRatioConfidence.NONE,
        PRatioConfidence.LOW,
        PRatioConfidence.MEDIUM,
        PRatioConfidence.HIGH,
    ]
    if order.index(target_confidence) <= order.index(current_confidence):
        return 0

    if target_confidence == PRatioConfidence.MEDIUM and current_data_points < 2:
        return 2 - current_data_points

    if target_confidence == PRatioConfidence.HIGH and current_data_points < 4:
        return 4 - current_data_points

    return 1
