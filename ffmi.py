"""
Fat-Free Mass Index (FFMI) calculations.

FFMI = lean mass (kg) / height (m)^2
Normalized FFMI = FFMI + 6.1 * (1.8 - height in m)

The normalization (Kouri et al., 1995) adjusts the index to a 1.8 m
reference height so that taller and shorter lifters can be compared.
"""

from shared_models import (
    NATURAL_FFMI_LIMIT,
    FFMIClassification,
    FFMIResult,
    TrainingAge,
    round_half_up,
)

# Rough natural ceilings by experience level
NATURAL_FFMI_LIMITS = {
    TrainingAge.BEGINNER: 22.0,
    TrainingAge.INTERMEDIATE: 24.0,
    TrainingAge.ADVANCED: 25.0,
}

FFMI_LABELS = {
    FFMIClassification.BELOW_AVERAGE: "Below Average",
    FFMIClassification.AVERAGE: "Average",
    FFMIClassification.ABOVE_AVERAGE: "Above Average",
    FFMIClassification.EXCELLENT: "Excellent",
    FFMIClassification.SUPERIOR: "Superior",
    FFMIClassification.SUSPICIOUS: "Elite (Near Genetic Limit)",
}


def classify_ffmi(normalized_ffmi: float) -> FFMIClassification:
    """Classify a normalized FFMI value"""
    if normalized_ffmi < 18:
        return FFMIClassification.BELOW_AVERAGE
    if normalized_ffmi < 20:
        return FFMIClassification.AVERAGE
    if normalized_ffmi < 22:
        return FFMIClassification.ABOVE_AVERAGE
    if normalized_ffmi < 23:
        return FFMIClassification.EXCELLENT
    if normalized_ffmi < 25:
        return FFMIClassification.SUPERIOR
    return FFMIClassification.SUSPICIOUS


def calculate_ffmi(lean_mass_kg: float, height_cm: float) -> FFMIResult:
    """
    Calculate FFMI and height-normalized FFMI.

    Args:
        lean_mass_kg: Lean (fat-free) mass in kg
        height_cm: Height in centimeters

    Returns:
        FFMIResult with both indices rounded to one decimal
    """
    height_m = height_cm / 100
    ffmi = lean_mass_kg / (height_m * height_m)
    normalized_ffmi = ffmi + 6.1 * (1.8 - height_m)

    percent_of_limit = min(normalized_ffmi / NATURAL_FFMI_LIMIT * 100, 100)

    return FFMIResult(
        ffmi=round_half_up(ffmi, 1),
        normalized_ffmi=round_half_up(normalized_ffmi, 1),
        classification=classify_ffmi(normalized_ffmi),
        natural_limit=NATURAL_FFMI_LIMIT,
        percent_of_limit=int(round_half_up(percent_of_limit)),
    )


def get_natural_ffmi_limit(training_age: TrainingAge) -> float:
    """Approximate natural FFMI ceiling for an experience level"""
    return NATURAL_FFMI_LIMITS.get(training_age, NATURAL_FFMI_LIMIT)


def get_ffmi_label(classification: FFMIClassification) -> str:
    return FFMI_LABELS[classification]
