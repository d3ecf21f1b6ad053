"""
Core RecompProjector Logic

This module ties the partitioning calculator and the scenario projector to
the outside world: it builds calculator inputs from everyday numbers (body
weight, protein grams, TDEE and intake), loads and validates JSON
configuration files, and orchestrates a projection run for the CLI.

Sections:
- Configuration schema and loading
- Input construction (energy balance, protein per kg, lean mass)
- Projection orchestration
- Table output
"""

import json
import os
from typing import Optional, Sequence

import pandas as pd
from jsonschema import ValidationError, validate
from tabulate import tabulate

from calibration import calibrate_p_ratio_from_scans, get_personal_p_ratio_history
from ffmi import calculate_ffmi
from p_ratio import calculate_p_ratio, get_p_ratio_description
from projection import (
    calculate_muscle_gain_ratio,
    estimate_time_to_target,
    predict_body_composition,
    predict_weight_gain_composition,
)
from shared_models import (
    BiologicalSex,
    BodyCompProjection,
    LossPartitioning,
    PartitioningInputs,
    TrainingAge,
    convert_dict_to_dexa_scan,
)

# JSON Schema for configuration validation
CONFIG_SCHEMA = {
    "type": "object",
    "required": ["user_info", "current", "nutrition", "training"],
    "properties": {
        "user_info": {
            "type": "object",
            "required": ["height_cm", "biological_sex"],
            "properties": {
                "height_cm": {"type": "number", "minimum": 100, "maximum": 250},
                "biological_sex": {
                    "type": "string",
                    "pattern": "^(m|f|male|female|M|F|Male|Female|MALE|FEMALE)$",
                },
                "training_age": {
                    "type": "string",
                    "pattern": "^(beginner|intermediate|advanced|Beginner|Intermediate|Advanced|BEGINNER|INTERMEDIATE|ADVANCED)$",
                },
                "is_enhanced": {"type": "boolean"},
                "age": {"type": "number", "minimum": 13, "maximum": 120},
            },
            "additionalProperties": False,
        },
        "current": {
            "type": "object",
            "required": ["weight_kg", "body_fat_percent"],
            "properties": {
                "weight_kg": {"type": "number", "exclusiveMinimum": 0},
                "body_fat_percent": {"type": "number", "minimum": 0, "maximum": 100},
            },
            "additionalProperties": False,
        },
        "nutrition": {
            "type": "object",
            "required": ["avg_daily_protein_grams", "tdee_cals", "avg_daily_intake_cals"],
            "properties": {
                "avg_daily_protein_grams": {"type": "number", "minimum": 0},
                "tdee_cals": {"type": "number", "exclusiveMinimum": 0},
                "avg_daily_intake_cals": {"type": "number", "minimum": 0},
            },
            "additionalProperties": False,
        },
        "training": {
            "type": "object",
            "required": ["avg_weekly_training_sets"],
            "properties": {
                "avg_weekly_training_sets": {"type": "number", "minimum": 0},
            },
            "additionalProperties": False,
        },
        "target_weight_kg": {"type": "number", "exclusiveMinimum": 0},
        "personal_p_ratio_history": {
            "type": "array",
            "items": {"type": "number", "minimum": 0, "maximum": 1},
        },
        "scan_history": {
            "type": "array",
            "items": {
                "type": "object",
                "required": [
                    "date",
                    "total_mass_kg",
                    "fat_mass_kg",
                    "lean_mass_kg",
                    "body_fat_percent",
                ],
                "properties": {
                    "date": {"type": "string", "pattern": "^\\d{2}/\\d{2}/\\d{4}$"},
                    "total_mass_kg": {"type": "number", "minimum": 0},
                    "fat_mass_kg": {"type": "number", "minimum": 0},
                    "lean_mass_kg": {"type": "number", "minimum": 0},
                    "body_fat_percent": {
                        "type": "number",
                        "minimum": 0,
                        "maximum": 100,
                    },
                    "bone_mineral_kg": {"type": "number", "minimum": 0},
                    "provider": {"type": "string"},
                    "conditions": {
                        "type": "object",
                        "required": [
                            "time_of_day",
                            "hydration_status",
                            "recent_workout",
                            "same_provider_as_previous",
                        ],
                        "properties": {
                            "time_of_day": {
                                "type": "string",
                                "enum": [
                                    "morning_fasted",
                                    "morning_fed",
                                    "afternoon",
                                    "evening",
                                ],
                            },
                            "hydration_status": {
                                "type": "string",
                                "enum": [
                                    "normal",
                                    "dehydrated",
                                    "overhydrated",
                                    "unknown",
                                ],
                            },
                            "recent_workout": {"type": "boolean"},
                            "same_provider_as_previous": {"type": "boolean"},
                        },
                        "additionalProperties": False,
                    },
                },
                "additionalProperties": False,
            },
        },
    },
    "additionalProperties": False,
}


# ---------------------------------------------------------------------------
# INPUT CONSTRUCTION
# ---------------------------------------------------------------------------


def calculate_lean_mass(weight_kg, body_fat_percent):
    """Lean mass from total weight and body fat percentage"""
    return weight_kg * (1 - body_fat_percent / 100)


def calculate_energy_balance_percent(tdee_cals, intake_cals):
    """
    Energy balance as a percentage of maintenance calories.

    Args:
        tdee_cals (float): Estimated maintenance calories
        intake_cals (float): Average daily intake

    Returns:
        float: Negative for a deficit, positive for a surplus

    Raises:
        ValueError: If tdee_cals is not positive
    """
    if tdee_cals <= 0:
        raise ValueError(f"TDEE must be positive, got {tdee_cals}")
    return (intake_cals - tdee_cals) / tdee_cals * 100


def parse_biological_sex(sex_str):
    """
    Converts user-friendly sex string to a BiologicalSex.

    Raises:
        ValueError: If the string is not recognized
    """
    sex_lower = sex_str.lower()
    if sex_lower in ["m", "male"]:
        return BiologicalSex.MALE
    elif sex_lower in ["f", "female"]:
        return BiologicalSex.FEMALE
    else:
        raise ValueError(
            f"Unrecognized biological sex: {sex_str}. Use 'm', 'f', 'male', or 'female'."
        )


def build_partitioning_inputs(
    weight_kg: float,
    body_fat_percent: float,
    avg_daily_protein_grams: float,
    avg_weekly_training_sets: float,
    tdee_cals: float,
    avg_daily_intake_cals: float,
    training_age: TrainingAge = TrainingAge.INTERMEDIATE,
    is_enhanced: bool = False,
    biological_sex: BiologicalSex = BiologicalSex.MALE,
    chronological_age: Optional[float] = None,
    personal_p_ratio_history: Sequence[float] = (),
) -> PartitioningInputs:
    """Build calculator inputs from body weight, intake and maintenance numbers"""
    return PartitioningInputs(
        avg_daily_protein_grams=avg_daily_protein_grams,
        avg_daily_protein_per_kg_bw=avg_daily_protein_grams / weight_kg,
        avg_weekly_training_sets=avg_weekly_training_sets,
        avg_daily_deficit_cals=avg_daily_intake_cals - tdee_cals,
        energy_balance_percent=calculate_energy_balance_percent(
            tdee_cals, avg_daily_intake_cals
        ),
        current_body_fat_percent=body_fat_percent,
        current_lean_mass_kg=calculate_lean_mass(weight_kg, body_fat_percent),
        training_age=training_age,
        is_enhanced=is_enhanced,
        biological_sex=biological_sex,
        chronological_age=chronological_age,
        personal_p_ratio_history=tuple(personal_p_ratio_history),
    )


# ---------------------------------------------------------------------------
# CONFIGURATION
# ---------------------------------------------------------------------------


def load_config_json(config_path, quiet=False):
    """
    Loads and validates a JSON configuration file.

    Args:
        config_path (str): Path to the JSON configuration file.
        quiet (bool): If True, suppress print statements

    Returns:
        dict: Validated configuration dictionary.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        json.JSONDecodeError: If the JSON is malformed.
        ValidationError: If the JSON doesn't match the required schema.
    """
    if not quiet:
        print(f"Loading configuration from {config_path}...")

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        config = json.load(f)

    validate(config, CONFIG_SCHEMA)

    if not quiet:
        print(f"Successfully loaded config with {len(config.get('scan_history', []))} scans")
    return config


def extract_inputs_from_config(config):
    """
    Builds calculator inputs from a validated configuration.

    Personal P-ratio history comes from ``personal_p_ratio_history`` when
    given, otherwise from the weight-loss pairs in ``scan_history``.

    Returns:
        tuple: (PartitioningInputs, current_weight_kg, height_cm, scans)
    """
    user_info = config["user_info"]
    current = config["current"]
    nutrition = config["nutrition"]

    scans = [convert_dict_to_dexa_scan(scan) for scan in config.get("scan_history", [])]

    if "personal_p_ratio_history" in config:
        history = config["personal_p_ratio_history"]
    else:
        history = get_personal_p_ratio_history(scans)

    inputs = build_partitioning_inputs(
        weight_kg=current["weight_kg"],
        body_fat_percent=current["body_fat_percent"],
        avg_daily_protein_grams=nutrition["avg_daily_protein_grams"],
        avg_weekly_training_sets=config["training"]["avg_weekly_training_sets"],
        tdee_cals=nutrition["tdee_cals"],
        avg_daily_intake_cals=nutrition["avg_daily_intake_cals"],
        training_age=TrainingAge(user_info.get("training_age", "intermediate").lower()),
        is_enhanced=user_info.get("is_enhanced", False),
        biological_sex=parse_biological_sex(user_info["biological_sex"]),
        chronological_age=user_info.get("age"),
        personal_p_ratio_history=history,
    )

    return inputs, current["weight_kg"], user_info["height_cm"], scans


# ---------------------------------------------------------------------------
# PROJECTION ORCHESTRATION
# ---------------------------------------------------------------------------


def run_projection(config, target_weight_kg=None):
    """
    Runs the partitioning calculator and the matching projector branch.

    Args:
        config (dict): Validated configuration
        target_weight_kg (float): Overrides ``target_weight_kg`` from the config

    Returns:
        dict: inputs, partitioning, projection, calibration and table

    Raises:
        KeyError: If no target weight is available
        ValueError: If the target weight equals the current weight
    """
    inputs, current_weight_kg, height_cm, scans = extract_inputs_from_config(config)

    if target_weight_kg is None:
        target_weight_kg = config["target_weight_kg"]

    if target_weight_kg < current_weight_kg:
        partitioning = calculate_p_ratio(inputs)
        projection = predict_body_composition(
            current_weight_kg,
            target_weight_kg,
            inputs.current_body_fat_percent,
            height_cm,
            partitioning,
        )
    elif target_weight_kg > current_weight_kg:
        partitioning = calculate_muscle_gain_ratio(inputs)
        projection = predict_weight_gain_composition(
            current_weight_kg,
            target_weight_kg,
            inputs.current_body_fat_percent,
            height_cm,
            inputs,
        )
    else:
        raise ValueError(
            f"Target weight {target_weight_kg} kg equals current weight; nothing to project"
        )

    return {
        "inputs": inputs,
        "current_weight_kg": current_weight_kg,
        "target_weight_kg": target_weight_kg,
        "current_ffmi": calculate_ffmi(inputs.current_lean_mass_kg, height_cm),
        "partitioning": partitioning,
        "projection": projection,
        "calibration": calibrate_p_ratio_from_scans(scans),
        "table": create_projection_table(projection),
    }


def create_projection_table(projection: BodyCompProjection) -> pd.DataFrame:
    """One row per scenario, pessimistic first"""
    rows = []
    for scenario in ["pessimistic", "expected", "optimistic"]:
        rows.append(
            {
                "Scenario": scenario.capitalize(),
                "Lean (kg)": getattr(projection.lean_mass_kg, scenario),
                "Fat (kg)": getattr(projection.fat_mass_kg, scenario),
                "BF%": getattr(projection.body_fat_percent, scenario),
                "FFMI": getattr(projection.ffmi, scenario),
            }
        )
    return pd.DataFrame(rows)


# ---------------------------------------------------------------------------
# MAIN ANALYSIS FUNCTION
# ---------------------------------------------------------------------------


def run_analysis(
    config_path="example_config.json",
    target_weight_kg=None,
    output_csv=None,
    return_results=False,
):
    """
    Main function that orchestrates a projection run.

    Args:
        config_path (str): Path to JSON configuration file
        target_weight_kg (float): Optional override of the configured target
        output_csv (str): Optional path for the scenario table as CSV
        return_results (bool): If True, returns the results dict instead of printing

    Returns:
        int or dict: Exit code (0 for success, 1 for error) if return_results=False,
                     or the run_projection results if return_results=True
    """
    if not return_results:
        print("RecompProjector Body Composition Projection")
        print("=" * 45)

    try:
        config = load_config_json(config_path, quiet=return_results)
        results = run_projection(config, target_weight_kg=target_weight_kg)

        if return_results:
            return results

        inputs = results["inputs"]
        partitioning = results["partitioning"]
        projection = results["projection"]
        current_ffmi = results["current_ffmi"]

        print("Current:")
        print(f"  - Weight: {results['current_weight_kg']:.1f} kg")
        print(f"  - Body Fat: {inputs.current_body_fat_percent:.1f}%")
        print(f"  - FFMI: {current_ffmi.normalized_ffmi:.1f} (normalized)")
        print(f"  - Energy Balance: {inputs.energy_balance_percent:+.1f}% of TDEE")
        print(f"\nTarget Weight: {results['target_weight_kg']:.1f} kg")

        if isinstance(partitioning, LossPartitioning):
            low, high = partitioning.confidence_range
            print(
                f"\nP-ratio: {partitioning.final_p_ratio:.2f} "
                f"(range {low:.2f}-{high:.2f})"
            )
            print(f"  {get_p_ratio_description(partitioning.final_p_ratio)}")

            deficit = -inputs.avg_daily_deficit_cals
            if deficit > 0:
                weeks, days = estimate_time_to_target(
                    results["current_weight_kg"], results["target_weight_kg"], deficit
                )
                print(f"  Estimated time to target: {weeks} weeks, {days} days")
        else:
            print(f"\nMuscle gain ratio: {partitioning.muscle_gain_ratio:.2f}")

        print(f"Confidence: {projection.confidence_level.value}")

        print("\nFactors:")
        for factor in projection.factors:
            print(f"  - {factor}")
        if not projection.factors:
            print("  - No adjustments from baseline")

        calibration = results["calibration"]
        if calibration is not None:
            print(
                f"\nLearned P-ratio from scans: {calibration.learned_p_ratio:.2f} "
                f"({calibration.data_points} pair(s), {calibration.confidence.value} confidence)"
            )

        print("\n--- Projected Scenarios ---")
        df_display = results["table"].copy()
        for col in ["Lean (kg)", "Fat (kg)", "BF%", "FFMI"]:
            df_display[col] = df_display[col].apply(lambda x: f"{x:.1f}")
        print(tabulate(df_display, headers="keys", tablefmt="pipe", showindex=False))

        if output_csv:
            results["table"].to_csv(output_csv, index=False)
            print(f"\nSaved scenario table to {output_csv}")

        return 0

    except (
        FileNotFoundError,
        json.JSONDecodeError,
        ValidationError,
        KeyError,
        ValueError,
    ) as e:
        if return_results:
            raise e
        else:
            print(f"Error: {e}")
            print(f"\nPlease check your configuration file: {config_path}")
            return 1
