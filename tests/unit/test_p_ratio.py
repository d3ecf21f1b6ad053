"""
Test suite for the P-ratio (partitioning ratio) calculator.

Covers each rule of the ladder, the order of reported factors, the personal
history blend, clamping and the confidence range.
"""

import itertools
import unittest
from dataclasses import replace

from p_ratio import (
    PARTITIONING_RULES,
    PartitioningRule,
    apply_partitioning_rules,
    blend_personal_history,
    calculate_p_ratio,
    get_p_ratio_description,
    get_p_ratio_quality,
    history_trust_weight,
)
from shared_models import (
    P_RATIO_BOUNDS,
    BiologicalSex,
    PartitioningInputs,
    PartitioningResult,
    TrainingAge,
)

BASELINE = PartitioningInputs(
    avg_daily_protein_grams=128.0,
    avg_daily_protein_per_kg_bw=1.6,
    avg_weekly_training_sets=14,
    avg_daily_deficit_cals=-400,
    energy_balance_percent=-15,
    current_body_fat_percent=20,
    current_lean_mass_kg=64.0,
    training_age=TrainingAge.INTERMEDIATE,
    is_enhanced=False,
    biological_sex=BiologicalSex.MALE,
)


def inputs_with(**overrides):
    return replace(BASELINE, **overrides)


class TestBaselineScenario(unittest.TestCase):
    """Baseline fixture: nothing fires, ratio stays at 0.75"""

    def test_baseline_ratio(self):
        result = calculate_p_ratio(BASELINE)
        self.assertEqual(result.final_p_ratio, 0.75)
        self.assertEqual(result.factors, [])

    def test_deficit_of_exactly_15_percent_is_neutral(self):
        """The 15-20% band starts strictly above 15"""
        result = calculate_p_ratio(inputs_with(energy_balance_percent=-15))
        self.assertEqual(result.final_p_ratio, 0.75)
        self.assertNotIn("Moderate deficit (15-20%)", result.factors)

    def test_baseline_confidence_range(self):
        """No history: 0.15 uncertainty scaled by 1.15 for a 15% deficit"""
        low, high = calculate_p_ratio(BASELINE).confidence_range
        self.assertAlmostEqual(low, 0.75 - 0.1725, places=9)
        self.assertAlmostEqual(high, 0.75 + 0.1725, places=9)

    def test_returns_partitioning_result(self):
        self.assertIsInstance(calculate_p_ratio(BASELINE), PartitioningResult)


class TestBodyFatRule(unittest.TestCase):
    def test_very_low_body_fat(self):
        result = calculate_p_ratio(inputs_with(current_body_fat_percent=8))
        self.assertEqual(result.final_p_ratio, 0.60)
        self.assertEqual(
            result.factors, ["Very low body fat (body protects fat stores)"]
        )

    def test_low_body_fat(self):
        result = calculate_p_ratio(inputs_with(current_body_fat_percent=10))
        self.assertEqual(result.final_p_ratio, 0.65)
        self.assertEqual(result.factors, ["Low body fat"])

    def test_mid_range_body_fat_is_neutral(self):
        for bf in [15, 20, 25]:
            result = calculate_p_ratio(inputs_with(current_body_fat_percent=bf))
            self.assertEqual(result.final_p_ratio, 0.75, f"bf={bf}")
            self.assertEqual(result.factors, [])

    def test_higher_body_fat(self):
        result = calculate_p_ratio(inputs_with(current_body_fat_percent=26))
        self.assertEqual(result.final_p_ratio, 0.80)
        self.assertEqual(result.factors, ["Higher body fat (easier fat loss)"])


class TestProteinRule(unittest.TestCase):
    def test_protein_bands(self):
        cases = [
            (2.5, 0.83, "High protein intake (≥2.2g/kg)"),
            (2.2, 0.83, "High protein intake (≥2.2g/kg)"),
            (1.8, 0.80, "Good protein intake (1.8-2.2g/kg)"),
            (1.4, 0.75, None),
            (1.2, 0.65, "Low protein intake (<1.4g/kg)"),
        ]
        for protein, expected_ratio, expected_factor in cases:
            result = calculate_p_ratio(inputs_with(avg_daily_protein_per_kg_bw=protein))
            self.assertEqual(result.final_p_ratio, expected_ratio, f"protein={protein}")
            if expected_factor is None:
                self.assertEqual(result.factors, [])
            else:
                self.assertEqual(result.factors, [expected_factor])

    def test_monotonic_across_protein_thresholds(self):
        """Crossing a protein threshold upward never lowers the ratio"""
        for below, at in [(1.39, 1.40), (1.79, 1.80), (2.19, 2.20)]:
            lower = calculate_p_ratio(inputs_with(avg_daily_protein_per_kg_bw=below))
            upper = calculate_p_ratio(inputs_with(avg_daily_protein_per_kg_bw=at))
            self.assertGreaterEqual(upper.final_p_ratio, lower.final_p_ratio)


class TestTrainingVolumeRule(unittest.TestCase):
    def test_volume_bands(self):
        cases = [
            (20, 0.80, ["High training volume (≥20 sets/week)"]),
            (12, 0.75, []),
            (8, 0.72, ["Moderate training volume (8-12 sets/week)"]),
            (11.9, 0.72, ["Moderate training volume (8-12 sets/week)"]),
            (7, 0.67, ["Low training volume (<8 sets/week)"]),
        ]
        for sets, expected_ratio, expected_factors in cases:
            result = calculate_p_ratio(inputs_with(avg_weekly_training_sets=sets))
            self.assertEqual(result.final_p_ratio, expected_ratio, f"sets={sets}")
            self.assertEqual(result.factors, expected_factors)


class TestEnergyBalanceRule(unittest.TestCase):
    def test_deficit_bands(self):
        cases = [
            (-35, 0.63, ["Very large deficit (>30%)"]),
            (-30, 0.67, ["Large deficit (20-30%)"]),
            (-20.5, 0.67, ["Large deficit (20-30%)"]),
            (-20, 0.71, ["Moderate deficit (15-20%)"]),
            (-16, 0.71, ["Moderate deficit (15-20%)"]),
            (-12, 0.75, []),
            (-10, 0.75, []),
            (-5, 0.78, ["Small deficit (<10%)"]),
        ]
        for balance, expected_ratio, expected_factors in cases:
            result = calculate_p_ratio(inputs_with(energy_balance_percent=balance))
            self.assertEqual(result.final_p_ratio, expected_ratio, f"balance={balance}")
            self.assertEqual(result.factors, expected_factors)

    def test_surplus_is_not_adjusted(self):
        for balance in [0, 3, 10, 25]:
            result = calculate_p_ratio(inputs_with(energy_balance_percent=balance))
            self.assertEqual(result.final_p_ratio, 0.75)
            self.assertEqual(result.factors, [])


class TestProfileRules(unittest.TestCase):
    def test_training_age(self):
        beginner = calculate_p_ratio(inputs_with(training_age=TrainingAge.BEGINNER))
        self.assertEqual(beginner.final_p_ratio, 0.80)
        self.assertEqual(
            beginner.factors, ["Beginner (better body composition changes)"]
        )

        advanced = calculate_p_ratio(inputs_with(training_age=TrainingAge.ADVANCED))
        self.assertEqual(advanced.final_p_ratio, 0.72)
        self.assertEqual(advanced.factors, ["Advanced (harder to preserve muscle)"])

    def test_training_age_accepts_strings(self):
        result = calculate_p_ratio(inputs_with(training_age="beginner"))
        self.assertEqual(result.final_p_ratio, 0.80)

    def test_enhanced(self):
        result = calculate_p_ratio(inputs_with(is_enhanced=True))
        self.assertEqual(result.final_p_ratio, 0.85)
        self.assertEqual(result.factors, ["Enhanced (better muscle preservation)"])

    def test_chronological_age(self):
        cases = [
            (None, 0.75, []),
            (39, 0.75, []),
            (40, 0.73, ["Age-related anabolic resistance (40+)"]),
            (50, 0.70, ["Age-related anabolic resistance (50+)"]),
            (65, 0.70, ["Age-related anabolic resistance (50+)"]),
        ]
        for age, expected_ratio, expected_factors in cases:
            result = calculate_p_ratio(inputs_with(chronological_age=age))
            self.assertEqual(result.final_p_ratio, expected_ratio, f"age={age}")
            self.assertEqual(result.factors, expected_factors)

    def test_female_above_20_percent_is_silent(self):
        """The sex adjustment moves the ratio but adds no factor"""
        female = calculate_p_ratio(
            inputs_with(
                biological_sex=BiologicalSex.FEMALE, current_body_fat_percent=22
            )
        )
        self.assertEqual(female.final_p_ratio, 0.77)
        self.assertEqual(female.factors, [])

        male = calculate_p_ratio(inputs_with(current_body_fat_percent=22))
        self.assertEqual(male.final_p_ratio, 0.75)

    def test_female_at_20_percent_not_adjusted(self):
        result = calculate_p_ratio(
            inputs_with(biological_sex=BiologicalSex.FEMALE, current_body_fat_percent=20)
        )
        self.assertEqual(result.final_p_ratio, 0.75)


class TestFactorOrdering(unittest.TestCase):
    def test_factors_follow_application_order(self):
        inputs = inputs_with(
            current_body_fat_percent=8,
            avg_daily_protein_per_kg_bw=2.5,
            avg_weekly_training_sets=25,
            energy_balance_percent=-35,
            training_age=TrainingAge.ADVANCED,
            is_enhanced=True,
            chronological_age=55,
            personal_p_ratio_history=(0.70,),
        )
        result = calculate_p_ratio(inputs)

        self.assertEqual(
            result.factors,
            [
                "Very low body fat (body protects fat stores)",
                "High protein intake (≥2.2g/kg)",
                "High training volume (≥20 sets/week)",
                "Very large deficit (>30%)",
                "Advanced (harder to preserve muscle)",
                "Enhanced (better muscle preservation)",
                "Age-related anabolic resistance (50+)",
                "Using learned P-ratio from 1 DEXA scan pair(s) (35% weight)",
            ],
        )

    def test_rule_ladder_sum(self):
        inputs = inputs_with(
            current_body_fat_percent=8,
            avg_daily_protein_per_kg_bw=2.5,
            avg_weekly_training_sets=25,
            energy_balance_percent=-35,
            training_age=TrainingAge.ADVANCED,
            is_enhanced=True,
            chronological_age=55,
        )
        ratio, _ = apply_partitioning_rules(inputs)
        self.assertAlmostEqual(ratio, 0.63, places=9)

    def test_custom_rule_table(self):
        rules = [
            PartitioningRule("always", lambda i: True, 0.1, "Always"),
            PartitioningRule("quiet", lambda i: True, -0.05, None),
        ]
        ratio, factors = apply_partitioning_rules(BASELINE, rules=rules, baseline=0.5)
        self.assertAlmostEqual(ratio, 0.55, places=9)
        self.assertEqual(factors, ["Always"])

    def test_only_sex_rule_is_silent(self):
        silent = [rule.factor for rule in PARTITIONING_RULES if rule.message is None]
        self.assertEqual(silent, ["sex"])


class TestPersonalHistoryBlend(unittest.TestCase):
    def test_trust_weights(self):
        self.assertEqual(history_trust_weight(1), 0.35)
        self.assertEqual(history_trust_weight(2), 0.55)
        self.assertEqual(history_trust_weight(3), 0.75)
        self.assertEqual(history_trust_weight(6), 0.75)

    def test_two_scan_pairs(self):
        """Heuristic 0.75 blended 55% toward the mean of 0.81"""
        result = calculate_p_ratio(inputs_with(personal_p_ratio_history=[0.80, 0.82]))

        self.assertEqual(result.final_p_ratio, 0.78)
        self.assertEqual(
            result.factors,
            ["Using learned P-ratio from 2 DEXA scan pair(s) (55% weight)"],
        )

    def test_blend_arithmetic(self):
        blended, message = blend_personal_history(0.75, [0.80, 0.82])
        self.assertAlmostEqual(blended, 0.75 * 0.45 + 0.81 * 0.55, places=9)
        self.assertIsNotNone(message)

    def test_one_scan_pair(self):
        result = calculate_p_ratio(inputs_with(personal_p_ratio_history=[0.70]))
        self.assertEqual(result.final_p_ratio, 0.73)

    def test_three_scan_pairs(self):
        result = calculate_p_ratio(
            inputs_with(personal_p_ratio_history=[0.81, 0.83, 0.85])
        )
        self.assertEqual(result.final_p_ratio, 0.81)
        self.assertIn("(75% weight)", result.factors[-1])

    def test_history_narrows_confidence_range(self):
        """With history the base uncertainty drops from 0.15 to 0.08"""
        result = calculate_p_ratio(inputs_with(personal_p_ratio_history=[0.80, 0.82]))
        low, high = result.confidence_range
        self.assertAlmostEqual(low, 0.78 - 0.092, places=9)
        self.assertAlmostEqual(high, 0.78 + 0.092, places=9)

    def test_empty_history_skips_blend(self):
        for history in [(), [], None]:
            result = calculate_p_ratio(inputs_with(personal_p_ratio_history=history))
            self.assertEqual(result.final_p_ratio, 0.75)
            self.assertEqual(result.factors, [])

    def test_alternative_trust_policy(self):
        """Trusting history fully returns the personal mean"""
        result = calculate_p_ratio(
            inputs_with(personal_p_ratio_history=[0.90]), trust_weight=lambda n: 1.0
        )
        self.assertEqual(result.final_p_ratio, 0.90)
        self.assertEqual(
            result.factors,
            ["Using learned P-ratio from 1 DEXA scan pair(s) (100% weight)"],
        )


class TestBoundsAndUncertainty(unittest.TestCase):
    def test_clamped_to_lower_bound(self):
        inputs = inputs_with(
            current_body_fat_percent=8,
            avg_daily_protein_per_kg_bw=1.0,
            avg_weekly_training_sets=4,
            energy_balance_percent=-40,
            training_age=TrainingAge.ADVANCED,
            chronological_age=60,
        )
        result = calculate_p_ratio(inputs)
        self.assertEqual(result.final_p_ratio, 0.40)
        self.assertEqual(result.confidence_range[0], 0.40)
        self.assertAlmostEqual(result.confidence_range[1], 0.40 + 0.21, places=9)

    def test_clamped_to_upper_bound(self):
        inputs = inputs_with(
            current_body_fat_percent=30,
            avg_daily_protein_per_kg_bw=2.4,
            avg_weekly_training_sets=22,
            energy_balance_percent=-5,
            training_age=TrainingAge.BEGINNER,
            is_enhanced=True,
            biological_sex=BiologicalSex.FEMALE,
        )
        result = calculate_p_ratio(inputs)
        self.assertEqual(result.final_p_ratio, 0.95)
        self.assertEqual(result.confidence_range[1], 0.95)
        self.assertAlmostEqual(result.confidence_range[0], 0.95 - 0.1575, places=9)

    def test_bounds_invariant_over_input_grid(self):
        lower, upper = P_RATIO_BOUNDS
        grid = itertools.product(
            [5, 12, 20, 30],  # body fat
            [1.0, 1.6, 2.0, 2.5],  # protein g/kg
            [4, 10, 14, 24],  # weekly sets
            [-45, -25, -5, 0, 20],  # energy balance
            list(TrainingAge),
            [False, True],  # enhanced
            [BiologicalSex.MALE, BiologicalSex.FEMALE],
            [(), (0.45,), (0.9, 0.95, 1.0)],  # history
        )
        for bf, protein, sets, balance, age, enhanced, sex, history in grid:
            result = calculate_p_ratio(
                inputs_with(
                    current_body_fat_percent=bf,
                    avg_daily_protein_per_kg_bw=protein,
                    avg_weekly_training_sets=sets,
                    energy_balance_percent=balance,
                    training_age=age,
                    is_enhanced=enhanced,
                    biological_sex=sex,
                    personal_p_ratio_history=history,
                )
            )
            low, high = result.confidence_range
            self.assertTrue(lower <= low <= result.final_p_ratio <= high <= upper)

    def test_half_way_ratio_rounds_up(self):
        """A blend landing on 0.585 reports 0.59"""
        result = calculate_p_ratio(inputs_with(personal_p_ratio_history=(0.40, 0.50)))
        self.assertEqual(result.final_p_ratio, 0.59)

    def test_deterministic(self):
        inputs = inputs_with(
            energy_balance_percent=-22, personal_p_ratio_history=[0.7, 0.9, 0.8]
        )
        self.assertEqual(calculate_p_ratio(inputs), calculate_p_ratio(inputs))

    def test_larger_imbalance_widens_range(self):
        narrow = calculate_p_ratio(inputs_with(energy_balance_percent=-5))
        wide = calculate_p_ratio(inputs_with(energy_balance_percent=-12))
        self.assertGreater(wide.spread, narrow.spread)


class TestDescriptions(unittest.TestCase):
    def test_quality_buckets(self):
        self.assertEqual(get_p_ratio_quality(0.90), "excellent")
        self.assertEqual(get_p_ratio_quality(0.85), "excellent")
        self.assertEqual(get_p_ratio_quality(0.75), "good")
        self.assertEqual(get_p_ratio_quality(0.65), "fair")
        self.assertEqual(get_p_ratio_quality(0.50), "poor")

    def test_descriptions(self):
        self.assertTrue(get_p_ratio_description(0.92).startswith("Excellent"))
        self.assertTrue(get_p_ratio_description(0.55).startswith("Very poor"))


if __name__ == "__main__":
    unittest.main()
