#!/usr/bin/env python3
"""
RecompProjector - Main CLI Script

Command-line entry point for projecting body composition at a target
weight. Delegates the loading, partitioning and projection work to the core
module.
"""

import argparse
import logging
import os

from core import run_analysis

# Configure logging
logging.basicConfig(level=logging.INFO)


def main(argv=None):
    """Main CLI function with argument parsing."""
    parser = argparse.ArgumentParser(
        description="RecompProjector: fat vs lean partitioning of a weight change",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_analysis.py                              # Use example_config.json
  python run_analysis.py my_config.json              # Use custom config
  python run_analysis.py -c my_config.json -t 78     # Override target weight
  python run_analysis.py my_config.json -o out.csv   # Save scenario table

Run with --help-config to see the expected JSON format.
        """,
    )

    parser.add_argument(
        "config_file",
        nargs="?",
        default="example_config.json",
        help="Path to JSON configuration file (default: example_config.json)",
    )

    parser.add_argument(
        "--config",
        "-c",
        dest="config_file_alt",
        help="Alternative way to specify config file path",
    )

    parser.add_argument(
        "--target-weight",
        "-t",
        type=float,
        default=None,
        help="Target weight in kg (overrides target_weight_kg in the config)",
    )

    parser.add_argument(
        "--output",
        "-o",
        default=None,
        help="Write the scenario table to this CSV file",
    )

    parser.add_argument(
        "--help-config",
        action="store_true",
        help="Show detailed help about the JSON configuration format",
    )

    args = parser.parse_args(argv)

    if args.help_config:
        show_config_help()
        return 0

    config_file = args.config_file_alt if args.config_file_alt else args.config_file

    if not os.path.exists(config_file):
        print(f"Error: Configuration file not found: {config_file}")
        print()
        print("Run with --help-config to see the expected JSON format.")
        return 1

    try:
        return run_analysis(
            config_path=config_file,
            target_weight_kg=args.target_weight,
            output_csv=args.output,
        )
    except KeyboardInterrupt:
        print("\nProjection interrupted by user.")
        return 1


def show_config_help():
    """Show detailed help about the JSON configuration format."""
    help_text = """
JSON Configuration Format
=========================

{
  "user_info": {
    "height_cm": <height in centimeters>,
    "biological_sex": "<male|female|m|f>",
    "training_age": "<beginner|intermediate|advanced>",   // optional
    "is_enhanced": <true|false>,                           // optional
    "age": <years>                                         // optional
  },
  "current": {
    "weight_kg": <current weight>,
    "body_fat_percent": <current body fat %>
  },
  "nutrition": {
    "avg_daily_protein_grams": <grams/day>,
    "tdee_cals": <maintenance calories>,
    "avg_daily_intake_cals": <average intake>
  },
  "training": {
    "avg_weekly_training_sets": <total working sets/week, all muscles>
  },
  "target_weight_kg": <target weight>,                     // or --target-weight
  "personal_p_ratio_history": [<0-1>, ...],                // optional
  "scan_history": [                                        // optional
    {
      "date": "MM/DD/YYYY",
      "total_mass_kg": <kg>,
      "fat_mass_kg": <kg>,
      "lean_mass_kg": <kg>,
      "body_fat_percent": <%>,
      "conditions": {                                      // optional
        "time_of_day": "<morning_fasted|morning_fed|afternoon|evening>",
        "hydration_status": "<normal|dehydrated|overhydrated|unknown>",
        "recent_workout": <true|false>,
        "same_provider_as_previous": <true|false>
      }
    }
  ]
}

Notes:
- A target below the current weight uses the P-ratio (fat loss) model
- A target above the current weight uses the muscle-gain model
- personal_p_ratio_history overrides ratios measured from scan_history
- Only weight-loss scan pairs at least 14 days apart with >= 1 kg of change
  are used as personal history
- Scan-derived ratios above 1.0 (recomp pairs) are capped at 1.0
    """
    print(help_text)


if __name__ == "__main__":
    exit(main())
