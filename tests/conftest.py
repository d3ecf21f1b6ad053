"""
Shared fixtures for the RecompProjector test suite.
"""

import json

import pytest


@pytest.fixture
def sample_config():
    """Valid configuration for an 85 kg lifter cutting to 80 kg"""
    return {
        "user_info": {
            "height_cm": 178,
            "biological_sex": "male",
            "training_age": "intermediate",
            "is_enhanced": False,
            "age": 35,
        },
        "current": {"weight_kg": 85.0, "body_fat_percent": 20.0},
        "nutrition": {
            "avg_daily_protein_grams": 170,
            "tdee_cals": 2700,
            "avg_daily_intake_cals": 2200,
        },
        "training": {"avg_weekly_training_sets": 16},
        "target_weight_kg": 80.0,
        "scan_history": [
            {
                "date": "01/15/2024",
                "total_mass_kg": 92.0,
                "fat_mass_kg": 23.0,
                "lean_mass_kg": 65.2,
                "body_fat_percent": 25.0,
            },
            {
                "date": "04/15/2024",
                "total_mass_kg": 88.0,
                "fat_mass_kg": 19.8,
                "lean_mass_kg": 64.4,
                "body_fat_percent": 22.5,
            },
        ],
    }


@pytest.fixture
def config_file(tmp_path, sample_config):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(sample_config))
    return str(path)
