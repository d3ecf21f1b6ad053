#!/usr/bin/env python3
"""
End-to-end tests for the projection CLI and the run_analysis entry point.
"""

import json

import pandas as pd
import pytest

from core import run_analysis
from run_analysis import main


def test_cli_prints_loss_projection(config_file, capsys):
    """Full run against a valid config prints the summary and scenario table"""
    exit_code = main([config_file])
    output = capsys.readouterr().out

    assert exit_code == 0
    assert "P-ratio: 0.77" in output
    assert "Moderate deficit (15-20%)" in output
    assert "Using learned P-ratio from 1 DEXA scan pair(s) (35% weight)" in output
    assert "Estimated time to target: 11 weeks, 0 days" in output
    assert "| Scenario" in output
    assert "Pessimistic" in output and "Optimistic" in output


def test_cli_target_weight_override_uses_gain_model(config_file, capsys):
    exit_code = main(["--config", config_file, "--target-weight", "88"])
    output = capsys.readouterr().out

    assert exit_code == 0
    assert "Muscle gain ratio:" in output
    assert "Weight gain partitioning has high individual variance" in output
    assert "Confidence: low" in output


def test_cli_writes_csv(config_file, tmp_path, capsys):
    csv_path = tmp_path / "scenarios.csv"
    exit_code = main([config_file, "-o", str(csv_path)])

    assert exit_code == 0
    table = pd.read_csv(csv_path)
    assert list(table["Scenario"]) == ["Pessimistic", "Expected", "Optimistic"]
    assert (table["Lean (kg)"] + table["Fat (kg)"]).round(6).eq(80.0).all()


def test_cli_missing_config_file(tmp_path, capsys):
    exit_code = main([str(tmp_path / "nope.json")])
    output = capsys.readouterr().out

    assert exit_code == 1
    assert "Configuration file not found" in output


def test_cli_help_config(capsys):
    assert main(["--help-config"]) == 0
    assert "JSON Configuration Format" in capsys.readouterr().out


def test_invalid_config_returns_error_code(tmp_path, sample_config, capsys):
    sample_config["current"]["body_fat_percent"] = 140
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(sample_config))

    assert run_analysis(config_path=str(path)) == 1
    assert "Error:" in capsys.readouterr().out


def test_malformed_json_returns_error_code(tmp_path, capsys):
    path = tmp_path / "broken.json"
    path.write_text("{not json")

    assert run_analysis(config_path=str(path)) == 1


def test_equal_target_returns_error_code(config_file, capsys):
    assert run_analysis(config_path=config_file, target_weight_kg=85.0) == 1
    assert "nothing to project" in capsys.readouterr().out


def test_return_results(config_file):
    results = run_analysis(config_path=config_file, return_results=True)

    assert results["partitioning"].final_p_ratio == 0.77
    assert results["current_ffmi"].normalized_ffmi > 0
    assert len(results["table"]) == 3


def test_return_results_raises_errors(config_file):
    with pytest.raises(ValueError):
        run_analysis(config_path=config_file, target_weight_kg=85.0, return_results=True)
