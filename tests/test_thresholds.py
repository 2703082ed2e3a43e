"""Tests for threshold JSON parsing and lookup."""

import json
import math

import pytest

from outlier_accuracy.accuracy.inputs import read_thresholds
from outlier_accuracy.accuracy.thresholds import ThresholdTable, coerce_threshold


@pytest.mark.parametrize("raw,expected", [
    (5, 5.0),
    (5.25, 5.25),
    ([5.25], 5.25),
    ("5.25", 5.25),
    (None, None),
    ([], None),
    ([1.0, 2.0], None),
    ("NA", None),
    ("", None),
    (True, None),
    (math.nan, None),
    ({"value": 1}, None),
])
def test_coerce_threshold(raw, expected):
    assert coerce_threshold(raw) == expected


@pytest.fixture
def threshold_table() -> ThresholdTable:
    return ThresholdTable.model_validate({
        "pan_cancer": {"high": {"ADCY3": [5], "KRAS": 2.5}, "low": {"ADCY3": [0.1]}},
        "pan_disease": {"high": {"KRAS": ["NA"]}},
        "first_degree": {"high": {}},
        "nof1_disease": {"high": None, "extra": "ignored"},
    })


def test_table_cohorts(threshold_table):
    assert threshold_table.cohorts == ["pan_cancer", "pan_disease", "first_degree", "nof1_disease"]


def test_resolve_present(threshold_table):
    assert threshold_table.resolve("ADCY3", "pan_cancer") == 5.0
    assert threshold_table.resolve("KRAS", "pan_cancer") == 2.5
    assert threshold_table.resolve("ADCY3", "pan_cancer", direction="low") == 0.1


def test_resolve_missing_never_raises(threshold_table):
    """Absent gene, absent cohort and NA value all resolve to None."""
    assert threshold_table.resolve("ADCY3", "pan_disease") is None
    assert threshold_table.resolve("KRAS", "pan_disease") is None
    assert threshold_table.resolve("ADCY3", "first_degree") is None
    assert threshold_table.resolve("ADCY3", "nof1_disease") is None
    assert threshold_table.resolve("ADCY3", "first_and_second_degree") is None


def test_threshold_block_must_be_object():
    with pytest.raises(ValueError):
        ThresholdTable.model_validate({"pan_cancer": {"high": [1, 2, 3]}})


def test_read_thresholds_file(tmp_path):
    path = tmp_path / "thresholds.json"
    path.write_text(json.dumps({"pan_cancer": {"high": {"ADCY3": [5.0]}}}))

    table = read_thresholds(path)

    assert table.resolve("ADCY3", "pan_cancer") == 5.0


def test_read_thresholds_malformed(tmp_path):
    path = tmp_path / "thresholds.json"
    path.write_text("{not json")

    with pytest.raises(ValueError, match="Malformed JSON"):
        read_thresholds(path)


def test_read_thresholds_not_an_object(tmp_path):
    path = tmp_path / "thresholds.json"
    path.write_text(json.dumps(["pan_cancer"]))

    with pytest.raises(ValueError, match="Malformed threshold JSON"):
        read_thresholds(path)


def test_read_thresholds_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_thresholds(tmp_path / "absent.json")
