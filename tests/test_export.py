"""
Tests for match result export.
"""

import csv
import json

import pytest

from skillswap.export import ExportManager
from skillswap.matching import MatchingEngine


@pytest.fixture
def results(js_mentor, python_mentor, profile_factory):
    pool = [python_mentor, profile_factory("carol", offers=["Python", "Go"], wants=[])]
    return MatchingEngine().find_matches(js_mentor, pool)


class TestExport:
    """CSV and JSON output."""

    def test_csv(self, tmp_path, results):
        path = ExportManager(score_precision=3).export_match_results(
            results, "csv", str(tmp_path / "out.csv"))

        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))

        assert [row["rank"] for row in rows] == ["1", "2"]
        assert rows[0]["candidate_id"] == "bob"
        assert rows[0]["total"] == "0.875"
        assert rows[0]["boost_rule"] == "perfect_bidirectional"
        assert rows[1]["candidate_offers"] == "Python; Go"

    def test_json(self, tmp_path, results):
        path = ExportManager().export_match_results(results, "json", str(tmp_path / "out.json"))

        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        assert data["subject_id"] == "alice"
        assert data["total_matches"] == 2
        assert data["matches"][0]["total"] == 0.875
        assert data["matches"][0]["weights"]["w1"] == 0.3

    def test_default_filename(self, tmp_path, results):
        path = ExportManager(output_directory=str(tmp_path / "exports")).export_match_results(results, "json")
        assert path.startswith(str(tmp_path / "exports" / "skillswap_matches_alice_"))
        assert path.endswith(".json")

    def test_empty_results(self):
        assert ExportManager().export_match_results([], "csv") == ""

    def test_unsupported_format(self, results):
        with pytest.raises(ValueError):
            ExportManager().export_match_results(results, "xml")
