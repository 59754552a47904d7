import json
import sys
from pathlib import Path

import numpy as np

sys.path.append(str(Path(__file__).parent.parent))

from src.utils.analysis_logger import AnalysisLogger, convert_to_json_serializable


def test_phases_metrics_and_outputs_saved(tmp_path):
    run_log = AnalysisLogger(output_dir=tmp_path)
    output_file = tmp_path / "hotspots" / "category_hotspots.csv"
    output_file.parent.mkdir()
    output_file.write_text("Scenario,Indicator\n", encoding="utf-8")

    run_log.start_phase("Hotspot analysis", "Rank contributors")
    run_log.add_metric("relevant_categories", np.int64(4), "Scenario/category pairs flagged")
    run_log.add_output(
        output_file, "csv", "Category hotspots",
        calculation_steps=["Weighted results grouped by Scenario and Indicator.", "Flagged up to 80%."],
    )
    run_log.complete_phase(success=True)

    log_path = run_log.save_log()

    text = log_path.read_text(encoding="utf-8")
    assert "Hotspot analysis" in text
    assert "relevant_categories: 4" in text

    payload = json.loads(log_path.with_suffix(".json").read_text(encoding="utf-8"))
    phase = payload["phases"][0]
    assert phase["metrics"]["relevant_categories"]["value"] == 4
    assert phase["success"] is True

    note = output_file.with_name("category_hotspots_calculation.md")
    content = note.read_text(encoding="utf-8")
    assert "1. Weighted results grouped by Scenario and Indicator." in content
    assert "2. Flagged up to 80%." in content
    assert "relevant_categories: 4" in content


def test_failed_phase_counted(tmp_path):
    run_log = AnalysisLogger(output_dir=tmp_path)

    run_log.start_phase("Load results")
    run_log.complete_phase(success=False, message="Input file not found")

    stats = run_log.get_summary_stats()
    assert stats["failed_phases"] == 1
    assert stats["overall_success"] is False
    assert "[FAILED] Phase 1: Load results" in run_log.generate_text_summary()


def test_open_phase_closed_when_next_starts(tmp_path):
    run_log = AnalysisLogger(output_dir=tmp_path)

    run_log.start_phase("Load results")
    run_log.start_phase("Filter results")
    run_log.complete_phase()

    assert [p["phase_name"] for p in run_log.phases] == ["Load results", "Filter results"]
    assert run_log.get_summary_stats()["successful_phases"] == 2


def test_metric_without_active_phase_ignored(tmp_path):
    run_log = AnalysisLogger(output_dir=tmp_path)

    run_log.add_metric("orphan", 1)

    assert run_log.phases == []


def test_convert_to_json_serializable_handles_numpy_and_paths():
    converted = convert_to_json_serializable({
        "count": np.int64(3),
        "share": np.float64(0.8),
        "flag": np.bool_(True),
        "values": np.array([1, 2]),
        "path": Path("out") / "figure.png",
    })

    assert converted == {
        "count": 3,
        "share": 0.8,
        "flag": True,
        "values": [1, 2],
        "path": str(Path("out") / "figure.png"),
    }
    json.dumps(converted)
