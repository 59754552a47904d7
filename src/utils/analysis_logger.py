"""
Run log for the hotspot pipeline.

Records each pipeline phase with its metrics and written files, and writes a
short Markdown note next to every output describing how it was calculated.
"""

from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List, Optional
import json
import numpy as np
from loguru import logger


def convert_to_json_serializable(obj: Any) -> Any:
    """Recursively convert numpy scalars/arrays and paths to JSON types."""
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, dict):
        return {key: convert_to_json_serializable(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [convert_to_json_serializable(item) for item in obj]
    return obj


def format_metric_value(value: Any) -> str:
    """Format counts with thousands separators and shares/totals with 2 decimals."""
    if isinstance(value, (float, np.floating)):
        return f"{value:,.0f}" if abs(value) >= 1000 else f"{value:.2f}"
    if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
        return f"{value:,}"
    return str(value)


class AnalysisLogger:
    """
    Keeps the record of one pipeline run: load, filter, hotspot analysis, reporting.
    """

    def __init__(self, output_dir: Path = None):
        """
        Initialize the run log.

        Args:
            output_dir: Directory for analysis_log.txt / analysis_log.json
        """
        if output_dir is None:
            from config.config import DATA_OUTPUTS_DIR
            output_dir = DATA_OUTPUTS_DIR

        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.start_time = datetime.now()
        self.phases: List[Dict[str, Any]] = []
        self.current_phase: Optional[Dict[str, Any]] = None
        self.metadata: Dict[str, Any] = {'run_started': self.start_time.isoformat()}

    def start_phase(self, phase_name: str, description: str = ""):
        """Open a phase; an unfinished previous phase is closed as successful."""
        if self.current_phase is not None:
            self.complete_phase(success=True, message="Closed when next phase started")

        self.current_phase = {
            'phase_number': len(self.phases) + 1,
            'phase_name': phase_name,
            'description': description,
            'started': datetime.now(),
            'duration_seconds': None,
            'success': None,
            'message': "",
            'metrics': {},
            'outputs': []
        }
        logger.info(f"Starting phase {self.current_phase['phase_number']}: {phase_name}")

    def add_metric(self, key: str, value: Any, description: str = ""):
        """Attach a metric (e.g. relevant_categories) to the open phase."""
        if self.current_phase is None:
            logger.warning(f"Metric '{key}' dropped - no open phase")
            return
        self.current_phase['metrics'][key] = {'value': value, 'description': description}

    def add_output(
        self,
        output_path,
        output_type: str = "file",
        description: str = "",
        calculation_steps: Optional[List[str]] = None,
    ):
        """
        Register a written file and document it in <stem>_calculation.md.

        Args:
            output_path: Written file
            output_type: csv, png, markdown, excel
            description: What the file contains
            calculation_steps: How the numbers in the file were derived
        """
        if self.current_phase is None:
            logger.warning(f"Output '{output_path}' dropped - no open phase")
            return

        output_path = Path(output_path)
        note_path = self._write_calculation_note(output_path, output_type, description, calculation_steps)
        self.current_phase['outputs'].append({
            'path': str(output_path),
            'type': output_type,
            'description': description,
            'documentation': str(note_path),
        })

    def complete_phase(self, success: bool = True, message: str = ""):
        """Close the open phase, recording its outcome and duration."""
        phase = self.current_phase
        if phase is None:
            logger.warning("No open phase to complete")
            return

        phase['duration_seconds'] = (datetime.now() - phase['started']).total_seconds()
        phase['success'] = success
        phase['message'] = message
        self.phases.append(phase)
        self.current_phase = None

        status = "✓" if success else "✗"
        logger.info(f"{status} Phase {phase['phase_number']} {phase['phase_name']} ({phase['duration_seconds']:.1f}s)")

    def set_metadata(self, key: str, value: Any):
        """Record a run-level setting such as the methodology."""
        self.metadata[key] = value

    def _write_calculation_note(
        self,
        output_path: Path,
        output_type: str,
        description: str,
        calculation_steps: Optional[List[str]],
    ) -> Path:
        note_path = output_path.with_name(f"{output_path.stem}_calculation.md")
        note_path.parent.mkdir(parents=True, exist_ok=True)

        steps = calculation_steps or [f"Written by the '{self.current_phase['phase_name']}' phase."]
        lines = [
            f"# {output_path.name}",
            "",
            f"- Phase: {self.current_phase['phase_name']}",
            f"- Type: {output_type}",
            f"- Written: {datetime.now().isoformat(timespec='seconds')}",
            "",
            description or "LCA hotspot pipeline output.",
            "",
            "## Calculation",
        ]
        lines.extend(f"{i}. {step}" for i, step in enumerate(steps, start=1))

        metrics = self.current_phase['metrics']
        if metrics:
            lines.extend(["", "## Phase metrics"])
            lines.extend(
                f"- {key}: {format_metric_value(data['value'])}" for key, data in metrics.items()
            )

        note_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        logger.debug(f"Calculation note written: {note_path}")
        return note_path

    def generate_text_summary(self) -> str:
        """Plain-text report of the run, one block per phase."""
        stats = self.get_summary_stats()
        rule = "=" * 80
        lines = [rule, "ANALYSIS LOG - LCA Hotspot Reporting", rule]
        lines.extend(f"{key}: {value}" for key, value in self.metadata.items())
        lines.extend([
            "",
            f"Phases: {stats['total_phases']} "
            f"({stats['successful_phases']} succeeded, {stats['failed_phases']} failed) "
            f"in {stats['total_duration_seconds']:.1f}s",
        ])

        for phase in self.phases:
            status = "COMPLETED" if phase['success'] else "FAILED"
            lines.extend(["", f"[{status}] Phase {phase['phase_number']}: {phase['phase_name']}"])
            if phase['description']:
                lines.append(f"  {phase['description']}")
            if phase['message']:
                lines.append(f"  Message: {phase['message']}")
            for key, data in phase['metrics'].items():
                suffix = f" - {data['description']}" if data['description'] else ""
                lines.append(f"  • {key}: {format_metric_value(data['value'])}{suffix}")
            for output in phase['outputs']:
                lines.append(f"  → [{output['type']}] {output['path']}")

        lines.extend(["", rule])
        return "\n".join(lines)

    def save_log(self, filename: str = "analysis_log.txt") -> Path:
        """
        Write the text log and a JSON copy beside it.

        Returns:
            Path to the text log
        """
        self.metadata['run_finished'] = datetime.now().isoformat()

        log_path = self.output_dir / filename
        log_path.write_text(self.generate_text_summary(), encoding="utf-8")

        phases = [{**phase, 'started': phase['started'].isoformat()} for phase in self.phases]
        with open(log_path.with_suffix('.json'), 'w', encoding='utf-8') as f:
            json.dump(convert_to_json_serializable({'metadata': self.metadata, 'phases': phases}), f, indent=2)

        logger.info(f"Analysis log saved to: {log_path}")
        return log_path

    def get_summary_stats(self) -> Dict[str, Any]:
        """Counts of succeeded/failed phases and total duration."""
        successful = sum(1 for p in self.phases if p['success'])
        failed = len(self.phases) - successful

        return {
            'total_phases': len(self.phases),
            'successful_phases': successful,
            'failed_phases': failed,
            'total_duration_seconds': sum(p['duration_seconds'] for p in self.phases),
            'overall_success': failed == 0 and successful > 0
        }
