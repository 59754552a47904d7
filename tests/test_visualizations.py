"""Tests for hotspot charts and the summary table outputs."""

import sys
from pathlib import Path

import pandas as pd
import pytest
from matplotlib.axes import Axes

sys.path.append(str(Path(__file__).parent.parent))

from src.analysis.hotspot_analysis import HotspotAnalyzer
from src.reporting.visualizations import HotspotReportGenerator, safe_filename


def _weighted_records():
    rows = [
        ('Scenario 1 (base)', 'Climate change', 'Pt', 40.0, 'Production'),
        ('Scenario 1 (base)', 'Climate change', 'Pt', 10.0, 'Use'),
        ('Scenario 1 (base)', 'Particulate matter', 'Pt', 30.0, 'Use'),
        ('Scenario 1 (base)', 'Water use', 'Pt', 15.0, 'Production'),
        ('Scenario 1 (base)', 'Land use', 'Pt', 5.0, 'End of life'),
        ('Scenario 2/CO₂', 'Climate change', 'Pt', 20.0, 'Production'),
        ('Scenario 2/CO₂', 'Climate change', 'Pt', -5.0, 'End of life'),
        ('Scenario 2/CO₂', 'Water use', 'Pt', 60.0, 'Production'),
    ]
    return pd.DataFrame(rows, columns=['Scenario', 'Indicator', 'Unit', 'Quantity', 'LifeCyclePhase'])


@pytest.fixture
def analysis():
    return HotspotAnalyzer().run_full_analysis(_weighted_records())


def test_safe_filename_replaces_every_special_character():
    assert safe_filename('Scenario 1 (base)') == 'Scenario_1__base_'
    assert safe_filename('Scenario 2/CO₂') == 'Scenario_2_CO_'
    assert safe_filename('Plain42') == 'Plain42'


def test_most_relevant_categories_chart_written(tmp_path, analysis):
    generator = HotspotReportGenerator(output_dir=tmp_path)

    path = generator.plot_most_relevant_categories(analysis['category_hotspots'], 'Scenario 1 (base)')

    assert path == tmp_path / 'figures' / 'MostRelevantICS_Scenario_1__base_.png'
    assert path.exists()


def _record_titles(monkeypatch):
    titles = []
    original = Axes.set_title

    def set_title(self, label, *args, **kwargs):
        titles.append(label)
        return original(self, label, *args, **kwargs)

    monkeypatch.setattr(Axes, 'set_title', set_title)
    return titles


@pytest.mark.parametrize('add_title, expected', [
    (True, ['Most Relevant Impact Categories\nScenario 2/CO₂']),
    (False, []),
])
def test_chart_title_toggle(tmp_path, analysis, monkeypatch, add_title, expected):
    generator = HotspotReportGenerator(output_dir=tmp_path)
    titles = _record_titles(monkeypatch)

    path = generator.plot_most_relevant_categories(
        analysis['category_hotspots'], 'Scenario 2/CO₂', add_title=add_title
    )

    assert path.exists()
    assert titles == expected


def test_unknown_scenario_not_plotted(tmp_path, analysis):
    generator = HotspotReportGenerator(output_dir=tmp_path)

    assert generator.plot_most_relevant_categories(analysis['category_hotspots'], 'Missing') is None
    assert not list((tmp_path / 'figures').iterdir())


def test_phase_charts_written(tmp_path, analysis):
    generator = HotspotReportGenerator(output_dir=tmp_path)
    matrix = analysis['phase_matrices']['Scenario 2/CO₂']

    stacked = generator.plot_phase_contributions(matrix, 'Scenario 2/CO₂')
    heatmap = generator.plot_phase_heatmap(matrix, 'Scenario 2/CO₂')

    assert stacked.name == 'PhaseContributions_Scenario_2_CO_.png'
    assert heatmap.name == 'PhaseHeatmap_Scenario_2_CO_.png'
    assert stacked.exists() and heatmap.exists()


def test_empty_inputs_skip_charts(tmp_path):
    generator = HotspotReportGenerator(output_dir=tmp_path)

    assert generator.plot_phase_contributions(pd.DataFrame(), 'X') is None
    assert generator.plot_phase_heatmap(pd.DataFrame(), 'X') is None
    assert generator.plot_scenario_comparison(pd.DataFrame()) is None


def test_scenario_comparison_written(tmp_path, analysis):
    generator = HotspotReportGenerator(output_dir=tmp_path)

    path = generator.plot_scenario_comparison(analysis['scenario_totals'])

    assert path == tmp_path / 'figures' / 'ScenarioComparison.png'
    assert path.exists()


def test_summary_table_outputs(tmp_path, analysis):
    generator = HotspotReportGenerator(output_dir=tmp_path)

    paths = generator.generate_summary_table(analysis['summary'])

    assert set(paths) == {'csv', 'markdown', 'excel'}
    assert all(path.exists() for path in paths.values())

    csv = pd.read_csv(paths['csv'])
    assert set(csv['Scenario']) == {'Scenario 1 (base)', 'Scenario 2/CO₂'}

    markdown = paths['markdown'].read_text(encoding='utf-8')
    assert '## Scenario 2/CO₂' in markdown
    assert '| 1 | Climate change |' in markdown

    workbook = pd.read_excel(paths['excel'], sheet_name='Hotspots', engine='openpyxl')
    assert len(workbook) == len(analysis['summary'])


def test_empty_summary_table(tmp_path):
    generator = HotspotReportGenerator(output_dir=tmp_path)
    empty = HotspotAnalyzer().build_summary_table(
        pd.DataFrame({'Scenario': [], 'Indicator': [], 'relevant': pd.Series([], dtype=bool)}), pd.DataFrame()
    )

    paths = generator.generate_summary_table(empty)

    assert 'No relevant impact categories' in paths['markdown'].read_text(encoding='utf-8')
