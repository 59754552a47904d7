"""Tests for loading LCA results from workbooks and CSV exports."""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

sys.path.append(str(Path(__file__).parent.parent))

from src.acquisition.results_loader import LCAResultsLoader, RECORD_COLUMNS


def _export_rows():
    return pd.DataFrame({
        'Scenario': ['Baseline', 'Baseline', 'Baseline', ' Recycled '],
        'Impact category': ['Climate change', 'Climate change', 'Water use', 'Climate change'],
        'Unit': ['kg CO2 eq', 'kg CO2 eq', 'm3 depriv.', 'kg CO2 eq'],
        'Value': [12.0, 'below LOD', 3.5, 8.0],
        'Life cycle stage': ['Production', 'Use', 'Production', None],
    })


def _write_workbook(path: Path):
    characterised = _export_rows()
    weighted = characterised.assign(Unit='Pt', Value=[1.2, 0.3, 0.4, 0.9])
    with pd.ExcelWriter(path, engine='openpyxl') as writer:
        characterised.to_excel(writer, sheet_name='Characterisation', index=False)
        weighted.to_excel(writer, sheet_name='Weighting', index=False)


def test_csv_headers_standardized_and_quantities_coerced(tmp_path):
    csv_path = tmp_path / 'results.csv'
    _export_rows().to_csv(csv_path, index=False)

    loader = LCAResultsLoader(csv_path)
    df = loader.load_sheet()

    assert list(df.columns) == RECORD_COLUMNS
    assert df['Quantity'].dtype == np.float64
    assert df['Quantity'].isna().sum() == 1
    assert loader.load_report['non_numeric_quantities'] == 1
    assert loader.load_report['records_loaded'] == 4


def test_text_columns_stripped_and_missing_phase_defaulted(tmp_path):
    loader = LCAResultsLoader(tmp_path / 'unused.csv')

    df = loader.standardize_records(_export_rows())

    assert df.loc[3, 'Scenario'] == 'Recycled'
    assert df.loc[3, 'LifeCyclePhase'] == 'Total'


def test_missing_phase_column_uses_default_phase(tmp_path):
    loader = LCAResultsLoader(tmp_path / 'unused.csv')
    raw = _export_rows().drop(columns=['Life cycle stage'])

    df = loader.standardize_records(raw)

    assert (df['LifeCyclePhase'] == 'Total').all()


def test_standardize_does_not_modify_input(tmp_path):
    loader = LCAResultsLoader(tmp_path / 'unused.csv')
    raw = _export_rows()
    before = raw.copy()

    loader.standardize_records(raw)

    pd.testing.assert_frame_equal(raw, before)


def test_missing_required_columns_raise(tmp_path):
    loader = LCAResultsLoader(tmp_path / 'unused.csv')
    raw = pd.DataFrame({'Scenario': ['A'], 'Unit': ['Pt']})

    with pytest.raises(ValueError, match='missing'):
        loader.standardize_records(raw)


def _records_with_extra_column(name, position):
    raw = pd.DataFrame({
        'Scenario': ['Baseline', 'Baseline'],
        'Indicator': ['Climate change', 'Water use'],
        'Unit': ['Pt', 'Pt'],
        'Quantity': [1.5, 0.5],
        'Phase': ['Production', 'Use'],
    })
    raw.insert(position, name, ['Total', 'n/a'])
    return raw


@pytest.mark.parametrize('name, position', [
    ('Value', 3),
    ('Impact category', 1),
])
def test_canonical_column_wins_over_alias(tmp_path, name, position):
    loader = LCAResultsLoader(tmp_path / 'unused.csv')

    df = loader.standardize_records(_records_with_extra_column(name, position))

    assert list(df.columns) == RECORD_COLUMNS
    assert df['Quantity'].tolist() == [1.5, 0.5]
    assert df['Indicator'].tolist() == ['Climate change', 'Water use']


def test_missing_file_raises(tmp_path):
    loader = LCAResultsLoader(tmp_path / 'does_not_exist.xlsx')

    with pytest.raises(FileNotFoundError):
        loader.load_results('weighted')


def test_workbook_sheets_loaded_by_kind(tmp_path):
    workbook = tmp_path / 'results.xlsx'
    _write_workbook(workbook)
    loader = LCAResultsLoader(workbook)

    assert loader.list_sheets() == ['Characterisation', 'Weighting']

    weighted = loader.load_results('weighted')
    characterised = loader.load_results('characterised')

    assert (weighted['Unit'] == 'Pt').all()
    assert weighted['Quantity'].notna().all()
    assert characterised['Quantity'].isna().sum() == 1
    assert loader.load_report['records_loaded'] == 8


def test_unknown_result_kind_rejected(tmp_path):
    loader = LCAResultsLoader(tmp_path / 'results.xlsx')

    with pytest.raises(ValueError):
        loader.load_results('normalised')
