"""
LCA Results Loader

Reads impact-assessment results exported from LCA software into a tidy table
of (Scenario, Indicator, Unit, Quantity, LifeCyclePhase) records.
"""

import pandas as pd
from pathlib import Path
from typing import Dict, List, Optional
from loguru import logger

import sys
sys.path.append(str(Path(__file__).parent.parent.parent))
from config.config import get_input_settings, DATA_RAW_DIR, RESULT_KINDS


RECORD_COLUMNS = ['Scenario', 'Indicator', 'Unit', 'Quantity', 'LifeCyclePhase']
TEXT_COLUMNS = ['Scenario', 'Indicator', 'Unit', 'LifeCyclePhase']

# Header variants seen in LCA software exports, keyed by normalized header
COLUMN_ALIASES = {
    'scenario': 'Scenario',
    'product_system': 'Scenario',
    'indicator': 'Indicator',
    'impact_category': 'Indicator',
    'impact_categories': 'Indicator',
    'unit': 'Unit',
    'quantity': 'Quantity',
    'value': 'Quantity',
    'amount': 'Quantity',
    'result': 'Quantity',
    'lifecyclephase': 'LifeCyclePhase',
    'life_cycle_phase': 'LifeCyclePhase',
    'life_cycle_stage': 'LifeCyclePhase',
    'lifecyclestage': 'LifeCyclePhase',
    'phase': 'LifeCyclePhase',
    'stage': 'LifeCyclePhase',
}

EXCEL_SUFFIXES = {'.xlsx', '.xlsm'}


def _normalize_header(header) -> str:
    return '_'.join(str(header).strip().lower().replace('-', ' ').split())


class LCAResultsLoader:
    """
    Loads characterised and weighted LCA results from a workbook or CSV export.
    """

    def __init__(self, input_path: Optional[Path] = None):
        """
        Initialize the loader.

        Args:
            input_path: Workbook or CSV file. Defaults to the configured file in data/raw.
        """
        self.settings = get_input_settings()
        self.input_path = Path(input_path) if input_path else DATA_RAW_DIR / self.settings['file']
        self.load_report: Dict[str, int] = {
            'records_loaded': 0,
            'non_numeric_quantities': 0,
            'missing_quantities': 0,
        }

        logger.info(f"Initialized LCA Results Loader for: {self.input_path}")

    def list_sheets(self) -> List[str]:
        """Return sheet names of the input workbook (empty for CSV input)."""
        self._check_input_exists()
        if self.input_path.suffix.lower() not in EXCEL_SUFFIXES:
            return []
        return pd.ExcelFile(self.input_path, engine='openpyxl').sheet_names

    def load_results(self, kind: str) -> pd.DataFrame:
        """
        Load the sheet configured for a result kind.

        Args:
            kind: 'characterised' or 'weighted'

        Returns:
            Standardized records DataFrame
        """
        if kind not in RESULT_KINDS:
            raise ValueError(f"Unknown result kind '{kind}'. Expected one of: {', '.join(RESULT_KINDS)}")

        sheet_name = self.settings['sheets'].get(kind)
        if sheet_name is None:
            raise ValueError(f"No sheet configured for '{kind}' results (config input.sheets.{kind}).")

        logger.info(f"Loading {kind} results from sheet '{sheet_name}'...")
        return self.load_sheet(sheet_name)

    def load_sheet(self, sheet_name: Optional[str] = None) -> pd.DataFrame:
        """
        Read one sheet and standardize it into records.

        Args:
            sheet_name: Sheet to read. Ignored for CSV input.

        Returns:
            DataFrame with columns Scenario, Indicator, Unit, Quantity, LifeCyclePhase
        """
        self._check_input_exists()

        if self.input_path.suffix.lower() in EXCEL_SUFFIXES:
            raw = pd.read_excel(self.input_path, sheet_name=sheet_name or 0, engine='openpyxl')
        else:
            raw = pd.read_csv(self.input_path)

        logger.info(f"Read {len(raw):,} rows from {self.input_path.name}")
        return self.standardize_records(raw)

    def standardize_records(self, raw: pd.DataFrame) -> pd.DataFrame:
        """
        Rename header variants, coerce types and keep the record columns.

        Non-numeric quantities become NaN so that aggregation skips them.
        """
        df = raw.rename(columns=self._column_mapping(raw.columns))

        if 'LifeCyclePhase' not in df.columns and {'Scenario', 'Indicator', 'Quantity'}.issubset(df.columns):
            logger.warning(
                f"No life-cycle phase column found; treating every row as phase '{self.settings['default_phase']}'"
            )
            df['LifeCyclePhase'] = self.settings['default_phase']

        if 'Unit' not in df.columns and {'Scenario', 'Indicator', 'Quantity'}.issubset(df.columns):
            df['Unit'] = ''

        missing = [col for col in RECORD_COLUMNS if col not in df.columns]
        if missing:
            raise ValueError(f"Input must contain columns {RECORD_COLUMNS}; missing: {missing}")

        df = df[RECORD_COLUMNS].copy()
        df = self._coerce_quantity(df)

        for col in TEXT_COLUMNS:
            df[col] = df[col].where(df[col].notna(), '').astype(str).str.strip()

        empty_phase = df['LifeCyclePhase'] == ''
        if empty_phase.any():
            df.loc[empty_phase, 'LifeCyclePhase'] = self.settings['default_phase']

        self.load_report['records_loaded'] += len(df)
        self.load_report['missing_quantities'] += int(df['Quantity'].isna().sum())

        logger.info(
            f"Standardized {len(df):,} records "
            f"({df['Scenario'].nunique()} scenarios, {df['Indicator'].nunique()} indicators)"
        )
        return df

    def _coerce_quantity(self, df: pd.DataFrame) -> pd.DataFrame:
        original = df['Quantity']
        numeric = pd.to_numeric(original, errors='coerce')

        non_numeric = int((numeric.isna() & original.notna()).sum())
        if non_numeric > 0:
            logger.warning(f"Found {non_numeric:,} non-numeric quantities; treating them as missing")

        self.load_report['non_numeric_quantities'] += non_numeric
        df['Quantity'] = numeric.astype('float64')
        return df

    def _column_mapping(self, columns) -> Dict[str, str]:
        # A column already carrying the canonical name wins over any alias
        taken = {col for col in columns if col in RECORD_COLUMNS}
        mapping = {}
        for col in columns:
            if col in taken:
                continue
            canonical = COLUMN_ALIASES.get(_normalize_header(col))
            if canonical and canonical not in taken:
                mapping[col] = canonical
                taken.add(canonical)
            elif canonical:
                logger.debug(f"Ignoring column '{col}': '{canonical}' already present")
        return mapping

    def _check_input_exists(self):
        if not self.input_path.exists():
            raise FileNotFoundError(f"Input file not found: {self.input_path}")
