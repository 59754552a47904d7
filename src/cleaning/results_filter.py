"""
LCA Results Filtering Module

Restricts results to the indicators of a chosen impact-assessment methodology
and removes rows that are not impacts (e.g. the "Credits" phase).
"""

import pandas as pd
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple
from loguru import logger

import sys
sys.path.append(str(Path(__file__).parent.parent.parent))
from config.config import get_filter_settings, get_methodology_indicators


def _normalize_labels(values: Iterable[str]) -> set:
    return {str(v).strip().lower() for v in values}


class ResultsFilter:
    """
    Filters LCA records by methodology allow-list and non-impact rows.
    """

    def __init__(self):
        """Initialize the filter with configuration settings."""
        self.settings = get_filter_settings()
        self.filter_report = {
            'total_records': 0,
            'missing_quantities': 0,
            'excluded_phase_rows': 0,
            'excluded_indicator_rows': 0,
            'outside_methodology_rows': 0,
            'records_passed': 0
        }

        logger.info("Initialized LCA Results Filter")

    def filter_results(
        self,
        df: pd.DataFrame,
        methodology: Optional[str] = None
    ) -> Tuple[pd.DataFrame, Dict]:
        """
        Run the filter pipeline on a records table.

        Args:
            df: Records DataFrame from the loader
            methodology: Methodology whose indicators to keep. None keeps all indicators.

        Returns:
            Tuple of (filtered DataFrame, filter report)
        """
        self.filter_report['total_records'] = len(df)
        self.filter_report['missing_quantities'] = int(df['Quantity'].isna().sum())
        logger.info(f"Filtering {len(df):,} records...")

        df = self.remove_non_impact_phases(df)
        if methodology:
            df = self.filter_methodology(df, methodology)

        self.filter_report['records_passed'] = len(df)
        self.log_filter_summary()

        return df, self.filter_report

    def filter_methodology(self, df: pd.DataFrame, methodology: str) -> pd.DataFrame:
        """
        Keep only indicators that belong to the methodology.

        Matching ignores case and surrounding whitespace.

        Args:
            df: Records DataFrame
            methodology: Configured methodology name

        Returns:
            DataFrame restricted to the methodology's indicators
        """
        allowed = _normalize_labels(get_methodology_indicators(methodology))
        keep_mask = df['Indicator'].astype(str).str.strip().str.lower().isin(allowed)

        removed = int((~keep_mask).sum())
        if removed > 0:
            dropped = sorted(df.loc[~keep_mask, 'Indicator'].astype(str).unique())
            logger.info(f"Removed {removed:,} rows outside methodology '{methodology}': {dropped}")

        self.filter_report['outside_methodology_rows'] = removed
        return df[keep_mask].copy()

    def remove_non_impact_phases(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Drop rows for excluded phases (credits) and excluded indicators.

        Args:
            df: Records DataFrame

        Returns:
            DataFrame without non-impact rows
        """
        excluded_phases = _normalize_labels(self.settings['excluded_phases'])
        excluded_indicators = _normalize_labels(self.settings['excluded_indicators'])

        phase_mask = df['LifeCyclePhase'].astype(str).str.strip().str.lower().isin(excluded_phases)
        indicator_mask = df['Indicator'].astype(str).str.strip().str.lower().isin(excluded_indicators)

        self.filter_report['excluded_phase_rows'] = int(phase_mask.sum())
        self.filter_report['excluded_indicator_rows'] = int((indicator_mask & ~phase_mask).sum())

        removal_mask = phase_mask | indicator_mask
        if removal_mask.any():
            logger.info(f"Removed {int(removal_mask.sum()):,} non-impact rows")

        return df[~removal_mask].copy()

    def log_filter_summary(self):
        """Log a summary of the filter run."""
        logger.info("=" * 60)
        logger.info("FILTER SUMMARY")
        logger.info("=" * 60)
        logger.info(f"Total records: {self.filter_report['total_records']:,}")
        logger.info(f"Missing quantities (kept, skipped in sums): {self.filter_report['missing_quantities']:,}")
        logger.info(f"Excluded phase rows: {self.filter_report['excluded_phase_rows']:,}")
        logger.info(f"Excluded indicator rows: {self.filter_report['excluded_indicator_rows']:,}")
        logger.info(f"Rows outside methodology: {self.filter_report['outside_methodology_rows']:,}")
        logger.info(f"Records passed: {self.filter_report['records_passed']:,}")

        if self.filter_report['total_records'] > 0:
            pass_rate = self.filter_report['records_passed'] / self.filter_report['total_records'] * 100
            logger.info(f"Pass rate: {pass_rate:.1f}%")
