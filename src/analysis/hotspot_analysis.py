"""
Hotspot Analysis Module

Identifies the most relevant impact categories and life-cycle phases of each
scenario: contributors are ranked by absolute total and flagged until their
cumulative share of the group total reaches the hotspot threshold (80%).
"""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union
from loguru import logger

import sys
sys.path.append(str(Path(__file__).parent.parent.parent))
from config.config import get_hotspot_settings, ZERO_TOTAL_POLICIES, DATA_OUTPUTS_DIR


AGGREGATE_COLUMNS = [
    'total_quantity',
    'total_quantity_abs',
    'share',
    'rank',
    'cum_sum',
    'cum_per',
    'relevant',
]

# Cumulative shares within this distance below the threshold count as reaching it
FLOAT_TOLERANCE = 1e-9


def _as_list(columns: Union[str, Sequence[str], None]) -> List[str]:
    if columns is None:
        return []
    if isinstance(columns, str):
        return [columns]
    return list(columns)


def aggregate_hotspots(
    df: pd.DataFrame,
    by: Union[str, Sequence[str]],
    within: Union[str, Sequence[str], None] = None,
    value_col: str = 'Quantity',
    threshold: float = 0.8,
    zero_total_policy: str = 'none',
) -> pd.DataFrame:
    """
    Sum values per contributor and flag the contributors that make up the hotspot.

    Within each group defined by ``within``, contributors (``by``) are sorted by
    descending absolute total. Every contributor up to and including the first
    one whose cumulative share reaches ``threshold`` is flagged ``relevant``.
    Equal magnitudes keep their first-seen order.

    Args:
        df: Records table
        by: Contributor key column(s), e.g. 'Indicator' or 'LifeCyclePhase'
        within: Group column(s) ranked independently, e.g. 'Scenario'. None ranks the whole table.
        value_col: Numeric column to sum. NaN values are skipped.
        threshold: Cumulative share that closes the hotspot set, in (0, 1]
        zero_total_policy: Flags for groups whose absolute total is zero: 'none' or 'all'.
            Single-contributor groups are always relevant.

    Returns:
        DataFrame with the key columns followed by total_quantity, total_quantity_abs,
        share, rank, cum_sum, cum_per and relevant
    """
    by = _as_list(by)
    within = _as_list(within)

    if not by:
        raise ValueError("At least one contributor column is required in 'by'.")
    overlap = set(by) & set(within)
    if overlap:
        raise ValueError(f"Columns cannot be both contributor and group keys: {sorted(overlap)}")

    missing = [col for col in within + by + [value_col] if col not in df.columns]
    if missing:
        raise ValueError(f"Columns not found in data: {missing}")

    if not 0 < threshold <= 1:
        raise ValueError("Hotspot threshold must be in (0, 1].")
    if zero_total_policy not in ZERO_TOTAL_POLICIES:
        raise ValueError(
            f"Unknown zero_total_policy '{zero_total_policy}'. Expected one of: {', '.join(ZERO_TOTAL_POLICIES)}"
        )

    keys = within + by
    values = df[keys + [value_col]].dropna(subset=[value_col])
    if values.empty:
        return pd.DataFrame(columns=keys + AGGREGATE_COLUMNS).astype({'relevant': bool})

    totals = (
        values.groupby(keys, sort=False)[value_col]
        .sum()
        .reset_index()
        .rename(columns={value_col: 'total_quantity'})
    )
    totals['total_quantity'] = totals['total_quantity'].astype('float64')
    totals['total_quantity_abs'] = totals['total_quantity'].abs()

    if within:
        group_ids = totals.groupby(within, sort=False).ngroup().to_numpy()
    else:
        group_ids = np.zeros(len(totals), dtype=int)

    # np.lexsort is stable: ties keep first-seen order
    order = np.lexsort((-totals['total_quantity_abs'].to_numpy(), group_ids))
    totals = totals.iloc[order].reset_index(drop=True)
    group_ids = group_ids[order]

    grouped = totals['total_quantity_abs'].groupby(group_ids, sort=False)
    group_total = grouped.transform('sum')
    group_size = grouped.transform('count')
    zero_total = group_total == 0
    safe_total = group_total.where(~zero_total)

    totals['share'] = totals['total_quantity_abs'] / safe_total
    totals['rank'] = grouped.cumcount() + 1
    totals['cum_sum'] = grouped.cumsum()
    totals['cum_per'] = totals['cum_sum'] / safe_total

    reached = (totals['cum_per'] >= threshold - FLOAT_TOLERANCE).astype(int)
    reached_before = reached.groupby(group_ids).cumsum() - reached
    relevant = reached_before == 0

    relevant.loc[zero_total] = zero_total_policy == 'all'
    relevant.loc[group_size == 1] = True
    totals['relevant'] = relevant.astype(bool)

    return totals[keys + AGGREGATE_COLUMNS]


class HotspotAnalyzer:
    """
    Builds category and life-cycle phase hotspot tables for every scenario.
    """

    def __init__(self, threshold: Optional[float] = None, zero_total_policy: Optional[str] = None):
        """
        Initialize the analyzer.

        Args:
            threshold: Hotspot threshold. Defaults to config hotspots.threshold.
            zero_total_policy: Zero-total handling. Defaults to config hotspots.zero_total_policy.
        """
        settings = get_hotspot_settings()
        self.threshold = settings['threshold'] if threshold is None else threshold
        self.zero_total_policy = zero_total_policy or settings['zero_total_policy']
        self.results: Dict = {}

        logger.info(
            f"Initialized Hotspot Analyzer (threshold {self.threshold:.0%}, "
            f"zero totals flag {self.zero_total_policy})"
        )

    def _aggregate(self, df: pd.DataFrame, by, within) -> pd.DataFrame:
        return aggregate_hotspots(
            df,
            by=by,
            within=within,
            threshold=self.threshold,
            zero_total_policy=self.zero_total_policy,
        )

    @staticmethod
    def _select(df: pd.DataFrame, scenario: Optional[str] = None, indicator: Optional[str] = None) -> pd.DataFrame:
        subset = df
        if scenario is not None:
            subset = subset[subset['Scenario'] == scenario]
            if subset.empty:
                logger.warning(f"Scenario '{scenario}' not found in results")
        if indicator is not None:
            subset = subset[subset['Indicator'] == indicator]
            if subset.empty:
                logger.warning(f"Indicator '{indicator}' not found for scenario '{scenario}'")
        return subset

    @staticmethod
    def _attach_units(hotspots: pd.DataFrame, df: pd.DataFrame) -> pd.DataFrame:
        if hotspots.empty or 'Unit' not in df.columns:
            return hotspots
        units = df.groupby(['Scenario', 'Indicator'], sort=False)['Unit'].first().reset_index()
        merged = hotspots.merge(units, on=['Scenario', 'Indicator'], how='left')
        cols = list(hotspots.columns)
        insert_at = cols.index('total_quantity')
        return merged[cols[:insert_at] + ['Unit'] + cols[insert_at:]]

    def most_relevant_categories(self, weighted_df: pd.DataFrame, scenario: Optional[str] = None) -> pd.DataFrame:
        """
        Rank weighted impact categories per scenario and flag the most relevant ones.

        Args:
            weighted_df: Weighted records (points), all phases
            scenario: Restrict to one scenario

        Returns:
            Aggregated hotspot table keyed by Scenario and Indicator
        """
        subset = self._select(weighted_df, scenario=scenario)
        hotspots = self._attach_units(self._aggregate(subset, by=['Indicator'], within=['Scenario']), subset)

        for name, group in hotspots.groupby('Scenario', sort=False):
            relevant = group.loc[group['relevant'], 'Indicator'].tolist()
            logger.info(f"{name}: {len(relevant)} of {len(group)} impact categories most relevant")

        return hotspots

    def most_relevant_phases(
        self,
        df: pd.DataFrame,
        scenario: Optional[str] = None,
        indicator: Optional[str] = None
    ) -> pd.DataFrame:
        """Rank life-cycle phases per scenario and indicator and flag the most relevant ones."""
        subset = self._select(df, scenario=scenario, indicator=indicator)
        return self._attach_units(
            self._aggregate(subset, by=['LifeCyclePhase'], within=['Scenario', 'Indicator']),
            subset,
        )

    def relevant_phases_for_relevant_categories(
        self,
        df: pd.DataFrame,
        category_hotspots: pd.DataFrame
    ) -> pd.DataFrame:
        """
        Phase hotspots restricted to each scenario's most relevant categories.

        Args:
            df: Records used for the phase breakdown (characterised or weighted)
            category_hotspots: Output of most_relevant_categories

        Returns:
            Phase hotspot rows for the relevant (Scenario, Indicator) pairs only
        """
        pairs = category_hotspots.loc[category_hotspots['relevant'], ['Scenario', 'Indicator']]
        if pairs.empty:
            logger.warning("No relevant impact categories; phase breakdown is empty")
            return self.most_relevant_phases(df.iloc[0:0])

        subset = df.merge(pairs, on=['Scenario', 'Indicator'], how='inner')
        return self.most_relevant_phases(subset)

    def phase_contribution_matrix(self, df: pd.DataFrame, scenario: str) -> pd.DataFrame:
        """
        Signed share of each life-cycle phase in each indicator of one scenario.

        Shares are relative to the sum of absolute phase totals of the indicator, so
        every row's absolute values add up to 1 (rows with a zero total stay at 0).

        Returns:
            DataFrame indexed by Indicator with one column per LifeCyclePhase
        """
        subset = self._select(df, scenario=scenario).dropna(subset=['Quantity'])
        if subset.empty:
            return pd.DataFrame()

        matrix = subset.pivot_table(
            index='Indicator',
            columns='LifeCyclePhase',
            values='Quantity',
            aggfunc='sum',
            fill_value=0.0
        )
        # Keep the workbook's ordering rather than alphabetical
        matrix = matrix.reindex(
            index=subset['Indicator'].unique(),
            columns=subset['LifeCyclePhase'].unique(),
            fill_value=0.0
        )

        row_totals = matrix.abs().sum(axis=1)
        shares = matrix.div(row_totals.replace(0, np.nan), axis=0).fillna(0.0)
        shares.columns.name = 'LifeCyclePhase'
        return shares

    def scenario_category_totals(self, weighted_df: pd.DataFrame) -> pd.DataFrame:
        """
        Weighted totals per scenario and impact category.

        Returns:
            DataFrame indexed by Scenario, columns ordered by overall absolute contribution
        """
        values = weighted_df.dropna(subset=['Quantity'])
        if values.empty:
            return pd.DataFrame()

        totals = values.pivot_table(
            index='Scenario',
            columns='Indicator',
            values='Quantity',
            aggfunc='sum',
            fill_value=0.0
        )
        column_order = totals.abs().sum(axis=0).sort_values(ascending=False, kind='mergesort').index
        return totals.reindex(index=values['Scenario'].unique(), columns=column_order)

    def build_summary_table(
        self,
        category_hotspots: pd.DataFrame,
        phase_hotspots: pd.DataFrame
    ) -> pd.DataFrame:
        """
        One row per scenario and most relevant impact category, with its relevant phases.
        """
        columns = [
            'Scenario', 'Rank', 'Indicator', 'Unit', 'Weighted result',
            'Share (%)', 'Cumulative share (%)', 'Most relevant phases'
        ]
        relevant = category_hotspots[category_hotspots['relevant'].astype(bool)]
        if relevant.empty:
            return pd.DataFrame(columns=columns)

        phase_lookup = {}
        if not phase_hotspots.empty:
            for (scenario, indicator), group in phase_hotspots[phase_hotspots['relevant']].groupby(
                ['Scenario', 'Indicator'], sort=False
            ):
                phase_lookup[(scenario, indicator)] = "; ".join(
                    f"{row.LifeCyclePhase} ({row.share * 100:.1f}%)" if pd.notna(row.share) else str(row.LifeCyclePhase)
                    for row in group.sort_values('rank').itertuples()
                )

        rows = []
        for row in relevant.itertuples():
            rows.append({
                'Scenario': row.Scenario,
                'Rank': int(row.rank),
                'Indicator': row.Indicator,
                'Unit': getattr(row, 'Unit', ''),
                'Weighted result': row.total_quantity,
                'Share (%)': row.share * 100,
                'Cumulative share (%)': row.cum_per * 100,
                'Most relevant phases': phase_lookup.get((row.Scenario, row.Indicator), ''),
            })

        return pd.DataFrame(rows, columns=columns)

    def run_full_analysis(
        self,
        weighted_df: pd.DataFrame,
        characterised_df: Optional[pd.DataFrame] = None
    ) -> Dict:
        """
        Run the complete hotspot analysis.

        Category hotspots use weighted results. Phase hotspots use characterised
        results when given, otherwise the weighted ones.

        Args:
            weighted_df: Weighted records
            characterised_df: Characterised records (optional)

        Returns:
            Dictionary of result tables
        """
        logger.info(f"Running hotspot analysis on {weighted_df['Scenario'].nunique()} scenarios...")

        phase_source = characterised_df if characterised_df is not None else weighted_df
        if characterised_df is None:
            logger.info("No characterised results given; phase breakdown uses weighted results")

        category_hotspots = self.most_relevant_categories(weighted_df)
        phase_hotspots = self.most_relevant_phases(phase_source)
        relevant_phases = self.relevant_phases_for_relevant_categories(phase_source, category_hotspots)

        phase_matrices = {
            scenario: self.phase_contribution_matrix(phase_source, scenario)
            for scenario in phase_source['Scenario'].unique()
        }

        self.results = {
            'category_hotspots': category_hotspots,
            'phase_hotspots': phase_hotspots,
            'relevant_category_phases': relevant_phases,
            'phase_matrices': phase_matrices,
            'scenario_totals': self.scenario_category_totals(weighted_df),
            'summary': self.build_summary_table(category_hotspots, relevant_phases),
        }

        logger.info(
            f"✓ Hotspot analysis complete: {int(category_hotspots['relevant'].sum())} relevant "
            f"scenario/category pairs"
        )
        return self.results

    def export_results(self, output_dir: Optional[Path] = None) -> List[Path]:
        """
        Save the hotspot tables as CSV.

        Returns:
            Paths of the written files
        """
        if not self.results:
            raise ValueError("No results to export. Run run_full_analysis first.")

        output_dir = Path(output_dir) if output_dir else DATA_OUTPUTS_DIR / "hotspots"
        output_dir.mkdir(parents=True, exist_ok=True)

        written = []
        for key in ['category_hotspots', 'phase_hotspots', 'relevant_category_phases']:
            path = output_dir / f"{key}.csv"
            self.results[key].to_csv(path, index=False)
            written.append(path)
            logger.info(f"Saved {key} to: {path}")

        totals = self.results.get('scenario_totals')
        if totals is not None and not totals.empty:
            path = output_dir / "scenario_category_totals.csv"
            totals.to_csv(path)
            written.append(path)
            logger.info(f"Saved scenario totals to: {path}")

        return written
