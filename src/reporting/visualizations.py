"""
Reporting and Visualization Module

Creates hotspot charts, phase contribution charts and the summary table.
"""

import re
import matplotlib.pyplot as plt
from matplotlib.ticker import PercentFormatter
import numpy as np
import pandas as pd
import seaborn as sns
from pathlib import Path
from typing import Optional
from loguru import logger

import sys
sys.path.append(str(Path(__file__).parent.parent.parent))
from config.config import get_hotspot_settings, get_plot_settings, DATA_OUTPUTS_DIR


def safe_filename(value) -> str:
    """Replace every character outside [A-Za-z0-9] with an underscore."""
    return re.sub(r"[^a-zA-Z0-9]", "_", str(value))


class HotspotReportGenerator:
    """
    Generates hotspot visualizations and the summary table.
    """

    def __init__(self, output_dir: Optional[Path] = None):
        """
        Initialize the report generator.

        Args:
            output_dir: Base output directory. Figures go to <output_dir>/figures,
                tables to <output_dir>/reports.
        """
        self.outputs_dir = Path(output_dir) if output_dir else DATA_OUTPUTS_DIR
        self.figures_dir = self.outputs_dir / "figures"
        self.reports_dir = self.outputs_dir / "reports"
        self.figures_dir.mkdir(parents=True, exist_ok=True)
        self.reports_dir.mkdir(parents=True, exist_ok=True)

        self.plot_settings = get_plot_settings()
        self.threshold = get_hotspot_settings()['threshold']

        # Set visualization style
        sns.set_style("whitegrid")
        sns.set_palette("husl")
        plt.rcParams['figure.figsize'] = (12, 8)
        plt.rcParams['font.size'] = 11

        logger.info("Initialized Hotspot Report Generator")

    def _save(self, fig, save_path: Path) -> Path:
        plt.tight_layout()
        fig.savefig(save_path, dpi=self.plot_settings['dpi'], bbox_inches='tight')
        plt.close(fig)
        return save_path

    def plot_most_relevant_categories(
        self,
        hotspots: pd.DataFrame,
        scenario: str,
        add_title: Optional[bool] = None,
        save_path: Optional[Path] = None
    ) -> Optional[Path]:
        """
        Create bar chart of weighted category shares for one scenario.

        Most relevant categories are highlighted; a line shows the cumulative share
        against the hotspot threshold.

        Args:
            hotspots: Category hotspot table (from HotspotAnalyzer.most_relevant_categories)
            scenario: Scenario to plot
            add_title: Put the scenario name in the title. Defaults to config plots.add_title.
            save_path: Path to save figure

        Returns:
            Path of the saved figure, or None when there is nothing to plot
        """
        data = hotspots[hotspots['Scenario'] == scenario].sort_values('rank')
        if data.empty or data['share'].isna().all():
            logger.warning(f"No weighted category results to plot for scenario '{scenario}'")
            return None

        logger.info(f"Creating most relevant impact categories chart for {scenario}...")

        if add_title is None:
            add_title = self.plot_settings['add_title']
        if save_path is None:
            save_path = self.figures_dir / f"MostRelevantICS_{safe_filename(scenario)}.png"

        colors = [
            self.plot_settings['hotspot_color'] if relevant else self.plot_settings['other_color']
            for relevant in data['relevant']
        ]
        positions = np.arange(len(data))

        fig, ax = plt.subplots(figsize=(12, max(4, 0.5 * len(data) + 2)))
        bars = ax.barh(positions, data['share'], color=colors, edgecolor='black', linewidth=0.8)

        for bar, share in zip(bars, data['share']):
            ax.text(bar.get_width(), bar.get_y() + bar.get_height() / 2,
                    f' {share * 100:.1f}%', va='center', fontsize=9)

        ax.plot(data['cum_per'], positions, marker='o', color=self.plot_settings['cumulative_color'],
                linewidth=1.5, label='Cumulative share')
        ax.axvline(self.threshold, color='black', linestyle='--', linewidth=1,
                   label=f'{self.threshold:.0%} threshold')

        ax.set_yticks(positions)
        ax.set_yticklabels(data['Indicator'])
        ax.invert_yaxis()
        ax.set_xlim(0, 1.05)
        ax.xaxis.set_major_formatter(PercentFormatter(1.0))
        ax.set_xlabel('Share of weighted single score', fontsize=12, fontweight='bold')
        ax.legend(loc='lower right', fontsize=10)
        ax.xaxis.grid(True, alpha=0.3)
        ax.set_axisbelow(True)

        if add_title:
            ax.set_title(f'Most Relevant Impact Categories\n{scenario}',
                         fontsize=14, fontweight='bold', pad=20)

        self._save(fig, save_path)
        logger.info(f"Saved most relevant impact categories to: {save_path}")
        return save_path

    def plot_phase_contributions(
        self,
        matrix: pd.DataFrame,
        scenario: str,
        save_path: Optional[Path] = None
    ) -> Optional[Path]:
        """
        Create stacked bar chart of life-cycle phase shares per indicator.

        Args:
            matrix: Indicator x LifeCyclePhase share matrix (from phase_contribution_matrix)
            scenario: Scenario name for title and file name
            save_path: Path to save figure
        """
        if matrix is None or matrix.empty:
            logger.warning(f"No phase contributions to plot for scenario '{scenario}'")
            return None

        logger.info(f"Creating phase contribution chart for {scenario}...")

        if save_path is None:
            save_path = self.figures_dir / f"PhaseContributions_{safe_filename(scenario)}.png"

        fig, ax = plt.subplots(figsize=(12, max(4, 0.5 * len(matrix) + 2)))
        matrix.plot(kind='barh', stacked=True, ax=ax, edgecolor='black', linewidth=0.5,
                    color=sns.color_palette('husl', n_colors=len(matrix.columns)))

        ax.axvline(0, color='black', linewidth=0.8)
        ax.invert_yaxis()
        ax.xaxis.set_major_formatter(PercentFormatter(1.0))
        ax.set_xlabel('Share of indicator total', fontsize=12, fontweight='bold')
        ax.set_ylabel('')
        ax.set_title(f'Life-Cycle Phase Contributions\n{scenario}',
                     fontsize=14, fontweight='bold', pad=20)
        ax.legend(title='Life-cycle phase', bbox_to_anchor=(1.02, 1), loc='upper left', fontsize=9)
        ax.xaxis.grid(True, alpha=0.3)
        ax.set_axisbelow(True)

        self._save(fig, save_path)
        logger.info(f"Saved phase contributions to: {save_path}")
        return save_path

    def plot_phase_heatmap(
        self,
        matrix: pd.DataFrame,
        scenario: str,
        save_path: Optional[Path] = None
    ) -> Optional[Path]:
        """
        Create heatmap of life-cycle phase shares per indicator.

        Args:
            matrix: Indicator x LifeCyclePhase share matrix
            scenario: Scenario name for title and file name
            save_path: Path to save figure
        """
        if matrix is None or matrix.empty:
            logger.warning(f"No phase contributions for heatmap of scenario '{scenario}'")
            return None

        logger.info(f"Creating phase heatmap for {scenario}...")

        if save_path is None:
            save_path = self.figures_dir / f"PhaseHeatmap_{safe_filename(scenario)}.png"

        fig, ax = plt.subplots(figsize=(max(8, 1.2 * len(matrix.columns) + 4), max(4, 0.5 * len(matrix) + 2)))
        sns.heatmap(
            matrix * 100,
            annot=True,
            fmt='.0f',
            cmap=self.plot_settings['heatmap_cmap'],
            center=0,
            vmin=-100,
            vmax=100,
            linewidths=0.5,
            cbar_kws={'label': 'Share of indicator total (%)'},
            ax=ax
        )
        ax.set_xlabel('Life-cycle phase', fontsize=12, fontweight='bold')
        ax.set_ylabel('')
        ax.set_title(f'Life-Cycle Phase Hotspots\n{scenario}', fontsize=14, fontweight='bold', pad=20)
        plt.setp(ax.get_xticklabels(), rotation=30, ha='right')

        self._save(fig, save_path)
        logger.info(f"Saved phase heatmap to: {save_path}")
        return save_path

    def plot_scenario_comparison(
        self,
        totals: pd.DataFrame,
        save_path: Optional[Path] = None
    ) -> Optional[Path]:
        """
        Create stacked bar chart of weighted single score per scenario by impact category.

        Args:
            totals: Scenario x Indicator weighted totals (from scenario_category_totals)
            save_path: Path to save figure
        """
        if totals is None or totals.empty:
            logger.warning("No weighted totals to compare across scenarios")
            return None

        logger.info("Creating scenario comparison chart...")

        if save_path is None:
            save_path = self.figures_dir / "ScenarioComparison.png"

        fig, ax = plt.subplots(figsize=(max(8, 1.5 * len(totals) + 6), 7))
        totals.plot(kind='bar', stacked=True, ax=ax, edgecolor='black', linewidth=0.5,
                    color=sns.color_palette('husl', n_colors=len(totals.columns)))

        for i, total in enumerate(totals.sum(axis=1)):
            ax.text(i, total, f'{total:.3g}', ha='center', va='bottom', fontsize=10, fontweight='bold')

        ax.axhline(0, color='black', linewidth=0.8)
        ax.set_xlabel('')
        ax.set_ylabel('Weighted result', fontsize=12, fontweight='bold')
        ax.set_title('Weighted Single Score by Scenario', fontsize=14, fontweight='bold', pad=20)
        plt.setp(ax.get_xticklabels(), rotation=30, ha='right')
        ax.legend(title='Impact category', bbox_to_anchor=(1.02, 1), loc='upper left', fontsize=9)
        ax.yaxis.grid(True, alpha=0.3)
        ax.set_axisbelow(True)

        self._save(fig, save_path)
        logger.info(f"Saved scenario comparison to: {save_path}")
        return save_path

    def generate_summary_table(
        self,
        summary: pd.DataFrame,
        output_stem: str = "hotspot_summary"
    ) -> dict:
        """
        Write the hotspot summary as CSV, Markdown and a formatted Excel sheet.

        Args:
            summary: Summary table (from HotspotAnalyzer.build_summary_table)
            output_stem: Base file name in the reports directory

        Returns:
            Dictionary mapping format ('csv', 'markdown', 'excel') to written path
        """
        logger.info("Generating hotspot summary table...")

        csv_path = self.reports_dir / f"{output_stem}.csv"
        summary.to_csv(csv_path, index=False)
        logger.info(f"Saved summary CSV to: {csv_path}")

        markdown_path = self.reports_dir / f"{output_stem}.md"
        markdown_path.write_text(self._summary_markdown(summary), encoding="utf-8")
        logger.info(f"Saved summary Markdown to: {markdown_path}")

        excel_path = self.reports_dir / f"{output_stem}.xlsx"
        self._write_summary_excel(summary, excel_path)
        logger.info(f"Saved summary workbook to: {excel_path}")

        return {'csv': csv_path, 'markdown': markdown_path, 'excel': excel_path}

    def _summary_markdown(self, summary: pd.DataFrame) -> str:
        lines = [
            "# Most relevant impact categories and life-cycle phases",
            "",
            f"Contributors ranked by absolute weighted result; the most relevant set is the "
            f"smallest one reaching {self.threshold:.0%} of the scenario total.",
            "",
        ]

        if summary.empty:
            lines.append("_No relevant impact categories found._")
            return "\n".join(lines) + "\n"

        for scenario, group in summary.groupby('Scenario', sort=False):
            lines.extend([
                f"## {scenario}",
                "",
                "| Rank | Impact category | Weighted result | Share | Cumulative | Most relevant phases |",
                "|------|-----------------|-----------------|-------|------------|----------------------|",
            ])
            for row in group.itertuples(index=False):
                unit = f" {row.Unit}" if row.Unit else ""
                lines.append(
                    f"| {row.Rank} | {row.Indicator} | {row[4]:.4g}{unit} | "
                    f"{row[5]:.1f}% | {row[6]:.1f}% | {row[7] or '-'} |"
                )
            lines.append("")

        return "\n".join(lines)

    def _write_summary_excel(self, summary: pd.DataFrame, output_path: Path):
        from openpyxl.styles import Font, PatternFill, Alignment

        with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
            summary.to_excel(writer, sheet_name='Hotspots', index=False)
            sheet = writer.sheets['Hotspots']

            header_fill = PatternFill(start_color='2C3E50', end_color='2C3E50', fill_type='solid')
            for cell in sheet[1]:
                cell.font = Font(bold=True, color='FFFFFF')
                cell.fill = header_fill
                cell.alignment = Alignment(horizontal='center', vertical='center', wrap_text=True)

            for column_cells in sheet.columns:
                width = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column_cells)
                sheet.column_dimensions[column_cells[0].column_letter].width = min(max(12, width + 2), 60)

            for row in sheet.iter_rows(min_row=2):
                for cell in row:
                    if isinstance(cell.value, float):
                        cell.number_format = '0.00'
            sheet.freeze_panes = 'A2'
