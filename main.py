"""
Main Pipeline for LCA Hotspot Reporting

Loads impact-assessment results, filters them to a methodology, identifies the
most relevant impact categories and life-cycle phases per scenario, and writes
charts plus a summary table.
"""

import argparse
from pathlib import Path
from loguru import logger
import sys

# Add project root to path
sys.path.append(str(Path(__file__).parent))

from config.config import ensure_directories, get_filter_settings, DATA_OUTPUTS_DIR
from src.acquisition.results_loader import LCAResultsLoader
from src.cleaning.results_filter import ResultsFilter
from src.analysis.hotspot_analysis import HotspotAnalyzer
from src.reporting.visualizations import HotspotReportGenerator
from src.utils.analysis_logger import AnalysisLogger


def setup_logging(log_file: Path = None):
    """
    Configure logging for the pipeline.

    Args:
        log_file: Optional path to log file
    """
    logger.remove()  # Remove default handler

    # Console logging
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level="INFO"
    )

    # File logging
    if log_file:
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}",
            level="DEBUG",
            rotation="10 MB"
        )


def run_load_phase(args, run_log: AnalysisLogger) -> dict:
    """Load weighted (required) and characterised (optional) results."""
    logger.info("=" * 70)
    logger.info("PHASE 1: LOAD RESULTS")
    logger.info("=" * 70)

    run_log.start_phase("Load results", "Read impact-assessment results into records")
    loader = LCAResultsLoader(args.input)
    results = {'weighted': None, 'characterised': None}

    if args.characterised_input:
        # Separate files: --input holds weighted results
        results['weighted'] = loader.load_sheet()
        results['characterised'] = LCAResultsLoader(args.characterised_input).load_sheet()
    else:
        sheets = loader.list_sheets()
        if not sheets:
            results['weighted'] = loader.load_sheet()
        else:
            for kind in ['weighted', 'characterised']:
                sheet_name = loader.settings['sheets'].get(kind)
                if sheet_name in sheets:
                    results[kind] = loader.load_results(kind)
                else:
                    logger.warning(f"Sheet '{sheet_name}' for {kind} results not found in {loader.input_path.name}")

    if results['weighted'] is None:
        raise ValueError("Weighted results are required to rank impact categories.")

    for kind, df in results.items():
        if df is not None:
            run_log.add_metric(f"{kind}_records", len(df), f"{kind.capitalize()} records loaded")
    run_log.add_metric("non_numeric_quantities", loader.load_report['non_numeric_quantities'],
                       "Quantities that were not numbers (treated as missing)")
    run_log.complete_phase(success=True)

    logger.info(f"✓ Load complete: {len(results['weighted']):,} weighted records")
    return results


def run_filter_phase(args, results: dict, run_log: AnalysisLogger) -> dict:
    """Restrict to the methodology's indicators and drop non-impact rows."""
    logger.info("\n" + "=" * 70)
    logger.info("PHASE 2: FILTER RESULTS")
    logger.info("=" * 70)

    methodology = args.methodology
    if methodology is None:
        methodology = get_filter_settings()['default_methodology']
    if methodology and methodology.lower() == 'none':
        methodology = None

    run_log.start_phase("Filter results", f"Methodology: {methodology or 'all indicators'}")
    run_log.set_metadata('methodology', methodology or 'all indicators')

    filtered = {}
    for kind, df in results.items():
        if df is None:
            filtered[kind] = None
            continue
        filtered[kind], report = ResultsFilter().filter_results(df, methodology)
        run_log.add_metric(f"{kind}_records_passed", report['records_passed'],
                           f"{kind.capitalize()} records after filtering")

    if filtered['weighted'].empty:
        raise ValueError(f"No weighted results left after filtering to methodology '{methodology}'.")

    run_log.complete_phase(success=True)
    logger.info("✓ Filtering complete")
    return filtered


def hotspot_calculation_steps(analyzer: HotspotAnalyzer, phase_source: str) -> dict:
    """How each hotspot table was derived, keyed by output file stem."""
    ranking = [
        "Contributors summed, NaN quantities skipped.",
        "Sorted by descending absolute total within each group; ties keep input order.",
        "Share = |total| / sum of |totals| in the group; cumulative share accumulated in rank order.",
        f"Flagged relevant up to and including the first contributor reaching {analyzer.threshold:.0%}; "
        f"zero-total groups flag '{analyzer.zero_total_policy}'.",
    ]
    return {
        'category_hotspots': ["Weighted results grouped by Scenario and Indicator."] + ranking,
        'phase_hotspots': [f"{phase_source.capitalize()} results grouped by Scenario, Indicator "
                           f"and LifeCyclePhase."] + ranking,
        'relevant_category_phases': [f"{phase_source.capitalize()} results restricted to each scenario's "
                                     f"relevant impact categories."] + ranking,
        'scenario_category_totals': ["Weighted results summed per Scenario and Indicator; "
                                     "columns ordered by overall absolute contribution."],
    }


def run_analysis_phase(args, filtered: dict, run_log: AnalysisLogger) -> dict:
    """Identify most relevant impact categories and life-cycle phases."""
    logger.info("\n" + "=" * 70)
    logger.info("PHASE 3: HOTSPOT ANALYSIS")
    logger.info("=" * 70)

    run_log.start_phase("Hotspot analysis", "Rank contributors and flag the set reaching the threshold")

    analyzer = HotspotAnalyzer()
    analysis = analyzer.run_full_analysis(filtered['weighted'], filtered['characterised'])

    phase_source = 'characterised' if filtered['characterised'] is not None else 'weighted'
    steps = hotspot_calculation_steps(analyzer, phase_source)
    for path in analyzer.export_results(args.output_dir / "hotspots"):
        run_log.add_output(path, "csv", f"Hotspot table {path.stem}", calculation_steps=steps.get(path.stem))

    category_hotspots = analysis['category_hotspots']
    run_log.add_metric("scenarios", int(category_hotspots['Scenario'].nunique()), "Scenarios analysed")
    run_log.add_metric("relevant_categories", int(category_hotspots['relevant'].sum()),
                       "Scenario/category pairs flagged most relevant")
    run_log.complete_phase(success=True)

    logger.info("✓ Hotspot analysis complete")
    return analysis


def run_reporting_phase(args, analysis: dict, run_log: AnalysisLogger):
    """Render charts and the summary table."""
    logger.info("\n" + "=" * 70)
    logger.info("PHASE 4: REPORTING & VISUALIZATION")
    logger.info("=" * 70)

    run_log.start_phase("Reporting", "Charts and summary table")
    generator = HotspotReportGenerator(args.output_dir)
    add_title = False if args.no_title else None

    figures = []
    category_hotspots = analysis['category_hotspots']
    for scenario in category_hotspots['Scenario'].unique():
        figures.append(generator.plot_most_relevant_categories(category_hotspots, scenario, add_title=add_title))

    for scenario, matrix in analysis['phase_matrices'].items():
        figures.append(generator.plot_phase_contributions(matrix, scenario))
        figures.append(generator.plot_phase_heatmap(matrix, scenario))

    figures.append(generator.plot_scenario_comparison(analysis['scenario_totals']))

    chart_steps = [
        "Bars from the hotspot tables in the hotspots/ directory.",
        f"Most relevant categories highlighted; dashed line at the {generator.threshold:.0%} threshold.",
    ]
    for path in filter(None, figures):
        run_log.add_output(path, "png", f"Chart {path.stem}", calculation_steps=chart_steps)

    tables = generator.generate_summary_table(analysis['summary'])
    for fmt, path in tables.items():
        run_log.add_output(path, fmt, "Most relevant impact categories and phases per scenario")

    run_log.add_metric("figures_written", sum(1 for f in figures if f is not None), "Charts saved")
    run_log.complete_phase(success=True)
    logger.info("✓ Reporting complete")


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(
        description="LCA Hotspot Reporting Pipeline"
    )

    parser.add_argument(
        '--input',
        type=Path,
        default=None,
        help='Results workbook (.xlsx) or weighted results CSV (default: configured file in data/raw)'
    )

    parser.add_argument(
        '--characterised-input',
        type=Path,
        default=None,
        help='Characterised results file when weighted and characterised results are separate files'
    )

    parser.add_argument(
        '--methodology',
        default=None,
        help="Methodology whose indicators to keep (default from config; 'none' keeps all)"
    )

    parser.add_argument(
        '--output-dir',
        type=Path,
        default=DATA_OUTPUTS_DIR,
        help='Directory for figures, reports and hotspot tables'
    )

    parser.add_argument(
        '--no-title',
        action='store_true',
        help='Omit scenario titles from the most relevant categories charts'
    )

    parser.add_argument(
        '--log-file',
        type=Path,
        default=Path('pipeline.log'),
        help='Path to log file (default: pipeline.log)'
    )

    args = parser.parse_args()

    setup_logging(args.log_file)
    ensure_directories(args.output_dir)

    logger.info("=" * 70)
    logger.info("LCA HOTSPOT REPORTING PIPELINE")
    logger.info("=" * 70)

    run_log = AnalysisLogger(output_dir=args.output_dir)

    try:
        results = run_load_phase(args, run_log)
        filtered = run_filter_phase(args, results, run_log)
        analysis = run_analysis_phase(args, filtered, run_log)
        run_reporting_phase(args, analysis, run_log)
    except Exception as exc:
        logger.exception(f"Pipeline failed: {exc}")
        if run_log.current_phase is not None:
            run_log.complete_phase(success=False, message=str(exc))
        run_log.save_log()
        sys.exit(1)

    run_log.save_log()

    logger.info("\n" + "=" * 70)
    logger.info("PIPELINE COMPLETE")
    logger.info("=" * 70)


if __name__ == "__main__":
    main()
