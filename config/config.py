"""
Configuration loader for the LCA hotspot reporting project.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, List

# Get project root directory
PROJECT_ROOT = Path(__file__).parent.parent

# Define paths
CONFIG_DIR = PROJECT_ROOT / "config"
DATA_DIR = PROJECT_ROOT / "data"
DATA_RAW_DIR = DATA_DIR / "raw"
DATA_OUTPUTS_DIR = DATA_DIR / "outputs"

RESULT_KINDS = ("characterised", "weighted")
ZERO_TOTAL_POLICIES = ("none", "all")


def load_config(config_file: str = "config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_file: Name of the configuration file

    Returns:
        Dictionary containing configuration parameters
    """
    config_path = CONFIG_DIR / config_file

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f)

    return config


def get_input_settings() -> Dict[str, Any]:
    """Get input workbook settings (file name, sheet per result kind) from config."""
    config = load_config()
    input_cfg = config.get('input', {})

    sheets = input_cfg.get('sheets', {})
    unknown = set(sheets) - set(RESULT_KINDS)
    if unknown:
        raise ValueError(
            f"Unknown result kinds in input.sheets: {', '.join(sorted(unknown))}. "
            f"Expected: {', '.join(RESULT_KINDS)}"
        )

    return {
        'file': input_cfg.get('file', 'lca_results.xlsx'),
        'sheets': sheets,
        'default_phase': input_cfg.get('default_phase', 'Total'),
    }


def get_methodologies() -> Dict[str, List[str]]:
    """Get every configured methodology and its indicator allow-list."""
    config = load_config()
    return config.get('methodologies', {})


def get_methodology_indicators(methodology: str) -> List[str]:
    """
    Get the indicator allow-list for a methodology.

    Args:
        methodology: Methodology name as configured (e.g. "EF 3.1")

    Returns:
        List of indicator names
    """
    methodologies = get_methodologies()

    if methodology not in methodologies:
        available = ", ".join(sorted(methodologies)) or "none configured"
        raise ValueError(f"Unknown methodology '{methodology}'. Available: {available}")

    indicators = methodologies[methodology] or []
    if not indicators:
        raise ValueError(f"Methodology '{methodology}' has an empty indicator list.")

    return list(indicators)


def get_filter_settings() -> Dict[str, Any]:
    """Get row filter settings (excluded phases/indicators, default methodology)."""
    config = load_config()
    filters = config.get('filters', {})

    return {
        'excluded_phases': list(filters.get('excluded_phases') or []),
        'excluded_indicators': list(filters.get('excluded_indicators') or []),
        'default_methodology': filters.get('default_methodology'),
    }


def get_hotspot_settings() -> Dict[str, Any]:
    """Return validated hotspot threshold and zero-total policy."""
    config = load_config()
    hotspots = config.get('hotspots', {})

    threshold = hotspots.get('threshold', 0.8)
    try:
        threshold = float(threshold)
    except (TypeError, ValueError) as exc:
        raise ValueError("Hotspot threshold must be numeric.") from exc

    if not 0 < threshold <= 1:
        raise ValueError("Hotspot threshold must be in (0, 1].")

    policy = hotspots.get('zero_total_policy', 'none')
    if policy not in ZERO_TOTAL_POLICIES:
        raise ValueError(
            f"Unknown zero_total_policy '{policy}'. Expected one of: {', '.join(ZERO_TOTAL_POLICIES)}"
        )

    return {'threshold': threshold, 'zero_total_policy': policy}


def get_plot_settings() -> Dict[str, Any]:
    """Get chart settings (dpi, colours, title toggle) from config."""
    config = load_config()
    plots = config.get('plots', {})

    return {
        'dpi': int(plots.get('dpi', 300)),
        'add_title': bool(plots.get('add_title', True)),
        'hotspot_color': plots.get('hotspot_color', '#c0392b'),
        'other_color': plots.get('other_color', '#95a5a6'),
        'cumulative_color': plots.get('cumulative_color', '#2c3e50'),
        'heatmap_cmap': plots.get('heatmap_cmap', 'RdYlGn_r'),
    }


def ensure_directories(outputs_dir: Path = None):
    """Create necessary directories if they don't exist."""
    outputs_dir = outputs_dir or DATA_OUTPUTS_DIR
    directories = [
        DATA_RAW_DIR,
        outputs_dir,
        outputs_dir / "figures",
        outputs_dir / "reports",
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


if __name__ == "__main__":
    # Test configuration loading
    config = load_config()
    print("Configuration loaded successfully!")
    print(f"Project: {config['project']['name']}")
    print(f"Methodologies: {', '.join(get_methodologies())}")

    ensure_directories()
    print("Directory structure verified!")
