"""Tests for configuration getters and validation."""

import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).parent.parent))

from config import config


def test_default_settings_load():
    hotspots = config.get_hotspot_settings()
    filters = config.get_filter_settings()
    inputs = config.get_input_settings()

    assert hotspots == {'threshold': 0.8, 'zero_total_policy': 'none'}
    assert 'Credits' in filters['excluded_phases']
    assert set(inputs['sheets']) == {'characterised', 'weighted'}
    assert len(config.get_methodology_indicators('EF 3.1')) == 16


@pytest.mark.parametrize('hotspots', [
    {'threshold': 0},
    {'threshold': 1.2},
    {'threshold': 'eighty'},
    {'threshold': 0.8, 'zero_total_policy': 'half'},
])
def test_invalid_hotspot_settings_rejected(monkeypatch, hotspots):
    monkeypatch.setattr(config, 'load_config', lambda *_, **__: {'hotspots': hotspots})

    with pytest.raises(ValueError):
        config.get_hotspot_settings()


def test_unknown_methodology_lists_available():
    with pytest.raises(ValueError, match='EF 3.1'):
        config.get_methodology_indicators('ReCiPe')


def test_missing_config_file_raises():
    with pytest.raises(FileNotFoundError):
        config.load_config('missing.yaml')


def test_ensure_directories_creates_output_tree(tmp_path, monkeypatch):
    monkeypatch.setattr(config, 'DATA_RAW_DIR', tmp_path / 'raw')

    config.ensure_directories(tmp_path / 'outputs')

    assert (tmp_path / 'raw').is_dir()
    assert (tmp_path / 'outputs' / 'figures').is_dir()
    assert (tmp_path / 'outputs' / 'reports').is_dir()
