"""
Test Suite for the Pipeline Entry Point
=======================================

End-to-end runs of main() on small synthetic tables.
"""

import matplotlib.pyplot as plt
import pytest
import yaml

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from main import main, run_pipeline


@pytest.fixture
def config(tmp_path):
    return {
        'output': {
            'figures_path': str(tmp_path / "reports" / "figures"),
            'predictions_path': str(tmp_path / "predictions"),
            'metrics_path': str(tmp_path / "metrics_out"),
            'model_path': str(tmp_path / "models" / "model.joblib"),
        },
        'regression': {'predictors': ['alcohol', 'density', 'fixed_acidity']},
        'prediction': {'confidence_level': 0.9, 'sample_size': 20, 'random_state': 0},
        'logging': {'level': 'WARNING', 'log_dir': str(tmp_path / "logs")},
    }


@pytest.fixture
def config_file(tmp_path, config):
    path = tmp_path / "config.yaml"
    with open(path, 'w') as f:
        yaml.safe_dump(config, f)
    return path


class TestMain:
    """Tests for the command-line entry point."""

    def test_full_pipeline(self, red_csv, white_csv, config_file, tmp_path):
        code = main([
            '--red', str(red_csv),
            '--white', str(white_csv),
            '--config', str(config_file),
        ])

        assert code == 0
        assert (tmp_path / "models" / "model.joblib").exists()
        assert (tmp_path / "metrics_out" / "regression_metrics.json").exists()
        assert not (tmp_path / "reports" / "metrics").exists()
        assert (tmp_path / "reports" / "figures" / "eval_residuals.png").exists()
        assert (tmp_path / "reports" / "figures" / "02_quality_counts.png").exists()
        assert list((tmp_path / "predictions").glob("predictions_m3_*.csv"))

    def test_missing_data_file(self, white_csv, config_file, tmp_path):
        code = main([
            '--red', str(tmp_path / "absent.csv"),
            '--white', str(white_csv),
            '--config', str(config_file),
        ])
        assert code == 1

    def test_missing_config(self, red_csv, white_csv, tmp_path):
        code = main([
            '--red', str(red_csv),
            '--white', str(white_csv),
            '--config', str(tmp_path / "absent.yaml"),
        ])
        assert code == 1

    def test_malformed_config(self, red_csv, white_csv, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("output: [figures_path\n  : :\n")
        code = main([
            '--red', str(red_csv),
            '--white', str(white_csv),
            '--config', str(path),
        ])
        assert code == 1

    def test_empty_config_sections(self, red_csv, white_csv, config, tmp_path):
        path = tmp_path / "sparse.yaml"
        sparse = {k: v for k, v in config.items() if k != 'logging'}
        with open(path, 'w') as f:
            yaml.safe_dump(sparse, f)
            f.write("logging:\nsummary:\n")

        code = main([
            '--red', str(red_csv),
            '--white', str(white_csv),
            '--config', str(path),
            '--phase', 'eda',
        ])
        assert code == 0


class TestRunPipeline:
    """Tests for phase selection."""

    def test_eda_phase_only(self, red_csv, white_csv, config):
        results = run_pipeline(str(red_csv), str(white_csv), config, phase='eda')
        assert 'eda' in results
        assert 'regression' not in results
        assert 'prediction' not in results

    def test_predict_phase_fits_model(self, red_csv, white_csv, config):
        plt.close('all')
        results = run_pipeline(str(red_csv), str(white_csv), config, phase='predict')
        assert plt.get_fignums() == []
        assert 'eda' not in results
        assert results['prediction']['summary']['n_predictions'] == 20
        assert results['prediction']['summary']['confidence_level'] == 0.9

    def test_unknown_phase(self, red_csv, white_csv, config):
        with pytest.raises(ValueError):
            run_pipeline(str(red_csv), str(white_csv), config, phase='train')


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
