"""
End-to-end tests for the simulation driver.
"""

import pytest
import numpy as np
import pandas as pd
from scipy import stats

from nphsim import (
    RateSchedule,
    TrialConfig,
    AnalysisSpec,
    StatisticSpec,
    ConfigurationError,
    run_simulation,
    summarize_results,
)


def two_arm_config(n, hr, analyses, nsim, seed=2024, dropout=0.0):
    control_rate = np.log(2) / 12
    return TrialConfig(
        n_experimental=n,
        n_control=n,
        enroll_rate=RateSchedule.constant(2 * n / 12),
        fail_rate={
            'control': RateSchedule.constant(control_rate),
            'experimental': RateSchedule.constant(control_rate * hr),
        },
        dropout_rate=RateSchedule.constant(dropout),
        analyses=analyses,
        nsim=nsim,
        seed=seed,
    )


class TestRunSimulation:
    """Tests for run_simulation output and reproducibility."""

    @pytest.fixture
    def config(self):
        return two_arm_config(
            n=60,
            hr=0.7,
            analyses=[
                AnalysisSpec(events=40),
                AnalysisSpec(events=80, statistic=StatisticSpec.parse('fh', pairs=[(0, 0), (0, 1)])),
                AnalysisSpec(calendar_time=36, statistic=StatisticSpec.parse('rmst', tau=12)),
            ],
            nsim=6,
            dropout=0.01,
        )

    def test_one_row_per_replicate_and_analysis(self, config):
        results = run_simulation(config)

        assert len(results) == 18
        assert list(results['sim']) == [s for s in range(1, 7) for _ in range(3)]
        assert list(results['analysis'][:3]) == [1, 2, 3]
        for column in ('cut_time', 'n_experimental', 'n_control', 'events', 'p_logrank',
                       'p_fh_0_0', 'p_fh_0_1', 'hr', 'se_log_hr', 'rmst_diff', 'rmst_lower', 'rmst_upper'):
            assert column in results.columns

    def test_event_targets_met(self, config):
        results = run_simulation(config)
        first = results[results['analysis'] == 1]

        assert (first['events'] == 40).all()
        assert not first['underpowered'].any()

    def test_later_analysis_is_later(self, config):
        results = run_simulation(config).pivot(index='sim', columns='analysis', values='cut_time')

        assert (results[2] > results[1]).all()

    def test_seed_reproducible(self, config):
        pd.testing.assert_frame_equal(run_simulation(config), run_simulation(config))

    def test_independent_of_parallelism(self, config):
        serial = run_simulation(config, n_jobs=1)
        parallel = run_simulation(config, n_jobs=2, chunk_size=2)

        pd.testing.assert_frame_equal(serial, parallel)

    def test_underpowered_flagged(self):
        config = two_arm_config(n=20, hr=1.0, analyses=[AnalysisSpec(events=60)], nsim=3)
        results = run_simulation(config)

        assert results['underpowered'].all()
        assert (results['events'] == 40).all()
        assert (results['target_events'] == 60).all()

    def test_requires_an_analysis(self):
        config = two_arm_config(n=20, hr=1.0, analyses=[], nsim=2)
        with pytest.raises(ConfigurationError, match="analysis"):
            run_simulation(config)


class TestScenarios:
    """Operating characteristics in simple designs."""

    def test_null_p_values_are_uniform(self):
        # Scenario A: equal hazards, no dropout, analysis at 100 events
        config = two_arm_config(n=100, hr=1.0, analyses=[AnalysisSpec(events=100)], nsim=1000, seed=11)
        results = run_simulation(config, n_jobs=-1)

        assert len(results) == 1000
        assert stats.kstest(results['p_logrank'], 'uniform').pvalue > 0.001
        assert results['p_logrank'].lt(0.025).mean() == pytest.approx(0.025, abs=0.015)

    def test_hazard_ratio_recovered(self):
        # Scenario B: HR 0.6, 300 per arm, analysis at 300 events
        config = two_arm_config(n=300, hr=0.6, analyses=[AnalysisSpec(events=300)], nsim=60, seed=12)
        results = run_simulation(config, n_jobs=2)

        assert np.exp(results['log_hr'].mean()) == pytest.approx(0.6, abs=0.05)
        assert results['p_logrank'].median() < 0.001
        assert results['p_logrank'].lt(0.025).mean() > 0.9

    def test_rmst_sign_follows_hazard_ratio(self):
        # Scenario C: RMST at tau = 12, long follow-up in both arms
        analyses = [AnalysisSpec(calendar_time=48, statistic=StatisticSpec.parse('rmst', tau=12))]
        benefit = run_simulation(two_arm_config(n=150, hr=0.6, analyses=analyses, nsim=30, seed=13))
        harm = run_simulation(two_arm_config(n=150, hr=1.6, analyses=analyses, nsim=30, seed=14))

        assert not benefit['tau_clamped'].any()
        assert (benefit['tau'] == 12).all()
        assert benefit['rmst_diff'].mean() > 0
        assert harm['rmst_diff'].mean() < 0
        assert benefit['p_rmst'].median() < 0.5 < harm['p_rmst'].median()


class TestSummarizeResults:
    """Tests for operating characteristic summaries."""

    def test_summary(self):
        config = two_arm_config(
            n=80,
            hr=0.5,
            analyses=[AnalysisSpec(events=40), AnalysisSpec(events=100)],
            nsim=20,
        )
        summary = summarize_results(run_simulation(config))

        assert list(summary.index) == [1, 2]
        assert (summary['n_sim'] == 20).all()
        assert summary.loc[2, 'power_logrank'] >= summary.loc[1, 'power_logrank']
        assert summary.loc[1, 'cut_time_q05'] <= summary.loc[1, 'cut_time_median'] <= summary.loc[1, 'cut_time_q95']
        assert 0 < summary.loc[2, 'hr_geomean'] < 1

    def test_invalid_alpha(self):
        with pytest.raises(ValueError, match="alpha"):
            summarize_results(pd.DataFrame(), alpha=1.5)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
