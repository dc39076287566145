"""
Tests for trial configuration.
"""

import json

import pytest

from nphsim import (
    RateSchedule,
    TrialConfig,
    AnalysisSpec,
    StatisticKind,
    ConfigurationError,
)


@pytest.fixture
def config_dict():
    return {
        'n_experimental': 100,
        'n_control': 100,
        'enroll_rate': {'rates': [5, 15], 'intervals': [3]},
        'fail_rate': {
            'control': {'rates': [0.08]},
            'experimental': {'rate': [0.08, 0.04], 'duration': [4, 100]},
        },
        'dropout_rate': {'rates': [0.005]},
        'analyses': [
            {'events': 80},
            {'events': 150, 'statistic': 'fh', 'pairs': [[0, 0], [0, 1]]},
            {'calendar_time': 40, 'statistic': 'rmst', 'tau': 12},
        ],
        'nsim': 10,
        'seed': 99,
    }


class TestTrialConfig:
    """Tests for TrialConfig validation."""

    def test_shared_schedule_applies_to_both_arms(self):
        cfg = TrialConfig(
            n_experimental=10,
            n_control=10,
            enroll_rate=RateSchedule.constant(5),
            fail_rate=RateSchedule.constant(0.1),
        )

        assert cfg.fail_rate['experimental'] == cfg.fail_rate['control']
        assert cfg.dropout_rate['control'].rates == (0.0,)

    @pytest.mark.parametrize('field', ['n_experimental', 'n_control', 'nsim'])
    def test_non_positive_sizes(self, field):
        kwargs = dict(
            n_experimental=10,
            n_control=10,
            enroll_rate=RateSchedule.constant(5),
            fail_rate=RateSchedule.constant(0.1),
        )
        kwargs[field] = 0
        with pytest.raises(ConfigurationError, match=field):
            TrialConfig(**kwargs)

    def test_unknown_arm(self):
        with pytest.raises(ConfigurationError, match="unknown arm"):
            TrialConfig(
                n_experimental=10,
                n_control=10,
                enroll_rate=RateSchedule.constant(5),
                fail_rate={'treatment': RateSchedule.constant(0.1), 'control': RateSchedule.constant(0.1)},
            )

    def test_missing_arm(self):
        with pytest.raises(ConfigurationError, match="missing arms"):
            TrialConfig(
                n_experimental=10,
                n_control=10,
                enroll_rate=RateSchedule.constant(5),
                fail_rate={'control': RateSchedule.constant(0.1)},
            )

    def test_zero_final_enrollment_rate(self):
        with pytest.raises(ConfigurationError, match="final enrollment rate"):
            TrialConfig(
                n_experimental=10,
                n_control=10,
                enroll_rate=RateSchedule(rates=(5, 0), intervals=(4,)),
                fail_rate=RateSchedule.constant(0.1),
            )

    def test_fixed_enrollment_needs_duration(self):
        with pytest.raises(ConfigurationError, match="fixed enrollment time"):
            TrialConfig(
                n_experimental=10,
                n_control=10,
                enroll_rate=RateSchedule.constant(5),
                fail_rate=RateSchedule.constant(0.1),
                fix_enroll_time=True,
            )

    def test_stratum_rejected(self):
        with pytest.raises(ConfigurationError, match="stratified"):
            TrialConfig(
                n_experimental=10,
                n_control=10,
                enroll_rate=RateSchedule.constant(5),
                fail_rate=RateSchedule.constant(0.1),
                stratum='region',
            )


class TestFromDict:
    """Tests for building configurations from plain data."""

    def test_from_dict(self, config_dict):
        cfg = TrialConfig.from_dict(config_dict)

        assert cfg.nsim == 10
        assert cfg.seed == 99
        assert cfg.enroll_rate == RateSchedule(rates=(5, 15), intervals=(3,))
        assert cfg.fail_rate['experimental'].rates == (0.08, 0.04)
        assert cfg.fail_rate['experimental'].intervals == (4.0,)
        assert [a.statistic.kind for a in cfg.analyses] == [
            StatisticKind.LOGRANK, StatisticKind.FLEMING_HARRINGTON, StatisticKind.RMST
        ]
        assert cfg.analyses[1].statistic.params.pairs == ((0.0, 0.0), (0.0, 1.0))
        assert cfg.analyses[2] == AnalysisSpec(
            calendar_time=40, statistic=cfg.analyses[2].statistic
        )

    def test_from_json(self, config_dict, tmp_path):
        path = tmp_path / 'trial.json'
        path.write_text(json.dumps(config_dict))

        cfg = TrialConfig.from_json(path)
        assert cfg.analyses[2].statistic.params.tau == 12

    def test_unknown_statistic(self, config_dict):
        config_dict['analyses'] = [{'events': 10, 'statistic': 'maxcombo'}]
        with pytest.raises(ConfigurationError, match="unknown statistic"):
            TrialConfig.from_dict(config_dict)

    def test_unknown_key(self, config_dict):
        config_dict['strata'] = 2
        with pytest.raises(ConfigurationError, match="unknown configuration keys"):
            TrialConfig.from_dict(config_dict)

    def test_missing_key(self, config_dict):
        del config_dict['fail_rate']
        with pytest.raises(ConfigurationError, match="missing"):
            TrialConfig.from_dict(config_dict)

    def test_bad_arm_label(self, config_dict):
        config_dict['fail_rate'] = {'exp': {'rates': [0.1]}, 'control': {'rates': [0.1]}}
        with pytest.raises(ConfigurationError, match="unknown arm"):
            TrialConfig.from_dict(config_dict)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
