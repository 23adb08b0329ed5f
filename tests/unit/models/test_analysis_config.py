"""Tests for AnalysisConfig."""

from pumpwatch.constants import analysis as defaults
from pumpwatch.models.analysis import AnalysisConfig, PhasePolicy, TokenPhase


class TestPhasePolicies:
    def test_missing_phases_fall_back_to_defaults(self) -> None:
        custom = PhasePolicy(stop_loss=0.1, take_profit=0.2)

        config = AnalysisConfig(phase_policies={TokenPhase.LATE: custom})

        assert config.phase_policies[TokenPhase.LATE] == custom
        assert config.phase_policies[TokenPhase.EARLY].take_profit == defaults.EARLY_TAKE_PROFIT
        assert config.phase_policies[TokenPhase.MID].stop_loss == defaults.MID_STOP_LOSS

    def test_caller_mapping_is_left_untouched(self) -> None:
        policies = {TokenPhase.MID: PhasePolicy(stop_loss=0.2, take_profit=0.4)}

        config = AnalysisConfig(phase_policies=policies)

        assert list(policies) == [TokenPhase.MID]
        assert config.phase_policies is not policies
        assert set(config.phase_policies) == set(TokenPhase)

    def test_instances_do_not_share_policies(self) -> None:
        first = AnalysisConfig()
        second = AnalysisConfig()

        assert first.phase_policies is not second.phase_policies
