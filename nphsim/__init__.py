# nphsim - simulation of two-arm time-to-event trials under
# piecewise exponential enrollment, failure and dropout

from .exceptions import ConfigurationError, UnderpoweredReplicateWarning, NumericDegeneracyWarning
from .distributions import RateSchedule, rpwexp
from .enrollment import simulate_enrollment
from .survival import (
    EXPERIMENTAL,
    CONTROL,
    simulate_failure_dropout,
    simulate_replicate,
    simulate_trials,
)
from .cut import AnalysisSpec, get_cut_date_by_event, cut_data_by_date, resolve_analysis
from .statistical_tests import (
    StatisticKind,
    StatisticSpec,
    LogrankParams,
    FlemingHarringtonParams,
    RMSTParams,
    AnalysisResult,
    weighted_logrank,
)
from .config import TrialConfig
from .runner import run_simulation, summarize_results

__version__ = "0.1.0"
__all__ = [
    "ConfigurationError",
    "UnderpoweredReplicateWarning",
    "NumericDegeneracyWarning",
    "RateSchedule",
    "rpwexp",
    "simulate_enrollment",
    "EXPERIMENTAL",
    "CONTROL",
    "simulate_failure_dropout",
    "simulate_replicate",
    "simulate_trials",
    "AnalysisSpec",
    "get_cut_date_by_event",
    "cut_data_by_date",
    "resolve_analysis",
    "StatisticKind",
    "StatisticSpec",
    "LogrankParams",
    "FlemingHarringtonParams",
    "RMSTParams",
    "AnalysisResult",
    "weighted_logrank",
    "TrialConfig",
    "run_simulation",
    "summarize_results",
]
