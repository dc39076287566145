"""
Trial simulation configuration.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from .cut import AnalysisSpec
from .distributions import RateSchedule
from .exceptions import ConfigurationError
from .statistical_tests import StatisticSpec
from .survival import ARMS, check_stratum, validate_arm


def _per_arm(schedules, name: str) -> dict:
    """Normalize a schedule or an {arm: schedule} mapping to one schedule per arm."""
    if isinstance(schedules, RateSchedule):
        return {arm: schedules for arm in ARMS}
    if not isinstance(schedules, dict):
        raise ConfigurationError(f"{name} must be a RateSchedule or a mapping of arm to RateSchedule")
    for arm in schedules:
        validate_arm(arm)
    missing = set(ARMS) - set(schedules)
    if missing:
        raise ConfigurationError(f"{name} is missing arms: {sorted(missing)}")
    for arm, schedule in schedules.items():
        if not isinstance(schedule, RateSchedule):
            raise ConfigurationError(f"{name}[{arm!r}] must be a RateSchedule")
    return dict(schedules)


@dataclass
class TrialConfig:
    """
    Complete trial simulation configuration.

    Attributes:
        n_experimental: Sample size of the experimental arm
        n_control: Sample size of the control arm
        enroll_rate: Overall enrollment rate schedule
        fail_rate: Failure hazard schedule, shared or per arm
        dropout_rate: Dropout hazard schedule, shared or per arm (default: none)
        analyses: Planned analyses, in order
        nsim: Number of replicates
        seed: Master random seed
        fix_enroll_time: Enroll for a fixed duration instead of to a fixed sample size
        enroll_duration: Enrollment duration when ``fix_enroll_time`` is set
            (defaults to the enrollment schedule's end)
        stratum: Reserved for stratified designs; must be None
    """
    n_experimental: int
    n_control: int
    enroll_rate: RateSchedule
    fail_rate: Union[RateSchedule, dict]
    dropout_rate: Optional[Union[RateSchedule, dict]] = None
    analyses: list = field(default_factory=list)
    nsim: int = 1
    seed: Optional[int] = None
    fix_enroll_time: bool = False
    enroll_duration: Optional[float] = None
    stratum: Optional[object] = None

    def __post_init__(self):
        if self.dropout_rate is None:
            self.dropout_rate = RateSchedule.constant(0.0)
        self.fail_rate = _per_arm(self.fail_rate, "fail_rate")
        self.dropout_rate = _per_arm(self.dropout_rate, "dropout_rate")
        self.analyses = list(self.analyses)
        self.validate()
        self.n_experimental = int(self.n_experimental)
        self.n_control = int(self.n_control)
        self.nsim = int(self.nsim)

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: If any setting is invalid.
        """
        for name in ("n_experimental", "n_control", "nsim"):
            value = getattr(self, name)
            if isinstance(value, bool) or int(value) != value or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if not isinstance(self.enroll_rate, RateSchedule):
            raise ConfigurationError("enroll_rate must be a RateSchedule")
        if self.fix_enroll_time:
            end = self.enroll_rate.end if self.enroll_duration is None else self.enroll_duration
            if end is None or not 0 < end < float("inf"):
                raise ConfigurationError(
                    "fixed enrollment time needs enroll_duration or a final duration on enroll_rate"
                )
        elif self.enroll_rate.rates[-1] <= 0:
            raise ConfigurationError(
                "final enrollment rate is 0, so the sample size can never be reached"
            )
        for spec in self.analyses:
            if not isinstance(spec, AnalysisSpec):
                raise ConfigurationError("analyses must be AnalysisSpec instances")
        if self.seed is not None and int(self.seed) != self.seed:
            raise ConfigurationError("seed must be an integer")
        check_stratum(self.stratum)

    @classmethod
    def from_dict(cls, config: dict) -> "TrialConfig":
        """
        Build from plain data, e.g. parsed JSON.

        Schedules are ``{"rates": [...], "intervals": [...], "duration": ...}``
        or ``{"rate": [...], "duration": [...]}`` (one duration per rate).
        Analyses are ``{"events": 100}`` or ``{"calendar_time": 24}`` with an
        optional ``"statistic"`` token and its parameters::

            {"events": 300, "statistic": "fh", "pairs": [[0, 0], [0, 1]]}
            {"calendar_time": 30, "statistic": "rmst", "tau": 12}
        """
        config = dict(config)
        try:
            kwargs = {
                "n_experimental": config.pop("n_experimental"),
                "n_control": config.pop("n_control"),
                "enroll_rate": schedule_from_dict(config.pop("enroll_rate")),
                "fail_rate": _schedules_from_dict(config.pop("fail_rate")),
            }
        except KeyError as e:
            raise ConfigurationError(f"missing configuration key {e}") from e
        if config.get("dropout_rate") is not None:
            kwargs["dropout_rate"] = _schedules_from_dict(config.pop("dropout_rate"))
        else:
            config.pop("dropout_rate", None)
        kwargs["analyses"] = [analysis_from_dict(a) for a in config.pop("analyses", [])]

        unknown = set(config) - {"nsim", "seed", "fix_enroll_time", "enroll_duration", "stratum"}
        if unknown:
            raise ConfigurationError(f"unknown configuration keys: {sorted(unknown)}")
        kwargs.update(config)
        return cls(**kwargs)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "TrialConfig":
        """Load from a JSON file (see ``from_dict`` for the layout)."""
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))


def schedule_from_dict(value) -> RateSchedule:
    if isinstance(value, RateSchedule):
        return value
    if isinstance(value, (int, float)):
        return RateSchedule.constant(value)
    if not isinstance(value, dict):
        raise ConfigurationError(f"cannot build a rate schedule from {value!r}")
    if "rates" in value:
        return RateSchedule(
            rates=tuple(value["rates"]),
            intervals=tuple(value.get("intervals", ())),
            duration=value.get("duration"),
        )
    if "rate" in value and "duration" in value:
        return RateSchedule.from_durations(value["duration"], value["rate"])
    raise ConfigurationError(f"cannot build a rate schedule from {value!r}")


def _schedules_from_dict(value):
    """A single schedule, or a mapping of arm to schedule."""
    if isinstance(value, dict) and set(value) & set(ARMS):
        return {validate_arm(arm): schedule_from_dict(v) for arm, v in value.items()}
    if isinstance(value, dict) and not set(value) & {"rates", "rate"}:
        for arm in value:
            validate_arm(arm)
    return schedule_from_dict(value)


def analysis_from_dict(value: dict) -> AnalysisSpec:
    if isinstance(value, AnalysisSpec):
        return value
    value = dict(value)
    events = value.pop("events", None)
    calendar_time = value.pop("calendar_time", None)
    token = value.pop("statistic", "logrank")
    return AnalysisSpec(
        events=events,
        calendar_time=calendar_time,
        statistic=StatisticSpec.parse(token, **value),
    )
