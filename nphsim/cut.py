"""
Analysis cutpoints: when to analyze a replicate and what the data look like then.
"""

from dataclasses import dataclass, field
from typing import Optional
import warnings

import numpy as np
import pandas as pd

from .exceptions import ConfigurationError, UnderpoweredReplicateWarning
from .statistical_tests import StatisticSpec


@dataclass(frozen=True)
class AnalysisSpec:
    """
    One planned analysis.

    Exactly one of ``events`` (analyze when this many events have occurred)
    or ``calendar_time`` (analyze at this time since the first enrollment
    opened) must be given.
    """
    events: Optional[int] = None
    calendar_time: Optional[float] = None
    statistic: StatisticSpec = field(default_factory=StatisticSpec)

    def __post_init__(self):
        if (self.events is None) == (self.calendar_time is None):
            raise ConfigurationError("an analysis needs exactly one of events or calendar_time")
        if self.events is not None and (int(self.events) != self.events or self.events <= 0):
            raise ConfigurationError("target event count must be a positive integer")
        if self.calendar_time is not None and not self.calendar_time > 0:
            raise ConfigurationError("analysis calendar time must be positive")
        if not isinstance(self.statistic, StatisticSpec):
            raise ConfigurationError("statistic must be a StatisticSpec")


@dataclass
class CutResult:
    """
    Attributes:
        data: Analysis dataset at the cut
        cut_time: Calendar time of the analysis
        target_events: Requested event count (None for calendar-time analyses)
        achieved_events: Events observed by the cut
        underpowered: True if fewer events than requested ever occurred
    """
    data: pd.DataFrame
    cut_time: float
    target_events: Optional[int]
    achieved_events: int
    underpowered: bool = False


def event_calendar_times(data: pd.DataFrame) -> np.ndarray:
    """Sorted calendar times of all observed (uncensored, finite) events."""
    cte = data.loc[data["censor"] == 0, "cte"].to_numpy(dtype=float)
    return np.sort(cte[np.isfinite(cte)])


def get_cut_date_by_event(data: pd.DataFrame, event: int) -> tuple[float, int]:
    """
    Calendar time at which the target event count is reached.

    Parameters
    ----------
    data : pd.DataFrame
        One replicate from ``simulate_replicate``
    event : int
        Target event count

    Returns
    -------
    (cut_time, achieved_events)
        If fewer than ``event`` events ever occur, the latest finite calendar
        time in the replicate (full follow-up) and the number of events there.
    """
    times = event_calendar_times(data)
    if len(times) >= event:
        return float(times[event - 1]), int(event)

    cte = data["cte"].to_numpy(dtype=float)
    finite = cte[np.isfinite(cte)]
    if len(finite) > 0:
        cut_time = float(finite.max())
    else:
        cut_time = float(data["enroll_time"].max()) if len(data) else 0.0
    return cut_time, int(len(times))


def cut_data_by_date(data: pd.DataFrame, cut_date: float) -> pd.DataFrame:
    """
    Cut trial data at a calendar date for analysis.

    Patients enrolled after the cut are dropped. Everyone else is followed to
    the earlier of their event/dropout and the cut; anyone still event free at
    the cut is administratively censored. Latent times are never resampled, so
    cuts at increasing dates only add information.

    Returns
    -------
    pd.DataFrame
        Copy of the enrolled patients with ``tte`` and ``censor`` as of the cut
    """
    result = data[data["enroll_time"] <= cut_date].copy()
    result["tte"] = np.minimum(result["cte"], cut_date) - result["enroll_time"]
    result["censor"] = np.where((result["censor"] == 0) & (result["cte"] <= cut_date), 0, 1)
    return result


def resolve_analysis(data: pd.DataFrame, spec: AnalysisSpec) -> CutResult:
    """Find the analysis time for ``spec`` and cut the replicate there."""
    if spec.events is not None:
        cut_time, achieved = get_cut_date_by_event(data, int(spec.events))
        underpowered = achieved < spec.events
        if underpowered:
            warnings.warn(
                f"only {achieved} of {spec.events} target events occurred; analyzing at {cut_time:.4g}",
                UnderpoweredReplicateWarning,
            )
        target = int(spec.events)
    else:
        cut_time = float(spec.calendar_time)
        target = None
        underpowered = False

    cut = cut_data_by_date(data, cut_time)
    achieved = int((cut["censor"] == 0).sum())
    return CutResult(
        data=cut,
        cut_time=cut_time,
        target_events=target,
        achieved_events=achieved,
        underpowered=underpowered,
    )
