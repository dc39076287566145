"""
Piecewise exponential rate schedules and random variate generation.

A rate schedule is a piecewise-constant hazard (or arrival-rate) function.
Sampling inverts the piecewise-linear cumulative hazard H(t):

- failure/dropout times: t = H^-1(E), E ~ Exp(1)
- enrollment arrivals:   t_k = H^-1(E_1 + ... + E_k)

The second form is the arrival sequence of an inhomogeneous Poisson process,
so the last interval can be extended as far as needed without iterating.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from .exceptions import ConfigurationError


@dataclass(frozen=True)
class RateSchedule:
    """
    Piecewise-constant rate function.

    Attributes:
        rates: Rate in each interval (events or patients per time unit)
        intervals: Lengths of all intervals except the last, which is open ended.
            Must have exactly ``len(rates) - 1`` entries.
        duration: Optional length of the final interval. Only used when a
            schedule has to end, i.e. fixed-duration enrollment.
    """
    rates: tuple
    intervals: tuple = ()
    duration: Optional[float] = None

    def __post_init__(self):
        rates = tuple(float(r) for r in np.atleast_1d(np.asarray(self.rates, dtype=float)))
        intervals = tuple(float(d) for d in np.atleast_1d(np.asarray(self.intervals, dtype=float)))
        object.__setattr__(self, "rates", rates)
        object.__setattr__(self, "intervals", intervals)

        if len(rates) == 0:
            raise ConfigurationError("rate schedule needs at least one rate")
        if len(intervals) != len(rates) - 1:
            raise ConfigurationError(
                f"rate schedule has {len(rates)} rates but {len(intervals)} intervals; "
                f"expected {len(rates) - 1}"
            )
        if any(not np.isfinite(r) or r < 0 for r in rates):
            raise ConfigurationError("rates must be finite and non-negative")
        if any(not np.isfinite(d) or d <= 0 for d in intervals):
            raise ConfigurationError("interval lengths must be finite and positive")
        if self.duration is not None and not self.duration > 0:
            raise ConfigurationError("final interval duration must be positive")

    @classmethod
    def constant(cls, rate: float, duration: Optional[float] = None) -> "RateSchedule":
        """Single-interval schedule (ordinary exponential)."""
        return cls(rates=(rate,), duration=duration)

    @classmethod
    def from_median(cls, median_survival: float) -> "RateSchedule":
        """Constant hazard giving the requested median survival."""
        if median_survival <= 0:
            raise ConfigurationError("median survival must be positive")
        return cls.constant(np.log(2) / median_survival)

    @classmethod
    def from_durations(cls, durations: Sequence[float], rates: Sequence[float]) -> "RateSchedule":
        """
        Build from per-period durations, one per rate.

        The last duration becomes the (advisory) length of the final interval.
        """
        durations = list(durations)
        rates = list(rates)
        if len(durations) != len(rates):
            raise ConfigurationError("durations and rates must have the same length")
        last = durations[-1] if durations and np.isfinite(durations[-1]) else None
        return cls(rates=tuple(rates), intervals=tuple(durations[:-1]), duration=last)

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "RateSchedule":
        """Build from a DataFrame with 'duration' and 'rate' columns."""
        missing = {"duration", "rate"} - set(frame.columns)
        if missing:
            raise ConfigurationError(f"rate frame is missing columns: {sorted(missing)}")
        return cls.from_durations(frame["duration"].tolist(), frame["rate"].tolist())

    @property
    def starts(self) -> NDArray[np.float64]:
        """Start time of each interval."""
        return np.concatenate([[0.0], np.cumsum(self.intervals)])

    @property
    def end(self) -> float:
        """End of the schedule; infinite unless a final duration is set."""
        if self.duration is None:
            return np.inf
        return float(self.starts[-1] + self.duration)

    def _hazard_at_starts(self) -> NDArray[np.float64]:
        rates = np.asarray(self.rates)
        return np.concatenate([[0.0], np.cumsum(rates[:-1] * np.asarray(self.intervals))])

    def scale(self, factor: float) -> "RateSchedule":
        """Schedule with every rate multiplied by ``factor``."""
        return RateSchedule(
            rates=tuple(r * factor for r in self.rates),
            intervals=self.intervals,
            duration=self.duration,
        )

    def hazard(self, t):
        """Rate in force at time(s) t."""
        t = np.asarray(t, dtype=float)
        idx = np.clip(np.searchsorted(self.starts, t, side="right") - 1, 0, len(self.rates) - 1)
        return np.where(t < 0, 0.0, np.asarray(self.rates)[idx])

    def cumulative_hazard(self, t):
        """Integrated rate H(t) from 0 to t."""
        t = np.asarray(t, dtype=float)
        starts = self.starts
        idx = np.clip(np.searchsorted(starts, t, side="right") - 1, 0, len(self.rates) - 1)
        h = self._hazard_at_starts()[idx] + np.asarray(self.rates)[idx] * (t - starts[idx])
        return np.where(t <= 0, 0.0, h)

    def survival(self, t):
        """Survival probability S(t) = exp(-H(t))."""
        return np.exp(-self.cumulative_hazard(t))

    def inverse_cumulative_hazard(self, h) -> NDArray[np.float64]:
        """
        Smallest t with H(t) = h.

        Zero-rate interior intervals are skipped over. Values beyond the reach
        of a zero terminal rate map to infinity.
        """
        h = np.asarray(h, dtype=float)
        rates = np.asarray(self.rates)
        starts = self.starts
        h_starts = self._hazard_at_starts()

        # side="right" lands on the last of several equal H values, i.e. past
        # any zero-rate interval
        idx = np.clip(np.searchsorted(h_starts, h, side="right") - 1, 0, len(rates) - 1)
        rate = rates[idx]
        with np.errstate(divide="ignore", invalid="ignore"):
            t = starts[idx] + (h - h_starts[idx]) / rate
        return np.where(rate > 0, t, np.inf)


def rpwexp(
    n: int,
    schedule: RateSchedule,
    rng: Optional[np.random.Generator] = None,
    cumulative: bool = False,
) -> NDArray[np.float64]:
    """
    Generate piecewise exponential random variates.

    Parameters
    ----------
    n : int
        Number of variates
    schedule : RateSchedule
        Hazard (or arrival rate) schedule
    rng : np.random.Generator, optional
        Random generator. A fresh unseeded generator is used if omitted.
    cumulative : bool
        If False, return n independent failure times. If True, return the
        first n arrival times of a Poisson process with this rate function
        (strictly increasing).

    Returns
    -------
    np.ndarray
        Variates; ``inf`` where a zero terminal rate means the event never occurs

    Example
    -------
    >>> schedule = RateSchedule(rates=(0.1, 0.05), intervals=(3,))
    >>> times = rpwexp(100, schedule, np.random.default_rng(1))
    """
    if n < 0:
        raise ConfigurationError("n must be non-negative")
    if rng is None:
        rng = np.random.default_rng()

    draws = rng.standard_exponential(n)
    if cumulative:
        if schedule.rates[-1] <= 0:
            raise ConfigurationError(
                "terminal rate is 0; arrivals cannot be generated past the last interval"
            )
        draws = np.cumsum(draws)
    return schedule.inverse_cumulative_hazard(draws)
