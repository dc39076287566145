"""
Enrollment simulation from a piecewise-constant enrollment rate.
"""

from typing import Optional

import numpy as np
from numpy.typing import NDArray

from .distributions import RateSchedule, rpwexp
from .exceptions import ConfigurationError


def simulate_enrollment(
    schedule: RateSchedule,
    n: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    fix_enroll_time: bool = False,
    duration: Optional[float] = None,
) -> NDArray[np.float64]:
    """
    Simulate patient entry times.

    Parameters
    ----------
    schedule : RateSchedule
        Enrollment rate (patients per time unit) by period
    n : int, optional
        Number of patients. Required unless ``fix_enroll_time`` is set.
    rng : np.random.Generator, optional
        Random generator
    fix_enroll_time : bool
        If False, enroll exactly n patients, extending the last period as long
        as needed. If True, enroll until the schedule ends; the number of
        patients is then random (and at most n when n is given).
    duration : float, optional
        Total enrollment duration for the fixed-time mode. Defaults to
        ``schedule.end``.

    Returns
    -------
    np.ndarray
        Non-decreasing entry times
    """
    if rng is None:
        rng = np.random.default_rng()

    if not fix_enroll_time:
        if n is None or n <= 0:
            raise ConfigurationError("sample size must be positive when enrollment time is not fixed")
        return rpwexp(n, schedule, rng, cumulative=True)

    end = schedule.end if duration is None else float(duration)
    if not np.isfinite(end) or end <= 0:
        raise ConfigurationError("fixed enrollment time requires a finite, positive enrollment duration")
    if n is not None and n <= 0:
        raise ConfigurationError("sample size must be positive")

    # Given the count, Poisson arrivals are uniform on the cumulative-rate scale
    total = float(schedule.cumulative_hazard(end))
    arrivals = np.sort(rng.uniform(0.0, total, rng.poisson(total)))
    if n is not None:
        arrivals = arrivals[:n]
    return schedule.inverse_cumulative_hazard(arrivals)
