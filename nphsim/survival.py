"""
Two-arm survival trial simulation.

Each replicate is a DataFrame with one row per patient:

- sim: replicate id
- patient: patient number within the replicate (by enrollment order)
- arm: 'experimental' or 'control'
- enroll_time: calendar time of randomization
- fail_time: latent time from randomization to event
- dropout_time: latent time from randomization to dropout
- tte: observed follow-up, min(fail_time, dropout_time)
- cte: calendar time of event or dropout (enroll_time + tte)
- censor: 1 if dropout came first, 0 if the event was observed
"""

from typing import Optional

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from .distributions import RateSchedule, rpwexp
from .enrollment import simulate_enrollment
from .exceptions import ConfigurationError

EXPERIMENTAL = "experimental"
CONTROL = "control"
ARMS = (EXPERIMENTAL, CONTROL)

COLUMNS = ["sim", "patient", "arm", "enroll_time", "fail_time", "dropout_time", "tte", "cte", "censor"]


def validate_arm(arm: str) -> str:
    """Return ``arm`` if it is one of the two accepted arm labels."""
    if arm not in ARMS:
        raise ConfigurationError(f"unknown arm {arm!r}; expected one of {ARMS}")
    return arm


def check_stratum(stratum) -> None:
    """Stratification is accepted in signatures but not implemented."""
    if stratum is not None:
        raise ConfigurationError("stratified simulation and analysis are not supported yet")


def simulate_failure_dropout(
    n: int,
    fail_rate: RateSchedule,
    dropout_rate: RateSchedule,
    rng: Optional[np.random.Generator] = None,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Draw latent event and dropout times, measured from each patient's randomization.

    Returns
    -------
    (fail_times, dropout_times)
    """
    if rng is None:
        rng = np.random.default_rng()
    fail_times = rpwexp(n, fail_rate, rng)
    dropout_times = rpwexp(n, dropout_rate, rng)
    return fail_times, dropout_times


def assemble_records(
    enroll_times: NDArray[np.float64],
    fail_times: NDArray[np.float64],
    dropout_times: NDArray[np.float64],
    arm: str,
) -> pd.DataFrame:
    """Combine latent times into observed follow-up and censoring for one arm."""
    tte = np.minimum(fail_times, dropout_times)
    return pd.DataFrame({
        "arm": validate_arm(arm),
        "enroll_time": enroll_times,
        "fail_time": fail_times,
        "dropout_time": dropout_times,
        "tte": tte,
        "cte": enroll_times + tte,
        "censor": (dropout_times < fail_times).astype(int),
    })


def simulate_replicate(config, rng: np.random.Generator, sim: int = 1) -> pd.DataFrame:
    """
    Simulate one trial replicate.

    Each arm is enrolled at its share of the overall enrollment rate, which
    keeps the arms independent Poisson processes with exactly the requested
    sample sizes (or, with a fixed enrollment time, the expected ones).

    Parameters
    ----------
    config : TrialConfig
        Validated trial configuration
    rng : np.random.Generator
        Generator owned by this replicate
    sim : int
        Replicate id

    Returns
    -------
    pd.DataFrame
        Patient records sorted by enrollment time
    """
    check_stratum(config.stratum)
    total = config.n_experimental + config.n_control

    frames = []
    for arm, n_arm in ((EXPERIMENTAL, config.n_experimental), (CONTROL, config.n_control)):
        enroll_times = simulate_enrollment(
            config.enroll_rate.scale(n_arm / total),
            n=n_arm,
            rng=rng,
            fix_enroll_time=config.fix_enroll_time,
            duration=config.enroll_duration,
        )
        fail_times, dropout_times = simulate_failure_dropout(
            len(enroll_times), config.fail_rate[arm], config.dropout_rate[arm], rng
        )
        frames.append(assemble_records(enroll_times, fail_times, dropout_times, arm))

    data = pd.concat(frames, ignore_index=True)
    data = data.sort_values("enroll_time", kind="mergesort").reset_index(drop=True)
    data.insert(0, "patient", np.arange(1, len(data) + 1))
    data.insert(0, "sim", sim)
    return data[COLUMNS]


def replicate_seeds(seed: Optional[int], nsim: int) -> list[np.random.SeedSequence]:
    """Independent seed sequences, one per replicate, derived from a master seed."""
    return np.random.SeedSequence(seed).spawn(nsim)


def simulate_trials(config) -> pd.DataFrame:
    """
    Simulate ``config.nsim`` independent replicates.

    Replicate ``i`` always uses the i-th child of the master seed, so any
    subset of replicates can be regenerated on its own.

    Returns
    -------
    pd.DataFrame
        All replicates stacked, identified by the ``sim`` column (1-based)
    """
    frames = [
        simulate_replicate(config, np.random.default_rng(seq), sim=i + 1)
        for i, seq in enumerate(replicate_seeds(config.seed, config.nsim))
    ]
    return pd.concat(frames, ignore_index=True)
