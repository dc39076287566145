"""
Monte-Carlo driver: simulate replicates, analyze each at every planned
analysis and collect one result row per (replicate, analysis).
"""

from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Optional
import logging
import os
import warnings

import numpy as np
import pandas as pd

from .config import TrialConfig
from .cut import resolve_analysis
from .exceptions import ConfigurationError, NumericDegeneracyWarning, UnderpoweredReplicateWarning
from .statistical_tests import AnalysisResult
from .survival import replicate_seeds, simulate_replicate

logger = logging.getLogger(__name__)


def analyze_replicate(data: pd.DataFrame, analyses: list, sim: int, stratum=None) -> list[AnalysisResult]:
    """
    Run every planned analysis on one replicate.

    All analyses cut the same latent data, so later cuts extend earlier ones.
    """
    results = []
    for index, spec in enumerate(analyses, start=1):
        cut = resolve_analysis(data, spec)
        result = spec.statistic.compute(cut.data, stratum)
        results.append(replace(
            result,
            sim=sim,
            analysis=index,
            cut_time=cut.cut_time,
            target_events=cut.target_events,
            underpowered=cut.underpowered,
        ))
    return results


@dataclass
class _ChunkInput:
    config: TrialConfig
    start: int
    seeds: list


def _run_chunk(payload: _ChunkInput) -> list[dict]:
    rows = []
    with warnings.catch_warnings():
        # Shortfalls and clamping are recorded in each row instead
        warnings.simplefilter("ignore", UnderpoweredReplicateWarning)
        warnings.simplefilter("ignore", NumericDegeneracyWarning)
        for offset, seq in enumerate(payload.seeds):
            sim = payload.start + offset + 1
            data = simulate_replicate(payload.config, np.random.default_rng(seq), sim=sim)
            results = analyze_replicate(data, payload.config.analyses, sim, payload.config.stratum)
            rows.extend(result.to_row() for result in results)
    return rows


def run_simulation(
    config: TrialConfig,
    n_jobs: int = 1,
    chunk_size: Optional[int] = None,
) -> pd.DataFrame:
    """
    Simulate ``config.nsim`` trials and analyze each one.

    Parameters
    ----------
    config : TrialConfig
        Trial configuration with at least one analysis
    n_jobs : int
        Worker processes. -1 uses all CPUs. Results do not depend on this.
    chunk_size : int, optional
        Replicates per work unit (default: spread evenly over workers)

    Returns
    -------
    pd.DataFrame
        One row per (sim, analysis), sorted by sim then analysis
    """
    if not config.analyses:
        raise ConfigurationError("at least one analysis is required")
    if n_jobs == -1:
        n_jobs = os.cpu_count() or 1
    if n_jobs < 1:
        raise ConfigurationError("n_jobs must be positive or -1")

    seeds = replicate_seeds(config.seed, config.nsim)
    if chunk_size is None:
        chunk_size = max(1, int(np.ceil(config.nsim / (4 * n_jobs))))
    payloads = [
        _ChunkInput(config=config, start=start, seeds=seeds[start:start + chunk_size])
        for start in range(0, config.nsim, chunk_size)
    ]

    logger.info(
        f"Simulating {config.nsim} trials ({config.n_experimental} experimental, "
        f"{config.n_control} control), {len(config.analyses)} analyses, n_jobs={n_jobs}"
    )

    rows = []
    if n_jobs == 1:
        for payload in payloads:
            rows.extend(_run_chunk(payload))
            logger.debug(f"  Finished replicates {payload.start + 1}-{payload.start + len(payload.seeds)}")
    else:
        max_workers = min(n_jobs, len(payloads))
        try:
            with ProcessPoolExecutor(max_workers=max_workers) as executor:
                for chunk in executor.map(_run_chunk, payloads):
                    rows.extend(chunk)
        except (PermissionError, NotImplementedError, OSError):
            logger.info("Process pool unavailable, falling back to threads")
            rows = []
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                for chunk in executor.map(_run_chunk, payloads):
                    rows.extend(chunk)

    results = pd.DataFrame(rows).sort_values(["sim", "analysis"]).reset_index(drop=True)
    n_short = int(results["underpowered"].sum())
    if n_short:
        logger.info(f"{n_short} analyses did not reach their target event count")
    logger.info(f"Completed {config.nsim} trials")
    return results


def summarize_results(results: pd.DataFrame, alpha: float = 0.025) -> pd.DataFrame:
    """
    Operating characteristics by analysis.

    Parameters
    ----------
    results : pd.DataFrame
        Output of ``run_simulation``
    alpha : float
        One-sided significance level; power is the fraction of replicates
        with p < alpha (undefined p-values count as non-rejections)

    Returns
    -------
    pd.DataFrame
        One row per analysis
    """
    if not 0 < alpha < 1:
        raise ValueError("alpha must be in (0, 1)")

    p_columns = [c for c in results.columns if c.startswith("p_")]
    summary = []
    for analysis, group in results.groupby("analysis"):
        times = group["cut_time"].to_numpy(dtype=float)
        row = {
            "analysis": analysis,
            "n_sim": len(group),
            "cut_time_mean": np.mean(times),
            "cut_time_median": np.median(times),
            "cut_time_q05": np.percentile(times, 5),
            "cut_time_q95": np.percentile(times, 95),
            "events_mean": group["events"].mean(),
            "underpowered": group["underpowered"].mean(),
        }
        for column in p_columns:
            p = group[column]
            if p.notna().any():
                row[f"power_{column[2:]}"] = float((p < alpha).mean())
        if "log_hr" in group and group["log_hr"].notna().any():
            row["hr_geomean"] = float(np.exp(group["log_hr"].mean()))
        if "rmst_diff" in group and group["rmst_diff"].notna().any():
            row["rmst_diff_mean"] = float(group["rmst_diff"].mean())
        summary.append(row)
    return pd.DataFrame(summary).set_index("analysis")
