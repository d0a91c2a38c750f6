"""
Per-session kernel smoothing of emotion trajectories.

Each session's binned intensities are moved to the logit scale, smoothed
with a local-linear kernel regression (statsmodels ``KernelReg``) whose
bandwidth is chosen by the corrected AIC of Hurvich, Simonoff and Tsai
(1998) or by least-squares cross-validation, and predicted on a common grid
of normalised session time before being mapped back to the unit interval.

Putting every session on the same [0, 1] grid is what allows the curves to
enter the functional regression as a single matrix.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple, Union

import numpy as np
import pandas as pd
from scipy.integrate import trapezoid
from scipy.special import expit, logit
from statsmodels.nonparametric.kernel_regression import KernelReg
from tqdm import tqdm

logger = logging.getLogger(__name__)

BANDWIDTH_SELECTORS = ("aic", "cv_ls")
TRANSFORMS = ("logit", "identity")


@dataclass
class SmoothedCurve:
    """Smoothed trajectory of one session on the common grid."""

    grid: np.ndarray
    values: np.ndarray
    bandwidth: float
    n_points: int


@dataclass
class SmoothingResult:
    """Smoothed curves for all sessions."""

    curves: pd.DataFrame  # index (subject_id, session), columns = grid
    bandwidths: pd.Series
    n_points: pd.Series
    skipped: List[Tuple] = field(default_factory=list)

    @property
    def grid(self) -> np.ndarray:
        return self.curves.columns.to_numpy(dtype=float)

    def to_dict(self) -> Dict:
        """Summary for serialization."""
        return {
            "n_sessions": len(self.curves),
            "n_grid": len(self.grid),
            "n_skipped": len(self.skipped),
            "skipped": [list(map(str, key)) for key in self.skipped],
            "bandwidth_median": float(self.bandwidths.median()),
            "bandwidth_min": float(self.bandwidths.min()),
            "bandwidth_max": float(self.bandwidths.max()),
        }


def logit_transform(p: np.ndarray, epsilon: float = 1e-3) -> np.ndarray:
    """
    Logit of intensities clipped to [epsilon, 1 - epsilon].

    Facial-coding intensities hit exactly 0 for long stretches, which the
    clipping keeps finite.
    """
    p = np.clip(np.asarray(p, dtype=float), epsilon, 1 - epsilon)
    return logit(p)


def inverse_logit(x: np.ndarray) -> np.ndarray:
    """Map values on the logit scale back to (0, 1)."""
    return expit(np.asarray(x, dtype=float))


def make_grid(n_grid: int) -> np.ndarray:
    """Common grid on the normalised session clock."""
    if n_grid < 2:
        raise ValueError("n_grid must be at least 2")
    return np.round(np.linspace(0.0, 1.0, n_grid), 6)


def smooth_session(
    times: np.ndarray,
    values: np.ndarray,
    grid: np.ndarray,
    bandwidth: Union[str, float] = "aic",
    reg_type: str = "ll",
    transform: str = "logit",
    epsilon: float = 1e-3,
) -> SmoothedCurve:
    """
    Smooth one session's trajectory and predict it on the grid.

    Parameters
    ----------
    times : np.ndarray
        Sample times (any unit; rescaled to [0, 1] within the session)
    values : np.ndarray
        Emotion intensities in [0, 1]; NaN entries are ignored
    grid : np.ndarray
        Prediction points on the normalised clock
    bandwidth : Union[str, float]
        ``"aic"``, ``"cv_ls"`` or a fixed bandwidth on the normalised clock
    reg_type : str
        ``"ll"`` (local linear) or ``"lc"`` (local constant)
    transform : str
        ``"logit"`` or ``"identity"``
    epsilon : float
        Clipping constant for the logit transform

    Returns
    -------
    SmoothedCurve
        Smoothed values on the grid, back-transformed to the intensity scale
    """
    times = np.asarray(times, dtype=float)
    values = np.asarray(values, dtype=float)
    if times.shape != values.shape:
        raise ValueError("times and values must have the same length")

    finite = np.isfinite(times) & np.isfinite(values)
    times, values = times[finite], values[finite]
    if len(values) < 3:
        raise ValueError(f"Need at least 3 observed points to smooth, got {len(values)}")

    span = times.max() - times.min()
    if span <= 0:
        raise ValueError("Session has no time span to smooth over")
    t = (times - times.min()) / span

    if transform == "logit":
        y = logit_transform(values, epsilon)
    elif transform == "identity":
        y = values
    else:
        raise ValueError(f"Unknown transform '{transform}'; expected one of {TRANSFORMS}")

    if isinstance(bandwidth, str) and bandwidth not in BANDWIDTH_SELECTORS:
        try:
            bandwidth = float(bandwidth)
        except ValueError:
            raise ValueError(
                f"Unknown bandwidth selector '{bandwidth}'; "
                f"expected one of {BANDWIDTH_SELECTORS} or a number"
            ) from None

    if isinstance(bandwidth, str):
        bw = bandwidth
    else:
        if bandwidth <= 0:
            raise ValueError("Fixed bandwidth must be positive")
        bw = [float(bandwidth)]

    model = KernelReg(endog=y, exog=t, var_type="c", reg_type=reg_type, bw=bw)
    fitted, _ = model.fit(np.asarray(grid, dtype=float))

    if transform == "logit":
        fitted = inverse_logit(fitted)
    else:
        fitted = np.clip(fitted, 0.0, 1.0)

    return SmoothedCurve(
        grid=np.asarray(grid, dtype=float),
        values=np.asarray(fitted, dtype=float),
        bandwidth=float(np.atleast_1d(model.bw)[0]),
        n_points=len(values),
    )


def smooth_sessions(
    wide: pd.DataFrame,
    n_grid: int = 50,
    bandwidth: Union[str, float] = "aic",
    reg_type: str = "ll",
    transform: str = "logit",
    epsilon: float = 1e-3,
    min_points: int = 10,
    show_progress: bool = True,
) -> SmoothingResult:
    """
    Smooth every subject-session of a wide emotion table.

    Parameters
    ----------
    wide : pd.DataFrame
        Output of :func:`joymath.data.preprocessing.reshape_to_wide`
    n_grid : int
        Number of grid points on the normalised clock
    bandwidth, reg_type, transform, epsilon
        Passed to :func:`smooth_session`
    min_points : int
        Sessions with fewer observed bins are skipped
    show_progress : bool
        Show a progress bar

    Returns
    -------
    SmoothingResult
        Curves with the same index as ``wide`` (minus skipped sessions)
    """
    grid = make_grid(n_grid)
    times = wide.columns.to_numpy(dtype=float)

    curves = {}
    bandwidths = {}
    n_points = {}
    skipped = []

    rows = tqdm(
        wide.iterrows(),
        total=len(wide),
        desc="Smoothing sessions",
        disable=not show_progress,
    )
    for key, row in rows:
        values = row.to_numpy(dtype=float)
        n_observed = int(np.isfinite(values).sum())
        if n_observed < max(min_points, 3):
            logger.warning(f"Skipping session {key}: only {n_observed} observed bins")
            skipped.append(key)
            continue

        curve = smooth_session(
            times,
            values,
            grid,
            bandwidth=bandwidth,
            reg_type=reg_type,
            transform=transform,
            epsilon=epsilon,
        )
        curves[key] = curve.values
        bandwidths[key] = curve.bandwidth
        n_points[key] = curve.n_points

    if not curves:
        raise ValueError("No session had enough observations to smooth")

    index = pd.MultiIndex.from_tuples(list(curves), names=wide.index.names)
    curve_table = pd.DataFrame(list(curves.values()), index=index, columns=grid)
    curve_table.columns.name = "t"

    result = SmoothingResult(
        curves=curve_table,
        bandwidths=pd.Series(list(bandwidths.values()), index=index, name="bandwidth"),
        n_points=pd.Series(list(n_points.values()), index=index, name="n_points"),
        skipped=skipped,
    )
    logger.info(
        f"Smoothed {len(curve_table)} sessions "
        f"(median bandwidth {result.bandwidths.median():.3f}, {len(skipped)} skipped)"
    )
    return result


def summarize_curves(curves: pd.DataFrame) -> pd.DataFrame:
    """
    Scalar summaries of smoothed curves.

    Parameters
    ----------
    curves : pd.DataFrame
        Curves on a common grid (columns are grid points in [0, 1])

    Returns
    -------
    pd.DataFrame
        ``mean_joy`` (area under the curve over the normalised clock),
        ``peak_joy`` and ``peak_time`` per row
    """
    grid = curves.columns.to_numpy(dtype=float)
    values = curves.to_numpy(dtype=float)
    span = grid[-1] - grid[0]

    return pd.DataFrame({
        "mean_joy": trapezoid(values, grid, axis=1) / span,
        "peak_joy": values.max(axis=1),
        "peak_time": grid[values.argmax(axis=1)],
    }, index=curves.index)
