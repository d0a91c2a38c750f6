"""
Functional beta regression of bounded outcomes on smoothed emotion curves.

The joy curve X_i(t) of each session enters the linear predictor through
the functional term

    integral of beta(t) * X_i(t) dt,  beta(t) = sum_k b_k * phi_k(t)

so that, after numerical integration, each basis function phi_k contributes
one ordinary column to the design matrix. The outcome (a proportion such as
accuracy) is modelled with a beta regression (statsmodels ``BetaModel``,
logit mean link, log precision link).

Model comparison follows the usual nested sequence:
- covariates only
- covariates + mean joy (scalar summary of the curve)
- covariates + functional joy term
compared by likelihood-ratio tests and by AIC/BIC.

References
----------
Ferrari, S., & Cribari-Neto, F. (2004). Beta regression for modelling rates
    and proportions. Journal of Applied Statistics, 31(7), 799-815.
Smithson, M., & Verkuilen, J. (2006). A better lemon squeezer?
    Psychological Methods, 11(1), 54-71.
Ramsay, J. O., & Silverman, B. W. (2005). Functional Data Analysis.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
import patsy
from scipy import stats
from scipy.integrate import trapezoid
from statsmodels.othermod.betareg import BetaModel
from statsmodels.tools.sm_exceptions import ConvergenceWarning

from .smoothing import summarize_curves

logger = logging.getLogger(__name__)

BASES = ("bspline", "fpca")
FUNCTIONAL_PREFIX = "joy_f"


@dataclass
class BetaFit:
    """Container for a fitted beta regression."""

    name: str
    result: Any  # statsmodels BetaResults
    llf: float
    n_params: int
    nobs: int
    aic: float
    bic: float
    converged: bool
    fit_warnings: List[str] = field(default_factory=list)

    # Mean-model names followed by "precision"
    @property
    def params(self) -> pd.Series:
        return pd.Series(self.result.params, index=self.result.model.exog_names)

    @property
    def bse(self) -> pd.Series:
        return pd.Series(np.asarray(self.result.bse), index=self.params.index)

    @property
    def pvalues(self) -> pd.Series:
        return pd.Series(np.asarray(self.result.pvalues), index=self.params.index)

    def coefficient_table(self) -> pd.DataFrame:
        """Estimates, standard errors, z and p values."""
        return pd.DataFrame({
            "estimate": self.params,
            "std_error": self.bse,
            "z_value": self.params / self.bse,
            "p_value": self.pvalues,
        })

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "nobs": self.nobs,
            "n_params": self.n_params,
            "log_likelihood": self.llf,
            "aic": self.aic,
            "bic": self.bic,
            "converged": self.converged,
            "warnings": self.fit_warnings,
            "coefficients": self.coefficient_table().to_dict(orient="index"),
        }


@dataclass
class FunctionalBasis:
    """Basis functions evaluated on the curve grid."""

    kind: str
    grid: np.ndarray
    matrix: np.ndarray  # (n_grid, n_basis)
    explained_variance: Optional[np.ndarray] = None

    @property
    def n_basis(self) -> int:
        return self.matrix.shape[1]

    @property
    def names(self) -> List[str]:
        return [f"{FUNCTIONAL_PREFIX}{k + 1}" for k in range(self.n_basis)]


@dataclass
class FunctionalModelResult:
    """Fitted functional model with its coefficient function."""

    fit: BetaFit
    basis: FunctionalBasis
    coefficient: np.ndarray  # beta(t) on the grid
    std_error: np.ndarray
    alpha: float = 0.05

    @property
    def grid(self) -> np.ndarray:
        return self.basis.grid

    @property
    def lower(self) -> np.ndarray:
        z = stats.norm.ppf(1 - self.alpha / 2)
        return self.coefficient - z * self.std_error

    @property
    def upper(self) -> np.ndarray:
        z = stats.norm.ppf(1 - self.alpha / 2)
        return self.coefficient + z * self.std_error

    def coefficient_frame(self) -> pd.DataFrame:
        """beta(t) with its pointwise confidence band."""
        return pd.DataFrame({
            "t": self.grid,
            "beta": self.coefficient,
            "std_error": self.std_error,
            "lower": self.lower,
            "upper": self.upper,
        })

    def to_dict(self) -> Dict[str, Any]:
        result = self.fit.to_dict()
        result.update({
            "basis": self.basis.kind,
            "n_basis": self.basis.n_basis,
            "coefficient_function": self.coefficient_frame().to_dict(orient="list"),
        })
        if self.basis.explained_variance is not None:
            result["explained_variance"] = self.basis.explained_variance.tolist()
        return result


@dataclass
class NestedModels:
    """The nested model sequence fitted on a common sample."""

    outcome: str
    fits: Dict[str, BetaFit]
    functional: FunctionalModelResult
    nobs: int


def squeeze_outcome(y: Union[np.ndarray, pd.Series], n: Optional[int] = None):
    """
    Move proportions from [0, 1] into (0, 1).

    Uses y' = (y (n - 1) + 0.5) / n (Smithson & Verkuilen, 2006).

    Parameters
    ----------
    y : array-like
        Proportions in [0, 1]
    n : Optional[int]
        Sample size; defaults to ``len(y)``

    Returns
    -------
    array-like
        Transformed proportions, same type as ``y``
    """
    n = len(y) if n is None else n
    if n < 2:
        raise ValueError("Need at least 2 observations to squeeze")
    return (y * (n - 1) + 0.5) / n


def quadrature_weights(grid: np.ndarray) -> np.ndarray:
    """Trapezoidal-rule weights for integrating over ``grid``."""
    grid = np.asarray(grid, dtype=float)
    weights = np.zeros_like(grid)
    steps = np.diff(grid)
    weights[:-1] += steps / 2
    weights[1:] += steps / 2
    return weights


def bspline_basis(grid: np.ndarray, n_basis: int = 5, degree: int = 3) -> FunctionalBasis:
    """
    B-spline basis on the grid.

    Parameters
    ----------
    grid : np.ndarray
        Evaluation points
    n_basis : int
        Number of basis functions (must exceed ``degree``)
    degree : int
        Spline degree

    Returns
    -------
    FunctionalBasis
    """
    if n_basis <= degree:
        raise ValueError(f"n_basis ({n_basis}) must be larger than degree ({degree})")

    matrix = patsy.dmatrix(
        f"bs(t, df={n_basis}, degree={degree}, include_intercept=True) - 1",
        {"t": np.asarray(grid, dtype=float)},
        return_type="matrix",
    )
    return FunctionalBasis(kind="bspline", grid=np.asarray(grid, dtype=float), matrix=np.asarray(matrix))


def fpca_basis(curves: pd.DataFrame, n_basis: int = 3) -> FunctionalBasis:
    """
    Functional principal components of a set of curves.

    Eigenfunctions are orthonormal with respect to the trapezoidal inner
    product on the grid.

    Parameters
    ----------
    curves : pd.DataFrame
        Curves on a common grid (columns are grid points)
    n_basis : int
        Number of components kept

    Returns
    -------
    FunctionalBasis
        Eigenfunctions, with the proportion of variance each explains
    """
    grid = curves.columns.to_numpy(dtype=float)
    values = curves.to_numpy(dtype=float)
    max_components = min(values.shape) - 1
    if not 1 <= n_basis <= max_components:
        raise ValueError(f"n_basis must be between 1 and {max_components} for FPCA")

    root_w = np.sqrt(quadrature_weights(grid))
    centered = (values - values.mean(axis=0)) * root_w
    _, singular, vt = np.linalg.svd(centered, full_matrices=False)

    eigenfunctions = vt[:n_basis].T / root_w[:, None]
    explained = singular ** 2 / np.sum(singular ** 2)

    return FunctionalBasis(
        kind="fpca",
        grid=grid,
        matrix=eigenfunctions,
        explained_variance=explained[:n_basis],
    )


def build_basis(
    curves: pd.DataFrame,
    kind: str = "bspline",
    n_basis: int = 5,
    degree: int = 3
) -> FunctionalBasis:
    """Basis of the requested kind for the curves' grid."""
    if kind == "bspline":
        return bspline_basis(curves.columns.to_numpy(dtype=float), n_basis, degree)
    elif kind == "fpca":
        return fpca_basis(curves, n_basis)
    raise ValueError(f"Unknown basis '{kind}'; expected one of {BASES}")


def functional_design(curves: pd.DataFrame, basis: FunctionalBasis) -> pd.DataFrame:
    """
    Integrate each curve against each basis function.

    Parameters
    ----------
    curves : pd.DataFrame
        Curves on the basis grid
    basis : FunctionalBasis
        Basis evaluated on the same grid

    Returns
    -------
    pd.DataFrame
        One column per basis function, same index as ``curves``
    """
    grid = curves.columns.to_numpy(dtype=float)
    if len(grid) != len(basis.grid) or not np.allclose(grid, basis.grid):
        raise ValueError("Curves and basis are evaluated on different grids")

    weighted = basis.matrix * quadrature_weights(grid)[:, None]
    design = curves.to_numpy(dtype=float) @ weighted
    return pd.DataFrame(design, index=curves.index, columns=basis.names)


def covariate_design(data: pd.DataFrame, covariates: Sequence[str]) -> pd.DataFrame:
    """
    Intercept plus scalar covariates.

    Text and categorical covariates are dummy coded; numeric covariates enter
    linearly. Covariates may also be index levels (e.g. ``session``).
    Covariates that do not vary in ``data`` are dropped.
    """
    data = data.copy()
    for name in covariates:
        if name not in data.columns and name in data.index.names:
            data[name] = data.index.get_level_values(name)

    terms = []
    for name in covariates:
        if name not in data.columns:
            raise ValueError(f"Covariate '{name}' not found in data")
        if data[name].nunique(dropna=True) <= 1:
            logger.warning(f"Dropping covariate '{name}': it does not vary")
            continue
        if pd.api.types.is_numeric_dtype(data[name]) and not pd.api.types.is_bool_dtype(data[name]):
            terms.append(name)
        else:
            terms.append(f"C({name})")

    formula = " + ".join(["1"] + terms)
    return patsy.dmatrix(formula, data, return_type="dataframe", NA_action="raise")


def fit_beta_regression(
    y: pd.Series,
    exog: pd.DataFrame,
    name: str = "model",
    maxiter: int = 5000,
) -> BetaFit:
    """
    Fit a beta regression with constant precision.

    Warnings raised by the optimiser are logged and recorded on the result
    instead of being raised.

    Parameters
    ----------
    y : pd.Series
        Outcome strictly inside (0, 1)
    exog : pd.DataFrame
        Mean-model design matrix including the intercept
    name : str
        Label used in logs and comparison tables
    maxiter : int
        Maximum optimiser iterations

    Returns
    -------
    BetaFit
    """
    y = pd.Series(y, dtype=float)
    if ((y <= 0) | (y >= 1)).any():
        raise ValueError("Beta regression needs outcomes strictly inside (0, 1)")
    if len(y) <= exog.shape[1] + 1:
        raise ValueError(
            f"Model '{name}' has {exog.shape[1] + 1} parameters but only {len(y)} observations"
        )

    model = BetaModel(y, exog)
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        result = model.fit(maxiter=maxiter, disp=False)

    messages = [str(w.message) for w in caught]
    for message in messages:
        logger.warning(f"[{name}] {message}")

    converged = bool(result.mle_retvals.get("converged", True)) if result.mle_retvals else True
    if any(issubclass(w.category, ConvergenceWarning) for w in caught):
        converged = False
    if not converged:
        logger.warning(f"[{name}] optimiser did not converge")

    llf = float(result.llf)
    n_params = len(result.params)
    nobs = int(result.nobs)

    return BetaFit(
        name=name,
        result=result,
        llf=llf,
        n_params=n_params,
        nobs=nobs,
        aic=-2 * llf + 2 * n_params,
        bic=-2 * llf + np.log(nobs) * n_params,
        converged=converged,
        fit_warnings=messages,
    )


def _prepare_outcome(
    data: pd.DataFrame,
    outcome: str,
    squeeze: bool
) -> pd.Series:
    if outcome not in data.columns:
        raise ValueError(f"Outcome '{outcome}' not found in data")

    y = pd.to_numeric(data[outcome], errors="coerce")
    if y.isna().any():
        raise ValueError(f"Outcome '{outcome}' has {y.isna().sum()} missing values")
    if ((y < 0) | (y > 1)).any():
        raise ValueError(f"Outcome '{outcome}' must lie in [0, 1]")

    on_boundary = ((y == 0) | (y == 1)).sum()
    if on_boundary:
        if not squeeze:
            raise ValueError(
                f"Outcome '{outcome}' has {on_boundary} values of exactly 0 or 1; "
                f"enable squeezing or remove them"
            )
        logger.info(f"Squeezing '{outcome}' ({on_boundary} boundary values)")
        y = squeeze_outcome(y)
    return y


def fit_functional_model(
    data: pd.DataFrame,
    curves: pd.DataFrame,
    outcome: str = "accuracy",
    covariates: Sequence[str] = (),
    basis: Union[str, FunctionalBasis] = "bspline",
    n_basis: int = 5,
    degree: int = 3,
    squeeze: bool = True,
    maxiter: int = 5000,
    alpha: float = 0.05,
) -> FunctionalModelResult:
    """
    Fit the functional beta regression of ``outcome`` on the joy curves.

    Parameters
    ----------
    data : pd.DataFrame
        Analysis table (outcome and covariates), same index as ``curves``
    curves : pd.DataFrame
        Smoothed curves on a common grid
    outcome : str
        Proportion outcome column
    covariates : Sequence[str]
        Scalar covariates
    basis : Union[str, FunctionalBasis]
        ``"bspline"``, ``"fpca"`` or a prebuilt basis
    n_basis, degree
        Basis dimension and spline degree
    squeeze : bool
        Apply the Smithson-Verkuilen transform when outcomes hit 0 or 1
    maxiter : int
        Maximum optimiser iterations
    alpha : float
        Level of the pointwise confidence band for beta(t)

    Returns
    -------
    FunctionalModelResult
    """
    curves = curves.loc[data.index]
    if isinstance(basis, str):
        basis = build_basis(curves, basis, n_basis, degree)

    y = _prepare_outcome(data, outcome, squeeze)
    exog = pd.concat(
        [covariate_design(data, covariates), functional_design(curves, basis)],
        axis=1,
    )
    fit = fit_beta_regression(y, exog, name="functional", maxiter=maxiter)

    names = basis.names
    coefs = fit.params[names].to_numpy()
    cov = np.asarray(fit.result.cov_params())
    positions = [list(fit.params.index).index(n) for n in names]
    cov = cov[np.ix_(positions, positions)]

    coefficient = basis.matrix @ coefs
    variance = np.einsum("gk,kl,gl->g", basis.matrix, cov, basis.matrix)
    std_error = np.sqrt(np.clip(variance, 0, None))

    return FunctionalModelResult(
        fit=fit,
        basis=basis,
        coefficient=coefficient,
        std_error=std_error,
        alpha=alpha,
    )


def fit_nested_models(
    data: pd.DataFrame,
    curves: pd.DataFrame,
    outcome: str = "accuracy",
    covariates: Sequence[str] = (),
    basis: str = "bspline",
    n_basis: int = 5,
    degree: int = 3,
    squeeze: bool = True,
    maxiter: int = 5000,
    alpha: float = 0.05,
) -> NestedModels:
    """
    Fit the covariates-only, mean-joy and functional-joy models.

    All three models use the same rows and the same (possibly squeezed)
    outcome so that their likelihoods are comparable.

    Returns
    -------
    NestedModels
    """
    curves = curves.loc[data.index]
    y = _prepare_outcome(data, outcome, squeeze)
    base = covariate_design(data, covariates)

    logger.info(f"Fitting nested models for '{outcome}' on {len(y)} sessions")

    fits = {}
    fits["covariates"] = fit_beta_regression(y, base, name="covariates", maxiter=maxiter)

    mean_joy = summarize_curves(curves)[["mean_joy"]]
    fits["mean_joy"] = fit_beta_regression(
        y, pd.concat([base, mean_joy], axis=1), name="mean_joy", maxiter=maxiter
    )

    # The outcome was squeezed above already
    functional_data = data.copy()
    functional_data[outcome] = y
    functional = fit_functional_model(
        functional_data,
        curves,
        outcome=outcome,
        covariates=covariates,
        basis=basis,
        n_basis=n_basis,
        degree=degree,
        squeeze=False,
        maxiter=maxiter,
        alpha=alpha,
    )
    fits["functional"] = functional.fit

    return NestedModels(outcome=outcome, fits=fits, functional=functional, nobs=len(y))


def likelihood_ratio_test(reduced: BetaFit, full: BetaFit) -> Dict[str, Any]:
    """
    Likelihood-ratio test of a reduced model against a full model.

    LR = 2 (llf_full - llf_reduced), compared to a chi-square distribution
    with the difference in parameter counts as degrees of freedom.

    Parameters
    ----------
    reduced : BetaFit
        Nested (smaller) model
    full : BetaFit
        Larger model

    Returns
    -------
    Dict[str, Any]
        Statistic, df, p-value and model names
    """
    if reduced.nobs != full.nobs:
        raise ValueError(
            f"Models fitted on different samples ({reduced.nobs} vs {full.nobs})"
        )
    df = full.n_params - reduced.n_params
    if df <= 0:
        raise ValueError(
            f"'{full.name}' must have more parameters than '{reduced.name}'"
        )

    statistic = 2 * (full.llf - reduced.llf)
    if statistic < 0:
        logger.warning(
            f"Negative LR statistic ({statistic:.4f}) for {reduced.name} vs {full.name}; "
            f"the larger model probably did not reach its optimum"
        )
        statistic = 0.0

    p_value = float(stats.chi2.sf(statistic, df))
    return {
        "reduced": reduced.name,
        "full": full.name,
        "statistic": float(statistic),
        "df": int(df),
        "p_value": p_value,
    }


def compare_information_criteria(fits: Union[Dict[str, BetaFit], Sequence[BetaFit]]) -> pd.DataFrame:
    """
    AIC/BIC comparison with Akaike weights.

    Parameters
    ----------
    fits : Union[Dict[str, BetaFit], Sequence[BetaFit]]
        Models fitted to the same outcome and rows

    Returns
    -------
    pd.DataFrame
        One row per model, sorted by AIC
    """
    fits = list(fits.values()) if isinstance(fits, dict) else list(fits)
    if not fits:
        raise ValueError("No models to compare")

    table = pd.DataFrame({
        "n_params": [f.n_params for f in fits],
        "log_likelihood": [f.llf for f in fits],
        "aic": [f.aic for f in fits],
        "bic": [f.bic for f in fits],
        "converged": [f.converged for f in fits],
    }, index=pd.Index([f.name for f in fits], name="model"))

    table["delta_aic"] = table["aic"] - table["aic"].min()
    table["delta_bic"] = table["bic"] - table["bic"].min()
    relative = np.exp(-0.5 * table["delta_aic"])
    table["aic_weight"] = relative / relative.sum()

    return table.sort_values("aic")
