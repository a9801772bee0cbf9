from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy.stats import probplot
from sklearn.linear_model import LinearRegression
from sklearn.metrics import r2_score

from .errors import DegenerateFitError, ElementNetworkError, UndefinedTransformError

TRANSFORMS = ("linear", "log")
ZERO_POLICIES = ("exclude", "raise")

# (response_transform, predictor_transform) for n_minerals ~ n_elements.
CANDIDATE_FORMS: List[Tuple[str, str]] = [
    ("linear", "linear"),
    ("log", "linear"),
    ("log", "log"),
    ("linear", "log"),
]

# (response, predictor) pairs fitted with a single linear/linear model.
LOCALITY_RELATIONSHIPS: List[Tuple[str, str]] = [
    ("n_localities", "n_elements"),
    ("n_localities", "n_minerals"),
]

REPORT_DECIMALS = 3


def _format_number(value: float) -> str:
    rounded = round(float(value), REPORT_DECIMALS)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:.{REPORT_DECIMALS}f}".rstrip("0").rstrip(".")


def format_equation(slope: float, intercept: float) -> str:
    """Render ``Y = aX + b`` with the sign taken from the intercept."""
    if not (np.isfinite(slope) and np.isfinite(intercept)):
        raise ValueError(f"Cannot format equation from non-finite coefficients ({slope}, {intercept})")
    sign = "-" if intercept < 0 else "+"
    return f"Y = {_format_number(slope)}X {sign} {_format_number(abs(intercept))}"


def relationship_label(
    response: str, predictor: str, response_transform: str = "linear", predictor_transform: str = "linear"
) -> str:
    def _wrap(column: str, transform: str) -> str:
        return f"log({column})" if transform == "log" else column

    return f"{_wrap(response, response_transform)} ~ {_wrap(predictor, predictor_transform)}"


@dataclass(frozen=True)
class ModelFitResult:
    response: str
    predictor: str
    response_transform: str
    predictor_transform: str
    slope: float
    intercept: float
    r_squared: float
    n_observations: int
    excluded_symbols: Tuple[str, ...] = ()
    symbols: Tuple[str, ...] = ()
    x: np.ndarray = field(default=None, repr=False, compare=False)
    y: np.ndarray = field(default=None, repr=False, compare=False)
    fitted: np.ndarray = field(default=None, repr=False, compare=False)
    residuals: np.ndarray = field(default=None, repr=False, compare=False)

    @property
    def label(self) -> str:
        return relationship_label(
            self.response, self.predictor, self.response_transform, self.predictor_transform
        )

    @property
    def equation(self) -> str:
        return format_equation(self.slope, self.intercept)

    @property
    def r_squared_rounded(self) -> float:
        return round(self.r_squared, REPORT_DECIMALS)


@dataclass(frozen=True)
class FitFailure:
    label: str
    error: ElementNetworkError

    @property
    def reason(self) -> str:
        return str(self.error)


FitOutcome = Union[ModelFitResult, FitFailure]


def _check_transform(transform: str) -> None:
    if transform not in TRANSFORMS:
        raise ValueError(f"transform must be one of {TRANSFORMS}, got {transform!r}")


def _prepare_xy(
    table: pd.DataFrame,
    response: str,
    predictor: str,
    response_transform: str,
    predictor_transform: str,
    zero_policy: str,
    label: str,
    log_fn,
) -> Tuple[np.ndarray, np.ndarray, List[str], List[str]]:
    for column in (response, predictor):
        if column not in table.columns:
            raise DegenerateFitError(label, f"column {column!r} not in aggregate table")

    symbols = (
        table["symbol"].astype(str).tolist() if "symbol" in table.columns else [str(i) for i in table.index]
    )
    x = pd.to_numeric(table[predictor], errors="raise").to_numpy(dtype=float)
    y = pd.to_numeric(table[response], errors="raise").to_numpy(dtype=float)

    non_finite = ~(np.isfinite(x) & np.isfinite(y))
    if non_finite.any():
        bad = [s for s, flag in zip(symbols, non_finite) if flag]
        raise DegenerateFitError(label, f"non-finite input values for {', '.join(bad)}")

    keep = np.ones(len(x), dtype=bool)
    for column, values, transform in ((response, y, response_transform), (predictor, x, predictor_transform)):
        if transform != "log":
            continue
        undefined = values <= 0
        if not undefined.any():
            continue
        bad = [s for s, flag in zip(symbols, undefined) if flag]
        if zero_policy == "raise":
            raise UndefinedTransformError(label, column, bad)
        log_fn(f"[EXCLUDED][log_undefined:{column}] fit={label} symbols={','.join(bad)}")
        keep &= ~undefined

    excluded = [s for s, flag in zip(symbols, keep) if not flag]
    kept = [s for s, flag in zip(symbols, keep) if flag]
    x, y = x[keep], y[keep]
    if predictor_transform == "log":
        x = np.log(x)
    if response_transform == "log":
        y = np.log(y)
    return x, y, kept, excluded


def fit_relationship(
    table: pd.DataFrame,
    response: str,
    predictor: str,
    response_transform: str = "linear",
    predictor_transform: str = "linear",
    zero_policy: str = "exclude",
    logger=None,
) -> ModelFitResult:
    """
    Ordinary least squares fit of ``response ~ predictor`` after the requested
    transforms.

    Rows with non-positive values under a log transform are dropped
    (``zero_policy="exclude"``) or rejected (``zero_policy="raise"``).
    Raises DegenerateFitError when the regression is not identifiable.
    """
    _check_transform(response_transform)
    _check_transform(predictor_transform)
    if zero_policy not in ZERO_POLICIES:
        raise ValueError(f"zero_policy must be one of {ZERO_POLICIES}, got {zero_policy!r}")
    log_fn = logger.info if logger is not None else print
    label = relationship_label(response, predictor, response_transform, predictor_transform)

    x, y, kept, excluded = _prepare_xy(
        table, response, predictor, response_transform, predictor_transform, zero_policy, label, log_fn
    )
    if len(x) < 2:
        raise DegenerateFitError(label, f"{len(x)} usable observations, need at least 2")
    if len(np.unique(x)) < 2:
        raise DegenerateFitError(label, "fewer than 2 distinct predictor values")
    if np.ptp(y) == 0:
        raise DegenerateFitError(label, "response has zero variance")

    X = x.reshape(-1, 1)
    model = LinearRegression()
    model.fit(X, y)
    fitted = model.predict(X)
    residuals = y - fitted
    slope = float(model.coef_[0])
    intercept = float(model.intercept_)
    r_squared = float(np.clip(r2_score(y, fitted), 0.0, 1.0))
    if not (np.isfinite(slope) and np.isfinite(intercept) and np.isfinite(r_squared)):
        raise DegenerateFitError(label, "least squares produced non-finite coefficients")

    result = ModelFitResult(
        response=response,
        predictor=predictor,
        response_transform=response_transform,
        predictor_transform=predictor_transform,
        slope=slope,
        intercept=intercept,
        r_squared=r_squared,
        n_observations=int(len(x)),
        excluded_symbols=tuple(excluded),
        symbols=tuple(kept),
        x=x,
        y=y,
        fitted=fitted,
        residuals=residuals,
    )
    log_fn(f"[FIT] {label}: {result.equation} R2={result.r_squared_rounded} n={result.n_observations}")
    return result


def _fit_or_failure(table: pd.DataFrame, label: str, log_fn, **kwargs) -> FitOutcome:
    try:
        return fit_relationship(table, **kwargs)
    except ElementNetworkError as exc:
        log_fn(f"[FIT_FAILED] {label}: {exc}")
        return FitFailure(label=label, error=exc)


def fit_candidate_forms(
    table: pd.DataFrame,
    response: str = "n_minerals",
    predictor: str = "n_elements",
    forms: Sequence[Tuple[str, str]] = CANDIDATE_FORMS,
    zero_policy: str = "exclude",
    logger=None,
) -> Dict[str, FitOutcome]:
    """
    Fit every candidate transform pair for one relationship.

    A failure in one form is captured as a FitFailure and does not stop the
    remaining forms. Selection among the forms is left to the analyst.
    """
    log_fn = logger.info if logger is not None else print
    outcomes: Dict[str, FitOutcome] = {}
    for response_transform, predictor_transform in forms:
        label = relationship_label(response, predictor, response_transform, predictor_transform)
        outcomes[label] = _fit_or_failure(
            table,
            label,
            log_fn,
            response=response,
            predictor=predictor,
            response_transform=response_transform,
            predictor_transform=predictor_transform,
            zero_policy=zero_policy,
            logger=logger,
        )
    return outcomes


def fit_locality_relationships(
    table: pd.DataFrame,
    relationships: Sequence[Tuple[str, str]] = LOCALITY_RELATIONSHIPS,
    logger=None,
) -> Dict[str, FitOutcome]:
    """Linear fits on raw counts for the locality relationships."""
    log_fn = logger.info if logger is not None else print
    outcomes: Dict[str, FitOutcome] = {}
    for response, predictor in relationships:
        label = relationship_label(response, predictor)
        outcomes[label] = _fit_or_failure(
            table, label, log_fn, response=response, predictor=predictor, logger=logger
        )
    return outcomes


def residual_qq(result: ModelFitResult) -> Tuple[pd.DataFrame, float]:
    """
    Normal quantile-quantile comparison of a fit's residuals.

    Returns:
        frame with theoretical_quantile / residual_quantile columns, and the
        correlation of the probability plot (1.0 for perfectly normal-shaped residuals).
    """
    if result.residuals is None or len(result.residuals) < 2:
        raise ValueError(f"Fit {result.label} carries no residuals for diagnostics")
    (theoretical, ordered), (_, _, r) = probplot(result.residuals, dist="norm")
    frame = pd.DataFrame({"theoretical_quantile": theoretical, "residual_quantile": ordered})
    return frame, float(r) if np.isfinite(r) else float("nan")


def serialize_fit_results(outcomes: Dict[str, FitOutcome]) -> Dict[str, object]:
    """Convert fit outcomes to JSON-serializable dictionaries."""
    serialized: Dict[str, object] = {}
    for label, outcome in outcomes.items():
        if isinstance(outcome, FitFailure):
            serialized[label] = {
                "status": "failed",
                "error": type(outcome.error).__name__,
                "reason": outcome.reason,
            }
            continue
        serialized[label] = {
            "status": "ok",
            "response": outcome.response,
            "predictor": outcome.predictor,
            "response_transform": outcome.response_transform,
            "predictor_transform": outcome.predictor_transform,
            "equation": outcome.equation,
            "slope": round(outcome.slope, REPORT_DECIMALS),
            "intercept": round(outcome.intercept, REPORT_DECIMALS),
            "r_squared": outcome.r_squared_rounded,
            "n_observations": outcome.n_observations,
            "excluded_symbols": list(outcome.excluded_symbols),
        }
    return serialized


def successful_fits(outcomes: Dict[str, FitOutcome]) -> Dict[str, ModelFitResult]:
    return {k: v for k, v in outcomes.items() if isinstance(v, ModelFitResult)}


def residual_table(outcomes: Dict[str, FitOutcome]) -> pd.DataFrame:
    """Long-format residuals for every successful fit, for diagnostic export."""
    frames: List[pd.DataFrame] = []
    for label, result in successful_fits(outcomes).items():
        frames.append(
            pd.DataFrame(
                {
                    "fit": label,
                    "symbol": list(result.symbols),
                    "x": result.x,
                    "y": result.y,
                    "fitted": result.fitted,
                    "residual": result.residuals,
                }
            )
        )
    if not frames:
        return pd.DataFrame(columns=["fit", "symbol", "x", "y", "fitted", "residual"])
    return pd.concat(frames, ignore_index=True)
