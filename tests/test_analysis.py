import numpy as np
import pandas as pd
import pytest

from element_network.analysis import (
    CANDIDATE_FORMS,
    FitFailure,
    ModelFitResult,
    fit_candidate_forms,
    fit_locality_relationships,
    fit_relationship,
    format_equation,
    relationship_label,
    residual_qq,
    residual_table,
    serialize_fit_results,
)
from element_network.errors import DegenerateFitError, UndefinedTransformError


@pytest.mark.parametrize(
    "slope, intercept, expected",
    [
        (2.5, -3.2, "Y = 2.5X - 3.2"),
        (-1.0, 0, "Y = -1X + 0"),
        (0.12345, 7.0006, "Y = 0.123X + 7.001"),
        (1.0, -0.0004, "Y = 1X - 0"),
        (3, 2, "Y = 3X + 2"),
    ],
)
def test_format_equation(slope, intercept, expected):
    assert format_equation(slope, intercept) == expected


def test_format_equation_rejects_non_finite():
    with pytest.raises(ValueError):
        format_equation(np.nan, 1.0)


def test_perfect_linear_fit(linear_table):
    result = fit_relationship(linear_table, "n_minerals", "n_elements")
    assert result.slope == pytest.approx(3.0)
    assert result.intercept == pytest.approx(2.0)
    assert result.r_squared == pytest.approx(1.0, abs=1e-3)
    assert result.r_squared_rounded == 1.0
    assert result.equation == "Y = 3X + 2"
    assert result.n_observations == 10
    assert np.allclose(result.residuals, 0.0)


def test_known_slope_intercept_recovered_from_larger_set():
    rng = np.random.default_rng(0)
    n_elements = rng.integers(1, 60, size=80)
    table = pd.DataFrame(
        {
            "symbol": [f"E{i}" for i in range(80)],
            "n_elements": n_elements,
            "n_minerals": 4.25 * n_elements - 7.5,
        }
    )
    result = fit_relationship(table, "n_minerals", "n_elements")
    assert result.slope == pytest.approx(4.25, rel=1e-9)
    assert result.intercept == pytest.approx(-7.5, rel=1e-9)
    assert result.equation == "Y = 4.25X - 7.5"


def test_r_squared_within_unit_interval_for_noisy_data():
    rng = np.random.default_rng(42)
    x = np.arange(1, 41)
    table = pd.DataFrame(
        {"symbol": [f"E{i}" for i in x], "n_elements": x, "n_localities": 2 * x + rng.normal(0, 25, size=x.size)}
    )
    result = fit_relationship(table, "n_localities", "n_elements")
    assert 0.0 <= result.r_squared <= 1.0
    assert result.r_squared < 1.0


def test_log_log_fit_recovers_power_law():
    x = np.array([1, 2, 4, 8, 16, 32])
    table = pd.DataFrame({"symbol": list("ABCDEF"), "n_elements": x, "n_minerals": np.e * x**2})
    result = fit_relationship(table, "n_minerals", "n_elements", "log", "log")
    assert result.slope == pytest.approx(2.0)
    assert result.intercept == pytest.approx(1.0)
    assert result.label == "log(n_minerals) ~ log(n_elements)"


def test_zero_counts_excluded_from_log_fit(linear_table, capsys):
    table = linear_table.copy()
    table.loc[0, "n_minerals"] = 0
    table.loc[1, "n_elements"] = 0
    result = fit_relationship(table, "n_minerals", "n_elements", "log", "log")
    assert result.excluded_symbols == ("E1", "E2")
    assert result.n_observations == 8
    assert "E1" not in result.symbols
    assert np.isfinite(result.slope) and np.isfinite(result.intercept)
    assert "[EXCLUDED][log_undefined:n_minerals]" in capsys.readouterr().out


def test_zero_counts_fail_fast_when_requested(linear_table):
    table = linear_table.copy()
    table.loc[3, "n_minerals"] = 0
    with pytest.raises(UndefinedTransformError) as excinfo:
        fit_relationship(table, "n_minerals", "n_elements", "log", "linear", zero_policy="raise")
    assert excinfo.value.symbols == ["E4"]
    assert excinfo.value.column == "n_minerals"


def test_zero_counts_are_fine_without_log(linear_table):
    table = linear_table.copy()
    table.loc[0, ["n_elements", "n_minerals"]] = 0
    result = fit_relationship(table, "n_minerals", "n_elements", zero_policy="raise")
    assert result.excluded_symbols == ()


def test_degenerate_single_predictor_value():
    table = pd.DataFrame({"symbol": ["A", "B", "C"], "n_elements": [4, 4, 4], "n_minerals": [1, 2, 3]})
    with pytest.raises(DegenerateFitError) as excinfo:
        fit_relationship(table, "n_minerals", "n_elements")
    assert excinfo.value.relationship == "n_minerals ~ n_elements"


def test_degenerate_constant_response():
    table = pd.DataFrame({"symbol": ["A", "B", "C"], "n_elements": [1, 2, 3], "n_minerals": [5, 5, 5]})
    with pytest.raises(DegenerateFitError):
        fit_relationship(table, "n_minerals", "n_elements")


def test_degenerate_too_few_rows():
    table = pd.DataFrame({"symbol": ["A"], "n_elements": [1], "n_minerals": [5]})
    with pytest.raises(DegenerateFitError):
        fit_relationship(table, "n_minerals", "n_elements")


def test_invalid_arguments():
    table = pd.DataFrame({"symbol": ["A", "B"], "n_elements": [1, 2], "n_minerals": [5, 6]})
    with pytest.raises(ValueError):
        fit_relationship(table, "n_minerals", "n_elements", response_transform="sqrt")
    with pytest.raises(ValueError):
        fit_relationship(table, "n_minerals", "n_elements", zero_policy="impute")
    with pytest.raises(DegenerateFitError, match="n_localities"):
        fit_relationship(table, "n_localities", "n_elements")


def test_missing_column_is_scoped_to_its_fit():
    table = pd.DataFrame({"symbol": ["A", "B", "C"], "n_elements": [1, 2, 4], "n_minerals": [2, 3, 7]})
    outcomes = fit_locality_relationships(table)
    assert all(isinstance(o, FitFailure) for o in outcomes.values())
    assert isinstance(fit_candidate_forms(table)["n_minerals ~ n_elements"], ModelFitResult)


def test_candidate_forms_all_fitted(linear_table):
    outcomes = fit_candidate_forms(linear_table)
    assert list(outcomes) == [
        relationship_label("n_minerals", "n_elements", r, p) for r, p in CANDIDATE_FORMS
    ]
    assert all(isinstance(o, ModelFitResult) for o in outcomes.values())


def test_candidate_failure_does_not_abort_other_forms():
    table = pd.DataFrame({"symbol": ["A", "B", "C"], "n_elements": [0, 3, 5], "n_minerals": [0, 0, 7]})
    outcomes = fit_candidate_forms(table)
    linear = outcomes["n_minerals ~ n_elements"]
    assert isinstance(linear, ModelFitResult)
    assert isinstance(outcomes["n_minerals ~ log(n_elements)"], ModelFitResult)
    failed = outcomes["log(n_minerals) ~ n_elements"]
    assert isinstance(failed, FitFailure)
    assert isinstance(failed.error, DegenerateFitError)
    assert isinstance(outcomes["log(n_minerals) ~ log(n_elements)"], FitFailure)


def test_candidate_forms_under_fail_fast_policy_are_scoped():
    table = pd.DataFrame({"symbol": ["A", "B", "C"], "n_elements": [1, 3, 5], "n_minerals": [0, 2, 7]})
    outcomes = fit_candidate_forms(table, zero_policy="raise")
    assert isinstance(outcomes["n_minerals ~ n_elements"], ModelFitResult)
    assert isinstance(outcomes["log(n_minerals) ~ n_elements"].error, UndefinedTransformError)


def test_locality_relationships(linear_table):
    outcomes = fit_locality_relationships(linear_table)
    assert set(outcomes) == {"n_localities ~ n_elements", "n_localities ~ n_minerals"}
    by_elements = outcomes["n_localities ~ n_elements"]
    assert by_elements.equation == "Y = 10X - 4"
    assert by_elements.response_transform == by_elements.predictor_transform == "linear"


def test_residual_qq_shape():
    rng = np.random.default_rng(1)
    x = np.arange(1, 31)
    table = pd.DataFrame({"symbol": [str(i) for i in x], "n_elements": x, "n_minerals": x + rng.normal(0, 1, x.size)})
    result = fit_relationship(table, "n_minerals", "n_elements")
    qq, r = residual_qq(result)
    assert list(qq.columns) == ["theoretical_quantile", "residual_quantile"]
    assert len(qq) == 30
    assert qq["residual_quantile"].is_monotonic_increasing
    assert 0.0 < r <= 1.0


def test_serialize_and_residual_table():
    table = pd.DataFrame({"symbol": ["A", "B", "C"], "n_elements": [0, 3, 5], "n_minerals": [0, 0, 7]})
    outcomes = fit_candidate_forms(table)
    serialized = serialize_fit_results(outcomes)
    assert serialized["n_minerals ~ n_elements"]["status"] == "ok"
    assert serialized["n_minerals ~ n_elements"]["equation"].startswith("Y = ")
    assert serialized["n_minerals ~ log(n_elements)"]["excluded_symbols"] == ["A"]
    assert serialized["log(n_minerals) ~ n_elements"] == {
        "status": "failed",
        "error": "DegenerateFitError",
        "reason": str(outcomes["log(n_minerals) ~ n_elements"].error),
    }
    residuals = residual_table(outcomes)
    assert set(residuals["fit"]) == {"n_minerals ~ n_elements", "n_minerals ~ log(n_elements)"}
    assert len(residuals) == 3 + 2
