"""`train_models` 测试：直接拟合、网格调参与失败隔离。"""
from __future__ import annotations

import dataclasses

import numpy as np
import pytest

from fastml.models import registry
from fastml.models.training import ModelResult, train_models


def test_fit_without_tuning(binary_df) -> None:
    models = train_models(binary_df, "target", "classification", ["logistic_regression", "decision_tree"], folds=3)
    assert list(models) == ["logistic_regression", "decision_tree"]
    for result in models.values():
        assert isinstance(result, ModelResult)
        assert not result.tuned
        assert result.history == []
        assert result.classes == ["no", "yes"]

    preds = models["decision_tree"].predict(binary_df.drop(columns="target"))
    assert set(preds) <= {"no", "yes"}
    assert models["decision_tree"].best_params["tree_depth"] == 5


def test_predict_proba_uses_class_labels(binary_df) -> None:
    models = train_models(binary_df, "target", "classification", ["logistic_regression"], folds=3)
    proba = models["logistic_regression"].predict_proba(binary_df.drop(columns="target"))
    assert list(proba.columns) == ["no", "yes"]
    assert np.allclose(proba.sum(axis=1), 1.0)


def test_regular_grid_tuning_records_history(binary_df) -> None:
    """没有对数尺度参数时使用 3 水平规则网格，每组候选都记录到历史中。"""
    tune_params = {"knn": {"neighbors": [3, 7], "weight_func": ["rectangular", "triangular"], "dist_power": [1, 2]}}
    models = train_models(
        binary_df, "target", "classification", ["knn"], folds=3, tune_params=tune_params, metric="accuracy"
    )
    result = models["knn"]
    assert result.tuned
    assert len(result.history) == 3 * 2 * 3
    assert all(row["n_resamples"] == 3 for row in result.history)
    best_row = max(result.history, key=lambda row: row["cv_mean_score"])
    assert result.validation_score == pytest.approx(best_row["cv_mean_score"])
    assert result.best_params["neighbors"] in (3, 5, 7)
    assert "mean_roc_auc" in result.history[0]


def test_log_scale_tuning_uses_latin_hypercube(regression_df) -> None:
    models = train_models(
        regression_df,
        "y",
        "regression",
        ["ridge_regression", "linear_regression"],
        folds=3,
        use_default_tuning=True,
    )
    ridge = models["ridge_regression"]
    assert ridge.tuned
    assert len(ridge.history) == 10
    assert 1e-5 <= ridge.best_params["penalty"] <= 1.0
    # 最佳分数是所有候选中最小的 RMSE
    assert ridge.validation_score == pytest.approx(min(row["cv_mean_score"] for row in ridge.history))
    assert not models["linear_regression"].tuned


def test_no_resamples_means_no_tuning(binary_df) -> None:
    models = train_models(
        binary_df,
        "target",
        "classification",
        ["decision_tree"],
        resampling_method="none",
        use_default_tuning=True,
    )
    assert not models["decision_tree"].tuned


def test_unknown_algorithm_is_skipped(binary_df) -> None:
    models = train_models(binary_df, "target", "classification", ["not_an_algo", "decision_tree"], folds=3)
    assert list(models) == ["decision_tree"]


def test_missing_backend_is_skipped(binary_df, monkeypatch) -> None:
    monkeypatch.setattr(registry, "is_backend_installed", lambda algo: registry.ALGORITHMS[algo].backend is None)
    models = train_models(binary_df, "target", "classification", ["lightgbm", "decision_tree"], folds=3)
    assert list(models) == ["decision_tree"]


def test_failing_algorithm_is_skipped(binary_df, monkeypatch) -> None:
    """单个算法训练报错只记录日志，不影响其他算法。"""

    def _broken_factory(task, params, num_predictors):
        raise RuntimeError("boom")

    info = registry.ALGORITHMS["knn"]
    monkeypatch.setitem(registry.ALGORITHMS, "knn", dataclasses.replace(info, factory=_broken_factory))
    models = train_models(binary_df, "target", "classification", ["knn", "decision_tree"], folds=3)
    assert list(models) == ["decision_tree"]


def test_all_failures_raise(binary_df) -> None:
    with pytest.raises(RuntimeError, match="No models were successfully trained"):
        train_models(binary_df, "target", "classification", ["not_an_algo"], folds=3)


def test_wrong_task_and_metric(binary_df) -> None:
    with pytest.raises(ValueError):
        train_models(binary_df, "target", "classification", ["decision_tree"], metric="rmse")
    with pytest.raises(ValueError):
        train_models(binary_df, "target", "classification", ["decision_tree"], positive_class="maybe")


def test_regression_predictions_are_float(regression_df) -> None:
    models = train_models(regression_df, "y", "regression", ["linear_regression"], resampling_method="none")
    preds = models["linear_regression"].predict(regression_df.drop(columns="y"))
    assert preds.dtype == float
    assert models["linear_regression"].predict_proba(regression_df.drop(columns="y")) is None


@pytest.mark.parametrize(
    ("fixture", "label", "task"),
    [
        ("binary_df", "target", "classification"),
        ("multiclass_df", "species", "classification"),
        ("regression_df", "y", "regression"),
    ],
)
def test_every_algorithm_trains_on_its_task(fixture, label, task, request) -> None:
    """除可选依赖外，每个算法都能在含类别特征的数据上完成拟合（包括 QDA）。"""
    df = request.getfixturevalue(fixture)
    algos = [name for name in registry.available_algorithms(task) if registry.ALGORITHMS[name].backend is None]
    models = train_models(df, label, task, algos, resampling_method="none")
    assert list(models) == algos
    preds = models[algos[-1]].predict(df.drop(columns=label))
    assert len(preds) == len(df)
