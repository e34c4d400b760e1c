"""评估指标与绘图工具测试。"""
from __future__ import annotations

import math

import numpy as np
import pytest

from fastml.evaluation.metrics import (
    CLASSIFICATION_METRICS,
    compute_classification_metrics,
    compute_metrics,
    compute_regression_metrics,
    get_metric_names,
    is_better,
    metric_direction,
    metrics_to_dataframe,
    model_colors,
    plot_confusion_matrix,
    plot_roc_curves,
)


def test_metric_names_and_direction() -> None:
    assert get_metric_names("regression") == ("rmse", "rsq", "mae")
    assert "roc_auc" in get_metric_names("classification")
    assert metric_direction("rmse") == "minimize"
    assert metric_direction("accuracy") == "maximize"
    with pytest.raises(ValueError):
        get_metric_names("ranking")


def test_is_better_respects_direction_and_nan() -> None:
    assert is_better(0.2, 0.5, "rmse")
    assert not is_better(0.2, 0.5, "accuracy")
    assert is_better(0.1, float("nan"), "accuracy")
    assert not is_better(float("nan"), 0.1, "accuracy")


def test_binary_metrics_use_positive_class() -> None:
    """默认正类取排序后的最后一个类别，也可以显式指定。"""
    y_true = ["no", "yes", "yes", "no"]
    y_pred = ["no", "yes", "no", "no"]
    default = compute_classification_metrics(y_true, y_pred, classes=["no", "yes"])
    assert default["accuracy"] == pytest.approx(0.75)
    assert default["sens"] == pytest.approx(0.5)
    assert default["spec"] == pytest.approx(1.0)
    assert default["precision"] == pytest.approx(1.0)
    assert math.isnan(default["roc_auc"])

    flipped = compute_classification_metrics(y_true, y_pred, classes=["no", "yes"], positive_class="no")
    assert flipped["sens"] == pytest.approx(1.0)
    assert flipped["spec"] == pytest.approx(0.5)

    with pytest.raises(ValueError):
        compute_classification_metrics(y_true, y_pred, classes=["no", "yes"], positive_class="maybe")


def test_binary_auc_from_probabilities() -> None:
    y_true = np.array(["a", "a", "b", "b"])
    proba = np.array([[0.9, 0.1], [0.6, 0.4], [0.3, 0.7], [0.2, 0.8]])
    scores = compute_metrics("classification", y_true, y_true, proba, classes=["a", "b"])
    assert scores["roc_auc"] == pytest.approx(1.0)
    assert scores["accuracy"] == pytest.approx(1.0)


def test_auc_is_nan_when_single_class_present() -> None:
    proba = np.array([[0.2, 0.8], [0.4, 0.6]])
    scores = compute_classification_metrics(["b", "b"], ["b", "a"], proba, classes=["a", "b"])
    assert math.isnan(scores["roc_auc"])


def test_multiclass_metrics_are_macro_averaged() -> None:
    y_true = ["x", "y", "z", "x", "y", "z"]
    y_pred = ["x", "y", "z", "x", "z", "z"]
    proba = np.array(
        [
            [0.8, 0.1, 0.1],
            [0.1, 0.7, 0.2],
            [0.1, 0.1, 0.8],
            [0.7, 0.2, 0.1],
            [0.1, 0.4, 0.5],
            [0.2, 0.1, 0.7],
        ]
    )
    scores = compute_classification_metrics(y_true, y_pred, proba, classes=["x", "y", "z"])
    assert set(scores) == set(CLASSIFICATION_METRICS)
    assert scores["sens"] == pytest.approx((1.0 + 0.5 + 1.0) / 3)
    assert 0.0 <= scores["roc_auc"] <= 1.0


def test_regression_rsq_is_squared_correlation() -> None:
    """R² 取相关系数平方：线性变换后的预测 R² 仍为 1，但 RMSE 不为 0。"""
    y_true = np.array([1.0, 2.0, 3.0, 4.0])
    scores = compute_regression_metrics(y_true, 2 * y_true + 1)
    assert scores["rsq"] == pytest.approx(1.0)
    assert scores["rmse"] > 0
    assert scores["mae"] == pytest.approx(np.mean(y_true + 1))

    constant = compute_regression_metrics(y_true, np.full(4, 2.5))
    assert math.isnan(constant["rsq"])


def test_metrics_to_dataframe() -> None:
    df = metrics_to_dataframe({"rmse": 1.0, "rsq": 0.5}, "lasso")
    assert list(df.columns) == ["model", "metric", "estimate"]
    assert df["model"].unique().tolist() == ["lasso"]


def test_model_colors() -> None:
    assert model_colors(1) == ["#000000"]
    assert len(model_colors(4)) == 4


def test_plots_are_saved(tmp_path) -> None:
    cm_path = tmp_path / "figs" / "cm.png"
    plot_confusion_matrix(["a", "b", "a"], ["a", "a", "a"], ["a", "b"], cm_path)
    assert cm_path.exists()

    curves = {"m1": (np.array([0, 0.5, 1]), np.array([0, 0.8, 1])), "m2": (np.array([0, 1]), np.array([0, 1]))}
    roc_path = tmp_path / "roc.png"
    plot_roc_curves(curves, combined=False, output_path=roc_path)
    assert roc_path.exists()
    fig = plot_roc_curves(curves, combined=True)
    assert len(fig.axes[0].lines) == 3


def test_undefined_metrics_are_nan() -> None:
    """从不预测正类时精确率无定义，应返回 nan 而不是 0。"""
    scores = compute_metrics("classification", ["a", "a", "b", "b"], ["a", "a", "a", "a"], classes=["a", "b"])
    assert math.isnan(scores["precision"])
    assert scores["sens"] == pytest.approx(0.0)
    assert scores["spec"] == pytest.approx(1.0)

    # 多分类中某一类别从未出现时，宏平均跳过该类别
    multi = compute_classification_metrics(["x", "y", "x", "y"], ["x", "y", "x", "y"], classes=["x", "y", "z"])
    assert multi["precision"] == pytest.approx(1.0)
    assert multi["spec"] == pytest.approx(1.0)
