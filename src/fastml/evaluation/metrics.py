"""模型评估指标与可视化工具。

所有函数都尽量做到“输入即输出”，避免隐藏状态，便于单元测试。
绘图函数统一返回 `Figure`；传入 `output_path` 时会保存图片并关闭图像。
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from sklearn import metrics
from sklearn.calibration import calibration_curve

CLASSIFICATION_METRICS = ("accuracy", "kap", "sens", "spec", "precision", "f_meas", "roc_auc")
REGRESSION_METRICS = ("rmse", "rsq", "mae")
MINIMIZE_METRICS = {"rmse", "mae"}

# 汇总表与图表中的展示顺序
CLASSIFICATION_DISPLAY_ORDER = ("accuracy", "f_meas", "kap", "precision", "sens", "spec", "roc_auc")
REGRESSION_DISPLAY_ORDER = ("rmse", "rsq", "mae")

METRIC_DISPLAY_NAMES: Dict[str, str] = {
    "accuracy": "Accuracy",
    "f_meas": "F1 Score",
    "kap": "Kappa",
    "precision": "Precision",
    "roc_auc": "ROC AUC",
    "sens": "Sensitivity",
    "spec": "Specificity",
    "rsq": "R-squared",
    "mae": "MAE",
    "rmse": "RMSE",
}


def get_metric_names(task: str) -> Tuple[str, ...]:
    """按任务返回指标集合。"""
    if task == "classification":
        return CLASSIFICATION_METRICS
    if task == "regression":
        return REGRESSION_METRICS
    raise ValueError(f"不支持的任务类型: {task}")


def metric_direction(name: str) -> str:
    """返回指标的优化方向：`minimize` 或 `maximize`。"""
    return "minimize" if name in MINIMIZE_METRICS else "maximize"


def is_better(candidate: float, best: float, name: str) -> bool:
    """比较两个分数，nan 永远不会更好。"""
    if candidate is None or np.isnan(candidate):
        return False
    if best is None or np.isnan(best):
        return True
    if metric_direction(name) == "minimize":
        return candidate < best
    return candidate > best


def _specificity(cm: np.ndarray) -> np.ndarray:
    """逐类别的特异度 TN / (TN + FP)。"""
    total = cm.sum()
    fp = cm.sum(axis=0) - np.diag(cm)
    fn = cm.sum(axis=1) - np.diag(cm)
    tn = total - fp - fn - np.diag(cm)
    with np.errstate(divide="ignore", invalid="ignore"):
        spec = tn / (tn + fp)
    return np.where(np.isfinite(spec), spec, np.nan)


def compute_classification_metrics(
    y_true: Sequence[Any],
    y_pred: Sequence[Any],
    y_proba: Optional[np.ndarray] = None,
    classes: Optional[Sequence[Any]] = None,
    positive_class: Any = None,
) -> Dict[str, float]:
    """计算常用分类指标。

    二分类时以 `positive_class`（默认取排序后的最后一个类别）为正类；
    多分类时取宏平均，ROC AUC 使用一对一（Hand-Till）方式。
    `y_proba` 的列顺序需与 `classes` 一致。
    """
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)
    if classes is None:
        classes = sorted(set(y_true.tolist()) | set(y_pred.tolist()))
    classes = list(classes)

    cm = metrics.confusion_matrix(y_true, y_pred, labels=classes)
    results: Dict[str, float] = {
        "accuracy": float(metrics.accuracy_score(y_true, y_pred)),
        "kap": float(metrics.cohen_kappa_score(y_true, y_pred, labels=classes)),
    }

    if len(classes) == 2:
        pos = classes[-1] if positive_class is None else positive_class
        if pos not in classes:
            raise ValueError(f"正类 {pos!r} 不在类别 {classes} 中")
        pos_idx = classes.index(pos)
        results["sens"] = float(metrics.recall_score(y_true, y_pred, pos_label=pos, zero_division=np.nan))
        results["spec"] = float(_specificity(cm)[pos_idx])
        results["precision"] = float(
            metrics.precision_score(y_true, y_pred, pos_label=pos, zero_division=np.nan)
        )
        results["f_meas"] = float(metrics.f1_score(y_true, y_pred, pos_label=pos, zero_division=np.nan))
    else:
        # 多分类：特异度按类别取宏平均，无定义的类别不参与平均
        class_spec = _specificity(cm)
        results["sens"] = float(
            metrics.recall_score(y_true, y_pred, labels=classes, average="macro", zero_division=np.nan)
        )
        results["spec"] = float(np.nanmean(class_spec)) if np.isfinite(class_spec).any() else float("nan")
        results["precision"] = float(
            metrics.precision_score(y_true, y_pred, labels=classes, average="macro", zero_division=np.nan)
        )
        results["f_meas"] = float(
            metrics.f1_score(y_true, y_pred, labels=classes, average="macro", zero_division=np.nan)
        )

    results["roc_auc"] = float("nan")
    if y_proba is not None:
        proba = np.asarray(y_proba, dtype=float)
        try:
            if len(classes) == 2:
                results["roc_auc"] = float(metrics.roc_auc_score(y_true == pos, proba[:, pos_idx]))
            else:
                results["roc_auc"] = float(
                    metrics.roc_auc_score(y_true, proba, multi_class="ovo", average="macro", labels=classes)
                )
        except ValueError:
            # 评估集只有一个类别时 AUC 无定义
            pass
    return results


def compute_regression_metrics(y_true: Sequence[float], y_pred: Sequence[float]) -> Dict[str, float]:
    """RMSE、R²（预测与真实值相关系数的平方）与 MAE。"""
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float).ravel()
    if np.std(y_true) == 0 or np.std(y_pred) == 0:
        rsq = float("nan")
    else:
        rsq = float(np.corrcoef(y_true, y_pred)[0, 1] ** 2)
    return {
        "rmse": float(np.sqrt(metrics.mean_squared_error(y_true, y_pred))),
        "rsq": rsq,
        "mae": float(metrics.mean_absolute_error(y_true, y_pred)),
    }


def compute_metrics(
    task: str,
    y_true: Sequence[Any],
    y_pred: Sequence[Any],
    y_proba: Optional[np.ndarray] = None,
    classes: Optional[Sequence[Any]] = None,
    positive_class: Any = None,
) -> Dict[str, float]:
    """按任务类型分派到分类 / 回归指标。"""
    if task == "classification":
        return compute_classification_metrics(y_true, y_pred, y_proba, classes, positive_class)
    if task == "regression":
        return compute_regression_metrics(y_true, y_pred)
    raise ValueError(f"不支持的任务类型: {task}")


def metrics_to_dataframe(metrics_dict: Mapping[str, float], model_name: str) -> pd.DataFrame:
    """将字典形式的指标转换为长表（model / metric / estimate），方便汇总与保存。"""
    return pd.DataFrame(
        {
            "model": model_name,
            "metric": list(metrics_dict.keys()),
            "estimate": [float(v) for v in metrics_dict.values()],
        }
    )


def _finish(fig, output_path: Optional[Path]):
    fig.tight_layout()
    if output_path is not None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=150)
        plt.close(fig)
    return fig


def model_colors(n: int) -> List[Any]:
    """多条曲线用 viridis 配色，单条曲线用黑色。"""
    if n <= 1:
        return ["#000000"]
    return list(plt.get_cmap("viridis")(np.linspace(0, 1, n)))


def plot_metric_bars(
    performance_wide: pd.DataFrame,
    metric_names: Sequence[str],
    output_path: Optional[Path] = None,
    title: str = "Model Performance Comparison",
):
    """按指标分面的柱状图，每个面板比较所有模型。"""
    n = len(metric_names)
    ncols = min(n, 4)
    nrows = int(np.ceil(n / ncols))
    fig, axes = plt.subplots(nrows, ncols, figsize=(3.2 * ncols, 3.0 * nrows), squeeze=False)
    models = performance_wide["model"].astype(str).tolist()
    colors = model_colors(len(models))
    for ax, name in zip(axes.flat, metric_names):
        values = pd.to_numeric(performance_wide[name], errors="coerce").to_numpy()
        ax.bar(range(len(models)), np.nan_to_num(values), color=colors)
        ax.set_xticks(range(len(models)))
        ax.set_xticklabels(models, rotation=45, ha="right")
        ax.set_title(METRIC_DISPLAY_NAMES.get(name, name))
        ax.grid(True, axis="y", linestyle="--", alpha=0.5)
    for ax in list(axes.flat)[n:]:
        ax.set_visible(False)
    fig.suptitle(title)
    return _finish(fig, output_path)


def plot_confusion_matrix(
    y_true: Sequence[Any],
    y_pred: Sequence[Any],
    labels: Sequence[Any],
    output_path: Optional[Path] = None,
    title: str = "Confusion Matrix",
):
    """绘制混淆矩阵图像。"""
    cm = metrics.confusion_matrix(y_true, y_pred, labels=list(labels))
    fig, ax = plt.subplots(figsize=(5, 4))
    im = ax.imshow(cm, interpolation="nearest", cmap=plt.cm.Blues)
    ax.figure.colorbar(im, ax=ax)
    classes = [str(label) for label in labels]
    ax.set(
        xticks=np.arange(len(classes)),
        yticks=np.arange(len(classes)),
        xticklabels=classes,
        yticklabels=classes,
        ylabel="True Label",
        xlabel="Predicted Label",
        title=title,
    )

    thresh = cm.max() / 2.0 if cm.size else 0
    for i, j in np.ndindex(cm.shape):
        ax.text(
            j,
            i,
            format(cm[i, j], "d"),
            ha="center",
            va="center",
            color="white" if cm[i, j] > thresh else "black",
        )
    return _finish(fig, output_path)


def plot_roc_curves(
    curves: Mapping[str, Tuple[np.ndarray, np.ndarray]],
    combined: bool = True,
    output_path: Optional[Path] = None,
):
    """绘制 ROC 曲线。

    `curves` 为 {模型名: (fpr, tpr)}；`combined=False` 时每个模型一个子图。
    """
    names = list(curves)
    colors = model_colors(len(names))
    if combined:
        fig, ax = plt.subplots(figsize=(5, 5))
        for name, color in zip(names, colors):
            fpr, tpr = curves[name]
            ax.plot(fpr, tpr, color=color, lw=2, label=name)
        ax.plot([0, 1], [0, 1], color="grey", lw=1, linestyle=":")
        ax.set(xlabel="1 - Specificity", ylabel="Sensitivity", title="Combined ROC Curves for All Models")
        ax.set_aspect("equal")
        ax.legend(loc="lower right")
        ax.grid(True, linestyle="--", alpha=0.5)
        return _finish(fig, output_path)

    ncols = min(len(names), 3)
    nrows = int(np.ceil(len(names) / ncols))
    fig, axes = plt.subplots(nrows, ncols, figsize=(3.5 * ncols, 3.5 * nrows), squeeze=False)
    for ax, name, color in zip(axes.flat, names, colors):
        fpr, tpr = curves[name]
        ax.plot(fpr, tpr, color=color, lw=2)
        ax.plot([0, 1], [0, 1], color="grey", lw=1, linestyle=":")
        ax.set(xlabel="1 - Specificity", ylabel="Sensitivity", title=name)
        ax.set_aspect("equal")
    for ax in list(axes.flat)[len(names):]:
        ax.set_visible(False)
    fig.suptitle("ROC Curves by Model")
    return _finish(fig, output_path)


def plot_calibration(
    y_true_binary: Sequence[int],
    y_score: Sequence[float],
    output_path: Optional[Path] = None,
    n_bins: int = 10,
):
    """分箱校准曲线：预测概率均值 vs 实际事件比例。"""
    prob_true, prob_pred = calibration_curve(y_true_binary, y_score, n_bins=n_bins, strategy="uniform")
    fig, ax = plt.subplots(figsize=(5, 4))
    ax.plot(prob_pred, prob_true, marker="o", color="steelblue", lw=2)
    ax.plot([0, 1], [0, 1], color="grey", lw=1, linestyle="--")
    ax.set(xlabel="Predicted Probability", ylabel="Observed Event Rate", title="Calibration Plot")
    ax.grid(True, linestyle="--", alpha=0.5)
    return _finish(fig, output_path)


def plot_truth_vs_predicted(
    y_true: Sequence[float],
    y_pred: Sequence[float],
    output_path: Optional[Path] = None,
):
    """真实值与预测值散点图，附 y = x 参考线。"""
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    fig, ax = plt.subplots(figsize=(5, 4))
    ax.scatter(y_pred, y_true, alpha=0.6)
    low = float(min(y_true.min(), y_pred.min()))
    high = float(max(y_true.max(), y_pred.max()))
    ax.plot([low, high], [low, high], color="red", linestyle="--")
    ax.set(xlabel="Predicted", ylabel="Truth", title="Truth vs Predicted")
    return _finish(fig, output_path)


def plot_residual_histogram(
    residuals: Sequence[float],
    output_path: Optional[Path] = None,
    bins: int = 30,
):
    """残差分布直方图。"""
    fig, ax = plt.subplots(figsize=(5, 4))
    ax.hist(np.asarray(residuals, dtype=float), bins=bins, color="steelblue", edgecolor="white", alpha=0.7)
    ax.set(xlabel="Residual", ylabel="Count", title="Residual Distribution")
    return _finish(fig, output_path)
