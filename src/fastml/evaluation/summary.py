"""模型汇总：终端表格 + 诊断图。

`format_summary` 只负责拼接文字，`summary` 在打印文字之外按需生成图表：

- 所有任务：按指标分面的模型对比柱状图；
- 二分类：ROC 曲线（合并或分面板）；
- 分类最佳模型：混淆矩阵、校准曲线；
- 回归最佳模型：真实值 vs 预测值、残差分布。
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn import metrics

from ..pipelines.fastml import FastMLModel
from ..utils.logger import get_logger
from .evaluate import PROBA_PREFIX
from .metrics import (
    CLASSIFICATION_DISPLAY_ORDER,
    METRIC_DISPLAY_NAMES,
    REGRESSION_DISPLAY_ORDER,
    metric_direction,
    plot_calibration,
    plot_confusion_matrix,
    plot_metric_bars,
    plot_residual_histogram,
    plot_roc_curves,
    plot_truth_vs_predicted,
)

SUMMARY_RULE = "================================="


def _check_model(model: Any) -> None:
    if not isinstance(model, FastMLModel):
        raise TypeError("The input must be a 'FastMLModel' object.")


def _resolve_main_metric(model: FastMLModel, sort_metric: Optional[str]) -> str:
    available = list(dict.fromkeys(model.performance["metric"]))
    if sort_metric is None:
        if model.metric in available:
            return model.metric
        get_logger().warning("优化指标 {} 不在评估结果中，改用 {} 排序", model.metric, available[0])
        return available[0]
    if sort_metric not in available:
        raise ValueError(f"Invalid sort_metric. Available: {', '.join(available)}")
    return sort_metric


def performance_table(model: FastMLModel, sort_metric: Optional[str] = None) -> Tuple[pd.DataFrame, List[str], str]:
    """宽表（每个模型一行），按主指标的优化方向排序，缺失值排最后。"""
    main_metric = _resolve_main_metric(model, sort_metric)
    order = CLASSIFICATION_DISPLAY_ORDER if model.task == "classification" else REGRESSION_DISPLAY_ORDER
    available = set(model.performance["metric"])
    desired = [name for name in order if name in available] or [main_metric]
    if main_metric not in desired:
        desired.append(main_metric)

    wide = model.performance.pivot_table(index="model", columns="metric", values="estimate", aggfunc="first", dropna=False)
    wide = wide.reindex(columns=desired).reset_index()
    ascending = metric_direction(main_metric) == "minimize"
    wide = wide.sort_values(main_metric, ascending=ascending, na_position="last", kind="mergesort")
    return wide.reset_index(drop=True), desired, main_metric


def _format_value(value: Any) -> str:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return "NA"
    return f"{float(value):.3f}"


def _format_param(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.6g}"
    return str(value)


def format_summary(model: FastMLModel, sort_metric: Optional[str] = None, notes: str = "") -> str:
    """拼接终端汇总文字。"""
    _check_model(model)
    wide, desired, main_metric = performance_table(model, sort_metric)

    lines = ["", "===== fastml Model Summary =====", f"Task: {model.task}", f"Number of Models Trained: {len(model.models)}"]
    best_row = wide[wide["model"] == model.best_model_name]
    best_val = best_row[main_metric].iloc[0] if len(best_row) else float("nan")
    lines.append(f"Best Model: {model.best_model_name} ({main_metric}: {_format_value(best_val)})")
    lines.append("")
    lines.append(f"Performance Metrics (Sorted by {main_metric}):")
    lines.append("")

    header = ["Model"] + [METRIC_DISPLAY_NAMES.get(name, name) for name in desired]
    rows = []
    for _, row in wide.iterrows():
        name = str(row["model"])
        if name == model.best_model_name:
            name = f"{name}*"
        rows.append([name] + [_format_value(row[m]) for m in desired])

    widths = [max([len(header[i])] + [len(r[i]) for r in rows]) for i in range(len(header))]
    rule = "-" * (sum(widths) + 2 * (len(widths) - 1))

    def _line(cells: List[str]) -> str:
        return "  ".join(cell.ljust(width) for cell, width in zip(cells, widths)).rstrip()

    lines.append(rule)
    lines.append(_line(header))
    lines.append(rule)
    lines.extend(_line(r) for r in rows)
    lines.append(rule)
    lines.append("(* Best model)")
    lines.append("")

    lines.append("Best Model Hyperparameters:")
    lines.append("")
    params = model.best_model.best_params
    if params:
        lines.extend(f"{name}: {_format_param(value)}" for name, value in params.items())
    else:
        lines.append("No hyperparameters found.")

    if notes:
        lines.append("")
        lines.append("User Notes:")
        lines.append(notes)

    lines.append(SUMMARY_RULE)
    return "\n".join(lines)


def _positive_class(model: FastMLModel, classes: List[Any]) -> Any:
    return classes[-1] if model.positive_class is None else model.positive_class


def roc_curves(model: FastMLModel) -> Tuple[Dict[str, Tuple[np.ndarray, np.ndarray]], Optional[str]]:
    """计算二分类 ROC 曲线；无法绘制时返回说明文字。"""
    if not model.predictions:
        return {}, "No predictions available to generate ROC curves."
    first = next(iter(model.predictions.values()))
    if "truth" not in first.columns:
        return {}, "No predictions available to generate ROC curves."
    classes = sorted(pd.unique(first["truth"]).tolist())
    if len(classes) != 2:
        return {}, "ROC curves are only generated for binary classification tasks."

    positive = _positive_class(model, classes)
    curves: Dict[str, Tuple[np.ndarray, np.ndarray]] = {}
    for name, df in model.predictions.items():
        prob_cols = [col for col in df.columns if col.startswith(PROBA_PREFIX)]
        pred_col = f"{PROBA_PREFIX}{positive}"
        if len(prob_cols) == 2 and pred_col in prob_cols:
            fpr, tpr, _ = metrics.roc_curve(df["truth"] == positive, df[pred_col])
            curves[name] = (fpr, tpr)
    if not curves:
        return {}, "No suitable probability predictions for ROC curves."
    return curves, None


def _figure_path(output_dir: Optional[Path], name: str) -> Optional[Path]:
    return None if output_dir is None else Path(output_dir) / f"{name}.png"


def summary(
    model: FastMLModel,
    sort_metric: Optional[str] = None,
    plot: bool = True,
    combined_roc: bool = True,
    notes: str = "",
    output_dir: Optional[Path] = None,
) -> Dict[str, Any]:
    """打印模型汇总，并在 `plot=True` 时生成诊断图。

    返回 {图名: Figure}；指定 `output_dir` 时图片会保存为 PNG 并关闭。
    """
    _check_model(model)
    print(format_summary(model, sort_metric, notes))

    figures: Dict[str, Any] = {}
    if not plot:
        return figures

    wide, desired, _ = performance_table(model, sort_metric)
    figures["metric_comparison"] = plot_metric_bars(wide, desired, _figure_path(output_dir, "metric_comparison"))

    if model.task == "classification":
        curves, message = roc_curves(model)
        if message:
            print(f"\n{message}")
        else:
            figures["roc_curves"] = plot_roc_curves(curves, combined_roc, _figure_path(output_dir, "roc_curves"))

    df_best = model.predictions.get(model.best_model_name)
    if df_best is None or not {"truth", "estimate"} <= set(df_best.columns):
        return figures

    if model.task == "classification":
        classes = model.best_model.classes or sorted(pd.unique(df_best["truth"]).tolist())
        print("\nConfusion Matrix for Best Model:")
        print(pd.crosstab(df_best["truth"], df_best["estimate"], rownames=["Truth"], colnames=["Prediction"]))
        figures["confusion_matrix"] = plot_confusion_matrix(
            df_best["truth"],
            df_best["estimate"],
            classes,
            _figure_path(output_dir, "confusion_matrix"),
            title=f"{model.best_model_name} - Confusion Matrix",
        )
        positive = _positive_class(model, classes)
        pred_col = f"{PROBA_PREFIX}{positive}"
        if pred_col in df_best.columns:
            figures["calibration"] = plot_calibration(
                (df_best["truth"] == positive).astype(int),
                df_best[pred_col],
                _figure_path(output_dir, "calibration"),
            )
    else:
        print("\nResidual Diagnostics for Best Model:")
        residuals = df_best["truth"].astype(float) - df_best["estimate"].astype(float)
        figures["truth_vs_predicted"] = plot_truth_vs_predicted(
            df_best["truth"], df_best["estimate"], _figure_path(output_dir, "truth_vs_predicted")
        )
        figures["residuals"] = plot_residual_histogram(residuals, _figure_path(output_dir, "residuals"))

    return figures
