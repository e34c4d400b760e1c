"""在测试集上评估已训练的模型。

输出两部分：
- `performance`：长表（model / metric / estimate），便于排序与汇总；
- `predictions`：每个模型一张表，含 `truth`、`estimate` 以及 `.pred_<类别>` 概率列。
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Tuple

import pandas as pd

from ..models.training import ModelResult
from ..utils.data_io import split_features_label
from ..utils.logger import get_logger
from .metrics import compute_metrics, metrics_to_dataframe

PROBA_PREFIX = ".pred_"


def predictions_frame(result: ModelResult, X: pd.DataFrame, y_true: pd.Series) -> pd.DataFrame:
    """单个模型的预测明细。"""
    df = pd.DataFrame({"truth": y_true.to_numpy(), "estimate": result.predict(X)}, index=X.index)
    proba = result.predict_proba(X)
    if proba is not None:
        for cls in proba.columns:
            df[f"{PROBA_PREFIX}{cls}"] = proba[cls].to_numpy()
    return df


def evaluate_models(
    models: Mapping[str, ModelResult],
    test_data: pd.DataFrame,
    label: str,
    task: str,
    positive_class: Any = None,
) -> Tuple[pd.DataFrame, Dict[str, pd.DataFrame]]:
    """计算每个模型在测试集上的指标与预测结果。"""
    logger = get_logger()
    X_test, y_test = split_features_label(test_data, label)

    records = []
    predictions: Dict[str, pd.DataFrame] = {}
    for name, result in models.items():
        pred_df = predictions_frame(result, X_test, y_test)
        proba = None
        if result.has_proba:
            proba = pred_df[[f"{PROBA_PREFIX}{cls}" for cls in result.classes]].to_numpy()
        scores = compute_metrics(
            task,
            pred_df["truth"].to_numpy(),
            pred_df["estimate"].to_numpy(),
            proba,
            classes=result.classes,
            positive_class=positive_class,
        )
        logger.info("模型 {} 测试集指标：{}", name, {k: round(v, 4) for k, v in scores.items()})
        records.append(metrics_to_dataframe(scores, name))
        predictions[name] = pred_df

    performance = pd.concat(records, ignore_index=True) if records else pd.DataFrame(columns=["model", "metric", "estimate"])
    return performance, predictions
