"""重抽样方案：交叉验证、重复交叉验证与自助法。

分类任务默认按标签分层，回归任务则使用普通划分。
每种方案都返回 `(train_idx, assess_idx)` 列表，训练模块只关心下标。
"""
from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold, RepeatedKFold, RepeatedStratifiedKFold, StratifiedKFold
from sklearn.utils import resample

CLASSIFICATION = "classification"

RESAMPLING_METHODS = ("cv", "repeatedcv", "boot", "none")

Split = Tuple[np.ndarray, np.ndarray]


def _bootstrap_splits(y: pd.Series, times: int, stratify: bool, seed: Optional[int]) -> List[Split]:
    """自助法：有放回抽样作为训练集，袋外样本作为评估集。"""
    rng = np.random.RandomState(seed)
    indices = np.arange(len(y))
    splits: List[Split] = []
    for _ in range(times):
        train_idx = resample(
            indices,
            replace=True,
            n_samples=len(indices),
            stratify=np.asarray(y) if stratify else None,
            random_state=rng,
        )
        assess_idx = np.setdiff1d(indices, train_idx)
        if len(assess_idx) == 0:
            continue
        splits.append((np.asarray(train_idx), assess_idx))
    return splits


def make_resamples(
    X: pd.DataFrame,
    y: pd.Series,
    method: str,
    folds: int = 10,
    repeats: int = 1,
    task: str = CLASSIFICATION,
    seed: Optional[int] = None,
) -> Optional[List[Split]]:
    """按配置生成重抽样下标；`method="none"` 返回 None（不调参）。"""
    stratify = task == CLASSIFICATION
    if method == "cv":
        splitter = (
            StratifiedKFold(n_splits=folds, shuffle=True, random_state=seed)
            if stratify
            else KFold(n_splits=folds, shuffle=True, random_state=seed)
        )
    elif method == "repeatedcv":
        splitter = (
            RepeatedStratifiedKFold(n_splits=folds, n_repeats=repeats, random_state=seed)
            if stratify
            else RepeatedKFold(n_splits=folds, n_repeats=repeats, random_state=seed)
        )
    elif method == "boot":
        return _bootstrap_splits(y, folds, stratify, seed)
    elif method == "none":
        return None
    else:
        raise ValueError("Unsupported resampling method.")
    return [(train_idx, assess_idx) for train_idx, assess_idx in splitter.split(X, y)]
