"""重抽样方案测试。"""
from __future__ import annotations

import numpy as np
import pytest

from fastml.data.resampling import make_resamples


def test_cv_folds_partition_rows(binary_df) -> None:
    """交叉验证的评估集互不重叠，且合起来覆盖全部样本。"""
    X, y = binary_df.drop(columns="target"), binary_df["target"]
    splits = make_resamples(X, y, "cv", folds=5, task="classification", seed=1)
    assert len(splits) == 5
    assessed = np.concatenate([assess for _, assess in splits])
    assert sorted(assessed.tolist()) == list(range(len(binary_df)))
    for train_idx, assess_idx in splits:
        assert not set(train_idx) & set(assess_idx)


def test_cv_is_stratified_for_classification(binary_df) -> None:
    X, y = binary_df.drop(columns="target"), binary_df["target"]
    overall = (y == "yes").mean()
    for _, assess_idx in make_resamples(X, y, "cv", folds=4, task="classification", seed=3):
        assert abs((y.iloc[assess_idx] == "yes").mean() - overall) < 0.1


def test_repeated_cv(regression_df) -> None:
    X, y = regression_df.drop(columns="y"), regression_df["y"]
    splits = make_resamples(X, y, "repeatedcv", folds=3, repeats=2, task="regression", seed=1)
    assert len(splits) == 6


def test_bootstrap_uses_out_of_bag_rows(binary_df) -> None:
    X, y = binary_df.drop(columns="target"), binary_df["target"]
    splits = make_resamples(X, y, "boot", folds=4, task="classification", seed=1)
    assert 0 < len(splits) <= 4
    for train_idx, assess_idx in splits:
        assert len(train_idx) == len(binary_df)
        assert not set(train_idx) & set(assess_idx)


def test_none_and_unsupported(regression_df) -> None:
    X, y = regression_df.drop(columns="y"), regression_df["y"]
    assert make_resamples(X, y, "none", task="regression") is None
    with pytest.raises(ValueError, match="Unsupported resampling method"):
        make_resamples(X, y, "loo", task="regression")
