"""测试公共夹具：小规模合成数据集与已训练好的 fastml 结果。

数据都很小，保证整套测试在几十秒内跑完；matplotlib 固定使用 Agg 后端。
"""
from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from fastml import fastml


@pytest.fixture(scope="session")
def binary_df() -> pd.DataFrame:
    rng = np.random.default_rng(0)
    n = 160
    x1 = rng.normal(size=n)
    x2 = rng.normal(size=n)
    color = rng.choice(["red", "green", "blue"], size=n)
    score = 1.5 * x1 - x2 + (color == "red") * 0.5 + rng.normal(scale=0.5, size=n)
    return pd.DataFrame({"x1": x1, "x2": x2, "color": color, "target": np.where(score > 0, "yes", "no")})


@pytest.fixture(scope="session")
def multiclass_df() -> pd.DataFrame:
    rng = np.random.default_rng(1)
    n = 180
    x1 = rng.normal(size=n)
    x2 = rng.normal(size=n)
    species = np.select([x1 < -0.4, x1 > 0.4], ["setosa", "virginica"], default="versicolor")
    return pd.DataFrame({"x1": x1, "x2": x2, "species": species})


@pytest.fixture(scope="session")
def regression_df() -> pd.DataFrame:
    rng = np.random.default_rng(2)
    n = 120
    x1 = rng.normal(size=n)
    x2 = rng.uniform(-1, 1, size=n)
    x3 = rng.normal(size=n)
    y = 3.0 * x1 - 2.0 * x2 + 0.5 * x3 + rng.normal(scale=0.3, size=n)
    return pd.DataFrame({"x1": x1, "x2": x2, "x3": x3, "y": y})


@pytest.fixture(scope="session")
def binary_result(binary_df):
    return fastml(
        binary_df,
        "target",
        algorithms=["logistic_regression", "decision_tree"],
        folds=3,
        metric="roc_auc",
    )


@pytest.fixture(scope="session")
def regression_result(regression_df):
    return fastml(
        regression_df,
        "y",
        algorithms=["linear_regression", "ridge_regression", "decision_tree"],
        folds=3,
    )


@pytest.fixture(scope="session")
def multiclass_result(multiclass_df):
    return fastml(multiclass_df, "species", algorithms=["lda", "decision_tree"], folds=3)
