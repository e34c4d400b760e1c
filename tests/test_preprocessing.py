"""缺失值处理与预处理器测试。"""
from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from fastml.data.preprocessing import build_preprocessor, handle_missing, split_column_types


@pytest.fixture()
def frame_with_missing() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "age": [21.0, np.nan, 35.0, 40.0, 52.0, 28.0],
            "city": ["a", "b", np.nan, "a", "c", "b"],
            "vip": [True, False, True, False, False, True],
        }
    )


def test_split_column_types_treats_bool_as_categorical(frame_with_missing) -> None:
    numeric, categorical = split_column_types(frame_with_missing)
    assert numeric == ["age"]
    assert categorical == ["city", "vip"]


def test_handle_missing_modes(frame_with_missing) -> None:
    y = pd.Series(range(len(frame_with_missing)))
    X_kept, y_kept = handle_missing(frame_with_missing, y, "remove")
    assert len(X_kept) == 4
    assert list(y_kept.index) == list(X_kept.index)

    with pytest.raises(ValueError, match="impute_method"):
        handle_missing(frame_with_missing, y, None)
    with pytest.raises(ValueError):
        handle_missing(frame_with_missing, y, "error")
    with pytest.raises(ValueError):
        handle_missing(frame_with_missing, y, "interpolate")

    X_same, _ = handle_missing(frame_with_missing, y, "median")
    assert X_same is frame_with_missing


def test_handle_missing_rejects_missing_label(frame_with_missing) -> None:
    y = pd.Series([1.0, 2.0, np.nan, 4.0, 5.0, 6.0])
    with pytest.raises(ValueError, match="标签"):
        handle_missing(frame_with_missing, y, "median")


def test_preprocessor_imputes_and_encodes(frame_with_missing) -> None:
    """中位数填补 + 哑变量编码后不应再有缺失值。"""
    pre = build_preprocessor(frame_with_missing, impute_method="median")
    out = pre.fit_transform(frame_with_missing)
    # age + city(b/c) + vip(True)，每个类别特征去掉第一个水平
    assert out.shape == (6, 4)
    assert not np.isnan(out).any()


def test_preprocessor_knn_imputation() -> None:
    X = pd.DataFrame({"a": [1.0, 2.0, np.nan, 4.0], "b": [1.0, 2.0, 3.0, 4.0]})
    out = build_preprocessor(X, impute_method="knn", scaling=False).fit_transform(X)
    assert not np.isnan(out).any()


def test_preprocessor_requires_encoding_for_categoricals(frame_with_missing) -> None:
    with pytest.raises(ValueError):
        build_preprocessor(frame_with_missing, encode_categoricals=False)
