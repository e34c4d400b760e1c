"""特征预处理（对应建模前的“配方”）。

数值列：缺失值填补 +（可选）标准化；类别列：众数填补 + 哑变量编码（去掉第一个水平）。
预处理器与模型一起放进 `Pipeline`，交叉验证时在每个折内重新拟合，避免信息泄漏。
"""
from __future__ import annotations

from typing import List, Optional, Tuple

import pandas as pd
from sklearn.compose import ColumnTransformer
from sklearn.impute import KNNImputer, SimpleImputer
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder, StandardScaler

IMPUTE_METHODS = ("median", "mean", "most_frequent", "knn", "remove", "error")


def split_column_types(X: pd.DataFrame) -> Tuple[List[str], List[str]]:
    """区分数值列与类别列（布尔列按类别处理）。"""
    numeric_cols = [
        col
        for col in X.columns
        if pd.api.types.is_numeric_dtype(X[col]) and not pd.api.types.is_bool_dtype(X[col])
    ]
    categorical_cols = [col for col in X.columns if col not in numeric_cols]
    return numeric_cols, categorical_cols


def handle_missing(X: pd.DataFrame, y: pd.Series, impute_method: Optional[str]) -> Tuple[pd.DataFrame, pd.Series]:
    """处理缺失值的前置检查。

    - `remove`：删除含缺失值的行；
    - `error` / None：存在缺失值时直接报错；
    - 其余方法交给预处理器在折内填补。
    """
    if impute_method is not None and impute_method not in IMPUTE_METHODS:
        raise ValueError(f"不支持的缺失值处理方式: {impute_method}，可选 {IMPUTE_METHODS}")
    if y.isna().any():
        raise ValueError("标签列存在缺失值，请先处理后再建模")
    if impute_method == "remove":
        mask = X.notna().all(axis=1)
        return X.loc[mask], y.loc[mask]
    if impute_method in (None, "error") and X.isna().any().any():
        missing_cols = X.columns[X.isna().any()].tolist()
        raise ValueError(f"特征中存在缺失值 {missing_cols}，请设置 impute_method（如 'median'）")
    return X, y


def build_preprocessor(
    X: pd.DataFrame,
    impute_method: Optional[str] = "median",
    encode_categoricals: bool = True,
    scaling: bool = True,
) -> ColumnTransformer:
    """根据数据列类型构造 `ColumnTransformer`。"""
    numeric_cols, categorical_cols = split_column_types(X)

    numeric_steps = []
    if impute_method == "knn":
        numeric_steps.append(("impute", KNNImputer()))
    elif impute_method in ("median", "mean", "most_frequent"):
        numeric_steps.append(("impute", SimpleImputer(strategy=impute_method)))
    if scaling:
        numeric_steps.append(("scale", StandardScaler()))
    numeric_pipe = Pipeline(numeric_steps) if numeric_steps else "passthrough"

    transformers = []
    if numeric_cols:
        transformers.append(("numeric", numeric_pipe, numeric_cols))
    if categorical_cols:
        if not encode_categoricals:
            raise ValueError(f"存在类别特征 {categorical_cols}，需要开启 encode_categoricals")
        categorical_steps = []
        if impute_method not in (None, "error", "remove"):
            categorical_steps.append(("impute", SimpleImputer(strategy="most_frequent")))
        encoder = OneHotEncoder(drop="first", handle_unknown="ignore", sparse_output=False)
        categorical_steps.append(("encode", encoder))
        transformers.append(("categorical", Pipeline(categorical_steps), categorical_cols))

    return ColumnTransformer(transformers, remainder="drop")
