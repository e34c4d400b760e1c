"""数据读写工具函数。

提供读取训练表的统一接口，按文件后缀选择 `pd.read_csv` 或 `pd.read_parquet`。
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Tuple

import pandas as pd


def load_table(path: Path, **read_kwargs) -> pd.DataFrame:
    """读取 CSV / Parquet 数据表。"""
    suffix = path.suffix.lower()
    if suffix in {".parquet", ".pq"}:
        return pd.read_parquet(path, **read_kwargs)
    if suffix in {".csv", ".txt"}:
        defaults = {"encoding": "utf-8"}
        defaults.update(read_kwargs)
        return pd.read_csv(path, **defaults)
    raise ValueError(f"不支持的数据文件格式: {path}")


def split_features_label(
    df: pd.DataFrame,
    label_column: str,
    drop_columns: Optional[Sequence[str]] = None,
) -> Tuple[pd.DataFrame, pd.Series]:
    """拆分特征与标签。

    返回值说明：
        X: 特征 DataFrame（不包含标签与 `drop_columns`）。
        y: 标签 Series。
    """
    if label_column not in df.columns:
        raise ValueError(f"数据中不存在标签列: {label_column}")
    excluded = {label_column, *(drop_columns or [])}
    feature_cols = [col for col in df.columns if col not in excluded]
    return df[feature_cols], df[label_column]
