"""一站式建模入口 `fastml`。

执行顺序：校验标签 → 推断任务类型 → 缺失值检查 → 划分训练/测试集 →
构造预处理器 → `train_models` → `evaluate_models` → 选出最佳模型。
返回的 `FastMLModel` 汇总了所有模型、测试集指标与预测明细，可直接交给 `summary`。
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import joblib
import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split

from ..data.preprocessing import build_preprocessor, handle_missing
from ..evaluation.evaluate import evaluate_models
from ..evaluation.metrics import get_metric_names, is_better
from ..models.registry import ALGORITHMS, CLASSIFICATION, REGRESSION, TASKS, available_algorithms, is_backend_installed
from ..models.training import DEFAULT_METRICS, ModelResult, train_models
from ..utils.data_io import split_features_label
from ..utils.logger import get_logger


@dataclass
class FastMLModel:
    """`fastml` 的返回结果。"""

    models: Dict[str, ModelResult]
    performance: pd.DataFrame
    predictions: Dict[str, pd.DataFrame]
    task: str
    metric: str
    best_model_name: str
    label: str
    feature_names: List[str]
    positive_class: Any = None
    settings: Dict[str, Any] = field(default_factory=dict)

    @property
    def best_model(self) -> ModelResult:
        return self.models[self.best_model_name]

    def predict(self, new_data: pd.DataFrame, model_name: Optional[str] = None, type: str = "class"):
        """用指定模型（默认最佳模型）对新数据做预测。

        `type="class"` 返回预测值数组；`type="prob"` 返回各类别概率的 DataFrame。
        """
        name = model_name or self.best_model_name
        if name not in self.models:
            raise ValueError(f"模型 {name} 不存在，可选: {', '.join(self.models)}")
        missing = [col for col in self.feature_names if col not in new_data.columns]
        if missing:
            raise ValueError(f"新数据缺少特征列: {missing}")
        X = new_data[self.feature_names]
        result = self.models[name]
        if type == "class":
            return result.predict(X)
        if type == "prob":
            proba = result.predict_proba(X)
            if proba is None:
                raise ValueError(f"模型 {name} 不支持概率预测")
            return proba
        raise ValueError(f"不支持的预测类型: {type}")

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(self, path)
        return path

    @classmethod
    def load(cls, path: Path) -> "FastMLModel":
        obj = joblib.load(path)
        if not isinstance(obj, cls):
            raise TypeError(f"{path} 中保存的不是 FastMLModel 对象")
        return obj


def infer_task(y: pd.Series) -> str:
    """非数值或布尔标签视为分类，其余为回归。"""
    if pd.api.types.is_bool_dtype(y) or not pd.api.types.is_numeric_dtype(y):
        return CLASSIFICATION
    return REGRESSION


def resolve_algorithms(algorithms: Union[str, Iterable[str]], task: str) -> List[str]:
    """把 "all" 展开成当前任务可用的全部算法（跳过未安装的可选依赖）。"""
    if isinstance(algorithms, str):
        if algorithms != "all":
            return [algorithms]
        logger = get_logger()
        resolved = []
        for algo in available_algorithms(task):
            if is_backend_installed(algo):
                resolved.append(algo)
            else:
                logger.info("未安装 {}，跳过算法 {}", ALGORITHMS[algo].backend, algo)
        return resolved
    return list(algorithms)


def select_best_model(performance: pd.DataFrame, metric: str) -> str:
    """按指标方向在测试集结果中选出最佳模型。"""
    rows = performance[performance["metric"] == metric]
    best_name: Optional[str] = None
    best_value = float("nan")
    for name, value in zip(rows["model"], rows["estimate"]):
        if is_better(float(value), best_value, metric):
            best_name, best_value = name, float(value)
    if best_name is None:
        best_name = str(performance["model"].iloc[0])
        get_logger().warning("所有模型的 {} 均无效，默认选择 {}", metric, best_name)
    return best_name


def fastml(
    data: pd.DataFrame,
    label: str,
    algorithms: Union[str, Iterable[str]] = "all",
    task: str = "auto",
    test_size: float = 0.2,
    resampling_method: str = "cv",
    folds: int = 10,
    repeats: int = 1,
    tune_params: Optional[Dict[str, Dict[str, Any]]] = None,
    metric: Optional[str] = None,
    stratify: bool = True,
    impute_method: Optional[str] = None,
    encode_categoricals: bool = True,
    scaling: bool = True,
    use_default_tuning: bool = False,
    positive_class: Any = None,
    seed: int = 123,
    n_jobs: int = 1,
) -> FastMLModel:
    """训练并比较多个模型。

    Args:
        data: 已整理好的建模数据（含标签列）。
        label: 标签列名。
        algorithms: 算法名列表，或 "all" 表示当前任务可用的全部算法。
        task: "classification" / "regression" / "auto"（按标签类型推断）。
        test_size: 测试集比例。
        resampling_method: "cv" / "repeatedcv" / "boot" / "none"。
        tune_params: {算法名: {参数名: 范围或候选值}}。
        metric: 调参与选模使用的指标，默认分类 accuracy、回归 rmse。
        impute_method: 缺失值处理方式，见 `fastml.data.preprocessing.IMPUTE_METHODS`。
        use_default_tuning: 没有给出 `tune_params` 时是否使用内置调参范围。
        positive_class: 二分类的正类，默认取排序后的最后一个类别。
        seed: 随机种子（数据划分、重抽样、模型与网格采样共用）。
        n_jobs: 调参时 joblib 的并行进程数。
    """
    logger = get_logger()
    if label not in data.columns:
        raise ValueError(f"数据中不存在标签列: {label}")

    if task == "auto":
        task = infer_task(data[label])
    if task not in TASKS:
        raise ValueError(f"不支持的任务类型: {task}")
    metric = metric or DEFAULT_METRICS[task]
    if metric not in get_metric_names(task):
        raise ValueError(f"指标 {metric} 不适用于 {task} 任务，可选: {', '.join(get_metric_names(task))}")

    algorithms = resolve_algorithms(algorithms, task)
    if not algorithms:
        raise ValueError("没有可训练的算法")
    logger.info("任务类型：{}，优化指标：{}，候选算法：{}", task, metric, algorithms)

    X, y = split_features_label(data, label)
    X, y = handle_missing(X, y, impute_method)
    stratify_on = y if task == CLASSIFICATION and stratify else None
    X_train, X_test, y_train, y_test = train_test_split(
        X,
        y,
        test_size=test_size,
        stratify=stratify_on,
        random_state=seed,
    )
    logger.info("数据划分完成：train={}, test={}", len(X_train), len(X_test))

    preprocessor = build_preprocessor(
        X_train,
        impute_method=impute_method,
        encode_categoricals=encode_categoricals,
        scaling=scaling,
    )
    train_df = pd.concat([X_train, y_train], axis=1)
    test_df = pd.concat([X_test, y_test], axis=1)

    models = train_models(
        train_df,
        label,
        task,
        algorithms,
        resampling_method=resampling_method,
        folds=folds,
        repeats=repeats,
        tune_params=tune_params,
        metric=metric,
        seed=seed,
        preprocessor=preprocessor,
        use_default_tuning=use_default_tuning,
        positive_class=positive_class,
        n_jobs=n_jobs,
    )
    performance, predictions = evaluate_models(models, test_df, label, task, positive_class=positive_class)
    best_model_name = select_best_model(performance, metric)
    best_value = performance.loc[
        (performance["model"] == best_model_name) & (performance["metric"] == metric), "estimate"
    ]
    logger.info("最佳模型：{}（{}={:.4f}）", best_model_name, metric, float(best_value.iloc[0]) if len(best_value) else np.nan)

    return FastMLModel(
        models=models,
        performance=performance,
        predictions=predictions,
        task=task,
        metric=metric,
        best_model_name=best_model_name,
        label=label,
        feature_names=list(X.columns),
        positive_class=positive_class,
        settings={
            "test_size": test_size,
            "resampling_method": resampling_method,
            "folds": folds,
            "repeats": repeats,
            "impute_method": impute_method,
            "use_default_tuning": use_default_tuning,
            "seed": seed,
        },
    )
