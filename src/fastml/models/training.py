"""模型训练与调参工具。

`train_models` 是整个库的核心：按算法名取出模型规格，必要时在重抽样折上做网格搜索，
再用最佳参数在全部训练数据上重新拟合。
重点在于 `_train_with_cv`：它负责执行交叉验证、记录历史结果，并返回最佳模型。

单个算法失败不会中断整个流程，只会记录日志并跳过；全部失败时才抛出 RuntimeError。
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.base import clone
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import LabelEncoder

from ..data.preprocessing import build_preprocessor
from ..data.resampling import make_resamples
from ..evaluation.metrics import compute_metrics, get_metric_names, is_better
from ..utils.data_io import split_features_label
from ..utils.logger import get_logger
from .params import build_grid, extract_parameter_set, finalize, update_params
from .registry import ALGORITHMS, CLASSIFICATION, ModelSpec, define_model_spec, get_default_tune_params

DEFAULT_METRICS = {"classification": "accuracy", "regression": "rmse"}
GRID_SIZE = 10
GRID_LEVELS = 3


@dataclass
class ModelResult:
    """统一的模型训练结果数据结构。

    `estimator` 是“预处理 + 模型”组成的 `Pipeline`。分类任务中模型在编码后的
    标签（0..k-1）上训练，`predict` / `predict_proba` 会还原成原始类别。
    """

    name: str
    estimator: Pipeline
    best_params: Dict[str, Any]
    task: str
    validation_score: Optional[float] = None
    history: List[Dict[str, Any]] = field(default_factory=list)
    tuned: bool = False
    classes: Optional[List[Any]] = None

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        preds = np.asarray(self.estimator.predict(X)).ravel()
        if self.classes is None:
            return preds.astype(float)
        return np.asarray(self.classes)[preds.astype(int)]

    @property
    def has_proba(self) -> bool:
        return self.task == CLASSIFICATION and hasattr(self.estimator, "predict_proba")

    def predict_proba(self, X: pd.DataFrame) -> Optional[pd.DataFrame]:
        """返回各类别概率（列名为原始类别）；模型不支持概率时返回 None。"""
        if not self.has_proba:
            return None
        proba = _full_proba(self.estimator, X, len(self.classes))
        return pd.DataFrame(proba, columns=list(self.classes), index=getattr(X, "index", None))


def _full_proba(estimator, X, n_classes: int) -> np.ndarray:
    """把概率矩阵补齐到全部类别（某折训练集可能缺少个别类别）。"""
    raw = np.asarray(estimator.predict_proba(X), dtype=float)
    fitted_codes = np.asarray(estimator.classes_).astype(int)
    proba = np.zeros((raw.shape[0], n_classes), dtype=float)
    proba[:, fitted_codes] = raw
    return proba


def _make_pipeline(preprocessor, estimator) -> Pipeline:
    return Pipeline([("preprocess", clone(preprocessor)), ("model", estimator)])


def _fit_and_score(
    spec: ModelSpec,
    preprocessor,
    params: Dict[str, Any],
    X: pd.DataFrame,
    y: np.ndarray,
    train_idx: np.ndarray,
    assess_idx: np.ndarray,
    n_classes: Optional[int],
    positive_code: Optional[int],
) -> Dict[str, float]:
    """在单个重抽样折上训练并评估一组参数。"""
    pipeline = _make_pipeline(preprocessor, spec.build(params))
    pipeline.fit(X.iloc[train_idx], y[train_idx])
    X_assess = X.iloc[assess_idx]
    y_assess = y[assess_idx]
    preds = np.asarray(pipeline.predict(X_assess)).ravel()

    if spec.task != CLASSIFICATION:
        return compute_metrics(spec.task, y_assess, preds)

    proba = None
    if hasattr(pipeline, "predict_proba"):
        proba = _full_proba(pipeline, X_assess, n_classes)
    return compute_metrics(
        spec.task,
        y_assess,
        preds.astype(int),
        proba,
        classes=list(range(n_classes)),
        positive_class=positive_code,
    )


def _train_with_cv(
    name: str,
    spec: ModelSpec,
    preprocessor,
    grid: List[Dict[str, Any]],
    X: pd.DataFrame,
    y: np.ndarray,
    resamples: Sequence,
    metric: str,
    n_classes: Optional[int] = None,
    positive_code: Optional[int] = None,
    n_jobs: int = 1,
) -> Dict[str, Any]:
    """执行交叉验证并搜寻最佳超参数。

    关键思路：
    1. 对 `grid` 中每组候选参数、每个重抽样折分别训练与评估（可用 joblib 并行）；
    2. 对每组参数的各项指标求折均值，记录到调参历史；
    3. 按 `metric` 的优化方向选出最佳参数；
    4. 用最佳参数在全部训练数据上重新拟合。
    """
    tasks = [
        (cand_idx, params, train_idx, assess_idx)
        for cand_idx, params in enumerate(grid)
        for train_idx, assess_idx in resamples
    ]
    scores = Parallel(n_jobs=n_jobs)(
        delayed(_fit_and_score)(spec, preprocessor, params, X, y, train_idx, assess_idx, n_classes, positive_code)
        for _, params, train_idx, assess_idx in tasks
    )

    fold_scores: Dict[int, List[Dict[str, float]]] = {}
    for (cand_idx, _, _, _), score in zip(tasks, scores):
        fold_scores.setdefault(cand_idx, []).append(score)

    best_score = float("nan")
    best_params: Optional[Dict[str, Any]] = None
    history: List[Dict[str, Any]] = []

    for cand_idx, params in enumerate(grid):
        frame = pd.DataFrame(fold_scores[cand_idx])
        means = frame.mean(numeric_only=True)
        mean_score = float(means.get(metric, np.nan))
        std_score = float(frame[metric].std(ddof=0)) if metric in frame else float("nan")
        history.append(
            {
                **params,
                **{f"mean_{col}": float(val) for col, val in means.items()},
                "cv_mean_score": mean_score,
                "cv_std_score": std_score,
                "n_resamples": len(frame),
            }
        )
        if is_better(mean_score, best_score, metric):
            best_score = mean_score
            best_params = params

    if best_params is None:
        get_logger().warning("模型 {} 所有候选参数的 {} 均无效，使用第一组参数", name, metric)
        best_params = grid[0]

    final = _make_pipeline(preprocessor, spec.build(best_params))
    final.fit(X, y)
    return {
        "estimator": final,
        "best_params": {**spec.params, **best_params},
        "validation_score": best_score,
        "history": history,
    }


def train_models(
    train_data: pd.DataFrame,
    label: str,
    task: str,
    algorithms: Iterable[str],
    resampling_method: str = "cv",
    folds: int = 10,
    repeats: int = 1,
    tune_params: Optional[Dict[str, Dict[str, Any]]] = None,
    metric: Optional[str] = None,
    seed: int = 123,
    preprocessor=None,
    use_default_tuning: bool = False,
    positive_class: Any = None,
    n_jobs: int = 1,
) -> Dict[str, ModelResult]:
    """按算法名依次训练模型，返回 {算法名: ModelResult}。

    - 用户在 `tune_params[algo]` 中给出范围，或开启 `use_default_tuning` 时才会调参；
    - `resampling_method="none"` 时没有重抽样，所有模型直接用默认参数拟合；
    - 未知算法、缺少依赖或训练报错的算法会被跳过并写日志。
    """
    logger = get_logger()
    X, y = split_features_label(train_data, label)
    metric_names = get_metric_names(task)
    metric = metric or DEFAULT_METRICS[task]
    if metric not in metric_names:
        raise ValueError(f"指标 {metric} 不适用于 {task} 任务，可选: {', '.join(metric_names)}")

    classes: Optional[List[Any]] = None
    n_classes: Optional[int] = None
    positive_code: Optional[int] = None
    if task == CLASSIFICATION:
        encoder = LabelEncoder()
        y_fit = encoder.fit_transform(y)
        classes = encoder.classes_.tolist()
        n_classes = len(classes)
        if positive_class is not None:
            if positive_class not in classes:
                raise ValueError(f"正类 {positive_class!r} 不在标签类别 {classes} 中")
            positive_code = classes.index(positive_class)
    else:
        y_fit = y.to_numpy(dtype=float)

    resamples = make_resamples(X, y_fit, resampling_method, folds, repeats, task, seed)
    if preprocessor is None:
        preprocessor = build_preprocessor(X)
    num_predictors = X.shape[1]

    models: Dict[str, ModelResult] = {}
    for algo in algorithms:
        if algo not in ALGORITHMS:
            logger.warning("算法 {} 不受支持，已跳过", algo)
            continue

        algo_tune_params = tune_params.get(algo) if tune_params else None
        if algo_tune_params is None and use_default_tuning:
            algo_tune_params = get_default_tune_params(algo, num_predictors)
        perform_tuning = algo_tune_params is not None and resamples is not None

        try:
            spec = define_model_spec(algo, task, num_predictors, tune=perform_tuning, random_state=seed)
        except ImportError as exc:
            logger.error("模型 {} 训练失败，缺少依赖：{}", algo, exc)
            continue

        grid = None
        if perform_tuning and spec.tunable:
            param_set = finalize(extract_parameter_set(spec.tunable), num_predictors)
            param_set = update_params(param_set, algo_tune_params)
            grid = build_grid(param_set, size=GRID_SIZE, levels=GRID_LEVELS, seed=seed)

        logger.info("训练模型：{}（调参={}）", algo, bool(grid))
        try:
            if grid:
                outcome = _train_with_cv(
                    algo,
                    spec,
                    preprocessor,
                    grid,
                    X,
                    y_fit,
                    resamples,
                    metric,
                    n_classes=n_classes,
                    positive_code=positive_code,
                    n_jobs=n_jobs,
                )
            else:
                estimator = _make_pipeline(preprocessor, spec.build())
                estimator.fit(X, y_fit)
                outcome = {"estimator": estimator, "best_params": dict(spec.params)}
        except Exception as exc:
            logger.warning("算法 {} 训练失败，错误信息：{}", algo, exc)
            continue

        models[algo] = ModelResult(
            name=algo,
            task=task,
            tuned=bool(grid),
            classes=classes,
            **outcome,
        )
        if grid:
            logger.info(
                "模型 {} 交叉验证最佳 {}={:.4f}，参数={}",
                algo,
                metric,
                models[algo].validation_score,
                models[algo].best_params,
            )

    if not models:
        raise RuntimeError("No models were successfully trained. Please check your data and parameters.")
    return models
