"""算法目录：名字 → 模型规格构造函数。

这里集中维护三张表：

- `ALGORITHMS`：每个算法适用的任务类型、底层引擎以及调参时开放的参数；
- `get_default_params`：不调参时使用的固定超参数；
- `get_default_tune_params`：开启默认调参时的搜索范围。

参数名统一使用与引擎无关的“规范名”（`trees`、`min_n`、`penalty` 等），
真正构造 scikit-learn 风格的估计器时再由各个 `_make_*` 函数翻译成引擎参数。
"""
from __future__ import annotations

import importlib
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np
import sklearn
from sklearn.cross_decomposition import PLSRegression
from sklearn.discriminant_analysis import LinearDiscriminantAnalysis, QuadraticDiscriminantAnalysis
from sklearn.ensemble import (
    BaggingClassifier,
    BaggingRegressor,
    GradientBoostingClassifier,
    RandomForestClassifier,
    RandomForestRegressor,
)
from sklearn.linear_model import BayesianRidge, ElasticNet, Lasso, LinearRegression, LogisticRegression, Ridge
from sklearn.naive_bayes import GaussianNB
from sklearn.neighbors import KNeighborsClassifier, KNeighborsRegressor
from sklearn.neural_network import MLPClassifier, MLPRegressor
from sklearn.svm import SVC, SVR
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor
from sklearn.utils.fixes import parse_version
from xgboost import XGBClassifier, XGBRegressor

CLASSIFICATION = "classification"
REGRESSION = "regression"
TASKS = (CLASSIFICATION, REGRESSION)

# scikit-learn 1.8 起 LogisticRegression 的 penalty 参数被弃用
_SKLEARN_PENALTY_DEPRECATED = parse_version(sklearn.__version__).release[:2] >= (1, 8)


@dataclass(frozen=True)
class AlgorithmInfo:
    """单个算法的目录条目。"""

    name: str
    display_name: str
    tasks: Tuple[str, ...]
    engine: str
    factory: Callable[[str, Dict[str, Any], int], Any]
    tunable: Tuple[str, ...] = ()
    backend: Optional[str] = None


@dataclass
class ModelSpec:
    """模型规格：固定参数 + 待调参数 + 估计器工厂。"""

    algorithm: str
    task: str
    engine: str
    params: Dict[str, Any]
    tunable: List[str]
    num_predictors: int
    factory: Callable[[str, Dict[str, Any], int], Any] = field(repr=False)
    random_state: Optional[int] = None

    def build(self, overrides: Optional[Dict[str, Any]] = None):
        """按规范参数构造一个未训练的估计器。"""
        params = {**self.params, **(overrides or {})}
        missing = [name for name in self.tunable if name not in params]
        if missing:
            raise ValueError(f"模型 {self.algorithm} 的可调参数尚未确定: {missing}")
        estimator = self.factory(self.task, params, self.num_predictors)
        if self.random_state is not None:
            engine_params = estimator.get_params()
            if "random_state" in engine_params:
                estimator.set_params(random_state=self.random_state)
            elif "random_seed" in engine_params:
                estimator.set_params(random_seed=self.random_state)
        return estimator


def _sqrt_mtry(num_predictors: Optional[int]) -> int:
    if num_predictors is None:
        return 2
    return max(1, int(math.floor(math.sqrt(num_predictors))))


def _colsample(params: Dict[str, Any], num_predictors: int) -> float:
    if not num_predictors:
        return 1.0
    return float(min(1.0, max(int(params["mtry"]), 1) / num_predictors))


def _min_split(params: Dict[str, Any]) -> int:
    return max(2, int(params["min_n"]))


# ---- 近邻核函数：距离按每行最远邻居归一化 ----

def _normalized_distances(dist: np.ndarray) -> np.ndarray:
    dist = np.asarray(dist, dtype=float)
    scale = dist.max(axis=1, keepdims=True) * (1.0 + 1e-6) + 1e-12
    return dist / scale


def _triangular_weights(dist: np.ndarray) -> np.ndarray:
    return 1.0 - _normalized_distances(dist)


def _epanechnikov_weights(dist: np.ndarray) -> np.ndarray:
    return 0.75 * (1.0 - _normalized_distances(dist) ** 2)


KNN_WEIGHTS: Dict[str, Any] = {
    "rectangular": "uniform",
    "inv": "distance",
    "triangular": _triangular_weights,
    "epanechnikov": _epanechnikov_weights,
}


# ---- 估计器工厂 ----

def _make_random_forest(task: str, params: Dict[str, Any], num_predictors: int):
    cls = RandomForestClassifier if task == CLASSIFICATION else RandomForestRegressor
    return cls(
        n_estimators=int(params["trees"]),
        max_features=max(1, int(params["mtry"])),
        min_samples_split=_min_split(params),
    )


def _make_c5_0(task: str, params: Dict[str, Any], num_predictors: int):
    return GradientBoostingClassifier(
        n_estimators=int(params["trees"]),
        min_samples_split=_min_split(params),
        subsample=float(params["sample_size"]),
    )


def _make_xgboost(task: str, params: Dict[str, Any], num_predictors: int):
    cls = XGBClassifier if task == CLASSIFICATION else XGBRegressor
    return cls(
        n_estimators=int(params["trees"]),
        max_depth=int(params["tree_depth"]),
        learning_rate=float(params["learn_rate"]),
        gamma=float(params["loss_reduction"]),
        min_child_weight=float(params["min_n"]),
        subsample=float(params["sample_size"]),
        colsample_bynode=_colsample(params, num_predictors),
        n_jobs=1,
        verbosity=0,
    )


def _make_lightgbm(task: str, params: Dict[str, Any], num_predictors: int):
    try:
        from lightgbm import LGBMClassifier, LGBMRegressor
    except ImportError as exc:
        raise ImportError("需要安装 lightgbm 库以训练 LightGBM 模型") from exc

    cls = LGBMClassifier if task == CLASSIFICATION else LGBMRegressor
    sample_size = float(params["sample_size"])
    return cls(
        n_estimators=int(params["trees"]),
        max_depth=int(params["tree_depth"]),
        learning_rate=float(params["learn_rate"]),
        min_split_gain=float(params["loss_reduction"]),
        min_child_samples=int(params["min_n"]),
        subsample=sample_size,
        subsample_freq=1 if sample_size < 1 else 0,
        colsample_bytree=_colsample(params, num_predictors),
        n_jobs=1,
        verbose=-1,
    )


def _make_catboost(task: str, params: Dict[str, Any], num_predictors: int):
    try:
        from catboost import CatBoostClassifier, CatBoostRegressor
    except ImportError as exc:
        raise ImportError("需要安装 catboost 库以训练 CatBoost 模型") from exc

    cls = CatBoostClassifier if task == CLASSIFICATION else CatBoostRegressor
    return cls(
        iterations=int(params["trees"]),
        depth=int(params["tree_depth"]),
        learning_rate=float(params["learn_rate"]),
        random_seed=0,
        verbose=False,
        allow_writing_files=False,
        thread_count=1,
    )


def _make_logistic_regression(task: str, params: Dict[str, Any], num_predictors: int):
    if "penalty" in params:
        return LogisticRegression(C=1.0 / float(params["penalty"]), max_iter=1000)
    # 不加惩罚：1.8 起以 C=inf 表示，旧版本使用 penalty=None
    if _SKLEARN_PENALTY_DEPRECATED:
        return LogisticRegression(C=np.inf, max_iter=1000)
    return LogisticRegression(penalty=None, max_iter=1000)


def _make_penalized_logistic_regression(task: str, params: Dict[str, Any], num_predictors: int):
    kwargs: Dict[str, Any] = {} if _SKLEARN_PENALTY_DEPRECATED else {"penalty": "elasticnet"}
    return LogisticRegression(
        solver="saga",
        C=1.0 / float(params["penalty"]),
        l1_ratio=float(params["mixture"]),
        max_iter=5000,
        **kwargs,
    )


def _make_decision_tree(task: str, params: Dict[str, Any], num_predictors: int):
    cls = DecisionTreeClassifier if task == CLASSIFICATION else DecisionTreeRegressor
    return cls(
        max_depth=int(params["tree_depth"]),
        min_samples_split=_min_split(params),
        ccp_alpha=float(params["cost_complexity"]),
    )


def _make_svm_linear(task: str, params: Dict[str, Any], num_predictors: int):
    if task == CLASSIFICATION:
        return SVC(kernel="linear", C=float(params["cost"]), probability=True)
    return SVR(kernel="linear", C=float(params["cost"]))


def _make_svm_radial(task: str, params: Dict[str, Any], num_predictors: int):
    if task == CLASSIFICATION:
        return SVC(kernel="rbf", C=float(params["cost"]), gamma=float(params["rbf_sigma"]), probability=True)
    return SVR(kernel="rbf", C=float(params["cost"]), gamma=float(params["rbf_sigma"]))


def _make_knn(task: str, params: Dict[str, Any], num_predictors: int):
    weight_func = params["weight_func"]
    if weight_func not in KNN_WEIGHTS:
        raise ValueError(f"不支持的近邻加权方式: {weight_func}，可选 {sorted(KNN_WEIGHTS)}")
    cls = KNeighborsClassifier if task == CLASSIFICATION else KNeighborsRegressor
    return cls(
        n_neighbors=int(params["neighbors"]),
        weights=KNN_WEIGHTS[weight_func],
        p=float(params["dist_power"]),
    )


def _make_naive_bayes(task: str, params: Dict[str, Any], num_predictors: int):
    return GaussianNB(var_smoothing=float(params["smoothness"]))


def _make_neural_network(task: str, params: Dict[str, Any], num_predictors: int):
    cls = MLPClassifier if task == CLASSIFICATION else MLPRegressor
    return cls(
        hidden_layer_sizes=(int(params["hidden_units"]),),
        alpha=float(params["penalty"]),
        max_iter=int(params["epochs"]),
    )


def _make_deep_learning(task: str, params: Dict[str, Any], num_predictors: int):
    cls = MLPClassifier if task == CLASSIFICATION else MLPRegressor
    units = int(params["hidden_units"])
    return cls(
        hidden_layer_sizes=(units, units),
        alpha=float(params["penalty"]),
        max_iter=int(params["epochs"]),
        solver="adam",
    )


def _make_lda(task: str, params: Dict[str, Any], num_predictors: int):
    return LinearDiscriminantAnalysis()


def _make_qda(task: str, params: Dict[str, Any], num_predictors: int):
    return QuadraticDiscriminantAnalysis(reg_param=0.0)


def _make_bagging(task: str, params: Dict[str, Any], num_predictors: int):
    depth = params.get("tree_depth")
    tree_params = {
        "max_depth": None if depth is None else int(depth),
        "min_samples_split": _min_split(params),
        "ccp_alpha": float(params.get("cost_complexity", 0.0)),
    }
    if task == CLASSIFICATION:
        return BaggingClassifier(estimator=DecisionTreeClassifier(**tree_params), n_estimators=25)
    return BaggingRegressor(estimator=DecisionTreeRegressor(**tree_params), n_estimators=25)


def _make_elastic_net(task: str, params: Dict[str, Any], num_predictors: int):
    return ElasticNet(alpha=float(params["penalty"]), l1_ratio=float(params["mixture"]), max_iter=10000)


def _make_bayes_glm(task: str, params: Dict[str, Any], num_predictors: int):
    return BayesianRidge()


def _make_pls(task: str, params: Dict[str, Any], num_predictors: int):
    n_components = int(params["num_comp"])
    if num_predictors:
        n_components = min(n_components, num_predictors)
    return PLSRegression(n_components=max(1, n_components))


def _make_linear_regression(task: str, params: Dict[str, Any], num_predictors: int):
    return LinearRegression()


def _make_ridge_regression(task: str, params: Dict[str, Any], num_predictors: int):
    return Ridge(alpha=float(params["penalty"]))


def _make_lasso_regression(task: str, params: Dict[str, Any], num_predictors: int):
    return Lasso(alpha=float(params["penalty"]), max_iter=10000)


BOTH = TASKS
CLS_ONLY = (CLASSIFICATION,)
REG_ONLY = (REGRESSION,)
BOOST_PARAMS = ("trees", "tree_depth", "learn_rate", "mtry", "min_n", "loss_reduction", "sample_size")

ALGORITHMS: Dict[str, AlgorithmInfo] = {
    info.name: info
    for info in [
        AlgorithmInfo("random_forest", "Random Forest", BOTH, "sklearn", _make_random_forest, ("mtry", "trees", "min_n")),
        AlgorithmInfo("ranger", "Ranger", BOTH, "sklearn", _make_random_forest, ("mtry", "trees", "min_n")),
        AlgorithmInfo("c5.0", "C5.0", CLS_ONLY, "sklearn", _make_c5_0, ("trees", "min_n", "sample_size")),
        AlgorithmInfo("xgboost", "XGBoost", BOTH, "xgboost", _make_xgboost, BOOST_PARAMS),
        AlgorithmInfo("lightgbm", "LightGBM", BOTH, "lightgbm", _make_lightgbm, BOOST_PARAMS, backend="lightgbm"),
        AlgorithmInfo(
            "catboost", "CatBoost", BOTH, "catboost", _make_catboost, ("trees", "tree_depth", "learn_rate"), backend="catboost"
        ),
        AlgorithmInfo("logistic_regression", "Logistic Regression", CLS_ONLY, "sklearn", _make_logistic_regression, ("penalty",)),
        AlgorithmInfo(
            "penalized_logistic_regression",
            "Penalized Logistic Regression",
            CLS_ONLY,
            "sklearn",
            _make_penalized_logistic_regression,
            ("penalty", "mixture"),
        ),
        AlgorithmInfo(
            "decision_tree", "Decision Tree", BOTH, "sklearn", _make_decision_tree, ("tree_depth", "min_n", "cost_complexity")
        ),
        AlgorithmInfo("svm_linear", "SVM (Linear)", BOTH, "sklearn", _make_svm_linear, ("cost",)),
        AlgorithmInfo("svm_radial", "SVM (Radial)", BOTH, "sklearn", _make_svm_radial, ("cost", "rbf_sigma")),
        AlgorithmInfo("knn", "KNN", BOTH, "sklearn", _make_knn, ("neighbors", "weight_func", "dist_power")),
        AlgorithmInfo("naive_bayes", "Naive Bayes", CLS_ONLY, "sklearn", _make_naive_bayes, ("smoothness",)),
        AlgorithmInfo(
            "neural_network", "Neural Network", BOTH, "sklearn", _make_neural_network, ("hidden_units", "penalty", "epochs")
        ),
        AlgorithmInfo(
            "deep_learning", "Deep Learning", BOTH, "sklearn", _make_deep_learning, ("hidden_units", "penalty", "epochs")
        ),
        AlgorithmInfo("lda", "LDA", CLS_ONLY, "sklearn", _make_lda),
        AlgorithmInfo("qda", "QDA", CLS_ONLY, "sklearn", _make_qda),
        AlgorithmInfo(
            "bagging", "Bagging", BOTH, "sklearn", _make_bagging, ("cost_complexity", "tree_depth", "min_n")
        ),
        AlgorithmInfo("elastic_net", "Elastic Net", REG_ONLY, "sklearn", _make_elastic_net, ("penalty", "mixture")),
        AlgorithmInfo("bayes_glm", "Bayesian GLM", REG_ONLY, "sklearn", _make_bayes_glm),
        AlgorithmInfo("pls", "PLS", REG_ONLY, "sklearn", _make_pls, ("num_comp",)),
        AlgorithmInfo("linear_regression", "Linear Regression", REG_ONLY, "sklearn", _make_linear_regression),
        AlgorithmInfo("ridge_regression", "Ridge Regression", REG_ONLY, "sklearn", _make_ridge_regression, ("penalty",)),
        AlgorithmInfo("lasso_regression", "Lasso Regression", REG_ONLY, "sklearn", _make_lasso_regression, ("penalty",)),
    ]
}


def available_algorithms(task: Optional[str] = None) -> List[str]:
    """返回支持的算法名（可按任务过滤），顺序与目录一致。"""
    if task is None:
        return list(ALGORITHMS)
    if task not in TASKS:
        raise ValueError(f"不支持的任务类型: {task}")
    return [name for name, info in ALGORITHMS.items() if task in info.tasks]


def is_backend_installed(algo: str) -> bool:
    """检查算法依赖的可选库是否已安装。"""
    info = ALGORITHMS[algo]
    if info.backend is None:
        return True
    try:
        importlib.import_module(info.backend)
    except ImportError:
        return False
    return True


def get_display_name(algo: str) -> str:
    info = ALGORITHMS.get(algo)
    return info.display_name if info is not None else algo


def get_default_params(algo: str, num_predictors: Optional[int] = None) -> Optional[Dict[str, Any]]:
    """不调参时使用的默认超参数；未知算法返回 None。"""
    mtry = _sqrt_mtry(num_predictors)
    boost = {
        "trees": 100,
        "tree_depth": 3,
        "learn_rate": 0.1,
        "loss_reduction": 0,
        "min_n": 5,
        "sample_size": 1,
        "mtry": mtry,
    }
    table: Dict[str, Dict[str, Any]] = {
        "random_forest": {"mtry": mtry, "trees": 100, "min_n": 5},
        "ranger": {"mtry": mtry, "trees": 100, "min_n": 5},
        "c5.0": {"trees": 50, "min_n": 5, "sample_size": 0.5},
        "xgboost": dict(boost),
        "lightgbm": dict(boost),
        "catboost": {"trees": 100, "tree_depth": 6, "learn_rate": 0.1},
        "logistic_regression": {},
        "penalized_logistic_regression": {"penalty": 0.01, "mixture": 0.5},
        "decision_tree": {"cost_complexity": 0.01, "tree_depth": 5, "min_n": 5},
        "svm_linear": {"cost": 1},
        "svm_radial": {"cost": 1, "rbf_sigma": 0.1},
        "knn": {"neighbors": 5, "weight_func": "rectangular", "dist_power": 2},
        "naive_bayes": {"smoothness": 1e-9},
        "neural_network": {"hidden_units": 5, "penalty": 0.01, "epochs": 100},
        "deep_learning": {"hidden_units": 10, "penalty": 0.001, "epochs": 50},
        "lda": {},
        "qda": {},
        "bagging": {"cost_complexity": 0.0, "tree_depth": None, "min_n": 5},
        "elastic_net": {"penalty": 0.01, "mixture": 0.5},
        "bayes_glm": {},
        "pls": {"num_comp": 2},
        "linear_regression": {},
        "ridge_regression": {"penalty": 0.01, "mixture": 0},
        "lasso_regression": {"penalty": 0.01, "mixture": 1},
    }
    return table.get(algo)


def get_default_tune_params(algo: str, num_predictors: int) -> Optional[Dict[str, List[Any]]]:
    """默认调参范围。

    对数尺度参数（learn_rate、penalty、cost_complexity、rbf_sigma、cost、smoothness）
    的范围写在变换后的单位上。没有可调参数的算法返回 None。
    """
    p = int(num_predictors)
    forest = {"mtry": [1, _sqrt_mtry(p)], "trees": [100, 200], "min_n": [2, 5]}
    boost = {
        "trees": [50, 150],
        "tree_depth": [1, 5],
        "learn_rate": [-2, -1],
        "loss_reduction": [0, 5],
        "min_n": [2, 5],
        "sample_size": [0.5, 1],
        "mtry": [1, max(1, p)],
    }
    glmnet = {"penalty": [-5, 0], "mixture": [0, 1]}
    table: Dict[str, Optional[Dict[str, List[Any]]]] = {
        "random_forest": dict(forest),
        "ranger": dict(forest),
        "c5.0": {"trees": [1, 50], "min_n": [2, 5]},
        "xgboost": dict(boost),
        "lightgbm": dict(boost),
        "catboost": {"trees": [50, 150], "tree_depth": [2, 6], "learn_rate": [-2, -1]},
        "logistic_regression": dict(glmnet),
        "penalized_logistic_regression": dict(glmnet),
        "decision_tree": {"cost_complexity": [-5, 0], "tree_depth": [1, 5], "min_n": [2, 5]},
        "svm_linear": {"cost": [-3, 3]},
        "svm_radial": {"cost": [-3, 3], "rbf_sigma": [-9, -1]},
        "knn": {"neighbors": [3, 7], "weight_func": ["rectangular", "triangular"], "dist_power": [1, 2]},
        "naive_bayes": {"smoothness": [-12, -6]},
        "neural_network": {"hidden_units": [1, 5], "penalty": [-5, -1], "epochs": [100, 150]},
        "deep_learning": {"hidden_units": [10, 30], "penalty": [-5, -1], "epochs": [50, 100]},
        "lda": None,
        "qda": None,
        "bagging": {"cost_complexity": [-5, 0], "tree_depth": [1, 5], "min_n": [2, 5]},
        "elastic_net": dict(glmnet),
        "bayes_glm": None,
        "pls": {"num_comp": [1, max(1, min(5, p))]},
        "linear_regression": None,
        "ridge_regression": {"penalty": [-5, 0]},
        "lasso_regression": {"penalty": [-5, 0]},
    }
    return table.get(algo)


def define_model_spec(
    algo: str,
    task: str,
    num_predictors: int,
    tune: bool = False,
    random_state: Optional[int] = None,
) -> ModelSpec:
    """构造模型规格。

    - 算法不适用于当前任务时抛出 ValueError；
    - 依赖的可选库缺失时抛出 ImportError；
    - `tune=True` 时开放目录中登记的可调参数，其余参数取默认值。
    """
    if algo not in ALGORITHMS:
        raise KeyError(f"不支持的算法: {algo}")
    if task not in TASKS:
        raise ValueError(f"不支持的任务类型: {task}")
    info = ALGORITHMS[algo]
    if task not in info.tasks:
        raise ValueError(f"{info.display_name} 只适用于 {' / '.join(info.tasks)} 任务")
    if info.backend is not None and not is_backend_installed(algo):
        raise ImportError(f"需要安装 {info.backend} 库以训练 {info.display_name} 模型")

    params = dict(get_default_params(algo, num_predictors) or {})
    tunable = list(info.tunable) if tune else []
    for name in tunable:
        params.pop(name, None)

    return ModelSpec(
        algorithm=algo,
        task=task,
        engine=info.engine,
        params=params,
        tunable=tunable,
        num_predictors=int(num_predictors),
        factory=info.factory,
        random_state=random_state,
    )
