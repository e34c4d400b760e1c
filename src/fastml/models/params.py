"""超参数集合与调参网格。

每个可调参数用 `ParamDef` 描述：类型、取值范围（或候选值）以及是否在对数尺度上搜索。
调参流程分三步：

1. `extract_parameter_set`：根据模型规格取出可调参数及其默认范围；
2. `finalize` / `update_params`：补全依赖数据的上界（如 `mtry`），再套用用户给定的范围；
3. `build_grid`：存在对数尺度参数时用拉丁超立方采样，否则用规则网格。

注意：对数尺度参数的范围和候选值都写在变换后的单位上，例如 `penalty: [-5, 0]`
表示 1e-5 到 1。
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
from scipy.stats import qmc
from sklearn.model_selection import ParameterGrid

LOG_TRANSFORMS = {"log2", "log10"}


@dataclass(frozen=True)
class ParamDef:
    """单个可调参数的定义。"""

    name: str
    kind: str  # int | float | choice
    range: Optional[tuple] = None
    values: Optional[tuple] = None
    transform: Optional[str] = None
    needs_finalize: bool = False

    @property
    def is_log(self) -> bool:
        return self.transform in LOG_TRANSFORMS

    def to_natural(self, value: Any) -> Any:
        """把变换尺度上的取值还原为模型实际使用的取值。"""
        if self.kind == "choice":
            return value
        value = float(value)
        if self.transform == "log10":
            value = 10.0 ** value
        elif self.transform == "log2":
            value = 2.0 ** value
        if self.kind == "int":
            return int(round(value))
        return value


# 各参数的默认搜索范围（变换后单位）
DEFAULT_PARAM_DEFS: Dict[str, ParamDef] = {
    "mtry": ParamDef("mtry", "int", range=(1, None), needs_finalize=True),
    "trees": ParamDef("trees", "int", range=(1, 2000)),
    "min_n": ParamDef("min_n", "int", range=(2, 40)),
    "tree_depth": ParamDef("tree_depth", "int", range=(1, 15)),
    "learn_rate": ParamDef("learn_rate", "float", range=(-10, -1), transform="log10"),
    "loss_reduction": ParamDef("loss_reduction", "float", range=(0.0, 15.0)),
    "sample_size": ParamDef("sample_size", "float", range=(0.1, 1.0)),
    "penalty": ParamDef("penalty", "float", range=(-10, 0), transform="log10"),
    "mixture": ParamDef("mixture", "float", range=(0.05, 1.0)),
    "cost_complexity": ParamDef("cost_complexity", "float", range=(-10, -1), transform="log10"),
    "cost": ParamDef("cost", "float", range=(-10, 5), transform="log2"),
    "rbf_sigma": ParamDef("rbf_sigma", "float", range=(-10, 0), transform="log10"),
    "neighbors": ParamDef("neighbors", "int", range=(1, 10)),
    "weight_func": ParamDef(
        "weight_func",
        "choice",
        values=("rectangular", "triangular", "epanechnikov", "inv"),
    ),
    "dist_power": ParamDef("dist_power", "float", range=(1.0, 2.0)),
    "smoothness": ParamDef("smoothness", "float", range=(-12, -6), transform="log10"),
    "hidden_units": ParamDef("hidden_units", "int", range=(1, 10)),
    "epochs": ParamDef("epochs", "int", range=(10, 1000)),
    "num_comp": ParamDef("num_comp", "int", range=(1, None), needs_finalize=True),
}


def extract_parameter_set(tunable: Iterable[str]) -> List[ParamDef]:
    """按名字取出可调参数的默认定义。"""
    param_set = []
    for name in tunable:
        if name not in DEFAULT_PARAM_DEFS:
            raise KeyError(f"未定义的可调参数: {name}")
        param_set.append(DEFAULT_PARAM_DEFS[name])
    return param_set


def finalize(param_set: Sequence[ParamDef], num_predictors: int) -> List[ParamDef]:
    """补全依赖数据的参数上界（预测变量个数）。"""
    finalized = []
    for param in param_set:
        if param.needs_finalize and param.range is not None and param.range[1] is None:
            upper = max(int(num_predictors), int(param.range[0]))
            param = replace(param, range=(param.range[0], upper))
        finalized.append(param)
    return finalized


def _cast_values(param: ParamDef, values: Sequence[Any]) -> tuple:
    if param.kind == "int":
        return tuple(int(v) for v in values)
    if param.kind == "float":
        return tuple(float(v) for v in values)
    return tuple(values)


def update_params(param_set: Sequence[ParamDef], new_params: Optional[Dict[str, Any]]) -> List[ParamDef]:
    """把用户给定的范围 / 候选值写入参数集合。

    - 参数集合里没有的名字直接跳过；
    - 两个元素视为范围，其余情况视为候选值集合；
    - 整数参数会先转成 int；分类参数始终视为候选值集合。
    """
    if not new_params:
        return list(param_set)
    by_name = {param.name: param for param in param_set}
    for name, value in new_params.items():
        param = by_name.get(name)
        if param is None:
            continue
        if np.isscalar(value) or isinstance(value, str):
            value = [value]
        value = list(value)
        if len(value) == 2 and param.kind != "choice":
            low, high = _cast_values(param, value)
            by_name[name] = replace(param, range=(low, high), values=None, needs_finalize=False)
        else:
            by_name[name] = replace(param, values=_cast_values(param, value), needs_finalize=False)
    return [by_name[param.name] for param in param_set]


def _regular_levels(param: ParamDef, levels: int) -> list:
    if param.values is not None:
        return [param.to_natural(v) for v in param.values]
    low, high = param.range
    if param.kind == "int":
        raw = np.unique(np.round(np.linspace(low, high, levels)).astype(int))
    else:
        raw = np.linspace(float(low), float(high), levels)
    return [param.to_natural(v) for v in raw]


def _latin_hypercube(param_set: Sequence[ParamDef], size: int, seed: Optional[int]) -> List[Dict[str, Any]]:
    sampler = qmc.LatinHypercube(d=len(param_set), seed=seed)
    unit = sampler.random(n=size)
    candidates = []
    for row in unit:
        candidate = {}
        for u, param in zip(row, param_set):
            if param.values is not None:
                idx = min(int(u * len(param.values)), len(param.values) - 1)
                raw = param.values[idx]
            else:
                low, high = param.range
                raw = float(low) + float(u) * (float(high) - float(low))
            candidate[param.name] = param.to_natural(raw)
        candidates.append(candidate)
    return candidates


def _dedupe(candidates: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    seen = set()
    unique = []
    for candidate in candidates:
        key = tuple(sorted((k, repr(v)) for k, v in candidate.items()))
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique


def build_grid(
    param_set: Sequence[ParamDef],
    size: int = 10,
    levels: int = 3,
    seed: Optional[int] = None,
) -> Optional[List[Dict[str, Any]]]:
    """生成调参候选组合列表（自然单位）。

    只要有一个参数在对数尺度上，就使用拉丁超立方采样 `size` 组；
    否则每个参数取 `levels` 个等距水平，做笛卡尔积。
    """
    if not param_set:
        return None
    unresolved = [p.name for p in param_set if p.values is None and (p.range is None or p.range[1] is None)]
    if unresolved:
        raise ValueError(f"参数范围尚未确定，请先调用 finalize: {unresolved}")

    if any(param.is_log for param in param_set):
        candidates = _latin_hypercube(param_set, size, seed)
    else:
        grid = {param.name: _regular_levels(param, levels) for param in param_set}
        candidates = list(ParameterGrid(grid))
    return _dedupe(candidates)
