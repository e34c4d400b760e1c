"""超参数集合与调参网格测试。"""
from __future__ import annotations

import pytest

from fastml.models.params import build_grid, extract_parameter_set, finalize, update_params


def test_extract_unknown_parameter() -> None:
    with pytest.raises(KeyError):
        extract_parameter_set(["trees", "not_a_param"])


def test_finalize_resolves_data_dependent_upper_bound() -> None:
    param_set = finalize(extract_parameter_set(["mtry", "trees"]), num_predictors=7)
    by_name = {p.name: p for p in param_set}
    assert by_name["mtry"].range == (1, 7)
    assert by_name["trees"].range == (1, 2000)


def test_update_params_ranges_and_value_sets() -> None:
    """两个元素视为范围，其余视为候选值；分类参数始终是候选值。"""
    param_set = extract_parameter_set(["trees", "neighbors", "weight_func"])
    updated = update_params(
        param_set,
        {
            "trees": [10.0, 20.0],
            "neighbors": [3, 5, 7],
            "weight_func": ["rectangular", "triangular"],
            "not_in_set": [1, 2],
        },
    )
    by_name = {p.name: p for p in updated}
    assert by_name["trees"].range == (10, 20)
    assert isinstance(by_name["trees"].range[0], int)
    assert by_name["neighbors"].values == (3, 5, 7)
    assert by_name["weight_func"].values == ("rectangular", "triangular")
    assert [p.name for p in updated] == ["trees", "neighbors", "weight_func"]


def test_update_params_scalar_becomes_single_value() -> None:
    updated = update_params(extract_parameter_set(["trees"]), {"trees": 50})
    assert updated[0].values == (50,)


def test_regular_grid_without_log_params() -> None:
    param_set = update_params(extract_parameter_set(["trees", "min_n"]), {"trees": [10, 30], "min_n": [2, 4]})
    grid = build_grid(param_set, levels=3)
    assert len(grid) == 9
    assert sorted({c["trees"] for c in grid}) == [10, 20, 30]
    assert all(isinstance(c["min_n"], int) for c in grid)


def test_regular_grid_drops_duplicate_integer_levels() -> None:
    param_set = update_params(extract_parameter_set(["trees"]), {"trees": [1, 2]})
    grid = build_grid(param_set, levels=3)
    assert [c["trees"] for c in grid] == [1, 2]


def test_latin_hypercube_with_log_param() -> None:
    """存在对数尺度参数时使用拉丁超立方采样，取值还原为自然单位。"""
    param_set = update_params(extract_parameter_set(["penalty", "mixture"]), {"penalty": [-5, 0], "mixture": [0, 1]})
    grid = build_grid(param_set, size=10, seed=42)
    assert len(grid) == 10
    for candidate in grid:
        assert 1e-5 <= candidate["penalty"] <= 1.0
        assert 0.0 <= candidate["mixture"] <= 1.0
    assert grid == build_grid(param_set, size=10, seed=42)


def test_latin_hypercube_with_value_set() -> None:
    param_set = update_params(
        extract_parameter_set(["cost", "weight_func"]),
        {"cost": [-3, 3], "weight_func": ["rectangular", "inv"]},
    )
    grid = build_grid(param_set, size=8, seed=0)
    assert {c["weight_func"] for c in grid} <= {"rectangular", "inv"}
    assert all(2 ** -3 <= c["cost"] <= 2 ** 3 for c in grid)


def test_build_grid_edge_cases() -> None:
    assert build_grid([]) is None
    with pytest.raises(ValueError):
        build_grid(extract_parameter_set(["mtry"]))
