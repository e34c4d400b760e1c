"""配置文件读取与校验工具。

命令行与流水线都通过这里读取 YAML；`require_keys` 在训练开始前检查必填字段，
避免跑到一半才因为配置缺项而报错。
"""
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Union

import yaml


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """读取 YAML 配置文件并返回字典，空文件返回空字典。"""
    with Path(path).open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def require_keys(cfg: Mapping[str, Any], keys: Iterable[str], section: str = "") -> None:
    """检查配置中必填字段是否齐全，缺失时抛出 ValueError。"""
    missing = [key for key in keys if cfg.get(key) in (None, "")]
    if missing:
        prefix = f"{section}." if section else ""
        raise ValueError(f"配置缺失字段：{', '.join(prefix + key for key in missing)}")
