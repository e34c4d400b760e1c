"""fastml 命令行入口。

该模块仅负责解析命令行参数并调度训练流水线，逻辑轻量，
适合从这里入手了解项目的执行流程。
"""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Iterable, Optional

from ..models.registry import available_algorithms, get_display_name, is_backend_installed
from ..pipelines.train_models import run_pipeline as run_training_pipeline

PROJECT_ROOT = Path(__file__).resolve().parents[3]


def _parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    """解析命令行参数。

    单独封装后，在单元测试或 Notebook 场景下传入自定义 argv 即可复用。
    """
    parser = argparse.ArgumentParser(description="训练、调参并比较多个机器学习模型")
    parser.add_argument(
        "--config",
        default=str(PROJECT_ROOT / "configs" / "fastml.yaml"),
        help="模型训练配置文件路径",
    )
    parser.add_argument("--no-plot", action="store_true", help="只打印汇总，不生成图表")
    parser.add_argument("--list-algorithms", action="store_true", help="列出支持的算法后退出")
    return parser.parse_args(list(argv) if argv is not None else None)


def _resolve_config(path_str: str) -> Path:
    """支持相对路径、绝对路径以及 ~ 家目录写法。"""
    path = Path(path_str).expanduser()
    if not path.is_absolute():
        path = (PROJECT_ROOT / path).resolve()
    return path


def _print_algorithms() -> None:
    for algo in available_algorithms():
        status = "" if is_backend_installed(algo) else "  (未安装依赖)"
        print(f"{algo:<32}{get_display_name(algo)}{status}")


def main(argv: Optional[Iterable[str]] = None) -> None:
    """命令行入口。

    步骤说明：
    1. 解析参数；
    2. 解析配置文件路径；
    3. 执行训练流水线，并输出简单的提示信息。
    """
    args = _parse_args(argv)
    if args.list_algorithms:
        _print_algorithms()
        return

    config_path = _resolve_config(args.config)
    if not config_path.exists():
        raise SystemExit(f"配置文件不存在：{config_path}")

    print("[fastml.cli] 开始执行模型训练流程")
    run_training_pipeline(config_path, plot=not args.no_plot)
    print("[fastml.cli] 模型训练流程完成")


if __name__ == "__main__":
    main()
