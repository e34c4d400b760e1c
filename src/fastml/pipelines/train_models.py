"""配置驱动的模型训练流水线。

主要职责：
1. 读取 YAML 配置与建模数据；
2. 调用 `fastml` 训练、调参并在测试集上评估所有模型；
3. 将模型、指标、调参历史、汇总文字与图表写入 `outputs/`。

建议先浏览 `run_pipeline` 的执行顺序，再回头查看辅助函数。
"""
from __future__ import annotations

import argparse
import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

import joblib
import pandas as pd

from ..evaluation.summary import format_summary, performance_table, summary
from ..utils.config import load_yaml, require_keys
from ..utils.data_io import load_table
from ..utils.logger import get_logger, setup_logger
from .fastml import FastMLModel, fastml

PROJECT_ROOT = Path(__file__).resolve().parents[3]
OUTPUT_KEYS = ("models_dir", "artifacts_dir", "figures_dir", "tables_dir", "logs_dir")


def _resolve_path(path_str: str) -> Path:
    """将配置中的相对路径转换为绝对路径。"""
    path = Path(path_str).expanduser()
    if not path.is_absolute():
        path = (PROJECT_ROOT / path).resolve()
    return path


def parse_args() -> argparse.Namespace:
    """命令行参数解析，便于单独运行本脚本。"""
    parser = argparse.ArgumentParser(description="Train and compare fastml models")
    parser.add_argument(
        "--config",
        type=str,
        default=str(PROJECT_ROOT / "configs" / "fastml.yaml"),
        help="模型训练配置文件路径",
    )
    return parser.parse_args()


def _run_identifier(cfg: Dict[str, Any], config_path: Path) -> str:
    run_label_raw = cfg.get("experiment_label") or cfg.get("run_label") or config_path.stem
    run_label = re.sub(r"[^0-9A-Za-z_-]+", "_", str(run_label_raw).strip()) or "run"
    return f"{run_label}_{datetime.now().strftime('%Y%m%d_%H%M%S')}"


def _save_artifacts(result: FastMLModel, cfg: Dict[str, Any], run_identifier: str, logger) -> None:
    """保存模型、调参历史、指标表与运行元数据。"""
    output_cfg = cfg["output"]
    models_dir = _resolve_path(output_cfg["models_dir"])
    artifacts_dir = _resolve_path(output_cfg["artifacts_dir"])
    tables_dir = _resolve_path(output_cfg["tables_dir"])
    for directory in (models_dir, artifacts_dir, tables_dir):
        directory.mkdir(parents=True, exist_ok=True)

    for name, model_result in result.models.items():
        model_path = models_dir / f"{name}_{run_identifier}.joblib"
        joblib.dump(model_result.estimator, model_path)
        logger.info("模型已保存：{}", model_path)
        if model_result.history:
            pd.DataFrame(model_result.history).to_csv(
                artifacts_dir / f"{name}_tuning_history.csv",
                index=False,
                encoding="utf-8-sig",
            )
        result.predictions[name].to_csv(
            artifacts_dir / f"test_predictions_{name}.csv",
            index=False,
            encoding="utf-8-sig",
        )

    result.save(models_dir / f"fastml_{run_identifier}.joblib")

    result.performance.to_csv(tables_dir / "model_metrics_long.csv", index=False, encoding="utf-8-sig")
    wide, _, _ = performance_table(result)
    wide.to_csv(tables_dir / "model_metrics.csv", index=False, encoding="utf-8-sig")
    wide.to_json(tables_dir / "model_metrics.json", orient="records", force_ascii=False)
    logger.info("模型评估指标已写入 {}", tables_dir / "model_metrics.csv")

    metadata = {
        "run_identifier": run_identifier,
        "task": result.task,
        "metric": result.metric,
        "best_model": result.best_model_name,
        "best_params": result.best_model.best_params,
        "models": {
            name: {"tuned": r.tuned, "cv_score": r.validation_score, "params": r.best_params}
            for name, r in result.models.items()
        },
        "settings": result.settings,
        "config": cfg,
    }
    with (artifacts_dir / f"summary_{run_identifier}.json").open("w", encoding="utf-8") as f:
        json.dump(metadata, f, ensure_ascii=False, indent=2, default=str)


def run_pipeline(config_path: Path, plot: bool = True) -> FastMLModel:
    """主入口：按配置执行模型训练与评估。

    执行顺序概览：
    1. 解析配置与输出目录，初始化日志；
    2. 读取建模数据，去掉配置中声明的无关列；
    3. 调用 `fastml` 完成划分、训练、调参与评估；
    4. 保存模型与指标表，打印汇总并输出图表。
    """
    cfg = load_yaml(config_path)
    require_keys(cfg, ["data", "output"])
    require_keys(cfg["data"], ["path", "label_column"], section="data")
    require_keys(cfg["output"], OUTPUT_KEYS, section="output")

    logs_dir = _resolve_path(cfg["output"]["logs_dir"])
    setup_logger(logs_dir, name="fastml")
    logger = get_logger()

    run_identifier = _run_identifier(cfg, config_path)
    logger.info("本次训练运行标识：{}", run_identifier)

    data_cfg = cfg["data"]
    label_col = data_cfg["label_column"]
    df = load_table(_resolve_path(data_cfg["path"]))
    drop_columns = [col for col in data_cfg.get("drop_columns", []) or [] if col in df.columns]
    if drop_columns:
        df = df.drop(columns=drop_columns)
    logger.info("数据加载完成：rows={}, columns={}", len(df), df.shape[1])

    resampling_cfg = cfg.get("resampling", {})
    tuning_cfg = cfg.get("tuning", {})
    preprocessing_cfg = cfg.get("preprocessing", {})
    evaluation_cfg = cfg.get("evaluation", {})

    result = fastml(
        df,
        label_col,
        algorithms=cfg.get("algorithms", "all"),
        task=cfg.get("task", "auto"),
        test_size=float(cfg.get("test_size", 0.2)),
        resampling_method=resampling_cfg.get("method", "cv"),
        folds=int(resampling_cfg.get("folds", 10)),
        repeats=int(resampling_cfg.get("repeats", 1)),
        tune_params=tuning_cfg.get("params"),
        metric=cfg.get("metric"),
        stratify=bool(cfg.get("stratify", True)),
        impute_method=preprocessing_cfg.get("impute_method"),
        encode_categoricals=bool(preprocessing_cfg.get("encode_categoricals", True)),
        scaling=bool(preprocessing_cfg.get("scaling", True)),
        use_default_tuning=bool(tuning_cfg.get("use_default_tuning", False)),
        positive_class=cfg.get("positive_class"),
        seed=int(cfg.get("seed", 123)),
        n_jobs=int(cfg.get("n_jobs", 1)),
    )

    _save_artifacts(result, cfg, run_identifier, logger)

    notes = evaluation_cfg.get("notes", "") or ""
    tables_dir = _resolve_path(cfg["output"]["tables_dir"])
    (tables_dir / f"summary_{run_identifier}.txt").write_text(format_summary(result, notes=notes), encoding="utf-8")

    figures_dir = _resolve_path(cfg["output"]["figures_dir"]) / run_identifier
    summary(
        result,
        plot=plot and bool(evaluation_cfg.get("plot", True)),
        combined_roc=bool(evaluation_cfg.get("combined_roc", True)),
        notes=notes,
        output_dir=figures_dir,
    )
    logger.info("模型训练流程结束，最佳模型：{}", result.best_model_name)
    return result


if __name__ == "__main__":
    args = parse_args()
    run_pipeline(Path(args.config))
