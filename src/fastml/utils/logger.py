"""项目统一日志配置。

所有模块都通过 `loguru` 输出日志：训练进度用 info，跳过/失败的算法用 warning/error。
库函数本身不会调用 `setup_logger`，只有流水线入口和命令行才负责初始化输出位置。
"""
from pathlib import Path
from typing import Optional

from loguru import logger


def setup_logger(log_dir: Optional[Path] = None, name: str = "fastml", level: str = "INFO") -> None:
    """初始化 loguru 日志设置。

    Args:
        log_dir: 日志输出目录，为 None 时只输出到终端。
        name: 日志文件名前缀。
        level: 文件日志的最低级别。
    """
    logger.remove()
    logger.add(lambda msg: print(msg, end=""), level=level)
    if log_dir is None:
        return
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"{name}.log"
    logger.add(
        log_file,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}",
        level=level,
        rotation="10 MB",
        retention="30 days",
        enqueue=True,
    )


def get_logger():
    """返回全局 logger 实例，供其他模块直接使用。"""
    return logger
