# tilefetch/log.py

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <7}</level> | {message}"


def setup_logging(verbose: bool = False, log_file: Optional[Union[str, Path]] = None):
    """
    配置 loguru 输出

    verbose 时在终端输出逐瓦片日志 (HAS/GET/失败)，否则只输出警告和错误。

    Args:
        verbose: 是否输出详细日志
        log_file: 可选的日志文件，按 10 MB 轮转
    """
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING", format=LOG_FORMAT)
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(str(log_file), level="DEBUG", rotation="10 MB", encoding="utf-8")
