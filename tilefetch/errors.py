# tilefetch/errors.py

from pathlib import Path
from typing import Union


class TileFetchError(Exception):
    """
    所有 tilefetch 异常的基类
    """


class PathError(TileFetchError):
    """
    目录创建失败（致命错误），会中止整个下载任务
    """

    def __init__(self, path: Union[str, Path], cause: Exception = None):
        self.path = Path(path)
        self.cause = cause
        message = f'Failed to create "{self.path}"'
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ConfigError(TileFetchError, ValueError):
    """
    下载参数无效
    """
