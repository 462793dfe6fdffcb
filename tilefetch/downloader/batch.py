# tilefetch/downloader/batch.py

from typing import Callable, Optional

from ..config import DownloadOptions
from .dispatcher import JobDispatcher, RunSummary


def get_tiles(
    options: DownloadOptions,
    fetcher_factory: Optional[Callable] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> RunSummary:
    """
    下载范围内的所有瓦片

    Args:
        options: 下载参数
        fetcher_factory: 创建瓦片获取器的工厂，默认使用 HttpFetcher
        progress_callback: 进度回调 (processed, total)

    Returns:
        RunSummary: 统计结果

    Raises:
        PathError: 输出目录创建失败
    """
    dispatcher = JobDispatcher(
        options,
        fetcher_factory=fetcher_factory,
        progress_callback=progress_callback,
    )
    return dispatcher.run()
