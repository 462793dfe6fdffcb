# tilefetch/downloader/dispatcher.py

import threading
import time
from enum import Enum
from queue import Queue
from typing import Callable, Dict, List, NamedTuple, Optional, Set

from loguru import logger

from ..config import DownloadOptions
from ..models import JobDescriptor, JobReport, JobStatus
from ..range_iterator import EXHAUSTED, RangeIterator, count_tiles
from ..store import TileStore
from .fetcher import HttpFetcher
from .worker import STOP, TileWorker


class DispatcherState(Enum):
    STARTING = "starting"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class RunSummary(NamedTuple):
    """
    一次运行的统计结果

    completed = downloaded + skipped，包含断点续传跳过的瓦片。
    """
    completed: int
    downloaded: int
    skipped: int
    failed: int
    issued: int
    total: int
    cancelled: bool
    elapsed: float

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.completed - self.failed)

    def as_dict(self) -> Dict[str, int]:
        return {
            "completed": self.completed,
            "downloaded": self.downloaded,
            "skipped": self.skipped,
            "failed": self.failed,
            "total": self.total,
            "remaining": self.remaining,
        }


class JobDispatcher:
    """
    核心调度器：持有坐标迭代器和固定数量的 worker，
    每收到一个 worker 的完成报告就给它派发下一个任务

    迭代器只在调度线程中推进，第 n 次 next() 严格发生在第 n-1 次之后，
    因此不会出现重复或遗漏的坐标，也不需要加锁。

    状态: STARTING -> RUNNING -> DRAINING -> STOPPED
    """

    def __init__(
        self,
        options: DownloadOptions,
        fetcher_factory: Optional[Callable] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ):
        """
        Args:
            options: 下载参数
            fetcher_factory: 创建瓦片获取器的工厂，默认使用 HttpFetcher
            progress_callback: 进度回调 (processed, total)，在调度线程中调用
        """
        self.options = options
        self.store = TileStore(options.output, options.format, atomic=options.atomic)
        self.fetcher_factory = fetcher_factory or self._default_fetcher_factory
        self.progress_callback = progress_callback

        self.state = DispatcherState.STOPPED
        self.cancel_event = threading.Event()
        self.issued_count = 0

        self._iterator: Optional[RangeIterator] = None
        self._workers: List[TileWorker] = []
        self._reports: Queue = Queue()
        self._active: Dict[int, JobDescriptor] = {}
        self._stopped: Set[int] = set()
        self._fatal_error: Optional[BaseException] = None

        self.downloaded_count = 0
        self.skipped_count = 0
        self.failed_count = 0
        self.total_tasks = 0

    def _default_fetcher_factory(self) -> HttpFetcher:
        return HttpFetcher(timeout=self.options.timeout, user_agent=self.options.user_agent)

    @property
    def completed_count(self) -> int:
        return self.downloaded_count + self.skipped_count

    def cancel(self):
        """
        请求取消：不再派发新任务，等待进行中的任务结束后停止
        """
        if not self.cancel_event.is_set():
            logger.info("收到取消请求，停止派发新任务")
        self.cancel_event.set()

    def run(self) -> RunSummary:
        """
        执行整个下载任务

        Returns:
            RunSummary: 统计结果

        Raises:
            PathError: 输出目录或 {z}/{x} 目录创建失败
        """
        start_time = time.time()
        self.state = DispatcherState.STARTING

        # 输出根目录创建失败时直接中止，不启动任何 worker
        try:
            self.store.ensure_root()
        except Exception:
            self.state = DispatcherState.STOPPED
            raise

        self._iterator = RangeIterator(self.options.bbox, self.options.zoom)
        self.total_tasks = count_tiles(self.options.bbox, self.options.zoom)
        logger.info(
            f"开始下载: {self.total_tasks} 个瓦片, zoom={self.options.zoom.min}-{self.options.zoom.max}, "
            f"workers={self.options.workers}, output={self.options.output}"
        )

        try:
            self._start_workers()
            self.state = DispatcherState.RUNNING
            self._dispatch_loop()
        finally:
            self._shutdown()

        summary = self._summary(time.time() - start_time)
        if self._fatal_error is not None:
            logger.error(f"下载中止: {self._fatal_error}")
            raise self._fatal_error

        logger.info(
            f"Downloaded {summary.completed} tiles "
            f"(新下载 {summary.downloaded}, 已存在 {summary.skipped}, 失败 {summary.failed}) "
            f"- 耗时: {summary.elapsed:.2f}秒"
        )
        return summary

    def _start_workers(self):
        self._workers = [
            TileWorker(i, self._reports, self.fetcher_factory, atomic=self.options.atomic)
            for i in range(self.options.workers)
        ]
        for worker in self._workers:
            worker.start()

        # 每个 worker 各推进一次迭代器拿到第一个任务，坐标不够时直接停止多余的 worker
        for index, worker in enumerate(self._workers):
            if self.cancel_event.is_set():
                address = EXHAUSTED
            elif index == 0:
                address = self._iterator.initialize()
            else:
                address = self._iterator.next()
            self._assign(worker, address)

    def _dispatch_loop(self):
        while self._active:
            report: JobReport = self._reports.get()
            self._active.pop(report.worker_id, None)
            self._handle_report(report)

            if self.state is DispatcherState.RUNNING and self.cancel_event.is_set():
                self.state = DispatcherState.DRAINING

            worker = self._workers[report.worker_id]
            # 已退出的 worker 不再派发任务
            if self.state is DispatcherState.RUNNING and not worker.crashed:
                self._assign(worker, self._iterator.next())
            else:
                self._assign(worker, EXHAUSTED)

        self.state = DispatcherState.DRAINING

    def _assign(self, worker: TileWorker, address):
        """
        给 worker 派发坐标对应的任务；没有坐标时发送停止信号
        """
        if address is EXHAUSTED:
            self._stopped.add(worker.worker_id)
            worker.send(STOP)
            return

        job = JobDescriptor(
            address=address,
            url_template=self.options.url,
            referrer=self.options.referrer,
            output_root=self.options.output,
            format=self.options.format,
            verbose=self.options.verbose,
        )
        self._active[worker.worker_id] = job
        self.issued_count += 1
        worker.send(job)

    def _handle_report(self, report: JobReport):
        status = report.status
        if status is JobStatus.DOWNLOADED:
            self.downloaded_count += 1
        elif status is JobStatus.SKIPPED:
            self.skipped_count += 1
        elif status is JobStatus.FAILED:
            self.failed_count += 1
            if self.options.verbose:
                logger.info(f"下载失败: {report.job.url} - {report.error}")
        elif status is JobStatus.FATAL:
            self.failed_count += 1
            if self._fatal_error is None:
                self._fatal_error = report.error
            logger.error(f"目录创建失败，停止派发任务: {report.error}")
            self.state = DispatcherState.DRAINING

        if self.progress_callback:
            processed = self.completed_count + self.failed_count
            self.progress_callback(processed, self.total_tasks)

    def _shutdown(self):
        # 正常结束时所有 worker 都已收到停止信号；异常退出时补发
        self.state = DispatcherState.DRAINING
        for worker in self._workers:
            if worker.worker_id not in self._stopped:
                self._stopped.add(worker.worker_id)
                worker.send(STOP)
        for worker in self._workers:
            worker.join()
        self.state = DispatcherState.STOPPED

    def _summary(self, elapsed: float) -> RunSummary:
        return RunSummary(
            completed=self.completed_count,
            downloaded=self.downloaded_count,
            skipped=self.skipped_count,
            failed=self.failed_count,
            issued=self.issued_count,
            total=self.total_tasks,
            cancelled=self.cancel_event.is_set(),
            elapsed=elapsed,
        )
