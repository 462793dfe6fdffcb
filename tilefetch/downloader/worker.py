# tilefetch/downloader/worker.py

import threading
from contextlib import closing
from queue import Queue
from typing import Callable, Optional

from loguru import logger

from ..errors import PathError
from ..models import JobDescriptor, JobReport, JobStatus
from ..store import TileStore

# 发给 worker 的停止信号
STOP = None


class TileWorker(threading.Thread):
    """
    工作线程：从自己的任务队列取出 JobDescriptor，一次处理一个，
    结果通过共享的报告队列交回 dispatcher

    worker 从不接触坐标迭代器，只处理收到的任务。
    """

    def __init__(
        self,
        worker_id: int,
        reports: Queue,
        fetcher_factory: Callable,
        atomic: bool = False,
    ):
        super().__init__(name=f"Downloader-{worker_id}", daemon=True)
        self.worker_id = worker_id
        self.reports = reports
        self.fetcher_factory = fetcher_factory
        self.atomic = atomic
        self.jobs: Queue = Queue(maxsize=1)
        self.processed = 0
        self.crashed = False
        self._fetcher = None

    def send(self, job: Optional[JobDescriptor]):
        """
        派发一个任务；传入 STOP 表示没有更多任务
        """
        self.jobs.put(job)

    @property
    def fetcher(self):
        # 只有真正需要下载时才创建会话
        if self._fetcher is None:
            self._fetcher = self.fetcher_factory()
        return self._fetcher

    def run(self):
        logger.debug(f"{self.name} 启动")
        try:
            while True:
                job = self.jobs.get()
                if job is STOP:
                    break

                try:
                    report = self.execute(job)
                except Exception as e:
                    logger.exception(f"{self.name} - 任务处理错误: {job.address}")
                    report = JobReport(self.worker_id, job, JobStatus.FAILED, e)
                except BaseException as e:
                    # 线程即将退出，先交回报告，dispatcher 正在等待
                    logger.error(f"{self.name} 异常退出: {e!r}")
                    self.crashed = True
                    self.reports.put(JobReport(self.worker_id, job, JobStatus.FAILED, e))
                    raise

                self.processed += 1
                self.reports.put(report)
        finally:
            if self._fetcher is not None and hasattr(self._fetcher, "close"):
                self._fetcher.close()
            logger.debug(f"{self.name} 结束 - 处理任务: {self.processed}")

    def execute(self, job: JobDescriptor) -> JobReport:
        """
        执行单个任务：已存在则直接跳过，否则下载并写入

        Args:
            job: 任务描述

        Returns:
            JobReport: 执行结果
        """
        store = TileStore(job.output_root, job.format, atomic=self.atomic)
        address = job.address
        url = job.url

        # 断点续传：文件存在即视为完成，不发起网络请求
        if store.exists(address):
            if job.verbose:
                logger.debug(f" HAS: {url}")
            return JobReport(self.worker_id, job, JobStatus.SKIPPED)

        try:
            store.ensure_directories(address)
        except PathError as e:
            return JobReport(self.worker_id, job, JobStatus.FATAL, e)

        if job.verbose:
            logger.debug(f" GET: {url}")
        try:
            with store.open_for_write(address) as f:
                with closing(self.fetcher.stream(url, job.referrer)) as chunks:
                    for chunk in chunks:
                        f.write(chunk)
        except Exception as e:
            return JobReport(self.worker_id, job, JobStatus.FAILED, e)

        return JobReport(self.worker_id, job, JobStatus.DOWNLOADED)
