from queue import Queue

from loguru import logger

from tilefetch.downloader.worker import STOP, TileWorker
from tilefetch.models import Coordinate, JobDescriptor, JobStatus, TileFormat

from .conftest import URL_TEMPLATE, FakeFetcher


def make_job(tmp_path, address=Coordinate(14, 4824, 6159), referrer=None):
    return JobDescriptor(
        address=address,
        url_template=URL_TEMPLATE,
        referrer=referrer,
        output_root=tmp_path,
        format=TileFormat.PNG,
    )


def test_job_url_substitutes_placeholders(tmp_path):
    job = make_job(tmp_path)

    assert job.url == "http://tiles.test/14/4824/6159.png"


def test_execute_downloads_and_writes(tmp_path):
    fetcher = FakeFetcher(payload=b"0123456789")
    worker = TileWorker(0, Queue(), lambda: fetcher)

    report = worker.execute(make_job(tmp_path, referrer="https://example.test/map"))

    assert report.status is JobStatus.DOWNLOADED
    assert report.error is None
    assert (tmp_path / "14" / "4824" / "6159.png").read_bytes() == b"0123456789"
    assert fetcher.calls == [("http://tiles.test/14/4824/6159.png", "https://example.test/map")]


def test_execute_skips_existing_tile_without_fetching(tmp_path):
    created = []
    worker = TileWorker(0, Queue(), lambda: created.append(1))
    tile = tmp_path / "14" / "4824" / "6159.png"
    tile.parent.mkdir(parents=True)
    tile.write_bytes(b"cached")

    report = worker.execute(make_job(tmp_path))

    assert report.status is JobStatus.SKIPPED
    # 连会话都不会创建
    assert created == []
    assert tile.read_bytes() == b"cached"


def test_execute_reports_failure_and_leaves_tile_absent(tmp_path):
    job = make_job(tmp_path)
    fetcher = FakeFetcher(fail_urls=[job.url])
    worker = TileWorker(0, Queue(), lambda: fetcher)

    report = worker.execute(job)

    assert report.status is JobStatus.FAILED
    assert "connection refused" in str(report.error)
    assert not (tmp_path / "14" / "4824" / "6159.png").exists()


def test_execute_reports_fatal_path_error(tmp_path):
    (tmp_path / "14").write_bytes(b"")
    worker = TileWorker(0, Queue(), FakeFetcher)

    report = worker.execute(make_job(tmp_path))

    assert report.status is JobStatus.FATAL
    assert report.error.path == tmp_path / "14"


def test_thread_reports_every_job_and_closes_fetcher(tmp_path):
    fetcher = FakeFetcher()
    reports = Queue()
    worker = TileWorker(3, reports, lambda: fetcher)
    worker.start()

    worker.send(make_job(tmp_path, Coordinate(1, 0, 0)))
    first = reports.get(timeout=5)
    worker.send(make_job(tmp_path, Coordinate(1, 0, 1)))
    second = reports.get(timeout=5)
    worker.send(STOP)
    worker.join(timeout=5)

    assert not worker.is_alive()
    assert [first.worker_id, second.worker_id] == [3, 3]
    assert [first.job.address, second.job.address] == [Coordinate(1, 0, 0), Coordinate(1, 0, 1)]
    assert worker.processed == 2
    assert fetcher.closed == 1


def test_fetcher_factory_error_is_reported_as_failure(tmp_path):
    def broken_factory():
        raise RuntimeError("no session")

    reports = Queue()
    worker = TileWorker(0, reports, broken_factory)
    worker.start()
    worker.send(make_job(tmp_path))
    report = reports.get(timeout=5)
    worker.send(STOP)
    worker.join(timeout=5)

    assert report.status is JobStatus.FAILED
    assert "no session" in str(report.error)


def test_thread_reports_job_before_exiting_on_base_exception(tmp_path, monkeypatch):
    def execute(self, job):
        raise SystemExit("interpreter shutting down")

    monkeypatch.setattr(TileWorker, "execute", execute)
    reports = Queue()
    worker = TileWorker(0, reports, FakeFetcher)
    worker.start()
    worker.send(make_job(tmp_path))
    report = reports.get(timeout=5)
    worker.join(timeout=5)

    assert report.status is JobStatus.FAILED
    assert isinstance(report.error, SystemExit)
    assert worker.crashed
    assert not worker.is_alive()


def test_execute_logs_nothing_per_tile_unless_verbose(tmp_path):
    messages = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    worker = TileWorker(0, Queue(), FakeFetcher)
    try:
        worker.execute(make_job(tmp_path, Coordinate(1, 0, 0)))
        worker.execute(make_job(tmp_path, Coordinate(1, 0, 0)))
        worker.execute(make_job(tmp_path, Coordinate(1, 0, 1))._replace(verbose=True))
    finally:
        logger.remove(handler_id)

    assert messages == [" GET: http://tiles.test/1/0/1.png"]
