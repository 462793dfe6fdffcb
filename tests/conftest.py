import threading

import pytest
import requests
from loguru import logger

from tilefetch.config import DownloadOptions

URL_TEMPLATE = "http://tiles.test/{z}/{x}/{y}.png"
# [south, west, north, east]
NEW_YORK_BBOX = [40.699251, -74.025793, 40.742120, -73.968458]
# 单列三行
NEW_YORK_COLUMN_BBOX = [40.699251, -74.0, 40.742120, -74.0]


class FakeFetcher:
    """
    记录请求的假获取器，不访问网络
    """

    def __init__(self, payload: bytes = b"\x89PNG fake tile", fail_urls=()):
        self.payload = payload
        self.fail_urls = set(fail_urls)
        self.calls = []
        self.closed = 0
        self._lock = threading.Lock()

    def stream(self, url, referrer=None):
        with self._lock:
            self.calls.append((url, referrer))
        if url in self.fail_urls:
            raise requests.ConnectionError(f"connection refused: {url}")
        # 分两块返回，模拟流式响应
        half = len(self.payload) // 2
        yield self.payload[:half]
        yield self.payload[half:]

    def close(self):
        with self._lock:
            self.closed += 1

    @property
    def urls(self):
        return [url for url, _ in self.calls]


@pytest.fixture(autouse=True)
def reset_logging():
    # cli.main 会替换 loguru 的输出目标
    yield
    logger.remove()


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def make_options(tmp_path):
    def _make(**kwargs):
        params = {
            "url": URL_TEMPLATE,
            "bbox": NEW_YORK_BBOX,
            "output": tmp_path / "tiles",
            "zoom": {"min": 14, "max": 14},
            "workers": 4,
        }
        params.update(kwargs)
        return DownloadOptions(**params)

    return _make
