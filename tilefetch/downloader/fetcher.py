# tilefetch/downloader/fetcher.py

from typing import Iterator, Optional

import requests
from loguru import logger

DEFAULT_USER_AGENT = "tilefetch/1.0 (+https://pypi.org/project/tilefetch/)"
CHUNK_SIZE = 8192


class HttpFetcher:
    """
    基于 requests 的瓦片获取器，每个 worker 线程各持有一个实例

    不做重试：请求失败直接抛出 requests.RequestException，由 worker 上报。
    """

    def __init__(self, timeout: Optional[float] = 30, user_agent: Optional[str] = None):
        self.timeout = timeout
        self.session = self._create_request_session(user_agent or DEFAULT_USER_AGENT)

    @staticmethod
    def _create_request_session(user_agent: str) -> requests.Session:
        """
        创建并配置请求会话
        """
        session = requests.Session()

        session.headers.update({
            "User-Agent": user_agent,
            "Accept": "image/*",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
        })

        # 单个 worker 同一时间只有一个请求
        adapter = requests.adapters.HTTPAdapter(
            pool_connections=1,
            pool_maxsize=1,
            max_retries=0,
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        logger.debug("创建新的请求会话")
        return session

    def stream(self, url: str, referrer: Optional[str] = None) -> Iterator[bytes]:
        """
        请求瓦片并以分块方式返回响应内容

        Args:
            url: 完整的瓦片 URL
            referrer: 可选的 Referer 请求头

        Yields:
            bytes: 响应数据块
        """
        headers = {"Referer": referrer} if referrer else None
        with self.session.get(url, headers=headers, stream=True, timeout=self.timeout) as response:
            response.raise_for_status()
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    yield chunk

    def close(self):
        self.session.close()
