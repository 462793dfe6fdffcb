# tilefetch/config.py

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

from loguru import logger

from .errors import ConfigError
from .models import BoundingBox, TileFormat, ZoomRange
from .tile_math import MAX_LATITUDE

MAX_ZOOM = 30
DEFAULT_TIMEOUT = 30.0
PLACEHOLDERS = ("{x}", "{y}", "{z}")


def default_workers() -> int:
    """
    默认 worker 数：主机逻辑核心数
    """
    return os.cpu_count() or 1


class DownloadOptions:
    """
    一次下载任务的输入参数，构造时校验，无效参数抛出 ConfigError
    """

    def __init__(
        self,
        url: str,
        bbox: Union[BoundingBox, Sequence[float]],
        output: Union[str, Path],
        zoom: Union[ZoomRange, Dict[str, int], Sequence[int]],
        format: Union[str, TileFormat, None] = None,
        referrer: Optional[str] = None,
        verbose: bool = False,
        workers: Optional[int] = None,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
        atomic: bool = False,
        user_agent: Optional[str] = None,
    ):
        """
        Args:
            url: 含 {x}、{y}、{z} 占位符的瓦片 URL 模板
            bbox: [south, west, north, east]，单位为度
            output: 输出根目录
            zoom: 缩放级别范围，{"min": .., "max": ..} 或 (min, max)
            format: png / jpg / jpeg，默认 png
            referrer: 可选的 Referer 请求头
            verbose: 是否输出详细日志
            workers: worker 数，默认主机逻辑核心数
            timeout: 单个请求超时（秒），None 表示不限制
            atomic: 是否先写 .part 再重命名
            user_agent: 自定义 User-Agent
        """
        self.url = self._parse_url(url)
        self.bbox = self.parse_bbox(bbox)
        self.output = Path(output)
        self.zoom = self.parse_zoom(zoom)
        self.format = self._parse_format(format)
        self.referrer = referrer or None
        self.verbose = bool(verbose)
        self.workers = self._parse_workers(workers)
        self.timeout = self._parse_timeout(timeout)
        self.atomic = bool(atomic)
        self.user_agent = user_agent or None

    @staticmethod
    def _parse_url(url: str) -> str:
        if not url or not isinstance(url, str):
            raise ConfigError("url is required")
        missing = [p for p in PLACEHOLDERS if p not in url]
        if missing:
            raise ConfigError(f"url template is missing placeholders: {', '.join(missing)}")
        return url

    @staticmethod
    def parse_bbox(bbox) -> BoundingBox:
        if not isinstance(bbox, BoundingBox):
            try:
                values = list(bbox)
            except TypeError as e:
                raise ConfigError(f"Invalid bbox: {bbox!r}") from e
            if len(values) != 4:
                raise ConfigError("bbox must have four values: south, west, north, east")
            try:
                bbox = BoundingBox.from_list(values)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid bbox: {bbox!r}") from e

        for lat in (bbox.south, bbox.north):
            if not -MAX_LATITUDE <= lat <= MAX_LATITUDE:
                raise ConfigError(
                    f"latitude {lat} is outside the Web Mercator range ±{MAX_LATITUDE}"
                )
        for lng in (bbox.west, bbox.east):
            if not -180.0 <= lng <= 180.0:
                raise ConfigError(f"longitude {lng} is outside [-180, 180]")
        if bbox.south > bbox.north:
            raise ConfigError("North must be greater than or equal to south")
        if bbox.west > bbox.east:
            raise ConfigError("East must be greater than or equal to west")
        return bbox

    @staticmethod
    def parse_zoom(zoom) -> ZoomRange:
        try:
            if isinstance(zoom, dict):
                zoom = ZoomRange(int(zoom["min"]), int(zoom["max"]))
            elif not isinstance(zoom, ZoomRange):
                low, high = zoom
                zoom = ZoomRange(int(low), int(high))
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Invalid zoom range: {zoom!r}") from e

        if zoom.min < 0 or zoom.max > MAX_ZOOM:
            raise ConfigError(f"Zoom levels must be within [0, {MAX_ZOOM}]")
        if zoom.min > zoom.max:
            raise ConfigError("Min zoom must be less than or equal to max zoom")
        return zoom

    @staticmethod
    def _parse_format(value) -> TileFormat:
        tile_format = TileFormat.parse(value)
        if value and not isinstance(value, TileFormat) and tile_format.value != str(value).strip().lower():
            logger.warning(f"未知瓦片格式 {value!r}，使用 {tile_format.value}")
        return tile_format

    @staticmethod
    def _parse_workers(workers) -> int:
        if workers is None:
            return default_workers()
        try:
            workers = int(workers)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid worker count: {workers!r}") from e
        if workers < 1:
            raise ConfigError("Worker count must be a positive integer")
        return workers

    @staticmethod
    def _parse_timeout(timeout) -> Optional[float]:
        if timeout is None:
            return None
        try:
            timeout = float(timeout)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid timeout: {timeout!r}") from e
        if timeout <= 0:
            raise ConfigError("Timeout must be positive")
        return timeout

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DownloadOptions":
        """
        从字典构造，忽略未知字段
        """
        known = {
            "url", "bbox", "output", "zoom", "format", "referrer",
            "verbose", "workers", "timeout", "atomic", "user_agent",
        }
        missing = [k for k in ("url", "bbox", "output", "zoom") if data.get(k) is None]
        if missing:
            raise ConfigError(f"Missing required field: {', '.join(missing)}")
        unknown = set(data) - known
        if unknown:
            logger.warning(f"忽略未知配置项: {', '.join(sorted(unknown))}")
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "bbox": self.bbox.to_list(),
            "output": str(self.output),
            "zoom": {"min": self.zoom.min, "max": self.zoom.max},
            "format": self.format.value,
            "referrer": self.referrer,
            "verbose": self.verbose,
            "workers": self.workers,
            "timeout": self.timeout,
            "atomic": self.atomic,
            "user_agent": self.user_agent,
        }

    def __repr__(self) -> str:
        return (
            f"DownloadOptions(url={self.url!r}, bbox={self.bbox.to_list()}, "
            f"output={str(self.output)!r}, zoom={self.zoom.min}-{self.zoom.max}, "
            f"format={self.format.value}, workers={self.workers})"
        )


def read_config(path: Union[str, Path]) -> Dict[str, Any]:
    """
    读取 JSON 配置文件

    Args:
        path: 配置文件路径

    Returns:
        Dict[str, Any]: 配置内容
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    logger.info(f"已加载配置: {path}")
    return data


def load_options(path: Union[str, Path], **overrides) -> DownloadOptions:
    """
    从 JSON 配置文件加载下载参数，overrides 中非 None 的值覆盖文件中的值
    """
    data = read_config(path)
    data.update({k: v for k, v in overrides.items() if v is not None})
    return DownloadOptions.from_dict(data)
