# tilefetch/models.py

from enum import Enum
from pathlib import Path
from typing import List, NamedTuple, Optional, Sequence


class Coordinate(NamedTuple):
    """
    单个瓦片地址 (z, x, y)，x/y 取值范围为 [0, 2^z - 1]
    """
    z: int
    x: int
    y: int

    def __str__(self) -> str:
        return f"{self.z}/{self.x}/{self.y}"


class TileIndexBounds(NamedTuple):
    """
    某一缩放级别下覆盖范围的瓦片索引矩形（闭区间）

    north/south 是行号 (y)，east/west 是列号 (x)；行号向南递增，
    所以 north <= south，west <= east。
    """
    north: int
    south: int
    east: int
    west: int

    @property
    def width(self) -> int:
        return max(0, self.east - self.west + 1)

    @property
    def height(self) -> int:
        return max(0, self.south - self.north + 1)

    @property
    def count(self) -> int:
        return self.width * self.height


class ZoomRange(NamedTuple):
    min: int
    max: int

    def levels(self) -> range:
        return range(self.min, self.max + 1)


class BoundingBox(NamedTuple):
    """
    经纬度矩形范围，单位为度
    """
    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_list(cls, values: Sequence[float]) -> "BoundingBox":
        """
        从 [south, west, north, east] 列表构造
        """
        south, west, north, east = (float(v) for v in values)
        return cls(south, west, north, east)

    def to_list(self) -> List[float]:
        return [self.south, self.west, self.north, self.east]


class TileFormat(Enum):
    """
    支持的瓦片图片格式
    """
    PNG = "png"
    JPG = "jpg"
    JPEG = "jpeg"

    @classmethod
    def parse(cls, value) -> "TileFormat":
        """
        解析格式字符串，空值或未知格式一律回退为 png

        Args:
            value: 格式字符串或 TileFormat

        Returns:
            TileFormat: 解析后的格式
        """
        if isinstance(value, cls):
            return value
        if not value:
            return cls.PNG
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.PNG

    @classmethod
    def values(cls) -> List[str]:
        return [f.value for f in cls]


def template_to_url(url_template: str, address: Coordinate) -> str:
    """
    将 URL 模板中的 {x}、{y}、{z} 占位符替换为实际坐标

    Args:
        url_template: 瓦片 URL 模板
        address: 瓦片坐标

    Returns:
        str: 可直接请求的 URL
    """
    url = url_template.replace("{x}", str(address.x))
    url = url.replace("{y}", str(address.y))
    url = url.replace("{z}", str(address.z))
    return url


class JobDescriptor(NamedTuple):
    """
    一个下载任务的完整描述，worker 执行时不依赖任何其他任务
    """
    address: Coordinate
    url_template: str
    referrer: Optional[str]
    output_root: Path
    format: TileFormat = TileFormat.PNG
    verbose: bool = False

    @property
    def url(self) -> str:
        return template_to_url(self.url_template, self.address)


class JobStatus(Enum):
    DOWNLOADED = "downloaded"
    SKIPPED = "skipped"  # 已存在，断点续传
    FAILED = "failed"    # 单个瓦片失败，不影响整体
    FATAL = "fatal"      # 目录创建失败，中止任务

    @property
    def is_success(self) -> bool:
        return self in (JobStatus.DOWNLOADED, JobStatus.SKIPPED)


class JobReport(NamedTuple):
    """
    worker -> dispatcher 的完成/错误报告
    """
    worker_id: int
    job: JobDescriptor
    status: JobStatus
    error: Optional[BaseException] = None
