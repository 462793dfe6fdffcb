# tilefetch/__init__.py
"""
tilefetch

按经纬度范围和缩放级别批量下载地图瓦片，保存为 {z}/{x}/{y}.{format}，
重复运行时跳过已存在的瓦片。
"""

from .config import DownloadOptions, load_options
from .downloader import JobDispatcher, RunSummary, get_tiles
from .errors import ConfigError, PathError, TileFetchError
from .models import BoundingBox, Coordinate, TileFormat, TileIndexBounds, ZoomRange
from .range_iterator import EXHAUSTED, RangeIterator, count_tiles
from .store import TileStore
from .tile_math import TileMath

__all__ = [
    'DownloadOptions', 'load_options',
    'JobDispatcher', 'RunSummary', 'get_tiles',
    'ConfigError', 'PathError', 'TileFetchError',
    'BoundingBox', 'Coordinate', 'TileFormat', 'TileIndexBounds', 'ZoomRange',
    'EXHAUSTED', 'RangeIterator', 'count_tiles',
    'TileStore', 'TileMath',
]
__version__ = '1.0.0'
