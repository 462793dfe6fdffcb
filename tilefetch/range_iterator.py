# tilefetch/range_iterator.py

from typing import Iterator, Optional, Union

from .models import BoundingBox, Coordinate, TileIndexBounds, ZoomRange
from .tile_math import TileMath


class _Exhausted:
    """
    迭代结束标记
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "EXHAUSTED"


EXHAUSTED = _Exhausted()


def count_tiles(bbox: BoundingBox, zoom_range: ZoomRange) -> int:
    """
    计算范围内瓦片总数：Σ (east-west+1) * (south-north+1)

    Args:
        bbox: 经纬度范围
        zoom_range: 缩放级别范围

    Returns:
        int: 瓦片总数
    """
    return sum(TileMath.bbox_to_bounds(bbox, z).count for z in zoom_range.levels())


class RangeIterator:
    """
    按 z -> x -> y 顺序枚举瓦片坐标

    y 变化最快；y 超过 south 时 x 加一并回到 north；x 超过 east 时
    z 加一并重新计算该级别的瓦片索引矩形；z 超过最大级别后一直返回 EXHAUSTED。

    非线程安全，只能由单一调用方（dispatcher）推进。
    """

    def __init__(self, bbox: BoundingBox, zoom_range: ZoomRange):
        self.bbox = bbox
        self.zoom_range = zoom_range
        self._bounds: Optional[TileIndexBounds] = None
        self._cursor: Optional[Coordinate] = None
        self._exhausted = False

    @property
    def bounds(self) -> Optional[TileIndexBounds]:
        return self._bounds

    @property
    def cursor(self) -> Optional[Coordinate]:
        return self._cursor

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def initialize(self) -> Union[Coordinate, "_Exhausted"]:
        """
        重置游标并返回第一个瓦片坐标 (min_zoom, west, north)
        """
        self._exhausted = False
        self._cursor = None
        return self._enter_zoom(self.zoom_range.min)

    def next(self) -> Union[Coordinate, "_Exhausted"]:
        """
        推进游标，返回下一个瓦片坐标；没有更多坐标时返回 EXHAUSTED
        """
        if self._exhausted:
            return EXHAUSTED
        if self._cursor is None:
            return self.initialize()

        z, x, y = self._cursor
        bounds = self._bounds

        # 从北向南扫描一列
        if y + 1 <= bounds.south:
            return self._move(z, x, y + 1)

        # 下一列
        if x + 1 <= bounds.east:
            return self._move(z, x + 1, bounds.north)

        # 下一个缩放级别
        return self._enter_zoom(z + 1)

    def _enter_zoom(self, zoom: int) -> Union[Coordinate, "_Exhausted"]:
        while zoom <= self.zoom_range.max:
            self._bounds = TileMath.bbox_to_bounds(self.bbox, zoom)
            if self._bounds.count > 0:
                return self._move(zoom, self._bounds.west, self._bounds.north)
            zoom += 1

        self._exhausted = True
        self._cursor = None
        return EXHAUSTED

    def _move(self, z: int, x: int, y: int) -> Coordinate:
        self._cursor = Coordinate(z, x, y)
        return self._cursor

    def __iter__(self) -> Iterator[Coordinate]:
        address = self.initialize()
        while address is not EXHAUSTED:
            yield address
            address = self.next()

    def __len__(self) -> int:
        return count_tiles(self.bbox, self.zoom_range)
