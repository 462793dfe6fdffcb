# tilefetch/tile_math.py
import math

from .models import BoundingBox, TileIndexBounds

# Web Mercator 可表示的纬度上限
MAX_LATITUDE = 85.0511


class TileMath:
    """
    瓦片坐标计算工具类（Web Mercator / XYZ）

    纯函数，不做输入裁剪：纬度接近 ±90° 时结果无意义，
    调用方需保证范围在 ±MAX_LATITUDE 之内。
    """

    @staticmethod
    def lng_to_tile_x(lng: float, zoom: int) -> int:
        """
        经度 -> 瓦片列号 x

        Args:
            lng: 经度
            zoom: 缩放级别

        Returns:
            int: 瓦片列号
        """
        return math.floor((lng + 180.0) / 360.0 * 2 ** zoom)

    @staticmethod
    def lat_to_tile_y(lat: float, zoom: int) -> int:
        """
        纬度 -> 瓦片行号 y（行号向南递增）

        Args:
            lat: 纬度
            zoom: 缩放级别

        Returns:
            int: 瓦片行号
        """
        lat_rad = math.radians(lat)
        log = math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad))
        return math.floor((1.0 - log / math.pi) / 2.0 * 2 ** zoom)

    @staticmethod
    def bbox_to_bounds(bbox: BoundingBox, zoom: int) -> TileIndexBounds:
        """
        计算经纬度范围在指定缩放级别下的瓦片索引矩形

        Args:
            bbox: 经纬度范围
            zoom: 缩放级别

        Returns:
            TileIndexBounds: 瓦片索引矩形（闭区间）
        """
        # 瓦片坐标范围是 0 到 n-1，east=180° 时会落到 n 上
        max_valid_tile = 2 ** zoom - 1

        def clamp(value: int) -> int:
            return max(0, min(max_valid_tile, value))

        return TileIndexBounds(
            north=clamp(TileMath.lat_to_tile_y(bbox.north, zoom)),
            south=clamp(TileMath.lat_to_tile_y(bbox.south, zoom)),
            east=clamp(TileMath.lng_to_tile_x(bbox.east, zoom)),
            west=clamp(TileMath.lng_to_tile_x(bbox.west, zoom)),
        )
