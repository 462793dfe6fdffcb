# tilefetch/providers.py

import re
from typing import Dict, List, Optional

from .models import Coordinate, TileFormat, template_to_url


class TileProvider:
    """
    瓦片源：URL 模板加上默认的格式与 Referer
    """

    def __init__(
        self,
        name: str,
        url_template: str,
        tile_format: Optional[str] = None,
        referrer: Optional[str] = None,
        attribution: str = "",
    ):
        """
        初始化瓦片提供商

        Args:
            name: 提供商名称
            url_template: URL模板，包含 {x}、{y}、{z}
            tile_format: 瓦片格式，缺省时从URL模板提取
            referrer: 默认 Referer
            attribution: 版权信息
        """
        self.name = name
        self.url_template = url_template
        self.referrer = referrer
        self.attribution = attribution
        self.tile_format = TileFormat.parse(tile_format or self._extract_extension(url_template))

    def get_tile_url(self, x: int, y: int, zoom: int) -> str:
        return template_to_url(self.url_template, Coordinate(zoom, x, y))

    @staticmethod
    def _extract_extension(url_template: str) -> Optional[str]:
        """
        从URL模板中提取瓦片文件扩展名
        """
        match = re.search(r'\.([a-zA-Z0-9]+)(?:\?|$)', url_template)
        if match:
            return match.group(1).lower()
        return None


class ProviderManager:
    """
    简单的 provider 注册 / 获取
    """

    _providers: Dict[str, TileProvider] = {}

    @classmethod
    def register_provider(cls, provider: TileProvider):
        cls._providers[provider.name.lower()] = provider

    @classmethod
    def get_provider(cls, name: str) -> TileProvider:
        """
        获取瓦片提供商

        Raises:
            ValueError: 未知的瓦片提供商
        """
        p = cls._providers.get(name.lower())
        if not p:
            raise ValueError(f"Unknown tile provider: {name}")
        return p

    @classmethod
    def list_providers(cls) -> List[str]:
        return list(cls._providers.keys())


# 注册默认 provider
ProviderManager.register_provider(TileProvider(
    name="osm",
    url_template="https://tile.openstreetmap.org/{z}/{x}/{y}.png",
    attribution="© OpenStreetMap contributors",
))
ProviderManager.register_provider(TileProvider(
    name="arcgis-imagery",
    url_template="https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}",
    tile_format="jpg",
    attribution="Esri, Maxar, Earthstar Geographics",
))
