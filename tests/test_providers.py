import pytest

from tilefetch.models import TileFormat
from tilefetch.providers import ProviderManager, TileProvider


def test_default_providers_registered():
    assert {"osm", "arcgis-imagery"} <= set(ProviderManager.list_providers())


def test_osm_url_and_format():
    osm = ProviderManager.get_provider("OSM")

    assert osm.tile_format is TileFormat.PNG
    assert osm.get_tile_url(4824, 6159, 14) == "https://tile.openstreetmap.org/14/4824/6159.png"


def test_arcgis_uses_y_before_x():
    arcgis = ProviderManager.get_provider("arcgis-imagery")

    assert arcgis.tile_format is TileFormat.JPG
    assert arcgis.get_tile_url(1, 2, 3).endswith("/tile/3/2/1")


def test_extension_extracted_from_template():
    provider = TileProvider("test_jpeg", "https://example.com/{z}/{x}/{y}.jpeg?key=abc")

    assert provider.tile_format is TileFormat.JPEG


def test_unknown_provider():
    with pytest.raises(ValueError):
        ProviderManager.get_provider("nope")
