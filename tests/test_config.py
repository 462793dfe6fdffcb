import json
import os

import pytest

from tilefetch.config import DownloadOptions, load_options
from tilefetch.errors import ConfigError
from tilefetch.models import BoundingBox, TileFormat, ZoomRange

from .conftest import NEW_YORK_BBOX, URL_TEMPLATE


def test_defaults(tmp_path):
    options = DownloadOptions(url=URL_TEMPLATE, bbox=NEW_YORK_BBOX, output=tmp_path, zoom={"min": 14, "max": 15})

    assert options.bbox == BoundingBox(40.699251, -74.025793, 40.742120, -73.968458)
    assert options.zoom == ZoomRange(14, 15)
    assert options.format is TileFormat.PNG
    assert options.workers == (os.cpu_count() or 1)
    assert options.referrer is None
    assert options.verbose is False
    assert options.atomic is False


def test_unknown_format_falls_back_to_png(make_options):
    assert make_options(format="gif").format is TileFormat.PNG
    assert make_options(format="JPEG").format is TileFormat.JPEG


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"url": "http://tiles.test/{z}/{x}.png"}, "{y}"),
        ({"bbox": [40.8, -74.0, 40.7, -73.9]}, "North"),
        ({"bbox": [40.7, -73.9, 40.8, -74.0]}, "East"),
        ({"bbox": [40.7, -74.0, 89.0, -73.9]}, "latitude"),
        ({"bbox": [40.7, -74.0, 40.8]}, "four values"),
        ({"zoom": {"min": 15, "max": 14}}, "Min zoom"),
        ({"zoom": {"min": 14}}, "zoom"),
        ({"workers": 0}, "positive"),
        ({"timeout": -1}, "positive"),
    ],
)
def test_invalid_options(make_options, overrides, message):
    with pytest.raises(ConfigError) as exc:
        make_options(**overrides)

    assert message in str(exc.value)


def test_config_error_is_a_value_error(make_options):
    with pytest.raises(ValueError):
        make_options(workers="many")


def test_from_dict_requires_core_fields():
    with pytest.raises(ConfigError) as exc:
        DownloadOptions.from_dict({"url": URL_TEMPLATE, "zoom": {"min": 1, "max": 2}})

    assert "bbox" in str(exc.value)
    assert "output" in str(exc.value)


def test_to_dict_round_trip(make_options):
    options = make_options(format="jpg", referrer="https://example.test", atomic=True)

    restored = DownloadOptions.from_dict(options.to_dict())

    assert restored.to_dict() == options.to_dict()


def test_load_options_with_overrides(tmp_path):
    config = tmp_path / "job.json"
    config.write_text(json.dumps({
        "url": URL_TEMPLATE,
        "bbox": NEW_YORK_BBOX,
        "output": str(tmp_path / "tiles"),
        "zoom": {"min": 14, "max": 15},
        "format": "jpg",
        "workers": 2,
    }), encoding="utf-8")

    options = load_options(config, workers=6, referrer=None)

    assert options.workers == 6
    assert options.format is TileFormat.JPG
    assert options.zoom == ZoomRange(14, 15)


def test_load_options_rejects_bad_json(tmp_path):
    config = tmp_path / "broken.json"
    config.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_options(config)
