# tilefetch/store.py

import os
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Union

from loguru import logger

from .errors import PathError
from .models import Coordinate, TileFormat

PART_SUFFIX = ".part"


def ensure_directory(directory: Path, parents: bool = False):
    """
    确保目录存在，不存在则创建

    已存在的目录不算错误；其他任何失败（包括路径被普通文件占用）都抛出 PathError。

    Args:
        directory: 目录路径
        parents: 是否同时创建上级目录
    """
    try:
        directory.mkdir(parents=parents, exist_ok=True)
    except OSError as e:
        raise PathError(directory, e) from e


class TileStore:
    """
    瓦片存储：{output_root}/{z}/{x}/{y}.{format}

    文件存在即视为已完成（断点续传依据）。中断时残留的半截文件无法与完整文件区分，
    需要更严格的保证时可以开启 atomic，先写入 .part 再重命名。
    """

    def __init__(
        self,
        output_root: Union[str, Path],
        tile_format: TileFormat = TileFormat.PNG,
        atomic: bool = False,
    ):
        self.output_root = Path(output_root)
        self.tile_format = TileFormat.parse(tile_format)
        self.atomic = atomic

    def resolve_path(self, address: Coordinate) -> Path:
        """
        获取瓦片保存路径

        Args:
            address: 瓦片坐标

        Returns:
            Path: 瓦片保存路径
        """
        z, x, y = address
        return self.output_root / str(z) / str(x) / f"{y}.{self.tile_format.value}"

    def ensure_root(self):
        """
        创建输出根目录
        """
        ensure_directory(self.output_root, parents=True)

    def ensure_directories(self, address: Coordinate) -> Path:
        """
        依次创建 {z} 与 {z}/{x} 两级目录

        Returns:
            Path: {z}/{x} 目录
        """
        z_dir = self.output_root / str(address.z)
        ensure_directory(z_dir)
        x_dir = z_dir / str(address.x)
        ensure_directory(x_dir)
        return x_dir

    def exists(self, address: Coordinate) -> bool:
        return self.resolve_path(address).is_file()

    @contextmanager
    def open_for_write(self, address: Coordinate) -> Iterator[BinaryIO]:
        """
        打开瓦片文件用于写入，任何退出路径上都会关闭文件句柄，
        出错时删除未写完的文件
        """
        path = self.resolve_path(address)
        target = path.with_name(path.name + PART_SUFFIX) if self.atomic else path

        try:
            with open(target, "wb") as f:
                yield f
        except Exception:
            try:
                target.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"删除未完成文件失败: {target} - {e}")
            raise

        if self.atomic:
            os.replace(target, path)
