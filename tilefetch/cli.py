# tilefetch/cli.py
import argparse
import signal
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from .config import DownloadOptions, read_config
from .downloader import JobDispatcher, RunSummary
from .errors import ConfigError, PathError
from .log import setup_logging
from .models import TileFormat
from .providers import ProviderManager
from .tile_math import TileMath

console = Console()

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CANCELLED = 130


def cmd_list_providers(args) -> int:
    table = Table(title="可用瓦片源")
    table.add_column("name", style="cyan")
    table.add_column("format")
    table.add_column("url_template")
    table.add_column("attribution")
    for name in ProviderManager.list_providers():
        p = ProviderManager.get_provider(name)
        table.add_row(name, p.tile_format.value, p.url_template, p.attribution)
    console.print(table)
    return EXIT_OK


def cmd_count(args) -> int:
    try:
        data = _collect_options(args)
        bbox = DownloadOptions.parse_bbox(data.get("bbox"))
        zoom = DownloadOptions.parse_zoom(data.get("zoom"))
    except ConfigError as e:
        console.print(f"[bold red]参数错误:[/bold red] {escape(str(e))}")
        return EXIT_ERROR

    table = Table(title="瓦片范围")
    for column in ("zoom", "north", "south", "west", "east", "tiles"):
        table.add_column(column, justify="right")

    total = 0
    for z in zoom.levels():
        bounds = TileMath.bbox_to_bounds(bbox, z)
        total += bounds.count
        table.add_row(
            str(z), str(bounds.north), str(bounds.south),
            str(bounds.west), str(bounds.east), str(bounds.count),
        )
    console.print(table)
    console.print(f"总计: [bold]{total}[/bold] 个瓦片")
    return EXIT_OK


def cmd_download(args) -> int:
    try:
        options = DownloadOptions.from_dict(_collect_options(args))
    except ConfigError as e:
        console.print(f"[bold red]参数错误:[/bold red] {escape(str(e))}")
        return EXIT_ERROR

    setup_logging(options.verbose, args.log_file)
    console.print(f"[bold blue]下载矩形区域瓦片[/bold blue] {options.output}")

    dispatcher = JobDispatcher(options)
    previous_handlers = _register_signal_handlers(dispatcher)

    progress = Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        disable=options.verbose,
    )
    try:
        with progress:
            task_id = progress.add_task("下载瓦片", total=None)
            dispatcher.progress_callback = (
                lambda processed, total: progress.update(task_id, completed=processed, total=total)
            )
            summary = dispatcher.run()
    except PathError as e:
        console.print(f"[bold red]目录创建失败:[/bold red] {escape(str(e.path))}")
        return EXIT_ERROR
    finally:
        _restore_signal_handlers(previous_handlers)

    print_stats(summary)
    if summary.cancelled:
        console.print("[yellow]下载已取消，重新运行同一命令即可继续[/yellow]")
        return EXIT_CANCELLED
    return EXIT_OK


def print_stats(summary: RunSummary):
    table = Table(title="统计")
    stats = summary.as_dict()
    for k in ["completed", "downloaded", "skipped", "failed", "remaining", "total"]:
        table.add_row(k, str(stats.get(k, 0)))
    table.add_row("elapsed", f"{summary.elapsed:.2f}s")
    console.print(table)


def _register_signal_handlers(dispatcher: JobDispatcher) -> Dict[int, Any]:
    """
    Ctrl+C / SIGTERM 时停止派发新任务，等待进行中的任务结束

    Returns:
        Dict[int, Any]: 原来的信号处理函数，用于恢复
    """
    def signal_handler(sig, frame):
        dispatcher.cancel()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[sig] = signal.signal(sig, signal_handler)
        except (ValueError, OSError) as e:
            # 非主线程或平台不支持
            console.print(f"[yellow]注册信号处理失败: {e}[/yellow]")
    return previous


def _restore_signal_handlers(previous: Dict[int, Any]):
    for sig, handler in previous.items():
        signal.signal(sig, handler)


def _collect_options(args) -> Dict[str, Any]:
    """
    合并配置文件、瓦片源预设和命令行参数，命令行优先
    """
    data: Dict[str, Any] = read_config(args.config) if args.config else {}

    provider_name = getattr(args, "provider", None)
    if provider_name:
        try:
            provider = ProviderManager.get_provider(provider_name)
        except ValueError as e:
            raise ConfigError(str(e)) from e
        data["url"] = provider.url_template
        data.setdefault("format", provider.tile_format.value)
        if provider.referrer:
            data.setdefault("referrer", provider.referrer)

    overrides = {
        "url": getattr(args, "url", None),
        "bbox": args.bbox,
        "output": getattr(args, "output", None),
        "format": getattr(args, "format", None),
        "referrer": getattr(args, "referrer", None),
        "workers": getattr(args, "workers", None),
        "timeout": getattr(args, "timeout", None),
        "user_agent": getattr(args, "user_agent", None),
    }
    data.update({k: v for k, v in overrides.items() if v is not None})

    # 布尔开关只在命令行显式打开时覆盖
    for flag in ("verbose", "atomic"):
        if getattr(args, flag, False):
            data[flag] = True

    if args.min_zoom is not None or args.max_zoom is not None:
        base = data.get("zoom")
        if base is None or isinstance(base, dict):
            zoom = dict(base or {})
        else:
            # 配置文件中的 [min, max] 形式
            parsed = DownloadOptions.parse_zoom(base)
            zoom = {"min": parsed.min, "max": parsed.max}
        if args.min_zoom is not None:
            zoom["min"] = args.min_zoom
        if args.max_zoom is not None:
            zoom["max"] = args.max_zoom
        # 只给了一端时视为单一级别
        zoom.setdefault("min", zoom.get("max"))
        zoom.setdefault("max", zoom.get("min"))
        data["zoom"] = zoom

    return data


def _add_area_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("--config", help="JSON 配置文件，命令行参数优先")
    parser.add_argument(
        "--bbox", type=float, nargs=4, metavar=("SOUTH", "WEST", "NORTH", "EAST"),
        help="经纬度范围: south west north east",
    )
    parser.add_argument("--min-zoom", type=int)
    parser.add_argument("--max-zoom", type=int)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tilefetch", description="地图瓦片批量下载器")
    subparsers = parser.add_subparsers(dest="cmd")

    subparsers.add_parser("providers", help="列出预设瓦片源")

    p_count = subparsers.add_parser("count", help="计算范围内的瓦片数量，不下载")
    _add_area_arguments(p_count)

    p_download = subparsers.add_parser("download", help="下载矩形区域瓦片")
    _add_area_arguments(p_download)
    source = p_download.add_mutually_exclusive_group()
    source.add_argument("--url", help="瓦片 URL 模板，包含 {x} {y} {z}")
    source.add_argument("--provider", help="预设瓦片源 (osm / arcgis-imagery)")
    p_download.add_argument("--output", "-o", help="输出目录")
    p_download.add_argument("--format", choices=TileFormat.values(), help="瓦片格式，默认 png")
    p_download.add_argument("--referrer", help="Referer 请求头")
    p_download.add_argument("--workers", "-w", type=int, help="worker 数，默认 CPU 核心数")
    p_download.add_argument("--timeout", type=float, help="单个请求超时（秒）")
    p_download.add_argument("--user-agent")
    p_download.add_argument("--atomic", action="store_true", help="先写入 .part 文件再重命名")
    p_download.add_argument("--verbose", "-v", action="store_true")
    p_download.add_argument("--log-file", help="日志文件路径")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "providers":
        return cmd_list_providers(args)
    if args.cmd == "count":
        return cmd_count(args)
    if args.cmd == "download":
        return cmd_download(args)

    parser.print_help()
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
