# tilefetch/downloader/__init__.py

from .batch import get_tiles
from .dispatcher import DispatcherState, JobDispatcher, RunSummary
from .fetcher import HttpFetcher
from .worker import TileWorker

__all__ = ['get_tiles', 'DispatcherState', 'JobDispatcher', 'RunSummary', 'HttpFetcher', 'TileWorker']
