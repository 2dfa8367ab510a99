"""
CodeEcho - repository mining and change analytics

Walks a repository's commit history once per commit, stores per-file line
deltas, and derives hotspot, temporal-coupling and ownership metrics from
the accumulated change records.
"""

__version__ = "0.1.0"

from .config import CodeEchoConfig, load_config
from .domain import FilePath, GitHash
from .mining import AnalysisJobRegistry, AnalysisService, RepositoryMiner

__all__ = [
    "AnalysisService",  # Main entry point
    "RepositoryMiner",
    "AnalysisJobRegistry",
    "CodeEchoConfig",
    "load_config",
    "GitHash",
    "FilePath",
]
