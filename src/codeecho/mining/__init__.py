"""Ingestion: job admission, the repository miner and the service wrapping them."""

from .miner import RepositoryMiner
from .registry import AnalysisJobRegistry, JobTicket
from .service import AnalysisService, JobAcceptance

__all__ = [
    "RepositoryMiner",
    "AnalysisJobRegistry",
    "JobTicket",
    "AnalysisService",
    "JobAcceptance",
]
