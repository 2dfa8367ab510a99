"""Read-only analytics over stored change records."""

from .authors import AuthorActivityAnalyzer
from .coupling import TemporalCouplingAnalyzer, parse_file_types
from .hotspots import HotspotAnalyzer
from .models import (
    AuthorActivity,
    AuthorContribution,
    AuthorShare,
    BusFactorEntry,
    BusFactorReport,
    BusFactorSummary,
    FileOwnership,
    ProjectOverview,
    RiskSnapshot,
)
from .overview import OverviewAnalyzer
from .ownership import OwnershipAnalyzer

__all__ = [
    "HotspotAnalyzer",
    "TemporalCouplingAnalyzer",
    "OwnershipAnalyzer",
    "AuthorActivityAnalyzer",
    "OverviewAnalyzer",
    "parse_file_types",
    "AuthorActivity",
    "AuthorContribution",
    "AuthorShare",
    "BusFactorEntry",
    "BusFactorReport",
    "BusFactorSummary",
    "FileOwnership",
    "ProjectOverview",
    "RiskSnapshot",
]
