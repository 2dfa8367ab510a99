"""Result records for ownership, bus factor, author activity and overview."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


class _Serializable:
    def to_dict(self) -> dict:
        return _jsonable(asdict(self))  # type: ignore[call-overload]


@dataclass
class AuthorContribution(_Serializable):
    author: str
    commits: int
    lines_changed: int
    percentage: float  # share of the file's lines changed
    last_modified: Optional[datetime] = None


@dataclass
class FileOwnership(_Serializable):
    file_path: str
    primary_owner: str
    ownership_percentage: float
    total_contributors: int
    risk_level: str  # critical | high | medium | low
    contributors: list[AuthorContribution] = field(default_factory=list)


@dataclass
class AuthorShare(_Serializable):
    author: str
    commits: int
    ownership_percent: float  # share of the file's commits


@dataclass
class BusFactorEntry(_Serializable):
    file_path: str
    bus_factor: int
    risk_level: str  # high | medium | low
    total_commits: int
    top_authors: list[AuthorShare] = field(default_factory=list)  # at most five
    ownership_distribution: list[AuthorShare] = field(default_factory=list)
    last_modified: Optional[datetime] = None


@dataclass
class BusFactorSummary(_Serializable):
    total_files: int = 0
    high_risk_files: int = 0
    medium_risk_files: int = 0
    low_risk_files: int = 0
    distribution: dict[int, int] = field(default_factory=dict)  # bus factor -> files
    average_bus_factor: float = 0.0


@dataclass
class BusFactorReport(_Serializable):
    project_id: int
    files: list[BusFactorEntry]
    summary: BusFactorSummary
    path_prefix: Optional[str] = None
    risk_level: Optional[str] = None


@dataclass
class AuthorActivity(_Serializable):
    author: str
    files_touched: int
    total_commits: int
    lines_added: int
    lines_deleted: int
    last_activity: Optional[datetime]
    risk_score: float
    hotspots: int


@dataclass
class RiskSnapshot(_Serializable):
    file_path: str
    changes: int
    total_lines: int
    level: str  # High | Medium | Low


@dataclass
class ProjectOverview(_Serializable):
    project_id: int
    name: str
    total_files: int
    total_commits: int
    net_lines: int
    contributors: int
    risk_snapshots: list[RiskSnapshot] = field(default_factory=list)
    total_hotspots: int = 0  # snapshots at level High
    high_coupling_risks: int = 0  # snapshots with more than 15 changes
