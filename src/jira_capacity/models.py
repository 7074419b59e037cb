"""Data models for JIRA Capacity."""

from dataclasses import dataclass, field
from enum import Enum


def iteration_name(pi: str, number: int) -> str:
    """Canonical iteration name, e.g. ("26_04", 3) -> "26_04_03"."""
    return f"{pi}_{number:02d}"


@dataclass
class SearchResult:
    """Outcome of an issue search. HTTP failures are reported here, not raised."""

    status_code: int | None
    issues: list[dict] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300


@dataclass
class ProbeFailure:
    """A failed probe for a single iteration."""

    iteration: str
    status_code: int | None
    message: str
    not_found: bool  # True when JIRA says the sprint does not exist


@dataclass
class ProbeResult:
    """Iterations discovered for a program increment and their issues."""

    pi: str
    iterations: list[tuple[str, list[dict]]]
    failure: ProbeFailure | None = None
    hit_limit: bool = False

    @property
    def truncated(self) -> bool:
        """True if probing stopped for a reason other than the end of the range."""
        return self.hit_limit or (self.failure is not None and not self.failure.not_found)


@dataclass
class PlannedWork:
    """Remaining estimate seconds per member per iteration."""

    totals: dict[str, dict[str, int]]  # member -> iteration -> seconds
    iterations: list[str]
    members: list[str]


@dataclass
class BaselineCapacity:
    """Declared available seconds per member per iteration, from the spreadsheet."""

    members: list[str]
    capacity: dict[str, dict[str, int]]  # member -> iteration -> seconds
    source: str | None = None

    def get(self, member: str, iteration: str) -> int | None:
        return self.capacity.get(member, {}).get(iteration)


class Band(str, Enum):
    """How planned work compares to available capacity."""

    NORMAL = "normal"
    YELLOW = "yellow"
    RED = "red"


@dataclass
class CapacityCell:
    """Planned vs. available capacity for one member in one iteration."""

    planned: int
    baseline: int
    is_default: bool
    band: Band


@dataclass
class MemberCapacity:
    """One member's row of the capacity report."""

    name: str
    cells: dict[str, CapacityCell]


@dataclass
class CapacityReport:
    """Complete result of a capacity reconciliation."""

    pi: str
    iterations: list[str]
    members: list[MemberCapacity]
    baseline: BaselineCapacity | None
    truncated: bool = False
