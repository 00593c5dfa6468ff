"""Request and result types for Linear operations."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import PartialCompletionWarning

FilterExpression = Dict[str, Any]


class IssueSearchCriteria(BaseModel):
    """Optional criteria for issue search. Every field narrows the result."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    query: Optional[str] = None
    team_ids: Optional[List[str]] = Field(default=None, alias="teamIds")
    assignee_ids: Optional[List[str]] = Field(default=None, alias="assigneeIds")
    states: Optional[List[str]] = None
    priority: Optional[int] = Field(default=None, ge=0, le=4)


def build_issue_filter(criteria: Optional[IssueSearchCriteria]) -> FilterExpression:
    """Build a Linear ``IssueFilter`` from search criteria.

    An empty dict means no filter.
    """
    issue_filter: FilterExpression = {}
    if criteria is None:
        return issue_filter

    if criteria.query:
        issue_filter["searchableContent"] = {"contains": criteria.query}
    if criteria.team_ids:
        issue_filter["team"] = {"id": {"in": list(criteria.team_ids)}}
    if criteria.assignee_ids:
        issue_filter["assignee"] = {"id": {"in": list(criteria.assignee_ids)}}
    if criteria.states:
        issue_filter["state"] = {"name": {"in": list(criteria.states)}}
    # 0 ("No priority") is a real filter value
    if criteria.priority is not None:
        issue_filter["priority"] = {"eq": criteria.priority}
    return issue_filter


@dataclass
class BatchResult:
    """Outcome of a bulk mutation."""

    success: bool
    items: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.items)


@dataclass
class PageResult:
    """One page of a cursor-paginated connection."""

    items: List[Dict[str, Any]]
    cursor: Optional[str] = None
    has_more: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"items": self.items, "cursor": self.cursor, "hasMore": self.has_more}


@dataclass
class ProjectWithIssuesResult:
    """Outcome of creating a project and then its issues.

    ``warning`` is set when the project was created but the issues were not;
    the project is not rolled back.
    """

    project: Dict[str, Any]
    issues: List[Dict[str, Any]] = field(default_factory=list)
    warning: Optional[PartialCompletionWarning] = None

    @property
    def is_partial(self) -> bool:
        return self.warning is not None
