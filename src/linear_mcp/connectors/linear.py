"""Linear operations.

All Linear API calls go through GraphQL at https://api.linear.app/graphql.
``LinearOperations`` turns one logical operation into one GraphQL request
(two for ``create_project_with_issues``) and normalizes the payload.

Linear priority values: 0=No priority, 1=Urgent, 2=High, 3=Medium, 4=Low.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

from .exceptions import PartialCompletionWarning, RemoteOperationError
from .models import (
    BatchResult,
    IssueSearchCriteria,
    PageResult,
    ProjectWithIssuesResult,
    build_issue_filter,
)

if TYPE_CHECKING:
    from ..security.session import AuthSession

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Query / mutation documents (kept together so they are easy to audit)
# ---------------------------------------------------------------------------

# -- Issues ----------------------------------------------------------------

_ISSUE_FIELDS = """
      id
      identifier
      title
      description
      priority
      priorityLabel
      url
      createdAt
      updatedAt
      state { id name type }
      assignee { id name email }
      team { id name key }
      project { id name }
"""

_CREATE_ISSUE_MUTATION = """
mutation CreateIssue($input: IssueCreateInput!) {
  issueCreate(input: $input) {
    success
    issue {%s}
  }
}
""" % _ISSUE_FIELDS

_CREATE_ISSUES_MUTATION = """
mutation CreateIssues($input: IssueBatchCreateInput!) {
  issueBatchCreate(input: $input) {
    success
    issues {%s}
  }
}
""" % _ISSUE_FIELDS

_UPDATE_ISSUES_MUTATION = """
mutation UpdateIssues($ids: [UUID!]!, $input: IssueUpdateInput!) {
  issueBatchUpdate(ids: $ids, input: $input) {
    success
    issues {
      id
      identifier
      title
      url
      priority
      state { id name }
      assignee { id name }
      updatedAt
    }
  }
}
"""

_DELETE_ISSUE_MUTATION = """
mutation DeleteIssue($id: String!) {
  issueDelete(id: $id) {
    success
  }
}
"""

_SEARCH_ISSUES_QUERY = """
query SearchIssues($filter: IssueFilter, $first: Int!, $after: String, $orderBy: PaginationOrderBy) {
  issues(filter: $filter, first: $first, after: $after, orderBy: $orderBy) {
    nodes {%s}
    pageInfo { hasNextPage endCursor }
  }
}
""" % _ISSUE_FIELDS

# -- Teams -----------------------------------------------------------------

_GET_TEAMS_QUERY = """
query GetTeams {
  teams {
    nodes {
      id
      name
      key
      description
      states { nodes { id name type color position } }
      labels { nodes { id name color } }
    }
  }
}
"""

# -- Users -----------------------------------------------------------------

_GET_VIEWER_QUERY = """
query GetViewer {
  viewer {
    id
    name
    displayName
    email
    active
    admin
    teams { nodes { id name key } }
  }
}
"""

# -- Projects --------------------------------------------------------------

_PROJECT_FIELDS = """
      id
      name
      description
      state
      progress
      startDate
      targetDate
      url
      createdAt
      updatedAt
      teams { nodes { id name key } }
      lead { id name email }
"""

_GET_PROJECT_QUERY = """
query GetProject($id: String!) {
  project(id: $id) {%s
    issues { nodes { id identifier title state { name } } }
  }
}
""" % _PROJECT_FIELDS

_SEARCH_PROJECTS_QUERY = """
query SearchProjects($filter: ProjectFilter) {
  projects(filter: $filter) {
    nodes {%s}
  }
}
""" % _PROJECT_FIELDS

_CREATE_PROJECT_MUTATION = """
mutation CreateProject($input: ProjectCreateInput!) {
  projectCreate(input: $input) {
    success
    project {
      id
      name
      description
      url
      state
      createdAt
      teams { nodes { id name key } }
    }
  }
}
"""

# Fields accepted from callers for each mutation input
_ISSUE_CREATE_KEYS = (
    "title",
    "description",
    "teamId",
    "assigneeId",
    "priority",
    "projectId",
    "labelIds",
    "stateId",
    "createAsUser",
    "displayIconUrl",
)
_ISSUE_PATCH_KEYS = ("stateId", "assigneeId", "priority")
_PROJECT_CREATE_KEYS = ("name", "description", "teamIds")


def _pick(
    source: Mapping[str, Any], keys: Sequence[str], keep_none: bool = False
) -> Dict[str, Any]:
    if keep_none:
        # An explicit null clears the field on Linear's side
        return {key: source[key] for key in keys if key in source}
    return {key: source[key] for key in keys if source.get(key) is not None}


def _flatten(obj: Optional[Dict[str, Any]], *keys: str) -> Dict[str, Any]:
    """Replace nested ``{nodes: [...]}`` connections with plain lists."""
    if not obj:
        return {}
    for key in keys:
        if isinstance(obj.get(key), dict):
            obj[key] = obj[key].get("nodes", [])
    return obj


def _require_success(data: Dict[str, Any], field: str, action: str) -> Dict[str, Any]:
    payload = data.get(field) or {}
    if not payload.get("success"):
        raise RemoteOperationError(f"Failed to {action}: Linear reported success=false")
    return payload


class LinearOperations:
    """Issue, project, team and user operations against Linear.

    A GraphQL client is obtained from the session for every operation so
    a refreshed token is always used. Nothing here retries on its own.
    """

    def __init__(self, session: "AuthSession"):
        self.session = session

    # -- Issues ------------------------------------------------------------

    async def create_issue(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Create one issue and return it."""
        client = self.session.get_client()
        data = await client.execute(
            _CREATE_ISSUE_MUTATION, {"input": _pick(fields, _ISSUE_CREATE_KEYS)}
        )
        payload = _require_success(data, "issueCreate", "create issue")
        issue = payload.get("issue")
        if not issue:
            raise RemoteOperationError("Failed to create issue: no issue returned")
        logger.info("Created issue %s", issue.get("identifier"))
        return issue

    async def create_issues(self, issues: Sequence[Mapping[str, Any]]) -> BatchResult:
        """Create several issues in one batch request.

        The batch is not atomic on Linear's side; ``success=false`` fails
        the whole call even if some issues were created.
        """
        if not issues:
            return BatchResult(success=True, items=[])

        client = self.session.get_client()
        data = await client.execute(
            _CREATE_ISSUES_MUTATION,
            {"input": {"issues": [_pick(issue, _ISSUE_CREATE_KEYS) for issue in issues]}},
        )
        payload = _require_success(data, "issueBatchCreate", "create issues")
        created = payload.get("issues") or []
        logger.info("Created %d issues", len(created))
        return BatchResult(success=True, items=created)

    async def update_issues(
        self, ids: Sequence[str], patch: Mapping[str, Any]
    ) -> BatchResult:
        """Apply the same patch (stateId, assigneeId, priority) to every issue.

        A key present with ``None`` is sent as null, e.g. to unassign.
        """
        if not ids:
            return BatchResult(success=True, items=[])

        client = self.session.get_client()
        data = await client.execute(
            _UPDATE_ISSUES_MUTATION,
            {"ids": list(ids), "input": _pick(patch, _ISSUE_PATCH_KEYS, keep_none=True)},
        )
        payload = _require_success(data, "issueBatchUpdate", "update issues")
        updated = payload.get("issues") or []
        logger.info("Updated %d issues", len(updated))
        return BatchResult(success=True, items=updated)

    async def delete_issue(self, issue_id: str) -> BatchResult:
        """Delete one issue."""
        client = self.session.get_client()
        data = await client.execute(_DELETE_ISSUE_MUTATION, {"id": issue_id})
        _require_success(data, "issueDelete", f"delete issue {issue_id}")
        logger.info("Deleted issue %s", issue_id)
        return BatchResult(success=True, items=[{"id": issue_id}])

    async def delete_issues(self, ids: Sequence[str]) -> BatchResult:
        """Delete several issues in one request.

        Each id becomes an aliased ``issueDelete`` field of a single
        mutation. Any error or unsuccessful delete fails the whole call.
        """
        if not ids:
            return BatchResult(success=True, items=[])

        params = ", ".join(f"$id{i}: String!" for i in range(len(ids)))
        fields = "\n".join(
            f"  delete{i}: issueDelete(id: $id{i}) {{ success }}" for i in range(len(ids))
        )
        document = f"mutation DeleteIssues({params}) {{\n{fields}\n}}"
        variables = {f"id{i}": issue_id for i, issue_id in enumerate(ids)}

        client = self.session.get_client()
        data = await client.execute(document, variables)

        failed = [
            issue_id
            for i, issue_id in enumerate(ids)
            if not (data.get(f"delete{i}") or {}).get("success")
        ]
        if failed:
            raise RemoteOperationError(f"Failed to delete issues: {', '.join(failed)}")

        logger.info("Deleted %d issues", len(ids))
        return BatchResult(success=True, items=[{"id": issue_id} for issue_id in ids])

    async def search_issues(
        self,
        criteria: Optional[IssueSearchCriteria] = None,
        page_size: int = 50,
        cursor: Optional[str] = None,
        order_by: str = "updatedAt",
    ) -> PageResult:
        """Fetch one page of issues matching ``criteria``.

        Multi-page aggregation is left to the caller via ``cursor``.
        """
        variables: Dict[str, Any] = {
            "filter": build_issue_filter(criteria),
            "first": page_size,
            "orderBy": order_by,
        }
        if cursor:
            variables["after"] = cursor

        client = self.session.get_client()
        data = await client.execute(_SEARCH_ISSUES_QUERY, variables)
        connection = data.get("issues") or {}
        page_info = connection.get("pageInfo") or {}
        return PageResult(
            items=connection.get("nodes") or [],
            cursor=page_info.get("endCursor"),
            has_more=bool(page_info.get("hasNextPage")),
        )

    # -- Projects ----------------------------------------------------------

    async def create_project_with_issues(
        self,
        project: Mapping[str, Any],
        issues: Sequence[Mapping[str, Any]],
    ) -> ProjectWithIssuesResult:
        """Create a project, then create ``issues`` inside it.

        A failed project creation raises before any issue request. A failed
        issue batch after the project exists is reported as a partial result
        carrying a ``PartialCompletionWarning``; the project is kept.
        """
        client = self.session.get_client()
        data = await client.execute(
            _CREATE_PROJECT_MUTATION, {"input": _pick(project, _PROJECT_CREATE_KEYS)}
        )
        payload = _require_success(data, "projectCreate", "create project")
        created_project = _flatten(payload.get("project"), "teams")
        logger.info("Created project %s", created_project.get("name"))

        if not issues:
            return ProjectWithIssuesResult(project=created_project)

        scoped = [
            {**_pick(issue, _ISSUE_CREATE_KEYS), "projectId": created_project.get("id")}
            for issue in issues
        ]
        try:
            batch = await self.create_issues(scoped)
        except RemoteOperationError as exc:
            logger.warning(
                "Project %s created but its issues were not: %s",
                created_project.get("id"),
                exc,
            )
            warning = PartialCompletionWarning(
                f"Project '{created_project.get('name')}' was created but issue "
                f"creation failed: {exc}",
                project=created_project,
                cause=exc,
            )
            return ProjectWithIssuesResult(project=created_project, warning=warning)

        return ProjectWithIssuesResult(project=created_project, issues=batch.items)

    async def get_project(self, project_id: str) -> Dict[str, Any]:
        """Get a project by ID."""
        client = self.session.get_client()
        data = await client.execute(_GET_PROJECT_QUERY, {"id": project_id})
        return _flatten(data.get("project"), "teams", "issues")

    async def search_projects(self, name: str) -> List[Dict[str, Any]]:
        """Find projects whose name equals ``name`` exactly."""
        client = self.session.get_client()
        data = await client.execute(
            _SEARCH_PROJECTS_QUERY, {"filter": {"name": {"eq": name}}}
        )
        projects = (data.get("projects") or {}).get("nodes") or []
        return [_flatten(project, "teams") for project in projects]

    # -- Teams / users -----------------------------------------------------

    async def get_teams(self) -> List[Dict[str, Any]]:
        """List teams with their workflow states and labels."""
        client = self.session.get_client()
        data = await client.execute(_GET_TEAMS_QUERY)
        teams = (data.get("teams") or {}).get("nodes") or []
        return [_flatten(team, "states", "labels") for team in teams]

    async def get_current_user(self) -> Dict[str, Any]:
        """Get the authenticated user."""
        client = self.session.get_client()
        data = await client.execute(_GET_VIEWER_QUERY)
        return _flatten(data.get("viewer"), "teams")
