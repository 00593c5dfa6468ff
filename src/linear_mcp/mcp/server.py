"""MCP server exposing Linear operations as tools."""

import json
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

from mcp import types
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError
from pydantic import ValidationError

from ..connectors.exceptions import (
    AuthExchangeError,
    ConfigurationError,
    LinearMCPError,
    StateError,
)
from ..connectors.linear import LinearOperations
from ..connectors.models import IssueSearchCriteria
from ..observability.logging import clear_log_context, set_log_context
from ..security.credentials import AuthMode
from ..security.session import AuthSession
from .tools import get_tools

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Dict[str, Any]], Awaitable[str]]


def _error(code: int, message: str) -> McpError:
    return McpError(types.ErrorData(code=code, message=message))


def _require_args(arguments: Dict[str, Any], *keys: str) -> None:
    missing = [key for key in keys if arguments.get(key) in (None, "")]
    if missing:
        raise _error(
            types.INVALID_PARAMS,
            f"Missing required parameters: {', '.join(missing)}",
        )


def _require_list(arguments: Dict[str, Any], key: str) -> List[Any]:
    value = arguments.get(key)
    if not isinstance(value, list):
        raise _error(types.INVALID_PARAMS, f"Missing required parameter: {key} (array)")
    return value


def _to_json(value: Any) -> str:
    return json.dumps(value, indent=2)


class LinearMCPServer:
    """Dispatches MCP tool calls to ``LinearOperations``.

    Owns the process's ``AuthSession``. Before every authenticated tool it
    checks the session and refreshes an expiring OAuth token.
    """

    def __init__(self, session: AuthSession, name: str = "linear-mcp"):
        self.session = session
        self.operations = LinearOperations(session)
        self.server = Server(name)
        self._handlers: Dict[str, ToolHandler] = {
            "linear_auth": self._auth,
            "linear_auth_callback": self._auth_callback,
            "linear_create_issue": self._create_issue,
            "linear_create_issues": self._create_issues,
            "linear_create_project_with_issues": self._create_project_with_issues,
            "linear_bulk_update_issues": self._bulk_update_issues,
            "linear_search_issues": self._search_issues,
            "linear_get_teams": self._get_teams,
            "linear_get_user": self._get_user,
            "linear_delete_issue": self._delete_issue,
            "linear_delete_issues": self._delete_issues,
            "linear_get_project": self._get_project,
            "linear_search_projects": self._search_projects,
        }
        self._setup_handlers()

    def _setup_handlers(self):
        """Set up MCP protocol handlers."""

        @self.server.list_tools()
        async def handle_list_tools() -> List[types.Tool]:
            return get_tools()

        @self.server.call_tool()
        async def handle_call_tool(
            name: str, arguments: Optional[Dict[str, Any]] = None
        ) -> List[types.TextContent]:
            return await self.call_tool(name, arguments)

    async def run_stdio(self):
        """Serve MCP over stdin/stdout until the client disconnects."""
        async with stdio_server() as (read_stream, write_stream):
            logger.info("Linear MCP server running on stdio")
            await self.server.run(
                read_stream, write_stream, self.server.create_initialization_options()
            )

    async def call_tool(
        self, name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> List[types.TextContent]:
        """Run one tool and return its text result.

        Raises:
            McpError: Unknown tool, bad arguments, session state problems or
                a failed Linear operation.
        """
        handler = self._handlers.get(name)
        if handler is None:
            raise _error(types.METHOD_NOT_FOUND, f"Unknown tool: {name}")

        set_log_context(tool_name=name, request_id=uuid.uuid4().hex[:8])
        try:
            logger.info("Tool call: %s", name)
            text = await handler(arguments or {})
            return [types.TextContent(type="text", text=text)]
        except McpError:
            raise
        except ValidationError as e:
            raise _error(types.INVALID_PARAMS, f"Invalid parameters for {name}: {e}") from e
        except ConfigurationError as e:
            raise _error(types.INVALID_PARAMS, str(e)) from e
        except StateError as e:
            raise _error(types.INVALID_REQUEST, str(e)) from e
        except LinearMCPError as e:
            logger.warning("Tool %s failed: %s", name, e)
            raise _error(types.INTERNAL_ERROR, f"{name} failed: {e}") from e
        except Exception as e:
            logger.exception("Unexpected error executing tool '%s'", name)
            raise _error(types.INTERNAL_ERROR, f"{name} failed: {e}") from e
        finally:
            clear_log_context()

    async def _ensure_authenticated(self):
        if not self.session.is_authenticated():
            raise StateError("Not authenticated. Call linear_auth first.")
        if self.session.needs_token_refresh():
            logger.info("Access token near expiry; refreshing")
            await self.session.refresh_access_token()

    # -- Authentication ----------------------------------------------------

    async def _auth(self, arguments: Dict[str, Any]) -> str:
        _require_args(arguments, "clientId", "clientSecret", "redirectUri")
        self.session.initialize(AuthMode.OAUTH, arguments)
        auth_url = self.session.get_authorization_url()
        return f"Please visit the following URL to authorize the application:\n{auth_url}"

    async def _auth_callback(self, arguments: Dict[str, Any]) -> str:
        _require_args(arguments, "code")
        try:
            await self.session.handle_callback(arguments["code"])
        except AuthExchangeError as e:
            raise _error(
                types.INTERNAL_ERROR, f"Authentication callback failed: {e}"
            ) from e
        return "Successfully authenticated with Linear"

    # -- Issues ------------------------------------------------------------

    async def _create_issue(self, arguments: Dict[str, Any]) -> str:
        await self._ensure_authenticated()
        _require_args(arguments, "title", "description", "teamId")
        issue = await self.operations.create_issue(arguments)
        project = issue.get("project") or {}
        return (
            "Successfully created issue\n"
            f"Issue: {issue.get('identifier')}\n"
            f"Title: {issue.get('title')}\n"
            f"URL: {issue.get('url')}\n"
            f"Project: {project.get('name', 'None')}"
        )

    async def _create_issues(self, arguments: Dict[str, Any]) -> str:
        await self._ensure_authenticated()
        issues = _require_list(arguments, "issues")
        result = await self.operations.create_issues(issues)
        lines = [f"Successfully created {result.count} issues:"]
        for issue in result.items:
            lines.append(f"- {issue.get('identifier')}: {issue.get('title')}\n  URL: {issue.get('url')}")
        return "\n".join(lines)

    async def _bulk_update_issues(self, arguments: Dict[str, Any]) -> str:
        await self._ensure_authenticated()
        issue_ids = _require_list(arguments, "issueIds")
        update = arguments.get("update")
        if not isinstance(update, dict):
            raise _error(types.INVALID_PARAMS, "Missing required parameter: update (object)")
        result = await self.operations.update_issues(issue_ids, update)
        return f"Successfully updated {result.count} issues"

    async def _search_issues(self, arguments: Dict[str, Any]) -> str:
        await self._ensure_authenticated()
        criteria = IssueSearchCriteria.model_validate(arguments)
        page = await self.operations.search_issues(
            criteria,
            page_size=arguments.get("first") or 50,
            cursor=arguments.get("after"),
            order_by=arguments.get("orderBy") or "updatedAt",
        )
        return _to_json(page.to_dict())

    async def _delete_issue(self, arguments: Dict[str, Any]) -> str:
        await self._ensure_authenticated()
        _require_args(arguments, "id")
        await self.operations.delete_issue(arguments["id"])
        return f"Successfully deleted issue {arguments['id']}"

    async def _delete_issues(self, arguments: Dict[str, Any]) -> str:
        await self._ensure_authenticated()
        ids = _require_list(arguments, "ids")
        result = await self.operations.delete_issues(ids)
        return f"Successfully deleted {result.count} issues: {', '.join(ids)}"

    # -- Projects ----------------------------------------------------------

    async def _create_project_with_issues(self, arguments: Dict[str, Any]) -> str:
        await self._ensure_authenticated()
        project = arguments.get("project")
        if not isinstance(project, dict):
            raise _error(types.INVALID_PARAMS, "Missing required parameter: project (object)")
        issues = _require_list(arguments, "issues")

        result = await self.operations.create_project_with_issues(project, issues)
        summary = (
            f"Project: {result.project.get('name')}\n"
            f"URL: {result.project.get('url')}\n"
            f"Issues created: {len(result.issues)}"
        )
        if result.is_partial:
            return f"Project created, but issues were not\n{summary}\nWarning: {result.warning}"
        return f"Successfully created project with issues\n{summary}"

    async def _get_project(self, arguments: Dict[str, Any]) -> str:
        await self._ensure_authenticated()
        _require_args(arguments, "id")
        return _to_json(await self.operations.get_project(arguments["id"]))

    async def _search_projects(self, arguments: Dict[str, Any]) -> str:
        await self._ensure_authenticated()
        _require_args(arguments, "name")
        return _to_json(await self.operations.search_projects(arguments["name"]))

    # -- Teams / users -----------------------------------------------------

    async def _get_teams(self, arguments: Dict[str, Any]) -> str:
        await self._ensure_authenticated()
        return _to_json(await self.operations.get_teams())

    async def _get_user(self, arguments: Dict[str, Any]) -> str:
        await self._ensure_authenticated()
        return _to_json(await self.operations.get_current_user())
