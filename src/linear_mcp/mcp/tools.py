"""MCP tool catalogue for the Linear server."""

from typing import List

from mcp import types

_ISSUE_INPUT_PROPERTIES = {
    "title": {
        "type": "string",
        "description": "Issue title",
    },
    "description": {
        "type": "string",
        "description": "Issue description (Markdown)",
    },
    "teamId": {
        "type": "string",
        "description": "Team ID",
    },
}

_PRIORITY = {
    "type": "integer",
    "minimum": 0,
    "maximum": 4,
    "description": "Priority: 0=None, 1=Urgent, 2=High, 3=Medium, 4=Low",
}

_STRING_LIST = {"type": "array", "items": {"type": "string"}}


def get_tools() -> List[types.Tool]:
    """Return the Linear tools with their JSON Schema input definitions."""
    return [
        types.Tool(
            name="linear_auth",
            description="Initialize OAuth flow with Linear",
            inputSchema={
                "type": "object",
                "properties": {
                    "clientId": {
                        "type": "string",
                        "description": "Linear OAuth client ID",
                    },
                    "clientSecret": {
                        "type": "string",
                        "description": "Linear OAuth client secret",
                    },
                    "redirectUri": {
                        "type": "string",
                        "description": "OAuth redirect URI",
                    },
                },
                "required": ["clientId", "clientSecret", "redirectUri"],
            },
        ),
        types.Tool(
            name="linear_auth_callback",
            description="Handle OAuth callback",
            inputSchema={
                "type": "object",
                "properties": {
                    "code": {
                        "type": "string",
                        "description": "OAuth authorization code",
                    },
                },
                "required": ["code"],
            },
        ),
        types.Tool(
            name="linear_create_issue",
            description="Create a new issue in Linear",
            inputSchema={
                "type": "object",
                "properties": {
                    **_ISSUE_INPUT_PROPERTIES,
                    "assigneeId": {
                        "type": "string",
                        "description": "Assignee user ID",
                    },
                    "priority": _PRIORITY,
                    "projectId": {
                        "type": "string",
                        "description": "Project ID",
                    },
                    "createAsUser": {
                        "type": "string",
                        "description": "Name to display for the created issue",
                    },
                    "displayIconUrl": {
                        "type": "string",
                        "description": "URL of the avatar to display",
                    },
                },
                "required": ["title", "description", "teamId"],
            },
        ),
        types.Tool(
            name="linear_create_issues",
            description="Create multiple issues at once",
            inputSchema={
                "type": "object",
                "properties": {
                    "issues": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                **_ISSUE_INPUT_PROPERTIES,
                                "projectId": {
                                    "type": "string",
                                    "description": "Project ID",
                                },
                                "labelIds": {
                                    **_STRING_LIST,
                                    "description": "Label IDs to apply",
                                },
                            },
                            "required": ["title", "description", "teamId"],
                        },
                        "description": "List of issues to create",
                    },
                },
                "required": ["issues"],
            },
        ),
        types.Tool(
            name="linear_create_project_with_issues",
            description="Create a new project with associated issues",
            inputSchema={
                "type": "object",
                "properties": {
                    "project": {
                        "type": "object",
                        "properties": {
                            "name": {
                                "type": "string",
                                "description": "Project name",
                            },
                            "description": {
                                "type": "string",
                                "description": "Project description",
                            },
                            "teamIds": {
                                **_STRING_LIST,
                                "description": "Team IDs",
                            },
                        },
                        "required": ["name", "teamIds"],
                    },
                    "issues": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": _ISSUE_INPUT_PROPERTIES,
                            "required": ["title", "description", "teamId"],
                        },
                        "description": "List of issues to create",
                    },
                },
                "required": ["project", "issues"],
            },
        ),
        types.Tool(
            name="linear_bulk_update_issues",
            description="Update multiple issues at once",
            inputSchema={
                "type": "object",
                "properties": {
                    "issueIds": {
                        **_STRING_LIST,
                        "description": "List of issue IDs to update",
                    },
                    "update": {
                        "type": "object",
                        "properties": {
                            "stateId": {
                                "type": "string",
                                "description": "New state ID",
                            },
                            "assigneeId": {
                                "type": ["string", "null"],
                                "description": "New assignee ID (null to unassign)",
                            },
                            "priority": _PRIORITY,
                        },
                    },
                },
                "required": ["issueIds", "update"],
            },
        ),
        types.Tool(
            name="linear_search_issues",
            description="Search for issues with filtering and pagination",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Search query string",
                    },
                    "teamIds": {
                        **_STRING_LIST,
                        "description": "Filter by team IDs",
                    },
                    "assigneeIds": {
                        **_STRING_LIST,
                        "description": "Filter by assignee IDs",
                    },
                    "states": {
                        **_STRING_LIST,
                        "description": "Filter by state names",
                    },
                    "priority": _PRIORITY,
                    "first": {
                        "type": "integer",
                        "minimum": 1,
                        "default": 50,
                        "description": "Number of issues to return (default: 50)",
                    },
                    "after": {
                        "type": "string",
                        "description": "Cursor for pagination",
                    },
                    "orderBy": {
                        "type": "string",
                        "enum": ["createdAt", "updatedAt"],
                        "description": "Field to order by (default: updatedAt)",
                    },
                },
            },
        ),
        types.Tool(
            name="linear_get_teams",
            description="Get all teams with their states and labels",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
        types.Tool(
            name="linear_get_user",
            description="Get current user information",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
        types.Tool(
            name="linear_delete_issue",
            description="Delete an issue",
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {
                        "type": "string",
                        "description": "Issue identifier (e.g., ENG-123)",
                    },
                },
                "required": ["id"],
            },
        ),
        types.Tool(
            name="linear_delete_issues",
            description="Delete multiple issues",
            inputSchema={
                "type": "object",
                "properties": {
                    "ids": {
                        **_STRING_LIST,
                        "description": "List of issue identifiers to delete",
                    },
                },
                "required": ["ids"],
            },
        ),
        types.Tool(
            name="linear_get_project",
            description="Get project information",
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {
                        "type": "string",
                        "description": "Project identifier",
                    },
                },
                "required": ["id"],
            },
        ),
        types.Tool(
            name="linear_search_projects",
            description="Search for projects by name",
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": "Project name to search for (exact match)",
                    },
                },
                "required": ["name"],
            },
        ),
    ]
