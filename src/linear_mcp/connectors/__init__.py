"""Linear GraphQL access for Linear MCP."""

from .graphql import GraphQLClient
from .linear import LinearOperations

__all__ = ["GraphQLClient", "LinearOperations"]
