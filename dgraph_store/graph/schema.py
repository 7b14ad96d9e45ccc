"""
DQL and schema text helpers for Dgraph.

Provides utilities for:
- Predicate type constants (string, int, uid, ...)
- Predicate and type definitions for schema alteration
- The existence-check query sent by DgraphClient.is_existed()
- N-Quad statements used to link two existing nodes

All functions are pure: they build the text sent to the server and
never talk to Dgraph themselves.
"""

from __future__ import annotations

from typing import Any, Iterable

# =============================================================================
# Predicate Type Definitions
# =============================================================================


class PredicateType:
    """Scalar and edge types accepted in a Dgraph predicate definition."""

    DEFAULT = "default"
    STRING = "string"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    DATETIME = "datetime"
    GEO = "geo"
    PASSWORD = "password"
    UID = "uid"

    @classmethod
    def all(cls) -> frozenset[str]:
        """Return every known scalar/edge type."""
        return frozenset(
            {
                cls.DEFAULT,
                cls.STRING,
                cls.INT,
                cls.FLOAT,
                cls.BOOL,
                cls.DATETIME,
                cls.GEO,
                cls.PASSWORD,
                cls.UID,
            }
        )


# =============================================================================
# Schema Generation Functions
# =============================================================================


def generate_predicate_schema(
    name: str,
    predicate_type: str,
    indexes: Iterable[str] | None = None,
    *,
    is_list: bool = False,
    upsert: bool = False,
    reverse: bool = False,
) -> str:
    """Generate one predicate line of a Dgraph schema.

    Args:
        name: Predicate name (e.g., "name", "balance")
        predicate_type: One of the PredicateType constants
        indexes: Tokenizers to index with (e.g., ["exact", "term"])
        is_list: Declare the predicate as a list ([type])
        upsert: Add the @upsert directive
        reverse: Add the @reverse directive (uid predicates only)

    Returns:
        Schema line such as ``name: string @index(exact) .``

    Raises:
        ValueError: If the name is empty or the type is unknown
    """
    if not name:
        raise ValueError("Predicate name must not be empty")
    if predicate_type not in PredicateType.all():
        raise ValueError(f"Unknown predicate type: {predicate_type}")

    type_str = f"[{predicate_type}]" if is_list else predicate_type
    line = f"{name}: {type_str}"

    tokenizers = list(indexes or [])
    if tokenizers:
        line += f" @index({', '.join(tokenizers)})"
    if upsert:
        line += " @upsert"
    if reverse:
        line += " @reverse"

    return f"{line} ."


def generate_type_schema(type_name: str, fields: Iterable[str]) -> str:
    """Generate a Dgraph type definition.

    Args:
        type_name: Type name (e.g., "Account")
        fields: Predicate names belonging to the type

    Returns:
        Type block such as ``type Account {\\n  name\\n  balance\\n}``
    """
    if not type_name:
        raise ValueError("Type name must not be empty")
    body = "\n".join(f"  {field}" for field in fields)
    return f"type {type_name} {{\n{body}\n}}"


def join_schema(*parts: str) -> str:
    """Join predicate lines and type blocks into one schema document."""
    return "\n".join(part.strip() for part in parts if part and part.strip())


# =============================================================================
# DQL / N-Quad Generation Functions
# =============================================================================


def format_dql_value(value: Any) -> str:
    """Render a value verbatim for inline use in a DQL function.

    Booleans use the lower-case literals Dgraph expects; everything
    else is rendered with str().
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_existence_query(key: str, value: Any) -> str:
    """Build the query used by the existence check.

    Args:
        key: Predicate to compare
        value: Value substituted verbatim into eq()

    Returns:
        ``{ all(func: eq(<key>,<value>)) { uid } }``
    """
    return f"{{ all(func: eq({key},{format_dql_value(value)})) {{ uid }} }}"


def build_link_nquad(relation: str, subject: str, obj: str) -> str:
    """Build an N-Quad linking two existing nodes.

    Args:
        relation: Predicate name of the edge
        subject: uid of the source node
        obj: uid of the target node

    Returns:
        ``<subject> <relation> <obj> .``

    Raises:
        ValueError: If any part is empty
    """
    if not (relation and subject and obj):
        raise ValueError("relation, subject and object must all be non-empty")
    return f"<{subject}> <{relation}> <{obj}> ."
