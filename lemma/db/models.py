"""Dataclass models representing DB rows.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


@dataclass
class Account:
    id: int
    name: str
    email: str
    password_hash: str
    validated: bool
    activation_code: Optional[str]
    created_at: int


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of a request."""

    identity: int
    name: str
    email: str


@dataclass
class Node:
    id: int
    hashid: Optional[str]
    owner_name: Optional[str]
    xdata: str
    searchable: bool
    search_title: Optional[str]
    search_synopsis: Optional[str]
    created_at: int

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------
    @property
    def data(self) -> dict[str, Any]:
        """Decode the stored compact JSON payload."""
        return json.loads(self.xdata)

    def created_at_iso(self) -> str:
        return datetime.fromtimestamp(self.created_at, tz=timezone.utc).isoformat()


@dataclass(frozen=True)
class NodeLookup:
    """Identity and true owner of a node found by hashid."""

    id: int
    hashid: str
    owner_name: Optional[str]


@dataclass
class NewNode:
    """Everything needed to insert a node, minus its address."""

    xdata: str
    owner_id: Optional[int] = None
    searchable: bool = False
    search_title: Optional[str] = None
    search_synopsis: Optional[str] = None
    parents: list[tuple[int, str]] = field(default_factory=list)  # (parent id, facet)


@dataclass
class ChainNode:
    """One occurrence of a node in a traversal result.

    ``owner_known`` is ``False`` when the traversal did not return ownership
    data for this occurrence; the resolver back-fills it from other
    occurrences of the same identity.
    """

    identity: int
    hashid: Optional[str] = None
    xdata: Optional[str] = None
    owner: Optional[str] = None
    owner_known: bool = False
    facet: Optional[str] = None
    parents: list[ChainNode] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.hashid is not None and self.xdata is not None
