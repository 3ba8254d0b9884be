"""Reference string grammar shared by node creation and chain resolution.

Addresses::

    abc123            unowned node
    @alice/abc123     node owned by ``alice``

Parent references (creation only) prefix an address with a facet label::

    cites:abc123
    cites:@alice/abc123
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from lemma.errors import ParentReferenceInvalid

MAX_FACET_LENGTH = 75
_FORBIDDEN_FACET_CHARS = frozenset('"@/')


@dataclass(frozen=True)
class Address:
    owner: Optional[str]
    hashid: str

    def __str__(self) -> str:
        return format_address(self.owner, self.hashid)


@dataclass(frozen=True)
class ParentRef:
    facet: str
    owner: Optional[str]
    hashid: str


def format_address(owner: Optional[str], hashid: str) -> str:
    """Return the fully qualified address for a node."""
    if owner:
        return f"@{owner}/{hashid}"
    return hashid


def split_address(value: str) -> Address:
    """Parse ``[@owner/]hashid``.

    Raises:
        ValueError: If the string does not follow the grammar.
    """
    value = (value or "").strip()
    if not value:
        raise ValueError("empty address")

    segments = value.split("/")
    if len(segments) == 1:
        return Address(owner=None, hashid=segments[0])
    if len(segments) != 2:
        raise ValueError(f"too many segments in address {value!r}")

    scope, hashid = segments
    if not scope.startswith("@"):
        raise ValueError("owner segment must start with '@'")
    owner = scope[1:].strip()
    hashid = hashid.strip()
    if not owner or not hashid:
        raise ValueError(f"incomplete address {value!r}")
    return Address(owner=owner, hashid=hashid)


def validate_facet(facet: str) -> str:
    facet = facet.strip()
    if not facet:
        raise ParentReferenceInvalid("invalid parent: ref type must not be empty")
    if len(facet) > MAX_FACET_LENGTH:
        raise ParentReferenceInvalid(
            f"invalid parent: ref type must be at most {MAX_FACET_LENGTH} characters"
        )
    if any(ch in _FORBIDDEN_FACET_CHARS for ch in facet):
        raise ParentReferenceInvalid('invalid parent: ref type must not contain ", @ or /')
    return facet


def split_parent_ref(value: str) -> ParentRef:
    """Parse ``facet:[@owner/]hashid``.

    Raises:
        ParentReferenceInvalid: With a message naming the offending part.
    """
    if not isinstance(value, str):
        raise ParentReferenceInvalid()
    value = value.strip()
    facet, sep, remainder = value.partition(":")
    if not sep:
        raise ParentReferenceInvalid()

    facet = validate_facet(facet)
    if not remainder:
        raise ParentReferenceInvalid()

    try:
        address = split_address(remainder)
    except ValueError as exc:
        raise ParentReferenceInvalid() from exc
    return ParentRef(facet=facet, owner=address.owner, hashid=address.hashid)


def owner_scope_matches(declared: Optional[str], actual: Optional[str]) -> bool:
    """Return ``True`` when a declared owner-scope agrees with the true owner.

    Both absent, or both present and identical.  Anything else is a mismatch,
    which callers report exactly like a missing node.
    """
    if declared is None:
        return actual is None
    return actual is not None and declared == actual
