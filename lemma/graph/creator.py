"""Node creation: validate a request, then commit the node and its address.

Validation is fail-fast and ordered; the first violation wins:

1. payload present, a JSON object, within the size bound
2. search metadata consistent with the ``searchable`` flag
3. bot check
4. owner claim matches the authenticated actor
5. parent references well formed (and not too many)
6. every parent exists with exactly the declared owner-scope
7. commit: insert node, derive its address, write the address, commit

Steps 6 and 7 share one write transaction.  A node that was given an identity
but never an address is rolled back with everything else, so it can never be
reached by address.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from lemma.db.models import Actor, NewNode
from lemma.db.nodes import assign_hashid, find_by_hashids, insert_node
from lemma.db.store import GraphStore
from lemma.errors import (
    BotCheckFailed,
    InternalError,
    LoginRequired,
    OwnerInvalid,
    OwnershipUnauthorized,
    ParentNotFound,
    PayloadInvalid,
    SearchMetadataInvalid,
    TooManyParents,
)
from lemma.graph.codec import AddressCodec
from lemma.graph.refs import ParentRef, format_address, owner_scope_matches, split_parent_ref
from lemma.recaptcha import RecaptchaVerifier

logger = logging.getLogger(__name__)

MAX_SEARCH_TITLE = 100
MAX_SEARCH_SYNOPSIS = 800


@dataclass
class CreateNodeRequest:
    data: Any = None
    owner: Optional[str] = None
    parents: list[str] = field(default_factory=list)
    searchable: bool = False
    search_title: Optional[str] = None
    search_synopsis: Optional[str] = None
    recaptcha_code: str = ""


def compact_json(value: dict[str, Any]) -> str:
    """Serialise without insignificant whitespace.

    Raises ``ValueError`` for NaN and infinite floats, which are not JSON.
    """
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid json")


class NodeCreator:
    def __init__(
        self,
        store: GraphStore,
        codec: AddressCodec,
        verifier: RecaptchaVerifier,
        max_payload_bytes: int = 12 * 1024,
        max_parents: int = 250,
    ) -> None:
        self.store = store
        self.codec = codec
        self.verifier = verifier
        self.max_payload_bytes = max_payload_bytes
        self.max_parents = max_parents

    def create_node(self, request: CreateNodeRequest, actor: Optional[Actor] = None) -> str:
        """Validate *request* and persist it; return the node's address."""
        xdata = self._validate_payload(request.data)
        title, synopsis = self._validate_search(
            request.searchable, request.search_title, request.search_synopsis
        )

        if not self.verifier.verify(request.recaptcha_code):
            raise BotCheckFailed()

        owner = self._validate_owner(request.owner, actor)
        refs = self._parse_parents(request.parents or [])

        with self.store.write() as conn:
            found = find_by_hashids(conn, (ref.hashid for ref in refs))
            parents: list[tuple[int, str]] = []
            for ref in refs:
                target = found.get(ref.hashid)
                if target is None or not owner_scope_matches(ref.owner, target.owner_name):
                    raise ParentNotFound()
                parents.append((target.id, ref.facet))

            node_id = insert_node(
                conn,
                NewNode(
                    xdata=xdata,
                    owner_id=owner.identity if owner else None,
                    searchable=request.searchable,
                    search_title=title,
                    search_synopsis=synopsis,
                    parents=parents,
                ),
            )
            hashid = self._encode(node_id)
            assign_hashid(conn, node_id, hashid)

        address = format_address(owner.name if owner else None, hashid)
        logger.info("created node %s with %d parent refs", address, len(parents))
        return address

    # ------------------------------------------------------------------
    # Validation steps
    # ------------------------------------------------------------------

    def _validate_payload(self, data: Any) -> str:
        if data is None:
            raise PayloadInvalid("data payload must not be empty")
        if isinstance(data, str):
            try:
                data = json.loads(data, parse_constant=_reject_constant)
            except ValueError as exc:
                raise PayloadInvalid() from exc
        if not isinstance(data, dict):
            raise PayloadInvalid()

        try:
            xdata = compact_json(data)
        except ValueError as exc:
            raise PayloadInvalid() from exc
        if len(xdata.encode("utf-8")) > self.max_payload_bytes:
            raise PayloadInvalid(
                f"data payload must be less than {self.max_payload_bytes // 1024}kB"
            )
        return xdata

    @staticmethod
    def _validate_search(
        searchable: bool,
        title: Optional[str],
        synopsis: Optional[str],
    ) -> tuple[Optional[str], Optional[str]]:
        if searchable and title is None and synopsis is None:
            raise SearchMetadataInvalid(
                "when searchable is true, a search title or search synopsis is required"
            )

        if title is not None:
            title = title.strip()
            if not title:
                raise SearchMetadataInvalid("search title must not be empty")
            if len(title) > MAX_SEARCH_TITLE:
                raise SearchMetadataInvalid(
                    f"search title must be less than {MAX_SEARCH_TITLE} characters"
                )

        if synopsis is not None:
            synopsis = synopsis.strip()
            if not synopsis:
                raise SearchMetadataInvalid("search synopsis must not be empty")
            if len(synopsis) > MAX_SEARCH_SYNOPSIS:
                raise SearchMetadataInvalid(
                    f"search synopsis must be less than {MAX_SEARCH_SYNOPSIS} characters"
                )

        return title, synopsis

    @staticmethod
    def _validate_owner(owner: Optional[str], actor: Optional[Actor]) -> Optional[Actor]:
        if owner is None:
            return None

        supplied = owner.strip()
        if supplied.startswith("@"):
            supplied = supplied[1:]
        supplied = supplied.lower()
        if not supplied:
            raise OwnerInvalid()

        # The owner may be given as the account name or the account email.
        if actor is None:
            raise LoginRequired()
        if supplied not in (actor.name.lower(), actor.email.lower()):
            raise OwnershipUnauthorized()
        return actor

    def _parse_parents(self, parents: list[str]) -> list[ParentRef]:
        if len(parents) > self.max_parents:
            raise TooManyParents(f"max {self.max_parents} parent refs permitted")
        return [split_parent_ref(value) for value in parents]

    def _encode(self, node_id: int) -> str:
        try:
            return self.codec.encode(node_id)
        except ValueError as exc:
            logger.error("cannot derive address for node %s: %s", node_id, exc)
            raise InternalError() from exc
