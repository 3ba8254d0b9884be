"""Tests for chain resolution, owner back-fill and serialisation."""

from __future__ import annotations

import json
import time
from typing import Callable

import pytest

from lemma.cache import NullCache, TTLCache
from lemma.db import GraphStore, QueryBudget
from lemma.db.models import Actor, ChainNode
from lemma.errors import (
    DepthInvalid,
    InternalError,
    RefNotFound,
    RequestCancelled,
    StoreTimeout,
)
from lemma.graph.codec import AddressCodec
from lemma.graph.creator import CreateNodeRequest, NodeCreator
from lemma.graph.refs import split_address
from lemma.graph.resolver import (
    ChainResolver,
    backfill_owners,
    chain_cache_key,
    normalize_facets,
    serialize_chain,
)
from lemma.recaptcha import RecaptchaVerifier


@pytest.fixture()
def creator(store: GraphStore, codec: AddressCodec) -> NodeCreator:
    return NodeCreator(store, codec, RecaptchaVerifier(secret=""))


@pytest.fixture()
def resolver(store: GraphStore, codec: AddressCodec) -> ChainResolver:
    return ChainResolver(store, codec, NullCache(), timeout_ms=0)


@pytest.fixture()
def alice(make_actor: Callable[..., Actor]) -> Actor:
    return make_actor("alice")


def _new(creator: NodeCreator, data: dict, parents=(), owner=None, actor=None) -> str:
    return creator.create_node(
        CreateNodeRequest(data=data, parents=list(parents), owner=owner), actor
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestHelpers:
    def test_normalize_facets(self) -> None:
        assert normalize_facets(None) == frozenset()
        assert normalize_facets([" cites ", "", "  "]) == frozenset({"cites"})

    def test_cache_key_ignores_facet_order(self) -> None:
        a = chain_cache_key("abc", 2, frozenset({"x", "y"}))
        b = chain_cache_key("abc", 2, frozenset({"y", "x"}))
        assert a == b == "*-abc-2-x,y"
        assert chain_cache_key("abc", None, frozenset()) == "*-abc--"


class TestBackfill:
    def _tree(self) -> ChainNode:
        # R -> [B -> [A (no owner data)], A (owner alice)]
        shared_unknown = ChainNode(identity=1, hashid="aaaaaa", xdata="{}", facet="cites")
        shared_known = ChainNode(
            identity=1, hashid="aaaaaa", xdata="{}", owner="alice", owner_known=True, facet="cites"
        )
        middle = ChainNode(
            identity=2, hashid="bbbbbb", xdata="{}", owner_known=True, facet="extends",
            parents=[shared_unknown],
        )
        return ChainNode(
            identity=3, hashid="cccccc", xdata="{}", owner="bob", owner_known=True,
            parents=[middle, shared_known],
        )

    def test_fills_from_other_occurrence(self) -> None:
        root = self._tree()
        backfill_owners(root)
        repeat = root.parents[0].parents[0]
        assert repeat.owner_known
        assert repeat.owner == "alice"

    def test_every_occurrence_serialises_identically(self) -> None:
        root = self._tree()
        backfill_owners(root)
        tree = serialize_chain(root)
        assert tree["id"] == "@bob/cccccc"
        assert tree["refs"][0]["refs"][0]["id"] == "@alice/aaaaaa"
        assert tree["refs"][1]["id"] == "@alice/aaaaaa"

    def test_known_unowned_propagates(self) -> None:
        unknown = ChainNode(identity=5, hashid="eeeeee", xdata="{}", owner="stale")
        known = ChainNode(identity=5, hashid="eeeeee", xdata="{}", owner=None, owner_known=True)
        root = ChainNode(identity=6, hashid="ffffff", xdata="{}", owner_known=True,
                         parents=[unknown, known])
        backfill_owners(root)
        assert unknown.owner is None

    def test_never_known_stays_untouched(self) -> None:
        orphan = ChainNode(identity=7, hashid="gggggg", xdata="{}")
        root = ChainNode(identity=8, hashid="hhhhhh", xdata="{}", owner_known=True, parents=[orphan])
        backfill_owners(root)
        assert not orphan.owner_known
        assert serialize_chain(root)["refs"][0]["id"] == "gggggg"


class TestSerialize:
    def test_root_has_no_ref_type(self) -> None:
        root = ChainNode(identity=1, hashid="aaaaaa", xdata='{"x":1}', owner_known=True)
        assert serialize_chain(root) == {"id": "aaaaaa", "data": {"x": 1}, "refs": []}

    def test_unresolved_parents_are_dropped(self) -> None:
        stub = ChainNode(identity=2, facet="cites")
        root = ChainNode(identity=1, hashid="aaaaaa", xdata="{}", parents=[stub])
        assert serialize_chain(root)["refs"] == []

    def test_corrupt_payload(self) -> None:
        root = ChainNode(identity=1, hashid="aaaaaa", xdata="{oops")
        with pytest.raises(InternalError):
            serialize_chain(root)


# ---------------------------------------------------------------------------
# ChainResolver
# ---------------------------------------------------------------------------

class TestResolve:
    def test_fresh_node(self, creator: NodeCreator, resolver: ChainResolver) -> None:
        address = _new(creator, {"x": 1})
        assert resolver.resolve_chain(address) == {"id": address, "data": {"x": 1}, "refs": []}

    def test_owned_chain(self, creator: NodeCreator, resolver: ChainResolver, alice: Actor) -> None:
        base = _new(creator, {"n": "base"}, owner="alice", actor=alice)
        top = _new(creator, {"n": "top"}, parents=[f"cites:{base}"])
        tree = resolver.resolve_chain(top)
        assert tree["refs"] == [
            {"id": base, "data": {"n": "base"}, "refs": [], "ref_type": "cites"}
        ]
        assert base.startswith("@alice/")

    def test_diamond_serialises_shared_ancestor_identically(
        self, creator: NodeCreator, resolver: ChainResolver, alice: Actor
    ) -> None:
        a = _new(creator, {"n": "a"}, owner="alice", actor=alice)
        b = _new(creator, {"n": "b"}, parents=[f"extends:{a}"])
        c = _new(creator, {"n": "c"}, parents=[f"cites:{a}", f"extends:{b}"])
        tree = resolver.resolve_chain(c)
        direct = tree["refs"][0]
        via_b = tree["refs"][1]["refs"][0]
        assert direct["id"] == via_b["id"] == a
        assert direct["ref_type"] == "cites"
        assert via_b["ref_type"] == "extends"

    def test_depth_limits_hops(self, creator: NodeCreator, resolver: ChainResolver) -> None:
        a = _new(creator, {"n": "a"})
        b = _new(creator, {"n": "b"}, parents=[f"x:{a}"])
        c = _new(creator, {"n": "c"}, parents=[f"x:{b}"])
        tree = resolver.resolve_chain(c, depth=1)
        assert [r["id"] for r in tree["refs"]] == [b]
        assert tree["refs"][0]["refs"] == []
        full = resolver.resolve_chain(c)
        assert full["refs"][0]["refs"][0]["id"] == a

    def test_ceiling_applies_without_depth(self, store: GraphStore, codec: AddressCodec,
                                           creator: NodeCreator) -> None:
        address = _new(creator, {"n": 0})
        for i in range(1, 5):
            address = _new(creator, {"n": i}, parents=[f"x:{address}"])
        shallow = ChainResolver(store, codec, NullCache(), timeout_ms=0, max_depth=2)
        tree = shallow.resolve_chain(address)
        assert tree["refs"][0]["refs"][0]["refs"] == []
        assert shallow.resolve_chain(address, depth=50) == tree

    def test_facet_filter(self, creator: NodeCreator, resolver: ChainResolver) -> None:
        a = _new(creator, {"n": "a"})
        b = _new(creator, {"n": "b"})
        c = _new(creator, {"n": "c"}, parents=[f"cites:{a}", f"extends:{b}"])
        tree = resolver.resolve_chain(c, facets=["extends"])
        assert [r["id"] for r in tree["refs"]] == [b]
        assert resolver.resolve_chain(c, facets=["nothing"])["refs"] == []
        assert len(resolver.resolve_chain(c, facets=["cites", "extends"])["refs"]) == 2

    @pytest.mark.parametrize("depth", [0, -3])
    def test_bad_depth(self, creator: NodeCreator, resolver: ChainResolver, depth: int) -> None:
        address = _new(creator, {})
        with pytest.raises(DepthInvalid):
            resolver.resolve_chain(address, depth=depth)

    def test_diamond_ladder_stays_linear(self, creator: NodeCreator, store: GraphStore,
                                         codec: AddressCodec, alice: Actor) -> None:
        levels = 30
        layer = [_new(creator, {"level": 0}, owner="alice", actor=alice)]
        for level in range(1, levels + 1):
            parents = [f"x:{p}" for p in layer]
            layer = [
                _new(creator, {"level": level, "side": side}, parents=parents)
                for side in ("left", "right")
            ]
        top = _new(creator, {"level": "top"}, parents=[f"x:{p}" for p in layer])

        tree = ChainResolver(store, codec, NullCache(), timeout_ms=0).resolve_chain(top)

        ids: list[str] = []
        stack = [tree]
        while stack:
            node = stack.pop()
            ids.append(node["id"])
            stack.extend(node["refs"])
        assert len(ids) == 4 * levels + 1
        assert len(set(ids)) == 2 * levels + 2
        # The base node is owned; its repeated occurrence keeps the owner scope.
        assert sum(1 for i in ids if i.startswith("@alice/")) == 2

    def test_byte_identical_results(self, creator: NodeCreator, store: GraphStore,
                                    codec: AddressCodec) -> None:
        a = _new(creator, {"z": 1, "a": [1, {"b": 2}]})
        c = _new(creator, {"n": "c"}, parents=[f"x:{a}", f"y:{a}"])
        first = ChainResolver(store, codec, NullCache()).resolve_chain(c)
        second = ChainResolver(store, codec, NullCache()).resolve_chain(c)
        assert json.dumps(first) == json.dumps(second)


class TestNotFound:
    def test_unknown_hashid(self, resolver: ChainResolver, codec: AddressCodec) -> None:
        with pytest.raises(RefNotFound):
            resolver.resolve_chain(codec.encode(999))

    @pytest.mark.parametrize("address", ["", "!!!!!!", "abc", "@alice/", "a/b/c"])
    def test_malformed(self, resolver: ChainResolver, address: str) -> None:
        with pytest.raises(RefNotFound):
            resolver.resolve_chain(address)

    def test_owned_node_without_scope(self, creator: NodeCreator, resolver: ChainResolver,
                                      alice: Actor) -> None:
        owned = _new(creator, {}, owner="alice", actor=alice)
        with pytest.raises(RefNotFound):
            resolver.resolve_chain(split_address(owned).hashid)
        with pytest.raises(RefNotFound):
            resolver.resolve_chain(f"@bob/{split_address(owned).hashid}")

    def test_unowned_node_with_scope(self, creator: NodeCreator, resolver: ChainResolver) -> None:
        loose = _new(creator, {})
        with pytest.raises(RefNotFound):
            resolver.resolve_chain(f"@alice/{loose}")

    def test_vanished_owner_reads_as_unowned(self, creator: NodeCreator, resolver: ChainResolver,
                                             alice: Actor, store: GraphStore) -> None:
        owned = _new(creator, {}, owner="alice", actor=alice)
        with store.write() as conn:
            conn.execute("DELETE FROM accounts WHERE id = ?", (alice.identity,))
        with pytest.raises(RefNotFound):
            resolver.resolve_chain(owned)
        hashid = split_address(owned).hashid
        assert resolver.resolve_chain(hashid)["id"] == hashid


class TestCaching:
    def test_served_from_cache(self, creator: NodeCreator, store: GraphStore,
                               codec: AddressCodec) -> None:
        address = _new(creator, {"x": 1})
        resolver = ChainResolver(store, codec, TTLCache(60))
        first = resolver.resolve_chain(address)
        resolver.store = None  # any store access would now fail
        again = resolver.resolve_chain(address)
        assert again == first
        assert again is not first

    def test_mutating_a_result_leaves_cache_intact(self, creator: NodeCreator, store: GraphStore,
                                                   codec: AddressCodec) -> None:
        a = _new(creator, {"n": "a"})
        b = _new(creator, {"n": "b"}, parents=[f"x:{a}"])
        resolver = ChainResolver(store, codec, TTLCache(60))
        first = resolver.resolve_chain(b)
        first["refs"].clear()
        first["data"]["n"] = "changed"
        again = resolver.resolve_chain(b)
        assert again["data"] == {"n": "b"}
        assert again["refs"][0]["id"] == a

    def test_key_includes_depth_and_facets(self, creator: NodeCreator, store: GraphStore,
                                           codec: AddressCodec) -> None:
        a = _new(creator, {"n": "a"})
        b = _new(creator, {"n": "b"}, parents=[f"x:{a}"])
        c = _new(creator, {"n": "c"}, parents=[f"x:{b}"])
        resolver = ChainResolver(store, codec, TTLCache(60))
        shallow = resolver.resolve_chain(c, depth=1)
        deep = resolver.resolve_chain(c)
        filtered = resolver.resolve_chain(c, facets=["y"])
        assert shallow["refs"][0]["refs"] == []
        assert deep["refs"][0]["refs"][0]["id"] == a
        assert filtered["refs"] == []

    def test_failures_are_not_cached(self, store: GraphStore, codec: AddressCodec) -> None:
        cache = TTLCache(60)
        resolver = ChainResolver(store, codec, cache)
        with pytest.raises(RefNotFound):
            resolver.resolve_chain(codec.encode(1))
        assert len(cache) == 0


class TestBudget:
    def test_cancelled(self, creator: NodeCreator, resolver: ChainResolver) -> None:
        address = _new(creator, {})
        budget = QueryBudget()
        budget.cancel()
        with pytest.raises(RequestCancelled):
            resolver.resolve_chain(address, budget=budget)

    def test_timed_out(self, creator: NodeCreator, resolver: ChainResolver) -> None:
        address = _new(creator, {})
        budget = QueryBudget(timeout_ms=1)
        time.sleep(0.01)
        with pytest.raises(StoreTimeout):
            resolver.resolve_chain(address, budget=budget)
