"""Tests for the cached search service."""

from __future__ import annotations

from typing import Callable

import pytest

from lemma.cache import NullCache, TTLCache
from lemma.db import GraphStore, QueryBudget
from lemma.db.models import Actor
from lemma.errors import RequestCancelled
from lemma.graph.codec import AddressCodec
from lemma.graph.creator import CreateNodeRequest, NodeCreator
from lemma.graph.search import SearchService
from lemma.recaptcha import RecaptchaVerifier


@pytest.fixture()
def creator(store: GraphStore, codec: AddressCodec) -> NodeCreator:
    return NodeCreator(store, codec, RecaptchaVerifier(secret=""))


class TestSearchService:
    def test_results_shape(self, store: GraphStore, creator: NodeCreator,
                           make_actor: Callable[..., Actor]) -> None:
        alice = make_actor("alice")
        address = creator.create_node(
            CreateNodeRequest(
                data={"doi": "10.1/x"},
                owner="alice",
                searchable=True,
                search_title="Quantum entanglement",
                search_synopsis="Spooky action",
            ),
            alice,
        )
        results = SearchService(store, NullCache()).search("quantum")
        assert len(results) == 1
        hit = results[0]
        assert hit["id"] == address
        assert hit["data"] == {"doi": "10.1/x"}
        assert hit["search_title"] == "Quantum entanglement"
        assert hit["search_synopsis"] == "Spooky action"
        assert hit["created_at"].endswith("+00:00")

    def test_blank_terms(self, store: GraphStore) -> None:
        assert SearchService(store, NullCache()).search("   ") == []

    def test_private_nodes_hidden(self, store: GraphStore, creator: NodeCreator) -> None:
        creator.create_node(CreateNodeRequest(data={}, search_title="quantum"))
        assert SearchService(store, NullCache()).search("quantum") == []

    def test_limit(self, store: GraphStore, creator: NodeCreator) -> None:
        for i in range(4):
            creator.create_node(
                CreateNodeRequest(data={"i": i}, searchable=True, search_title=f"quantum {i}")
            )
        results = SearchService(store, NullCache(), limit=2).search("quantum")
        assert [r["data"]["i"] for r in results] == [3, 2]

    def test_cached_per_terms(self, store: GraphStore, creator: NodeCreator) -> None:
        service = SearchService(store, TTLCache(60))
        assert service.search("quantum") == []
        creator.create_node(
            CreateNodeRequest(data={}, searchable=True, search_title="quantum")
        )
        # Stale until the entry expires.
        assert service.search("quantum") == []
        assert len(service.search("quantum ")) == 0
        assert len(SearchService(store, NullCache()).search("quantum")) == 1

    def test_cancelled(self, store: GraphStore) -> None:
        budget = QueryBudget()
        budget.cancel()
        with pytest.raises(RequestCancelled):
            SearchService(store, NullCache()).search("quantum", budget=budget)
