"""Content graph: addressing, node creation, chain resolution and search."""

from lemma.graph.codec import AddressCodec
from lemma.graph.creator import CreateNodeRequest, NodeCreator
from lemma.graph.resolver import ChainResolver
from lemma.graph.search import SearchService

__all__ = [
    "AddressCodec",
    "ChainResolver",
    "CreateNodeRequest",
    "NodeCreator",
    "SearchService",
]
