"""Lemma Chain: immutable JSON nodes chained by typed, owner-scoped refs."""

__version__ = "0.1.0"
