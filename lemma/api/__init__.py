"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from lemma.api import app

    uvicorn lemma.api:app --reload
"""

from lemma.api.app import app, create_app

__all__ = ["app", "create_app"]
