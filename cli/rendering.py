"""Utilities for rendering chains in the CLI."""

from __future__ import annotations

import json
from typing import Any

# Longest payload preview shown next to each node.
PREVIEW_CHARS = 60


def _preview(data: Any) -> str:
    text = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
    if len(text) > PREVIEW_CHARS:
        return text[: PREVIEW_CHARS - 1] + "…"
    return text


def render_chain(tree: dict[str, Any]) -> str:
    """Render a serialised chain as an ASCII tree.

    Example::

        @alice/abc123  {"x":1}
        ├── [cites] def456  {"y":2}
        └── [extends] @bob/ghi789  {}
    """
    lines = [f"{tree['id']}  {_preview(tree.get('data'))}"]

    def _render(node: dict[str, Any], prefix: str, is_last: bool) -> None:
        connector = "└── " if is_last else "├── "
        lines.append(
            f"{prefix}{connector}[{node.get('ref_type', '')}] {node['id']}  {_preview(node.get('data'))}"
        )
        child_prefix = prefix + ("    " if is_last else "│   ")
        refs = node.get("refs", [])
        for i, ref in enumerate(refs):
            _render(ref, child_prefix, i == len(refs) - 1)

    refs = tree.get("refs", [])
    for i, ref in enumerate(refs):
        _render(ref, "", i == len(refs) - 1)

    return "\n".join(lines)
