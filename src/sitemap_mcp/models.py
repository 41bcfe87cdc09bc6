"""
Data models for sitemap-mcp — the sitemap node forest.

A sitemap is a flat list of page nodes.  Hierarchy is expressed by
reference, not by nesting:

    Sitemap
    └── SitemapNode  — one page (id, parent, children, depth, category)

The hierarchy builder that turns URLs or spreadsheet rows into nodes owns
``parent``, ``children``, ``depth`` and ``category``.  The layout engine only
reads those fields and writes the position fields:

    x, y    — the node's center on the canvas; ``None`` means "not placed yet"
    fx, fy  — the last position the overlap relaxer anchored the node at

Existing ``x``/``y`` values are treated as manual placements and are never
overwritten by the layout engine.
"""

from __future__ import annotations

import math
from typing import NamedTuple, Optional

from pydantic import BaseModel, Field, field_validator


DEFAULT_CATEGORY = "general"

# Node box estimation (logical units)
MIN_NODE_WIDTH = 150
MAX_NODE_WIDTH = 360
NODE_HEIGHT = 100
MAX_URL_CHARS = 60


class NodeSize(NamedTuple):
    """Estimated width and height of a node's box."""
    width: float
    height: float


# ---------------------------------------------------------------------------
# Node
# ---------------------------------------------------------------------------

class SitemapNode(BaseModel):
    """A page in the sitemap forest.

    Hierarchy
    ---------
    ``parent`` and ``children`` are ids of other nodes in the same sitemap.
    They are kept consistent by whoever builds the forest
    (``child.parent == p.id`` iff ``child.id in p.children``).  ``depth`` is
    the distance from a root; roots have depth 0.

    Category
    --------
    ``category`` selects the column the node is drawn in.  A missing or
    blank category is normalized to ``"general"``.

    Position
    --------
    ``x``/``y`` are the box center.  ``fx``/``fy`` are bookkeeping written by
    the overlap relaxer; they are cleared together with ``x``/``y`` when the
    caller wants a full re-layout (see ``Sitemap.reset_positions``).
    """
    id: str
    url: str = ""
    title: str = ""
    parent: Optional[str] = None
    children: list[str] = Field(default_factory=list)
    depth: int = 0
    category: str = DEFAULT_CATEGORY
    x: Optional[float] = None
    y: Optional[float] = None
    fx: Optional[float] = None
    fy: Optional[float] = None

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, value):
        if value is None or not str(value).strip():
            return DEFAULT_CATEGORY
        return str(value).strip()

    @field_validator("depth", mode="before")
    @classmethod
    def _default_depth(cls, value):
        if value is None:
            return 0
        return value

    @field_validator("depth")
    @classmethod
    def _non_negative_depth(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"depth must be >= 0, got {value}")
        return value

    def get_label(self) -> str:
        """Return the title if set, otherwise the id."""
        return self.title if self.title else self.id

    def has_position(self) -> bool:
        """True when both ``x`` and ``y`` are set."""
        return self.x is not None and self.y is not None

    def estimate_size(self) -> NodeSize:
        """Estimate the rendered box size from the title/URL length.

        The width grows in 16-unit steps per 8 characters of the longer of
        the title and the URL (URLs count for at most 60 characters),
        clamped to 150..360.  The height is fixed at 100, so the smallest
        box keeps a 3:2 ratio.
        """
        content = max(len(self.title or ""), min(MAX_URL_CHARS, len(self.url or "")))
        width = max(MIN_NODE_WIDTH, min(MAX_NODE_WIDTH, 16 * math.ceil(content / 8)))
        return NodeSize(width=float(width), height=float(NODE_HEIGHT))


# ---------------------------------------------------------------------------
# Sitemap (root)
# ---------------------------------------------------------------------------

class Sitemap(BaseModel):
    """A complete sitemap diagram.

    Holds the canvas size used by the layout engine and the flat node list.
    ``_node_map`` gives O(1) lookup by id; call ``model_post_init(None)``
    again after replacing ``nodes`` wholesale.
    """
    title: str = "Untitled Sitemap"
    width: int = 1800
    height: int = 900
    nodes: list[SitemapNode] = Field(default_factory=list)

    _node_map: dict[str, SitemapNode] = {}

    def model_post_init(self, __context):
        """Build the id lookup after initialization."""
        self._node_map = {node.id: node for node in self.nodes}

    def get_node(self, node_id: str) -> Optional[SitemapNode]:
        """Look up a node by id."""
        return self._node_map.get(node_id)

    def categories(self) -> list[str]:
        """Distinct categories in first-seen order."""
        seen: dict[str, None] = {}
        for node in self.nodes:
            seen.setdefault(node.category, None)
        return list(seen)

    def roots(self) -> list[SitemapNode]:
        """Nodes without a parent in this sitemap."""
        return [
            node for node in self.nodes
            if node.parent is None or node.parent not in self._node_map
        ]

    def reset_positions(self) -> None:
        """Clear ``x``/``y``/``fx``/``fy`` so every node is laid out afresh."""
        for node in self.nodes:
            node.x = None
            node.y = None
            node.fx = None
            node.fy = None
