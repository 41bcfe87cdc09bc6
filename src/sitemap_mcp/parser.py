"""YAML recipe parser for sitemap-mcp.

A recipe is a flat list of already-built node records:

    title: Docs site
    width: 1200
    nodes:
      - id: home
        title: Home
        url: https://example.com/
      - id: pricing
        parent: home
        depth: 1
        category: products

``children`` may be omitted; it is derived from ``parent`` links.  ``x``/``y``
are optional manual positions.
"""

from __future__ import annotations
from pathlib import Path

import yaml

from .models import Sitemap, SitemapNode


def parse_yaml(yaml_str: str) -> Sitemap:
    """Parse a YAML string into a Sitemap model."""
    data = yaml.safe_load(yaml_str)
    if not data:
        raise ValueError("Empty YAML input")
    if not isinstance(data, dict):
        raise ValueError("Sitemap recipe must be a mapping")

    node_data = data.get("nodes", [])
    if not isinstance(node_data, list):
        raise ValueError("'nodes' must be a list")

    nodes = [_parse_node(nd, idx) for idx, nd in enumerate(node_data)]
    _check_unique_ids(nodes)
    _link_children(nodes)

    return Sitemap(
        title=data.get("title", "Untitled Sitemap"),
        width=int(data.get("width", 1800)),
        height=int(data.get("height", 900)),
        nodes=nodes,
    )


def parse_file(path: str) -> Sitemap:
    """Parse a YAML file into a Sitemap model."""
    content = Path(path).read_text()
    return parse_yaml(content)


def _parse_node(data: dict, index: int) -> SitemapNode:
    """Parse a single node record."""
    if not isinstance(data, dict) or "id" not in data:
        raise ValueError(f"Node #{index} is missing an 'id'")

    return SitemapNode(
        id=str(data["id"]),
        url=data.get("url") or "",
        title=data.get("title") or "",
        parent=None if data.get("parent") is None else str(data["parent"]),
        children=[str(c) for c in data.get("children") or []],
        depth=data.get("depth", 0),
        category=data.get("category"),
        x=_optional_float(data.get("x")),
        y=_optional_float(data.get("y")),
    )


def _optional_float(value):
    return None if value is None else float(value)


def _check_unique_ids(nodes: list[SitemapNode]) -> None:
    seen: set[str] = set()
    for node in nodes:
        if node.id in seen:
            raise ValueError(f"Duplicate node id: {node.id}")
        seen.add(node.id)


def _link_children(nodes: list[SitemapNode]) -> None:
    """Fill in ``children`` from ``parent`` links where a record left it out."""
    by_id = {n.id: n for n in nodes}
    for node in nodes:
        parent = by_id.get(node.parent) if node.parent else None
        if parent is not None and node.id not in parent.children:
            parent.children.append(node.id)


def sitemap_to_yaml(sitemap: Sitemap) -> str:
    """Serialize a Sitemap back to YAML, positions included."""
    data = {
        "title": sitemap.title,
        "width": sitemap.width,
        "height": sitemap.height,
        "nodes": [],
    }

    for node in sitemap.nodes:
        node_data = {"id": node.id}
        if node.title:
            node_data["title"] = node.title
        if node.url:
            node_data["url"] = node.url
        if node.parent:
            node_data["parent"] = node.parent
        if node.children:
            node_data["children"] = list(node.children)
        node_data["depth"] = node.depth
        node_data["category"] = node.category
        if node.x is not None:
            node_data["x"] = round(node.x, 2)
        if node.y is not None:
            node_data["y"] = round(node.y, 2)

        data["nodes"].append(node_data)

    return yaml.dump(data, default_flow_style=False, sort_keys=False)
