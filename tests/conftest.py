"""
Shared test fixtures for sitemap-mcp tests.

Provides small hand-built sitemaps covering the common shapes: a single
root, a multi-category forest, and a crowded single band.
"""

import pytest

from sitemap_mcp.models import Sitemap, SitemapNode


def make_node(node_id: str, depth: int = 0, category: str = "general",
              parent: str = None, title: str = None, **kwargs) -> SitemapNode:
    """Build a node with a title defaulting to its id."""
    return SitemapNode(
        id=node_id,
        title=title if title is not None else node_id,
        depth=depth,
        category=category,
        parent=parent,
        **kwargs,
    )


def link(nodes: list[SitemapNode]) -> list[SitemapNode]:
    """Fill ``children`` from ``parent`` links."""
    by_id = {n.id: n for n in nodes}
    for node in nodes:
        if node.parent in by_id:
            by_id[node.parent].children.append(node.id)
    return nodes


@pytest.fixture
def single_root() -> list[SitemapNode]:
    """One root node in the default category."""
    return [make_node("home")]


@pytest.fixture
def two_category_tree() -> list[SitemapNode]:
    """A root with one child in each of two categories."""
    return link([
        make_node("R"),
        make_node("A", depth=1, category="products", parent="R"),
        make_node("B", depth=1, category="support", parent="R"),
    ])


@pytest.fixture
def marketing_nodes() -> list[SitemapNode]:
    """A three-level forest over four categories."""
    return link([
        make_node("home", title="Home", url="https://example.com/"),
        make_node("products", depth=1, category="products", parent="home", title="Products"),
        make_node("analytics", depth=2, category="products", parent="products", title="Analytics"),
        make_node("storage", depth=2, category="products", parent="products", title="Storage"),
        make_node("compute", depth=2, category="products", parent="products", title="Compute"),
        make_node("support", depth=1, category="support", parent="home", title="Support"),
        make_node("faq", depth=2, category="support", parent="support", title="FAQ"),
        make_node("contact", depth=2, category="support", parent="support", title="Contact"),
        make_node("blog", depth=1, category="blog", parent="home", title="Blog"),
        make_node("post-1", depth=2, category="blog", parent="blog", title="Launch week"),
        make_node("post-2", depth=2, category="blog", parent="blog", title="Year in review"),
        make_node("about", depth=1, parent="home", title="About"),
        make_node("team", depth=2, parent="about", title="Team"),
    ])


@pytest.fixture
def marketing_sitemap(marketing_nodes) -> Sitemap:
    return Sitemap(title="Marketing", width=2400, height=900, nodes=marketing_nodes)


@pytest.fixture
def crowded_band() -> list[SitemapNode]:
    """Twenty same-category, same-depth nodes sorted by title."""
    return [make_node(f"page-{i:02d}", title=f"Page {i:02d}") for i in range(20)]
