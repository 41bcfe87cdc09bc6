"""Tests for the YAML recipe parser."""

from pathlib import Path

import pytest
import yaml

from sitemap_mcp.layout import layout_sitemap
from sitemap_mcp.parser import parse_file, parse_yaml, sitemap_to_yaml

TEMPLATES_DIR = Path(__file__).parent.parent / "templates"

SIMPLE_RECIPE = """
title: Docs site
width: 1200
nodes:
  - id: home
    title: Home
    url: https://example.com/
  - id: pricing
    title: Pricing
    parent: home
    depth: 1
    category: products
  - id: help
    parent: home
    depth: 1
    category: support
    x: 400
    y: 380
"""


class TestParseYaml:
    def test_simple_recipe(self):
        sitemap = parse_yaml(SIMPLE_RECIPE)
        assert sitemap.title == "Docs site"
        assert sitemap.width == 1200
        assert sitemap.height == 900
        assert [n.id for n in sitemap.nodes] == ["home", "pricing", "help"]

        home = sitemap.get_node("home")
        assert home.category == "general"
        assert home.depth == 0
        assert home.children == ["pricing", "help"]

        help_node = sitemap.get_node("help")
        assert (help_node.x, help_node.y) == (400.0, 380.0)
        assert sitemap.get_node("pricing").x is None

    def test_explicit_children_not_duplicated(self):
        sitemap = parse_yaml("""
nodes:
  - id: a
    children: [b]
  - id: b
    parent: a
    depth: 1
""")
        assert sitemap.get_node("a").children == ["b"]

    def test_numeric_ids_become_strings(self):
        sitemap = parse_yaml("""
nodes:
  - id: 1
  - id: 2
    parent: 1
    depth: 1
""")
        assert sitemap.get_node("2").parent == "1"
        assert sitemap.get_node("1").children == ["2"]

    @pytest.mark.parametrize("recipe, message", [
        ("", "Empty"),
        ("- just\n- a list\n", "mapping"),
        ("nodes: {id: a}\n", "list"),
        ("nodes:\n  - title: no id\n", "missing an 'id'"),
        ("nodes:\n  - id: a\n  - id: a\n", "Duplicate node id"),
    ])
    def test_malformed(self, recipe, message):
        with pytest.raises(ValueError, match=message):
            parse_yaml(recipe)


class TestTemplates:
    @pytest.mark.parametrize("name", ["marketing-site", "docs-site"])
    def test_templates_parse_and_lay_out(self, name):
        sitemap = parse_file(str(TEMPLATES_DIR / f"{name}.yaml"))
        assert sitemap.nodes
        layout_sitemap(sitemap)
        assert all(n.has_position() for n in sitemap.nodes)

    def test_docs_template_manual_node_kept(self):
        sitemap = parse_file(str(TEMPLATES_DIR / "docs-site.yaml"))
        layout_sitemap(sitemap)
        auth = sitemap.get_node("api-auth")
        assert (auth.x, auth.y) == (1100.0, 600.0)


class TestSitemapToYaml:
    def test_round_trip_keeps_topology_and_positions(self):
        sitemap = parse_yaml(SIMPLE_RECIPE)
        layout_sitemap(sitemap)

        reparsed = parse_yaml(sitemap_to_yaml(sitemap))
        for original, copy in zip(sitemap.nodes, reparsed.nodes):
            assert copy.id == original.id
            assert copy.parent == original.parent
            assert copy.children == original.children
            assert copy.depth == original.depth
            assert copy.category == original.category
            assert copy.x == pytest.approx(original.x, abs=0.01)
            assert copy.y == pytest.approx(original.y, abs=0.01)

    def test_unplaced_nodes_have_no_coordinates(self):
        data = yaml.safe_load(sitemap_to_yaml(parse_yaml(SIMPLE_RECIPE)))
        home = data["nodes"][0]
        assert "x" not in home and "y" not in home
        assert home["category"] == "general"
