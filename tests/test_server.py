"""Tests for the MCP tool handlers."""

import asyncio
import json

import pytest
import yaml

from sitemap_mcp import server

RECIPE = """
title: Shop
width: 1200
nodes:
  - id: home
    title: Home
  - id: shoes
    parent: home
    depth: 1
    category: products
  - id: returns
    parent: home
    depth: 1
    category: support
    x: 10
    y: 20
"""


@pytest.fixture(autouse=True)
def output_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(server, "OUTPUT_DIR", tmp_path)
    return tmp_path


def _call(name, arguments):
    return asyncio.run(server.call_tool(name, arguments))


def test_tools_listed():
    tools = asyncio.run(server.list_tools())
    assert [t.name for t in tools] == [
        "layout_sitemap", "relayout_group", "list_templates", "get_template",
    ]


def test_layout_sitemap(output_dir):
    summary_content, yaml_content = _call(
        "layout_sitemap", {"yaml_recipe": RECIPE, "filename": "shop"}
    )
    summary = json.loads(summary_content.text)

    assert summary["status"] == "success"
    assert summary["nodes"] == 3
    assert summary["categories"] == ["general", "products", "support"]
    assert (output_dir / "shop.yaml").read_text() == yaml_content.text

    nodes = {n["id"]: n for n in yaml.safe_load(yaml_content.text)["nodes"]}
    assert nodes["returns"]["x"] == 10 and nodes["returns"]["y"] == 20
    assert nodes["shoes"]["y"] == 380


def test_layout_sitemap_relayout_discards_positions():
    _, yaml_content = _call("layout_sitemap", {"yaml_recipe": RECIPE, "relayout": True})
    nodes = {n["id"]: n for n in yaml.safe_load(yaml_content.text)["nodes"]}
    assert nodes["returns"]["y"] == 380
    assert nodes["returns"]["x"] != 10


def test_layout_sitemap_width_override():
    summary_content, yaml_content = _call(
        "layout_sitemap", {"yaml_recipe": "nodes:\n  - id: home\n", "width": 1000}
    )
    nodes = yaml.safe_load(yaml_content.text)["nodes"]
    assert nodes[0]["x"] == 500


def test_layout_sitemap_bad_options():
    [content] = _call("layout_sitemap", {"yaml_recipe": RECIPE, "strength": 2})
    assert content.text.startswith("Invalid layout options")


def test_layout_sitemap_non_numeric_width():
    [content] = _call("layout_sitemap", {"yaml_recipe": RECIPE, "width": "wide"})
    assert content.text.startswith("Invalid layout options")


def test_layout_sitemap_unwritable_output(tmp_path, monkeypatch):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    monkeypatch.setattr(server, "OUTPUT_DIR", blocker)

    [content] = _call("layout_sitemap", {"yaml_recipe": RECIPE})
    assert content.text.startswith("Layout failed")


def test_layout_sitemap_bad_yaml():
    [content] = _call("layout_sitemap", {"yaml_recipe": ""})
    assert content.text.startswith("Failed to parse YAML recipe")


def test_relayout_group():
    summary_content, yaml_content = _call(
        "relayout_group", {"yaml_recipe": RECIPE, "category": "support"}
    )
    summary = json.loads(summary_content.text)
    assert summary["nodes"] == 1
    nodes = {n["id"]: n for n in yaml.safe_load(yaml_content.text)["nodes"]}
    assert (nodes["returns"]["x"], nodes["returns"]["y"]) == (10, 20)


def test_relayout_group_unknown_category():
    [content] = _call("relayout_group", {"yaml_recipe": RECIPE, "category": "blog"})
    assert content.text == "No nodes in category: blog"


def test_relayout_group_missing_category():
    [content] = _call("relayout_group", {"yaml_recipe": RECIPE})
    assert content.text == "Missing required argument: category"


def test_templates():
    [listing] = _call("list_templates", {})
    names = [t["name"] for t in json.loads(listing.text)["templates"]]
    assert "marketing-site" in names

    [template] = _call("get_template", {"name": "marketing-site"})
    assert "Marketing Site" in template.text

    [missing] = _call("get_template", {"name": "nope"})
    assert missing.text == "Template not found: nope"


def test_unknown_tool():
    [content] = _call("frobnicate", {})
    assert content.text == "Unknown tool: frobnicate"
