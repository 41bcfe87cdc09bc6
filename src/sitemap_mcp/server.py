"""sitemap-mcp server — MCP tools for laying out grouped sitemap diagrams."""

from __future__ import annotations

import json
import logging
import os
import uuid
from pathlib import Path

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .layout import LayoutOptions, count_overlaps, layout_sitemap, relayout_group
from .parser import parse_yaml, sitemap_to_yaml

logger = logging.getLogger(__name__)


# --- Constants ---
OUTPUT_DIR = Path(os.environ.get("SITEMAP_OUTPUT_DIR", Path.home() / ".sitemap-mcp" / "layouts"))
TEMPLATES_DIR = Path(__file__).parent.parent.parent / "templates"

server = Server("sitemap-mcp")


def _ensure_output_dir():
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)


# --- Tool definitions ---

@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name="layout_sitemap",
            description=(
                "Lay out a sitemap from a YAML recipe. Nodes are grouped into one "
                "column per category, nodes of equal depth share a row across "
                "columns, and overlapping boxes are pushed apart. Nodes that "
                "already have x/y keep them. Returns the laid-out YAML and the "
                "path it was saved to."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "yaml_recipe": {
                        "type": "string",
                        "description": (
                            "YAML string defining the sitemap. Example:\n"
                            "title: Docs site\n"
                            "width: 1200\n"
                            "nodes:\n"
                            "  - id: home\n"
                            "    title: Home\n"
                            "  - id: pricing\n"
                            "    parent: home\n"
                            "    depth: 1\n"
                            "    category: products\n"
                            "\n"
                            "Missing category defaults to 'general', missing depth to 0. "
                            "x/y are optional manual positions."
                        ),
                    },
                    "width": {
                        "type": "number",
                        "description": "Canvas width (default: recipe width or 1800).",
                    },
                    "height": {
                        "type": "number",
                        "description": "Canvas height (default: recipe height or 900).",
                    },
                    "iterations": {
                        "type": "integer",
                        "description": "Overlap relaxation passes (default 4).",
                        "default": 4,
                    },
                    "strength": {
                        "type": "number",
                        "description": "Relaxation strength in (0, 1] (default 0.6).",
                        "default": 0.6,
                    },
                    "relayout": {
                        "type": "boolean",
                        "description": (
                            "Discard existing positions and lay out every node "
                            "from scratch. Default: false (only unplaced nodes move)."
                        ),
                        "default": False,
                    },
                    "filename": {
                        "type": "string",
                        "description": "Output filename (without extension). Default: auto-generated.",
                    },
                },
                "required": ["yaml_recipe"],
            },
        ),
        Tool(
            name="relayout_group",
            description=(
                "Rearrange the nodes of one category into a compact grid at the "
                "group's current top-left corner. Returns the updated YAML."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "yaml_recipe": {
                        "type": "string",
                        "description": "YAML string defining the sitemap.",
                    },
                    "category": {
                        "type": "string",
                        "description": "Category whose nodes are rearranged.",
                    },
                },
                "required": ["yaml_recipe", "category"],
            },
        ),
        Tool(
            name="list_templates",
            description="List available sitemap recipe templates that can be used as starting points.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
        Tool(
            name="get_template",
            description="Get the YAML content of a specific template by name.",
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": "Template name (from list_templates output)",
                    },
                },
                "required": ["name"],
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    if name == "layout_sitemap":
        return await _layout_sitemap(arguments)
    elif name == "relayout_group":
        return await _relayout_group(arguments)
    elif name == "list_templates":
        return await _list_templates(arguments)
    elif name == "get_template":
        return await _get_template(arguments)
    else:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]


async def _layout_sitemap(args: dict) -> list[TextContent]:
    """Lay out a YAML recipe and save the result."""
    try:
        sitemap = parse_yaml(args["yaml_recipe"])
    except Exception as e:
        logger.warning("Failed to parse sitemap recipe: %s", e)
        return [TextContent(type="text", text=f"Failed to parse YAML recipe: {e}")]

    try:
        if "width" in args:
            sitemap.width = int(args["width"])
        if "height" in args:
            sitemap.height = int(args["height"])
        options = LayoutOptions.from_sitemap(
            sitemap,
            relax_iterations=int(args.get("iterations", 4)),
            relax_strength=float(args.get("strength", 0.6)),
        )
    except (TypeError, ValueError) as e:
        return [TextContent(type="text", text=f"Invalid layout options: {e}")]

    relayout = args.get("relayout", False)
    if relayout:
        sitemap.reset_positions()

    try:
        result = layout_sitemap(sitemap, options)
        yaml_content = sitemap_to_yaml(sitemap)

        _ensure_output_dir()
        filename = args.get("filename", str(uuid.uuid4())[:8])
        yaml_path = OUTPUT_DIR / f"{filename}.yaml"
        yaml_path.write_text(yaml_content)
    except Exception as e:
        logger.exception("Layout failed")
        return [TextContent(type="text", text=f"Layout failed: {e}")]

    logger.info("Laid out %d nodes into %s", len(sitemap.nodes), yaml_path)

    summary = {
        "status": "success",
        "yaml_path": str(yaml_path),
        "title": sitemap.title,
        "nodes": len(sitemap.nodes),
        "categories": list(result.columns),
        "relaxation_passes": len(result.passes),
        "residual_overlaps": result.residual_overlaps,
        "relayout": relayout,
    }
    return [
        TextContent(type="text", text=json.dumps(summary)),
        TextContent(type="text", text=yaml_content),
    ]


async def _relayout_group(args: dict) -> list[TextContent]:
    """Rearrange one category into a grid."""
    try:
        sitemap = parse_yaml(args["yaml_recipe"])
    except Exception as e:
        logger.warning("Failed to parse sitemap recipe: %s", e)
        return [TextContent(type="text", text=f"Failed to parse YAML recipe: {e}")]

    category = args.get("category")
    if not category:
        return [TextContent(type="text", text="Missing required argument: category")]

    try:
        moved = relayout_group(sitemap, category)
        overlaps = count_overlaps(sitemap.nodes)
        yaml_content = sitemap_to_yaml(sitemap)
    except Exception as e:
        logger.exception("Group re-layout failed")
        return [TextContent(type="text", text=f"Group re-layout failed: {e}")]

    if not moved:
        return [TextContent(type="text", text=f"No nodes in category: {category}")]

    summary = {
        "status": "success",
        "category": category,
        "nodes": len(moved),
        "overlaps": overlaps,
    }
    return [
        TextContent(type="text", text=json.dumps(summary)),
        TextContent(type="text", text=yaml_content),
    ]


async def _list_templates(args: dict) -> list[TextContent]:
    """List available template files."""
    templates = []

    if TEMPLATES_DIR.exists():
        for f in sorted(TEMPLATES_DIR.glob("*.yaml")) + sorted(TEMPLATES_DIR.glob("*.yml")):
            templates.append({
                "name": f.stem,
                "path": str(f),
            })

    return [TextContent(
        type="text",
        text=json.dumps({"templates": templates}),
    )]


async def _get_template(args: dict) -> list[TextContent]:
    """Get template content by name."""
    name = args["name"]

    for ext in [".yaml", ".yml"]:
        path = TEMPLATES_DIR / f"{name}{ext}"
        if path.exists():
            return [TextContent(type="text", text=path.read_text())]

    return [TextContent(type="text", text=f"Template not found: {name}")]


def main():
    """Entry point for the MCP server."""
    import asyncio

    # stdout carries the MCP transport, so logs go to stderr
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    asyncio.run(_run())


async def _run():
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


if __name__ == "__main__":
    main()
