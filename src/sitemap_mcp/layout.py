"""
Grouped-column layout for sitemap-mcp.

Turns an unpositioned (or partially positioned) node forest into a
positioned one so a renderer can draw a readable sitemap:

  1. Depth index   — bucket every node by its hierarchical depth, across
                     all categories, so rows line up between columns
  2. Columns       — one vertical column per category (first-seen order),
                     equal width, centered in the canvas width
  3. Bands         — inside each column, the nodes sharing a depth are
                     spread across the column's inner width on the row for
                     that depth
  4. Relaxation    — a fixed number of greedy pairwise passes push
                     overlapping boxes apart along the axis of least overlap
  5. Reconcile     — every node the engine placed is clamped back into its
                     column and to within a window around its depth row

All intermediate state (positions, column/row assignments, relaxation
anchors) lives in side tables keyed by node id.  Nodes are only touched by
``layout_sitemap``, which merges the final table back onto them.

Coordinates that already exist on a node are manual placements: they are
never moved, clamped or overwritten.  A node whose ``x`` and ``y`` are both
set takes no part in band placement.

The relaxer is not guaranteed to converge.  Dense bands can finish with
residual overlap; this is reported (``LayoutResult.residual_overlaps``) and
logged, never raised.

Spacing constants:
  - Columns: 180px outer margin, 280px between columns, 100px inner padding
  - Rows: first row at 160px, 220px per depth level
  - Relaxation: 80px padding, 4 passes, strength 0.6
  - Reconcile: rows may drift 30% of the level spacing
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from .models import Sitemap, SitemapNode

logger = logging.getLogger(__name__)


# --- Column constants ---

OUTER_MARGIN = 180
COLUMN_GAP = 280
COLUMN_INNER_PADDING = 100
MIN_AVAILABLE_WIDTH = 400
MIN_COLUMN_WIDTH = 300

# --- Row constants ---

START_Y = 160
LEVEL_SPACING = 220

# --- Relaxation constants ---

RELAX_PADDING = 80
RELAX_ITERATIONS = 4
RELAX_STRENGTH = 0.6

# Fraction of LEVEL_SPACING a node may sit above or below its depth row
MAX_ROW_OFFSET_RATIO = 0.3

# --- Group re-layout constants ---

GROUP_GRID_SPACING_X = 200
GROUP_GRID_SPACING_Y = 100


@dataclass
class LayoutOptions:
    """Canvas size and spacing for the grouped layout."""
    width: float = 1800
    height: float = 900
    outer_margin: float = OUTER_MARGIN
    column_gap: float = COLUMN_GAP
    column_inner_padding: float = COLUMN_INNER_PADDING
    min_available_width: float = MIN_AVAILABLE_WIDTH
    min_column_width: float = MIN_COLUMN_WIDTH
    start_y: float = START_Y
    level_spacing: float = LEVEL_SPACING
    relax_padding: float = RELAX_PADDING
    relax_iterations: int = RELAX_ITERATIONS
    relax_strength: float = RELAX_STRENGTH
    max_row_offset_ratio: float = MAX_ROW_OFFSET_RATIO

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"Canvas size must be positive, got {self.width}x{self.height}"
            )
        if self.level_spacing <= 0:
            raise ValueError(f"level_spacing must be positive, got {self.level_spacing}")
        if self.relax_padding < 0:
            raise ValueError(f"relax_padding must be >= 0, got {self.relax_padding}")
        if self.relax_iterations < 0:
            raise ValueError(f"relax_iterations must be >= 0, got {self.relax_iterations}")
        if not 0 < self.relax_strength <= 1:
            raise ValueError(
                f"relax_strength must be in (0, 1], got {self.relax_strength}"
            )
        if self.max_row_offset_ratio < 0:
            raise ValueError(
                f"max_row_offset_ratio must be >= 0, got {self.max_row_offset_ratio}"
            )

    @classmethod
    def from_sitemap(cls, sitemap: Sitemap, **overrides) -> "LayoutOptions":
        """Options sized to the sitemap's canvas, with keyword overrides."""
        values = {"width": sitemap.width, "height": sitemap.height}
        values.update(overrides)
        return cls(**values)

    @property
    def max_row_offset(self) -> float:
        return self.level_spacing * self.max_row_offset_ratio

    def row_y(self, depth: int) -> float:
        """Base y of the row for ``depth``; identical in every column."""
        return self.start_y + depth * self.level_spacing


@dataclass
class LayoutPosition:
    """Computed center position for a node."""
    x: float
    y: float


@dataclass
class ColumnBounds:
    """Horizontal extent of one category's column."""
    category: str
    left: float
    right: float
    inner_left: float
    inner_right: float

    @property
    def usable_width(self) -> float:
        return max(self.inner_right - self.inner_left, 1)

    @property
    def center_x(self) -> float:
        return self.inner_left + self.usable_width / 2


@dataclass
class BandAssignment:
    """Column and row the band placer put a node on.

    ``assigned_x``/``assigned_y`` record which axes the engine wrote; only
    those axes are clamped by ``reconcile_bounds``.
    """
    category: str
    depth: int
    column: ColumnBounds
    row_y: float
    assigned_x: bool
    assigned_y: bool


@dataclass
class PlacementResult:
    """Output of ``place_bands``."""
    positions: dict[str, LayoutPosition] = field(default_factory=dict)
    assignments: dict[str, BandAssignment] = field(default_factory=dict)
    pinned_x: set[str] = field(default_factory=set)
    pinned_y: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class RelaxationPass:
    """Snapshot taken at the end of one relaxation iteration.

    ``anchors`` holds the corrected position of every node pushed so far,
    as it stood when the iteration finished.
    """
    index: int
    pushes: int
    anchors: dict[str, LayoutPosition]


@dataclass
class RelaxationResult:
    """Output of ``relax_overlaps``."""
    positions: dict[str, LayoutPosition]
    anchors: dict[str, LayoutPosition]
    passes: list[RelaxationPass]
    residual_overlaps: int


@dataclass
class LayoutResult:
    """Everything the grouped layout computed for one call."""
    positions: dict[str, LayoutPosition] = field(default_factory=dict)
    anchors: dict[str, LayoutPosition] = field(default_factory=dict)
    columns: dict[str, ColumnBounds] = field(default_factory=dict)
    assignments: dict[str, BandAssignment] = field(default_factory=dict)
    passes: list[RelaxationPass] = field(default_factory=list)
    residual_overlaps: int = 0


# ---------------------------------------------------------------------------
# Depth index
# ---------------------------------------------------------------------------

def build_depth_index(nodes: Iterable[SitemapNode]) -> dict[int, list[SitemapNode]]:
    """Bucket nodes by depth across all categories.

    Keys are in ascending depth order; each bucket keeps input order.
    """
    index: dict[int, list[SitemapNode]] = {}
    for node in nodes:
        index.setdefault(node.depth or 0, []).append(node)
    return {depth: index[depth] for depth in sorted(index)}


# ---------------------------------------------------------------------------
# Column allocation
# ---------------------------------------------------------------------------

def _categories_in_order(nodes: Iterable[SitemapNode]) -> list[str]:
    seen: dict[str, None] = {}
    for node in nodes:
        seen.setdefault(node.category, None)
    return list(seen)


def allocate_columns(
    categories: Iterable[str],
    width: float,
    options: Optional[LayoutOptions] = None,
) -> dict[str, ColumnBounds]:
    """Split the canvas width into one column per category.

    Columns are equal width, separated by ``column_gap``, and the whole row
    of columns is centered in ``width`` but never starts closer than
    ``outer_margin`` to the left edge.  When the canvas is too narrow the
    minimum column width wins and the columns run past the right edge.
    """
    opts = options or LayoutOptions()
    ordered = list(dict.fromkeys(categories))
    if not ordered:
        return {}

    count = len(ordered)
    available = max(
        opts.min_available_width,
        width - 2 * opts.outer_margin - (count - 1) * opts.column_gap,
    )
    column_width = max(opts.min_column_width, available / count)
    total_used = count * column_width + (count - 1) * opts.column_gap
    first_left = max(opts.outer_margin, (width - total_used) / 2)

    columns: dict[str, ColumnBounds] = {}
    for idx, category in enumerate(ordered):
        left = first_left + idx * (column_width + opts.column_gap)
        right = left + column_width
        columns[category] = ColumnBounds(
            category=category,
            left=left,
            right=right,
            inner_left=left + opts.column_inner_padding,
            inner_right=right - opts.column_inner_padding,
        )
    return columns


# ---------------------------------------------------------------------------
# Band placement
# ---------------------------------------------------------------------------

def _band_sort_key(node: SitemapNode) -> tuple:
    # Roots first, then siblings grouped by parent id, then title (case-insensitive)
    return (
        bool(node.parent),
        (node.parent or "").casefold(),
        (node.title or "").casefold(),
    )


def _spread(count: int, column: ColumnBounds) -> list[float]:
    """X slots for ``count`` nodes across a column's inner width."""
    if count <= 0:
        return []
    if count == 1:
        return [column.center_x]
    step = column.usable_width / (count - 1)
    return [column.inner_left + step * i for i in range(count)]


def place_bands(
    nodes: list[SitemapNode],
    columns: dict[str, ColumnBounds],
    depth_index: dict[int, list[SitemapNode]],
    options: Optional[LayoutOptions] = None,
) -> PlacementResult:
    """Give every node lacking a coordinate a slot in its (category, depth) band.

    Nodes whose ``x`` and ``y`` are both set keep their position, do not
    count as a slot and get no band assignment.  A node with only one
    coordinate set takes a slot but keeps that coordinate.
    """
    opts = options or LayoutOptions()
    result = PlacementResult()

    for node in nodes:
        if node.x is not None:
            result.pinned_x.add(node.id)
        if node.y is not None:
            result.pinned_y.add(node.id)

    by_category: dict[str, list[SitemapNode]] = {}
    for node in nodes:
        by_category.setdefault(node.category, []).append(node)

    for category, column in columns.items():
        bands: dict[int, list[SitemapNode]] = {}
        for node in by_category.get(category, []):
            bands.setdefault(node.depth or 0, []).append(node)

        for depth in depth_index:
            band = bands.get(depth)
            if not band:
                continue

            row_y = opts.row_y(depth)
            open_nodes = [n for n in sorted(band, key=_band_sort_key) if not n.has_position()]

            for node, slot_x in zip(open_nodes, _spread(len(open_nodes), column)):
                assigned_x = node.x is None
                assigned_y = node.y is None
                result.positions[node.id] = LayoutPosition(
                    x=slot_x if assigned_x else node.x,
                    y=row_y if assigned_y else node.y,
                )
                result.assignments[node.id] = BandAssignment(
                    category=category,
                    depth=depth,
                    column=column,
                    row_y=row_y,
                    assigned_x=assigned_x,
                    assigned_y=assigned_y,
                )

    for node in nodes:
        if node.has_position():
            result.positions[node.id] = LayoutPosition(x=node.x, y=node.y)

    return result


# ---------------------------------------------------------------------------
# Overlap relaxation
# ---------------------------------------------------------------------------

def _padded_overlap(
    a: LayoutPosition,
    a_size: tuple[float, float],
    b: LayoutPosition,
    b_size: tuple[float, float],
    padding: float,
) -> tuple[float, float]:
    """Overlap of two center-anchored boxes, each grown by ``padding``."""
    aw, ah = a_size
    bw, bh = b_size
    overlap_x = (
        min(a.x + aw / 2, b.x + bw / 2) - max(a.x - aw / 2, b.x - bw / 2) + 2 * padding
    )
    overlap_y = (
        min(a.y + ah / 2, b.y + bh / 2) - max(a.y - ah / 2, b.y - bh / 2) + 2 * padding
    )
    return overlap_x, overlap_y


def _push_apart(
    a: LayoutPosition,
    b: LayoutPosition,
    axis: str,
    overlap: float,
    a_pinned: bool,
    b_pinned: bool,
    strength: float,
) -> bool:
    """Move ``a`` and ``b`` apart along ``axis``. Returns False if neither can move."""
    if a_pinned and b_pinned:
        return False

    # The node with the lower coordinate moves toward lower values
    direction = -1.0 if getattr(a, axis) < getattr(b, axis) else 1.0

    if a_pinned:
        setattr(b, axis, getattr(b, axis) - direction * overlap * strength)
    elif b_pinned:
        setattr(a, axis, getattr(a, axis) + direction * overlap * strength)
    else:
        move = (overlap / 2) * strength
        setattr(a, axis, getattr(a, axis) + direction * move)
        setattr(b, axis, getattr(b, axis) - direction * move)
    return True


def relax_overlaps(
    nodes: list[SitemapNode],
    positions: dict[str, LayoutPosition],
    pinned_x: Iterable[str] = (),
    pinned_y: Iterable[str] = (),
    options: Optional[LayoutOptions] = None,
) -> RelaxationResult:
    """Greedy pairwise push-apart of overlapping boxes.

    Runs ``relax_iterations`` passes over every unordered pair of nodes that
    have a position (pairs visited in input order).  Overlapping pairs are
    pushed apart along the axis with the smaller overlap by
    ``overlap / 2 * strength`` each.  Pinned axes never move; when one side
    is pinned the other side takes the whole ``overlap * strength``.

    Stops early after a pass that pushed nothing.  Does not guarantee an
    overlap-free result.
    """
    opts = options or LayoutOptions()
    pinned_x = set(pinned_x)
    pinned_y = set(pinned_y)

    working = {nid: LayoutPosition(x=p.x, y=p.y) for nid, p in positions.items()}
    active = [n for n in dict((n.id, n) for n in nodes).values() if n.id in working]
    sizes = {n.id: n.estimate_size() for n in active}

    anchors: dict[str, LayoutPosition] = {}
    passes: list[RelaxationPass] = []

    for iteration in range(opts.relax_iterations):
        pushes = 0

        for i, node_a in enumerate(active):
            pos_a = working[node_a.id]
            size_a = sizes[node_a.id]

            for node_b in active[i + 1:]:
                pos_b = working[node_b.id]
                overlap_x, overlap_y = _padded_overlap(
                    pos_a, size_a, pos_b, sizes[node_b.id], opts.relax_padding
                )
                if overlap_x <= 0 or overlap_y <= 0:
                    continue

                if overlap_x < overlap_y:
                    moved = _push_apart(
                        pos_a, pos_b, "x", overlap_x,
                        node_a.id in pinned_x, node_b.id in pinned_x,
                        opts.relax_strength,
                    )
                else:
                    moved = _push_apart(
                        pos_a, pos_b, "y", overlap_y,
                        node_a.id in pinned_y, node_b.id in pinned_y,
                        opts.relax_strength,
                    )
                if not moved:
                    continue

                pushes += 1
                anchors[node_a.id] = LayoutPosition(x=pos_a.x, y=pos_a.y)
                anchors[node_b.id] = LayoutPosition(x=pos_b.x, y=pos_b.y)

        passes.append(RelaxationPass(
            index=iteration,
            pushes=pushes,
            anchors={nid: LayoutPosition(x=p.x, y=p.y) for nid, p in anchors.items()},
        ))
        logger.debug("Relaxation pass %d pushed %d pairs", iteration, pushes)

        if pushes == 0:
            break

    residual = count_overlaps(active, working, padding=opts.relax_padding)
    return RelaxationResult(
        positions=working,
        anchors=dict(anchors),
        passes=passes,
        residual_overlaps=residual,
    )


def count_overlaps(
    nodes: Iterable[SitemapNode],
    positions: Optional[dict[str, LayoutPosition]] = None,
    padding: float = 0.0,
) -> int:
    """Count node pairs whose (padded) boxes overlap on both axes.

    Positions come from ``positions`` when given, otherwise from the nodes'
    own ``x``/``y``.  Nodes without a position are ignored.
    """
    placed: list[tuple[LayoutPosition, tuple[float, float]]] = []
    for node in nodes:
        if positions is not None:
            pos = positions.get(node.id)
        elif node.has_position():
            pos = LayoutPosition(x=node.x, y=node.y)
        else:
            pos = None
        if pos is not None:
            placed.append((pos, node.estimate_size()))

    overlaps = 0
    for i, (pos_a, size_a) in enumerate(placed):
        for pos_b, size_b in placed[i + 1:]:
            overlap_x, overlap_y = _padded_overlap(pos_a, size_a, pos_b, size_b, padding)
            if overlap_x > 0 and overlap_y > 0:
                overlaps += 1
    return overlaps


# ---------------------------------------------------------------------------
# Bounds reconciliation
# ---------------------------------------------------------------------------

def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def reconcile_bounds(
    positions: dict[str, LayoutPosition],
    assignments: dict[str, BandAssignment],
    options: Optional[LayoutOptions] = None,
) -> dict[str, LayoutPosition]:
    """Clamp relaxed positions back into each node's column and row window.

    Only axes the band placer assigned are clamped; nodes with no
    assignment are copied through unchanged.
    """
    opts = options or LayoutOptions()
    max_offset = opts.max_row_offset

    reconciled: dict[str, LayoutPosition] = {}
    for node_id, pos in positions.items():
        x, y = pos.x, pos.y
        assignment = assignments.get(node_id)
        if assignment is not None:
            if assignment.assigned_x:
                x = _clamp(x, assignment.column.inner_left, assignment.column.inner_right)
            if assignment.assigned_y:
                y = _clamp(y, assignment.row_y - max_offset, assignment.row_y + max_offset)
        reconciled[node_id] = LayoutPosition(x=x, y=y)
    return reconciled


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def apply_grouped_layout(
    nodes: Iterable[SitemapNode],
    options: Optional[LayoutOptions] = None,
) -> LayoutResult:
    """Compute the grouped-column layout without modifying the nodes.

    Steps:
    1. Index nodes by depth (rows shared by all categories)
    2. Allocate one column per category
    3. Place unpositioned nodes in their (category, depth) band
    4. Relax overlaps
    5. Clamp placed nodes back into their column / row window
    """
    opts = options or LayoutOptions()
    nodes = list(nodes)
    if not nodes:
        return LayoutResult()

    # --- Step 1 + 2: read-only passes ---
    depth_index = build_depth_index(nodes)
    columns = allocate_columns(_categories_in_order(nodes), opts.width, opts)

    deepest_row = opts.row_y(max(depth_index))
    if deepest_row > opts.height:
        logger.debug(
            "Deepest row at y=%.0f extends below canvas height %.0f",
            deepest_row, opts.height,
        )

    # --- Step 3: band placement ---
    placement = place_bands(nodes, columns, depth_index, opts)

    # --- Step 4: relaxation ---
    relaxed = relax_overlaps(
        nodes, placement.positions, placement.pinned_x, placement.pinned_y, opts
    )

    # --- Step 5: reconcile (anchors too, so fx/fy stay inside the column) ---
    positions = reconcile_bounds(relaxed.positions, placement.assignments, opts)
    anchors = reconcile_bounds(relaxed.anchors, placement.assignments, opts)

    residual = count_overlaps(nodes, positions)
    if residual:
        logger.info(
            "Layout finished with %d overlapping node pairs after %d passes",
            residual, len(relaxed.passes),
        )

    return LayoutResult(
        positions=positions,
        anchors=anchors,
        columns=columns,
        assignments=placement.assignments,
        passes=relaxed.passes,
        residual_overlaps=residual,
    )


def _target_nodes(target: Union[Sitemap, Iterable[SitemapNode]]) -> list[SitemapNode]:
    if isinstance(target, Sitemap):
        return target.nodes
    return list(target)


def layout_sitemap(
    target: Union[Sitemap, Iterable[SitemapNode]],
    options: Optional[LayoutOptions] = None,
) -> LayoutResult:
    """Lay out a sitemap (or a node list), writing positions in-place.

    Only missing ``x``/``y`` values are written.  ``fx``/``fy`` are set on
    every node the relaxer pushed.  For a full re-layout, call
    ``Sitemap.reset_positions()`` first.

    When ``options`` is omitted and a ``Sitemap`` is given, the canvas size
    comes from the sitemap.
    """
    if options is None and isinstance(target, Sitemap):
        options = LayoutOptions.from_sitemap(target)
    nodes = _target_nodes(target)

    result = apply_grouped_layout(nodes, options)

    for node in nodes:
        pos = result.positions.get(node.id)
        if pos is None:
            continue
        if node.x is None:
            node.x = pos.x
        if node.y is None:
            node.y = pos.y
        anchor = result.anchors.get(node.id)
        if anchor is not None:
            node.fx = anchor.x
            node.fy = anchor.y

    return result


def relayout_group(
    target: Union[Sitemap, Iterable[SitemapNode]],
    category: str,
    spacing_x: float = GROUP_GRID_SPACING_X,
    spacing_y: float = GROUP_GRID_SPACING_Y,
) -> dict[str, LayoutPosition]:
    """Rearrange one category's nodes into a compact grid, in-place.

    The grid has ``ceil(sqrt(n))`` columns and starts at the group's current
    top-left corner (missing coordinates count as 0).  Unlike
    ``layout_sitemap`` this overwrites existing positions and anchors the
    nodes there (``fx``/``fy``).  Nodes of other categories are untouched.
    """
    group = [n for n in _target_nodes(target) if n.category == category]
    if not group:
        return {}

    min_x = min(n.x or 0 for n in group)
    min_y = min(n.y or 0 for n in group)
    grid_columns = math.ceil(math.sqrt(len(group)))

    layout: dict[str, LayoutPosition] = {}
    for idx, node in enumerate(group):
        row, col = divmod(idx, grid_columns)
        pos = LayoutPosition(x=min_x + col * spacing_x, y=min_y + row * spacing_y)
        node.x = node.fx = pos.x
        node.y = node.fy = pos.y
        layout[node.id] = pos

    logger.debug("Re-laid out %d nodes in group '%s'", len(group), category)
    return layout
