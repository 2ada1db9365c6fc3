#!/usr/bin/env python3
"""lsystem_tree.py

Generates tree skeletons from an L-system and exports them as SVG.

Key features:
- JSON-based input configuration.
- Single-rule grammar expansion with a bounded output size.
- 3D turtle interpretation into width-tapered segments.
- Branching via push/pop, with a parent/child hierarchy between segments.
- Leaf tagging and tapered SVG output.
- Random config generator for "regenerate" style experimentation.

Run:
  python lsystem_tree.py render config.json output.svg
  python lsystem_tree.py validate config.json
  python lsystem_tree.py random out.json --seed 123
  python lsystem_tree.py --help
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import os
import random
import sys
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, cast

import numpy as np

_LOGGER = logging.getLogger(__name__)

Point3 = tuple[float, float, float]

FORWARD = "F"
NOTHING = "f"
PLUS = "+"
MINUS = "-"
BRANCH_LEFT = "["
BRANCH_RIGHT = "]"

DEFAULT_MAX_SYMBOLS = 500_000

# Candidate rules picked from when regenerating a tree.
POSSIBLE_RULES: tuple[str, ...] = (
    "FF+[+F-F-F]-[-F+F+F]",
    "F+F-F-F+F",
    "FF+[+F-F]-[-F+F]",
    "F+F+[F-F]-[F+F]",
    "F-F+[F+F]-[F-F]",
)


# -------------------------
# Errors / Validation
# -------------------------


class ConfigError(ValueError):
    pass


class InvalidParameterError(ConfigError):
    pass


class LSystemError(Exception):
    pass


class MalformedSequenceError(LSystemError):
    """A branch close marker was found with no open branch to restore."""

    def __init__(self, index: int) -> None:
        self.index = index
        super().__init__(
            f"unbalanced branch markers: '{BRANCH_RIGHT}' at index {index} "
            f"has no matching '{BRANCH_LEFT}'"
        )


class ExpansionLimitError(LSystemError):
    def __init__(self, limit: int, predicted: int) -> None:
        self.limit = limit
        self.predicted = predicted
        super().__init__(
            f"expansion would produce {predicted} symbols, above the limit of "
            f"{limit}; lower iterations or use a shorter rule"
        )


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ConfigError(msg)


def _check_param(cond: bool, msg: str) -> None:
    if not cond:
        raise InvalidParameterError(msg)


def _as_float(x: Any, path: str) -> float:
    _require(
        isinstance(x, (int, float)) and not isinstance(x, bool),
        f"{path} must be a number",
    )
    return float(x)


def _as_int(x: Any, path: str) -> int:
    _require(
        isinstance(x, int) and not isinstance(x, bool), f"{path} must be an integer"
    )
    return int(x)


def _as_str(x: Any, path: str) -> str:
    _require(isinstance(x, str), f"{path} must be a string")
    return cast(str, x)


def _as_bool(x: Any, path: str) -> bool:
    _require(isinstance(x, bool), f"{path} must be a boolean")
    return cast(bool, x)


def _as_dict(x: Any, path: str) -> dict[str, Any]:
    _require(isinstance(x, dict), f"{path} must be an object")
    return cast(dict[str, Any], x)


def _as_point3(x: Any, path: str, default: Point3) -> Point3:
    obj = _as_dict(x, path)
    return (
        _as_float(obj.get("x", default[0]), f"{path}.x"),
        _as_float(obj.get("y", default[1]), f"{path}.y"),
        _as_float(obj.get("z", default[2]), f"{path}.z"),
    )


# -------------------------
# Geometry model
# -------------------------


@dataclass(frozen=True)
class Segment:
    """One drawn unit of the tree, produced by a single FORWARD symbol.

    ``parent`` is the segment that was active when this one was created. It is
    left out of equality and repr so long chains compare without recursing.
    """

    id: int
    start: Point3
    end: Point3
    start_width: float
    end_width: float
    parent: Segment | None = field(default=None, compare=False, repr=False)

    @property
    def parent_id(self) -> int | None:
        return None if self.parent is None else self.parent.id

    @property
    def length(self) -> float:
        return math.dist(self.start, self.end)


@dataclass(frozen=True)
class TurtleState:
    position: Point3
    direction: Point3
    width: float
    owner: Segment | None = None


@dataclass(frozen=True)
class TurtleParams:
    step_length: float = 2.0
    turn_angle_deg: float = 20.0
    start_width: float = 0.8
    width_factor: float = 0.9
    start_position: Point3 = (0.0, 0.0, 0.0)
    start_direction: Point3 = (0.0, 1.0, 0.0)
    # Positive turns are clockwise when viewed from +Z.
    rotation_axis: Point3 = (0.0, 0.0, -1.0)


@dataclass
class SegmentCounter:
    """Hands out segment ids for one generation run.

    Share an instance between runs to keep ids unique across them.
    """

    next_id: int = 0

    def take(self) -> int:
        value = self.next_id
        self.next_id += 1
        return value


def _unit(v: Point3, path: str) -> np.ndarray:
    arr = np.asarray(v, dtype=float)
    norm = float(np.linalg.norm(arr))
    _check_param(math.isfinite(norm) and norm > 0, f"{path} must be a non-zero vector")
    return arr / norm


def _as_point(arr: np.ndarray) -> Point3:
    return (float(arr[0]), float(arr[1]), float(arr[2]))


def _rotation_matrix(axis: np.ndarray, angle_deg: float) -> np.ndarray:
    """Rodrigues rotation matrix about a unit axis."""
    theta = math.radians(angle_deg)
    c, s = math.cos(theta), math.sin(theta)
    x, y, z = axis
    k = np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])
    return c * np.eye(3) + s * k + (1.0 - c) * np.outer(axis, axis)


def validate_params(params: TurtleParams) -> None:
    _check_param(
        math.isfinite(params.step_length) and params.step_length > 0,
        "turtle.length must be > 0",
    )
    _check_param(
        math.isfinite(params.turn_angle_deg), "turtle.angle must be a finite number"
    )
    _check_param(
        math.isfinite(params.start_width) and params.start_width >= 0,
        "turtle.width must be >= 0",
    )
    _check_param(
        math.isfinite(params.width_factor) and params.width_factor >= 0,
        "turtle.width_factor must be >= 0",
    )
    _check_param(
        all(math.isfinite(c) for c in params.start_position),
        "turtle.start must have finite coordinates",
    )
    _unit(params.start_direction, "turtle.direction")
    _unit(params.rotation_axis, "turtle.axis")


# -------------------------
# Grammar expansion
# -------------------------


def expanded_length(
    axiom: str, rule: str, iterations: int, *, limit: int | None = None
) -> int:
    """Length of ``expand(axiom, rule, iterations)`` without expanding.

    With ``limit`` set, ExpansionLimitError is raised as soon as a pass would
    grow past it.
    """
    _require(iterations >= 0, "iterations must be >= 0")
    length = len(axiom)
    if limit is not None and length > limit:
        raise ExpansionLimitError(limit, length)

    forwards = axiom.count(FORWARD)
    growth = rule.count(FORWARD)
    if growth == 1:
        # Every pass adds the same number of symbols.
        length += forwards * (len(rule) - 1) * iterations
    else:
        for _ in range(iterations):
            if forwards == 0:
                break
            length += forwards * (len(rule) - 1)
            forwards *= growth
            if limit is not None and length > limit:
                raise ExpansionLimitError(limit, length)

    if limit is not None and length > limit:
        raise ExpansionLimitError(limit, length)
    return length


def expand(
    axiom: str, rule: str, iterations: int, *, max_length: int | None = None
) -> str:
    """Rewrite every FORWARD in ``axiom`` to ``rule``, ``iterations`` times.

    All other symbols are copied unchanged. With ``max_length`` set, the final
    size is predicted first and ExpansionLimitError is raised before any
    oversized string is built.
    """
    if max_length is not None:
        expanded_length(axiom, rule, iterations, limit=max_length)
    _require(iterations >= 0, "iterations must be >= 0")

    if rule.count(FORWARD) == 1:
        # F -> aFb applied n times is a^n F b^n.
        prefix, _, suffix = rule.partition(FORWARD)
        return axiom.replace(
            FORWARD, prefix * iterations + FORWARD + suffix * iterations
        )

    result = axiom
    for _ in range(iterations):
        if FORWARD not in result:
            break
        result = result.replace(FORWARD, rule)
    return result


# -------------------------
# Turtle interpreter
# -------------------------


def check_brackets(symbols: Iterable[str]) -> int:
    """Fail fast on a close marker with nothing to pop.

    Returns how many branches are still open at the end of the sequence.
    """
    depth = 0
    for i, sym in enumerate(symbols):
        if sym == BRANCH_LEFT:
            depth += 1
        elif sym == BRANCH_RIGHT:
            if depth == 0:
                raise MalformedSequenceError(i)
            depth -= 1
    return depth


def interpret(
    symbols: Sequence[str],
    params: TurtleParams,
    *,
    counter: SegmentCounter | None = None,
) -> list[Segment]:
    """Walk ``symbols`` with a turtle and return the segments it draws.

    Segments come back in creation order, so every parent precedes its
    children. Unknown symbols are ignored.
    """
    validate_params(params)
    open_branches = check_brackets(symbols)
    if open_branches:
        _LOGGER.debug("%d branch(es) left open at end of sequence", open_branches)

    if counter is None:
        counter = SegmentCounter()

    step = float(params.step_length)
    factor = float(params.width_factor)
    axis = _unit(params.rotation_axis, "turtle.axis")
    turn_plus = _rotation_matrix(axis, params.turn_angle_deg)
    turn_minus = _rotation_matrix(axis, -params.turn_angle_deg)

    position = np.asarray(params.start_position, dtype=float)
    direction = _unit(params.start_direction, "turtle.direction")
    width = float(params.start_width)
    owner: Segment | None = None

    stack: list[TurtleState] = []
    segments: list[Segment] = []

    for sym in symbols:
        if sym == FORWARD:
            start = _as_point(position)
            position = position + direction * step
            segment = Segment(
                id=counter.take(),
                start=start,
                end=_as_point(position),
                start_width=width,
                end_width=width * factor,
                parent=owner,
            )
            segments.append(segment)
            owner = segment
            width *= factor
            continue

        if sym == NOTHING:
            position = position + direction * step
            continue

        if sym == PLUS:
            direction = turn_plus @ direction
            continue

        if sym == MINUS:
            direction = turn_minus @ direction
            continue

        if sym == BRANCH_LEFT:
            stack.append(
                TurtleState(_as_point(position), _as_point(direction), width, owner)
            )
            continue

        if sym == BRANCH_RIGHT:
            # Balance was checked up front, so the stack is never empty here.
            st = stack.pop()
            position = np.asarray(st.position, dtype=float)
            direction = np.asarray(st.direction, dtype=float)
            width = st.width
            owner = st.owner
            continue

    return segments


# -------------------------
# Hierarchy
# -------------------------


def find_leaves(segments: Iterable[Segment]) -> set[int]:
    """Ids of the segments that no other segment uses as parent."""
    segments = list(segments)
    parents = {s.parent_id for s in segments if s.parent is not None}
    return {s.id for s in segments if s.id not in parents}


def children_by_parent(segments: Iterable[Segment]) -> dict[int | None, list[Segment]]:
    groups: dict[int | None, list[Segment]] = {}
    for s in segments:
        groups.setdefault(s.parent_id, []).append(s)
    return groups


def segments_to_arrays(
    segments: Sequence[Segment],
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Pack segments into arrays for bulk consumers.

    Returns ``coords`` (N, 2, 3), ``widths`` (N, 2) and ``parents`` (N,), where
    a parent is the index of the parent segment in ``segments`` or -1.
    """
    if not segments:
        return (
            np.zeros((0, 2, 3), dtype=float),
            np.zeros((0, 2), dtype=float),
            np.zeros((0,), dtype=np.int64),
        )
    index = {s.id: i for i, s in enumerate(segments)}
    coords = np.array([(s.start, s.end) for s in segments], dtype=float)
    widths = np.array([(s.start_width, s.end_width) for s in segments], dtype=float)
    parents = np.array(
        [-1 if s.parent_id is None else index.get(s.parent_id, -1) for s in segments],
        dtype=np.int64,
    )
    return coords, widths, parents


# -------------------------
# Config
# -------------------------


@dataclass(frozen=True)
class SvgStyle:
    fill: str = "#6b4226"
    stroke: str = "none"
    stroke_width: float = 0.0
    stroke_linejoin: str = "round"


@dataclass(frozen=True)
class SvgOptions:
    margin: float = 10.0
    precision: int = 3
    flip_y: bool = True
    scale: float = 1.0
    width: float | None = None
    height: float | None = None
    background: str | None = None
    branch: SvgStyle = SvgStyle()
    leaf: SvgStyle = SvgStyle(fill="#3a7d2c")


@dataclass(frozen=True)
class TreeConfig:
    name: str
    axiom: str
    rules: tuple[str, ...]
    rule_index: int | None
    seed: int | None
    iterations: int
    max_symbols: int
    turtle: TurtleParams
    svg: SvgOptions


def _parse_style(x: Any, path: str, default: SvgStyle) -> SvgStyle:
    obj = _as_dict(x, path)
    stroke_width = _as_float(
        obj.get("stroke_width", default.stroke_width), f"{path}.stroke_width"
    )
    _require(stroke_width >= 0, f"{path}.stroke_width must be >= 0")
    return SvgStyle(
        fill=_as_str(obj.get("fill", default.fill), f"{path}.fill"),
        stroke=_as_str(obj.get("stroke", default.stroke), f"{path}.stroke"),
        stroke_width=stroke_width,
        stroke_linejoin=_as_str(
            obj.get("stroke_linejoin", default.stroke_linejoin),
            f"{path}.stroke_linejoin",
        ),
    )


def parse_config(obj: dict[str, Any]) -> TreeConfig:
    obj = _as_dict(obj, "root")

    name = _as_str(obj.get("name", "L-System Tree"), "name")
    axiom = _as_str(obj.get("axiom", FORWARD), "axiom")

    _require(
        "rule" in obj or "rules" in obj, "either rule or rules must be provided"
    )
    _require(not ("rule" in obj and "rules" in obj), "use only one of rule or rules")
    if "rule" in obj:
        rules: tuple[str, ...] = (_as_str(obj["rule"], "rule"),)
    else:
        _require(isinstance(obj["rules"], list), "rules must be a list of strings")
        rules = tuple(_as_str(r, f"rules[{i}]") for i, r in enumerate(obj["rules"]))
        _require(len(rules) > 0, "rules must not be empty")

    rule_index = obj.get("rule_index")
    if rule_index is not None:
        rule_index = _as_int(rule_index, "rule_index")
        _require(
            0 <= rule_index < len(rules),
            f"rule_index must be between 0 and {len(rules) - 1}",
        )

    seed = obj.get("seed")
    if seed is not None:
        seed = _as_int(seed, "seed")

    iterations = _as_int(obj.get("iterations", 2), "iterations")
    _require(iterations >= 0, "iterations must be >= 0")

    max_symbols = _as_int(obj.get("max_symbols", DEFAULT_MAX_SYMBOLS), "max_symbols")
    _require(max_symbols > 0, "max_symbols must be > 0")

    defaults = TurtleParams()
    turtle = _as_dict(obj.get("turtle", {}), "turtle")
    params = TurtleParams(
        step_length=_as_float(
            turtle.get("length", defaults.step_length), "turtle.length"
        ),
        turn_angle_deg=_as_float(
            turtle.get("angle", defaults.turn_angle_deg), "turtle.angle"
        ),
        start_width=_as_float(turtle.get("width", defaults.start_width), "turtle.width"),
        width_factor=_as_float(
            turtle.get("width_factor", defaults.width_factor), "turtle.width_factor"
        ),
        start_position=_as_point3(
            turtle.get("start", {}), "turtle.start", defaults.start_position
        ),
        start_direction=_as_point3(
            turtle.get("direction", {}), "turtle.direction", defaults.start_direction
        ),
        rotation_axis=_as_point3(
            turtle.get("axis", {}), "turtle.axis", defaults.rotation_axis
        ),
    )
    validate_params(params)

    svg_defaults = SvgOptions()
    svg = _as_dict(obj.get("svg", {}), "svg")
    margin = _as_float(svg.get("margin", svg_defaults.margin), "svg.margin")
    _require(math.isfinite(margin) and margin >= 0, "svg.margin must be >= 0")
    precision = _as_int(svg.get("precision", svg_defaults.precision), "svg.precision")
    _require(0 <= precision <= 10, "svg.precision must be between 0 and 10")
    flip_y = _as_bool(svg.get("flip_y", svg_defaults.flip_y), "svg.flip_y")
    scale = _as_float(svg.get("scale", svg_defaults.scale), "svg.scale")
    _require(
        math.isfinite(scale) and scale > 0, "svg.scale must be a finite number > 0"
    )

    width = svg.get("width")
    height = svg.get("height")
    if width is not None:
        width = _as_float(width, "svg.width")
        _require(width > 0, "svg.width must be > 0")
    if height is not None:
        height = _as_float(height, "svg.height")
        _require(height > 0, "svg.height must be > 0")

    background = svg.get("background")
    if background is not None:
        background = _as_str(background, "svg.background")

    return TreeConfig(
        name=name,
        axiom=axiom,
        rules=rules,
        rule_index=rule_index,
        seed=seed,
        iterations=iterations,
        max_symbols=max_symbols,
        turtle=params,
        svg=SvgOptions(
            margin=margin,
            precision=precision,
            flip_y=flip_y,
            scale=scale,
            width=width,
            height=height,
            background=background,
            branch=_parse_style(
                svg.get("branch", {}), "svg.branch", svg_defaults.branch
            ),
            leaf=_parse_style(svg.get("leaf", {}), "svg.leaf", svg_defaults.leaf),
        ),
    )


def load_json(path: str) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        try:
            return cast(dict[str, Any], json.load(f))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e


def dump_json(obj: dict[str, Any], path: str) -> None:
    _ensure_parent_dir(path)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, ensure_ascii=False)
        f.write("\n")


# -------------------------
# Tree generation
# -------------------------


@dataclass(frozen=True)
class Tree:
    name: str
    rule: str
    symbols: str
    segments: list[Segment]
    leaves: frozenset[int]

    def is_leaf(self, segment: Segment) -> bool:
        return segment.id in self.leaves


def choose_rule(config: TreeConfig, rng: random.Random | None = None) -> str:
    """Pick the rule for one generation.

    An explicit ``rule_index`` wins; otherwise a single rule is used as is and
    a candidate set is sampled with ``rng`` (seeded from the config if absent).
    """
    if config.rule_index is not None:
        return config.rules[config.rule_index]
    if len(config.rules) == 1:
        return config.rules[0]
    if rng is None:
        rng = random.Random(config.seed)
    return rng.choice(config.rules)


def generate_tree(
    config: TreeConfig,
    *,
    counter: SegmentCounter | None = None,
    rng: random.Random | None = None,
    rule: str | None = None,
) -> Tree:
    """Expand, interpret and tag leaves for one tree.

    ``rule`` skips rule selection; ``counter`` lets several trees share ids.
    """
    if rule is None:
        rule = choose_rule(config, rng)
    symbols = expand(
        config.axiom, rule, config.iterations, max_length=config.max_symbols
    )
    _LOGGER.debug(
        "expanded %r with rule %r over %d iteration(s): %d symbols",
        config.axiom,
        rule,
        config.iterations,
        len(symbols),
    )

    segments = interpret(symbols, config.turtle, counter=counter)
    leaves = find_leaves(segments)
    _LOGGER.debug("%d segments, %d leaves", len(segments), len(leaves))
    if _LOGGER.isEnabledFor(logging.DEBUG):
        for s in segments:
            if s.id in leaves:
                _LOGGER.debug("leaf segment %d ends at %s", s.id, s.end)

    return Tree(
        name=config.name,
        rule=rule,
        symbols=symbols,
        segments=segments,
        leaves=frozenset(leaves),
    )


# -------------------------
# SVG writing
# -------------------------


def _ensure_parent_dir(path: str) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)) or ".", exist_ok=True)


def compute_bounds(segments: Sequence[Segment]) -> tuple[float, float, float, float]:
    """XY bounds of all segment endpoints, padded by half the widest segment."""
    _require(len(segments) > 0, "No drawable geometry produced.")
    coords, widths, _ = segments_to_arrays(segments)
    xy = coords[:, :, :2].reshape(-1, 2)
    pad = float(widths.max()) / 2.0
    min_x, min_y = xy.min(axis=0) - pad
    max_x, max_y = xy.max(axis=0) + pad
    return (float(min_x), float(min_y), float(max_x), float(max_y))


def _fmt(x: float, precision: int) -> str:
    # Normalise -0.0 so it never produces "-0" in SVG output.
    if not x:
        x = 0.0
    s = f"{x:.{precision}f}"
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s or "0"


def _segment_outline(segment: Segment, scale: float) -> np.ndarray:
    """Trapezoid around a segment's XY projection, tapered by its widths."""
    p0 = np.asarray(segment.start[:2], dtype=float) * scale
    p1 = np.asarray(segment.end[:2], dtype=float) * scale
    d = p1 - p0
    norm = float(np.linalg.norm(d))
    if norm == 0:
        normal = np.zeros(2)
    else:
        normal = np.array([-d[1], d[0]]) / norm
    h0 = normal * segment.start_width * scale / 2.0
    h1 = normal * segment.end_width * scale / 2.0
    return np.array([p0 + h0, p1 + h1, p1 - h1, p0 - h0])


def _style_attr(style: SvgStyle, precision: int) -> str:
    return (
        f'fill="{style.fill}" stroke="{style.stroke}" '
        f'stroke-width="{_fmt(style.stroke_width, precision)}" '
        f'stroke-linejoin="{style.stroke_linejoin}"'
    )


def write_svg(
    tree: Tree,
    *,
    out_path: str,
    options: SvgOptions,
    title: str | None = None,
) -> None:
    precision = options.precision
    minx, miny, maxx, maxy = (
        v * options.scale for v in compute_bounds(tree.segments)
    )

    minx -= options.margin
    miny -= options.margin
    maxx += options.margin
    maxy += options.margin
    w = maxx - minx
    h = maxy - miny
    _require(
        w > 0 and h > 0,
        "Degenerate bounds after margin (width or height is zero). "
        "Set svg.margin > 0 to render collinear geometry.",
    )

    svg_w_attr = (
        f' width="{_fmt(float(options.width), precision)}"' if options.width else ""
    )
    svg_h_attr = (
        f' height="{_fmt(float(options.height), precision)}"' if options.height else ""
    )

    view_box = (
        f"{_fmt(minx, precision)} {_fmt(miny, precision)} {_fmt(w, precision)} "
        f"{_fmt(h, precision)}"
    )

    lines: list[str] = []
    lines.append('<?xml version="1.0" encoding="UTF-8"?>')
    lines.append(
        "<svg xmlns=\"http://www.w3.org/2000/svg\" version=\"1.1\" "
        f"viewBox=\"{view_box}\"{svg_w_attr}{svg_h_attr}>"
    )

    if title:
        safe_title = (
            title.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        )
        lines.append(f"  <title>{safe_title}</title>")

    if options.background and options.background.lower() != "none":
        lines.append(
            f'  <rect x="{_fmt(minx, precision)}" y="{_fmt(miny, precision)}" '
            f'width="{_fmt(w, precision)}" height="{_fmt(h, precision)}" '
            f'fill="{options.background}" />'
        )

    branch_attr = _style_attr(options.branch, precision)
    leaf_attr = _style_attr(options.leaf, precision)

    if options.flip_y:
        # Turtle "up" is +Y; flip about the centre line so it points up on screen.
        flip_y_line = _fmt(miny + maxy, precision)
        lines.append(f'  <g transform="translate(0,{flip_y_line}) scale(1,-1)">')
        indent = "    "
    else:
        indent = "  "

    for segment in tree.segments:
        outline = _segment_outline(segment, options.scale)
        pts = " ".join(
            f"{_fmt(x, precision)},{_fmt(y, precision)}" for x, y in outline
        )
        if tree.is_leaf(segment):
            kind, attr = "leaf", leaf_attr
        else:
            kind, attr = "branch", branch_attr
        lines.append(
            f'{indent}<polygon id="segment-{segment.id}" class="{kind}" '
            f'points="{pts}" {attr} />'
        )

    if options.flip_y:
        lines.append("  </g>")

    lines.append("</svg>")

    _ensure_parent_dir(out_path)
    with open(out_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))
        f.write("\n")


# -------------------------
# Random config generator
# -------------------------


def generate_random_config(seed: int | None = None) -> dict[str, Any]:
    """Config for a freshly regenerated tree.

    One candidate rule is picked, then iterations, angle and branch length are
    drawn from the same ranges the interactive "randomize" action uses.
    """
    rng = random.Random(seed)

    rule = rng.choice(POSSIBLE_RULES)
    iterations = rng.randint(2, 3)
    angle = round(rng.uniform(10.0, 40.0), 3)
    length = round(rng.uniform(1.0, 2.0), 3)

    cfg = {
        "name": "Random L-System Tree",
        "axiom": FORWARD,
        "rule": rule,
        "iterations": iterations,
        "turtle": {
            "angle": angle,
            "length": length,
            "width": 0.8,
            "width_factor": 0.9,
            "start": {"x": 0, "y": 0, "z": 0},
            "direction": {"x": 0, "y": 1, "z": 0},
        },
        "svg": {
            "margin": 10,
            "precision": 3,
            "flip_y": True,
            "scale": 20,
            "branch": {"fill": "#6b4226"},
            "leaf": {"fill": "#3a7d2c"},
        },
    }

    # Internal sanity check: generated config must always parse cleanly.
    parse_config(cfg)
    return cfg


# -------------------------
# CLI / Help
# -------------------------

HELP_EPILOG = r"""
INPUT JSON SYNTAX (render, validate)

Top-level keys

  name: string (optional, default "L-System Tree")
      Written into the SVG <title>.

  axiom: string (default "F")
      The initial word. May be empty.

  rule: string
      Replacement for every "F" on each iteration. Other symbols are copied.

  rules: list of strings
      Candidate rules instead of a single "rule". One is picked per run:
      rules[rule_index] if rule_index is set, otherwise at random (seeded by
      "seed" when present).

  iterations: integer >= 0 (default 2)

  max_symbols: integer > 0 (default 500000)
      Upper bound on the expanded word length. Exceeding it is an error.

  turtle: object (optional)
    turtle.angle: number degrees (default 20)
    turtle.length: number > 0 (default 2)
    turtle.width: number >= 0 (default 0.8)
        Width at the base of the first segment.
    turtle.width_factor: number >= 0 (default 0.9)
        Each segment ends at width * width_factor.
    turtle.start: {x, y, z} (default origin)
    turtle.direction: {x, y, z} (default {0, 1, 0}, i.e. up)
    turtle.axis: {x, y, z} (default {0, 0, -1})
        Rotation axis for "+" and "-". The default turns "+" clockwise on screen.

Symbols

  F   draw a segment forward
  f   move forward without drawing
  +   turn by +angle
  -   turn by -angle
  [   save the turtle state
  ]   restore the last saved state (error if none is saved)
  any other character is ignored

SVG options

  svg.margin: number >= 0 (default 10)
  svg.precision: integer 0..10 (default 3)
  svg.flip_y: boolean (default true)
  svg.scale: number > 0 (default 1)
      Multiplies coordinates and widths.
  svg.width / svg.height: number (optional)
  svg.background: string color (optional)
  svg.branch / svg.leaf: {fill, stroke, stroke_width, stroke_linejoin}
      Styles for inner segments and for terminal (leaf) segments.

Example

    {
      "axiom": "F",
      "rule": "FF+[+F-F-F]-[-F+F+F]",
      "iterations": 3,
      "turtle": {"angle": 22.5, "length": 2, "width": 0.8, "width_factor": 0.9},
      "svg": {"scale": 10}
    }

RANDOM INPUT GENERATION (random)

  python lsystem_tree.py random out.json --seed 123
"""


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="lsystem-tree",
        description="L-system tree skeleton generator with SVG output.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=HELP_EPILOG,
    )
    p.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    pr = sub.add_parser(
        "render",
        help="Render a tree JSON config to an SVG file.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    pr.add_argument("config", help="Path to the input JSON config.")
    pr.add_argument("output", help="Path to write the SVG output.")

    pv = sub.add_parser(
        "validate",
        help="Validate a JSON config and print a brief summary.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    pv.add_argument("config", help="Path to the input JSON config.")

    pg = sub.add_parser(
        "random",
        help="Generate a random JSON config for experimentation.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    pg.add_argument("output", help="Where to write the generated JSON file.")
    pg.add_argument(
        "--seed", type=int, default=None, help="Seed for repeatable randomness."
    )

    return p


# -------------------------
# Commands
# -------------------------


def cmd_render(config_path: str, output_path: str) -> None:
    cfg = parse_config(load_json(config_path))
    tree = generate_tree(cfg)
    write_svg(tree, out_path=output_path, options=cfg.svg, title=cfg.name)


def cmd_validate(config_path: str) -> None:
    cfg = parse_config(load_json(config_path))
    params = cfg.turtle

    print(f"name: {cfg.name}")
    print(f"axiom length: {len(cfg.axiom)}")
    print(f"iterations: {cfg.iterations}")
    print(f"rules: {len(cfg.rules)}")
    print(
        "turtle: "
        f"angle={params.turn_angle_deg} length={params.step_length} "
        f"width={params.start_width} width_factor={params.width_factor}"
    )

    rule = choose_rule(cfg)
    print(f"rule: {rule}")
    predicted = expanded_length(
        cfg.axiom, rule, cfg.iterations, limit=cfg.max_symbols
    )
    print(f"symbols: {predicted}")

    tree = generate_tree(cfg, rule=rule)
    print(f"segments: {len(tree.segments)}")
    print(f"leaves: {len(tree.leaves)}")
    if not tree.segments:
        raise ConfigError("Config produces no drawable geometry")


def cmd_random(output_path: str, seed: int | None) -> None:
    cfg = generate_random_config(seed)
    dump_json(cfg, output_path)


def main(argv: list[str] | None = None) -> int:
    ap = build_argparser()
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.cmd == "render":
            cmd_render(args.config, args.output)
        elif args.cmd == "validate":
            cmd_validate(args.config)
        elif args.cmd == "random":
            cmd_random(args.output, args.seed)
        else:
            raise AssertionError("unreachable")
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2
    except LSystemError as e:
        print(f"Generation error: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        print(f"File error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
