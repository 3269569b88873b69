"""Fold a flat node list into a parent/child forest."""

import logging
from collections.abc import Iterable, Iterator, Sequence

from proctree.config import ParentExclusion
from proctree.models import ProcessNode

logger = logging.getLogger(__name__)


def build_forest(
    nodes: Sequence[ProcessNode],
    exclusion: ParentExclusion | None = None,
) -> list[ProcessNode]:
    """
    Link ``nodes`` to their parents and return the roots.

    The parent of a node is the first node in ``nodes`` with a matching pid,
    the same service classification, and not excluded by ``exclusion``.
    Nodes without such a parent are roots. Roots keep their input order and
    children are appended in input order. The input nodes are modified in
    place.

    A node is never attached to itself, and an attachment that would close a
    cycle (possible after pid reuse) is refused.
    """
    if exclusion is None:
        exclusion = ParentExclusion()

    # First eligible candidate per (pid, is_service), in input order
    candidates: dict[tuple[int, bool], list[ProcessNode]] = {}
    for node in nodes:
        candidates.setdefault((node.pid, node.is_service), []).append(node)

    parent_of: dict[int, ProcessNode] = {}
    roots: list[ProcessNode] = []

    for node in nodes:
        parent = _find_parent(node, candidates, exclusion)
        if parent is not None and _is_ancestor(node, parent, parent_of):
            logger.debug("Refusing to attach pid %d under pid %d: cycle", node.pid, parent.pid)
            parent = None

        if parent is None:
            roots.append(node)
            continue

        parent.children.append(node)
        parent_of[id(node)] = parent

    logger.debug("Built forest of %d roots from %d nodes", len(roots), len(nodes))
    return roots


def _find_parent(
    node: ProcessNode,
    candidates: dict[tuple[int, bool], list[ProcessNode]],
    exclusion: ParentExclusion,
) -> ProcessNode | None:
    for candidate in candidates.get((node.ppid, node.is_service), ()):
        if candidate is node or exclusion.excludes(candidate):
            continue
        return candidate
    return None


def _is_ancestor(
    node: ProcessNode,
    parent: ProcessNode,
    parent_of: dict[int, ProcessNode],
) -> bool:
    """True if ``node`` is ``parent`` or one of its ancestors."""
    current: ProcessNode | None = parent
    while current is not None:
        if current is node:
            return True
        current = parent_of.get(id(current))
    return False


def walk(roots: Iterable[ProcessNode]) -> Iterator[ProcessNode]:
    """Yield every node of the forest, depth first."""
    for root in roots:
        yield from root.walk()


def render_forest(roots: Iterable[ProcessNode], indent: str = "  ") -> str:
    """Render the forest as indented text, one node per line."""
    lines: list[str] = []

    def visit(node: ProcessNode, depth: int) -> None:
        label = node.name if node.name is not None else "<exited>"
        suffix = " [service]" if node.is_service else ""
        lines.append(f"{indent * depth}{label} ({node.pid}){suffix}")
        for child in node.children:
            visit(child, depth + 1)

    for root in roots:
        visit(root, 0)
    return "\n".join(lines)
