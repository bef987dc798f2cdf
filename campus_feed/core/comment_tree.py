"""
Comment Tree Builder.

Rebuilds the reply hierarchy of a post from the flat list of comment rows.
The build works on indices (id -> position, per-position child lists) and only
materializes CommentNode objects at the end, so arbitrarily deep threads never
recurse.
"""
from collections import deque
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from campus_feed.models.dtos import Comment, CommentAuthor, CommentNode


def _resolve_parents(comments: List[Comment]) -> List[Optional[int]]:
    """Parent position for every comment, or None when it is a root."""
    index_by_id: Dict[str, int] = {}
    for index, comment in enumerate(comments):
        index_by_id.setdefault(comment.id, index)

    parents: List[Optional[int]] = []
    for index, comment in enumerate(comments):
        parent_index = None
        if comment.parent_comment_id is not None:
            # A missing parent (deleted row) leaves the reply as a root.
            parent_index = index_by_id.get(comment.parent_comment_id)
        if parent_index == index:
            parent_index = None
        parents.append(parent_index)
    return parents


def _break_cycles(parents: List[Optional[int]]) -> None:
    """
    Promote one member of every parent cycle to a root, in place.

    Without this, comments on a cycle would be reachable from no root and
    vanish from the output. The earliest comment of the cycle is promoted.
    """
    resolved = [False] * len(parents)
    for start in range(len(parents)):
        if resolved[start]:
            continue
        path: List[int] = []
        on_path: Dict[int, int] = {}
        current: Optional[int] = start
        while current is not None and not resolved[current]:
            if current in on_path:
                cycle = path[on_path[current]:]
                parents[min(cycle)] = None
                break
            on_path[current] = len(path)
            path.append(current)
            current = parents[current]
        for index in path:
            resolved[index] = True


def build_comment_tree(
    comments: Iterable[Comment],
    authors: Optional[Mapping[str, CommentAuthor]] = None,
) -> List[CommentNode]:
    """
    Group a flat comment list into a forest of CommentNode.

    Input is expected sorted by created_at ascending; the builder keeps that
    order for roots and for every reply list and never re-sorts. A comment whose
    parent is absent from the input becomes a root. Every input comment appears
    exactly once in the output.

    Args:
        comments: Flat comments of one post.
        authors: Optional profile lookup keyed by user id, attached as `author`.

    Returns:
        The root nodes, in input order.
    """
    flat = list(comments)
    authors = authors or {}
    parents = _resolve_parents(flat)
    _break_cycles(parents)

    nodes = [
        CommentNode(**comment.model_dump(exclude={"author", "depth", "replies"}), author=authors.get(comment.author_id))
        for comment in flat
    ]

    roots: List[CommentNode] = []
    for index, parent_index in enumerate(parents):
        if parent_index is None:
            roots.append(nodes[index])
        else:
            nodes[parent_index].replies.append(nodes[index])

    queue = deque((root, 0) for root in roots)
    while queue:
        node, depth = queue.popleft()
        node.depth = depth
        queue.extend((reply, depth + 1) for reply in node.replies)

    return roots


def iter_comment_tree(forest: Iterable[CommentNode]) -> Iterator[Tuple[CommentNode, int]]:
    """Depth-first, pre-order walk yielding (node, depth)."""
    stack = [(node, 0) for node in reversed(list(forest))]
    while stack:
        node, depth = stack.pop()
        yield node, depth
        stack.extend((reply, depth + 1) for reply in reversed(node.replies))


def count_nodes(forest: Iterable[CommentNode]) -> int:
    return sum(1 for _ in iter_comment_tree(forest))
