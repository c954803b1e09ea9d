from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from .selector import matches, query


class Element:
    __slots__ = ("attrs", "children", "name", "parent")

    name: str
    parent: Element | Fragment | None
    attrs: dict[str, str | None]
    children: list[Any]

    def __init__(self, name: str, attrs: dict[str, str | None] | None = None) -> None:
        self.name = name
        self.parent = None
        self.attrs = attrs if attrs is not None else {}
        self.children = []

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"

    def append_child(self, node: Any) -> None:
        if node.parent is not None:
            node.parent.remove_child(node)
        self.children.append(node)
        node.parent = self

    def remove_child(self, node: Any) -> None:
        self.children.remove(node)
        node.parent = None

    def insert_before(self, node: Any, reference_node: Any | None) -> None:
        """
        Insert a node before a reference node.

        Args:
            node: The node to insert
            reference_node: The node to insert before. If None, append to end.

        Raises:
            ValueError: If reference_node is not a child of this node
        """
        if reference_node is None:
            self.append_child(node)
            return

        if reference_node not in self.children:
            raise ValueError("Reference node is not a child of this node")
        if node.parent is not None:
            node.parent.remove_child(node)
        self.children.insert(self.children.index(reference_node), node)
        node.parent = self

    def has_child_nodes(self) -> bool:
        """Return True if this node has children."""
        return bool(self.children)

    @property
    def element_children(self) -> list[Element]:
        """Child elements, skipping text nodes."""
        return [child for child in self.children if isinstance(child, Element)]

    def ancestors(self) -> Iterator[Element]:
        """Yield the parent element, its parent, and so on up to the root."""
        node = self.parent
        while node is not None and not node.name.startswith("#"):
            yield node
            node = node.parent

    def query(self, selector: str) -> list[Any]:
        """
        Query this subtree using a CSS selector.

        Raises:
            SelectorError: If the selector is invalid
        """
        result: list[Any] = query(self, selector)
        return result

    def matches(self, selector: str) -> bool:
        """Return True if this element matches the selector."""
        return matches(self, selector)

    def to_text(self) -> str:
        """Return the concatenated text of this node's descendants."""
        return "".join(child.to_text() for child in self.children)


class Fragment(Element):
    """Parentless container for several top-level nodes."""

    __slots__ = ()

    def __init__(self) -> None:
        super().__init__("#document-fragment")


class Text:
    __slots__ = ("data", "name", "parent")

    data: str
    name: str
    parent: Element | None

    def __init__(self, data: str) -> None:
        self.data = data
        self.name = "#text"
        self.parent = None

    def __repr__(self) -> str:
        return f"<Text {self.data!r}>"

    @property
    def children(self) -> list[Any]:
        """Text nodes have no children."""
        return []

    def has_child_nodes(self) -> bool:
        return False

    def to_text(self) -> str:
        return self.data
