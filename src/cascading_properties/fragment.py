"""Build element trees from small HTML fragments."""

from __future__ import annotations

from html.parser import HTMLParser

from .node import Element, Fragment, Text

VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "source",
        "track",
        "wbr",
    }
)


# Start tags that close an open element of the listed names, as <li> closes an open <li>
IMPLIED_END_TAGS = {
    "li": frozenset({"li"}),
    "p": frozenset({"p"}),
    "dt": frozenset({"dt", "dd"}),
    "dd": frozenset({"dt", "dd"}),
    "option": frozenset({"option"}),
}


class _FragmentBuilder(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.root = Fragment()
        # Open elements, innermost last
        self.stack: list[Element] = [self.root]

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if self.stack[-1].name in IMPLIED_END_TAGS.get(tag, ()):
            self.stack.pop()
        element = Element(tag, dict(attrs))
        self.stack[-1].append_child(element)
        if tag not in VOID_ELEMENTS:
            self.stack.append(element)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self.stack[-1].append_child(Element(tag, dict(attrs)))

    def handle_endtag(self, tag: str) -> None:
        for index in range(len(self.stack) - 1, 0, -1):
            if self.stack[index].name == tag:
                del self.stack[index:]
                return

    def handle_data(self, data: str) -> None:
        self.stack[-1].append_child(Text(data))


def parse_fragment(html: str) -> Element:
    """
    Parse an HTML fragment into nodes.

    A fragment holding exactly one top-level element (and no top-level text)
    returns that element detached, so its ``parent`` is ``None``. Anything
    else is returned inside a ``Fragment``.

    A start tag of li, p, dt, dd or option closes an open sibling it implies
    the end of, but only when that sibling is the innermost open element:
    ``<ul><li>a<li>b</ul>`` gives two sibling items, while
    ``<li><b>a<li>b`` nests the second item inside the ``<b>``.
    """
    builder = _FragmentBuilder()
    builder.feed(html)
    builder.close()

    root = builder.root
    if len(root.children) == 1 and isinstance(root.children[0], Element):
        element: Element = root.children[0]
        root.remove_child(element)
        return element
    return root
