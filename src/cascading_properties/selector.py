# CSS selector engine for cascading_properties
# Parses selectors, matches them against element trees and scores their specificity

from __future__ import annotations

import logging
from typing import Any, NamedTuple, Protocol

logger = logging.getLogger(__name__)


class SelectorError(ValueError):
    """Raised when a CSS selector is invalid."""


# Token types for the CSS selector lexer
class TokenType:
    TAG: str = "TAG"  # div, span, also attribute and pseudo-class names
    ID: str = "ID"  # #foo
    CLASS: str = "CLASS"  # .bar
    UNIVERSAL: str = "UNIVERSAL"  # *
    ATTR: str = "ATTR"  # [name op value], value holds (name, op, value)
    PSEUDO: str = "PSEUDO"  # :name or :name(arg), value holds (name, arg)
    COMBINATOR: str = "COMBINATOR"  # >, +, ~, or whitespace (descendant)
    COMMA: str = "COMMA"  # ,
    EOF: str = "EOF"


class Token:
    __slots__ = ("type", "value")

    type: str
    value: Any

    def __init__(self, token_type: str, value: Any = None) -> None:
        self.type = token_type
        self.value = value

    def __repr__(self) -> str:
        return f"Token({self.type}, {self.value!r})"


_WHITESPACE = " \t\n\r\f"
_ATTR_OPERATORS = ("~=", "|=", "^=", "$=", "*=", "=")


class SelectorTokenizer:
    """Splits a selector string into tokens."""

    __slots__ = ("length", "pos", "text")

    text: str
    pos: int
    length: int

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.length = len(text)

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < self.length else ""

    def _skip_whitespace(self) -> None:
        while self.pos < self.length and self.text[self.pos] in _WHITESPACE:
            self.pos += 1

    @staticmethod
    def _is_name_char(ch: str) -> bool:
        return ch.isalnum() or ch in "-_" or ord(ch) > 127

    def _read_name(self, what: str) -> str:
        start = self.pos
        while self.pos < self.length and self._is_name_char(self.text[self.pos]):
            self.pos += 1
        name = self.text[start : self.pos]
        if not name or name[0].isdigit():
            raise SelectorError(f"Expected {what} at position {start} in {self.text!r}")
        return name

    def _read_quoted(self, quote: str) -> str:
        self.pos += 1
        chars: list[str] = []
        while self.pos < self.length:
            ch = self.text[self.pos]
            self.pos += 1
            if ch == quote:
                return "".join(chars)
            if ch == "\\" and self.pos < self.length:
                ch = self.text[self.pos]
                self.pos += 1
            chars.append(ch)
        raise SelectorError(f"Unterminated string in selector: {self.text!r}")

    def _read_attribute(self) -> Token:
        self.pos += 1  # [
        self._skip_whitespace()
        name = self._read_name("attribute name")
        self._skip_whitespace()

        operator: str | None = None
        value: str | None = None
        if self._peek() != "]":
            operator = next((op for op in _ATTR_OPERATORS if self.text.startswith(op, self.pos)), None)
            if operator is None:
                raise SelectorError(f"Unexpected character in attribute selector: {self._peek()!r}")
            self.pos += len(operator)
            self._skip_whitespace()
            if self._peek() in ("'", '"'):
                value = self._read_quoted(self._peek())
            else:
                start = self.pos
                while self.pos < self.length and self.text[self.pos] not in _WHITESPACE + "]":
                    self.pos += 1
                value = self.text[start : self.pos]
            self._skip_whitespace()

        if self._peek() != "]":
            raise SelectorError(f"Expected ] at position {self.pos} in {self.text!r}")
        self.pos += 1
        return Token(TokenType.ATTR, (name, operator, value))

    def _read_pseudo(self) -> Token:
        self.pos += 1  # :
        if self._peek() == ":":
            raise SelectorError(f"Pseudo-elements are not supported: {self.text!r}")
        name = self._read_name("pseudo-class name").lower()
        if self._peek() != "(":
            return Token(TokenType.PSEUDO, (name, None))

        self.pos += 1
        depth = 1
        start = self.pos
        while self.pos < self.length:
            ch = self.text[self.pos]
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0:
                    break
            self.pos += 1
        if depth:
            raise SelectorError(f"Expected ) at position {self.pos} in {self.text!r}")
        arg = self.text[start : self.pos].strip()
        self.pos += 1
        return Token(TokenType.PSEUDO, (name, arg))

    def tokenize(self) -> list[Token]:
        tokens: list[Token] = []
        pending_whitespace = False

        while self.pos < self.length:
            ch = self.text[self.pos]

            if ch in _WHITESPACE:
                pending_whitespace = True
                self._skip_whitespace()
                continue

            if ch in ">+~,":
                self.pos += 1
                self._skip_whitespace()
                pending_whitespace = False
                if ch == ",":
                    tokens.append(Token(TokenType.COMMA))
                else:
                    tokens.append(Token(TokenType.COMBINATOR, ch))
                continue

            # Whitespace between two compounds is a descendant combinator
            if pending_whitespace and tokens and tokens[-1].type not in (TokenType.COMBINATOR, TokenType.COMMA):
                tokens.append(Token(TokenType.COMBINATOR, " "))
            pending_whitespace = False

            if ch == "*":
                self.pos += 1
                tokens.append(Token(TokenType.UNIVERSAL))
            elif ch == "#":
                self.pos += 1
                tokens.append(Token(TokenType.ID, self._read_name("identifier after #")))
            elif ch == ".":
                self.pos += 1
                tokens.append(Token(TokenType.CLASS, self._read_name("identifier after .")))
            elif ch == "[":
                tokens.append(self._read_attribute())
            elif ch == ":":
                tokens.append(self._read_pseudo())
            elif self._is_name_char(ch):
                # Tags are case-insensitive
                tokens.append(Token(TokenType.TAG, self._read_name("tag name").lower()))
            else:
                raise SelectorError(f"Unexpected character {ch!r} at position {self.pos}")

        tokens.append(Token(TokenType.EOF))
        return tokens


# AST node types for parsed selectors


class SimpleSelector:
    """A single simple selector (tag, id, class, attribute, or pseudo-class)."""

    __slots__ = ("arg", "inner", "name", "nth", "operator", "type", "value")

    TYPE_TAG: str = "tag"
    TYPE_ID: str = "id"
    TYPE_CLASS: str = "class"
    TYPE_UNIVERSAL: str = "universal"
    TYPE_ATTR: str = "attr"
    TYPE_PSEUDO: str = "pseudo"

    type: str
    name: str | None
    operator: str | None
    value: str | None
    arg: str | None
    inner: ParsedSelector | None  # parsed argument of :not()
    nth: tuple[int, int] | None  # (a, b) of an An+B argument

    def __init__(
        self,
        selector_type: str,
        name: str | None = None,
        operator: str | None = None,
        value: str | None = None,
        arg: str | None = None,
    ) -> None:
        self.type = selector_type
        self.name = name
        self.operator = operator
        self.value = value
        self.arg = arg
        self.inner = None
        self.nth = None

    def __repr__(self) -> str:
        parts = [f"SimpleSelector({self.type!r}"]
        if self.name:
            parts.append(f", name={self.name!r}")
        if self.operator:
            parts.append(f", op={self.operator!r}")
        if self.value is not None:
            parts.append(f", value={self.value!r}")
        if self.arg is not None:
            parts.append(f", arg={self.arg!r}")
        parts.append(")")
        return "".join(parts)


class CompoundSelector:
    """A sequence of simple selectors (e.g., div.foo#bar)."""

    __slots__ = ("selectors",)

    selectors: list[SimpleSelector]

    def __init__(self, selectors: list[SimpleSelector] | None = None) -> None:
        self.selectors = selectors or []

    def __repr__(self) -> str:
        return f"CompoundSelector({self.selectors!r})"


class ComplexSelector:
    """A chain of compound selectors joined by combinators."""

    __slots__ = ("parts",)

    parts: list[tuple[str | None, CompoundSelector]]

    def __init__(self) -> None:
        # (combinator, compound) pairs, the first combinator is None
        self.parts = []

    def __repr__(self) -> str:
        return f"ComplexSelector({self.parts!r})"


class SelectorList:
    """A comma-separated list of complex selectors."""

    __slots__ = ("selectors",)

    selectors: list[ComplexSelector]

    def __init__(self, selectors: list[ComplexSelector] | None = None) -> None:
        self.selectors = selectors or []

    def __repr__(self) -> str:
        return f"SelectorList({self.selectors!r})"


ParsedSelector = ComplexSelector | SelectorList

_PLAIN_PSEUDO_CLASSES = frozenset(
    {
        "first-child",
        "last-child",
        "only-child",
        "first-of-type",
        "last-of-type",
        "only-of-type",
        "empty",
        "root",
    }
)
_NTH_PSEUDO_CLASSES = frozenset({"nth-child", "nth-last-child", "nth-of-type", "nth-last-of-type"})


def parse_nth_expression(expr: str) -> tuple[int, int]:
    """Parse an An+B expression like '2n+1', 'odd', 'even' or '3'."""
    expr = expr.replace(" ", "").lower()
    if expr == "odd":
        return (2, 1)
    if expr == "even":
        return (2, 0)

    try:
        if "n" not in expr:
            return (0, int(expr))
        a_part, _, b_part = expr.partition("n")
        if a_part in ("", "+"):
            a = 1
        elif a_part == "-":
            a = -1
        else:
            a = int(a_part)
        b = int(b_part) if b_part else 0
    except ValueError:
        raise SelectorError(f"Invalid An+B expression: {expr!r}") from None
    return (a, b)


class SelectorParser:
    """Builds a selector AST from tokens."""

    __slots__ = ("pos", "tokens")

    tokens: list[Token]
    pos: int

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def parse(self) -> ParsedSelector:
        selectors = [self._parse_complex()]
        while self._peek().type == TokenType.COMMA:
            self._advance()
            selectors.append(self._parse_complex())

        if self._peek().type != TokenType.EOF:
            raise SelectorError(f"Unexpected token: {self._peek()}")

        if len(selectors) == 1:
            return selectors[0]
        return SelectorList(selectors)

    def _parse_complex(self) -> ComplexSelector:
        complex_sel = ComplexSelector()
        complex_sel.parts.append((None, self._parse_compound()))
        while self._peek().type == TokenType.COMBINATOR:
            combinator = self._advance().value
            complex_sel.parts.append((combinator, self._parse_compound()))
        return complex_sel

    def _parse_compound(self) -> CompoundSelector:
        simple: list[SimpleSelector] = []
        while True:
            token = self._peek()
            if token.type == TokenType.TAG:
                simple.append(SimpleSelector(SimpleSelector.TYPE_TAG, name=token.value))
            elif token.type == TokenType.UNIVERSAL:
                simple.append(SimpleSelector(SimpleSelector.TYPE_UNIVERSAL))
            elif token.type == TokenType.ID:
                simple.append(SimpleSelector(SimpleSelector.TYPE_ID, name=token.value))
            elif token.type == TokenType.CLASS:
                simple.append(SimpleSelector(SimpleSelector.TYPE_CLASS, name=token.value))
            elif token.type == TokenType.ATTR:
                name, operator, value = token.value
                simple.append(SimpleSelector(SimpleSelector.TYPE_ATTR, name=name, operator=operator, value=value))
            elif token.type == TokenType.PSEUDO:
                simple.append(self._build_pseudo(*token.value))
            else:
                break
            self._advance()

        if not simple:
            raise SelectorError(f"Expected selector, got {self._peek()}")
        return CompoundSelector(simple)

    def _build_pseudo(self, name: str, arg: str | None) -> SimpleSelector:
        selector = SimpleSelector(SimpleSelector.TYPE_PSEUDO, name=name, arg=arg)
        if name in _PLAIN_PSEUDO_CLASSES:
            if arg is not None:
                raise SelectorError(f":{name} does not take an argument")
        elif name in _NTH_PSEUDO_CLASSES:
            if not arg:
                raise SelectorError(f":{name}() requires an argument")
            selector.nth = parse_nth_expression(arg)
        elif name == "not":
            if not arg:
                raise SelectorError(":not() requires a selector argument")
            selector.inner = parse_selector(arg)
        else:
            raise SelectorError(f"Unsupported pseudo-class: :{name}")
        return selector


def _is_element(node: Any) -> bool:
    # Text and container nodes have names starting with "#"
    return node is not None and hasattr(node, "name") and not node.name.startswith("#")


def _element_siblings(node: Any) -> list[Any]:
    parent = node.parent
    if parent is None or not parent.children:
        return []
    return [child for child in parent.children if _is_element(child)]


def _nth_matches(index: int, a: int, b: int) -> bool:
    """Check if 1-based index satisfies index == a*n + b for some n >= 0."""
    if a == 0:
        return index == b
    diff = index - b
    return diff % a == 0 and diff // a >= 0


class SelectorMatcher:
    """Matches parsed selectors against element nodes."""

    __slots__ = ()

    def matches(self, node: Any, selector: ParsedSelector) -> bool:
        if isinstance(selector, SelectorList):
            return any(self._matches_complex(node, sel) for sel in selector.selectors)
        return self._matches_complex(node, selector)

    def _matches_complex(self, node: Any, selector: ComplexSelector) -> bool:
        return self._matches_from(node, selector.parts, len(selector.parts) - 1)

    def _matches_from(self, node: Any, parts: list[tuple[str | None, CompoundSelector]], index: int) -> bool:
        """Match parts[index] against node, then the parts left of it against related nodes."""
        combinator, compound = parts[index]
        if not self._matches_compound(node, compound):
            return False
        if index == 0:
            return True

        if combinator == " ":
            ancestor = node.parent
            while _is_element(ancestor):
                if self._matches_from(ancestor, parts, index - 1):
                    return True
                ancestor = ancestor.parent
            return False

        if combinator == ">":
            parent = node.parent
            return _is_element(parent) and self._matches_from(parent, parts, index - 1)

        siblings = _element_siblings(node)
        position = next((i for i, sibling in enumerate(siblings) if sibling is node), 0)
        preceding = siblings[:position]
        if combinator == "+":
            return bool(preceding) and self._matches_from(preceding[-1], parts, index - 1)

        # combinator == "~"
        return any(self._matches_from(sibling, parts, index - 1) for sibling in reversed(preceding))

    def _matches_compound(self, node: Any, compound: CompoundSelector) -> bool:
        if not _is_element(node):
            return False
        return all(self._matches_simple(node, simple) for simple in compound.selectors)

    def _matches_simple(self, node: Any, selector: SimpleSelector) -> bool:
        sel_type = selector.type
        attrs = node.attrs or {}

        if sel_type == SimpleSelector.TYPE_UNIVERSAL:
            return True

        if sel_type == SimpleSelector.TYPE_TAG:
            return bool(node.name.lower() == selector.name)

        if sel_type == SimpleSelector.TYPE_ID:
            return attrs.get("id") == selector.name

        if sel_type == SimpleSelector.TYPE_CLASS:
            return selector.name in (attrs.get("class") or "").split()

        if sel_type == SimpleSelector.TYPE_ATTR:
            return self._matches_attribute(attrs, selector)

        return self._matches_pseudo(node, selector)

    def _matches_attribute(self, attrs: dict[str, str | None], selector: SimpleSelector) -> bool:
        wanted = (selector.name or "").lower()
        present = False
        actual = ""
        for name, value in attrs.items():
            if name.lower() == wanted:
                present = True
                actual = value or ""
                break

        if not present:
            return False

        op = selector.operator
        if op is None:
            return True

        value = selector.value or ""
        if op == "=":
            return actual == value
        if op == "~=":
            return value in actual.split()
        if op == "|=":
            return actual == value or actual.startswith(value + "-")
        if not value:
            # ^=, $= and *= never match an empty value
            return False
        if op == "^=":
            return actual.startswith(value)
        if op == "$=":
            return actual.endswith(value)
        return value in actual

    def _matches_pseudo(self, node: Any, selector: SimpleSelector) -> bool:
        name = selector.name

        if name == "not":
            return selector.inner is not None and not self.matches(node, selector.inner)

        if name == "root":
            parent = node.parent
            return parent is not None and parent.name in ("#document", "#document-fragment")

        if name == "empty":
            for child in node.children or ():
                if _is_element(child) or (child.name == "#text" and child.data):
                    return False
            return True

        siblings = _element_siblings(node)
        if not siblings:
            return False
        if name.endswith("of-type"):
            siblings = [sibling for sibling in siblings if sibling.name.lower() == node.name.lower()]
        position = next((i for i, sibling in enumerate(siblings) if sibling is node), None)
        if position is None:
            return False

        if name in ("first-child", "first-of-type"):
            return position == 0
        if name in ("last-child", "last-of-type"):
            return position == len(siblings) - 1
        if name in ("only-child", "only-of-type"):
            return len(siblings) == 1

        a, b = selector.nth or (0, 0)
        if name.startswith("nth-last"):
            return _nth_matches(len(siblings) - position, a, b)
        return _nth_matches(position + 1, a, b)


class Specificity(NamedTuple):
    """Ordered (ids, classes, types) score; falsy when every count is zero."""

    ids: int = 0
    classes: int = 0
    types: int = 0

    def __bool__(self) -> bool:
        return any(self)

    def __add__(self, other: Any) -> Specificity:  # type: ignore[override]
        return Specificity(self.ids + other.ids, self.classes + other.classes, self.types + other.types)


def _specificity_of(selector: ParsedSelector) -> Specificity:
    if isinstance(selector, SelectorList):
        return max(_specificity_of(sel) for sel in selector.selectors)

    total = Specificity()
    for _, compound in selector.parts:
        for simple in compound.selectors:
            if simple.type == SimpleSelector.TYPE_ID:
                total += Specificity(1, 0, 0)
            elif simple.type == SimpleSelector.TYPE_TAG:
                total += Specificity(0, 0, 1)
            elif simple.type == SimpleSelector.TYPE_PSEUDO and simple.inner is not None:
                # :not() is as specific as its argument
                total += _specificity_of(simple.inner)
            elif simple.type != SimpleSelector.TYPE_UNIVERSAL:
                total += Specificity(0, 1, 0)
    return total


def parse_selector(selector_string: str) -> ParsedSelector:
    """Parse a CSS selector string into an AST."""
    if not selector_string or not selector_string.strip():
        raise SelectorError("Empty selector")

    tokens = SelectorTokenizer(selector_string.strip()).tokenize()
    return SelectorParser(tokens).parse()


def specificity(selector_string: str) -> Specificity:
    """
    Score a selector string.

    Invalid or empty selectors score ``Specificity(0, 0, 0)``, which is falsy,
    as does the bare universal selector.
    """
    try:
        return _specificity_of(parse_selector(selector_string))
    except SelectorError as e:
        logger.debug("Rejecting selector %r: %s", selector_string, e)
        return Specificity()


# Global matcher instance
_matcher: SelectorMatcher = SelectorMatcher()


def matches(node: Any, selector_string: str) -> bool:
    """
    Check if a node matches a CSS selector.

    Args:
        node: The node to check
        selector_string: A CSS selector string

    Returns:
        True if the node matches, False otherwise

    Raises:
        SelectorError: If the selector is invalid
    """
    return _matcher.matches(node, parse_selector(selector_string))


def query(root: Any, selector_string: str) -> list[Any]:
    """
    Return all descendants of root matching a selector, in document order.

    The root itself is never included.
    """
    selector = parse_selector(selector_string)
    results: list[Any] = []
    _query_descendants(root, selector, results)
    return results


def _query_descendants(node: Any, selector: ParsedSelector, results: list[Any]) -> None:
    for child in node.children or ():
        if _is_element(child) and _matcher.matches(child, selector):
            results.append(child)
        _query_descendants(child, selector, results)


class SelectorEngine(Protocol):
    """The selector capabilities a cascade needs."""

    def matches(self, element: Any, selector: str) -> bool: ...

    def specificity(self, selector: str) -> Any: ...


class CssSelectorEngine:
    """Default selector engine, caching parsed selectors by their source text."""

    __slots__ = ("_cache",)

    _cache: dict[str, ParsedSelector]

    def __init__(self) -> None:
        self._cache = {}

    def _parsed(self, selector: str) -> ParsedSelector:
        parsed = self._cache.get(selector)
        if parsed is None:
            parsed = parse_selector(selector)
            self._cache[selector] = parsed
        return parsed

    def matches(self, element: Any, selector: str) -> bool:
        return _matcher.matches(element, self._parsed(selector))

    def specificity(self, selector: str) -> Specificity:
        try:
            return _specificity_of(self._parsed(selector))
        except SelectorError as e:
            logger.debug("Rejecting selector %r: %s", selector, e)
            return Specificity()
