"""Cascading property store: declarations, flattened rules and value resolution."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, NamedTuple

from .errors import PropertyDeclarationError
from .selector import CssSelectorEngine, SelectorEngine
from .tree import Scope, to_scope

logger = logging.getLogger(__name__)

_DECLARATION_KEYS = frozenset({"default_value", "inherited"})


class PropertyDeclaration(NamedTuple):
    """Metadata for one property: its default value and whether it inherits.

    A ``default_value`` of ``None`` means the property has no default.
    """

    default_value: Any = None
    inherited: bool = False

    @property
    def has_default(self) -> bool:
        return self.default_value is not None

    @classmethod
    def from_definition(cls, name: str, definition: Mapping[str, Any] | PropertyDeclaration) -> PropertyDeclaration:
        """
        Build a declaration from a ``PropertyDeclaration`` or a mapping.

        Raises:
            PropertyDeclarationError: If the definition is neither.
        """
        if isinstance(definition, PropertyDeclaration):
            return cls(definition.default_value, bool(definition.inherited))
        if not isinstance(definition, Mapping):
            raise PropertyDeclarationError("declaration-not-mapping", name)
        unknown = set(definition) - _DECLARATION_KEYS
        if unknown:
            logger.warning("Ignoring unknown keys %s in declaration of %r", sorted(unknown), name)
        return cls(definition.get("default_value"), bool(definition.get("inherited", False)))


_EMPTY_DECLARATION = PropertyDeclaration()


class Rule(NamedTuple):
    """One flattened selector with its specificity and read-only property values."""

    selector: str
    specificity: Any
    properties: Mapping[str, Any]

    def __repr__(self) -> str:
        return f"Rule({self.selector!r}, {self.specificity!r}, {dict(self.properties)!r})"


def _zero_like(score: Any) -> Any:
    # The score a rule must beat to override a declared default
    try:
        return type(score)()
    except TypeError:
        return None


def prepend_parent_selectors(selectors: str, parent_selectors: str) -> str:
    """
    Combine every selector in ``selectors`` with every selector in ``parent_selectors``.

    ``prepend_parent_selectors("em,strong", "h1,h2")`` gives
    ``"h1 em,h2 em,h1 strong,h2 strong"``. An empty parent list leaves the
    selectors unprefixed.
    """
    return ",".join(
        (parent.strip() + " " + selector.strip()).strip()
        for selector in selectors.split(",")
        for parent in parent_selectors.split(",")
    )


class CascadingPropertySet:
    """
    A set of property declarations and selector-scoped rules.

    Declarations and rules are registered up front (or incrementally) and then
    queried with :meth:`resolve` and :meth:`resolve_all`. Mutating the set while
    another thread queries it is not supported.
    """

    __slots__ = ("_engine", "_inherited", "_properties", "_rules", "_with_default")

    _engine: SelectorEngine
    _properties: dict[str, PropertyDeclaration]
    _rules: list[Rule]
    _inherited: frozenset[str]
    _with_default: frozenset[str]

    def __init__(
        self,
        properties: Mapping[str, Any] | None = None,
        rules: Mapping[str, Any] | Scope | None = None,
        *,
        engine: SelectorEngine | None = None,
    ) -> None:
        self._engine = engine or CssSelectorEngine()
        self._properties = {}
        self._rules = []
        self._inherited = frozenset()
        self._with_default = frozenset()

        if properties is not None:
            self.declare_properties(properties)

        if rules is not None:
            self.declare_rules(rules)

    @property
    def properties(self) -> Mapping[str, PropertyDeclaration]:
        """Read-only view of the declared properties."""
        return MappingProxyType(self._properties)

    @property
    def rules(self) -> tuple[Rule, ...]:
        """Stored rules in registration order."""
        return tuple(self._rules)

    @property
    def inherited_property_names(self) -> frozenset[str]:
        return self._inherited

    @property
    def properties_with_default(self) -> frozenset[str]:
        return self._with_default

    def declare_properties(self, definitions: Mapping[str, Any]) -> None:
        """
        Store property declarations, replacing any with the same name.

        Each definition is a ``PropertyDeclaration`` or a mapping with the
        optional keys ``default_value`` and ``inherited``.

        Raises:
            PropertyDeclarationError: If a definition is neither. Nothing is
                stored then.
        """
        declarations = {
            name: PropertyDeclaration.from_definition(name, definition) for name, definition in definitions.items()
        }
        self._properties.update(declarations)

        self._inherited = frozenset(name for name, decl in self._properties.items() if decl.inherited)
        self._with_default = frozenset(name for name, decl in self._properties.items() if decl.has_default)

    def declare_rules(self, tree: Mapping[str, Any] | Scope, parent_selectors: str = "") -> None:
        """
        Flatten a nested rule tree into rules.

        Keys holding nested trees are selector lists, combined with the
        enclosing selectors as descendants. Other keys are property names.
        Property entries at the top level, outside any selector, are dropped.

        Raises:
            RuleTreeError: If the tree cannot be tagged. Nothing is stored then.
        """
        scope = to_scope(tree)
        before = len(self._rules)
        self._flatten(scope, parent_selectors)
        logger.debug("Registered %d rules", len(self._rules) - before)

    def _flatten(self, scope: Scope, parent_selectors: str) -> None:
        properties: dict[str, Any] = {}
        for key, node in scope.entries.items():
            if isinstance(node, Scope):
                self._flatten(node, prepend_parent_selectors(key, parent_selectors))
            else:
                properties[key] = node.value

        # Every selector level registers a rule, even one without properties
        if parent_selectors != "":
            self.add_rule(parent_selectors, properties)

    def add_rule(self, selectors: str, properties: Mapping[str, Any]) -> None:
        """
        Store one rule per selector in a comma-separated list.

        Selectors whose specificity is falsy (empty, invalid, or ``*``) are
        skipped, as are selectors scoring below zero, which could never
        override a declared default.
        """
        frozen = MappingProxyType(dict(properties))
        for selector in selectors.split(","):
            selector = selector.strip()
            score = self._engine.specificity(selector)
            if not score:
                logger.debug("Skipping rule for selector %r", selector)
                continue
            zero = _zero_like(score)
            if zero is not None and score < zero:
                logger.debug("Skipping rule for selector %r with negative specificity %r", selector, score)
                continue
            self._rules.append(Rule(selector, score, frozen))

    def _cascaded_value(self, element: Any, name: str, default: Any) -> Any:
        best_specificity: Any = None
        value = default
        for rule in self._rules:
            if name not in rule.properties or not self._engine.matches(element, rule.selector):
                continue
            # Later rules win ties
            if best_specificity is None or rule.specificity >= best_specificity:
                best_specificity = rule.specificity
                value = rule.properties[name]
        return value

    def resolve(self, element: Any, name: str) -> Any:
        """
        Return the value of a property on an element.

        The matching rule with the highest specificity wins, the later one on a
        tie. Without a matching rule the declared default is used. If that is
        ``None`` too and the property is inherited, the parent is consulted,
        and so on up to the root. Unknown properties resolve to ``None``.
        """
        declaration = self._properties.get(name, _EMPTY_DECLARATION)
        visited: set[int] = set()
        while True:
            value = self._cascaded_value(element, name, declaration.default_value)
            if value is not None or not declaration.inherited:
                return value

            visited.add(id(element))
            element = getattr(element, "parent", None)
            if element is None:
                return None
            if id(element) in visited:
                logger.warning("Cycle in ancestors while resolving %r, stopping at %r", name, element)
                return None

    def resolve_all(self, element: Any) -> dict[str, Any]:
        """
        Return every property value that applies to an element.

        That is each property set by a matching rule, each inherited property
        resolved on the parent, and each remaining property with a default.
        """
        result: dict[str, Any] = {}
        best: dict[str, Any] = {}
        for rule in self._rules:
            if not rule.properties or not self._engine.matches(element, rule.selector):
                continue
            for name, value in rule.properties.items():
                if name not in best or rule.specificity >= best[name]:
                    best[name] = rule.specificity
                    result[name] = value

        parent = getattr(element, "parent", None)
        for name, declaration in self._properties.items():
            if name in result:
                continue
            if name in self._inherited:
                if parent is None:
                    # A root has nothing to inherit from
                    result[name] = declaration.default_value
                else:
                    result[name] = self.resolve(parent, name)
            elif name in self._with_default:
                result[name] = declaration.default_value

        return result
