from .cascade import CascadingPropertySet, PropertyDeclaration, Rule, prepend_parent_selectors
from .errors import CascadeError, PropertyDeclarationError, RuleTreeError
from .fragment import parse_fragment
from .node import Element, Fragment, Text
from .selector import CssSelectorEngine, SelectorEngine, SelectorError, Specificity, matches, query, specificity
from .tree import RuleNode, Scope, Value, to_scope

__all__ = [
    "CascadeError",
    "CascadingPropertySet",
    "CssSelectorEngine",
    "Element",
    "Fragment",
    "PropertyDeclaration",
    "PropertyDeclarationError",
    "Rule",
    "RuleNode",
    "RuleTreeError",
    "Scope",
    "SelectorEngine",
    "SelectorError",
    "Specificity",
    "Text",
    "Value",
    "matches",
    "parse_fragment",
    "prepend_parent_selectors",
    "query",
    "specificity",
    "to_scope",
]
