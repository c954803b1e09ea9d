"""Tests for property declarations, rule flattening and value resolution."""

import logging
from collections import OrderedDict

import pytest

from cascading_properties import (
    CascadingPropertySet,
    PropertyDeclaration,
    PropertyDeclarationError,
    RuleTreeError,
    Scope,
    Specificity,
    Value,
    parse_fragment,
    prepend_parent_selectors,
)

PROPERTY_DEFINITIONS = {
    "someProperty": {"default_value": 0},
    "someOtherProperty": {"inherited": True},
}

RULES = {
    "ul": {
        "someOtherProperty": True,
        "yetAnotherProperty": 2,
        "li, em": {
            "someProperty": 1,
        },
    },
    "li:last-child": {
        "someProperty": 3,
    },
}


@pytest.fixture
def cascade():
    return CascadingPropertySet(PROPERTY_DEFINITIONS, RULES)


@pytest.fixture
def ul():
    return parse_fragment("<ul><li>Hello</li><li>World</li></ul>")


class FakeNode:
    def __init__(self, tags=(), parent=None):
        self.tags = set(tags)
        self.parent = parent


class TagEngine:
    """Matches selectors against a node's tag set and scores them by length."""

    def matches(self, element, selector):
        return selector in element.tags

    def specificity(self, selector):
        return len(selector)


class NegativeEngine(TagEngine):
    def specificity(self, selector):
        return -len(selector)


class TestDeclareProperties:
    def test_overrides_properties_with_the_same_name(self):
        cascade = CascadingPropertySet()
        cascade.declare_properties({"foo": {"default_value": True}})
        cascade.declare_properties({"foo": {"default_value": False}})
        assert len(cascade.properties) == 1
        assert cascade.properties["foo"].default_value is False

    def test_overwrite_does_not_merge(self):
        cascade = CascadingPropertySet()
        cascade.declare_properties({"foo": {"default_value": 1, "inherited": True}})
        cascade.declare_properties({"foo": {"default_value": 2}})
        assert cascade.properties["foo"] == PropertyDeclaration(2, inherited=False)
        assert cascade.inherited_property_names == frozenset()

    def test_caches_cover_all_declared_properties(self):
        cascade = CascadingPropertySet()
        cascade.declare_properties({"a": {"inherited": True}, "b": {"default_value": "x"}})
        cascade.declare_properties({"c": {"inherited": True, "default_value": 0}})
        assert cascade.inherited_property_names == {"a", "c"}
        assert cascade.properties_with_default == {"b", "c"}

    def test_falsy_defaults_count_as_defaults(self):
        cascade = CascadingPropertySet({"zero": {"default_value": 0}, "off": {"default_value": False}})
        assert cascade.properties_with_default == {"zero", "off"}

    def test_redeclaring_is_idempotent(self):
        cascade = CascadingPropertySet()
        cascade.declare_properties(PROPERTY_DEFINITIONS)
        snapshot = (dict(cascade.properties), cascade.inherited_property_names, cascade.properties_with_default)
        cascade.declare_properties(PROPERTY_DEFINITIONS)
        assert (dict(cascade.properties), cascade.inherited_property_names, cascade.properties_with_default) == snapshot

    def test_accepts_declaration_objects(self):
        cascade = CascadingPropertySet({"color": PropertyDeclaration("black", inherited=True)})
        assert cascade.inherited_property_names == {"color"}
        assert cascade.properties_with_default == {"color"}

    def test_properties_view_is_read_only(self, cascade):
        with pytest.raises(TypeError):
            cascade.properties["new"] = PropertyDeclaration()

    def test_declarations_are_immutable(self, ul):
        cascade = CascadingPropertySet({"color": {}}, {"ul": {"color": "red"}})
        with pytest.raises(AttributeError):
            cascade.properties["color"].inherited = True
        li = ul.element_children[0]
        assert cascade.resolve(li, "color") is None
        assert cascade.resolve_all(li) == {}
        assert cascade.inherited_property_names == frozenset()

    def test_malformed_definition_stores_nothing(self, ul):
        cascade = CascadingPropertySet(rules={"ul": {"a": "red"}})
        with pytest.raises(PropertyDeclarationError) as excinfo:
            cascade.declare_properties({"a": {"inherited": True}, "b": 5})
        assert excinfo.value.code == "declaration-not-mapping"
        assert excinfo.value.key == "b"
        assert dict(cascade.properties) == {}
        assert cascade.inherited_property_names == frozenset()
        li = ul.element_children[0]
        assert cascade.resolve(li, "a") is None
        assert cascade.resolve_all(li) == {}

    def test_malformed_definition_is_a_type_error(self):
        with pytest.raises(TypeError):
            CascadingPropertySet({"a": "inherited"})

    def test_unknown_keys_are_logged(self, caplog):
        cascade = CascadingPropertySet()
        with caplog.at_level(logging.WARNING, logger="cascading_properties.cascade"):
            cascade.declare_properties({"foo": {"defaultValue": 1}})
        assert "defaultValue" in caplog.text
        assert cascade.properties["foo"].default_value is None


class TestDeclareRules:
    def test_prepends_the_parent_selector_for_nested_selectors(self):
        cascade = CascadingPropertySet()
        cascade.declare_rules(
            {
                "h1,h2": {
                    "em,strong": {
                        "foo": True,
                        "span.icon": {
                            "foo": False,
                        },
                    },
                },
            }
        )
        assert len(cascade.rules) == 10
        assert [rule.selector for rule in cascade.rules] == [
            "h1 em span.icon",
            "h2 em span.icon",
            "h1 strong span.icon",
            "h2 strong span.icon",
            "h1 em",
            "h2 em",
            "h1 strong",
            "h2 strong",
            "h1",
            "h2",
        ]
        assert dict(cascade.rules[0].properties) == {"foo": False}
        assert dict(cascade.rules[4].properties) == {"foo": True}
        assert dict(cascade.rules[8].properties) == {}

    def test_records_specificity(self, cascade):
        by_selector = {rule.selector: rule.specificity for rule in cascade.rules}
        assert by_selector == {
            "ul li": Specificity(0, 0, 2),
            "ul em": Specificity(0, 0, 2),
            "ul": Specificity(0, 0, 1),
            "li:last-child": Specificity(0, 1, 1),
        }

    def test_drops_top_level_properties(self):
        cascade = CascadingPropertySet(rules={"foo": 1, "bar": "x"})
        assert cascade.rules == ()

    def test_drops_invalid_and_empty_selectors(self):
        cascade = CascadingPropertySet(rules={"li[, *, p": {"foo": 1}})
        assert [rule.selector for rule in cascade.rules] == ["p"]

    def test_drops_empty_list_entries(self):
        cascade = CascadingPropertySet()
        cascade.add_rule("h1,,h2", {"foo": 1})
        assert [rule.selector for rule in cascade.rules] == ["h1", "h2"]

    def test_parent_selectors_argument(self):
        cascade = CascadingPropertySet({"foo": {"default_value": 0}})
        cascade.declare_rules({"a": {"foo": 1}}, "nav, footer")
        assert [(rule.selector, dict(rule.properties)) for rule in cascade.rules] == [
            ("nav a", {"foo": 1}),
            ("footer a", {"foo": 1}),
            ("nav", {}),
            ("footer", {}),
        ]
        nav = parse_fragment("<nav><a>x</a></nav>")
        assert cascade.resolve(nav, "foo") == 0
        assert cascade.resolve(nav.element_children[0], "foo") == 1
        assert cascade.resolve_all(nav) == {"foo": 0}

    def test_value_wrapper_keeps_dicts_as_values(self):
        cascade = CascadingPropertySet(rules={"li": {"config": Value({"a": 1})}})
        assert len(cascade.rules) == 1
        assert cascade.rules[0].properties["config"] == {"a": 1}

    def test_accepts_tagged_trees(self):
        tree = Scope({"ul": Scope({"foo": Value(1), "li": Scope({"foo": Value(2)})})})
        cascade = CascadingPropertySet(rules=tree)
        assert [(rule.selector, dict(rule.properties)) for rule in cascade.rules] == [
            ("ul li", {"foo": 2}),
            ("ul", {"foo": 1}),
        ]

    def test_rejects_ambiguous_mappings_before_storing(self):
        cascade = CascadingPropertySet(rules={"p": {"foo": 1}})
        with pytest.raises(RuleTreeError) as excinfo:
            cascade.declare_rules({"ul": {"foo": 1}, "li": OrderedDict(foo=2)})
        assert excinfo.value.code == "ambiguous-mapping"
        assert [rule.selector for rule in cascade.rules] == ["p"]

    def test_rejects_non_string_keys(self):
        cascade = CascadingPropertySet()
        with pytest.raises(RuleTreeError, match="must be strings"):
            cascade.declare_rules({"li": {1: "x"}})

    def test_rule_properties_are_read_only(self, cascade):
        with pytest.raises(TypeError):
            cascade.rules[0].properties["foo"] = 1

    def test_rules_are_immutable(self, ul):
        cascade = CascadingPropertySet(rules={"li": {"x": 1}})
        with pytest.raises(AttributeError):
            cascade.rules[0].selector = "ul"
        with pytest.raises(AttributeError):
            cascade.rules[0].specificity = Specificity(9, 9, 9)
        assert cascade.rules[0].selector == "li"
        assert cascade.resolve(ul, "x") is None

    def test_rule_properties_are_copied_at_registration(self):
        properties = {"foo": 1}
        cascade = CascadingPropertySet()
        cascade.add_rule("h1, h2", properties)
        properties["foo"] = 2
        assert [rule.properties["foo"] for rule in cascade.rules] == [1, 1]


class TestPrependParentSelectors:
    def test_cross_product(self):
        assert prepend_parent_selectors("em,strong", "h1,h2") == "h1 em,h2 em,h1 strong,h2 strong"

    def test_empty_parent(self):
        assert prepend_parent_selectors(" li , em", "") == "li,em"


class TestResolve:
    def test_returns_the_default_value_when_no_rule_matches(self, cascade, ul):
        assert cascade.resolve(ul, "someProperty") == 0

    def test_returns_a_property_on_a_matched_element(self, cascade, ul):
        assert cascade.resolve(ul.element_children[0], "someProperty") == 1

    def test_returns_a_property_that_is_not_declared(self, cascade, ul):
        assert cascade.resolve(ul, "yetAnotherProperty") == 2

    def test_returns_the_property_with_the_highest_specificity(self, cascade, ul):
        assert cascade.resolve(ul.element_children[-1], "someProperty") == 3

    def test_returns_inherited_properties(self, cascade, ul):
        assert cascade.resolve(ul.element_children[0], "someOtherProperty") is True

    def test_returns_none_for_undefined_properties(self, cascade, ul):
        assert cascade.resolve(ul, "undefinedProperty") is None

    def test_later_rule_wins_on_equal_specificity(self, ul):
        cascade = CascadingPropertySet(rules={"li": {"x": 1}})
        cascade.declare_rules({"li": {"x": 2}})
        assert cascade.resolve(ul.element_children[0], "x") == 2

    def test_later_rule_with_lower_specificity_loses(self):
        li = parse_fragment('<li class="a"></li>')
        cascade = CascadingPropertySet(rules={".a": {"x": 1}, "li": {"x": 2}})
        assert cascade.resolve(li, "x") == 1

    def test_inherits_through_several_ancestors(self):
        root = parse_fragment('<div class="theme"><section><p><em>hi</em></p></section></div>')
        em = root.query("em")[0]
        cascade = CascadingPropertySet({"color": {"inherited": True}}, {".theme": {"color": "teal"}})
        assert cascade.resolve(em, "color") == "teal"

    def test_unmatched_inherited_property_on_root_is_none(self, ul):
        cascade = CascadingPropertySet({"color": {"inherited": True}})
        assert cascade.resolve(ul, "color") is None

    def test_non_inherited_property_does_not_walk_up(self, cascade, ul):
        assert cascade.resolve(ul.element_children[0], "yetAnotherProperty") is None

    def test_default_shadows_inheritance(self, ul):
        cascade = CascadingPropertySet(
            {"color": {"inherited": True, "default_value": "black"}},
            {"ul": {"color": "red"}},
        )
        assert cascade.resolve(ul.element_children[0], "color") == "black"

    def test_explicit_none_value_inherits(self, ul):
        cascade = CascadingPropertySet(
            {"color": {"inherited": True}},
            {"ul": {"color": "red", "li": {"color": None}}},
        )
        assert cascade.resolve(ul.element_children[0], "color") == "red"

    def test_stops_on_ancestor_cycles(self, caplog):
        first = FakeNode()
        second = FakeNode(parent=first)
        first.parent = second
        cascade = CascadingPropertySet({"color": {"inherited": True}}, engine=TagEngine())
        with caplog.at_level(logging.WARNING, logger="cascading_properties.cascade"):
            assert cascade.resolve(first, "color") is None
        assert "Cycle" in caplog.text

    def test_custom_engine(self):
        parent = FakeNode({"panel"})
        child = FakeNode({"item", "selected-item"}, parent=parent)
        cascade = CascadingPropertySet(
            {"tone": {"inherited": True}},
            {"item": {"size": 1}, "selected-item": {"size": 2}, "panel": {"tone": "dark"}},
            engine=TagEngine(),
        )
        assert cascade.resolve(child, "size") == 2
        assert cascade.resolve(child, "tone") == "dark"

    def test_custom_engine_rejects_zero_scores(self):
        cascade = CascadingPropertySet(engine=TagEngine())
        cascade.add_rule(",item", {"size": 1})
        assert [rule.selector for rule in cascade.rules] == ["item"]

    def test_negative_scores_never_override_the_default(self):
        node = FakeNode({"item"})
        cascade = CascadingPropertySet({"size": {"default_value": 0}}, engine=NegativeEngine())
        cascade.add_rule("item", {"size": 5})
        assert cascade.rules == ()
        assert cascade.resolve(node, "size") == 0
        assert cascade.resolve_all(node) == {"size": 0}


class TestResolveAll:
    def test_collects_matched_inherited_and_default_values(self, cascade, ul):
        assert cascade.resolve_all(ul.element_children[0]) == {"someProperty": 1, "someOtherProperty": True}
        assert cascade.resolve_all(ul.element_children[1]) == {"someProperty": 3, "someOtherProperty": True}

    def test_root_element(self, cascade, ul):
        assert cascade.resolve_all(ul) == {
            "someOtherProperty": True,
            "yetAnotherProperty": 2,
            "someProperty": 0,
        }

    def test_root_without_parent_uses_default_for_inherited(self, ul):
        cascade = CascadingPropertySet(
            {"color": {"inherited": True, "default_value": "black"}, "font": {"inherited": True}},
        )
        assert cascade.resolve_all(ul) == {"color": "black", "font": None}

    def test_inherits_from_parent(self):
        root = parse_fragment("<div><p>text</p></div>")
        cascade = CascadingPropertySet({"color": {"inherited": True}}, {"div": {"color": "red"}})
        assert cascade.resolve_all(root.element_children[0]) == {"color": "red"}

    def test_same_tie_break_as_resolve(self, ul):
        cascade = CascadingPropertySet(rules={"li": {"x": 1}, "ul > li": {"x": 2}, "ul li": {"x": 3}})
        li = ul.element_children[0]
        assert cascade.resolve_all(li)["x"] == cascade.resolve(li, "x") == 3

    def test_unmatched_element_without_declarations(self, ul):
        assert CascadingPropertySet(rules={"p": {"x": 1}}).resolve_all(ul) == {}
