"""Exception types and message definitions for cascade declarations.

Queries never raise: unknown properties and unmatched elements resolve to
``None`` or a declared default. Errors are only surfaced while declaring
properties or rules, before the store has been modified.
"""

from __future__ import annotations

from typing import Any


def generate_error_message(code: str, key: Any = None) -> str:
    """Generate human-readable error message from error code.

    Args:
        code: The error code string (kebab-case format)
        key: Optional rule tree key to include in the message for context

    Returns:
        Human-readable error message string
    """
    messages = {
        "non-string-key": f"Rule tree keys must be strings, got {key!r}",
        "ambiguous-mapping": (
            f"Value of {key!r} is a mapping that is not a dict; wrap it in Scope() to nest "
            "selectors or in Value() to assign it as a property value"
        ),
        "scope-not-mapping": f"Scope for {key!r} must wrap a mapping",
        "root-not-mapping": "A rule tree must be a mapping of selectors and properties",
        "declaration-not-mapping": (
            f"Declaration of {key!r} must be a PropertyDeclaration or a mapping with "
            "default_value and inherited keys"
        ),
    }

    # Return message or fall back to the code itself if not found
    return messages.get(code, code)


class CascadeError(Exception):
    """Base class for errors raised by cascading_properties."""


class RuleTreeError(CascadeError, ValueError):
    """Raised when a rule tree has a shape that cannot be tagged unambiguously."""

    code: str
    key: Any

    def __init__(self, code: str, key: Any = None) -> None:
        self.code = code
        self.key = key
        super().__init__(generate_error_message(code, key))


class PropertyDeclarationError(CascadeError, TypeError):
    """Raised when a property definition is not a declaration or a mapping."""

    code: str
    key: Any

    def __init__(self, code: str, key: Any = None) -> None:
        self.code = code
        self.key = key
        super().__init__(generate_error_message(code, key))
