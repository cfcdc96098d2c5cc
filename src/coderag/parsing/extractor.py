"""Depth-first extraction of named functions and classes from a syntax tree.

The walker only relies on the small node surface every tree-sitter binding
exposes (``type``, ``text``, ``children``, ``parent`` and
``child_by_field_name``), so any tree honouring that protocol can be fed in.
"""
from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

from .models import CodeUnit, UnitKind

FUNCTION_NODE_TYPES = frozenset(
    {
        "function_declaration",
        "generator_function_declaration",
        "arrow_function",
        "function_expression",
    }
)
DECLARATION_NODE_TYPES = frozenset({"function_declaration", "generator_function_declaration"})
CLASS_NODE_TYPES = frozenset({"class_declaration", "abstract_class_declaration"})

_BINDING_PARENT = "variable_declarator"
_PROPERTY_PARENT = "pair"


class SyntaxNode(Protocol):
    """Subset of the tree-sitter ``Node`` API used by the extractor."""

    type: str

    @property
    def text(self) -> bytes | str | None: ...

    @property
    def children(self) -> Sequence["SyntaxNode"]: ...

    @property
    def parent(self) -> Optional["SyntaxNode"]: ...

    def child_by_field_name(self, name: str) -> Optional["SyntaxNode"]: ...


def node_text(node: SyntaxNode | None) -> str:
    if node is None:
        return ""
    text = node.text
    if text is None:
        return ""
    if isinstance(text, bytes):
        return text.decode("utf-8", errors="replace")
    return str(text)


def _property_key(node: SyntaxNode) -> str:
    key = node_text(node)
    if node.type == "string" and len(key) >= 2 and key[0] == key[-1] and key[0] in "'\"`":
        return key[1:-1]
    return key


def resolve_function_name(node: SyntaxNode) -> Optional[str]:
    """Return the identity of a function node, or ``None`` when it is anonymous."""

    if node.type in DECLARATION_NODE_TYPES:
        name = node_text(node.child_by_field_name("name"))
        if name:
            return name

    parent = node.parent
    if parent is None:
        return None

    if parent.type == _BINDING_PARENT:
        name_node = parent.child_by_field_name("name")
        # Destructuring patterns carry no single name.
        if name_node is not None and name_node.type == "identifier":
            return node_text(name_node) or None
        return None

    if parent.type == _PROPERTY_PARENT:
        key_node = parent.child_by_field_name("key")
        if key_node is not None:
            return _property_key(key_node) or None

    return None


def resolve_class_name(node: SyntaxNode) -> Optional[str]:
    return node_text(node.child_by_field_name("name")) or None


def extract_units(root: SyntaxNode, file_path: str) -> List[CodeUnit]:
    """Collect every named function and class under ``root`` in pre-order.

    An explicit stack replaces recursion so pathological nesting cannot
    exhaust the interpreter stack.
    """

    units: List[CodeUnit] = []
    stack: List[SyntaxNode] = [root]
    while stack:
        node = stack.pop()

        if node.type in FUNCTION_NODE_TYPES:
            name = resolve_function_name(node)
            if name:
                units.append(
                    CodeUnit(id=name, kind=UnitKind.FUNCTION, source_text=node_text(node), file_path=file_path)
                )
        elif node.type in CLASS_NODE_TYPES:
            name = resolve_class_name(node)
            if name:
                units.append(
                    CodeUnit(id=name, kind=UnitKind.CLASS, source_text=node_text(node), file_path=file_path)
                )

        children = node.children
        if children:
            stack.extend(reversed(children))
    return units


__all__ = [
    "CLASS_NODE_TYPES",
    "FUNCTION_NODE_TYPES",
    "SyntaxNode",
    "extract_units",
    "node_text",
    "resolve_class_name",
    "resolve_function_name",
]
