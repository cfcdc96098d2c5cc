"""Syntax extraction of named code units."""
from __future__ import annotations

from .extractor import SyntaxNode, extract_units
from .models import CodeUnit, UnitKind
from .parser import SUPPORTED_SUFFIXES, SourceParser, is_supported_source

__all__ = [
    "CodeUnit",
    "SUPPORTED_SUFFIXES",
    "SourceParser",
    "SyntaxNode",
    "UnitKind",
    "extract_units",
    "is_supported_source",
]
