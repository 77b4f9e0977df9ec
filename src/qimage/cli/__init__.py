#!/usr/bin/env python3
"""
qimage CLI package.
"""

from .parsers import build_parser, main
from .utils import console, parse_size, resolve_secret

__all__ = ["build_parser", "main", "console", "parse_size", "resolve_secret"]
