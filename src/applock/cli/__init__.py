"""CLI module - Command-line interface components."""

from applock.cli.main import main
from applock.cli.parser import build_parser, parse_arguments

__all__ = [
    "build_parser",
    "main",
    "parse_arguments",
]
