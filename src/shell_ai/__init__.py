"""
shell-ai - package root.

File: src/shell_ai/__init__.py
Last updated: 2026-10-19

Purpose
- Package root. Turns natural-language requests into shell commands and
  explains existing commands through a configurable LLM provider.

What should be included in this file
- Version export and a minimal public surface.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.6.0"

__all__ = ["__version__"]
