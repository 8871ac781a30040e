"""Module entrypoint for ``python -m shell_ai``."""

from __future__ import annotations

from shell_ai.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
