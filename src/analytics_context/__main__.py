"""Run the analytics-context CLI with `python -m analytics_context`."""

from __future__ import annotations

from .cli import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
