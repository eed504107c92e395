"""
PATH: manage.py

Django management entrypoint.

Settings module resolution:
- unset, or pointing at the settings *package* ("backend.settings")
  -> backend.settings.test for `manage.py test`, backend.settings.dev otherwise
- anything else (e.g. backend.settings.prod) is respected
"""

from __future__ import annotations

import os
import sys


def _ensure_settings_module(argv: list[str]) -> None:
    current = (os.environ.get("DJANGO_SETTINGS_MODULE") or "").strip()

    # The package __init__ loads nothing, so INSTALLED_APPS would be empty.
    if not current or current == "backend.settings":
        is_test = len(argv) > 1 and argv[1] == "test"
        os.environ["DJANGO_SETTINGS_MODULE"] = (
            "backend.settings.test" if is_test else "backend.settings.dev"
        )


def main() -> None:
    _ensure_settings_module(sys.argv)

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Are you sure it's installed and "
            "available on your PYTHONPATH environment variable? Did you "
            "forget to activate a virtual environment?"
        ) from exc

    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
