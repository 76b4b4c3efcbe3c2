#!/usr/bin/env python
"""Run django-eventbook management commands against the example project.

Usage::

    cd examples
    python manage.py migrate
    python manage.py bootstrap_events --config events.example.toml
    python manage.py expire_loyalty_points
"""

import os
import sys


def main() -> None:
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "settings")
    try:
        from django.core.management import execute_from_command_line  # noqa: PLC0415
    except ImportError as exc:
        msg = "Django is not installed. Install the project with `pip install -e .[dev]` first."
        raise ImportError(msg) from exc
    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
