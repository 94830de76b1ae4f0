"""
Package entry point.

Allows running the application via:

    python -m nietimetable

This simply forwards execution to nietimetable.cli.main().
"""

from nietimetable.cli import main

if __name__ == "__main__":
    main()
