"""geoipqa CLI entry point.

This module enables running geoipqa as:
    python -m geoipqa <command>
"""

from geoipqa.cli import main

if __name__ == "__main__":
    main()
