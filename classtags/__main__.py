"""Module entry point for running classtags as a package.

Allows: python -m classtags <command>
"""

import sys

from classtags.cli import main

if __name__ == "__main__":
    sys.exit(main())
