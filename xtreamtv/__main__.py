"""Allow ``python -m xtreamtv``."""

import sys

from xtreamtv.cli import main

if __name__ == "__main__":
    sys.exit(main())
