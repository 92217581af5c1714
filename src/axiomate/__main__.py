"""Entry point for the interactive assistant.

Usage:
    python -m axiomate [--model MODEL_ID] [--plan] [--cwd DIR]
"""

import sys

from axiomate.cli import main

if __name__ == "__main__":
    sys.exit(main())
