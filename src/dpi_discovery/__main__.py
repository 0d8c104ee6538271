"""Allow running the console with `python -m dpi_discovery`."""

import sys

from .cli import main

sys.exit(main())
