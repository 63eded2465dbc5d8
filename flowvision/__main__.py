"""Entry point for ``python -m flowvision``."""

import sys

from flowvision.cli import main

sys.exit(main())
