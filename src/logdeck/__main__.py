"""Allow ``python -m logdeck``."""

import sys

from .cli import main

sys.exit(main())
