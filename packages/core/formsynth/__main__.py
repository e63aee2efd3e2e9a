"""Allow ``python -m formsynth``."""

import sys

from .cli import main


sys.exit(main())
