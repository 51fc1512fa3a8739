"""Allow ``python -m applock``."""

import sys

from applock.cli.main import main

sys.exit(main())
