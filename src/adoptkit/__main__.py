"""Allow `python -m adoptkit <path>`."""

import sys

from adoptkit.cli import main

sys.exit(main())
