"""Allow ``python -m src.cli`` execution."""

import sys

from src.cli.manage import main

sys.exit(main())
