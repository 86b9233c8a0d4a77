"""Allow running as python -m jobtrace."""

import sys

from jobtrace.cli import main

sys.exit(main())
