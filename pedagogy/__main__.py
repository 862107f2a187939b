"""Allow `python -m pedagogy`."""

import sys

from pedagogy.cli import main

sys.exit(main())
