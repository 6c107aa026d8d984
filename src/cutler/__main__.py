"""Allow ``python -m cutler``."""
import sys

from .cli import main

sys.exit(main())
