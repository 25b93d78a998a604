"""Allow running the outbox maintenance CLI as a module: python -m bugreport."""

import sys

from bugreport.runner import main

if __name__ == "__main__":
    sys.exit(main())
