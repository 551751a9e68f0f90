#!/usr/bin/env python
import sys

from search_backup.cli import main


if __name__ == "__main__":
    sys.exit(main())
