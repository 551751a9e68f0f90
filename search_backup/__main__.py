import sys

from search_backup.cli import main

sys.exit(main())
