import sys

from tcg_catalog.cli import main

sys.exit(main())
