import sys

from termgrid.cli import main

sys.exit(main())
