import sys

from oniongate.cli import main

sys.exit(main())
