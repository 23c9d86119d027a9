import sys

from winboat.cli import main

sys.exit(main())
