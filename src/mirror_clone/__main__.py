import sys

from mirror_clone.cli import main

sys.exit(main())
