import sys

from logproc.cli import main

sys.exit(main())
