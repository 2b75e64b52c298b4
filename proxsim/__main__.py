import sys

from .scenarios.machine import main

sys.exit(main())
