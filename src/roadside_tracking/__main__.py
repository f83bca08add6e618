import sys

from roadside_tracking.main import main

sys.exit(main())
