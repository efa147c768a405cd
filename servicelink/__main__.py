import sys

from servicelink.main import main

sys.exit(main())
