import sys

from hawkdog.hawkdog_main import main

sys.exit(main())
