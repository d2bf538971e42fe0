import sys

from gh_insights.cli import main

sys.exit(main())
