"""Entry point for touch_challenge package"""

import sys

from touch_challenge.main import main

if __name__ == "__main__":
    sys.exit(main())
