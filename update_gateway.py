# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import sys

from gateway_sync.cli import main

if __name__ == "__main__":
    sys.exit(main())
