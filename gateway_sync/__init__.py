# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

"""Sync domain blocklists/allowlists into Cloudflare Zero Trust Gateway lists and rules."""

__version__ = "1.0.0"
