# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

"""
Names of the resources this tool manages.

Cleanup matches both the current names and the names used by earlier
generations of the sync tooling (CGPS and Go-CFGW) so that a run always
starts from a clean slate.
"""

RULE_NAME = "Gateway Sync Filter Lists"
SNI_RULE_NAME = f"{RULE_NAME} - SNI Based Filtering"

BLOCK_LIST_BASENAME = "Gateway Sync Block List"
ALLOW_LIST_BASENAME = "Gateway Sync Allow List"

RULE_DESCRIPTION = (
    "Filter lists created by gateway-sync. Avoid editing this rule. "
    "Changing the name of this rule will break the sync."
)
BLOCK_REASON = "Blocked by gateway-sync, check your filter lists if this was a mistake."

# Substring match against rule names
RULE_MARKERS = (
    "CGPS Filter Lists",
    "Go-CFGW Filter Lists",
    RULE_NAME,
)

# Substring match against list names ("CGPS List", "CGPS Block List", ...)
LIST_MARKERS = (
    "CGPS",
)

# Prefix match against list names
LIST_PREFIXES = (
    "Go-CFGW Block List",
    "Go-CFGW Allow List",
    BLOCK_LIST_BASENAME,
    ALLOW_LIST_BASENAME,
)

def is_managed_rule(name: str) -> bool:
    """Whether a rule was created by this tool or one of its predecessors."""
    return any(marker in name for marker in RULE_MARKERS)

def is_managed_list(name: str) -> bool:
    """Whether a list was created by this tool or one of its predecessors."""
    if any(marker in name for marker in LIST_MARKERS):
        return True
    return name.startswith(LIST_PREFIXES)

def chunk_list_name(basename: str, index: int) -> str:
    """Name of the list holding chunk `index` (zero-based)."""
    return f"{basename} - Chunk {index + 1}"
