# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

"""Build Gateway traffic expressions that match any of a set of lists."""

import re
from typing import Sequence

DNS_DOMAINS_FIELD = "dns.domains"
SNI_DOMAINS_FIELD = "net.sni.domains"

# Gateway rule filter kinds and the field each one matches on
TRAFFIC_FIELDS = {
    "dns": DNS_DOMAINS_FIELD,
    "l4": SNI_DOMAINS_FIELD,
}

_LIST_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')

def build_traffic_expression(list_ids: Sequence[str], field: str = DNS_DOMAINS_FIELD) -> str:
    """
    Join one `any(<field>[*] in $<id>)` clause per list with " or ".
    Clause order follows list_ids.
    """
    if not list_ids:
        raise ValueError("cannot build a traffic expression without list ids")
    if not field:
        raise ValueError("field must not be empty")

    clauses = []
    for list_id in list_ids:
        if not _LIST_ID_PATTERN.match(list_id or ""):
            raise ValueError(f"invalid list id: {list_id!r}")
        clauses.append(f"any({field}[*] in ${list_id})")
    return " or ".join(clauses)

def build_expression_for_filter(list_ids: Sequence[str], filter_kind: str) -> str:
    try:
        field = TRAFFIC_FIELDS[filter_kind]
    except KeyError:
        raise ValueError(f"unknown filter kind: {filter_kind!r}") from None
    return build_traffic_expression(list_ids, field)
