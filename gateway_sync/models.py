# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

"""
Schema records for Gateway API payloads.

Unknown fields in responses are ignored so that new attributes added by the
API do not break decoding; the fields we rely on are validated.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

class GatewayModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

class ListItem(GatewayModel):
    value: str

class GatewayList(GatewayModel):
    id: str
    name: str
    type: Optional[str] = None
    description: Optional[str] = None
    count: Optional[int] = None

class RuleSettings(GatewayModel):
    block_page_enabled: bool = False
    block_reason: str = ""

class GatewayRule(GatewayModel):
    id: str
    name: str
    description: str = ""
    enabled: bool = False
    action: str = ""
    filters: List[str] = Field(default_factory=list)
    traffic: str = ""
    precedence: Optional[int] = None
    rule_settings: Optional[RuleSettings] = None

class ListCreateRequest(GatewayModel):
    name: str
    type: str = "DOMAIN"
    description: Optional[str] = None
    items: List[ListItem] = Field(default_factory=list)

    @classmethod
    def for_domains(cls, name: str, domains: List[str],
                    description: Optional[str] = None) -> "ListCreateRequest":
        return cls(name=name, description=description,
                   items=[ListItem(value=domain) for domain in domains])

class RuleUpsertRequest(GatewayModel):
    name: str
    description: str
    enabled: bool = True
    action: str = "block"
    rule_settings: RuleSettings
    filters: List[str]
    traffic: str

class ResultInfo(GatewayModel):
    page: int = 1
    per_page: int = 0
    count: int = 0
    total_count: int = 0

class ApiEnvelope(GatewayModel):
    """Standard Cloudflare v4 response wrapper."""

    success: bool = True
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    messages: List[Any] = Field(default_factory=list)
    result: Any = None
    result_info: Optional[ResultInfo] = None
