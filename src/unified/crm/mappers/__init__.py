"""CRM provider mappers. MAPPERS lists every class registered at bootstrap."""

from src.unified.crm.mappers.hubspot import HubSpotContactMapper, HubSpotUserMapper
from src.unified.crm.mappers.zendesk import ZendeskContactMapper

MAPPERS = [
    HubSpotContactMapper,
    HubSpotUserMapper,
    ZendeskContactMapper,
]

__all__ = ["MAPPERS", "HubSpotContactMapper", "HubSpotUserMapper", "ZendeskContactMapper"]
