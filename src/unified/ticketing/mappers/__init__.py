"""Ticketing provider mappers. MAPPERS lists every class registered at bootstrap."""

from src.unified.ticketing.mappers.front import FrontTagMapper, FrontTicketMapper, FrontUserMapper
from src.unified.ticketing.mappers.jira import JiraAttachmentMapper
from src.unified.ticketing.mappers.zendesk import ZendeskTeamMapper

MAPPERS = [
    FrontTicketMapper,
    FrontTagMapper,
    FrontUserMapper,
    ZendeskTeamMapper,
    JiraAttachmentMapper,
]

__all__ = [
    "MAPPERS",
    "FrontTicketMapper",
    "FrontTagMapper",
    "FrontUserMapper",
    "ZendeskTeamMapper",
    "JiraAttachmentMapper",
]
