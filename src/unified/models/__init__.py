"""SQLAlchemy models. Importing this package registers every table on Base.metadata."""

from src.unified.models.crm import (
    CrmAddressModel,
    CrmContactModel,
    CrmEmailAddressModel,
    CrmPhoneNumberModel,
    CrmUserModel,
)
from src.unified.models.eav import AttributeModel, AttributeStatus, EntityModel, RemoteDataModel, ValueModel
from src.unified.models.shared import Connection, ConnectionStatus, LinkedAccount, Project, Tenant
from src.unified.models.ticketing import (
    TicketingAttachmentModel,
    TicketingTeamModel,
    TicketingTicketModel,
    TicketingTicketTagModel,
    TicketingUserModel,
)

__all__ = [
    "Tenant",
    "Project",
    "LinkedAccount",
    "Connection",
    "ConnectionStatus",
    "AttributeModel",
    "AttributeStatus",
    "EntityModel",
    "ValueModel",
    "RemoteDataModel",
    "CrmUserModel",
    "CrmContactModel",
    "CrmEmailAddressModel",
    "CrmPhoneNumberModel",
    "CrmAddressModel",
    "TicketingUserModel",
    "TicketingTeamModel",
    "TicketingTicketModel",
    "TicketingTicketTagModel",
    "TicketingAttachmentModel",
]
