from whatsapp_desk.models.admin import AdminUser, ChatSession, Flow, FlowStep, Lead
from whatsapp_desk.models.customer import Customer
from whatsapp_desk.models.message import Message
from whatsapp_desk.models.office import AutoReply, OfficeGlobal, OfficeHours, PublicHoliday

__all__ = [
    "Customer",
    "Message",
    "AutoReply",
    "OfficeHours",
    "OfficeGlobal",
    "PublicHoliday",
    "AdminUser",
    "Lead",
    "ChatSession",
    "Flow",
    "FlowStep",
]
