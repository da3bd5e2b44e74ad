"""Replies for contacts that are not (yet) verified customers.

The verification prompt is sent for every message from an unverified contact. The
reply to it is not parsed here; an agent verifies the customer from the admin side.
"""

from typing import Optional

from whatsapp_desk.config import settings
from whatsapp_desk.models import Customer
from whatsapp_desk.services.command_router import GREETINGS, RoutedReply
from whatsapp_desk.services.normalizer import matching_text

UNKNOWN_NUMBER_GREETING = (
    "Hello! I don't have your phone number in our database. "
    "Type 'register' for setup info or reply with your name and email."
)
REGISTRATION_PROMPT = (
    "To register, please reply with:\n"
    "Full Name\n"
    "Email Address\n"
    "Physical Address\n"
    "We'll get you set up ASAP."
)
NOT_LINKED_TEMPLATE = (
    "Sorry, your number isn't linked to a {company} account yet. Type 'register' or 'help' for more options."
)
VERIFICATION_PROMPT = (
    "Are you an existing client? Reply with 'First Last, you@example.com, YourCustomerID' or 'new'"
)


def route(text: str, customer: Optional[Customer], first_contact: bool) -> RoutedReply:
    """Reply for an absent (first contact) or unverified contact.

    ``first_contact`` is True when the customer row was created for this message.
    """
    if customer is not None and customer.verified:
        raise ValueError("Onboarding applies only to unverified contacts")

    if not first_contact:
        return RoutedReply(VERIFICATION_PROMPT, "verification_prompt")

    normalized = matching_text(text)
    if normalized in GREETINGS:
        return RoutedReply(UNKNOWN_NUMBER_GREETING, "unknown_greeting")
    if "register" in normalized:
        return RoutedReply(REGISTRATION_PROMPT, "register")
    return RoutedReply(NOT_LINKED_TEMPLATE.format(company=settings.company_name), "not_linked")
