from enum import Enum
from typing import Optional


class ThreadTag(str, Enum):
    UNVERIFIED = "unverified"
    LEAD = "lead"
    SYSTEM = "system"
    SUPPORT = "support"
    SALES = "sales"
    ACCOUNTS = "accounts"
    CUSTOMER = "customer"
    OUTGOING = "outgoing"


class Direction(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


# Menu digit -> department, matching the greeting menu order.
DEPARTMENT_CHOICES = {
    "1": ThreadTag.SUPPORT,
    "2": ThreadTag.SALES,
    "3": ThreadTag.ACCOUNTS,
}

# Tags that describe the state of the contact rather than a department.
STATE_TAGS = {
    ThreadTag.UNVERIFIED.value,
    ThreadTag.LEAD.value,
    ThreadTag.SYSTEM.value,
    ThreadTag.CUSTOMER.value,
    ThreadTag.OUTGOING.value,
}


def department_for_choice(choice: str) -> Optional[ThreadTag]:
    """Map a menu reply ("1", "2", "3") to its department tag."""
    return DEPARTMENT_CHOICES.get((choice or "").strip())


def is_department_tag(tag: Optional[str]) -> bool:
    """Departments are the built-in ones plus any custom tag set by an agent."""
    if not tag:
        return False
    return tag not in STATE_TAGS


def verified_thread_tag(latest_tag: Optional[str]) -> str:
    """Tag for new rows in a verified customer's thread.

    Keeps the department the thread was routed to, so a retag survives later messages.
    """
    if is_department_tag(latest_tag):
        return latest_tag
    return ThreadTag.CUSTOMER.value
