"""Keyword commands for verified customers.

Rules are evaluated top to bottom and the first match wins, so the order below is
part of the behaviour: e.g. "service down, need support" is a status request, not a
support request.
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.orm import Session

from whatsapp_desk.config import settings
from whatsapp_desk.logging_config import get_logger
from whatsapp_desk.models import Customer
from whatsapp_desk.services import account_service, conversation_log
from whatsapp_desk.services.normalizer import matching_text
from whatsapp_desk.services.thread_state import department_for_choice

logger = get_logger("command_router")

GREETINGS = {"hi", "hello", "good day", "hey"}
SUPPORT_KEYWORDS = ("slow", "no internet", "not working", "support")

BALANCE_UNAVAILABLE = "Sorry, we couldn't fetch your balance right now. Please try again later."
STATUS_UNAVAILABLE = "Sorry, we couldn't fetch your service status right now. Please try again later."
INVOICE_UNAVAILABLE = "Sorry, we couldn't fetch your latest invoice right now. Please try again later."

HELP_TEXT = (
    "Type:\n"
    "B - Balance\n"
    "S - Service status\n"
    "I - Latest invoice\n"
    "P - Payment options\n"
    "U - Data usage\n"
    "Support - Technical help"
)


@dataclass(frozen=True)
class RoutedReply:
    text: str
    rule: str
    retagged_to: Optional[str] = None


@dataclass(frozen=True)
class CommandRule:
    name: str
    matches: Callable[[str], bool]
    handle: Callable[[Session, str, Customer], RoutedReply]


def _starts_with_or_bare(word: str, letter: str) -> Callable[[str], bool]:
    pattern = re.compile(rf"{word}\b")
    return lambda text: bool(pattern.match(text)) or text == letter


def _money(amount: Decimal) -> str:
    return f"R{amount:.2f}"


def _greeting(db: Session, text: str, customer: Customer) -> RoutedReply:
    reply = (
        f"Hello {customer.first_name}! How can we assist you today?\n"
        "1. Support\n"
        "2. Sales\n"
        "3. Accounts"
    )
    return RoutedReply(reply, "greeting")


def _department_choice(db: Session, text: str, customer: Customer) -> RoutedReply:
    tag = department_for_choice(text).value
    conversation_log.retag_thread(db, customer.phone, tag)
    logger.info("Thread retagged", extra={"context": {"phone": customer.phone, "tag": tag}})
    return RoutedReply(f"Connected with {tag}. How can we assist further?", "department", retagged_to=tag)


def _balance(db: Session, text: str, customer: Customer) -> RoutedReply:
    result = account_service.get_balance(customer.customer_id)
    if not result.ok:
        logger.warning(
            "Balance lookup failed",
            extra={"context": {"phone": customer.phone, "error_code": result.error_code}},
        )
        return RoutedReply(BALANCE_UNAVAILABLE, "balance")

    balance = result.value
    if not balance.is_finite():
        logger.warning("Balance lookup returned a non-numeric amount", extra={"context": {"phone": customer.phone}})
        return RoutedReply(BALANCE_UNAVAILABLE, "balance")

    lines = ["💰 *Account Balance*", f"Balance: {_money(balance)}"]
    if balance < 0:
        lines.append(
            f"⚠️ Your account has an outstanding amount of {_money(balance)}. "
            "Please make a payment to avoid service interruption. Type *P* for payment options."
        )
    else:
        lines.append(f"Thank you for being a {settings.company_name} customer!")
    return RoutedReply("\n".join(lines), "balance")


def _service_status(db: Session, text: str, customer: Customer) -> RoutedReply:
    result = account_service.get_status(customer.customer_id)
    if not result.ok:
        logger.warning(
            "Status lookup failed",
            extra={"context": {"phone": customer.phone, "error_code": result.error_code}},
        )
        return RoutedReply(STATUS_UNAVAILABLE, "service")

    status = result.value
    reply = f"📶 *Service Status*\nYour account status: {status}."
    if status.strip().lower() != "active":
        reply += "\nIf you are having trouble, type *Support* or contact our support desk."
    return RoutedReply(reply, "service")


def _invoice(db: Session, text: str, customer: Customer) -> RoutedReply:
    result = account_service.get_latest_invoice(customer.customer_id)
    if not result.ok:
        logger.warning(
            "Invoice lookup failed",
            extra={"context": {"phone": customer.phone, "error_code": result.error_code}},
        )
        return RoutedReply(INVOICE_UNAVAILABLE, "invoice")

    invoice = result.value
    reply = f"🧾 *Latest Invoice*\nInvoice #{invoice.id}\nAmount: {_money(invoice.total)}\nDate: {invoice.date}"
    return RoutedReply(reply, "invoice")


def _payment_options(db: Session, text: str, customer: Customer) -> RoutedReply:
    reply = (
        "Payment options:\n"
        f"- EFT: {settings.payment_eft_details}\n"
        f"- Card: {settings.payment_portal_url}\n"
        f"Reference: Your customer ID ({customer.customer_id})"
    )
    return RoutedReply(reply, "payment")


def _usage(db: Session, text: str, customer: Customer) -> RoutedReply:
    reply = (
        f"Please log into your client portal for live usage: {settings.usage_portal_url}\n"
        "Or type 'Support' for help."
    )
    return RoutedReply(reply, "usage")


def _technical_support(db: Session, text: str, customer: Customer) -> RoutedReply:
    reply = (
        "🛠️ Technical Support\n"
        f"Hi {customer.display_name}, here are common solutions:\n"
        "- Restart your router/modem\n"
        "- Check all cables and power\n"
        "- If your account is blocked, type *B* for balance.\n"
        f"Account ID: {customer.customer_id}\n"
        "If you need to log a fault, reply *fault* and our support desk will call you."
    )
    return RoutedReply(reply, "support")


def _help(db: Session, text: str, customer: Customer) -> RoutedReply:
    return RoutedReply(HELP_TEXT, "help")


COMMAND_RULES: list[CommandRule] = [
    CommandRule("greeting", lambda text: text in GREETINGS, _greeting),
    CommandRule("department", lambda text: department_for_choice(text) is not None, _department_choice),
    CommandRule("balance", _starts_with_or_bare("balance", "b"), _balance),
    CommandRule("service", _starts_with_or_bare("service", "s"), _service_status),
    CommandRule("invoice", _starts_with_or_bare("invoice", "i"), _invoice),
    CommandRule("payment", lambda text: text == "p", _payment_options),
    CommandRule("usage", lambda text: text == "u", _usage),
    CommandRule("support", lambda text: any(keyword in text for keyword in SUPPORT_KEYWORDS), _technical_support),
    CommandRule("help", lambda text: text == "help", _help),
]


def fallback_reply(customer: Customer) -> RoutedReply:
    return RoutedReply(f"Hi {customer.display_name}, I didn't understand that. Type 'help' for options.", "fallback")


def route(db: Session, text: str, customer: Customer) -> RoutedReply:
    """Pick the reply for a verified customer's message."""
    if customer is None or not customer.verified:
        raise ValueError("Command routing requires a verified customer")

    normalized = matching_text(text)
    for rule in COMMAND_RULES:
        if rule.matches(normalized):
            return rule.handle(db, normalized, customer)
    return fallback_reply(customer)
