from decimal import Decimal
from unittest.mock import patch

import pytest

from conftest import MONDAY_MORNING, text_message

from whatsapp_desk.models import Customer, Message, OfficeGlobal, PublicHoliday
from whatsapp_desk.schemas.webhook import InboundMessage
from whatsapp_desk.services import conversation_log
from whatsapp_desk.services.availability_service import HOLIDAY_MESSAGE
from whatsapp_desk.services.command_router import HELP_TEXT
from whatsapp_desk.services.intake_service import VOICE_NOTE_APOLOGY, IntakeStage, process_inbound
from whatsapp_desk.services.onboarding_router import UNKNOWN_NUMBER_GREETING, VERIFICATION_PROMPT
from whatsapp_desk.services.result import Result


def _rows(db, phone):
    return db.query(Message).filter(Message.from_number == phone).order_by(Message.id.asc()).all()


class TestAvailabilityShortCircuit:
    def test_global_closure_sends_default_message_and_logs_one_row(self, sqlite_db, sent_messages, test_settings):
        sqlite_db.add(OfficeGlobal(id=1, closed=True, message=""))
        sqlite_db.commit()

        outcome = process_inbound(sqlite_db, text_message("27820000001", "hi"), now=MONDAY_MORNING)

        assert outcome.stage == IntakeStage.CLOSED
        assert outcome.reply == test_settings.global_closed_default_message
        rows = _rows(sqlite_db, "27820000001")
        assert len(rows) == 1
        assert rows[0].direction == "outgoing"
        assert rows[0].tag == "system"
        assert sqlite_db.query(Customer).count() == 0
        assert sent_messages == [("27820000001", test_settings.global_closed_default_message)]

    def test_global_closure_uses_configured_message(self, sqlite_db, sent_messages):
        sqlite_db.add(OfficeGlobal(id=1, closed=True, message="Closed for stocktake"))
        sqlite_db.add(PublicHoliday(date="2024-05-06", name="Holiday"))
        sqlite_db.commit()

        outcome = process_inbound(sqlite_db, text_message("27820000001", "b"), now=MONDAY_MORNING)

        assert outcome.reply == "Closed for stocktake"
        assert len(_rows(sqlite_db, "27820000001")) == 1

    def test_holiday_closes_when_globally_open(self, sqlite_db, sent_messages):
        sqlite_db.add(OfficeGlobal(id=1, closed=False, message=""))
        sqlite_db.add(PublicHoliday(date="2024-05-06", name="Workers' Day (observed)"))
        sqlite_db.commit()

        outcome = process_inbound(sqlite_db, text_message("27820000001", "hello"), now=MONDAY_MORNING)

        assert outcome.stage == IntakeStage.CLOSED
        assert outcome.reply == HOLIDAY_MESSAGE
        rows = _rows(sqlite_db, "27820000001")
        assert [(r.direction, r.tag) for r in rows] == [("outgoing", "system")]

    def test_closure_applies_to_verified_customers(self, sqlite_db, sent_messages, verified_customer):
        sqlite_db.add(OfficeGlobal(id=1, closed=True, message="Closed for stocktake"))
        sqlite_db.commit()

        with patch("whatsapp_desk.services.account_service.get_balance") as get_balance, patch(
            "whatsapp_desk.services.command_router.route"
        ) as command_route:
            outcome = process_inbound(sqlite_db, text_message(verified_customer.phone, "b"), now=MONDAY_MORNING)

        assert outcome.stage == IntakeStage.CLOSED
        assert outcome.reply == "Closed for stocktake"
        get_balance.assert_not_called()
        command_route.assert_not_called()
        rows = _rows(sqlite_db, verified_customer.phone)
        assert [(r.direction, r.tag) for r in rows] == [("outgoing", "system")]


class TestVoiceNotes:
    def test_voice_note_logs_two_rows_and_creates_placeholder(self, sqlite_db, sent_messages):
        message = InboundMessage.model_validate(
            {
                "from": "27820000002",
                "type": "audio",
                "audio": {"link": "https://cdn.example.com/voice.ogg", "voice": True},
            }
        )

        with patch("whatsapp_desk.services.command_router.route") as command_route, patch(
            "whatsapp_desk.services.onboarding_router.route"
        ) as onboarding_route:
            outcome = process_inbound(sqlite_db, message, now=MONDAY_MORNING)

        assert outcome.stage == IntakeStage.VOICE_REJECTED
        command_route.assert_not_called()
        onboarding_route.assert_not_called()

        rows = _rows(sqlite_db, "27820000002")
        assert [(r.direction, r.tag) for r in rows] == [("incoming", "lead"), ("outgoing", "lead")]
        assert rows[0].body == "[Audio]"
        assert rows[0].media_url == "https://cdn.example.com/voice.ogg"
        assert rows[1].body == VOICE_NOTE_APOLOGY

        customer = sqlite_db.query(Customer).filter(Customer.phone == "27820000002").one()
        assert customer.verified is False


class TestOnboarding:
    def test_unknown_number_greeting_creates_placeholder(self, sqlite_db, sent_messages):
        outcome = process_inbound(sqlite_db, text_message("27821234567", "hi"), now=MONDAY_MORNING)

        assert outcome.stage == IntakeStage.ONBOARDING
        assert outcome.reply == UNKNOWN_NUMBER_GREETING
        customer = sqlite_db.query(Customer).filter(Customer.phone == "27821234567").one()
        assert customer.verified is False
        assert customer.name == ""

        rows = _rows(sqlite_db, "27821234567")
        outgoing = [r for r in rows if r.direction == "outgoing"]
        assert len(outgoing) == 1
        assert outgoing[0].tag == "unverified"
        assert rows[0].direction == "incoming"
        assert rows[0].tag == "unverified"

    def test_second_message_gets_verification_prompt(self, sqlite_db, sent_messages):
        process_inbound(sqlite_db, text_message("27821234567", "hi"), now=MONDAY_MORNING)
        outcome = process_inbound(sqlite_db, text_message("27821234567", "Jane Doe, jane@example.com, 10042"), now=MONDAY_MORNING)

        assert outcome.reply == VERIFICATION_PROMPT
        assert sqlite_db.query(Customer).count() == 1

    def test_unverified_contact_never_reaches_account_lookups(self, sqlite_db, sent_messages):
        sqlite_db.add(Customer(phone="27820000003", name="", email="", customer_id="", verified=False))
        sqlite_db.commit()

        with patch("whatsapp_desk.services.account_service.get_balance") as get_balance:
            outcome = process_inbound(sqlite_db, text_message("27820000003", "balance"), now=MONDAY_MORNING)

        get_balance.assert_not_called()
        assert outcome.reply == VERIFICATION_PROMPT


class TestVerifiedCustomers:
    def test_help_returns_command_list(self, sqlite_db, sent_messages, verified_customer):
        outcome = process_inbound(sqlite_db, text_message(verified_customer.phone, "help"), now=MONDAY_MORNING)

        assert outcome.stage == IntakeStage.COMMAND
        assert outcome.reply == HELP_TEXT
        assert outcome.tag == "customer"

    def test_slow_connection_gets_support_script(self, sqlite_db, sent_messages, verified_customer):
        outcome = process_inbound(sqlite_db, text_message(verified_customer.phone, "My line is SLOW"), now=MONDAY_MORNING)

        assert "Technical Support" in outcome.reply
        assert "Jane Doe" in outcome.reply
        assert "10042" in outcome.reply

    def test_department_choice_retags_thread(self, sqlite_db, sent_messages, verified_customer):
        process_inbound(sqlite_db, text_message(verified_customer.phone, "hi"), now=MONDAY_MORNING)
        outcome = process_inbound(sqlite_db, text_message(verified_customer.phone, "2"), now=MONDAY_MORNING)

        assert outcome.reply == "Connected with sales. How can we assist further?"
        assert conversation_log.latest_tag(sqlite_db, verified_customer.phone) == "sales"
        assert {r.tag for r in _rows(sqlite_db, verified_customer.phone)} == {"sales"}

    def test_retag_persists_for_later_messages(self, sqlite_db, sent_messages, verified_customer):
        process_inbound(sqlite_db, text_message(verified_customer.phone, "3"), now=MONDAY_MORNING)
        outcome = process_inbound(sqlite_db, text_message(verified_customer.phone, "help"), now=MONDAY_MORNING)

        assert outcome.tag == "accounts"
        assert conversation_log.latest_tag(sqlite_db, verified_customer.phone) == "accounts"

    def test_negative_balance_warns_with_amount(self, sqlite_db, sent_messages, verified_customer):
        with patch(
            "whatsapp_desk.services.account_service.get_balance",
            return_value=Result.success(Decimal("-150.00")),
        ):
            outcome = process_inbound(sqlite_db, text_message(verified_customer.phone, "Balance please"), now=MONDAY_MORNING)

        assert "R-150.00" in outcome.reply
        assert "outstanding" in outcome.reply
        assert "Thank you" not in outcome.reply

    def test_positive_balance_thanks_customer(self, sqlite_db, sent_messages, verified_customer):
        with patch(
            "whatsapp_desk.services.account_service.get_balance",
            return_value=Result.success(Decimal("50.00")),
        ):
            outcome = process_inbound(sqlite_db, text_message(verified_customer.phone, "b"), now=MONDAY_MORNING)

        assert "R50.00" in outcome.reply
        assert "Thank you" in outcome.reply
        assert "outstanding" not in outcome.reply

    def test_inbound_row_is_written_before_reply(self, sqlite_db, sent_messages, verified_customer):
        process_inbound(sqlite_db, text_message(verified_customer.phone, "help"), now=MONDAY_MORNING)

        rows = _rows(sqlite_db, verified_customer.phone)
        assert [r.direction for r in rows] == ["incoming", "outgoing"]
        assert rows[0].timestamp == int(MONDAY_MORNING.timestamp() * 1000)

    def test_send_failure_still_logs_reply(self, sqlite_db, verified_customer):
        with patch("whatsapp_desk.services.whatsapp_service.send_text", return_value=False) as send_text:
            outcome = process_inbound(sqlite_db, text_message(verified_customer.phone, "help"), now=MONDAY_MORNING)

        assert outcome.sent is False
        send_text.assert_called_once()
        outgoing = [r for r in _rows(sqlite_db, verified_customer.phone) if r.direction == "outgoing"]
        assert len(outgoing) == 1

    def test_inbound_row_survives_routing_failure(self, sqlite_db, sent_messages, verified_customer):
        with patch("whatsapp_desk.services.command_router.route", side_effect=RuntimeError("router exploded")):
            with pytest.raises(RuntimeError):
                process_inbound(sqlite_db, text_message(verified_customer.phone, "help"), now=MONDAY_MORNING)
        sqlite_db.rollback()

        rows = _rows(sqlite_db, verified_customer.phone)
        assert [(r.direction, r.body) for r in rows] == [("incoming", "help")]
        assert sent_messages == []
