from decimal import Decimal
from unittest.mock import MagicMock, Mock, patch

import httpx
import pytest

from whatsapp_desk.services import account_service


@pytest.fixture
def splynx(test_settings):
    test_settings.splynx_base_url = "https://splynx.test/api/2.0"
    test_settings.splynx_api_key = "key"
    test_settings.splynx_api_secret = "secret"
    with patch("whatsapp_desk.services.account_service.httpx.Client") as mock_client_class:
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        yield mock_client_class, mock_client


def _response(status_code=200, payload=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


class TestGetBalance:
    def test_parses_balance(self, splynx):
        mock_client_class, mock_client = splynx
        mock_client.get.return_value = _response(payload={"balance": "-150"})

        result = account_service.get_balance("10042")

        assert result.ok
        assert result.value == Decimal("-150.00")
        assert mock_client.get.call_args[0][0] == "https://splynx.test/api/2.0/admin/customers/customer/10042/balance"
        assert mock_client_class.call_args.kwargs["auth"] == ("key", "secret")
        assert mock_client_class.call_args.kwargs["timeout"] == 10.0

    def test_timeout(self, splynx):
        _, mock_client = splynx
        mock_client.get.side_effect = httpx.ReadTimeout("timed out")

        result = account_service.get_balance("10042")

        assert not result.ok
        assert result.error_code == "timeout"

    def test_http_error_status(self, splynx):
        _, mock_client = splynx
        mock_client.get.return_value = _response(status_code=503)

        assert account_service.get_balance("10042").error_code == "http_error"

    def test_malformed_body(self, splynx):
        _, mock_client = splynx
        mock_client.get.return_value = _response(payload={"unexpected": True})

        assert account_service.get_balance("10042").error_code == "bad_payload"

    def test_missing_customer_id_skips_request(self, splynx):
        _, mock_client = splynx

        assert account_service.get_balance("").error_code == "no_customer_id"
        mock_client.get.assert_not_called()


    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity", "not a number"])
    def test_non_numeric_balance_is_bad_payload(self, splynx, amount):
        _, mock_client = splynx
        mock_client.get.return_value = _response(payload={"balance": amount})

        result = account_service.get_balance("10042")

        assert not result.ok
        assert result.error_code == "bad_payload"


class TestOtherLookups:
    def test_not_configured(self, test_settings):
        assert account_service.get_status("10042").error_code == "not_configured"

    def test_status(self, splynx):
        _, mock_client = splynx
        mock_client.get.return_value = _response(payload={"id": 10042, "status": "active"})

        assert account_service.get_status("10042").value == "active"

    def test_latest_invoice(self, splynx):
        _, mock_client = splynx
        mock_client.get.return_value = _response(payload=[{"id": 881, "total": "499", "date_add": "2024-05-01"}])

        result = account_service.get_latest_invoice("10042")

        assert result.value == account_service.Invoice(id="881", total=Decimal("499.00"), date="2024-05-01")
        params = mock_client.get.call_args.kwargs["params"]
        assert params == {"customer_id": "10042", "limit": 1, "sort": "-id"}

    def test_no_invoices(self, splynx):
        _, mock_client = splynx
        mock_client.get.return_value = _response(payload=[])

        assert account_service.get_latest_invoice("10042").error_code == "not_found"

    def test_lookup_customer_by_phone(self, splynx):
        _, mock_client = splynx
        mock_client.get.return_value = _response(payload=[{"id": 7, "name": "Sam"}])

        result = account_service.lookup_customer("27821234567")

        assert result.value == {"id": 7, "name": "Sam"}
        assert mock_client.get.call_args.kwargs["params"] == {"main_phone": "27821234567"}
