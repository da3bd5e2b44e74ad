import hashlib
import hmac

from whatsapp_desk.security import check_password, hash_password, verify_webhook_signature


class TestPasswords:
    def test_hash_is_salted(self):
        first = hash_password("correct-horse")
        second = hash_password("correct-horse")
        assert first != second
        assert first.startswith("pbkdf2_sha256$")

    def test_check_password(self):
        stored = hash_password("correct-horse")
        assert check_password("correct-horse", stored)
        assert not check_password("wrong-horse", stored)
        assert not check_password("correct-horse", "plaintext")


class TestWebhookSignature:
    def test_no_secret_accepts_everything(self):
        assert verify_webhook_signature(b"{}", None)

    def test_secret_requires_matching_hmac(self, test_settings):
        test_settings.app_secret = "s3cret"
        body = b'{"entry": []}'
        good = "sha256=" + hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()

        assert verify_webhook_signature(body, good)
        assert not verify_webhook_signature(body, "sha256=" + "0" * 64)
        assert not verify_webhook_signature(body, good.replace("sha256=", "sha1="))
        assert not verify_webhook_signature(body, None)
