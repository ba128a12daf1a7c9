import base64
import hashlib
import hmac

import pytest

from src.errors import ConfigurationError
from src.utils.crypto import generate_signature, signing_string, verify_signature
from src.utils.factories import NotificationFactory
from src.webhook_intake.verifier import SignatureVerifier


def _item(**overrides):
    item = {
        "pspReference": "7914073381342284",
        "originalReference": None,
        "merchantAccountCode": "TestMerchantAccount",
        "merchantReference": "TestPayment-1407325143704",
        "amount": {"value": 1130, "currency": "EUR"},
        "eventCode": "AUTHORISATION",
        "success": "true",
        "additionalData": {},
    }
    item.update(overrides)
    return item


class TestSigningString:
    """Tests for the canonical signing string."""

    @pytest.mark.unit
    def test_fields_joined_in_processor_order(self):
        assert signing_string(_item()) == (
            "7914073381342284::TestMerchantAccount:TestPayment-1407325143704:1130:EUR:AUTHORISATION:true"
        )

    @pytest.mark.unit
    def test_boolean_success_is_lowercase(self):
        assert signing_string(_item(success=False)).endswith(":AUTHORISATION:false")

    @pytest.mark.unit
    def test_missing_amount_leaves_empty_slots(self):
        item = _item()
        del item["amount"]
        assert ":TestPayment-1407325143704:::AUTHORISATION:" in signing_string(item)


class TestGenerateSignature:
    """Tests for generate_signature()."""

    @pytest.mark.unit
    def test_matches_manual_hmac(self, hmac_key):
        item = _item()
        expected = base64.b64encode(
            hmac.new(bytes.fromhex(hmac_key), signing_string(item).encode(), hashlib.sha256).digest()
        ).decode()
        assert generate_signature(item, hmac_key) == expected

    @pytest.mark.unit
    def test_is_deterministic(self, hmac_key):
        assert generate_signature(_item(), hmac_key) == generate_signature(_item(), hmac_key)

    @pytest.mark.unit
    def test_different_keys_produce_different_signatures(self, hmac_key):
        other_key = "00" * 32
        assert generate_signature(_item(), hmac_key) != generate_signature(_item(), other_key)


class TestVerifySignature:
    """Tests for verify_signature()."""

    @pytest.mark.unit
    def test_valid_embedded_signature(self, hmac_key):
        item = NotificationFactory.create_item(secret_hex=hmac_key)
        assert verify_signature(item, hmac_key) is True

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "field,value",
        [
            ("pspReference", "0000000000000000"),
            ("originalReference", "1111111111111111"),
            ("merchantAccountCode", "OtherAccount"),
            ("merchantReference", "order-tampered"),
            ("eventCode", "REFUND"),
            ("success", "false"),
        ],
    )
    def test_flipping_any_signed_field_invalidates(self, hmac_key, field, value):
        item = NotificationFactory.create_item(secret_hex=hmac_key)
        item[field] = value
        assert verify_signature(item, hmac_key) is False

    @pytest.mark.unit
    @pytest.mark.parametrize("key,value", [("value", 1), ("currency", "USD")])
    def test_flipping_amount_invalidates(self, hmac_key, key, value):
        item = NotificationFactory.create_item(secret_hex=hmac_key)
        item["amount"] = dict(item["amount"], **{key: value})
        assert verify_signature(item, hmac_key) is False

    @pytest.mark.unit
    def test_unsigned_field_does_not_matter(self, hmac_key):
        item = NotificationFactory.create_item(secret_hex=hmac_key)
        item["eventDate"] = "2030-01-01T00:00:00+00:00"
        assert verify_signature(item, hmac_key) is True

    @pytest.mark.unit
    def test_missing_signature_fails(self, hmac_key):
        item = NotificationFactory.create_item()
        assert verify_signature(item, hmac_key) is False

    @pytest.mark.unit
    def test_missing_additional_data_fails(self, hmac_key):
        item = NotificationFactory.create_item(secret_hex=hmac_key)
        del item["additionalData"]
        assert verify_signature(item, hmac_key) is False

    @pytest.mark.unit
    def test_wrong_key_fails(self, hmac_key):
        item = NotificationFactory.create_item(secret_hex=hmac_key)
        assert verify_signature(item, "AB" * 32) is False

    @pytest.mark.unit
    def test_undecodable_key_fails_without_raising(self, hmac_key):
        item = NotificationFactory.create_item(secret_hex=hmac_key)
        assert verify_signature(item, "not-hex") is False

    @pytest.mark.unit
    def test_missing_required_field_fails(self, hmac_key):
        item = NotificationFactory.create_item(secret_hex=hmac_key)
        del item["eventCode"]
        assert verify_signature(item, hmac_key) is False

    @pytest.mark.unit
    def test_non_object_item_fails(self, hmac_key):
        assert verify_signature(["not", "an", "item"], hmac_key, "c2lnbmF0dXJl") is False

    @pytest.mark.unit
    def test_garbage_signature_fails(self, hmac_key):
        item = NotificationFactory.create_item(secret_hex=hmac_key)
        item["additionalData"]["hmacSignature"] = "não é base64"
        assert verify_signature(item, hmac_key) is False


class TestSignatureVerifier:
    """Tests for SignatureVerifier."""

    @pytest.mark.unit
    def test_sign_then_verify(self, verifier):
        item = _item()
        item["additionalData"]["hmacSignature"] = verifier.sign(item)
        assert verifier.verify(item) is True

    @pytest.mark.unit
    def test_tampered_item_rejected(self, verifier):
        item = _item()
        item["additionalData"]["hmacSignature"] = verifier.sign(item)
        item["amount"] = {"value": 999999, "currency": "EUR"}
        assert verifier.verify(item) is False

    @pytest.mark.unit
    @pytest.mark.parametrize("key", ["", "   ", "xyz", "ABC"])
    def test_bad_key_is_a_configuration_error(self, key):
        with pytest.raises(ConfigurationError):
            SignatureVerifier(key)
