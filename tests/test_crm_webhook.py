import json
from urllib.parse import parse_qs

import httpx
import pytest

from errors import ConfigurationError, DeliveryError
from tools.crm_webhook import (
    CONTACT_FIELD_ALIASES, DEFAULT_VARIANTS, CRMForwarder, DeliveryVariant, JSON, contact_values,
)

WEBHOOK_URL = "https://crm.example.com/hooks/contact"


class TestDeliveryVariants:
    """Test payload construction for each request variant."""

    def setup_method(self):
        self.contact = {
            "name": "John Smith",
            "phone": "+15551234567",
            "email": "john@gmail.com",
            "company": "Acme Corp",
            "notes": "met at the expo",
        }

    def test_contact_values_split_name(self):
        values = contact_values(self.contact)

        assert values["first_name"] == "John"
        assert values["last_name"] == "Smith"
        assert values["name"] == "John Smith"

    def test_contact_values_single_name(self):
        values = contact_values({"name": "Cher", "phone": "5551234567"})

        assert values["first_name"] == "Cher"
        assert values["last_name"] == ""
        assert values["email"] == ""

    def test_payload_carries_every_alias(self):
        payload = DEFAULT_VARIANTS[0].build_payload(contact_values(self.contact))

        for alias in CONTACT_FIELD_ALIASES["email"]:
            assert payload[alias] == "john@gmail.com"
        assert payload["firstName"] == "John"
        assert payload["message"] == "met at the expo"

    def test_query_fields_skip_empty_values(self):
        variant = DeliveryVariant("json", JSON, CONTACT_FIELD_ALIASES, query_fields=("email", "phone"))
        params = variant.build_params(contact_values({"name": "Ann Lee", "phone": "+15550001111"}))

        assert params == {"phone": "+15550001111"}

    def test_unknown_encoding(self):
        variant = DeliveryVariant("xml", "xml", CONTACT_FIELD_ALIASES)

        with pytest.raises(ConfigurationError):
            variant.request_kwargs(contact_values(self.contact))


class TestCRMForwarder:
    """Test sequential variant delivery against a mocked webhook."""

    def setup_method(self):
        self.contact = {
            "name": "John Smith",
            "phone": "+15551234567",
            "email": "john@gmail.com",
            "company": "",
            "notes": "",
        }
        self.requests = []

    def forwarder(self, handler):
        def recording_handler(request):
            self.requests.append(request)
            return handler(request)

        return CRMForwarder(WEBHOOK_URL, timeout=5, transport=httpx.MockTransport(recording_handler))

    def test_first_variant_accepted(self):
        forwarder = self.forwarder(lambda request: httpx.Response(200, json={"ok": True}))

        result = forwarder.deliver(self.contact)

        assert result.variant == "form"
        assert result.status_code == 200
        assert result.body == {"ok": True}
        assert len(self.requests) == 1

        request = self.requests[0]
        assert request.headers["content-type"].startswith("application/x-www-form-urlencoded")
        assert request.url.params["email"] == "john@gmail.com"
        assert request.url.params["phone"] == "+15551234567"
        form = parse_qs(request.content.decode())
        assert form["contact_email"] == ["john@gmail.com"]
        assert form["first_name"] == ["John"]

    def test_falls_back_to_second_variant(self):
        def handler(request):
            if request.headers["content-type"].startswith("application/json"):
                return httpx.Response(201, json={"id": "abc"})
            return httpx.Response(422, json={"error": "bad form"})

        result = self.forwarder(handler).deliver(self.contact)

        assert result.variant == "json"
        assert result.status_code == 201
        assert len(self.requests) == 2

        body = json.loads(self.requests[1].content)
        assert body["Email"] == "john@gmail.com"
        assert body["phone_number"] == "+15551234567"
        assert self.requests[1].url.params["email"] == "john@gmail.com"
        assert "phone" not in self.requests[1].url.params

    def test_redirect_status_counts_as_success(self):
        result = self.forwarder(lambda request: httpx.Response(302)).deliver(self.contact)

        assert result.status_code == 302

    def test_all_variants_rejected(self):
        forwarder = self.forwarder(lambda request: httpx.Response(500, text="workflow error"))

        with pytest.raises(DeliveryError) as exc_info:
            forwarder.deliver(self.contact)

        assert exc_info.value.upstream_status == 500
        assert exc_info.value.variant == "json"
        assert exc_info.value.details == "workflow error"
        assert exc_info.value.status_code == 500
        assert len(self.requests) == 2

    def test_network_failure_then_success(self):
        def handler(request):
            if len(self.requests) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200)

        result = self.forwarder(handler).deliver(self.contact)

        assert result.variant == "json"

    def test_network_failure_on_every_variant(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(DeliveryError) as exc_info:
            self.forwarder(handler).deliver(self.contact)

        assert exc_info.value.upstream_status is None
        assert "connection refused" in exc_info.value.details

    def test_missing_webhook_url(self):
        forwarder = CRMForwarder(None)

        assert forwarder.configured is False
        with pytest.raises(ConfigurationError):
            forwarder.deliver(self.contact)

    def test_no_variants(self):
        with pytest.raises(ConfigurationError):
            CRMForwarder(WEBHOOK_URL, variants=()).deliver(self.contact)

    def test_from_settings(self, settings):
        forwarder = CRMForwarder.from_settings(settings)

        assert forwarder.webhook_url == settings.crm_webhook_url
        assert forwarder.timeout == settings.crm_timeout_seconds
