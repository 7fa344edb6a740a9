import httpx
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple
from loguru import logger

from config import Settings
from errors import ConfigurationError, DeliveryError

FORM = "form"
JSON = "json"

# The receiving workflow's field mapping is not documented, so every semantic
# value is sent under each name it has been seen mapped from.
CONTACT_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "first_name": ("first_name", "firstName"),
    "last_name": ("last_name", "lastName"),
    "name": ("name", "Name", "full_name", "contact_name"),
    "phone": ("phone", "Phone", "phone_number"),
    "email": ("email", "Email", "contact_email"),
    "company": ("company", "company_name", "organization"),
    "notes": ("message", "notes"),
}


@dataclass(frozen=True)
class DeliveryVariant:
    """One (encoding, field-name mapping) attempt at the CRM webhook."""

    name: str
    encoding: str
    aliases: Mapping[str, Tuple[str, ...]]
    query_fields: Tuple[str, ...] = ()

    def build_payload(self, values: Mapping[str, str]) -> Dict[str, str]:
        payload: Dict[str, str] = {}
        for field, names in self.aliases.items():
            for alias in names:
                payload[alias] = values.get(field, "")
        return payload

    def build_params(self, values: Mapping[str, str]) -> Dict[str, str]:
        return {field: values[field] for field in self.query_fields if values.get(field)}

    def request_kwargs(self, values: Mapping[str, str]) -> Dict[str, Any]:
        payload = self.build_payload(values)
        kwargs: Dict[str, Any] = {"params": self.build_params(values)}
        if self.encoding == FORM:
            kwargs["data"] = payload
            kwargs["headers"] = {
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
            }
        elif self.encoding == JSON:
            kwargs["json"] = payload
            kwargs["headers"] = {"Content-Type": "application/json", "Accept": "application/json"}
        else:
            raise ConfigurationError("Unsupported delivery encoding", self.encoding)
        return kwargs


DEFAULT_VARIANTS: Tuple[DeliveryVariant, ...] = (
    DeliveryVariant("form", FORM, CONTACT_FIELD_ALIASES, query_fields=("email", "phone")),
    DeliveryVariant("json", JSON, CONTACT_FIELD_ALIASES, query_fields=("email",)),
)


@dataclass(frozen=True)
class DeliveryResult:
    variant: str
    status_code: int
    body: Any = None


def contact_values(contact: Mapping[str, Any]) -> Dict[str, str]:
    """Flatten a validated contact into the semantic values variants map from."""
    name = (contact.get("name") or "").strip()
    parts = name.split(" ")
    return {
        "first_name": parts[0] if parts else "",
        "last_name": " ".join(parts[1:]),
        "name": name,
        "phone": contact.get("phone") or "",
        "email": contact.get("email") or "",
        "company": contact.get("company") or "",
        "notes": contact.get("notes") or "",
    }


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:1000]


class CRMForwarder:
    """Delivers contacts to the CRM webhook, trying each variant in order."""

    def __init__(
        self,
        webhook_url: Optional[str],
        timeout: float = 15.0,
        variants: Sequence[DeliveryVariant] = DEFAULT_VARIANTS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.variants = tuple(variants)
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "CRMForwarder":
        return cls(settings.crm_webhook_url, timeout=settings.crm_timeout_seconds)

    @property
    def configured(self) -> bool:
        return bool(self.webhook_url)

    def deliver(self, contact: Mapping[str, Any]) -> DeliveryResult:
        """
        Post the contact to the webhook.

        Variants are attempted sequentially; the first 2xx/3xx response wins.

        Returns:
            The accepting variant and its response

        Raises:
            ConfigurationError: no webhook URL or no variants
            DeliveryError: every variant failed; carries the last failure
        """
        if not self.webhook_url:
            raise ConfigurationError("CRM webhook URL not configured", "Set CRM_WEBHOOK_URL on the server")
        if not self.variants:
            raise ConfigurationError("No CRM delivery variants configured")

        values = contact_values(contact)
        last_error: Optional[DeliveryError] = None

        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            for variant in self.variants:
                logger.info(f"Submitting contact to CRM webhook as '{variant.name}'")
                try:
                    response = client.post(self.webhook_url, **variant.request_kwargs(values))
                except httpx.HTTPError as e:
                    logger.warning(f"CRM variant '{variant.name}' failed: {e}")
                    last_error = DeliveryError(
                        "Failed to submit to CRM", str(e) or type(e).__name__, variant=variant.name
                    )
                    continue

                body = _response_body(response)
                if 200 <= response.status_code < 400:
                    logger.info(f"CRM accepted variant '{variant.name}' with {response.status_code}")
                    return DeliveryResult(variant.name, response.status_code, body)

                logger.warning(f"CRM rejected variant '{variant.name}': {response.status_code} {body}")
                last_error = DeliveryError(
                    "Failed to submit to CRM", body, response.status_code, variant.name
                )

        raise last_error
