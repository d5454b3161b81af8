"""Credential resolution from local arguments or a remote API."""

from datetime import datetime, time as dt_time
from typing import Any, Optional

import requests

from .models import AppConfig, AuthType, Credential
from ..utils.exceptions import FetchError, ParseError, ValidationError
from ..utils.logging import get_logger

logger = get_logger("config.credentials")

_DATETIME_FORMATS = (
    "%Y-%m-%d / %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
)

_OPTIONAL_TEXT_FIELDS = ("password", "private_key", "region", "ref")


def parse_expiration(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an expiration timestamp.

    Accepts RFC3339 and a handful of ``Y-m-d H:M:S`` variants. Values
    without a timezone are interpreted as local time; a bare date means
    the end of that day.

    Args:
        value: Raw timestamp text

    Returns:
        Timezone-aware datetime, or None if absent or unparsable
    """
    if not value or not isinstance(value, str):
        return None

    text = value.strip()

    for fmt in _DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).astimezone()
        except ValueError:
            continue

    try:
        day = datetime.strptime(text, "%Y-%m-%d").date()
        return datetime.combine(day, dt_time(23, 59, 59)).astimezone()
    except ValueError:
        pass

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00").replace("z", "+00:00"))
        return parsed if parsed.tzinfo is not None else parsed.astimezone()
    except ValueError:
        pass

    logger.warning(f"Unknown date format: {value}")
    return None


def _parse_port(value: Any) -> int:
    if value is None:
        return 22
    if isinstance(value, bool):
        raise ValidationError(f"Invalid port: {value!r}")
    try:
        return int(str(value).strip())
    except ValueError as e:
        raise ValidationError(f"Invalid port: {value!r}") from e


def _parse_auth_type(value: Any) -> AuthType:
    if value is None:
        return AuthType.PASSWORD
    try:
        return AuthType(str(value).strip().lower())
    except ValueError as e:
        raise ValidationError(
            f"auth_type must be 'password' or 'key', got {value!r}"
        ) from e


def _required_text(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing required field: {key}")
    return value.strip()


def parse_credential(payload: dict[str, Any], private_key_override: Optional[str] = None) -> Credential:
    """
    Build a Credential from a decoded API document.

    A locally supplied private key switches the credential to key
    authentication before it is validated, so the document may omit
    its own secret.

    Raises:
        ValidationError: If the document violates the credential schema
    """
    for key in _OPTIONAL_TEXT_FIELDS:
        if payload.get(key) is not None and not isinstance(payload[key], str):
            raise ValidationError(f"Field {key} must be a string")

    auth_type = _parse_auth_type(payload.get("auth_type"))
    private_key = payload.get("private_key") or None

    if private_key_override:
        logger.info(f"Overriding auth: using local private key -> {private_key_override}")
        auth_type = AuthType.KEY
        private_key = private_key_override

    expires_raw = payload.get("exp_at", payload.get("expires_at"))

    return Credential(
        auth_type=auth_type,
        host=_required_text(payload, "host"),
        user=_required_text(payload, "user"),
        port=_parse_port(payload.get("port")),
        password=payload.get("password") or None,
        private_key=private_key,
        region=payload.get("region") or None,
        source_ref=payload.get("ref") or None,
        expires_at=parse_expiration(expires_raw if isinstance(expires_raw, str) else None),
    )


def create_from_config(config: AppConfig) -> Credential:
    """Build a Credential directly from locally supplied arguments."""
    if not config.host:
        raise ValidationError("Host is required in CLI mode")

    auth_type = AuthType.KEY if config.private_key else AuthType.PASSWORD

    return Credential(
        auth_type=auth_type,
        host=config.host,
        user=config.user or "root",
        port=config.ssh_port,
        password=config.password,
        private_key=config.private_key,
        region="Local",
        source_ref="CLI Args",
    )


class CredentialSource:
    """Resolves the credential used for each connection attempt."""

    def __init__(self, config: AppConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    def resolve(self) -> Credential:
        """
        Resolve a fresh credential.

        Raises:
            FetchError: If the API cannot be reached or answers with an error
            ParseError: If the API response is not a JSON object
            ValidationError: If the credential is incomplete or malformed
        """
        if self.config.manual_mode:
            return create_from_config(self.config)

        return self.fetch()

    def fetch(self) -> Credential:
        """Fetch and parse the credential document from the API."""
        url = self.config.api_url
        logger.info("Fetching credentials...")

        try:
            response = self.session.get(url, timeout=self.config.api_timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"API request failed: {e}")
            raise FetchError(f"API request to {url} failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Failed to parse JSON. Raw response content:\n{response.text}")
            raise ParseError(f"JSON parse error: {e}") from e

        if not isinstance(payload, dict):
            logger.error(f"Expected a JSON object. Raw response content:\n{response.text}")
            raise ParseError(f"Expected a JSON object, got {type(payload).__name__}")

        return parse_credential(payload, private_key_override=self.config.private_key)
