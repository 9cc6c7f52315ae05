"""
Configuration loader for the platform rules layer.

Reads deployment settings from environment variables, platform rules from a
YAML file validated against a JSON schema, and the Slack webhook URL from
the environment, the YAML file or AWS Secrets Manager.
"""

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import boto3
import jsonschema
import yaml
from botocore.exceptions import ClientError

from kymaclub.utils.logger import add_handler_filter

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent
DEFAULT_CONFIG_PATH = CONFIG_DIR / "platform.yaml"
DEFAULT_SCHEMA_PATH = CONFIG_DIR / "platform.schema.json"

# Secret NAME in Secrets Manager, not a value
SLACK_SECRET_ID = "kymaclub/slack-credentials"  # nosec B105

DEFAULT_REGION = "eu-central-1"


class ConfigurationError(Exception):
    """Exception raised for configuration-related errors."""

    pass


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class SecretRedactionFilter(logging.Filter):
    """
    Logging filter that replaces known secret values with ***REDACTED***.
    """

    def __init__(self, secrets: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.redacted_values: set[str] = set()
        for value in (secrets or {}).values():
            if isinstance(value, str) and len(value) > 3:
                self.redacted_values.add(value)

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self._redact_string(str(record.msg))
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._redact_string(str(v)) for k, v in record.args.items()}
            else:
                record.args = tuple(self._redact_string(str(arg)) for arg in record.args)
        return True

    def _redact_string(self, text: str) -> str:
        for secret in self.redacted_values:
            if secret in text:
                text = text.replace(secret, "***REDACTED***")
        return text


class Settings:
    """
    Runtime configuration.

    Environment variables:
        AWS_REGION: Region for DynamoDB and Secrets Manager
        KYMACLUB_CONFIG_PATH: Alternative platform YAML file
        KYMACLUB_TABLE_PREFIX: Prefix prepended to every table name
        SLACK_ENABLED: "true" to send fee-change notifications
        SLACK_WEBHOOK_URL: Direct webhook override
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        schema_path: Optional[str] = None,
        region_name: Optional[str] = None,
    ):
        self.region_name = region_name or os.getenv("AWS_REGION", DEFAULT_REGION)
        self.table_prefix = os.getenv("KYMACLUB_TABLE_PREFIX", "")
        self.slack_enabled = _env_flag("SLACK_ENABLED")
        self.config_path = Path(
            config_path or os.getenv("KYMACLUB_CONFIG_PATH") or DEFAULT_CONFIG_PATH
        )
        self.schema_path = Path(schema_path or DEFAULT_SCHEMA_PATH)
        self.platform: Dict[str, Any] = self.load_platform_config(
            self.config_path, self.schema_path
        )

    @staticmethod
    def load_platform_config(config_path: Path, schema_path: Path) -> Dict[str, Any]:
        """
        Load the platform YAML and validate it against the JSON schema.

        Raises:
            ConfigurationError: If either file is missing, unparsable, or the
                configuration does not match the schema
        """
        try:
            with open(schema_path, "r", encoding="utf-8") as f:
                schema = json.load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Schema file not found: {schema_path}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {schema_path}: {e}") from e

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Platform configuration not found: {config_path}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not config:
            raise ConfigurationError(f"Empty platform configuration: {config_path}")

        try:
            jsonschema.validate(instance=config, schema=schema)
        except jsonschema.ValidationError as e:
            logger.error(f"Platform configuration failed schema validation: {e.message}")
            raise ConfigurationError(f"Platform configuration validation failed: {e.message}") from e
        except jsonschema.SchemaError as e:
            raise ConfigurationError(f"Platform schema is invalid: {e.message}") from e

        logger.info(f"Loaded platform configuration from {config_path}")
        return config

    # ------------------------------------------------------------------ #
    # Typed accessors
    # ------------------------------------------------------------------ #

    def table_name(self, key: str) -> str:
        return f"{self.table_prefix}{self.platform['tables'][key]}"

    def index_name(self, key: str) -> str:
        return self.platform["indexes"][key]

    @property
    def search_min_query_length(self) -> int:
        return self.platform["search"]["min_query_length"]

    @property
    def search_result_limit(self) -> int:
        return self.platform["search"]["result_limit"]

    @property
    def latest_statuses(self) -> List[str]:
        return list(self.platform["bookings"]["latest_statuses"])

    @property
    def default_fee_rate(self) -> float:
        return float(self.platform["fees"]["default_rate"])

    @property
    def handoff_ttl_seconds(self) -> int:
        return self.platform.get("handoffs", {}).get("ttl_seconds", 900)

    @property
    def metrics_trend_months(self) -> int:
        return self.platform.get("metrics", {}).get("trend_months", 12)

    @property
    def metrics_max_workers(self) -> int:
        return self.platform.get("metrics", {}).get("max_workers", 5)

    # ------------------------------------------------------------------ #
    # Secrets
    # ------------------------------------------------------------------ #

    def _get_secret_value(
        self, secret_id: str, max_retries: int = 3, base_wait: float = 1.0
    ) -> Dict[str, Any]:
        """
        Fetch a JSON secret from Secrets Manager with exponential backoff.

        Raises:
            RuntimeError: If the secret cannot be retrieved
        """
        client = boto3.client("secretsmanager", region_name=self.region_name)

        for attempt in range(max_retries):
            try:
                response = client.get_secret_value(SecretId=secret_id)
                secret_string = response.get("SecretString")
                if not secret_string:
                    raise RuntimeError(f"Secret {secret_id} has empty value")
                return json.loads(secret_string)
            except ClientError as e:
                error_code = e.response["Error"]["Code"]
                if error_code == "ResourceNotFoundException":
                    raise RuntimeError(f"Secret '{secret_id}' not found in Secrets Manager") from e
                if error_code in ("AccessDeniedException", "DecryptionFailure"):
                    raise RuntimeError(
                        f"Cannot read secret '{secret_id}': {error_code}"
                    ) from e
                if attempt < max_retries - 1:
                    wait_time = base_wait * (2**attempt)
                    logger.warning(
                        f"Transient error fetching secret {secret_id}: {error_code}. "
                        f"Retrying in {wait_time}s (attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(wait_time)
                    continue
                raise RuntimeError(
                    f"Failed to retrieve secret '{secret_id}' after {max_retries} attempts"
                ) from e
            except json.JSONDecodeError as e:
                raise RuntimeError(f"Secret '{secret_id}' contains invalid JSON: {e}") from e

        raise RuntimeError(f"Failed to retrieve secret '{secret_id}'")

    def load_slack_webhook_url(self) -> Optional[str]:
        """
        Resolve the Slack webhook URL.

        Priority:
        1. SLACK_WEBHOOK_URL environment variable
        2. ``slack.webhook_url`` in the platform YAML
        3. Secrets Manager (``webhook_url`` key)

        Returns None when Slack is disabled or nothing is configured.
        """
        if not self.slack_enabled:
            return None

        env_url = os.getenv("SLACK_WEBHOOK_URL")
        if env_url:
            return env_url

        yaml_url = self.platform.get("slack", {}).get("webhook_url")
        if yaml_url:
            return yaml_url

        try:
            return self._get_secret_value(SLACK_SECRET_ID).get("webhook_url")
        except RuntimeError as e:
            logger.warning(f"Failed to load Slack webhook from Secrets Manager: {e}")
            return None

    @staticmethod
    def setup_redaction_filter(webhook_url: Optional[str]) -> SecretRedactionFilter:
        """
        Hide the Slack webhook URL from every structured log line.

        Args:
            webhook_url: The URL already resolved by load_slack_webhook_url
        """
        secrets = {"slack_webhook_url": webhook_url} if webhook_url else {}
        redaction_filter = SecretRedactionFilter(secrets)
        add_handler_filter(redaction_filter)
        return redaction_filter
