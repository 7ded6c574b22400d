"""Validation of the cloudfront middleware option map."""

from collections.abc import Mapping
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Any
from urllib.parse import urlsplit

import structlog
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from cdnredirect.config.durations import parse_duration
from cdnredirect.config.policies import IPFilter, UnpopulatedPolicy
from cdnredirect.errors import ConfigError
from cdnredirect.ipranges.constants import (
    DEFAULT_IP_RANGES_URL,
    DEFAULT_UPDATE_FREQUENCY,
)
from cdnredirect.ipranges.models import RefreshPolicy, normalize_region
from cdnredirect.signing.signer import DEFAULT_SIGNED_URL_DURATION


logger = structlog.get_logger()

# Misspelled update frequency key accepted for backward compatibility
LEGACY_UPDATE_FREQUENCY_KEY = "updatefrenquency"

# Option key -> model field
OPTION_FIELDS: dict[str, str] = {
    "baseurl": "base_url",
    "privatekey": "private_key",
    "keypairid": "key_pair_id",
    "duration": "duration",
    "updatefrequency": "update_frequency",
    "iprangesurl": "ip_ranges_url",
    "ipfilteredby": "ip_filtered_by",
    "awsregion": "aws_regions",
    "unpopulatedpolicy": "unpopulated_policy",
}
FIELD_OPTIONS: dict[str, str] = {field: key for key, field in OPTION_FIELDS.items()}

REQUIRED_OPTIONS = ("baseurl", "privatekey", "keypairid")


class MiddlewareOptions(BaseModel):
    """Validated cloudfront middleware options."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: Annotated[str, Field(min_length=1)]
    private_key: Path
    key_pair_id: Annotated[str, Field(min_length=1)]
    duration: timedelta = DEFAULT_SIGNED_URL_DURATION
    update_frequency: timedelta = DEFAULT_UPDATE_FREQUENCY
    ip_ranges_url: Annotated[str, Field(min_length=1)] = DEFAULT_IP_RANGES_URL
    ip_filtered_by: IPFilter = IPFilter.NONE
    aws_regions: frozenset[str] = Field(default_factory=frozenset)
    unpopulated_policy: UnpopulatedPolicy = UnpopulatedPolicy.FAIL_CLOSED

    @field_validator("base_url")
    @classmethod
    def normalize_base_url(cls, v: str) -> str:
        """Default the scheme to https and ensure a trailing slash."""
        url = v.strip()
        if "://" not in url:
            url = "https://" + url
        if not url.endswith("/"):
            url += "/"
        try:
            parts = urlsplit(url)
        except ValueError as e:
            msg = f"invalid baseurl: {e}"
            raise ValueError(msg) from e
        if not parts.netloc:
            msg = f"invalid baseurl: {v!r} has no host"
            raise ValueError(msg)
        return url

    @field_validator("duration", "update_frequency", mode="before")
    @classmethod
    def parse_durations(cls, v: object) -> timedelta:
        """Accept Go-style duration strings and numbers of seconds."""
        return parse_duration(v)

    @field_validator("duration", "update_frequency")
    @classmethod
    def validate_positive(cls, v: timedelta) -> timedelta:
        """Ensure durations are positive."""
        if v <= timedelta(0):
            msg = "duration must be positive"
            raise ValueError(msg)
        return v

    @field_validator("ip_filtered_by", mode="before")
    @classmethod
    def normalize_filter(cls, v: object) -> object:
        """Compare case-insensitively; an empty value means no filtering."""
        if isinstance(v, str):
            return v.strip().lower() or IPFilter.NONE.value
        return v

    @field_validator("unpopulated_policy", mode="before")
    @classmethod
    def normalize_policy(cls, v: object) -> object:
        """Compare case-insensitively; an empty value means the default."""
        if isinstance(v, str):
            return v.strip().lower() or UnpopulatedPolicy.FAIL_CLOSED.value
        return v

    @field_validator("aws_regions", mode="before")
    @classmethod
    def split_regions(cls, v: object) -> object:
        """Split a comma separated region string."""
        if isinstance(v, str):
            return frozenset(
                normalize_region(region)
                for region in v.split(",")
                if normalize_region(region)
            )
        if isinstance(v, frozenset | set):
            return v
        msg = "awsregion must be a comma separated string of valid aws regions"
        raise ValueError(msg)

    @model_validator(mode="after")
    def validate_region_filter(self) -> "MiddlewareOptions":
        """Require regions when filtering by region."""
        if self.ip_filtered_by == IPFilter.AWS_REGION and not self.aws_regions:
            msg = "awsregion is required when ipfilteredby is awsregion"
            raise ValueError(msg)
        return self

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "MiddlewareOptions":
        """Validate a raw option map.

        Unknown keys are ignored. The legacy ``updatefrenquency`` key is
        honored and logs a deprecation warning.

        Args:
            options: Option map from the registry configuration.

        Returns:
            Validated options.

        Raises:
            ConfigError: If a required option is missing or any is invalid.
        """
        raw = dict(options)

        if LEGACY_UPDATE_FREQUENCY_KEY in raw:
            logger.warning(
                "cloudfront_option_deprecated",
                component="config",
                option=LEGACY_UPDATE_FREQUENCY_KEY,
                replacement="updatefrequency",
            )
            raw["updatefrequency"] = raw.pop(LEGACY_UPDATE_FREQUENCY_KEY)

        for key in REQUIRED_OPTIONS:
            if raw.get(key) is None:
                raise ConfigError(key, f"no {key} provided")

        # awsregion is only read when filtering by region
        filtered_by = raw.get("ipfilteredby")
        if not (
            isinstance(filtered_by, str)
            and filtered_by.strip().lower() == IPFilter.AWS_REGION.value
        ):
            raw.pop("awsregion", None)

        values: dict[str, Any] = {}
        for key, value in raw.items():
            field_name = OPTION_FIELDS.get(key)
            if field_name is None:
                logger.debug("cloudfront_option_ignored", component="config", option=key)
                continue
            if value is not None:
                values[field_name] = value

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise _to_config_error(e) from e

    def refresh_policy(self) -> RefreshPolicy | None:
        """Build the range refresh policy, or None when filtering is off."""
        if self.ip_filtered_by == IPFilter.NONE:
            return None
        regions = (
            self.aws_regions if self.ip_filtered_by == IPFilter.AWS_REGION else ()
        )
        return RefreshPolicy(
            document_url=self.ip_ranges_url,
            regions=frozenset(regions),
            interval=self.update_frequency,
        )


def _to_config_error(error: ValidationError) -> ConfigError:
    """Convert the first pydantic error into a ConfigError.

    Args:
        error: Validation error from MiddlewareOptions.

    Returns:
        ConfigError naming the option key.
    """
    first = error.errors()[0]
    loc = first.get("loc") or ()
    field_name = str(loc[0]) if loc else ""
    key = FIELD_OPTIONS.get(field_name, field_name or "options")
    if key == "options" and "awsregion" in first.get("msg", ""):
        key = "awsregion"
    message = str(first.get("msg", "invalid value")).removeprefix("Value error, ")
    return ConfigError(key, message)
