"""
Stage 3: Field Sanitizer
========================
Normalizes resolver output field by field.

Rules:
- ZIP: placeholders and malformed codes become "" (never None)
- Country: aliases canonicalized, backfilled from the state when missing
- Region: Country -> Region table, "Global" when unmapped
- Verification: confidence > 85
- Optional fields: one policy per field (None when absent)
"""

import re
from typing import Optional

from ..models.schemas import ResolutionIntel, SanitizedFields
from ..config.settings import (
    PLACEHOLDER_ZIPS,
    ZIP_LENGTH_RANGE,
    ALLOWED_SALUTATIONS,
    COUNTRY_REGION_MAP,
    DEFAULT_REGION,
    VERIFICATION_THRESHOLD,
)
from .governance import normalize_title, canonical_country, country_for_state

_ZIP_CHARACTERS = re.compile(r"^[A-Za-z0-9 \-]+$")


class FieldSanitizerStage:
    """
    Stage 3: Sanitize governed resolution fields.
    """

    def process(self, intel: ResolutionIntel) -> SanitizedFields:
        """
        Sanitize a governed resolution.

        Args:
            intel: ResolutionIntel from Stage 2

        Returns:
            SanitizedFields ready for record assembly
        """
        location = intel.location

        state = _clean(location.state)
        country = self.normalize_country(location.country)
        if country is None and state:
            country = country_for_state(state)

        return SanitizedFields(
            standard_title=normalize_title(intel.standard_title),
            city=_clean(location.city),
            state=state,
            country=country,
            zip=self.sanitize_zip(location.zip),
            region=self.derive_region(country),
            is_verified=intel.confidence > VERIFICATION_THRESHOLD,
            phone=None,
            salutation=self.normalize_salutation(intel.salutation),
            alternate_profile_url=_http_url(intel.alternate_profile_url),
        )

    # =========================================================================
    # Field rules
    # =========================================================================

    @staticmethod
    def sanitize_zip(zip_code: Optional[str]) -> str:
        """Return a usable postal code or "" """
        if zip_code is None:
            return ""
        value = str(zip_code).strip()
        if not value or value in PLACEHOLDER_ZIPS:
            return ""

        digits = re.sub(r"\D", "", value)
        if not digits:
            return ""
        if set(digits) in ({"0"}, {"9"}):
            return ""

        min_len, max_len = ZIP_LENGTH_RANGE
        if not (min_len <= len(value) <= max_len):
            return ""
        if not _ZIP_CHARACTERS.match(value):
            return ""
        return value.upper()

    @staticmethod
    def normalize_country(country: Optional[str]) -> Optional[str]:
        value = _clean(country)
        if value is None:
            return None
        return canonical_country(value) or value

    @staticmethod
    def derive_region(country: Optional[str]) -> str:
        """Country -> Region, defaulting to Global"""
        if not country:
            return DEFAULT_REGION
        canonical = canonical_country(country) or country
        return COUNTRY_REGION_MAP.get(canonical, DEFAULT_REGION)

    @staticmethod
    def normalize_salutation(salutation: Optional[str]) -> Optional[str]:
        value = _clean(salutation)
        if value is None:
            return None
        key = value.rstrip(".").lower()
        for allowed in ALLOWED_SALUTATIONS:
            if allowed.rstrip(".").lower() == key:
                return allowed
        return None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    if not value or value.lower() in ("n/a", "unknown", "none", "null"):
        return None
    return value


def _http_url(url: Optional[str]) -> Optional[str]:
    value = _clean(url)
    if value and re.match(r"^https?://\S+$", value, re.IGNORECASE):
        return value
    return None
