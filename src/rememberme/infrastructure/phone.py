"""E.164 phone keys for matching linked contacts regardless of formatting."""

from collections.abc import Callable

import phonenumbers


def phone_normalizer(default_region: str | None = None) -> Callable[[str], str | None]:
    """Build the normalizer PersonStore uses for ``find_by_phone``.

    The returned callable maps a phone string to its E.164 form, or None when
    it is not a valid number. ``default_region`` (e.g. "US") resolves numbers
    written without a leading ``+`` country code.
    """
    region = default_region.strip().upper() if default_region else None

    def _normalize(raw: str) -> str | None:
        text = (raw or "").strip()
        if not text:
            return None
        try:
            parsed = phonenumbers.parse(text, region)
        except phonenumbers.NumberParseException:
            return None
        if not phonenumbers.is_valid_number(parsed):
            return None
        return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)

    return _normalize
