"""
Phone number normalisation (E.164)
"""
import re

E164_RE = re.compile(r"^\+[1-9]\d{7,14}$")


def to_e164(phone: str, country_code: str = "1") -> str:
    """
    (555) 123-4567 -> +15551234567

    Numbers already carrying a leading '+' keep their own country code.
    Raises ValueError when the result is not a plausible E.164 number.
    """
    raw = (phone or "").strip()
    digits = re.sub(r"\D", "", raw)

    if raw.startswith("+"):
        candidate = f"+{digits}"
    elif len(digits) == 11 and digits.startswith("1"):
        candidate = f"+{digits}"
    elif len(digits) == 10:
        candidate = f"+{country_code}{digits}"
    elif len(digits) > 10:
        candidate = f"+{digits}"
    else:
        # Incomplete national number
        candidate = ""

    if not E164_RE.match(candidate):
        raise ValueError(f"Invalid phone number: {phone!r}")
    return candidate

