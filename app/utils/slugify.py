import re
from unidecode import unidecode

MAX_SLUG_LENGTH = 50


def slugify(text, max_length=MAX_SLUG_LENGTH):
    """
    Derive a URL-safe tenant slug.

    Accented characters are transliterated first ("Café" -> "cafe"), then every
    run of characters outside [a-z0-9] becomes a single hyphen. Collisions are
    not resolved here; uniqueness is enforced by the tenants table.
    """
    text = unidecode(text or "").lower()
    text = re.sub(r'[^a-z0-9]+', '-', text).strip('-')
    # Stripped again after truncation so a cut never leaves a trailing hyphen
    return text[:max_length].strip('-')
