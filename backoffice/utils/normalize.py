import unicodedata


def normalize_string(value) -> str:
    """Lowercase `value` and strip accents, for accent-insensitive matching."""
    if not isinstance(value, str):
        return ""
    decomposed = unicodedata.normalize("NFD", unicodedata.normalize("NFC", value))
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()
