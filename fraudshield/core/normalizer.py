import re

_WHITESPACE = re.compile(r'\s+')


def normalize_text(text: str) -> str:
    """Lowercase and collapse whitespace for case-insensitive rule matching."""
    if not text:
        return ''
    return _WHITESPACE.sub(' ', text.lower()).strip()


def phrase_pattern(phrase: str) -> re.Pattern:
    """
    Case-insensitive pattern for a trigger phrase in the original text.

    Spaces in the phrase match any run of whitespace, so evidence keeps
    the original spacing and line breaks.
    """
    parts = [re.escape(part) for part in normalize_text(phrase).split(' ')]
    return re.compile(r'\s+'.join(parts), re.IGNORECASE)
