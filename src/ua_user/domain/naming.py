"""Display-name rules. Pure functions, no framework imports."""


def normalize_name(text: str) -> str:
    """Trim surrounding whitespace and upper-case the first character.

    >>> normalize_name("  aHMED ")
    'AHMED'
    """
    text = text.strip()
    if not text:
        return text
    return text[0].upper() + text[1:]
