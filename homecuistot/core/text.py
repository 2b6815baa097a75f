import re


def clean_md(text: str) -> str:
    """
    Sanitize markdown artifacts from text.
    Removes:
    - Leading headers (#, ##)
    - Bold markers (**, __)
    - Leading bullets (-, *)
    """
    if not text:
        return ""

    # Remove bolding (**text** -> text)
    text = re.sub(r"(\*\*|__)(.*?)\1", r"\2", text)

    # Remove leading headers (# Title -> Title)
    text = re.sub(r"^\s*#+\s+", "", text)

    # Remove leading bullets (- Item -> Item)
    text = re.sub(r"^\s*[-*]\s+", "", text)

    return text.strip()


def normalize_name(name: str) -> str:
    """Lookup key for an ingredient name: trimmed and lowercased.

    No stemming and no punctuation stripping;
    "tomatoes" and "tomato" are different names.
    """
    if not name:
        return ""
    return name.strip().lower()


def normalize_names(names) -> list[str]:
    """Normalize, drop empties and dedupe, keeping first-seen order."""
    seen: dict[str, None] = {}
    for name in names or []:
        key = normalize_name(name)
        if key and key not in seen:
            seen[key] = None
    return list(seen)
