from typing import Iterable, List, Optional, Set


def normalize_label(value: Optional[str]) -> str:
    """Trim and casefold a subject/skill label for comparison."""
    if value is None:
        return ""
    return str(value).strip().casefold()


def normalize_labels(values: Optional[Iterable[str]]) -> Set[str]:
    """Normalized, de-duplicated label set; blank entries are dropped."""
    if not values:
        return set()
    return {label for label in (normalize_label(v) for v in values) if label}


def clean_labels(values: Optional[Iterable[str]]) -> List[str]:
    """Trim labels for storage, keeping first-seen order and original casing."""
    seen: Set[str] = set()
    cleaned: List[str] = []
    for value in values or []:
        stripped = str(value).strip()
        key = stripped.casefold()
        if stripped and key not in seen:
            seen.add(key)
            cleaned.append(stripped)
    return cleaned


def split_csv_labels(raw: Optional[str]) -> List[str]:
    """Parse a comma separated label list as typed into a form."""
    if not raw:
        return []
    return clean_labels(raw.split(","))
