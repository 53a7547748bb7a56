import re


HASHTAG_RE = re.compile(r"(?:\s|^)#(\w+)", re.IGNORECASE)


def extract_hashtags(caption: str) -> list[str]:
    """Lower-cased, de-duplicated ``#tags`` in order of first appearance."""
    tags: list[str] = []
    for match in HASHTAG_RE.finditer(caption):
        tag = match.group(1).lower()
        if tag not in tags:
            tags.append(tag)
    return tags
