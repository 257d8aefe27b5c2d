from collections.abc import Iterable

from launcher_search.backend.messages import Classification, Entry, RawEntry

# Checked in order; the first substring found in the MIME string wins.
MIME_CLASSIFICATIONS: tuple[tuple[str, Classification], ...] = (
    ("image", Classification.IMAGE),
    ("directory", Classification.FOLDER),
    ("video", Classification.FILM),
    ("audio", Classification.MUSIC),
    ("application", Classification.CODE),
    ("html", Classification.CODE),
    ("text", Classification.TEXT),
)


def classify(mime: str | None) -> Classification:
    """Map a MIME type string to a display classification."""
    if not mime:
        return Classification.DOCUMENT
    for needle, classification in MIME_CLASSIFICATIONS:
        if needle in mime:
            return classification
    return Classification.DOCUMENT


def map_entry(raw: RawEntry, mime: str | None = None) -> Entry:
    if mime is None:
        mime = raw.mime
    return Entry(
        id=raw.id,
        title=raw.name,
        subtitle=raw.description,
        classification=classify(mime),
    )


def map_entries(raws: Iterable[RawEntry], mimes: Iterable[str | None]) -> list[Entry]:
    return [map_entry(raw, mime) for raw, mime in zip(raws, mimes, strict=True)]
