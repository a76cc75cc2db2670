"""
Rendering of chapter update notifications.
"""

from typing import Optional

from tracker.models import ChapterEntity


def _present(value: Optional[str]) -> bool:
    return value is not None and value.strip() != ""


def render_update_message(manga_title: str, chapter: ChapterEntity, site_root: str = "https://mangadex.org") -> str:
    """
    Render the notification for a new chapter.

    Uses the most specific template the chapter's fields allow, followed by a
    direct link to the chapter.
    """
    attributes = chapter.attributes

    if _present(attributes.chapter) and _present(attributes.title):
        message = f"New chapter!\n{manga_title} ch. {attributes.chapter}: {attributes.title}"
    elif _present(attributes.chapter):
        message = f"New chapter!\n{manga_title} ch. {attributes.chapter}"
    else:
        message = f"New chapter for {manga_title}!"

    return f"{message}\n{chapter.url(site_root)}"
