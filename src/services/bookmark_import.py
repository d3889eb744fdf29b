"""Import of browser bookmark exports (NETSCAPE-Bookmark-file-1 HTML)."""
import logging
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Tag

from services.item_repository import ItemRepository

logger = logging.getLogger(__name__)

READING_LIST_FOLDER = 'reading list'


@dataclass(frozen=True)
class ParsedBookmark:
    """One link from a bookmark export."""

    title: str
    url: str
    tags: list[str] = field(default_factory=list)


@dataclass
class ImportResult:
    """Counts for a finished import."""

    imported: int = 0
    skipped: int = 0


def _folder_name(dl: Tag) -> str | None:
    """Name of the folder a <DL> list belongs to, if any."""
    # Exports write folders as <DT><H3>Name</H3><DL>...</DL>; with html.parser
    # the <DL> ends up as the next sibling of its <H3>.
    heading = dl.find_previous_sibling(['h1', 'h3'])
    if heading is None or heading.name != 'h3':
        return None
    return heading.get_text(strip=True) or None


def parse_bookmarks_html(html: str) -> list[ParsedBookmark]:
    """
    Parse a browser bookmark export into flat bookmarks.

    Pure function. Only http(s) links are kept. The direct parent folder name,
    lowercased, becomes the bookmark's single tag; links outside any folder
    or directly inside "Reading List" get no tag. Links without a title use
    the URL as title.
    """
    # html.parser keeps the export's unclosed <DT>/<p> nesting predictable
    soup = BeautifulSoup(html, 'html.parser')

    bookmarks = []
    for link in soup.find_all('a'):
        url = (link.get('href') or '').strip()
        if not url.startswith(('http://', 'https://')):
            continue

        title = ' '.join(link.get_text().split()) or url
        tags = []
        dl = link.find_parent('dl')
        folder = _folder_name(dl) if dl is not None else None
        if folder and folder.lower() != READING_LIST_FOLDER:
            tags.append(folder.lower())
        bookmarks.append(ParsedBookmark(title=title, url=url, tags=tags))
    return bookmarks


async def import_bookmarks(
    repository: ItemRepository,
    html: str,
    skip_existing: bool = True,
) -> ImportResult:
    """
    Create an item for every bookmark in the export.

    Each bookmark is created in its own transaction, so a failure stops the
    import but keeps the bookmarks already imported. With `skip_existing`,
    URLs already in the catalog (or repeated within the file) are skipped.
    """
    result = ImportResult()
    seen: set[str] = set()
    for bookmark in parse_bookmarks_html(html):
        if skip_existing and (
            bookmark.url in seen or await repository.find_item_by_url(bookmark.url) is not None
        ):
            result.skipped += 1
            continue
        await repository.create_item(bookmark.title, bookmark.url, bookmark.tags)
        seen.add(bookmark.url)
        result.imported += 1

    logger.info(
        "bookmarks_imported",
        extra={"imported": result.imported, "skipped": result.skipped},
    )
    return result
