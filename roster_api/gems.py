"""
Gem resolution for equipped items.

Item markup only links to socketed gems; each link is fetched (one request
per gem) and the gem's name is read from the item page title. Gem pages
never change once published, so any cached copy counts as fresh.
"""

from typing import Optional, Sequence
from urllib.parse import urljoin

from .cache import cache_key
from .config import FetchPolicy
from .document import DocumentParser
from .exceptions import ExtractionError, FetchError
from .extractor import FieldExtractor, trailing_segment
from .fetcher import Fetcher
from .logger import get_module_logger

logger = get_module_logger("gems")


class GemResolver:
    """
    Resolves gem links to gem names.

    A gem that cannot be resolved fails the whole gem list of its item
    with ExtractionError; partial gem lists are never returned.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        base_url: str,
        parser: Optional[DocumentParser] = None,
        extractor: Optional[FieldExtractor] = None,
        policy: Optional[FetchPolicy] = None
    ):
        self.fetcher = fetcher
        self.base_url = base_url
        self.parser = parser or DocumentParser()
        self.extractor = extractor or FieldExtractor()
        self.policy = (policy or fetcher.policy).for_immutable()

    def resolve_gem(self, ref: str) -> str:
        """Name of the gem linked by ``ref`` (absolute or site-relative URL)."""
        gem_id = trailing_segment(ref)
        if not gem_id:
            raise ExtractionError(f"Gem link '{ref}' has no item id", details={"ref": ref})

        url = urljoin(self.base_url, ref)
        try:
            content = self.fetcher.fetch(url, cache_key("gem", gem_id), self.policy)
        except FetchError as e:
            raise ExtractionError(
                f"Could not fetch gem {gem_id}: {e.message}",
                details={"ref": ref, "url": url}
            ) from e

        name = self.extractor.gem_name(self.parser.parse(content))
        if not name.present:
            raise ExtractionError(
                f"Gem {gem_id} page has no title",
                details={"ref": ref, "url": url}
            )
        return name.value

    def resolve_gems(self, refs: Sequence[str]) -> list[str]:
        """Gem names in the same order as ``refs``."""
        return [self.resolve_gem(ref) for ref in refs]

    __call__ = resolve_gems
