"""
Document parser: raw armory markup → queryable XPath document.

Armory pages are not valid XHTML, so parsing is best-effort and NEVER
FAILS. Structure the parser cannot recover simply yields empty query
results, and the extractor's normalization rules decide what absence means.

Steps:
  1. Pick a charset (declared <meta> charset, WHATWG-mapped, else sniffed)
  2. Decode to unicode with bs4's UnicodeDammit
  3. Strip NULL/control characters that trip up libxml2
  4. Parse with lxml in recover mode
  5. Drop whitespace-only text nodes so queries only see real content
"""

import re
import unicodedata
from typing import Optional, Union

from bs4 import UnicodeDammit
from lxml import etree

from .logger import get_module_logger
from .schemas import ExtractedField

logger = get_module_logger("document")

_WHITESPACE = re.compile(r"\s+")

# Control characters other than tab/newline/CR
_CONTROL_CHARS = "".join(chr(c) for c in range(32) if c not in (9, 10, 13))
_CONTROL_TABLE = str.maketrans("", "", _CONTROL_CHARS)

# WHATWG encoding spec: browsers silently remap these charsets.
# https://encoding.spec.whatwg.org/#names-and-labels
WHATWG_CHARSET_MAP = {
    'iso-8859-1': 'windows-1252',
    'iso8859-1': 'windows-1252',
    'iso88591': 'windows-1252',
    'latin-1': 'windows-1252',
    'latin1': 'windows-1252',
    'us-ascii': 'windows-1252',
    'ascii': 'windows-1252',
    'iso-8859-9': 'windows-1254',
    'iso-8859-11': 'windows-874',
}


def detect_charset_from_bytes(raw_bytes: bytes) -> Optional[str]:
    """
    Find the charset declared in the first 2048 bytes of a page.

    Handles both <meta charset=...> and the legacy http-equiv form, and
    applies the WHATWG mapping. Returns None when nothing is declared.
    """
    head_str = raw_bytes[:2048].decode('ascii', errors='ignore')

    m = re.search(r'<meta[^>]+charset=["\']?\s*([^\s"\';>]+)', head_str, re.IGNORECASE)
    if not m:
        m = re.search(
            r'<meta[^>]+content=["\'][^"\']*charset=([^\s"\';>]+)',
            head_str, re.IGNORECASE
        )
    if not m:
        return None

    charset = m.group(1).strip().lower()
    return WHATWG_CHARSET_MAP.get(charset, charset)


def normalize_text(text: str) -> str:
    """NFC-normalize, collapse whitespace runs and trim."""
    return _WHITESPACE.sub(" ", unicodedata.normalize("NFC", text)).strip()


def node_text(node) -> str:
    """Text of an element, attribute value or text node, normalized."""
    if isinstance(node, str):
        return normalize_text(node)
    return normalize_text("".join(node.itertext()))


class Document:
    """
    Queryable handle over a parsed page.

    Queries are XPath expressions. An empty or unparseable page behaves
    like a document with no matching nodes.
    """

    def __init__(self, root=None, source: str = ""):
        self.root = root
        self.source = source

    @property
    def is_empty(self) -> bool:
        return self.root is None

    def query(self, path: str, context=None) -> list:
        """
        Run ``path`` against the document (or against ``context``, a node
        previously returned by query()). Returns matches in document order.
        """
        target = context if context is not None else self.root
        if target is None:
            return []
        try:
            result = target.xpath(path)
        except etree.XPathError as e:
            logger.warning(f"Invalid XPath '{path}': {e}")
            return []
        # Scalar XPath results (count(), string()) are not node sets
        if not isinstance(result, list):
            return [result]
        return result

    def texts(self, path: str, context=None) -> list[str]:
        """Normalized text of every match."""
        return [node_text(n) for n in self.query(path, context)]

    def text(self, path: str, index: int = 0, context=None) -> ExtractedField[str]:
        """Normalized text of the ``index``-th match, absent if there is none."""
        nodes = self.query(path, context)
        if index >= len(nodes):
            return ExtractedField[str].absent()
        return ExtractedField[str].of(node_text(nodes[index]))

    @property
    def title(self) -> ExtractedField[str]:
        return self.text("//title")


class DocumentParser:
    """Turns page bytes into a Document without ever raising."""

    def __init__(self):
        self._parser = etree.HTMLParser(recover=True, remove_blank_text=True,
                                        remove_comments=True)
        self._utf8_parser = etree.HTMLParser(recover=True, remove_blank_text=True,
                                             remove_comments=True, encoding="utf-8")

    def decode(self, markup: Union[bytes, str], declared_charset: Optional[str] = None) -> str:
        """Decode page bytes to unicode, trying the declared charset first."""
        if isinstance(markup, str):
            return markup

        candidates = [c for c in (declared_charset, detect_charset_from_bytes(markup)) if c]
        dammit = UnicodeDammit(markup, candidates, is_html=True)
        if dammit.unicode_markup is None:
            logger.warning("Could not detect page encoding, decoding as UTF-8")
            return markup.decode("utf-8", errors="replace")
        if dammit.original_encoding and dammit.original_encoding not in candidates:
            logger.debug(f"Decoded page as {dammit.original_encoding}")
        return dammit.unicode_markup

    def _sanitize(self, text: str) -> str:
        if "\x00" in text:
            text = text.replace("\x00", "")
        return text.translate(_CONTROL_TABLE)

    def parse(self, markup: Union[bytes, str, None],
              declared_charset: Optional[str] = None) -> Document:
        """
        Parse armory markup.

        Args:
            markup: Raw page bytes (or already-decoded text)
            declared_charset: Charset from the transport, if known

        Returns:
            Document; empty when the markup is empty or hopeless
        """
        if not markup:
            logger.debug("Empty page, returning empty document")
            return Document()

        text = self._sanitize(self.decode(markup, declared_charset))
        if not text.strip():
            return Document()

        try:
            root = etree.fromstring(text, self._parser)
        except (etree.XMLSyntaxError, ValueError) as e:
            # ValueError: lxml refuses str input carrying an XML encoding declaration
            logger.debug(f"Retrying parse as UTF-8 bytes: {e}")
            try:
                root = etree.fromstring(text.encode("utf-8"), self._utf8_parser)
            except etree.XMLSyntaxError as e2:
                logger.warning(f"Page could not be parsed: {e2}")
                return Document(source=text)

        if root is None:
            logger.warning("Parser recovered no structure from page")
        else:
            self._drop_blank_text(root)
        return Document(root, source=text)

    @staticmethod
    def _drop_blank_text(root) -> None:
        # libxml2 keeps blank text inside block elements (ul, div, td...)
        # even with remove_blank_text, so finish the job here
        for elem in root.iter(etree.Element):
            if elem.text is not None and not elem.text.strip():
                elem.text = None
            if elem.tail is not None and not elem.tail.strip():
                elem.tail = None


def parse(markup: Union[bytes, str, None], declared_charset: Optional[str] = None) -> Document:
    """Convenience function to parse a page."""
    return DocumentParser().parse(markup, declared_charset)
