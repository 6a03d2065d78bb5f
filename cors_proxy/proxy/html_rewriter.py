import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from cors_proxy.proxy.errors import TransformError

logger = logging.getLogger("uvicorn.error")

# Elements whose links are made absolute, keyed by the attribute that selects them
LINK_SELECTORS = (
    ("a", "href"),
    ("link", "href"),
    ("img", "src"),
    ("script", "src"),
)
LINK_ATTRIBUTES = ("src", "href")

HTML_PARSER = "html.parser"


@dataclass(frozen=True)
class RewriteContext:
    """Per-document state: the URL relative links are resolved against."""

    base_url: str

    def resolve(self, value: str) -> Optional[str]:
        """
        Resolve an attribute value against the base URL (RFC 3986).

        Returns None when the value is empty or cannot be parsed as a URL
        reference, meaning the attribute must be left as is.
        """
        reference = value.strip()
        if not reference:
            return None
        try:
            return urljoin(self.base_url, reference)
        except ValueError as e:
            logger.debug(f"[Rewrite] Leaving unparseable link {value!r} untouched: {e}")
            return None


def _select_link_elements(soup: BeautifulSoup) -> list:
    selected = []
    seen = set()
    for tag_name, attr in LINK_SELECTORS:
        for element in soup.find_all(tag_name, attrs={attr: True}):
            if id(element) not in seen:
                seen.add(id(element))
                selected.append(element)
    return selected


def rewrite(html_text: str, base_url: str) -> str:
    """
    Make every link on anchor, link, image and script elements absolute.

    Both ``src`` and ``href`` are rewritten on a selected element, whichever of
    them it carries. Malformed markup is tolerated by the parser; anything the
    parser or serializer still fails on is raised as TransformError.
    """
    context = RewriteContext(base_url)
    try:
        soup = BeautifulSoup(html_text, HTML_PARSER)
        for element in _select_link_elements(soup):
            for attr in LINK_ATTRIBUTES:
                value = element.get(attr)
                if not isinstance(value, str):
                    continue
                resolved = context.resolve(value)
                if resolved is not None:
                    element[attr] = resolved
        return str(soup)
    except Exception as e:
        raise TransformError(f"Failed to rewrite HTML: {e}") from e
