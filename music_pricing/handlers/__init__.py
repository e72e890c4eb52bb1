from .cascade import first_attribute, first_text, first_visible_price, locate_all
from .page_query import ElementQuery, PageQuery, PlaywrightElement, PlaywrightPageQuery

__all__ = [
    "ElementQuery",
    "PageQuery",
    "PlaywrightElement",
    "PlaywrightPageQuery",
    "first_attribute",
    "first_text",
    "first_visible_price",
    "locate_all",
]
