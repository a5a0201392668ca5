"""
Selector Generator

Creates robust CSS/XPath selectors for captured page elements.

Strategy order:
1. data-testid
2. id
3. aria-label
4. name
5. first class token
6. text content (buttons and links only)
7. the element's own xpath (always unique)

Every candidate before the xpath fallback must match exactly one element
of the page, and that element must be the target. Positional selectors
(nth-child, [2], ...) are rejected even when unique because they break as
soon as siblings are reordered.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..models import IdentifiedElement

logger = logging.getLogger(__name__)


STRATEGY_ORDER = [
    "data-testid",
    "id",
    "aria-label",
    "name",
    "class",
    "text-content",
    "xpath",
]

# Attributes that identify an element on their own
KEY_ATTRIBUTES = ["id", "name", "data-testid", "aria-label"]

# Element types whose visible text makes a good selector
TEXT_SELECTABLE_TYPES = {"button", "link"}

POSITION_PATTERNS = [
    re.compile(r"nth-child\(", re.IGNORECASE),
    re.compile(r"nth-of-type\(", re.IGNORECASE),
    re.compile(r"first-child", re.IGNORECASE),
    re.compile(r"last-child", re.IGNORECASE),
    re.compile(r"\[\d+\]"),  # XPath index like [1], [2]
]

_CSS_SPECIAL_CHARS = re.compile(r"""([!"#$%&'()*+,./:;<=>?@\[\\\]^`{|}~])""")
_ESCAPED_CHAR = re.compile(r"\\(.)")

_TEXT_XPATH = re.compile(r'^//\*\[text\(\)="((?:\\.|[^"\\])*)"\]$')
_TYPE_PREFIX = re.compile(r"[a-zA-Z][a-zA-Z0-9-]*")
_ID_PART = re.compile(r"#((?:\\.|[^\s.#\[\\])+)")
_CLASS_PART = re.compile(r"\.((?:\\.|[^\s.#\[\\])+)")
_ATTR_PART = re.compile(r'\[([^=\]"\s]+)="((?:\\.|[^"\\])*)"\]')


def escape_selector(value: str) -> str:
    """Backslash-escape CSS special characters in an id or class name"""
    return _CSS_SPECIAL_CHARS.sub(r"\\\1", value)


def unescape_selector(value: str) -> str:
    return _ESCAPED_CHAR.sub(r"\1", value)


def is_position_based(selector: str) -> bool:
    """True if the selector depends on sibling order"""
    return any(pattern.search(selector) for pattern in POSITION_PATTERNS)


@dataclass
class CompoundSelector:
    """Parsed form of a simple compound CSS selector"""
    tag: Optional[str] = None
    element_id: Optional[str] = None
    classes: List[str] = field(default_factory=list)
    attributes: List[Tuple[str, str]] = field(default_factory=list)

    def matches(self, element: IdentifiedElement) -> bool:
        attrs = element.attributes

        if self.tag and element.type != self.tag:
            return False
        if self.element_id is not None and attrs.get("id") != self.element_id:
            return False
        if self.classes:
            element_classes = (attrs.get("class") or "").split()
            if not all(c in element_classes for c in self.classes):
                return False
        for name, value in self.attributes:
            if attrs.get(name) != value:
                return False
        return True


def parse_compound_selector(selector: str) -> Optional[CompoundSelector]:
    """
    Parse `type`, `#id`, `.a.b`, `[k="v"][k2="v2"]` and any compound of
    them. Returns None for anything else (combinators, pseudo-classes).
    """
    parsed = CompoundSelector()
    pos = 0

    type_match = _TYPE_PREFIX.match(selector)
    if type_match:
        parsed.tag = type_match.group(0)
        pos = type_match.end()

    while pos < len(selector):
        char = selector[pos]
        if char == "#":
            m = _ID_PART.match(selector, pos)
            if not m or parsed.element_id is not None:
                return None
            parsed.element_id = unescape_selector(m.group(1))
        elif char == ".":
            m = _CLASS_PART.match(selector, pos)
            if not m:
                return None
            parsed.classes.append(unescape_selector(m.group(1)))
        elif char == "[":
            m = _ATTR_PART.match(selector, pos)
            if not m:
                return None
            parsed.attributes.append((m.group(1), unescape_selector(m.group(2))))
        else:
            return None
        pos = m.end()

    if not (parsed.tag or parsed.element_id is not None or parsed.classes or parsed.attributes):
        return None
    return parsed


class SelectorGenerator:
    """
    Stateless selector synthesis and validation.

    Holds no per-page state, so one instance can be shared freely.
    """

    def generate_selector(
        self,
        element: IdentifiedElement,
        all_elements: List[IdentifiedElement]
    ) -> str:
        """Return the most robust selector that uniquely identifies element"""
        for strategy in STRATEGY_ORDER[:-1]:
            selector = self.generate_selector_by_strategy(element, strategy)
            if selector and self.validate_selector(selector, element, all_elements):
                logger.debug(f"[SELECTOR] Generated {strategy} selector: {selector}")
                return selector

        logger.info(f"[SELECTOR] Using fallback xpath selector: {element.xpath}")
        return element.xpath

    def generate_selector_by_strategy(
        self,
        element: IdentifiedElement,
        strategy: str
    ) -> Optional[str]:
        """Candidate selector for one strategy, or None if it does not apply"""
        attrs = element.attributes

        if strategy == "data-testid":
            value = attrs.get("data-testid")
            return f'[data-testid="{value}"]' if value else None

        if strategy == "id":
            value = attrs.get("id")
            return f"#{escape_selector(value)}" if value else None

        if strategy == "aria-label":
            value = attrs.get("aria-label")
            return f'[aria-label="{value}"]' if value else None

        if strategy == "name":
            value = attrs.get("name")
            return f'[name="{value}"]' if value else None

        if strategy == "class":
            classes = (attrs.get("class") or "").split()
            return f".{escape_selector(classes[0])}" if classes else None

        if strategy == "text-content":
            text = attrs.get("text")
            if not text or element.type not in TEXT_SELECTABLE_TYPES:
                return None
            escaped = text.replace('"', '\\"')
            return f'//*[text()="{escaped}"]'

        if strategy == "xpath":
            return element.xpath

        return None

    # ==================== Validation ====================

    def validate_selector(
        self,
        selector: str,
        expected_element: IdentifiedElement,
        all_elements: List[IdentifiedElement]
    ) -> bool:
        """True iff selector matches exactly one element and it is expected_element"""
        if not selector or not selector.strip():
            return False

        if is_position_based(selector):
            logger.warning(f"[SELECTOR] Rejecting position-based selector: {selector}")
            return False

        matching = self.find_matching_elements(selector, all_elements)
        if len(matching) != 1:
            logger.debug(
                f'[SELECTOR] Selector "{selector}" matches {len(matching)} elements (expected 1)'
            )
            return False

        return self.elements_match(matching[0], expected_element)

    def find_matching_elements(
        self,
        selector: str,
        all_elements: List[IdentifiedElement]
    ) -> List[IdentifiedElement]:
        """Evaluate selector against the captured elements"""
        if selector.startswith("/"):
            text_match = _TEXT_XPATH.match(selector)
            if text_match:
                expected_text = text_match.group(1).replace('\\"', '"')
                return [el for el in all_elements if el.attributes.get("text") == expected_text]
            return [el for el in all_elements if el.xpath == selector]

        compound = parse_compound_selector(selector)
        if compound is None:
            logger.debug(f"[SELECTOR] Unsupported selector syntax: {selector}")
            return []
        return [el for el in all_elements if compound.matches(el)]

    def elements_match(self, first: IdentifiedElement, second: IdentifiedElement) -> bool:
        """Whether two captured elements are the same logical element"""
        # xpath is the capture's unique identifier
        if first.xpath and second.xpath:
            return first.xpath == second.xpath

        a, b = first.attributes, second.attributes
        for key in KEY_ATTRIBUTES:
            if a.get(key) and a.get(key) == b.get(key):
                return True

        return bool(a.get("text")) and a.get("text") == b.get("text")

    # ==================== Refinement ====================

    def _refinement_candidates(self, element: IdentifiedElement) -> List[Callable[[], Optional[str]]]:
        attrs = element.attributes
        tag = element.type
        classes = (attrs.get("class") or "").split()

        def with_attribute(name: str) -> Optional[str]:
            value = attrs.get(name)
            return f'{tag}[{name}="{value}"]' if value else None

        def with_id() -> Optional[str]:
            value = attrs.get("id")
            return f"{tag}#{escape_selector(value)}" if value else None

        def with_first_class() -> Optional[str]:
            return f"{tag}.{escape_selector(classes[0])}" if classes else None

        def multi_class() -> Optional[str]:
            if len(classes) < 2:
                return None
            return "." + ".".join(escape_selector(c) for c in classes)

        def name_and_placeholder() -> Optional[str]:
            parts = [tag]
            if attrs.get("name"):
                parts.append(f'[name="{attrs["name"]}"]')
            if attrs.get("placeholder"):
                parts.append(f'[placeholder="{attrs["placeholder"]}"]')
            return "".join(parts) if len(parts) > 1 else None

        return [
            lambda: with_attribute("data-testid"),
            with_id,
            lambda: with_attribute("name"),
            lambda: with_attribute("aria-label"),
            with_first_class,
            multi_class,
            name_and_placeholder,
        ]

    def refine_selector(
        self,
        element: IdentifiedElement,
        all_elements: List[IdentifiedElement]
    ) -> str:
        """Combine the element type with its attributes until unique; xpath last"""
        for candidate in self._refinement_candidates(element):
            selector = candidate()
            if selector and self.validate_selector(selector, element, all_elements):
                logger.debug(f"[SELECTOR] Refined selector: {selector}")
                return selector

        logger.info("[SELECTOR] Refinement failed, using xpath")
        return element.xpath

    def explain(self, element: IdentifiedElement, all_elements: List[IdentifiedElement]) -> Dict[str, Optional[bool]]:
        """Per-strategy validity, None where the strategy does not apply"""
        report: Dict[str, Optional[bool]] = {}
        for strategy in STRATEGY_ORDER:
            selector = self.generate_selector_by_strategy(element, strategy)
            report[strategy] = (
                None if selector is None
                else self.validate_selector(selector, element, all_elements)
            )
        return report


_selector_generator: Optional[SelectorGenerator] = None


def get_selector_generator() -> SelectorGenerator:
    """Shared instance; safe because the generator is stateless"""
    global _selector_generator
    if _selector_generator is None:
        _selector_generator = SelectorGenerator()
    return _selector_generator
