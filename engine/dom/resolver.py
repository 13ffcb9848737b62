"""
Semantic element resolution.

A SemanticTarget describes *what* the driver wants ("the primary plate
field", "the add-to-cart control") without naming selectors. The resolver
snapshots every interactive element inside a scope in one page.evaluate,
ranks the snapshot with a pure function and hands back a locator for the
winner. Ranking order:

1. attribute match (name / id / placeholder / aria-label / formcontrolname)
2. visible or associated-label text against the synonym table
3. positional fallback for anonymous inputs of a declared field type

Ties go to document order so the same DOM always yields the same element.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Optional, Sequence

from playwright.async_api import Locator, Page

from engine.dom.constants import (
    CANDIDATE_ATTR,
    CLAIMED_ATTR,
    FIELD_INPUT_TYPES,
    INTERACTIVE_SELECTORS,
    RESOLVE_POLL_INTERVAL_MS,
    RESOLVE_TIMEOUT_MS,
)
from engine.dom.synonyms import synonyms_for
from engine.dom.text import normalize_for_match
from engine.errors import ElementNotFoundError
from shared.logging import get_logger

logger = get_logger(__name__)

TargetKind = Literal["clickable", "field", "option", "checkbox"]
Strategy = Literal["attribute", "text", "position"]

CLICKABLE_ROLES = frozenset({"button", "link", "tab", "radio", "menuitem"})
CLICKABLE_INPUT_TYPES = frozenset({"submit", "button", "radio", "image"})


@dataclass(frozen=True)
class SemanticTarget:
    """
    key: synonym table key (also used in logs and errors).
    tokens: attribute tokens (substring, case-insensitive).
    exclude_tokens: disqualify a candidate when found in its attributes or text.
    field_type: enables positional fallback among anonymous inputs of that type.
    position: 0-based index for the positional fallback.
    """

    key: str
    kind: TargetKind = "clickable"
    tokens: tuple[str, ...] = ()
    synonyms: tuple[str, ...] = ()
    exclude_tokens: tuple[str, ...] = ()
    field_type: Optional[str] = None
    position: int = 0

    @classmethod
    def from_key(cls, key: str, **kwargs: Any) -> "SemanticTarget":
        """Build a target whose synonyms come from the shared synonym table."""
        kwargs.setdefault("synonyms", synonyms_for(key))
        return cls(key=key, **kwargs)


@dataclass(frozen=True)
class ElementScope:
    """CSS root the resolver searches under (an overlay, a form, the page)."""

    selector: str = "body"
    description: str = "page"


PAGE_SCOPE = ElementScope()


@dataclass(frozen=True)
class ElementSnapshot:
    index: int
    tag: str
    type: str = ""
    role: str = ""
    name: str = ""
    id: str = ""
    placeholder: str = ""
    aria_label: str = ""
    form_control: str = ""
    text: str = ""
    label_text: str = ""
    width: float = 0.0
    height: float = 0.0
    hidden_by_style: bool = False
    disabled: bool = False
    claimed: bool = False
    # Stable per-element id stamped into the DOM; never reassigned by later scans.
    key: str = ""

    @classmethod
    def from_dict(cls, raw: dict) -> "ElementSnapshot":
        return cls(
            index=int(raw.get("index", 0)),
            tag=str(raw.get("tag") or "").lower(),
            type=str(raw.get("type") or "").lower(),
            role=str(raw.get("role") or "").lower(),
            name=str(raw.get("name") or ""),
            id=str(raw.get("id") or ""),
            placeholder=str(raw.get("placeholder") or ""),
            aria_label=str(raw.get("aria_label") or ""),
            form_control=str(raw.get("form_control") or ""),
            text=str(raw.get("text") or ""),
            label_text=str(raw.get("label_text") or ""),
            width=float(raw.get("width") or 0),
            height=float(raw.get("height") or 0),
            hidden_by_style=bool(raw.get("hidden_by_style")),
            disabled=bool(raw.get("disabled")),
            claimed=bool(raw.get("claimed")),
            key=str(raw.get("key") or ""),
        )

    @property
    def visible(self) -> bool:
        return self.width > 0 and self.height > 0 and not self.hidden_by_style

    @property
    def attribute_bag(self) -> str:
        parts = (self.name, self.id, self.placeholder, self.aria_label, self.form_control)
        return normalize_for_match(" ".join(p for p in parts if p))

    @property
    def text_bag(self) -> str:
        return normalize_for_match(f"{self.text} {self.label_text} {self.aria_label}")

    @property
    def anonymous(self) -> bool:
        """No metadata that could tell this input apart from its siblings (ids are ignored)."""
        return not any(
            (self.name, self.placeholder, self.aria_label, self.form_control, self.label_text.strip())
        )


@dataclass
class ResolvedElement:
    target: SemanticTarget
    snapshot: ElementSnapshot
    strategy: Strategy
    locator: Locator
    scope: ElementScope = field(default=PAGE_SCOPE)


def _matches_kind(kind: TargetKind, el: ElementSnapshot) -> bool:
    if kind == "field":
        if el.tag == "input":
            return el.type in FIELD_INPUT_TYPES
        return el.tag in ("textarea", "select") or el.role == "combobox"
    if kind == "checkbox":
        return (el.tag == "input" and el.type == "checkbox") or el.role == "checkbox" or el.tag == "label"
    if kind == "option":
        return el.role == "option" or el.tag in ("li", "option")
    # clickable
    if el.tag in ("button", "a", "label"):
        return True
    if el.tag == "input":
        return el.type in CLICKABLE_INPUT_TYPES
    return el.role in CLICKABLE_ROLES


def _excluded(target: SemanticTarget, el: ElementSnapshot) -> bool:
    if not target.exclude_tokens:
        return False
    haystack = f"{el.attribute_bag} {el.text_bag}"
    return any(normalize_for_match(tok) in haystack for tok in target.exclude_tokens)


def _attribute_match(target: SemanticTarget, el: ElementSnapshot) -> bool:
    bag = el.attribute_bag
    if not bag:
        return False
    return any(normalize_for_match(tok) in bag for tok in target.tokens if tok)


def _text_match(target: SemanticTarget, el: ElementSnapshot) -> bool:
    bag = el.text_bag
    if not bag:
        return False
    return any(normalize_for_match(s) in bag for s in target.synonyms if s)


def _positional_pool(target: SemanticTarget, candidates: Sequence[ElementSnapshot]) -> list[ElementSnapshot]:
    want = (target.field_type or "").lower()
    pool = []
    for el in candidates:
        if el.tag != "input" or not el.anonymous:
            continue
        el_type = el.type or "text"
        if el_type == want:
            pool.append(el)
    return pool


def rank_candidates(
    target: SemanticTarget,
    snapshot: Iterable[ElementSnapshot],
) -> Optional[tuple[ElementSnapshot, Strategy]]:
    """
    Pick the best candidate for a target, or None.

    Pure and deterministic: the same snapshot and target always produce the
    same answer. Invisible, claimed and excluded candidates never win.
    """
    candidates = sorted(
        (
            el
            for el in snapshot
            if el.visible
            and not el.claimed
            and _matches_kind(target.kind, el)
            and not _excluded(target, el)
        ),
        key=lambda el: el.index,
    )
    if not candidates:
        return None

    for el in candidates:
        if _attribute_match(target, el):
            return el, "attribute"

    for el in candidates:
        if _text_match(target, el):
            return el, "text"

    if target.field_type:
        pool = _positional_pool(target, candidates)
        if 0 <= target.position < len(pool):
            return pool[target.position], "position"

    return None


_SNAPSHOT_SCRIPT = """
([scopeSelector, selectors, attr, claimedAttr, seed]) => {
  const root = document.querySelector(scopeSelector);
  if (!root) return null;
  if (!window.__vrDoc) {
    window.__vrDoc = seed;
    window.__vrSeq = 0;
  }
  const labelText = (el) => {
    const parts = [];
    if (el.labels) {
      for (const l of el.labels) parts.push(l.innerText || l.textContent || '');
    }
    const by = el.getAttribute('aria-labelledby');
    if (by) {
      for (const id of by.split(/\\s+/)) {
        const ref = document.getElementById(id);
        if (ref) parts.push(ref.innerText || ref.textContent || '');
      }
    }
    const wrap = el.closest('mat-form-field, .form-group, .field');
    if (wrap && !parts.length) {
      const l = wrap.querySelector('label, mat-label');
      if (l) parts.push(l.innerText || l.textContent || '');
    }
    return parts.join(' ').trim();
  };
  const nodes = Array.from(root.querySelectorAll(selectors.join(',')));
  return nodes.map((el, i) => {
    if (!el.hasAttribute(attr)) {
      window.__vrSeq += 1;
      el.setAttribute(attr, window.__vrDoc + ':' + window.__vrSeq);
    }
    const rect = el.getBoundingClientRect();
    const style = window.getComputedStyle(el);
    const tag = el.tagName.toLowerCase();
    const type = (el.getAttribute('type') || '').toLowerCase();
    const isField = tag === 'input' || tag === 'select' || tag === 'textarea';
    let text = '';
    if (!isField) text = (el.innerText || el.textContent || '');
    else if (type === 'submit' || type === 'button') text = el.value || '';
    return {
      index: i,
      key: el.getAttribute(attr),
      tag,
      type,
      role: el.getAttribute('role') || '',
      name: el.getAttribute('name') || '',
      id: el.id || '',
      placeholder: el.getAttribute('placeholder') || '',
      aria_label: el.getAttribute('aria-label') || '',
      form_control: el.getAttribute('formcontrolname') || '',
      text: text.trim().slice(0, 300),
      label_text: isField ? labelText(el).slice(0, 300) : '',
      width: rect.width,
      height: rect.height,
      hidden_by_style: style.display === 'none' || style.visibility === 'hidden' || style.opacity === '0',
      disabled: !!el.disabled || el.getAttribute('aria-disabled') === 'true',
      claimed: el.hasAttribute(claimedAttr),
    };
  });
}
"""


class SelectorResolver:
    """Polls the page until a SemanticTarget resolves or the window closes."""

    def __init__(
        self,
        page: Page,
        *,
        timeout_ms: int = RESOLVE_TIMEOUT_MS,
        poll_interval_ms: int = RESOLVE_POLL_INTERVAL_MS,
    ) -> None:
        self.page = page
        self.timeout_ms = timeout_ms
        self.poll_interval_ms = poll_interval_ms

    async def snapshot(self, scope: ElementScope = PAGE_SCOPE) -> list[ElementSnapshot]:
        """
        Describe every candidate under scope.

        Each element is stamped with a key the first time any scan sees it and
        keeps that key afterwards, so locators from earlier resolutions stay
        valid while later targets are resolved. The per-document seed keeps
        keys from a previous page load from matching elements of the next.
        """
        raw = await self.page.evaluate(
            _SNAPSHOT_SCRIPT,
            [scope.selector, list(INTERACTIVE_SELECTORS), CANDIDATE_ATTR, CLAIMED_ATTR, uuid.uuid4().hex[:8]],
        )
        if not raw:
            return []
        return [ElementSnapshot.from_dict(item) for item in raw]

    def _locator_for(self, el: ElementSnapshot) -> Locator:
        return self.page.locator(f'[{CANDIDATE_ATTR}="{el.key}"]').first

    async def try_resolve(
        self,
        target: SemanticTarget,
        scope: ElementScope = PAGE_SCOPE,
        *,
        timeout_ms: Optional[int] = None,
    ) -> Optional[ResolvedElement]:
        """Like resolve() but returns None when the window closes."""
        budget_ms = self.timeout_ms if timeout_ms is None else timeout_ms
        deadline = time.monotonic() + budget_ms / 1000
        ticks = 0
        while True:
            ticks += 1
            try:
                snapshot = await self.snapshot(scope)
            except Exception as e:
                # Navigation in flight destroys the execution context; next tick retries.
                logger.debug("resolver.snapshot_failed", target=target.key, error=str(e))
                snapshot = []
            ranked = rank_candidates(target, snapshot)
            if ranked is not None:
                el, strategy = ranked
                logger.info(
                    "resolver.resolved",
                    target=target.key,
                    scope=scope.description,
                    strategy=strategy,
                    index=el.index,
                    ticks=ticks,
                )
                return ResolvedElement(
                    target=target,
                    snapshot=el,
                    strategy=strategy,
                    locator=self._locator_for(el),
                    scope=scope,
                )
            if time.monotonic() >= deadline:
                logger.info(
                    "resolver.exhausted",
                    target=target.key,
                    scope=scope.description,
                    ticks=ticks,
                    candidates=len(snapshot),
                )
                return None
            await asyncio.sleep(self.poll_interval_ms / 1000)

    async def resolve(
        self,
        target: SemanticTarget,
        scope: ElementScope = PAGE_SCOPE,
        *,
        timeout_ms: Optional[int] = None,
    ) -> ResolvedElement:
        """Resolve a target or raise ElementNotFoundError after the polling window."""
        resolved = await self.try_resolve(target, scope, timeout_ms=timeout_ms)
        if resolved is None:
            raise ElementNotFoundError(
                f"No element for target {target.key!r} in {scope.description}",
                target=target.key,
            )
        return resolved
