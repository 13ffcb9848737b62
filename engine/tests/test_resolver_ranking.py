"""
Unit tests for semantic element ranking and the polling resolver.

Ranking is pure: tests build snapshots by hand. The resolver tests mock
page.evaluate; no browser required.
"""

from __future__ import annotations

import re
from unittest.mock import AsyncMock, MagicMock

import pytest

from engine.adapters.via_admin import (
    ADD_TO_CART,
    CATEGORY_TARGETS,
    PLATE_CONFIRMATION,
    PLATE_PRIMARY,
    ViaAdminAdapter,
)
from engine.dom.resolver import (
    ElementSnapshot,
    SelectorResolver,
    SemanticTarget,
    rank_candidates,
)
from engine.errors import ElementNotFoundError
from engine.models import OrderRequest


def el(index: int, tag: str = "input", **kwargs) -> ElementSnapshot:
    kwargs.setdefault("width", 120.0)
    kwargs.setdefault("height", 24.0)
    return ElementSnapshot(index=index, tag=tag, **kwargs)


def test_attribute_match_beats_earlier_text_match():
    snapshot = [
        el(1, label_text="Kontrollschild"),
        el(3, name="plateNumber"),
    ]
    chosen, strategy = rank_candidates(PLATE_PRIMARY, snapshot)
    assert chosen.index == 3
    assert strategy == "attribute"


def test_text_match_uses_associated_label():
    snapshot = [
        el(0, type="email", label_text="E-Mail"),
        el(1, label_text="Kontrollschild"),
    ]
    chosen, strategy = rank_candidates(PLATE_PRIMARY, snapshot)
    assert chosen.index == 1
    assert strategy == "text"


def test_confirmation_words_exclude_field_from_primary_plate():
    snapshot = [
        el(0, label_text="Kontrollschild bestätigen"),
        el(1, label_text="Kontrollschild"),
    ]
    chosen, _ = rank_candidates(PLATE_PRIMARY, snapshot)
    assert chosen.index == 1


def test_confirmation_target_finds_confirmation_label():
    snapshot = [
        el(0, label_text="Kontrollschild"),
        el(1, label_text="Kontrollschild wiederholen"),
    ]
    chosen, strategy = rank_candidates(PLATE_CONFIRMATION, snapshot)
    assert chosen.index == 1
    assert strategy == "text"


def test_positional_fallback_for_anonymous_inputs():
    snapshot = [el(4, type="text"), el(7, type="text")]
    chosen, strategy = rank_candidates(PLATE_PRIMARY, snapshot)
    assert (chosen.index, strategy) == (4, "position")


def test_claimed_primary_leaves_second_anonymous_input_for_confirmation():
    snapshot = [el(4, type="text", claimed=True), el(7, type="text")]
    chosen, strategy = rank_candidates(PLATE_CONFIRMATION, snapshot)
    assert (chosen.index, strategy) == (7, "position")


def test_positional_fallback_skips_inputs_with_metadata():
    snapshot = [el(0, placeholder="Search"), el(1)]
    chosen, _ = rank_candidates(PLATE_PRIMARY, snapshot)
    assert chosen.index == 1


def test_invisible_candidates_never_win():
    snapshot = [
        el(0, name="plate", width=0, height=0),
        el(1, name="plate", hidden_by_style=True),
        el(2, name="plate"),
    ]
    chosen, _ = rank_candidates(PLATE_PRIMARY, snapshot)
    assert chosen.index == 2


def test_ties_break_by_document_order_regardless_of_list_order():
    snapshot = [el(9, "button", text="Add to cart"), el(2, "button", text="In den Warenkorb")]
    chosen, _ = rank_candidates(ADD_TO_CART, snapshot)
    assert chosen.index == 2


def test_ranking_is_deterministic():
    snapshot = [
        el(0, "a", text="Home"),
        el(1, "button", text="Anhänger"),
        el(2, "button", text="Motorfahrzeug"),
    ]
    target = CATEGORY_TARGETS["motor_vehicle"]
    assert rank_candidates(target, snapshot) == rank_candidates(target, list(snapshot))


def test_text_match_is_case_and_accent_insensitive():
    snapshot = [el(0, "button", text="ANHANGER")]
    chosen, strategy = rank_candidates(CATEGORY_TARGETS["trailer"], snapshot)
    assert chosen.index == 0
    assert strategy == "text"


def test_clickable_target_ignores_text_inputs():
    snapshot = [el(0, "input", type="text", name="add-to-cart-note")]
    assert rank_candidates(ADD_TO_CART, snapshot) is None


def test_option_target_matches_list_items():
    target = SemanticTarget(key="country.GB", kind="option", synonyms=("United Kingdom",))
    snapshot = [
        el(0, "li", text="Switzerland"),
        el(1, "div", role="option", text="United Kingdom"),
    ]
    chosen, _ = rank_candidates(target, snapshot)
    assert chosen.index == 1


def test_no_candidates_returns_none():
    assert rank_candidates(PLATE_PRIMARY, []) is None


def _page_with_snapshots(*snapshots):
    page = MagicMock()
    page.evaluate = AsyncMock(side_effect=list(snapshots))
    return page


@pytest.mark.asyncio
async def test_resolver_polls_until_candidate_appears():
    raw = {"index": 0, "key": "a1b2:1", "tag": "button", "text": "Zur Kasse", "width": 80, "height": 30}
    page = _page_with_snapshots([], [raw])
    resolver = SelectorResolver(page, timeout_ms=2000, poll_interval_ms=1)

    resolved = await resolver.resolve(SemanticTarget.from_key("checkout"))

    assert resolved.snapshot.index == 0
    assert resolved.strategy == "text"
    assert page.evaluate.await_count == 2
    page.locator.assert_called_with('[data-vr-idx="a1b2:1"]')


@pytest.mark.asyncio
async def test_resolver_raises_element_not_found_after_window():
    page = MagicMock()
    page.evaluate = AsyncMock(return_value=[])
    resolver = SelectorResolver(page, timeout_ms=0, poll_interval_ms=1)

    with pytest.raises(ElementNotFoundError) as exc_info:
        await resolver.resolve(SemanticTarget.from_key("checkout"))

    assert exc_info.value.target == "checkout"
    assert exc_info.value.user_safe_summary == "Site markup changed"


@pytest.mark.asyncio
async def test_try_resolve_survives_destroyed_execution_context():
    raw = {"index": 2, "tag": "button", "name": "add-to-cart", "width": 80, "height": 30}
    page = MagicMock()
    page.evaluate = AsyncMock(
        side_effect=[RuntimeError("Execution context was destroyed"), [raw]]
    )
    resolver = SelectorResolver(page, timeout_ms=2000, poll_interval_ms=1)

    resolved = await resolver.try_resolve(ADD_TO_CART)

    assert resolved is not None
    assert resolved.strategy == "attribute"


class StampingPage:
    """
    In-memory page that stamps candidates the way the snapshot script does:
    one seed per document, and a key is only assigned to unstamped elements.
    """

    def __init__(self, elements: list[dict]):
        self.elements = [dict(e) for e in elements]
        self.doc_seed = None
        self.seq = 0

    def reload(self) -> None:
        self.elements = [{k: v for k, v in e.items() if not k.startswith("data-")} for e in self.elements]
        self.doc_seed = None

    async def evaluate(self, _script, args):
        _scope, _selectors, attr, claimed_attr, seed = args
        if self.doc_seed is None:
            self.doc_seed, self.seq = seed, 0
        out = []
        for i, element in enumerate(self.elements):
            if attr not in element:
                self.seq += 1
                element[attr] = f"{self.doc_seed}:{self.seq}"
            out.append(
                {
                    "index": i,
                    "key": element[attr],
                    "tag": element["tag"],
                    "type": element.get("type", ""),
                    "name": element.get("name", ""),
                    "text": element.get("text", ""),
                    "width": 100,
                    "height": 20,
                    "claimed": claimed_attr in element,
                }
            )
        return out

    def locator(self, selector: str) -> "StampedLocator":
        return StampedLocator(self, selector)


class StampedLocator:
    def __init__(self, page: StampingPage, selector: str):
        self.page = page
        self.selector = selector

    @property
    def first(self) -> "StampedLocator":
        return self

    def matched(self) -> list[int]:
        attr, value = re.fullmatch(r'\[([\w-]+)="([^"]*)"\]', self.selector).groups()
        return [i for i, e in enumerate(self.page.elements) if e.get(attr) == value]


PAYMENT_PAGE = [
    {"tag": "input", "type": "radio", "name": "paymentMethod-creditcard"},
    {"tag": "input", "type": "checkbox", "name": "acceptTerms"},
    {"tag": "button", "name": "pay-now", "text": "Jetzt bezahlen"},
]


@pytest.mark.asyncio
async def test_earlier_locators_stay_addressable_after_later_scans():
    """Method and terms are clicked after the pay button was resolved; their locators must still match."""
    page = StampingPage(PAYMENT_PAGE)
    resolver = SelectorResolver(page, timeout_ms=0, poll_interval_ms=1)

    controls = await ViaAdminAdapter().resolve_payment_action(
        resolver, OrderRequest(plate_number="GF23WSN", email="test@example.com")
    )

    assert controls.method.locator.matched() == [0]
    assert controls.terms.locator.matched() == [1]
    assert controls.submit.locator.matched() == [2]


@pytest.mark.asyncio
async def test_rescans_keep_element_keys():
    page = StampingPage(PAYMENT_PAGE)
    resolver = SelectorResolver(page, timeout_ms=0, poll_interval_ms=1)

    first = [el.key for el in await resolver.snapshot()]
    second = [el.key for el in await resolver.snapshot()]

    assert first == second
    assert len(set(first)) == len(first)


@pytest.mark.asyncio
async def test_keys_from_a_previous_document_do_not_match_after_reload():
    page = StampingPage(PAYMENT_PAGE)
    resolver = SelectorResolver(page, timeout_ms=0, poll_interval_ms=1)
    stale = await resolver.resolve(SemanticTarget.from_key("pay", tokens=("pay-now",)))

    page.reload()
    fresh = await resolver.resolve(SemanticTarget.from_key("pay", tokens=("pay-now",)))

    assert stale.locator.matched() == []
    assert fresh.locator.matched() == [2]
