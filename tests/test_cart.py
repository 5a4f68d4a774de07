"""Cart store: consolidation of repeated adds, derived totals and persistence."""

import json
from decimal import Decimal

import pytest

from conftest import PIZZA, SALAD
from feastflow_mcp.models import MenuItem
from feastflow_mcp.state import CartLine, CartStore, decode_cart, encode_cart
from feastflow_mcp.storage import CART_KEY, MemoryStorage

pytestmark = pytest.mark.unit


def test_new_cart_is_empty(cart):
    assert cart.lines == []
    assert cart.total_items == 0
    assert cart.total_price == Decimal("0")


@pytest.mark.parametrize("n", [1, 2, 7])
def test_repeated_adds_consolidate_into_one_line(cart, n):
    for _ in range(n):
        cart.add_item(PIZZA)

    assert len(cart.lines) == 1
    assert cart.lines[0].quantity == n
    assert cart.total_items == n


def test_add_notifies_added_then_quantity_updated(cart, notifier):
    cart.add_item(PIZZA)
    cart.add_item(PIZZA)

    messages = [n.message for n in notifier.drain()]
    assert messages == ["Pizza added to cart", "Quantity updated"]


def test_repeat_add_keeps_original_price(cart):
    cart.add_item(PIZZA)
    cart.add_item(MenuItem(id="pizza", name="Pizza", price=Decimal("99.00")))

    assert cart.find("pizza").unit_price == Decimal("10.00")
    assert cart.total_price == Decimal("20.00")


def test_totals_follow_lines(cart):
    cart.add_item(PIZZA)
    cart.add_item(SALAD)
    cart.increase_qty("salad")
    cart.increase_qty("pizza")
    cart.decrease_qty("pizza")
    cart.add_item(SALAD)
    cart.remove_item("pizza")

    expected = sum((l.unit_price * l.quantity for l in cart.lines), Decimal("0"))
    assert cart.total_price == expected == Decimal("15.00")
    assert cart.total_items == 3


def test_pizza_and_salad_scenario(cart):
    cart.add_item(PIZZA)
    cart.add_item(SALAD)
    cart.add_item(SALAD)

    assert cart.total_price == Decimal("20.00")
    assert cart.total_items == 3

    cart.decrease_qty("salad")
    cart.decrease_qty("salad")

    assert cart.find("salad") is None
    assert cart.total_price == Decimal("10.00")
    assert cart.total_items == 1


def test_decrease_below_one_removes_line(cart, storage):
    cart.add_item(PIZZA)
    cart.decrease_qty("pizza")

    assert cart.find("pizza") is None
    assert all(line.quantity >= 1 for line in cart.lines)
    assert json.loads(storage.get(CART_KEY)) == []


def test_adjusting_absent_item_is_noop(cart):
    cart.add_item(PIZZA)
    cart.increase_qty("nope")
    cart.decrease_qty("nope")

    assert [(l.id, l.quantity) for l in cart.lines] == [("pizza", 1)]


def test_remove_absent_item_leaves_cart_unchanged(cart, notifier):
    cart.add_item(PIZZA)
    notifier.drain()
    before = cart.snapshot()

    assert cart.remove_item("missing") is False
    assert cart.lines == before
    assert notifier.drain() == []


def test_clear_cart_persists_empty_list(cart, storage):
    cart.add_item(PIZZA)
    cart.clear_cart()

    assert cart.lines == []
    assert storage.get(CART_KEY) == "[]"


def test_erase_removes_persisted_key(cart, storage):
    cart.add_item(PIZZA)
    cart.erase()

    assert cart.lines == []
    assert storage.get(CART_KEY) is None


def test_every_mutation_is_persisted(cart, storage):
    cart.add_item(PIZZA)
    cart.add_item(SALAD)
    cart.increase_qty("salad")

    reloaded = CartStore(storage)
    assert [(l.id, l.quantity) for l in reloaded.lines] == [("pizza", 1), ("salad", 2)]


def test_reload_reproduces_lines_and_totals(cart, storage):
    cart.add_item(PIZZA)
    cart.add_item(SALAD)
    cart.add_item(SALAD)

    reloaded = CartStore(MemoryStorage({CART_KEY: storage.get(CART_KEY)}))

    assert reloaded.lines == cart.lines
    assert reloaded.total_price == cart.total_price
    assert reloaded.total_items == cart.total_items


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        '{"id": "pizza"}',
        '[{"id": "pizza"}]',
        '[{"id": "pizza", "name": "Pizza", "unit_price": "abc", "quantity": 1}]',
        '[{"id": "pizza", "name": "Pizza", "unit_price": "NaN", "quantity": 1}]',
        "[42]",
    ],
)
def test_corrupt_persisted_cart_starts_empty(raw):
    cart = CartStore(MemoryStorage({CART_KEY: raw}))
    assert cart.lines == []
    assert cart.total_items == 0


def test_decode_merges_duplicates_and_drops_empty_lines():
    raw = json.dumps(
        [
            {"id": "a", "name": "A", "unit_price": "2.50", "quantity": 1},
            {"id": "a", "name": "A", "unit_price": "2.50", "quantity": 2},
            {"id": "b", "name": "B", "unit_price": "1", "quantity": 0},
        ]
    )
    lines = decode_cart(raw)

    assert [(l.id, l.quantity) for l in lines] == [("a", 3)]


def test_encode_keeps_prices_exact():
    raw = encode_cart([CartLine(id="x", name="X", unit_price=Decimal("0.10"), quantity=3)])
    line = decode_cart(raw)[0]

    assert line.unit_price == Decimal("0.10")
    assert line.line_total == Decimal("0.30")


def test_restore_puts_back_snapshot(cart, storage):
    cart.add_item(PIZZA)
    snapshot = cart.snapshot()
    cart.add_item(PIZZA)
    cart.add_item(SALAD)

    cart.restore(snapshot)

    assert [(l.id, l.quantity) for l in cart.lines] == [("pizza", 1)]
    assert [(l.id, l.quantity) for l in CartStore(storage).lines] == [("pizza", 1)]


def test_to_dict_formats_money(cart):
    cart.add_item(PIZZA)
    cart.add_item(SALAD)

    view = cart.to_dict("$")
    assert view["total_price"] == "15.00"
    assert view["display_total"] == "$15.00"
    assert view["items"][0]["image"] == "pizza.jpg"
