import pytest

from sahar.cart import Cart, customization_note
from sahar.catalog import categories, create_item, delete_item, effective_price, filter_catalog
from sahar.storage import FileStore
from sahar.validation import ValidationError


def test_customization_note():
    assert customization_note("Medium", "") == "(Sugar: Medium)"
    assert customization_note("Zero", "no ice") == "(Sugar: Zero) no ice"


@pytest.mark.parametrize("price,discount,expected", [
    (55, 45, 45),
    (55, 0, 55),
    (55, None, 55),
    (55, 60, 55),
    (55, 55, 55),
])
def test_effective_price(price, discount, expected):
    assert effective_price(price, discount) == expected


def test_add_uses_discount_and_name(menu):
    cart = Cart()
    line = cart.add_line(menu["Mojito"], "(Sugar: Zero)")
    assert line.unit_price == 45
    assert line.name == "Mojito"
    assert line.quantity == 1
    assert cart.compute_total() == 45


def test_unavailable_item_is_ignored(menu):
    cart = Cart()
    assert cart.add_line(menu["Soup"]) is None
    assert cart.is_empty()


def test_repeated_add_makes_separate_lines(menu):
    cart = Cart()
    cart.add_line(menu["Tea"])
    cart.add_line(menu["Tea"])
    assert len(cart) == 2
    assert cart.compute_total() == 40


def test_total_independent_of_order(menu):
    a, b = Cart(), Cart()
    for name in ("Latte", "Tea", "Croissant", "Mojito"):
        a.add_line(menu[name])
    for name in ("Mojito", "Croissant", "Tea", "Latte"):
        b.add_line(menu[name])
    a.remove_line(1)
    b.remove_line(2)
    assert a.compute_total() == b.compute_total() == 45 + 30 + 45
    assert a.compute_total() == sum(l.unit_price * l.quantity for l in a.lines)


def test_remove_keeps_other_lines_in_order(menu):
    cart = Cart()
    for name in ("Latte", "Tea", "Croissant"):
        cart.add_line(menu[name], f"note {name}")
    removed = cart.remove_line(1)
    assert removed.name == "Tea"
    assert [(l.name, l.note) for l in cart.lines] == [
        ("Latte", "note Latte"),
        ("Croissant", "note Croissant"),
    ]


def test_remove_out_of_range_is_noop(menu):
    cart = Cart()
    cart.add_line(menu["Tea"])
    assert cart.remove_line(5) is None
    assert cart.remove_line(-1) is None
    assert len(cart) == 1


def test_summary_text(menu):
    cart = Cart()
    cart.add_line(menu["Latte"], customization_note("Medium", ""))
    cart.add_line(menu["Croissant"])
    assert cart.summary_text() == "1x Latte (Sugar: Medium), 1x Croissant "


def test_checkout_key_changes_with_cart(menu):
    cart = Cart()
    cart.add_line(menu["Tea"])
    key = cart.ensure_checkout_key()
    assert cart.ensure_checkout_key() == key
    cart.add_line(menu["Latte"])
    assert cart.ensure_checkout_key() != key
    cart.clear()
    assert cart.checkout_key is None and cart.is_empty()


def test_catalog_filter(menu):
    items = list(menu.values())
    assert categories(items)[0] == "All"
    assert {i.name_en for i in filter_catalog(items, "hot")} == {"Latte", "Tea"}
    assert [i.name_en for i in filter_catalog(items, "All", "moj")] == ["Mojito"]


def test_menu_item_image_upload_and_delete(backend, tmp_path):
    files = FileStore(tmp_path)
    item = create_item(backend, {"name_ar": "Cake", "price": "35"}, ("cake.PNG", b"png-bytes"), files)
    assert item.image.startswith("/uploads/menu_images/new_") and item.image.endswith(".png")
    stored = tmp_path / "menu_images" / item.image.rsplit("/", 1)[-1]
    assert stored.read_bytes() == b"png-bytes"

    assert delete_item(backend, item.id, files) == 1
    assert not stored.exists()
    assert delete_item(backend, item.id, files) == 0


def test_menu_item_rejects_bad_image(backend, tmp_path):
    with pytest.raises(ValidationError):
        create_item(backend, {"name_ar": "Cake", "price": "35"}, ("cake.exe", b"x"), FileStore(tmp_path))


def test_discard_keeps_lines_added_later(menu):
    cart = Cart()
    cart.add_line(menu["Latte"])
    cart.add_line(menu["Croissant"])
    sold = list(cart.lines)
    cart.ensure_checkout_key()
    cart.add_line(menu["Tea"])
    cart.discard(sold)
    assert [l.name for l in cart.lines] == ["Tea"]
    assert cart.checkout_key is None
