from snappy_serve.domain import OrderItem
from snappy_serve.services.billing import compute_bill, round_half_up


def test_round_half_up_rounds_halves_away_from_even():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(1.49) == 1
    assert round_half_up(0) == 0


def test_two_masala_chai():
    totals = compute_bill([OrderItem(name="Masala Chai", price=30, quantity=2)])

    assert totals.subtotal == 60
    assert totals.tax == 3
    assert totals.service == 1
    assert totals.total == 64


def test_tax_and_service_are_rounded_independently():
    # 50 * 0.05 = 2.5 -> 3, 50 * 0.02 = 1.0 -> 1
    totals = compute_bill([OrderItem(name="Sandwich", price=50)])

    assert (totals.tax, totals.service, totals.total) == (3, 1, 54)


def test_total_identity_over_mixed_lines():
    items = [
        OrderItem(name="Samosa", price=20, quantity=3),
        OrderItem(name="Green Tea", price=40, quantity=1),
        OrderItem(name="Mix Paratha", price=90, quantity=2),
    ]
    totals = compute_bill(items)

    assert totals.subtotal == 280
    assert totals.total == totals.subtotal + round_half_up(280 * 0.05) + round_half_up(280 * 0.02)


def test_fractional_prices_keep_fractional_subtotal():
    totals = compute_bill([OrderItem(name="Cookie", price=12.5)])

    assert totals.subtotal == 12.5
    assert totals.tax == 1
    assert totals.service == 0
    assert totals.total == 13.5


def test_custom_rates():
    totals = compute_bill([OrderItem(name="Chai", price=100)], tax_rate=0.1, service_rate=0)

    assert (totals.tax, totals.service, totals.total) == (10, 0, 110)
