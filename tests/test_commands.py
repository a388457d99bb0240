"""Test player commands on stores, factories and the supply chain."""

import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from tycoon_sim import (
    GameConfig, EconomicState, ValidationError, InsufficientResourcesError,
    create_game
)


def test_new_game_defaults():
    game = create_game()
    assert game.day == 1
    assert game.player.cash == pytest.approx(1000.0)
    assert [s.name for s in game.player.stores] == ["My First Store"]
    assert game.current_store == 0
    assert game.current_factory is None
    assert game.competitive_market.player_market_share == pytest.approx(0.15)
    assert game.player.net_worth(game.stock_market) == pytest.approx(1000.0)


def test_custom_config():
    game = create_game(GameConfig(starting_cash=250.0, first_store_name="Corner Shop", store_daily_rent=80.0))
    assert game.player.cash == pytest.approx(250.0)
    assert game.player.stores[0].name == "Corner Shop"
    assert game.player.stores[0].daily_rent == pytest.approx(80.0)


def test_buy_inventory_conserves_cash():
    game = create_game()
    cost = game.buy_inventory(5, 10)  # Headphones @ $25

    assert cost == pytest.approx(250.0)
    assert game.player.cash == pytest.approx(750.0)
    store = game.current_store_ref()
    assert store.get_quantity(5) == 10
    assert store.get_price(5) == pytest.approx(37.5)
    print("✓ Inventory purchase deducts exactly quantity x wholesale")


def test_buy_inventory_uses_economy_price():
    game = create_game()
    game.market.economic_state = EconomicState.COLLAPSE
    cost = game.buy_inventory(1, 100)
    assert cost == pytest.approx(160.0)
    assert game.current_store_ref().get_price(1) == pytest.approx(2.4)


def test_restock_keeps_retail_price():
    game = create_game()
    game.buy_inventory(8, 5)
    game.set_retail_price(8, 20.0)
    game.buy_inventory(8, 5)

    store = game.current_store_ref()
    assert store.get_quantity(8) == 10
    assert store.get_price(8) == pytest.approx(20.0)


def test_buy_inventory_rejections():
    game = create_game()
    with pytest.raises(ValidationError):
        game.buy_inventory(1, 0)
    with pytest.raises(ValidationError):
        game.buy_inventory(404, 1)
    with pytest.raises(ValidationError, match="raw material"):
        game.buy_inventory(11, 1)
    with pytest.raises(InsufficientResourcesError, match="Not enough cash"):
        game.buy_inventory(9, 100)

    assert game.player.cash == pytest.approx(1000.0)
    assert game.current_store_ref().inventory == {}


def test_set_retail_price_rejections():
    game = create_game()
    with pytest.raises(ValidationError, match="Product not in inventory"):
        game.set_retail_price(1, 3.0)
    game.buy_inventory(1, 1)
    with pytest.raises(ValidationError, match="Price must be positive"):
        game.set_retail_price(1, 0.0)
    assert game.current_store_ref().get_price(1) == pytest.approx(3.0)


def test_non_numeric_price_rejected():
    game = create_game()
    game.buy_inventory(1, 10)
    for bad_price in (float("nan"), float("inf")):
        with pytest.raises(ValidationError, match="Price must be positive"):
            game.set_retail_price(1, bad_price)
    assert game.current_store_ref().get_price(1) == pytest.approx(3.0)

    # The next day still runs on the old price
    result = game.advance_day()
    assert result.total_items_sold <= 10


def test_store_staff():
    game = create_game()
    store = game.current_store_ref()
    assert store.effective_customers() == 50

    game.hire_employee("Sam")
    game.hire_employee("Kim")
    assert store.effective_customers() == 70
    assert store.daily_expenses() == pytest.approx(200.0)

    game.hire_employee("Lee")
    with pytest.raises(InsufficientResourcesError):
        game.hire_employee("Max")
    with pytest.raises(ValidationError):
        game.hire_employee("   ")

    fired = game.fire_employee(0)
    assert fired.name == "Sam"
    with pytest.raises(ValidationError):
        game.fire_employee(5)
    assert len(store.employees) == 2


def test_buy_new_store():
    game = create_game()
    game.player.cash = 6000.0

    purchase = game.buy_new_store("Downtown")

    assert purchase.store_id == 2
    assert purchase.cost == pytest.approx(5000.0)
    assert purchase.competitor_reactions == ["ValueStore is responding with lower prices!"]
    assert game.player.cash == pytest.approx(1000.0)
    assert game.player.stores[1].name == "Downtown"
    # Buying a store doesn't change the selection
    assert game.current_store == 0
    print("✓ New store purchased, competitors reacted")


def test_buy_new_store_rejections():
    game = create_game()
    with pytest.raises(InsufficientResourcesError):
        game.buy_new_store("Downtown")
    with pytest.raises(ValidationError):
        game.buy_new_store("")
    assert len(game.player.stores) == 1
    assert game.player.next_store_id == 2


def test_switch_store():
    game = create_game()
    game.player.cash = 20000.0
    game.buy_new_store("Downtown")

    game.switch_store(1)
    game.buy_inventory(2, 4)
    assert game.player.stores[1].get_quantity(2) == 4
    assert game.player.stores[0].get_quantity(2) == 0

    with pytest.raises(ValidationError):
        game.switch_store(2)
    with pytest.raises(ValidationError):
        game.switch_store(-1)
    assert game.current_store == 1
    assert game.get_store_index_by_id(2) == 1
    assert game.get_store_index_by_id(9) is None


def test_factory_commands_need_a_factory():
    game = create_game()
    with pytest.raises(ValidationError, match="No factory"):
        game.buy_raw_materials(11, 1)
    with pytest.raises(ValidationError, match="No factory"):
        game.start_production(1)
    with pytest.raises(ValidationError, match="No factory"):
        game.toggle_auto_transfer()
    assert game.max_producible(1) is None


def test_buy_new_factory():
    game = create_game()
    with pytest.raises(InsufficientResourcesError):
        game.buy_new_factory("Plant")

    game.player.cash = 25000.0
    first = game.buy_new_factory("Plant")
    second = game.buy_new_factory("Annex")

    assert (first, second) == (1, 2)
    assert game.player.cash == pytest.approx(5000.0)
    assert game.current_factory == 0

    game.switch_factory(1)
    assert game.current_factory_ref().name == "Annex"
    with pytest.raises(ValidationError):
        game.switch_factory(2)


def test_raw_materials_and_production():
    game = create_game()
    game.player.cash = 20000.0
    game.buy_new_factory("Plant")

    cost = game.buy_raw_materials(12, 3)  # Steel @ $8
    assert cost == pytest.approx(24.0)
    game.buy_raw_materials(15, 1)
    with pytest.raises(ValidationError, match="not a raw material"):
        game.buy_raw_materials(1, 1)

    assert game.max_producible(4) == 1  # Blender
    assert game.start_production(4, 3) == 1
    factory = game.current_factory_ref()
    assert factory.get_raw_material(12) == 2
    assert factory.get_raw_material(15) == 0

    with pytest.raises(ValidationError):
        game.start_production(77)
    with pytest.raises(InsufficientResourcesError):
        game.start_production(4)


def test_workers_via_commands():
    game = create_game()
    game.player.cash = 20000.0
    game.buy_new_factory("Plant")
    game.hire_worker("Ana")

    factory = game.current_factory_ref()
    assert factory.production_slots() == 3
    assert factory.workers[0].salary == pytest.approx(75.0)
    assert game.fire_worker(0).name == "Ana"


def test_transfer_requires_connection():
    game = create_game()
    game.player.cash = 20000.0
    game.buy_new_factory("Plant")
    factory = game.current_factory_ref()
    factory.finished_goods[16] = 5

    with pytest.raises(InsufficientResourcesError, match="not connected"):
        game.transfer_to_store(16, 3, 0)

    game.connect_factory_to_store(0)
    moved = game.transfer_to_store(16, 3, 0)

    store = game.player.stores[0]
    assert moved == 3
    assert store.get_quantity(16) == 3
    assert store.get_price(16) == pytest.approx(37.5)
    assert factory.get_finished_good(16) == 2

    assert game.transfer_to_store(16, 10, 0) == 2
    with pytest.raises(InsufficientResourcesError):
        game.transfer_to_store(16, 1, 0)
    with pytest.raises(ValidationError):
        game.transfer_to_store(16, 1, 3)
    print("✓ Transfers move finished goods to connected stores")


def test_transfer_price_ignores_economy():
    game = create_game()
    game.player.cash = 20000.0
    game.buy_new_factory("Plant")
    game.connect_factory_to_store(0)
    game.current_factory_ref().finished_goods[16] = 2
    game.market.economic_state = EconomicState.PROSPERITY

    game.transfer_to_store(16, 2, 0)

    # $25 catalog price + 50%, whatever wholesale is today
    assert game.player.stores[0].get_price(16) == pytest.approx(37.5)


def test_connect_and_disconnect():
    game = create_game()
    game.player.cash = 20000.0
    game.buy_new_factory("Plant")
    game.buy_new_store("Downtown")

    game.connect_factory_to_store(1)
    game.connect_factory_to_store(0)
    factory = game.current_factory_ref()
    assert factory.connected_stores == {1, 2}
    assert factory.primary_store() == 1

    game.disconnect_factory_from_store(0)
    assert factory.connected_stores == {2}
    with pytest.raises(ValidationError):
        game.connect_factory_to_store(5)

    assert game.toggle_auto_transfer() is True


def test_net_worth_counts_everything():
    game = create_game()
    game.take_flexible_loan(1000.0)
    game.buy_inventory(5, 10)  # $250 at cost, $375 at retail
    game.buy_stock(1, 5)  # $500

    # cash 2000 - 250 - 500 = 1250; + 375 inventory + 500 stock - 1000 debt
    assert game.player.net_worth(game.stock_market) == pytest.approx(1125.0)
    assert game.player.net_worth() == pytest.approx(625.0)


def run_all_tests():
    """Run all tests."""
    print("Running command tests...\n")

    test_new_game_defaults()
    test_custom_config()
    test_buy_inventory_conserves_cash()
    test_buy_inventory_uses_economy_price()
    test_restock_keeps_retail_price()
    test_buy_inventory_rejections()
    test_set_retail_price_rejections()
    test_non_numeric_price_rejected()
    test_store_staff()
    test_buy_new_store()
    test_buy_new_store_rejections()
    test_switch_store()
    test_factory_commands_need_a_factory()
    test_buy_new_factory()
    test_raw_materials_and_production()
    test_workers_via_commands()
    test_transfer_requires_connection()
    test_transfer_price_ignores_economy()
    test_connect_and_disconnect()
    test_net_worth_counts_everything()

    print("\n✅ All command tests passed!")


if __name__ == "__main__":
    run_all_tests()
