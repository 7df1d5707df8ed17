"""
End-to-end purchase scenarios against the default seed.

The machine starts with one of each product and the standard coin float
(100 x 1P, 100 x 2P, 2 x 5P, 5 x 10P, 5 x 20P, 2 x 50P).
"""

import pytest

from vending_machine import MachineState, VendingError


def buy_coke_with_two_fifties(machine):
    machine.select_product("Coke")
    machine.insert_coin(50)
    return machine.insert_coin(50)


class TestCokeScenario:

    def test_balance_goes_from_price_to_change_owed(self, machine):
        machine.select_product("Coke")
        machine.insert_coin(50)
        assert machine.get_balance() == 15
        assert machine.get_state() == MachineState.AWAITING_PAYMENT

    def test_purchase_dispenses_and_tenders_change(self, machine, display):
        result = buy_coke_with_two_fifties(machine)
        assert result.success
        assert display.last() == "Please collect your change :\n1 x 20P\n1 x 10P\n1 x 5P"
        assert machine.get_state() == MachineState.AWAITING_SELECTION
        assert machine.get_item_count("Coke") == 0

    def test_change_leaves_the_coin_ledger(self, machine):
        coins = machine.get_transaction_ledger().get_coin_ledger()
        before = coins.get_total_value()
        buy_coke_with_two_fifties(machine)
        assert coins.get_total_value() == before - 35
        assert coins.get_count(20) == 4
        assert coins.get_count(10) == 4
        assert coins.get_count(5) == 1

    def test_buying_again_once_sold_refunds_each_coin(self, machine, display):
        buy_coke_with_two_fifties(machine)

        assert machine.select_product("Coke").error == VendingError.NOT_AVAILABLE
        first = machine.insert_coin(50)
        second = machine.insert_coin(50)

        assert first.error == VendingError.MUST_SELECT_FIRST
        assert second.error == VendingError.MUST_SELECT_FIRST
        assert display.last() == "Please select a product first. Collect back your money:\n1 x 50P"
        assert machine.get_state() == MachineState.AWAITING_SELECTION

    def test_buying_again_with_stock_left_reports_balance(self, make_machine, display):
        machine = make_machine(initial_stock=2)
        buy_coke_with_two_fifties(machine)

        assert machine.select_product("Coke").success
        machine.insert_coin(50)
        assert display.last() == "Balance amount remaining 15"
        assert machine.get_state() == MachineState.AWAITING_PAYMENT

        machine.insert_coin(20)
        assert machine.get_state() == MachineState.AWAITING_SELECTION
        assert display.last() == "Please collect your change :\n1 x 5P"
        assert machine.get_item_count("Coke") == 0


class TestTangoScenario:

    def test_single_coin_leaves_balance_remaining(self, machine, display):
        machine.select_product("Tango")
        machine.insert_coin(50)
        assert machine.get_balance() == 113
        assert display.last() == "Balance amount remaining 113"
        assert machine.get_state() == MachineState.AWAITING_PAYMENT

    def test_twenties_cross_zero_on_the_sixth_coin(self, machine, display):
        machine.select_product("Tango")
        machine.insert_coin(50)

        for _ in range(5):
            machine.insert_coin(20)
            assert machine.get_state() == MachineState.AWAITING_PAYMENT
        assert machine.get_balance() == 13

        result = machine.insert_coin(20)
        assert result.success
        assert display.last() == "Please collect your change :\n1 x 5P\n1 x 2P"
        assert machine.get_item_count("Tango") == 0
        assert machine.get_state() == MachineState.AWAITING_SELECTION

    def test_program_sequence_on_one_machine(self, machine, display):
        buy_coke_with_two_fifties(machine)
        buy_coke_with_two_fifties(machine)
        machine.select_product("Tango")
        machine.insert_coin(50)
        for _ in range(6):
            machine.insert_coin(20)

        assert display.last() == "Please collect your change :\n1 x 5P\n1 x 2P"
        assert machine.get_total_item_count() == 3
        coins = machine.get_transaction_ledger().get_coin_ledger()
        assert coins.get_count(5) == 0
        assert coins.get_count(50) == 0


class TestSellingOut:

    def test_every_product_sold_once_ends_sold_out(self, machine):
        prices = {"Coke": 65, "Fanta": 45, "Redbull": 85, "Sprite": 92, "Tango": 163}
        for name, price in prices.items():
            machine.select_product(name)
            paid = 0
            while paid < price:
                coin = 1 if price - paid == 1 else 2
                result = machine.insert_coin(coin)
                paid += coin
        assert machine.get_total_item_count() == 0
        assert result.error == VendingError.OUT_OF_STOCK
        assert machine.get_state() == MachineState.SOLD_OUT

    @pytest.mark.parametrize("action", ["select", "coin", "eject"])
    def test_sold_out_is_final(self, make_machine, action):
        machine = make_machine(products={"Fanta": 45})
        machine.select_product("Fanta")
        machine.insert_coin(50)
        assert machine.get_state() == MachineState.SOLD_OUT

        if action == "select":
            machine.select_product("Fanta")
        elif action == "coin":
            machine.insert_coin(10)
        else:
            machine.eject_coin()
        assert machine.get_state() == MachineState.SOLD_OUT
