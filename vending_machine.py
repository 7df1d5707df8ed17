from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional, Dict, Tuple
from dataclasses import dataclass

from config import MachineConfig
from logging_config import get_logger, setup_logging


logger = get_logger(__name__)


# ==================== Enums ====================

class MachineState(Enum):
    """States of the vending machine"""
    AWAITING_SELECTION = "AWAITING_SELECTION"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    DISPENSING = "DISPENSING"
    DISPENSING_CHANGE = "DISPENSING_CHANGE"
    SOLD_OUT = "SOLD_OUT"


class VendingError(Enum):
    """Customer-recoverable failures reported by the state handlers"""
    NOT_AVAILABLE = "NOT_AVAILABLE"
    MUST_SELECT_FIRST = "MUST_SELECT_FIRST"
    ALREADY_PROCESSING = "ALREADY_PROCESSING"
    ALREADY_CONFIRMED = "ALREADY_CONFIRMED"
    INSUFFICIENT_CHANGE = "INSUFFICIENT_CHANGE"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    MACHINE_EMPTY = "MACHINE_EMPTY"
    NEEDS_REFILL = "NEEDS_REFILL"
    NOTHING_TO_EJECT = "NOTHING_TO_EJECT"
    INVALID_COIN = "INVALID_COIN"


# ==================== Core Models ====================

class Product:
    """Represents a product stocked in the machine"""

    def __init__(self, name: str, price: int, quantity: int):
        if price < 0:
            raise ValueError(f"Price of {name} cannot be negative")
        if quantity < 0:
            raise ValueError(f"Quantity of {name} cannot be negative")
        self._name = name
        self._price = price
        self._quantity = quantity

    def get_name(self) -> str:
        return self._name

    def get_price(self) -> int:
        return self._price

    def get_quantity(self) -> int:
        return self._quantity

    def is_in_stock(self) -> bool:
        return self._quantity > 0

    def decrement(self) -> None:
        """Remove one unit after a successful dispense"""
        if self._quantity == 0:
            raise ValueError(f"{self._name} is out of stock")
        self._quantity -= 1

    def __repr__(self) -> str:
        return f"Product({self._name}, {self._price}P, Qty: {self._quantity})"

    def __hash__(self) -> int:
        return hash(self._name)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Product):
            return False
        return self._name == other._name


class Denomination:
    """A coin value and how many of those coins the machine holds for change"""

    def __init__(self, value: int, count: int):
        if value <= 0:
            raise ValueError(f"Denomination value must be positive, got {value}")
        if count < 0:
            raise ValueError(f"Denomination count cannot be negative, got {count}")
        self._value = value
        self._count = count

    def get_value(self) -> int:
        return self._value

    def get_count(self) -> int:
        return self._count

    def remove(self, count: int) -> None:
        if count > self._count:
            raise ValueError(f"Only {self._count} x {self._value}P available")
        self._count -= count

    def __repr__(self) -> str:
        return f"Denomination({self._value}P x {self._count})"


@dataclass(frozen=True)
class ChangeLine:
    """One line of a change report: how many coins of one value"""
    count: int
    value: int

    def __str__(self) -> str:
        return f"{self.count} x {self.value}P"


def format_change_report(lines: Optional[List[ChangeLine]]) -> str:
    """Newline-joined report; an empty string means no change could be produced"""
    if not lines:
        return ""
    return "\n".join(str(line) for line in lines)


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a customer action or an internal dispense step"""
    success: bool
    error: Optional[VendingError] = None
    message: str = ""

    @classmethod
    def ok(cls, message: str = "") -> 'ActionResult':
        return cls(success=True, message=message)

    @classmethod
    def fail(cls, error: VendingError, message: str) -> 'ActionResult':
        return cls(success=False, error=error, message=message)


# ==================== Coin Ledger ====================

class CoinLedger:
    """
    Coins available for paying out change, keyed by denomination value.

    Customer deposits are tallied separately and never become spendable,
    so the change-making capacity only ever goes down.
    """

    def __init__(self, counts: Dict[int, int], rollback_on_failure: bool = True):
        self._denominations: Dict[int, Denomination] = {
            value: Denomination(value, count) for value, count in counts.items()
        }
        self._deposits: Dict[int, int] = {value: 0 for value in self._denominations}
        self._rollback_on_failure = rollback_on_failure

    def accepts(self, value: int) -> bool:
        return value in self._denominations

    def get_denominations(self) -> List[int]:
        """Denomination values, largest first"""
        return sorted(self._denominations, reverse=True)

    def get_count(self, value: int) -> int:
        denomination = self._denominations.get(value)
        return denomination.get_count() if denomination else 0

    def get_deposit_count(self, value: int) -> int:
        return self._deposits.get(value, 0)

    def get_total_value(self) -> int:
        return sum(d.get_value() * d.get_count() for d in self._denominations.values())

    def record_deposit(self, value: int) -> None:
        if value not in self._deposits:
            raise ValueError(f"Unsupported coin: {value}P")
        self._deposits[value] += 1

    def _plan_change(self, amount: int) -> Tuple[List[ChangeLine], int]:
        # Greedy pass over current counts; returns the lines and whatever is left unpaid
        if amount < 0:
            raise ValueError(f"Change amount cannot be negative, got {amount}")

        lines: List[ChangeLine] = []
        remaining = amount

        for value in self.get_denominations():
            if remaining <= 0:
                break

            desired = remaining // value
            if desired == 0:
                continue

            used = min(desired, self._denominations[value].get_count())
            if used > 0:
                remaining -= used * value
                lines.append(ChangeLine(used, value))

        return lines, remaining

    def can_make_change(self, amount: int) -> bool:
        """Check if change can be made without touching the counts"""
        _, remaining = self._plan_change(amount)
        return remaining == 0

    def calculate_change(self, amount: int) -> Optional[List[ChangeLine]]:
        """
        Pay out `amount` greedily, largest denomination first.

        Returns the lines paid in descending value order, or None when the
        greedy pass cannot reach exactly zero. On failure the coins picked
        so far stay in the machine unless rollback is disabled, in which
        case they are consumed anyway.
        """
        lines, remaining = self._plan_change(amount)

        if remaining > 0:
            logger.error(f"Cannot make change of {amount}P, {remaining}P short")
            if not self._rollback_on_failure:
                self._apply(lines)
            return None

        self._apply(lines)
        return lines

    def _apply(self, lines: List[ChangeLine]) -> None:
        for line in lines:
            self._denominations[line.value].remove(line.count)

    def report(self) -> str:
        """Plain denomination report, one line per coin value"""
        return "\n".join(
            str(ChangeLine(self.get_count(value), value))
            for value in self.get_denominations()
        )

    def __repr__(self) -> str:
        return f"CoinLedger(total={self.get_total_value()}P)"


# ==================== Inventory ====================

class Inventory:
    """Products carried by the machine, keyed by name"""

    def __init__(self, products: List[Product]):
        self._products: Dict[str, Product] = {}
        for product in products:
            if product.get_name() in self._products:
                raise ValueError(f"Duplicate product: {product.get_name()}")
            self._products[product.get_name()] = product

    def get_product(self, name: str) -> Optional[Product]:
        return self._products.get(name)

    def get_all_products(self) -> List[Product]:
        return list(self._products.values())

    def get_quantity(self, name: str) -> int:
        """Quantity left; unknown names count as out of stock"""
        product = self._products.get(name)
        return product.get_quantity() if product else 0

    def select_for_transaction(self, name: str) -> Optional[Product]:
        return self._products.get(name)

    def decrement(self, product: Product) -> None:
        product.decrement()

    def total_quantity(self) -> int:
        return sum(p.get_quantity() for p in self._products.values())


# ==================== Transaction Ledger ====================

class TransactionLedger:
    """Tracks the pending purchase: selection, coins inserted and balance"""

    def __init__(self, inventory: Inventory, coin_ledger: CoinLedger):
        self._inventory = inventory
        self._coin_ledger = coin_ledger
        self._selected_product: Optional[Product] = None
        self._coins_inserted = 0
        self._balance = 0

    def get_inventory(self) -> Inventory:
        return self._inventory

    def get_coin_ledger(self) -> CoinLedger:
        return self._coin_ledger

    def get_selected_product(self) -> Optional[Product]:
        return self._selected_product

    def get_coins_inserted(self) -> int:
        return self._coins_inserted

    def get_balance(self) -> int:
        """Price minus coins inserted; negative means change is owed"""
        return self._balance

    def get_total_item_count(self) -> int:
        return self._inventory.total_quantity()

    def select_product(self, name: str) -> Optional[Product]:
        # Pending coins are kept; the state machine refuses reselection mid-payment
        self._selected_product = self._inventory.select_for_transaction(name)
        return self._selected_product

    def add_coin(self, value: int) -> None:
        self._coin_ledger.record_deposit(value)
        self._coins_inserted += value
        if self._selected_product:
            self._balance = self._selected_product.get_price() - self._coins_inserted

    def refund_all(self) -> Optional[List[ChangeLine]]:
        """Return every inserted coin's worth; the pending amount is cleared either way"""
        amount = self._coins_inserted
        lines = self._coin_ledger.calculate_change(amount)
        self._coins_inserted = 0
        if lines is None:
            logger.error(f"Refund of {amount}P could not be paid out")
        return lines

    def can_tender_change(self) -> bool:
        return self._coin_ledger.can_make_change(abs(self._balance))

    def tender_change(self) -> Optional[List[ChangeLine]]:
        return self._coin_ledger.calculate_change(abs(self._balance))

    def complete_purchase(self) -> None:
        if not self._selected_product:
            raise ValueError("No product selected")
        self._coins_inserted = 0
        self._inventory.decrement(self._selected_product)

    def reset(self) -> None:
        """Clear the transaction once a purchase completes or is cancelled"""
        self._selected_product = None
        self._coins_inserted = 0
        self._balance = 0


# ==================== State Pattern: Vending Machine States ====================

def _with_report(message: str, lines: Optional[List[ChangeLine]]) -> str:
    report = format_change_report(lines)
    return f"{message}\n{report}" if report else message


class VendingMachineStateHandler(ABC):
    """Abstract state handler for vending machine"""

    @abstractmethod
    def get_state(self) -> MachineState:
        pass

    @abstractmethod
    def select_item(self, machine: 'VendingMachine', item_name: str) -> ActionResult:
        """Handle product selection"""
        pass

    @abstractmethod
    def insert_coin(self, machine: 'VendingMachine') -> ActionResult:
        """Handle a coin that has already been added to the ledger"""
        pass

    @abstractmethod
    def dispense_item(self, machine: 'VendingMachine') -> ActionResult:
        """Handle product dispensing"""
        pass

    @abstractmethod
    def dispense_change(self, machine: 'VendingMachine') -> ActionResult:
        """Handle returning change"""
        pass

    @abstractmethod
    def eject_coin(self, machine: 'VendingMachine') -> ActionResult:
        """Handle transaction cancellation"""
        pass


class AwaitingSelectionState(VendingMachineStateHandler):
    """State when machine is idle and ready for selection"""

    def get_state(self) -> MachineState:
        return MachineState.AWAITING_SELECTION

    def select_item(self, machine: 'VendingMachine', item_name: str) -> ActionResult:
        if machine.get_total_item_count() == 0:
            machine.set_state(SoldOutState())
            return machine.get_state_handler().select_item(machine, item_name)

        if machine.get_item_count(item_name) == 0:
            return ActionResult.fail(
                VendingError.NOT_AVAILABLE,
                f"Sorry, '{item_name}' is not available. Please select a different drink."
            )

        product = machine.get_transaction_ledger().select_product(item_name)
        machine.display_message(
            f"You selected {product.get_name()} with a value of {product.get_price()}"
        )
        machine.set_state(AwaitingPaymentState())
        machine.display_message(f"Please insert coins to buy '{product.get_name()}'")
        return ActionResult.ok()

    def insert_coin(self, machine: 'VendingMachine') -> ActionResult:
        refund = machine.get_transaction_ledger().refund_all()
        return ActionResult.fail(
            VendingError.MUST_SELECT_FIRST,
            _with_report("Please select a product first. Collect back your money:", refund)
        )

    def dispense_item(self, machine: 'VendingMachine') -> ActionResult:
        return ActionResult.ok()

    def dispense_change(self, machine: 'VendingMachine') -> ActionResult:
        return ActionResult.ok()

    def eject_coin(self, machine: 'VendingMachine') -> ActionResult:
        return ActionResult.fail(
            VendingError.NOTHING_TO_EJECT,
            "Cannot eject any coin. Please select a product first."
        )


class AwaitingPaymentState(VendingMachineStateHandler):
    """State when machine is accepting coins for the selected product"""

    def get_state(self) -> MachineState:
        return MachineState.AWAITING_PAYMENT

    def select_item(self, machine: 'VendingMachine', item_name: str) -> ActionResult:
        return ActionResult.fail(
            VendingError.ALREADY_PROCESSING,
            f"Processing an item already. Cannot select {item_name}"
        )

    def insert_coin(self, machine: 'VendingMachine') -> ActionResult:
        balance = machine.get_balance()
        if balance <= 0:
            machine.set_state(DispensingState())
        else:
            machine.display_message(f"Balance amount remaining {balance}")
        return ActionResult.ok()

    def dispense_item(self, machine: 'VendingMachine') -> ActionResult:
        return ActionResult.ok()

    def dispense_change(self, machine: 'VendingMachine') -> ActionResult:
        return ActionResult.ok()

    def eject_coin(self, machine: 'VendingMachine') -> ActionResult:
        ledger = machine.get_transaction_ledger()
        refund = ledger.refund_all()
        ledger.reset()
        machine.set_state(AwaitingSelectionState())
        machine.display_message(
            _with_report("Transaction has been cancelled. Please collect the refund:", refund)
        )
        return ActionResult.ok()


class DispensingState(VendingMachineStateHandler):
    """State when machine is releasing the paid-for product"""

    def get_state(self) -> MachineState:
        return MachineState.DISPENSING

    def select_item(self, machine: 'VendingMachine', item_name: str) -> ActionResult:
        return ActionResult.fail(
            VendingError.ALREADY_PROCESSING,
            "Cannot select item now, we are already dispensing the item for you."
        )

    def insert_coin(self, machine: 'VendingMachine') -> ActionResult:
        return ActionResult.fail(
            VendingError.ALREADY_PROCESSING,
            "Please wait, we are already dispensing the item for you."
        )

    def dispense_item(self, machine: 'VendingMachine') -> ActionResult:
        ledger = machine.get_transaction_ledger()

        # No item is released unless the change can be paid out in full
        if not ledger.can_tender_change():
            logger.warning(f"Cannot tender {abs(ledger.get_balance())}P change, refunding")
            refund = ledger.refund_all()
            ledger.reset()
            machine.set_state(AwaitingSelectionState())
            return ActionResult.fail(
                VendingError.INSUFFICIENT_CHANGE,
                _with_report(
                    "Machine does not have sufficient change. Please tender exact change. "
                    "Please collect your inserted amount:",
                    refund
                )
            )

        product = ledger.get_selected_product()
        ledger.complete_purchase()
        logger.info(f"Dispensed {product.get_name()}, {product.get_quantity()} left")
        machine.display_message(
            f"{product.get_name()} has been dispensed. Please do not forget to collect it."
        )

        if ledger.get_balance() < 0:
            machine.set_state(DispensingChangeState())
            return ActionResult.ok()

        ledger.reset()
        return _finish_sale(machine)

    def dispense_change(self, machine: 'VendingMachine') -> ActionResult:
        return ActionResult.ok()

    def eject_coin(self, machine: 'VendingMachine') -> ActionResult:
        return ActionResult.fail(
            VendingError.ALREADY_CONFIRMED,
            "Invalid operation. You have already confirmed the purchase."
        )


class DispensingChangeState(VendingMachineStateHandler):
    """State when machine is paying out change after a sale"""

    def get_state(self) -> MachineState:
        return MachineState.DISPENSING_CHANGE

    def select_item(self, machine: 'VendingMachine', item_name: str) -> ActionResult:
        return ActionResult.ok()

    def insert_coin(self, machine: 'VendingMachine') -> ActionResult:
        return ActionResult.ok()

    def dispense_item(self, machine: 'VendingMachine') -> ActionResult:
        return ActionResult.ok()

    def dispense_change(self, machine: 'VendingMachine') -> ActionResult:
        ledger = machine.get_transaction_ledger()
        owed = abs(ledger.get_balance())
        change = ledger.tender_change()
        ledger.reset()

        if change is None:
            machine.set_state(AwaitingSelectionState())
            return ActionResult.fail(
                VendingError.INSUFFICIENT_CHANGE,
                f"Unable to return {owed}P change. Please contact the operator."
            )

        machine.display_message(
            f"Please collect your change :\n{format_change_report(change)}"
        )
        return _finish_sale(machine)

    def eject_coin(self, machine: 'VendingMachine') -> ActionResult:
        return ActionResult.ok()


class SoldOutState(VendingMachineStateHandler):
    """State when every product has been sold; there is no way out"""

    def get_state(self) -> MachineState:
        return MachineState.SOLD_OUT

    def select_item(self, machine: 'VendingMachine', item_name: str) -> ActionResult:
        return ActionResult.fail(
            VendingError.NEEDS_REFILL,
            "Products are not available. Machine needs a refill."
        )

    def insert_coin(self, machine: 'VendingMachine') -> ActionResult:
        refund = machine.get_transaction_ledger().refund_all()
        return ActionResult.fail(
            VendingError.MACHINE_EMPTY,
            _with_report("Machine is empty. Please take back your money:", refund)
        )

    def dispense_item(self, machine: 'VendingMachine') -> ActionResult:
        return ActionResult.ok()

    def dispense_change(self, machine: 'VendingMachine') -> ActionResult:
        return ActionResult.ok()

    def eject_coin(self, machine: 'VendingMachine') -> ActionResult:
        return ActionResult.fail(VendingError.MACHINE_EMPTY, "Machine is empty.")


def _finish_sale(machine: 'VendingMachine') -> ActionResult:
    """Go back to selection, or to sold out if that was the last unit"""
    if machine.get_total_item_count() == 0:
        machine.set_state(SoldOutState())
        return ActionResult.fail(VendingError.OUT_OF_STOCK, "Sorry, the machine is out of stock.")

    machine.set_state(AwaitingSelectionState())
    return ActionResult.ok()


# ==================== Display ====================

class Display(ABC):
    """Sink for customer-visible messages"""

    @abstractmethod
    def display_message(self, text: str) -> None:
        pass


class ConsoleDisplay(Display):
    def display_message(self, text: str) -> None:
        print(f"[Machine] {text}")


class RecordingDisplay(Display):
    """Keeps every message; handy for assertions and replays"""

    def __init__(self):
        self.messages: List[str] = []

    def display_message(self, text: str) -> None:
        self.messages.append(text)

    def last(self) -> Optional[str]:
        return self.messages[-1] if self.messages else None

    def clear(self) -> None:
        self.messages.clear()


# ==================== Main Vending Machine Class ====================

class VendingMachine:
    """Main vending machine controller"""

    def __init__(self, config: Optional[MachineConfig] = None,
                 display: Optional[Display] = None):
        self._config = config or MachineConfig()
        self._config.validate()

        inventory = Inventory([
            Product(name, price, self._config.get_stock(name))
            for name, price in self._config.products.items()
        ])
        coin_ledger = CoinLedger(
            self._config.denominations,
            rollback_on_failure=self._config.rollback_on_failure
        )
        self._ledger = TransactionLedger(inventory, coin_ledger)
        self._display = display or ConsoleDisplay()

        if self._ledger.get_total_item_count() > 0:
            self._state_handler: VendingMachineStateHandler = AwaitingSelectionState()
        else:
            self._state_handler = SoldOutState()

        logger.info(
            f"Machine {self._config.machine_id} ready with "
            f"{self._ledger.get_total_item_count()} items, "
            f"state {self._state_handler.get_state().value}"
        )

    def get_machine_id(self) -> str:
        return self._config.machine_id

    def get_state_handler(self) -> VendingMachineStateHandler:
        return self._state_handler

    def get_state(self) -> MachineState:
        return self._state_handler.get_state()

    def set_state(self, state: VendingMachineStateHandler) -> None:
        logger.debug(f"State {self.get_state().value} -> {state.get_state().value}")
        self._state_handler = state

    def get_transaction_ledger(self) -> TransactionLedger:
        return self._ledger

    def get_balance(self) -> int:
        return self._ledger.get_balance()

    def get_selected_product(self) -> Optional[Product]:
        return self._ledger.get_selected_product()

    def get_total_item_count(self) -> int:
        return self._ledger.get_total_item_count()

    def get_item_count(self, name: str) -> int:
        return self._ledger.get_inventory().get_quantity(name)

    def display_message(self, text: str) -> None:
        self._display.display_message(text)

    # Public API methods
    def select_product(self, name: str) -> ActionResult:
        """Select a product by name"""
        return self._report(self._state_handler.select_item(self, name))

    def insert_coin(self, value: int) -> ActionResult:
        """
        Insert one coin.

        The coin is added to the ledger, then the current state handles it.
        Dispensing and change follow within the same call, each step run
        against whatever state the previous step left the machine in. The
        first failing step ends the call.
        """
        coin_ledger = self._ledger.get_coin_ledger()
        if not isinstance(value, int) or value <= 0 or not coin_ledger.accepts(value):
            return self._report(ActionResult.fail(
                VendingError.INVALID_COIN,
                f"Coin of value {value} is not accepted. Please collect it."
            ))

        self._ledger.add_coin(value)

        result = self._state_handler.insert_coin(self)
        if result.success:
            result = self._state_handler.dispense_item(self)
        if result.success:
            result = self._state_handler.dispense_change(self)
        return self._report(result)

    def eject_coin(self) -> ActionResult:
        """Cancel the pending purchase and refund"""
        return self._report(self._state_handler.eject_coin(self))

    def _report(self, result: ActionResult) -> ActionResult:
        if not result.success:
            logger.warning(
                f"{result.error.value} in state {self.get_state().value}"
            )
            self.display_message(result.message)
        return result

    # Reporting
    def get_denomination_report(self) -> str:
        return self._ledger.get_coin_ledger().report()

    def display_inventory(self) -> None:
        """Display current stock and coins held for change"""
        lines = [f"VENDING MACHINE INVENTORY - {self._config.machine_id}"]
        for product in self._ledger.get_inventory().get_all_products():
            status = "+" if product.is_in_stock() else "-"
            lines.append(
                f"{status} {product.get_name()} - {product.get_price()}P "
                f"({product.get_quantity()} left)"
            )
        lines.append("Coins for change:")
        lines.append(self.get_denomination_report())
        self.display_message("\n".join(lines))


# ==================== Demo Usage ====================

def main():
    """Demo the vending machine"""
    config = MachineConfig.from_env()
    setup_logging(log_level=config.log_level, enable_file_logging=False,
                  machine_id=config.machine_id)

    machine = VendingMachine(config)
    machine.display_inventory()

    print("\n--- Coke with two 50P coins ---")
    machine.select_product("Coke")
    machine.insert_coin(50)
    machine.insert_coin(50)

    print("\n--- Coke again ---")
    machine.select_product("Coke")
    machine.insert_coin(50)
    machine.insert_coin(50)

    print("\n--- Tango with a 50P coin ---")
    machine.select_product("Tango")
    machine.insert_coin(50)

    print("\n--- Tango, continued with 20P coins ---")
    for _ in range(6):
        machine.insert_coin(20)

    machine.display_inventory()


if __name__ == "__main__":
    main()
