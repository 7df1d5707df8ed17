"""
Configuration for the vending machine.

Seed data (products and coins held for change) plus the policy switches.
Environment variables, or a .env file next to the process, override the
defaults through MachineConfig.from_env():

    VENDING_MACHINE_ID           machine identifier shown in logs
    VENDING_INITIAL_STOCK        starting quantity of every product
    VENDING_ROLLBACK_ON_FAILURE  "1" restores coins when change fails, "0" keeps
                                 the legacy behaviour of consuming them
    VENDING_LOG_LEVEL            DEBUG, INFO, WARNING, ...
"""

import os
from dataclasses import dataclass, field
from typing import Dict

from dotenv import load_dotenv

# Load .env early so from_env() sees it
load_dotenv()


# Product name -> price in pence
DEFAULT_PRODUCTS: Dict[str, int] = {
    "Coke": 65,
    "Fanta": 45,
    "Redbull": 85,
    "Sprite": 92,
    "Tango": 163,
}

# Coin value -> number held for change at start-up.
# The 5P count mirrors the 50P count.
DEFAULT_DENOMINATIONS: Dict[int, int] = {
    1: 100,
    2: 100,
    5: 2,
    10: 5,
    20: 5,
    50: 2,
}

DEFAULT_INITIAL_STOCK = 1
DEFAULT_MACHINE_ID = "VM-001"


@dataclass
class MachineConfig:
    """Construction-time settings for one machine"""
    machine_id: str = DEFAULT_MACHINE_ID
    products: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_PRODUCTS))
    initial_stock: int = DEFAULT_INITIAL_STOCK
    # Per-product quantities; products not listed get initial_stock
    stock: Dict[str, int] = field(default_factory=dict)
    denominations: Dict[int, int] = field(default_factory=lambda: dict(DEFAULT_DENOMINATIONS))
    rollback_on_failure: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "MachineConfig":
        return cls(
            machine_id=os.environ.get("VENDING_MACHINE_ID", DEFAULT_MACHINE_ID),
            initial_stock=int(os.environ.get("VENDING_INITIAL_STOCK", str(DEFAULT_INITIAL_STOCK))),
            rollback_on_failure=os.environ.get("VENDING_ROLLBACK_ON_FAILURE", "1") == "1",
            log_level=os.environ.get("VENDING_LOG_LEVEL", "INFO").upper(),
        )

    def get_stock(self, name: str) -> int:
        return self.stock.get(name, self.initial_stock)

    def validate(self) -> None:
        """Raise ValueError for seed data the machine cannot run with"""
        if self.initial_stock < 0:
            raise ValueError("Initial stock cannot be negative")

        for name, price in self.products.items():
            if price < 0:
                raise ValueError(f"Price of {name} cannot be negative")

        for name, quantity in self.stock.items():
            if name not in self.products:
                raise ValueError(f"Stock given for unknown product: {name}")
            if quantity < 0:
                raise ValueError(f"Stock of {name} cannot be negative")

        if not self.denominations:
            raise ValueError("At least one denomination is required")

        for value, count in self.denominations.items():
            if value <= 0:
                raise ValueError(f"Denomination value must be positive, got {value}")
            if count < 0:
                raise ValueError(f"Count of {value}P coins cannot be negative")
