"""Shared fixtures for the vending machine tests."""

import pytest

from config import MachineConfig
from vending_machine import VendingMachine, RecordingDisplay


@pytest.fixture
def display():
    """Collects every message the machine shows."""
    return RecordingDisplay()


@pytest.fixture
def config():
    """Default seed: one of each product, standard coin float."""
    return MachineConfig()


@pytest.fixture
def machine(config, display):
    """Fresh machine built from the default seed."""
    return VendingMachine(config, display)


@pytest.fixture
def make_machine(display):
    """Build a machine from keyword overrides of MachineConfig."""
    def _make(**overrides):
        return VendingMachine(MachineConfig(**overrides), display)
    return _make
