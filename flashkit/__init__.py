"""Flashkit: seeded account provisioning and instruction dispatch for the flashloan program."""

__version__ = "0.1.0"
