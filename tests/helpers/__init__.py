"""Test doubles for the store and provider protocols."""
