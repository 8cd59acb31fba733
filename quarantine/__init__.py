"""Quarantine status derivation and reminder scheduling.

This package contains the business logic and domain models,
isolated from storage and delivery mechanisms for easy testing and reasoning.
"""
