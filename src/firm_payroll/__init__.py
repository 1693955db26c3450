"""Payroll run engine for multi-tenant legal practices."""

__version__ = "0.1.0"
