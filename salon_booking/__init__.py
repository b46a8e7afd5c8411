"""Salon reservation scheduling and staff assignment."""
