"""Pricing, loyalty and booking lifecycle rules for event ticketing on Django."""

__version__ = "0.1.0"
