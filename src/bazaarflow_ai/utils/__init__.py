"""
Utils Package
=============
Utility functions for BazaarFlow AI.

Modules:
- logger: Centralized logging configuration
- validators: Schema and data validation utilities
- constants: Schemas, thresholds and the default event calendar
- locations: "STATE/City" location helpers
"""
