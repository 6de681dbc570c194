"""
Models module - the student record: field rules, fee-schedule derivation,
virtual attributes and query filters.
"""
