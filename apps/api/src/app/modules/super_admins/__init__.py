"""
Super admins module - platform operators.
"""
