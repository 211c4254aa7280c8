"""
Configuration for the Calendar Reconciliation Engine
"""
