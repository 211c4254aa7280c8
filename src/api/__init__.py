"""
HTTP surface of the reconciliation engine
"""
