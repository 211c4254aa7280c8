"""
Reconciliation core: day sets, classification, conflict detection,
notification dedup and the calendar link graph
"""
