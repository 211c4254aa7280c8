"""
Calendar providers
"""
