"""
Host-side utilities: configuration, error handling, events and input scripts.
"""
