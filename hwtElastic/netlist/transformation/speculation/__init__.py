"""
Insertion of speculator, save and commit operations and marking of speculative regions.
"""
