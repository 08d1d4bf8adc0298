"""
Command-line client for a Chord ring.
"""
