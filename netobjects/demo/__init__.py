"""
Demo social network for netobjects.
"""
