"""
PrintKeeper: card price resolution and printing selection.
"""
