"""
Bitcoin-family primitives: keys, scripts, segwit serialization and signing,
plus the transaction builder and broadcaster built on them.
"""
