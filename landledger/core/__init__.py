"""
Core ledger engine: blocks, hash-chain rules, the ledger facade and the
transfer engine.
"""
