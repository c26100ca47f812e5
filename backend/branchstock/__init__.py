"""
BranchStock - branch inventory ledger and fulfillment workflows
"""
__version__ = "0.1.0"
