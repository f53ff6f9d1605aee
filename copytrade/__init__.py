"""
Copy-trading subsystem package.

Provides:
- Configuration & endpoints for Merkle Trade / Aptos (testnet/mainnet)
- Core domain enums & models for perpetual positions and vault ledger records
- Services for market data, ledger recording, transaction submission
- PositionReplicator that mirrors a lead trader's positions into a vault
"""
