"""
Test Suite for the Livestock NFT backend

Test Categories:
- Registry Tests: roles, minting, indexes and the ownership substrate
- Staking Tests: custody, staked sets and report access
- Integration Tests: end-to-end investor workflow
- API Tests: REST endpoints and error mapping
- Service Tests: deployment wiring, snapshots and the management command
"""
