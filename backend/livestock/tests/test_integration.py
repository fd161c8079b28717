"""
Integration Tests for the Livestock Lifecycle

End-to-end scenarios across the registry and the LiveStake ledger:
mint, stake, update while staked, unstake, and multi-investor isolation.
"""

from django.test import SimpleTestCase

from ..addresses import ZERO_ADDRESS
from ..exceptions import Unauthorized
from ..services import LivestockService

DEPLOYER = '0x' + 'a0' * 20
FARMER = '0x' + 'b1' * 20
INVESTOR_A = '0x' + 'c2' * 20
INVESTOR_B = '0x' + 'd3' * 20
STRANGERS = ['0x' + format(i, '02x') * 20 for i in range(0x10, 0x15)]


class TestLivestockLifecycle(SimpleTestCase):
    """Test a token through its full mint, stake, update, unstake cycle."""

    def setUp(self):
        self.service = LivestockService(deployer=DEPLOYER, state_file='')
        self.registry = self.service.registry
        self.ledger = self.service.stake_ledger
        self.registry.add_farmer(DEPLOYER, FARMER)

    def test_full_lifecycle(self):
        """Test the complete investor flow on a single token."""
        token_id = self.registry.mint_livestock(
            FARMER, INVESTOR_A, 'cow', 1700000000, 50000, 'healthy', 'FARM-001'
        )
        self.assertEqual(token_id, 0)

        record = self.registry.get_livestock_metadata(0)
        self.assertEqual(record.species, 'cow')
        self.assertEqual(record.weight, 50000)
        self.assertEqual(record.farm_id, 'FARM-001')
        self.assertFalse(self.ledger.has_report_access(0))

        # Stake
        self.registry.approve(INVESTOR_A, self.ledger.address, 0)
        self.ledger.stake(INVESTOR_A, 0)
        self.assertEqual(self.registry.owner_of(0), self.ledger.address)
        self.assertEqual(self.ledger.get_staker(0), INVESTOR_A)
        self.assertTrue(self.ledger.has_report_access(0))
        self.assertEqual(self.ledger.get_staked_tokens(INVESTOR_A), [0])

        # Update while staked
        self.registry.update_livestock_metadata(FARMER, 0, 52000, 'healthy')
        self.assertEqual(self.registry.get_livestock_metadata(0).weight, 52000)
        self.assertEqual(self.registry.owner_of(0), self.ledger.address)

        # Unstake
        self.ledger.unstake(INVESTOR_A, 0)
        self.assertEqual(self.registry.owner_of(0), INVESTOR_A)
        self.assertFalse(self.ledger.has_report_access(0))
        self.assertEqual(self.ledger.get_staker(0), ZERO_ADDRESS)
        self.assertEqual(self.ledger.get_staked_tokens(INVESTOR_A), [])

    def test_stake_unstake_round_trip_restores_state(self):
        """Test stake then unstake leaves holder and staked set as before."""
        kept = self.registry.mint_livestock(FARMER, INVESTOR_A, 'cow', 1, 1, 'healthy', 'FARM-001')
        cycled = self.registry.mint_livestock(FARMER, INVESTOR_A, 'goat', 1, 1, 'healthy', 'FARM-001')
        self.registry.set_approval_for_all(INVESTOR_A, self.ledger.address, True)
        self.ledger.stake(INVESTOR_A, kept)
        before = self.ledger.get_staked_tokens(INVESTOR_A)

        self.ledger.stake(INVESTOR_A, cycled)
        self.ledger.unstake(INVESTOR_A, cycled)

        self.assertEqual(self.registry.owner_of(cycled), INVESTOR_A)
        self.assertFalse(self.ledger.has_report_access(cycled))
        self.assertEqual(self.ledger.get_staked_tokens(INVESTOR_A), before)

    def test_observations_are_stable(self):
        """Test repeated reads without mutation return identical results."""
        token_id = self.registry.mint_livestock(FARMER, INVESTOR_A, 'cow', 1, 1, 'healthy', 'FARM-001')
        self.registry.approve(INVESTOR_A, self.ledger.address, token_id)
        self.ledger.stake(INVESTOR_A, token_id)

        access = [self.ledger.has_report_access(token_id) for _ in range(5)]
        staked = [self.ledger.get_staked_tokens(INVESTOR_A) for _ in range(5)]

        self.assertEqual(access, [True] * 5)
        self.assertEqual(staked, [[token_id]] * 5)

    def test_strangers_cannot_manage_or_mint(self):
        """Test accounts without capabilities are rejected everywhere."""
        for stranger in STRANGERS + [INVESTOR_A]:
            with self.assertRaises(Unauthorized):
                self.registry.add_farmer(stranger, stranger)
            with self.assertRaises(Unauthorized):
                self.registry.mint_livestock(stranger, INVESTOR_A, 'cow', 1, 1, 'healthy', 'FARM-001')

        self.assertEqual(self.registry.total_supply(), 0)
        self.assertEqual(self.registry.role_members('farmer'), [FARMER])


class TestMultipleInvestors(SimpleTestCase):
    """Test independent investors staking disjoint token sets."""

    def setUp(self):
        self.service = LivestockService(deployer=DEPLOYER, state_file='')
        self.registry = self.service.registry
        self.ledger = self.service.stake_ledger
        self.registry.add_farmer(DEPLOYER, FARMER)

        self.tokens_a = [
            self.registry.mint_livestock(FARMER, INVESTOR_A, 'cow', 1, 40000 + i, 'healthy', 'FARM-001')
            for i in range(3)
        ]
        self.tokens_b = [
            self.registry.mint_livestock(FARMER, INVESTOR_B, 'sheep', 1, 7000 + i, 'healthy', 'FARM-002')
            for i in range(2)
        ]
        self.registry.set_approval_for_all(INVESTOR_A, self.ledger.address, True)
        self.registry.set_approval_for_all(INVESTOR_B, self.ledger.address, True)

    def test_interleaved_staking_is_isolated(self):
        """Test interleaved stakes never leak between investors."""
        self.ledger.stake(INVESTOR_A, self.tokens_a[0])
        self.ledger.stake(INVESTOR_B, self.tokens_b[0])
        self.ledger.stake(INVESTOR_A, self.tokens_a[1])
        self.ledger.stake(INVESTOR_B, self.tokens_b[1])
        self.ledger.stake(INVESTOR_A, self.tokens_a[2])

        self.assertEqual(self.ledger.get_staked_tokens(INVESTOR_A), self.tokens_a)
        self.assertEqual(self.ledger.get_staked_tokens(INVESTOR_B), self.tokens_b)

        self.ledger.unstake(INVESTOR_B, self.tokens_b[0])
        self.assertEqual(self.ledger.get_staked_tokens(INVESTOR_A), self.tokens_a)
        self.assertEqual(self.ledger.get_staked_tokens(INVESTOR_B), [self.tokens_b[1]])

    def test_custody_matches_stake_records(self):
        """Test the ledger holds a token exactly when it has a stake record."""
        self.ledger.stake(INVESTOR_A, self.tokens_a[0])
        self.ledger.stake(INVESTOR_B, self.tokens_b[1])
        self.ledger.unstake(INVESTOR_A, self.tokens_a[0])

        for token_id in self.registry.get_all_livestocks():
            held = self.registry.owner_of(token_id) == self.ledger.address
            self.assertEqual(held, self.ledger.has_report_access(token_id))

        self.assertEqual(self.service.get_status()['total_staked'], 1)

    def test_farm_and_species_views(self):
        """Test index queries across both investors' animals."""
        self.assertEqual(self.registry.get_livestocks_by_farm('FARM-001'), self.tokens_a)
        self.assertEqual(self.registry.get_livestocks_by_species('sheep'), self.tokens_b)
        self.assertEqual(self.registry.get_all_livestocks(), self.tokens_a + self.tokens_b)
