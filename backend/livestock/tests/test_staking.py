"""
Unit Tests for the LiveStake Ledger

Tests for staking functionality including:
- Stake and unstake custody transfers
- Report access and staker lookups
- Per-staker staked token sets
- Receiver acknowledgment
- Error handling and atomicity
"""

from unittest.mock import patch

from django.test import SimpleTestCase

from ..addresses import ZERO_ADDRESS, derive_contract_address
from ..exceptions import AlreadyStaked, InvalidReceiver, NotFound, NotStaked, Unauthorized
from ..registry import LivestockRegistry, RECEIVER_ACK
from ..staking import LiveStakeLedger

DEPLOYER = '0x' + 'a0' * 20
FARMER = '0x' + 'b1' * 20
ALICE = '0x' + 'c2' * 20
BOB = '0x' + 'd3' * 20


class RejectingReceiver:
    def on_token_received(self, operator, from_address, token_id, data):
        return b''


class StakingTestMixin:
    """Registry with one farmer, a LiveStake ledger and helpers."""

    def setUp(self):
        self.registry = LivestockRegistry(DEPLOYER)
        self.ledger = LiveStakeLedger(self.registry)
        self.registry.add_farmer(DEPLOYER, FARMER)

    def mint(self, to, farm_id='FARM-001', species='cow'):
        return self.registry.mint_livestock(FARMER, to, species, 1700000000, 50000, 'healthy', farm_id)

    def approve_and_stake(self, holder, token_id):
        self.registry.approve(holder, self.ledger.address, token_id)
        return self.ledger.stake(holder, token_id)


class TestLedgerDeployment(StakingTestMixin, SimpleTestCase):
    """Test cases for ledger construction."""

    def test_ledger_address_is_derived(self):
        """Test the ledger address is derived from the registry deployer."""
        self.assertEqual(self.ledger.address, derive_contract_address(DEPLOYER, 1))
        self.assertNotEqual(self.ledger.address, self.registry.address)

    def test_ledger_shares_registry_lock(self):
        """Test stake operations are sequenced with registry writes."""
        self.assertIs(self.ledger.lock, self.registry.lock)

    def test_empty_ledger(self):
        """Test a fresh ledger has no stakes."""
        self.assertEqual(self.ledger.total_staked(), 0)
        self.assertFalse(self.ledger.has_report_access(0))
        self.assertEqual(self.ledger.get_staker(0), ZERO_ADDRESS)
        self.assertEqual(self.ledger.get_staked_tokens(ALICE), [])
        self.assertIsNone(self.ledger.get_stake_record(0))


class TestStake(StakingTestMixin, SimpleTestCase):
    """Test cases for staking."""

    def setUp(self):
        super().setUp()
        self.token_id = self.mint(ALICE)

    def test_stake_takes_custody(self):
        """Test staking moves the token to the ledger and records the staker."""
        with patch('livestock.staking.time.time', return_value=1700001234):
            record = self.approve_and_stake(ALICE, self.token_id)

        self.assertEqual(record.token_id, self.token_id)
        self.assertEqual(record.staker, ALICE)
        self.assertEqual(record.staked_at, 1700001234)

        self.assertEqual(self.registry.owner_of(self.token_id), self.ledger.address)
        self.assertTrue(self.ledger.has_report_access(self.token_id))
        self.assertEqual(self.ledger.get_staker(self.token_id), ALICE)
        self.assertEqual(self.ledger.get_staked_tokens(ALICE), [self.token_id])
        self.assertEqual(self.ledger.total_staked(), 1)

    def test_stake_with_operator_approval(self):
        """Test making the ledger an operator is enough to stake."""
        self.registry.set_approval_for_all(ALICE, self.ledger.address, True)
        self.ledger.stake(ALICE, self.token_id)
        self.assertEqual(self.registry.owner_of(self.token_id), self.ledger.address)

    def test_stake_clears_approval(self):
        """Test the per-token approval is consumed by the custody transfer."""
        self.approve_and_stake(ALICE, self.token_id)
        self.assertEqual(self.registry.get_approved(self.token_id), ZERO_ADDRESS)

    def test_stake_without_approval(self):
        """Test staking fails until the ledger is authorized."""
        with self.assertRaises(Unauthorized):
            self.ledger.stake(ALICE, self.token_id)

        self.assertEqual(self.registry.owner_of(self.token_id), ALICE)
        self.assertFalse(self.ledger.has_report_access(self.token_id))
        self.assertEqual(self.ledger.get_staked_tokens(ALICE), [])

    def test_stake_by_non_holder(self):
        """Test only the current holder can stake."""
        self.registry.approve(ALICE, self.ledger.address, self.token_id)
        with self.assertRaises(Unauthorized):
            self.ledger.stake(BOB, self.token_id)
        self.assertEqual(self.registry.owner_of(self.token_id), ALICE)

    def test_stake_by_operator_is_not_holder(self):
        """Test an operator of the holder cannot stake on its behalf."""
        self.registry.set_approval_for_all(ALICE, BOB, True)
        self.registry.approve(ALICE, self.ledger.address, self.token_id)
        with self.assertRaises(Unauthorized):
            self.ledger.stake(BOB, self.token_id)

    def test_stake_unminted_token(self):
        """Test staking a token that does not exist."""
        with self.assertRaises(NotFound):
            self.ledger.stake(ALICE, 99)

    def test_stake_twice(self):
        """Test re-staking a staked token fails and keeps the record."""
        self.approve_and_stake(ALICE, self.token_id)
        with self.assertRaises(AlreadyStaked):
            self.ledger.stake(ALICE, self.token_id)

        self.assertEqual(self.ledger.get_staker(self.token_id), ALICE)
        self.assertEqual(self.ledger.get_staked_tokens(ALICE), [self.token_id])

    def test_stake_record_is_a_copy(self):
        """Test mutating a returned record does not change the ledger."""
        self.approve_and_stake(ALICE, self.token_id)
        record = self.ledger.get_stake_record(self.token_id)
        record.staker = BOB
        self.assertEqual(self.ledger.get_staker(self.token_id), ALICE)

    def test_staked_tokens_list_is_a_copy(self):
        """Test callers cannot mutate the staked set."""
        self.approve_and_stake(ALICE, self.token_id)
        self.ledger.get_staked_tokens(ALICE).append(42)
        self.assertEqual(self.ledger.get_staked_tokens(ALICE), [self.token_id])

    def test_metadata_update_while_staked(self):
        """Test farmers keep maintaining metadata of staked animals."""
        self.approve_and_stake(ALICE, self.token_id)
        self.registry.update_livestock_metadata(FARMER, self.token_id, 60000, 'vaccinated')

        self.assertEqual(self.registry.get_livestock_metadata(self.token_id).weight, 60000)
        self.assertTrue(self.ledger.has_report_access(self.token_id))

    def test_staked_token_listed_under_ledger(self):
        """Test owner queries show the ledger as holder while staked."""
        self.approve_and_stake(ALICE, self.token_id)
        self.assertEqual(self.registry.get_livestocks_by_owner(ALICE), [])
        self.assertEqual(self.registry.get_livestocks_by_owner(self.ledger.address), [self.token_id])


class TestUnstake(StakingTestMixin, SimpleTestCase):
    """Test cases for unstaking."""

    def setUp(self):
        super().setUp()
        self.token_id = self.mint(ALICE)
        self.approve_and_stake(ALICE, self.token_id)

    def test_unstake_returns_token(self):
        """Test unstaking returns custody and revokes report access."""
        self.ledger.unstake(ALICE, self.token_id)

        self.assertEqual(self.registry.owner_of(self.token_id), ALICE)
        self.assertFalse(self.ledger.has_report_access(self.token_id))
        self.assertEqual(self.ledger.get_staker(self.token_id), ZERO_ADDRESS)
        self.assertEqual(self.ledger.get_staked_tokens(ALICE), [])
        self.assertIsNone(self.ledger.get_stake_record(self.token_id))
        self.assertEqual(self.ledger.total_staked(), 0)

    def test_unstake_by_other_account(self):
        """Test only the staker can unstake."""
        with self.assertRaises(Unauthorized):
            self.ledger.unstake(BOB, self.token_id)

        self.assertEqual(self.registry.owner_of(self.token_id), self.ledger.address)
        self.assertEqual(self.ledger.get_staker(self.token_id), ALICE)

    def test_unstake_twice(self):
        """Test unstaking a token without a stake record."""
        self.ledger.unstake(ALICE, self.token_id)
        with self.assertRaises(NotStaked):
            self.ledger.unstake(ALICE, self.token_id)

    def test_unstake_never_staked(self):
        """Test unstaking an unminted token reports it as not staked."""
        with self.assertRaises(NotStaked):
            self.ledger.unstake(ALICE, 99)

    def test_restake_after_unstake(self):
        """Test a returned token can be approved and staked again."""
        self.ledger.unstake(ALICE, self.token_id)
        self.approve_and_stake(ALICE, self.token_id)

        self.assertEqual(self.ledger.get_staker(self.token_id), ALICE)
        self.assertEqual(self.ledger.get_staked_tokens(ALICE), [self.token_id])

    def test_unstake_removes_only_that_token(self):
        """Test swap-and-pop removal keeps the other staked tokens."""
        second = self.mint(ALICE)
        third = self.mint(ALICE)
        self.approve_and_stake(ALICE, second)
        self.approve_and_stake(ALICE, third)

        self.ledger.unstake(ALICE, self.token_id)

        self.assertEqual(self.ledger.get_staked_tokens(ALICE), [third, second])
        self.assertEqual(self.ledger.total_staked(), 2)

    def test_cross_staker_isolation(self):
        """Test stakers never see or touch each other's tokens."""
        bobs_token = self.mint(BOB)
        self.approve_and_stake(BOB, bobs_token)

        self.assertEqual(self.ledger.get_staked_tokens(ALICE), [self.token_id])
        self.assertEqual(self.ledger.get_staked_tokens(BOB), [bobs_token])

        with self.assertRaises(Unauthorized):
            self.ledger.unstake(ALICE, bobs_token)

        self.ledger.unstake(BOB, bobs_token)
        self.assertEqual(self.ledger.get_staked_tokens(ALICE), [self.token_id])
        self.assertEqual(self.registry.owner_of(bobs_token), BOB)


class TestReceiverAcknowledgment(StakingTestMixin, SimpleTestCase):
    """Test cases for the ledger's receiving side."""

    def setUp(self):
        super().setUp()
        self.token_id = self.mint(ALICE)

    def test_acknowledges_any_call(self):
        """Test the acknowledgment is stateless and always succeeds."""
        for operator in (self.ledger.address, ALICE, BOB):
            ack = self.ledger.on_token_received(operator, ALICE, self.token_id, b'')
            self.assertEqual(ack, RECEIVER_ACK)
        self.assertEqual(self.ledger.total_staked(), 0)

    def test_pushed_token_grants_no_access(self):
        """Test a token sent to the ledger directly is not staked."""
        self.registry.safe_transfer_from(ALICE, ALICE, self.ledger.address, self.token_id)

        self.assertEqual(self.registry.owner_of(self.token_id), self.ledger.address)
        self.assertFalse(self.ledger.has_report_access(self.token_id))
        self.assertEqual(self.ledger.get_staker(self.token_id), ZERO_ADDRESS)
        self.assertEqual(self.ledger.get_staked_tokens(ALICE), [])
        with self.assertRaises(NotStaked):
            self.ledger.unstake(ALICE, self.token_id)

    def test_pushed_token_cannot_be_staked(self):
        """Test only the current holder can stake, even for pushed tokens."""
        self.registry.safe_transfer_from(ALICE, ALICE, self.ledger.address, self.token_id)
        with self.assertRaises(Unauthorized):
            self.ledger.stake(ALICE, self.token_id)

    def test_mint_into_ledger(self):
        """Test minting straight to the ledger is acknowledged but not staked."""
        token_id = self.mint(self.ledger.address)
        self.assertEqual(self.registry.owner_of(token_id), self.ledger.address)
        self.assertFalse(self.ledger.has_report_access(token_id))

    def test_rejecting_receiver_blocks_unstake(self):
        """Test an unstake to a refusing receiver leaves the stake intact."""
        self.approve_and_stake(ALICE, self.token_id)
        self.registry.register_receiver(ALICE, RejectingReceiver())

        with self.assertRaises(InvalidReceiver):
            self.ledger.unstake(ALICE, self.token_id)

        self.assertEqual(self.registry.owner_of(self.token_id), self.ledger.address)
        self.assertEqual(self.ledger.get_staker(self.token_id), ALICE)
        self.assertEqual(self.ledger.get_staked_tokens(ALICE), [self.token_id])


class TestCustodyProtection(StakingTestMixin, SimpleTestCase):
    """Test cases for tokens held in the ledger's custody."""

    def setUp(self):
        super().setUp()
        self.token_id = self.mint(ALICE)
        self.approve_and_stake(ALICE, self.token_id)

    def test_ledger_address_cannot_transfer_out(self):
        """Test nobody can move a staked token by calling as the ledger."""
        for transfer in (self.registry.transfer_from, self.registry.safe_transfer_from):
            with self.assertRaises(Unauthorized):
                transfer(self.ledger.address, self.ledger.address, BOB, self.token_id)

        self.assertEqual(self.registry.owner_of(self.token_id), self.ledger.address)
        self.assertTrue(self.ledger.has_report_access(self.token_id))

        self.ledger.unstake(ALICE, self.token_id)
        self.assertEqual(self.registry.owner_of(self.token_id), ALICE)

    def test_ledger_address_cannot_delegate(self):
        """Test nobody can approve an operator on the ledger's behalf."""
        with self.assertRaises(Unauthorized):
            self.registry.approve(self.ledger.address, BOB, self.token_id)
        with self.assertRaises(Unauthorized):
            self.registry.set_approval_for_all(self.ledger.address, BOB, True)
        self.assertFalse(self.registry.is_approved_for_all(self.ledger.address, BOB))

    def test_ledger_cannot_stake_for_itself(self):
        """Test a pushed token cannot be staked with the ledger as staker."""
        pushed = self.mint(BOB)
        self.registry.safe_transfer_from(BOB, BOB, self.ledger.address, pushed)

        with self.assertRaises(Unauthorized):
            self.ledger.stake(self.ledger.address, pushed)
        self.assertFalse(self.ledger.has_report_access(pushed))

    def test_staked_tokens_for_malformed_address(self):
        """Test staked-set lookups are total over arbitrary input."""
        self.assertEqual(self.ledger.get_staked_tokens('nobody'), [])
        self.assertEqual(self.ledger.get_staked_tokens(None), [])


class TestLedgerSnapshot(StakingTestMixin, SimpleTestCase):
    """Test cases for ledger serialization."""

    def test_round_trip_preserves_stakes(self):
        """Test a restored ledger keeps custody, records and staked sets."""
        first = self.mint(ALICE)
        second = self.mint(BOB)
        self.approve_and_stake(ALICE, first)
        self.approve_and_stake(BOB, second)

        registry = LivestockRegistry.from_dict(self.registry.to_dict())
        ledger = LiveStakeLedger.from_dict(self.ledger.to_dict(), registry)

        self.assertEqual(ledger.address, self.ledger.address)
        self.assertEqual(ledger.get_staker(first), ALICE)
        self.assertEqual(ledger.get_staked_tokens(BOB), [second])
        self.assertEqual(registry.owner_of(first), ledger.address)

        ledger.unstake(ALICE, first)
        self.assertEqual(registry.owner_of(first), ALICE)
