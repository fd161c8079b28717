"""
Django management command to mint a livestock NFT into the state file.
"""

import os
import time
from django.core.management.base import BaseCommand, CommandError
from livestock.config import get_livestock_config
from livestock.exceptions import LedgerError
from livestock.services import LivestockService


class Command(BaseCommand):
    help = 'Mint a livestock NFT and save the updated state file'

    def add_arguments(self, parser):
        parser.add_argument(
            '--state-file',
            type=str,
            help='Snapshot file to load and update (default: LIVESTOCK_STATE_FILE)',
        )
        parser.add_argument(
            '--farmer',
            type=str,
            required=True,
            help='Farmer address performing the mint',
        )
        parser.add_argument(
            '--to',
            type=str,
            required=True,
            help='Address receiving the NFT',
        )
        parser.add_argument(
            '--species',
            type=str,
            required=True,
            help='Animal species, e.g. cow',
        )
        parser.add_argument(
            '--birth-date',
            type=int,
            help='Birth timestamp in seconds (default: now)',
        )
        parser.add_argument(
            '--weight',
            type=int,
            required=True,
            help='Weight in grams',
        )
        parser.add_argument(
            '--health-status',
            type=str,
            default='healthy',
            help='Health status label (default: healthy)',
        )
        parser.add_argument(
            '--farm-id',
            type=str,
            required=True,
            help='Farm identifier, e.g. FARM-001',
        )
        parser.add_argument(
            '--grant-farmer',
            action='store_true',
            help='Have the deployer grant the farmer role to --farmer first',
        )

    def handle(self, *args, **options):
        state_file = options['state_file'] or get_livestock_config()['state_file']
        if not state_file:
            raise CommandError("--state-file or LIVESTOCK_STATE_FILE is required")

        if os.path.exists(state_file):
            service = LivestockService.load_state_from_file(state_file)
        else:
            service = LivestockService(state_file=state_file)

        birth_date = options['birth_date']
        if birth_date is None:
            birth_date = int(time.time())

        self.stdout.write(
            self.style.SUCCESS(f'Minting {options["species"]} from {options["farm_id"]} to {options["to"]}...')
        )

        try:
            with service.lock:
                if options['grant_farmer']:
                    service.registry.add_farmer(service.registry.deployer, options['farmer'])

                token_id = service.registry.mint_livestock(
                    options['farmer'],
                    options['to'],
                    options['species'],
                    birth_date,
                    options['weight'],
                    options['health_status'],
                    options['farm_id']
                )
                service.save_state_to_file(state_file)
        except LedgerError as e:
            self.stdout.write(self.style.ERROR(f'Minting failed: {e}'))
            raise CommandError(f"Minting failed: {e}")

        record = service.registry.get_livestock_metadata(token_id)
        self.stdout.write(self.style.SUCCESS('\n=== Mint Results ==='))
        self.stdout.write(f"Token ID: {token_id}")
        self.stdout.write(f"Owner: {service.registry.owner_of(token_id)}")
        self.stdout.write(f"Species: {record.species}")
        self.stdout.write(f"Weight: {record.weight}")
        self.stdout.write(f"Health Status: {record.health_status}")
        self.stdout.write(f"Farm ID: {record.farm_id}")
        self.stdout.write(f"Total Supply: {service.registry.total_supply()}")
        self.stdout.write(f"State saved to {state_file}")
