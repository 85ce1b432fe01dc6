from django.core.management.base import BaseCommand

from shop.services.ledger import recompute_customer_totals


class Command(BaseCommand):
    help = (
        "Recompute every customer's total_orders and total_spent_cents from "
        "their non-cancelled orders."
    )

    def handle(self, *args, **options):
        changed = recompute_customer_totals()
        self.stdout.write(self.style.SUCCESS(f"Reconciled customers: {changed} updated."))
