from django.core.management.base import BaseCommand

from modules.shipments.tasks import auto_batch_orders


class Command(BaseCommand):
    help = "Group unbatched orders into one shipment per departure day."

    def handle(self, *args, **options):
        summary = auto_batch_orders()
        batches = summary["batches"]
        if not batches:
            self.stdout.write(self.style.WARNING("No unbatched orders with a departure date."))
            return
        for batch in batches:
            self.stdout.write(f"{batch['batch_number']}: {batch['orders']} order(s)")
        self.stdout.write(
            self.style.SUCCESS(f"Auto-batch completed: batches={len(batches)}")
        )
