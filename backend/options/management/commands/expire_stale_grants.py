from django.core.management.base import BaseCommand

from options.services import expire_stale_grants


class Command(BaseCommand):
    help = "Expire ACTIVE option grants whose expiration date has passed. Meant to run once a day."

    def add_arguments(self, parser):
        parser.add_argument(
            "--batch-size",
            type=int,
            default=None,
            help="Maximum number of grants to process (default: OPTIONS_EXPIRATION_BATCH_SIZE).",
        )

    def handle(self, *args, **options):
        expired = expire_stale_grants(batch_size=options["batch_size"])
        self.stdout.write(self.style.SUCCESS(f"Expired {expired} option grant(s)."))
