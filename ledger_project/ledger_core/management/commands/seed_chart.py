from django.core.management.base import BaseCommand, CommandError

from ledger_core.models import Company
from ledger_core.services import seed_chart_of_accounts
from ledger_core.store import CompanyScopedStore


class Command(BaseCommand):
    help = "Creates the default chart of accounts and tax codes for a company."

    def add_arguments(self, parser):
        parser.add_argument(
            "--company",  # company slug
            type=str,
            required=True,
            help="Slug of the company to seed",
        )
        parser.add_argument(
            "--name",
            type=str,
            default=None,
            help="Create the company with this name if the slug is unknown",
        )
        parser.add_argument(
            "--tax-id",
            type=str,
            default="",
            help="8-digit tax id for a newly created company",
        )

    def handle(self, *args, **options):
        slug = options["company"]
        company = Company.objects.filter(slug=slug).first()
        if company is None:
            if not options["name"]:
                raise CommandError(
                    f"Company {slug!r} does not exist; pass --name to create it.")
            company = Company.objects.create(
                slug=slug, name=options["name"], tax_id=options["tax_id"])
            self.stdout.write(self.style.NOTICE(f"Created company {company.name}"))

        created = seed_chart_of_accounts(CompanyScopedStore(company))
        self.stdout.write(self.style.SUCCESS(
            f"Chart of accounts ready for {company.name} ({created} new rows)."))
