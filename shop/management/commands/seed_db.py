import random
from datetime import timedelta
from typing import List, Tuple

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone
from faker import Faker

from shop.models import Customer, Order, Product, Return
from shop.services.ledger import recompute_customer_totals
from shop.services.order_intake import CheckoutRequest, ContactInfo, LineItem, place_order


class Command(BaseCommand):
    help = "Populate the database with synthetic but ledger-consistent catalog and order data."

    DEFAULT_COUNTS = {"customers": 40, "products": 12, "orders": 120}
    NIGERIAN_STATES = [
        "Lagos",
        "FCT",
        "Kano",
        "Rivers",
        "Kaduna",
        "Ekiti",
        "Ogun",
        "Oyo",
        "Enugu",
        "Delta",
    ]
    GENERATOR_RATINGS = [5, 10, 15, 25, 50]
    MINERALS = [
        ("Gold Ore", "High Grade", "per kg", 5_000_000),
        ("Limestone", "Premium", "per tonne", 1_500_000),
        ("Iron Ore", "Concentrate", "per tonne", 2_500_000),
        ("Kaolin", "Industrial Grade", "per tonne", 800_000),
        ("Lithium Ore", "Spodumene", "per tonne", 9_000_000),
        ("Barite", "Drilling Grade", "per tonne", 1_200_000),
    ]
    DISPLAY_TYPES = ["both", "both", "showcase", "for-sale"]
    STATUS_WEIGHTS = [
        (Order.Status.PENDING.value, 2),
        (Order.Status.CONFIRMED.value, 3),
        (Order.Status.PROCESSING.value, 2),
        (Order.Status.SHIPPED.value, 2),
        (Order.Status.DELIVERED.value, 4),
        (Order.Status.CANCELLED.value, 1),
    ]

    def add_arguments(self, parser):
        parser.add_argument(
            "--customers",
            type=int,
            default=self.DEFAULT_COUNTS["customers"],
            help="Size of the synthetic customer pool (default: %(default)s).",
        )
        parser.add_argument(
            "--products",
            type=int,
            default=self.DEFAULT_COUNTS["products"],
            help="Ensure at least this many products exist (default: %(default)s).",
        )
        parser.add_argument(
            "--orders",
            type=int,
            default=self.DEFAULT_COUNTS["orders"],
            help="Number of checkout submissions to place (default: %(default)s).",
        )
        parser.add_argument(
            "--purge",
            action="store_true",
            help="Delete existing returns/orders/products/customers before seeding.",
        )

    def handle(self, *args, **options):
        faker = Faker()
        customer_target = max(1, options["customers"])
        product_target = max(1, options["products"])
        order_target = max(0, options["orders"])

        with transaction.atomic():
            if options["purge"]:
                self._purge_existing()

            products, new_products = self._ensure_products(faker, product_target)
            new_orders, new_customers = self._place_orders(
                faker, products, customer_target, order_target
            )

        self.stdout.write(
            self.style.SUCCESS(
                "Seeding complete: "
                f"{new_customers} new customers, "
                f"{new_products} new products, "
                f"{new_orders} new orders."
            )
        )

    def _purge_existing(self) -> None:
        self.stdout.write("Purging existing returns, orders, products, and customers...")
        Return.objects.all().delete()
        Order.objects.all().delete()
        Product.objects.all().delete()
        Customer.objects.all().delete()

    def _generator_product(self, faker: Faker) -> Product:
        rating = random.choice(self.GENERATOR_RATINGS)
        usage = "Residential homes" if rating <= 10 else "Commercial buildings, factories"
        return Product(
            name=f"{rating}kW Magnetic Generator {faker.unique.bothify('MG-###')}",
            description=faker.sentence(nb_words=14),
            price_cents=rating * 50_000_000,
            category=Product.Category.GENERATOR.value,
            specs=[
                f"Power: {rating}kW",
                "Fuel: Magnetic Technology",
                f"Features: {faker.word().title()} Operation, Low Maintenance",
                f"Warranty: {random.randint(1, 5)} Years",
                f"Usage: {usage}",
            ],
            stock_quantity=random.randint(0, 10),
        )

    def _mineral_product(self, faker: Faker) -> Product:
        mineral, grade, unit, price = random.choice(self.MINERALS)
        return Product(
            name=f"{grade} {mineral} {faker.unique.bothify('Lot ###')}",
            description=faker.sentence(nb_words=14),
            price_cents=price,
            category=Product.Category.MINERAL.value,
            specs=[
                f"Type: {mineral}",
                f"Grade: {grade}",
                f"Purity: {random.randint(85, 99)}%",
                f"Origin: {faker.city()} Mining Site",
                f"Unit: {unit}",
                f"DisplayType: {random.choice(self.DISPLAY_TYPES)}",
                "Availability: In Stock",
            ],
            stock_quantity=random.randint(0, 50),
        )

    def _ensure_products(self, faker: Faker, target: int) -> Tuple[List[Product], int]:
        current = Product.objects.filter(is_active=True).count()
        to_create = max(0, target - current)

        if to_create:
            products = [
                self._generator_product(faker) if index % 3 == 0 else self._mineral_product(faker)
                for index in range(to_create)
            ]
            Product.objects.bulk_create(products, batch_size=500)
            faker.unique.clear()

        return list(Product.objects.filter(is_active=True)), to_create

    def _contact_pool(self, faker: Faker, size: int) -> List[ContactInfo]:
        existing = set(Customer.objects.values_list("email", flat=True))
        contacts = []
        for _ in range(size):
            email = faker.unique.email()
            while email in existing:
                email = faker.unique.email()
            existing.add(email)
            contacts.append(
                ContactInfo(
                    name=faker.name(),
                    email=email,
                    phone=faker.phone_number(),
                    address=faker.street_address(),
                    city=faker.city(),
                    state=random.choice(self.NIGERIAN_STATES),
                    country="Nigeria",
                )
            )
        faker.unique.clear()
        return contacts

    def _place_orders(
        self, faker: Faker, products: List[Product], customer_pool: int, target: int
    ) -> Tuple[int, int]:
        if not products:
            raise CommandError("Products must exist before creating orders.")
        if not target:
            return 0, 0

        contacts = self._contact_pool(faker, customer_pool)
        statuses = [status for status, _ in self.STATUS_WEIGHTS]
        weights = [weight for _, weight in self.STATUS_WEIGHTS]
        customers_before = Customer.objects.count()
        placed_rows = 0

        for _ in range(target):
            chosen = random.sample(products, k=min(len(products), random.randint(1, 3)))
            request = CheckoutRequest(
                contact=random.choice(contacts),
                items=tuple(
                    LineItem(
                        product_id=product.pk,
                        price_cents=product.price_cents,
                        quantity=random.randint(1, 5),
                    )
                    for product in chosen
                ),
                shipping_cents=random.choice([0, 500_000, 1_000_000]),
                payment_method="bank_transfer",
            )
            placed = place_order(request)
            placed_rows += len(placed.order_ids)

            # Spread orders over the last 90 days and along the lifecycle.
            created_at = timezone.now() - timedelta(
                days=random.randint(0, 90), minutes=random.randint(0, 1440)
            )
            Order.objects.filter(pk__in=placed.order_ids).update(
                status=random.choices(statuses, weights=weights)[0],
                created_at=created_at,
                updated_at=created_at,
            )

        # The random statuses include cancellations, which the counters exclude.
        recompute_customer_totals()
        return placed_rows, Customer.objects.count() - customers_before
