from django.db import models
from django.utils import timezone


class Customer(models.Model):
    """
    A buyer identified by email.

    ``total_orders`` and ``total_spent_cents`` are running counters maintained
    by order intake; ``reconcile_customers`` rebuilds them from order history.
    """

    name = models.CharField(max_length=255)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=50, blank=True, default="")
    address = models.CharField(max_length=255, blank=True, default="")
    city = models.CharField(max_length=120, blank=True, default="")
    state = models.CharField(max_length=120, blank=True, default="", db_index=True)
    country = models.CharField(max_length=120, blank=True, default="Nigeria")
    total_orders = models.PositiveIntegerField(default=0)
    total_spent_cents = models.PositiveBigIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "id"]

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"


class Product(models.Model):
    """Catalog entry; category-specific attributes live in ``specs``."""

    class Category(models.TextChoices):
        GENERATOR = "generator", "Generator"
        MINERAL = "mineral", "Mineral"

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    price_cents = models.PositiveBigIntegerField(help_text="Minor currency units (kobo).")
    category = models.CharField(max_length=20, choices=Category.choices, db_index=True)
    specs = models.JSONField(default=list, blank=True, help_text='List of "Label: value" strings.')
    images = models.JSONField(default=list, blank=True)
    stock_quantity = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "id"]

    def __str__(self) -> str:
        return f"{self.name} ({self.category})"


class Order(models.Model):
    """One line item of a checkout submission."""

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PENDING_PAYMENT = "pending_payment", "Pending payment"
        CONFIRMED = "confirmed", "Confirmed"
        PROCESSING = "processing", "Processing"
        SHIPPED = "shipped", "Shipped"
        DELIVERED = "delivered", "Delivered"
        CANCELLED = "cancelled", "Cancelled"

    customer = models.ForeignKey(
        Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name="orders"
    )
    # Snapshot of the buyer at checkout time.
    customer_name = models.CharField(max_length=255)
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=50, blank=True, default="")
    product = models.ForeignKey(
        Product, on_delete=models.SET_NULL, null=True, blank=True, related_name="orders"
    )
    quantity = models.PositiveIntegerField()
    total_amount_cents = models.PositiveBigIntegerField(
        help_text="Line total including its share of shipping."
    )
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True
    )
    tracking_number = models.CharField(max_length=64, blank=True, default="", db_index=True)
    shipping_address = models.CharField(max_length=500, blank=True, default="")
    payment_reference = models.CharField(max_length=120, blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at", "id"]
        constraints = [
            # Line items of one submission are told apart by tracking number.
            models.UniqueConstraint(
                fields=["tracking_number"],
                condition=~models.Q(tracking_number=""),
                name="shop_order_tracking_number_unique",
            ),
        ]

    def __str__(self) -> str:
        return f"Order #{self.pk or 'new'} ({self.tracking_number or 'untracked'})"


class Return(models.Model):
    """A return/refund request raised against an order."""

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"
        REFUNDED = "refunded", "Refunded"

    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name="returns")
    reason = models.TextField()
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True
    )
    refund_amount_cents = models.PositiveBigIntegerField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "id"]

    def __str__(self) -> str:
        return f"Return #{self.pk or 'new'} for order #{self.order_id}"
