from django.core.validators import RegexValidator
from django.db import models

tax_id_validator = RegexValidator(
    r"^\d{8}$", "Tax ID must be exactly 8 digits.")


# ---------- Tenant / Company ----------
class Company(models.Model):

    """Tenant / Organization"""
    # Store company’s full display name
    name = models.CharField(max_length=200)

    slug = models.SlugField(  # A URL-friendly identifier
        max_length=80, unique=True  # no two companies can have the same slug
    )

    # Business registration number used on every tax filing
    tax_id = models.CharField(
        max_length=8, blank=True, validators=[tax_id_validator])
    # Branch code appended to tax_id on media files (head office = "0")
    branch_code = models.CharField(max_length=1, default="0")

    # Functional currency; amounts are stored as integer units of it
    currency_code = models.CharField(max_length=10, default="TWD")

    # Store timestamp when the record is first created
    created_at = models.DateTimeField(auto_now_add=True)

    # Meta options
    class Meta:
        verbose_name_plural = "companies"

    # String Representation
    def __str__(self):
        return self.name

    @property
    def tax_registration_number(self):
        """tax_id + branch code, the 9-digit identifier of the filing tool."""
        return f"{self.tax_id}{self.branch_code}"
