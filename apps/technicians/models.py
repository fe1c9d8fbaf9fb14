"""
Technician model: the person who owns a column of slots.
Every slot belongs to exactly one technician.
"""
from django.db import models
from apps.core.models import BaseModel


def normalize_name(name: str) -> str:
    """Strip surrounding whitespace and a leading 'Ms.' honorific (added back on display)."""
    trimmed = (name or '').strip()
    if trimmed.lower().startswith('ms.'):
        return trimmed[3:].strip()
    return trimmed


class TechnicianRole(models.TextChoices):
    OWNER = 'owner', 'Owner'
    STAFF = 'staff', 'Staff'


class ServiceAvailability(models.TextChoices):
    STUDIO = 'studio', 'Studio only'
    HOME_SERVICE = 'home_service', 'Home service only'
    BOTH = 'both', 'Studio and Home Service'


class Technician(BaseModel):
    name = models.CharField(max_length=120)
    role = models.CharField(
        max_length=10, choices=TechnicianRole.choices, default=TechnicianRole.STAFF,
    )
    service_availability = models.CharField(
        max_length=20, choices=ServiceAvailability.choices, default=ServiceAvailability.BOTH,
    )
    phone = models.CharField(max_length=20, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        verbose_name = 'Technician'
        verbose_name_plural = 'Technicians'
        ordering = ['name']

    def __str__(self):
        return f"Ms. {self.name}"

    def save(self, *args, **kwargs):
        self.name = normalize_name(self.name)
        super().save(*args, **kwargs)

    @classmethod
    def get_default(cls):
        """
        The technician used when a caller does not name one (recovery ingestion).
        Active owner first, else the first active technician, else None.
        """
        active = cls.objects.filter(is_active=True)
        return (
            active.filter(role=TechnicianRole.OWNER).order_by('created_at').first()
            or active.order_by('created_at').first()
        )
