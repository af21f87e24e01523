"""
Create the register's role groups with their permissions.
"""

from django.contrib.auth.models import Group, Permission
from django.core.management.base import BaseCommand, CommandError

from risks.permissions import ROLES


class Command(BaseCommand):
    help = 'Create or refresh the Admin, Risk Manager, Risk Owner and Auditor groups'

    def handle(self, *args, **options):
        for role, capabilities in ROLES.items():
            permissions = []
            for capability in capabilities:
                try:
                    permissions.append(Permission.objects.get(
                        content_type__app_label=capability.app_label,
                        codename=capability.codename,
                    ))
                except Permission.DoesNotExist:
                    raise CommandError(f"Permission {capability.value} is missing; run migrate first.")

            group, created = Group.objects.get_or_create(name=role)
            group.permissions.set(permissions)
            verb = 'Created' if created else 'Updated'
            self.stdout.write(self.style.SUCCESS(f"{verb} group '{role}' with {len(permissions)} permissions"))
