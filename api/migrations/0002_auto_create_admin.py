# Creates the first LGU reviewer account when migrations run on a fresh database

from django.db import migrations
from django.contrib.auth.hashers import make_password
import os


def create_reviewer_account(apps, schema_editor):
    User = apps.get_model('api', 'User')

    # Get credentials from environment variables or use defaults
    username = os.environ.get('ADMIN_USERNAME', 'lguadmin')
    email = os.environ.get('ADMIN_EMAIL', 'admin@bantayani.ph')
    password = os.environ.get('ADMIN_PASSWORD', 'bantayani-admin')

    # Only create if no reviewer exists
    if not User.objects.filter(role='lgu_admin').exists():
        User.objects.create(
            username=username,
            email=email,
            password=make_password(password),
            first_name='LGU',
            last_name='Administrator',
            role='lgu_admin',
            is_staff=True,
            is_superuser=True,
            is_active=True
        )


def remove_reviewer_account(apps, schema_editor):
    User = apps.get_model('api', 'User')
    User.objects.filter(
        username=os.environ.get('ADMIN_USERNAME', 'lguadmin'), role='lgu_admin'
    ).delete()


class Migration(migrations.Migration):

    dependencies = [
        ('api', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(create_reviewer_account, remove_reviewer_account),
    ]
