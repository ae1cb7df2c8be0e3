# create_user.py
# Seeds a reviewer and a farmer account for local testing
import os
import django

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'bantayani.settings')
django.setup()

from django.db import IntegrityError  # noqa: E402

from api.models import User  # noqa: E402

ACCOUNTS = [
    {
        'username': os.environ.get('REVIEWER_USERNAME', 'lgu_reviewer'),
        'email': 'reviewer@bantayani.ph',
        'password': os.environ.get('REVIEWER_PASSWORD', 'reviewer123'),
        'first_name': 'LGU',
        'last_name': 'Reviewer',
        'role': User.LGU_ADMIN,
        'is_staff': True,
    },
    {
        'username': os.environ.get('FARMER_USERNAME', 'farmer1'),
        'email': 'farmer1@bantayani.ph',
        'password': os.environ.get('FARMER_PASSWORD', 'farmer123'),
        'first_name': 'Test',
        'last_name': 'Farmer',
        'role': User.FARMER,
    },
]

for account in ACCOUNTS:
    try:
        user = User.objects.create_user(**account)
        print(f"Created {user.role} user: {user.username}")
    except IntegrityError:
        print(f"User {account['username']} already exists, skipping")
