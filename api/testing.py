"""Helpers shared by the api test modules."""
import base64
import io

from PIL import Image

from .models import User


def make_png_bytes(color=(34, 139, 34), size=(8, 8)):
    buffer = io.BytesIO()
    Image.new('RGB', size, color).save(buffer, format='PNG')
    return buffer.getvalue()


def make_image_base64():
    return 'data:image/png;base64,' + base64.b64encode(make_png_bytes()).decode('ascii')


def make_farmer(username='farmer1', **extra):
    return User.objects.create_user(
        username=username,
        email=f'{username}@example.com',
        password='testpass123',
        role=User.FARMER,
        **extra,
    )


def make_reviewer(username='reviewer1', **extra):
    return User.objects.create_user(
        username=username,
        email=f'{username}@example.com',
        password='testpass123',
        role=User.LGU_ADMIN,
        **extra,
    )
