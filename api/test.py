from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework import status

from .models import PestDetection, DetectionStatus
from .testing import make_farmer, make_reviewer, make_image_base64

User = get_user_model()


class UserAuthenticationTest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.register_url = '/api/auth/register/'
        self.login_url = '/api/auth/login/'

        self.user_data = {
            'username': 'testuser',
            'email': 'test@example.com',
            'password': 'testpass123',
            'password_confirm': 'testpass123',
            'first_name': 'Test',
            'last_name': 'User'
        }

    def test_user_registration(self):
        response = self.client.post(self.register_url, self.user_data)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('user', response.data)
        self.assertIn('tokens', response.data)

    def test_registration_always_creates_farmer(self):
        data = dict(self.user_data, role='lgu_admin')
        response = self.client.post(self.register_url, data)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user']['role'], 'farmer')
        self.assertEqual(User.objects.get(username='testuser').role, User.FARMER)

    def test_registration_password_mismatch(self):
        data = dict(self.user_data, password_confirm='different123')
        response = self.client.post(self.register_url, data)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_user_login(self):
        User.objects.create_user(
            username='testuser',
            email='test@example.com',
            password='testpass123'
        )

        login_data = {
            'username': 'testuser',
            'password': 'testpass123'
        }
        response = self.client.post(self.login_url, login_data)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('tokens', response.data)
        self.assertEqual(response.data['user']['display_name'], 'testuser')

    def test_login_wrong_password(self):
        make_farmer('testuser')
        response = self.client.post(self.login_url, {'username': 'testuser', 'password': 'nope'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_logout_blacklists_refresh_token(self):
        make_farmer('testuser')
        tokens = self.client.post(self.login_url, {'username': 'testuser', 'password': 'testpass123'}).data['tokens']
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")

        response = self.client.post('/api/auth/logout/', {'refresh_token': tokens['refresh']})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post('/api/auth/token/refresh/', {'refresh': tokens['refresh']})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_profile_requires_auth(self):
        response = self.client.get('/api/auth/profile/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class PestDetectionAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.farmer = make_farmer()
        self.other_farmer = make_farmer('farmer2')
        self.reviewer = make_reviewer()

    def _submit(self, user=None, **overrides):
        self.client.force_authenticate(user=user or self.farmer)
        data = {
            'pest_type': 'Rice Stem Borer',
            'confidence': 0.9,
            'crop_type': 'Rice',
            'image_base64': make_image_base64(),
            'latitude': 15.2149,
            'longitude': 120.6604,
            'farmer_notes': 'Seen near the irrigation canal',
        }
        data.update(overrides)
        return self.client.post('/api/detections/', data, format='json')

    def test_create_detection_is_pending_with_image(self):
        response = self._submit()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'pending')
        self.assertTrue(response.data['image_url'])

        detection = PestDetection.objects.get(pk=response.data['id'])
        self.assertEqual(detection.user, self.farmer)
        self.assertTrue(detection.image.name.startswith(f'detection-images/{self.farmer.pk}/'))

    def test_create_requires_image(self):
        response = self._submit(image_base64=None)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(PestDetection.objects.count(), 0)

    def test_create_rejects_non_image_payload(self):
        response = self._submit(image_base64='data:image/png;base64,aGVsbG8gd29ybGQ=')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(PestDetection.objects.count(), 0)

    def test_create_requires_login(self):
        response = self.client.post('/api/detections/', {'pest_type': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_farmer_lists_only_own_detections(self):
        self._submit()
        self._submit(user=self.other_farmer)

        self.client.force_authenticate(user=self.farmer)
        response = self.client.get('/api/detections/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['user'], self.farmer.pk)

    def test_reviewer_lists_all_with_farmer_profile(self):
        self._submit()
        self._submit(user=self.other_farmer)

        self.client.force_authenticate(user=self.reviewer)
        response = self.client.get('/api/detections/')
        self.assertEqual(response.data['count'], 2)
        self.assertIn('farmer_name', response.data['results'][0])

    def test_list_newest_first(self):
        first = self._submit().data['id']
        second = self._submit().data['id']
        PestDetection.objects.filter(pk=first).update(created_at=timezone.now() - timedelta(hours=1))

        self.client.force_authenticate(user=self.farmer)
        ids = [row['id'] for row in self.client.get('/api/detections/').data['results']]
        self.assertEqual(ids, [second, first])

    def test_filter_by_status_and_crop(self):
        self._submit()
        self._submit(crop_type='Corn')

        self.client.force_authenticate(user=self.farmer)
        response = self.client.get('/api/detections/', {'crop_type': 'corn'})
        self.assertEqual(response.data['count'], 1)

        response = self.client.get('/api/detections/', {'status': 'verified'})
        self.assertEqual(response.data['count'], 0)

        response = self.client.get('/api/detections/', {'status': 'bogus'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reviewer_verifies_detection(self):
        detection_id = self._submit().data['id']

        self.client.force_authenticate(user=self.reviewer)
        response = self.client.post('/api/detections/verify/', {
            'detection_id': detection_id, 'status': 'verified', 'notes': 'confirmed in field',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['detection']['status'], 'verified')
        self.assertEqual(response.data['detection']['verified_by'], self.reviewer.pk)

    def test_farmer_cannot_transition(self):
        detection_id = self._submit().data['id']

        response = self.client.post('/api/detections/verify/', {
            'detection_id': detection_id, 'status': 'verified',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(PestDetection.objects.get(pk=detection_id).status, DetectionStatus.PENDING)

    def test_transition_invalid_status(self):
        detection_id = self._submit().data['id']

        self.client.force_authenticate(user=self.reviewer)
        response = self.client.post('/api/detections/verify/', {
            'detection_id': detection_id, 'status': 'pending',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_transition_unknown_detection(self):
        self.client.force_authenticate(user=self.reviewer)
        response = self.client.post('/api/detections/verify/', {
            'detection_id': '00000000-0000-0000-0000-000000000000', 'status': 'verified',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.post('/api/detections/verify/', {
            'detection_id': 'not-a-uuid', 'status': 'verified',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_statistics(self):
        self._submit()
        self._submit()
        self._submit(user=self.other_farmer)

        self.client.force_authenticate(user=self.reviewer)
        response = self.client.get('/api/detections/statistics/')
        self.assertEqual(response.data, {'total': 3, 'pending': 3, 'verified': 0, 'rejected': 0})

        self.client.force_authenticate(user=self.farmer)
        response = self.client.get('/api/detections/statistics/')
        self.assertEqual(response.data['total'], 2)

    def test_map_skips_detections_without_location(self):
        self._submit()
        self._submit(latitude=None, longitude=None)

        self.client.force_authenticate(user=self.farmer)
        response = self.client.get('/api/detections/map/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(self.client.get('/api/detections/statistics/').data['total'], 2)

    def test_respond_records_intervention_and_notifies_farmer(self):
        detection_id = self._submit().data['id']

        self.client.force_authenticate(user=self.reviewer)
        response = self.client.post(f'/api/detections/{detection_id}/respond/', {
            'intervention_type': 'Pheromone Lure',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['intervention_type'], 'Pheromone Lure')
        self.assertEqual(response.data['notes'], 'Intervention: Pheromone Lure')
        self.assertEqual(response.data['status'], 'pending')

        self.client.force_authenticate(user=self.farmer)
        messages = self.client.get('/api/messages/', {'detection_id': detection_id}).data['results']
        self.assertEqual(messages[0]['content'], 'LGU Response: Pheromone Lure')

    def test_request_info_keeps_detection_pending(self):
        detection_id = self._submit().data['id']

        self.client.force_authenticate(user=self.reviewer)
        response = self.client.post(f'/api/detections/{detection_id}/request-info/', {
            'message': 'Can you send a closer photo?',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['recipient'], self.farmer.pk)
        self.assertEqual(PestDetection.objects.get(pk=detection_id).status, DetectionStatus.PENDING)
