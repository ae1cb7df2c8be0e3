from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from . import realtime
from .models import Advisory, FarmerFarm, Message
from .services import create_detection
from .testing import make_farmer, make_image_base64, make_reviewer


class FarmerFarmTest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.farmer = make_farmer()
        self.client.force_authenticate(user=self.farmer)

    def test_post_inserts_then_updates_same_slot(self):
        response = self.client.post('/api/farms/', {
            'farm_number': 1, 'farm_name': 'North paddy', 'latitude': 15.2, 'longitude': 120.6,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.post('/api/farms/', {
            'farm_number': 1, 'farm_name': 'North paddy (renamed)',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        farms = FarmerFarm.objects.filter(user=self.farmer)
        self.assertEqual(farms.count(), 1)
        self.assertEqual(farms.get().farm_name, 'North paddy (renamed)')

    def test_farm_number_out_of_range(self):
        for number in (0, 4):
            response = self.client.post('/api/farms/', {'farm_number': number}, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reviewer_cannot_register_farm_but_can_list(self):
        FarmerFarm.objects.create(user=self.farmer, farm_number=2)
        self.client.force_authenticate(user=make_reviewer())

        response = self.client.post('/api/farms/', {'farm_number': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.get('/api/farms/')
        self.assertEqual(response.data['count'], 1)

    def test_other_farmer_cannot_delete(self):
        farm = FarmerFarm.objects.create(user=self.farmer, farm_number=1)
        self.client.force_authenticate(user=make_farmer('farmer2'))

        response = self.client.delete(f'/api/farms/{farm.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(FarmerFarm.objects.filter(pk=farm.pk).exists())

    def test_patch_onto_taken_slot_rejected(self):
        FarmerFarm.objects.create(user=self.farmer, farm_number=1, farm_name='North paddy')
        second = FarmerFarm.objects.create(user=self.farmer, farm_number=2, farm_name='South paddy')

        response = self.client.patch(f'/api/farms/{second.pk}/', {'farm_number': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('farm_number', response.data)
        second.refresh_from_db()
        self.assertEqual(second.farm_number, 2)

        response = self.client.patch(f'/api/farms/{second.pk}/', {'farm_number': 3}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        second.refresh_from_db()
        self.assertEqual(second.farm_number, 3)


class AdvisoryTest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.farmer = make_farmer()
        self.reviewer = make_reviewer()

    def _create(self, **overrides):
        data = {
            'title': 'Fall Armyworm outbreak',
            'content': 'Scout corn fields twice a week.',
            'severity': 'high',
            'affected_crops': ['Corn'],
            'affected_regions': ['Magalang'],
        }
        data.update(overrides)
        self.client.force_authenticate(user=self.reviewer)
        return self.client.post('/api/advisories/', data, format='json')

    def test_reviewer_creates_advisory(self):
        response = self._create()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['affected_crops'], ['Corn'])
        self.assertEqual(response.data['created_by'], self.reviewer.pk)

    def test_farmer_cannot_create(self):
        self.client.force_authenticate(user=self.farmer)
        response = self.client.post('/api/advisories/', {'title': 'x', 'content': 'y', 'severity': 'low'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_farmer_sees_only_active_and_own_targeted(self):
        self._create(title='General')
        self._create(title='For me', target_farmer=self.farmer.pk)
        self._create(title='For someone else', target_farmer=make_farmer('farmer2').pk)
        inactive_id = self._create(title='Old news').data['id']
        self.client.post(f'/api/advisories/{inactive_id}/toggle-active/')
        self.assertFalse(Advisory.objects.get(pk=inactive_id).is_active)

        self.client.force_authenticate(user=self.farmer)
        titles = {row['title'] for row in self.client.get('/api/advisories/').data['results']}
        self.assertEqual(titles, {'General', 'For me'})

        self.client.force_authenticate(user=self.reviewer)
        self.assertEqual(self.client.get('/api/advisories/').data['count'], 4)


class MessageTest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.farmer = make_farmer()
        self.reviewer = make_reviewer()

    def test_send_and_mark_read(self):
        self.client.force_authenticate(user=self.reviewer)
        response = self.client.post('/api/messages/', {
            'recipient': self.farmer.pk, 'content': 'Please check your field again',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        message_id = response.data['id']

        # only the recipient may mark it read
        response = self.client.post(f'/api/messages/{message_id}/mark-read/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.farmer)
        self.assertEqual(self.client.get('/api/messages/unread-count/').data, {'unread': 1})
        response = self.client.post(f'/api/messages/{message_id}/mark-read/')
        self.assertTrue(response.data['is_read'])
        self.assertEqual(self.client.get('/api/messages/unread-count/').data, {'unread': 0})

    def test_outsiders_do_not_see_messages(self):
        Message.objects.create(sender=self.reviewer, recipient=self.farmer, content='hello')
        self.client.force_authenticate(user=make_farmer('farmer2'))
        self.assertEqual(self.client.get('/api/messages/').data['count'], 0)

    def test_empty_message_rejected(self):
        self.client.force_authenticate(user=self.reviewer)
        response = self.client.post('/api/messages/', {'recipient': self.farmer.pk, 'content': ''}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_farmers_cannot_message_each_other(self):
        other = make_farmer('farmer2')
        detection = create_detection(
            other, pest_type='Rice Bug', confidence=0.7, crop_type='Rice', image=make_image_base64(),
        )
        self.client.force_authenticate(user=self.farmer)

        response = self.client.post('/api/messages/', {
            'recipient': other.pk, 'detection': str(detection.pk), 'content': 'Is this yours?',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Message.objects.exists())

    def test_detection_must_belong_to_the_farmer(self):
        other = make_farmer('farmer2')
        detection = create_detection(
            other, pest_type='Rice Bug', confidence=0.7, crop_type='Rice', image=make_image_base64(),
        )

        self.client.force_authenticate(user=self.farmer)
        response = self.client.post('/api/messages/', {
            'recipient': self.reviewer.pk, 'detection': str(detection.pk), 'content': 'About this report',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.reviewer)
        response = self.client.post('/api/messages/', {
            'recipient': other.pk, 'detection': str(detection.pk), 'content': 'We will visit tomorrow',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_malformed_detection_filter(self):
        self.client.force_authenticate(user=self.farmer)
        response = self.client.get('/api/messages/', {'detection_id': 'not-a-uuid'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ChangeFeedTest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.farmer = make_farmer()
        self.client.force_authenticate(user=self.farmer)

    def test_versions_move_on_write(self):
        before = self.client.get('/api/changes/').data
        self.assertEqual(set(before), {'pest_detections', 'advisories', 'farmer_farms', 'messages'})

        FarmerFarm.objects.create(user=self.farmer, farm_number=1)

        after = self.client.get('/api/changes/').data
        self.assertEqual(after['farmer_farms'], before['farmer_farms'] + 1)
        self.assertEqual(after['advisories'], before['advisories'])

    def test_subscribers_called_without_payload(self):
        seen = []
        unsubscribe = realtime.subscribe('farmer_farms', seen.append)
        try:
            farm = FarmerFarm.objects.create(user=self.farmer, farm_number=1)
            farm.delete()
        finally:
            unsubscribe()

        self.assertEqual(seen, ['farmer_farms', 'farmer_farms'])

        FarmerFarm.objects.create(user=self.farmer, farm_number=2)
        self.assertEqual(len(seen), 2)

    def test_failing_subscriber_does_not_break_writes(self):
        def broken(table):
            raise RuntimeError('boom')

        unsubscribe = realtime.subscribe('farmer_farms', broken)
        try:
            FarmerFarm.objects.create(user=self.farmer, farm_number=1)
        finally:
            unsubscribe()
        self.assertEqual(FarmerFarm.objects.count(), 1)


class ReviewerDirectoryTest(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.farmer = make_farmer()
        self.reviewer = make_reviewer()

    def test_farmer_directory_tallies(self):
        self.client.force_authenticate(user=self.reviewer)

        response = self.client.get('/api/admin/farmers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        row = response.data['results'][0]
        self.assertEqual(row['username'], self.farmer.username)
        self.assertEqual(row['total_reports'], 0)

    def test_activity_log_filters(self):
        self.client.force_authenticate(user=self.farmer)
        self.client.post('/api/farms/', {'farm_number': 1}, format='json')

        self.client.force_authenticate(user=self.reviewer)
        response = self.client.get('/api/admin/activity-logs/', {'action': 'farm'})
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['action'], 'created_farm')

    def test_farmers_cannot_read_directory(self):
        self.client.force_authenticate(user=self.farmer)
        response = self.client.get('/api/admin/farmers/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
