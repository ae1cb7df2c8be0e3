import logging
import uuid

from django.db.models import Count, Q
from rest_framework import mixins, viewsets
from rest_framework.decorators import api_view, permission_classes, action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from . import ml_service, realtime
from .exceptions import InferenceError, ValidationError
from .models import User, FarmerFarm, Advisory, Message, UserActivity, DetectionStatus
from .permissions import IsLGUAdmin, IsLGUAdminOrReadOnly, IsOwnerOrLGUAdmin
from .serializers import (
    UserSerializer, RegisterSerializer, LoginSerializer,
    FarmerFarmSerializer, PestDetectionSerializer, DetectionCreateSerializer,
    TransitionSerializer, LGUResponseSerializer, RequestInfoSerializer,
    PestAnalysisSerializer, AdvisorySerializer, MessageSerializer,
    FarmerSummarySerializer, UserActivitySerializer,
)
from .services import (
    create_detection, transition_detection, list_detections, detection_stats,
    record_lgu_response, request_more_info, send_message,
)

logger = logging.getLogger(__name__)


# ==================== HELPER FUNCTIONS ====================
def get_tokens_for_user(user):
    refresh = RefreshToken.for_user(user)
    return {'refresh': str(refresh), 'access': str(refresh.access_token)}


def log_activity(user, action, details='', request=None):
    ip_address = None
    if request:
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        ip_address = x_forwarded_for.split(',')[0] if x_forwarded_for else request.META.get('REMOTE_ADDR')
    UserActivity.objects.create(user=user, action=action, details=details, ip_address=ip_address)


# ==================== AUTHENTICATION VIEWS ====================
@api_view(['POST'])
@permission_classes([AllowAny])
def register_view(request):
    serializer = RegisterSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        tokens = get_tokens_for_user(user)
        log_activity(user, 'user_registered', request=request)
        return Response({'user': UserSerializer(user).data, 'tokens': tokens}, status=201)
    return Response(serializer.errors, status=400)


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    serializer = LoginSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.validated_data
        tokens = get_tokens_for_user(user)
        log_activity(user, 'user_logged_in', request=request)
        return Response({'user': UserSerializer(user).data, 'tokens': tokens})
    return Response(serializer.errors, status=400)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    try:
        token = RefreshToken(request.data.get('refresh_token'))
        token.blacklist()
    except TokenError as e:
        return Response({'error': str(e)}, status=400)
    log_activity(request.user, 'user_logged_out', request=request)
    return Response({'message': 'Logout successful'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_profile(request):
    return Response(UserSerializer(request.user).data)


# ==================== PEST DETECTION VIEWSET ====================
class PestDetectionViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = PestDetectionSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return list_detections(
            self.request.user,
            status=self.request.query_params.get('status') or None,
            crop_type=self.request.query_params.get('crop_type') or None,
        )

    def create(self, request):
        """Farmer submission: stores the photo, then inserts a pending detection"""
        serializer = DetectionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        detection = create_detection(
            request.user,
            pest_type=data['pest_type'],
            confidence=data['confidence'],
            crop_type=data['crop_type'],
            image=data.get('image') or data.get('image_base64'),
            latitude=data.get('latitude'),
            longitude=data.get('longitude'),
            location_name=data.get('location_name') or '',
            farmer_notes=data.get('farmer_notes') or '',
            farm_id=data.get('farm_id'),
        )
        log_activity(request.user, 'reported_detection', f'Pest: {detection.pest_type}', request)
        return Response(self.get_serializer(detection).data, status=201)

    @action(detail=False, methods=['post'])
    def verify(self, request):
        """Reviewer-only status transition: {detection_id, status, notes}"""
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        detection = transition_detection(
            request.user, data['detection_id'], data['status'], data.get('notes') or ''
        )
        log_activity(request.user, f'{detection.status}_detection', f'Detection ID: {detection.id}', request)
        return Response({'success': True, 'detection': self.get_serializer(detection).data})

    @action(detail=True, methods=['post'])
    def respond(self, request, pk=None):
        serializer = LGUResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        detection = record_lgu_response(
            request.user, pk, serializer.validated_data['intervention_type'],
            serializer.validated_data.get('notes', ''),
        )
        log_activity(request.user, 'responded_detection', f'Detection ID: {detection.id}', request)
        return Response(self.get_serializer(detection).data)

    @action(detail=True, methods=['post'], url_path='request-info')
    def request_info(self, request, pk=None):
        serializer = RequestInfoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        message = request_more_info(request.user, pk, serializer.validated_data['message'])
        log_activity(request.user, 'requested_detection_info', f'Detection ID: {pk}', request)
        return Response(MessageSerializer(message).data, status=201)

    @action(detail=False, methods=['get'])
    def statistics(self, request):
        return Response(detection_stats(self.get_queryset()))

    @action(detail=False, methods=['get'], url_path='map')
    def map_data(self, request):
        """Only detections with usable coordinates; the rest still count in statistics"""
        points = [
            {
                'id': str(det.id),
                'pest_type': det.pest_type,
                'crop_type': det.crop_type,
                'confidence': det.confidence,
                'status': det.status,
                'latitude': det.latitude,
                'longitude': det.longitude,
                'location_name': det.location_name,
                'created_at': det.created_at.isoformat(),
            }
            for det in self.get_queryset()
            if det.has_location
        ]
        return Response(points)


# ==================== AI INFERENCE ====================
class DetectPestView(APIView):
    """Proxy to the AI vision service: {image_base64, crop_type} -> {success, detection}"""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = PestAnalysisSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'error': 'No image provided'}, status=400)

        try:
            result = ml_service.detect_pest(
                serializer.validated_data['image_base64'],
                serializer.validated_data.get('crop_type', ''),
            )
        except InferenceError as e:
            logger.error("Detection error: %s", e.detail)
            return Response({'error': str(e.detail), 'retry': e.retry}, status=e.status_code)
        return Response(result)


# ==================== FARM VIEWSET ====================
class FarmerFarmViewSet(viewsets.ModelViewSet):
    serializer_class = FarmerFarmSerializer
    permission_classes = [IsAuthenticated, IsOwnerOrLGUAdmin]

    def get_queryset(self):
        if self.request.user.role == 'lgu_admin':
            return FarmerFarm.objects.select_related('user').all()
        return FarmerFarm.objects.filter(user=self.request.user)

    def create(self, request, *args, **kwargs):
        """Upsert by farm_number: update the slot if it exists, else insert"""
        if request.user.role != 'farmer':
            raise PermissionDenied('Only farmers can register farms')

        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        farm_number = serializer.validated_data['farm_number']

        existing = FarmerFarm.objects.filter(user=request.user, farm_number=farm_number).first()
        if existing:
            serializer = self.get_serializer(existing, data=request.data)
            serializer.is_valid(raise_exception=True)
            farm = serializer.save()
            log_activity(request.user, 'updated_farm', f'Farm {farm_number}', request)
            return Response(serializer.data)

        farm = serializer.save(user=request.user)
        log_activity(request.user, 'created_farm', f'Farm {farm.farm_number}', request)
        return Response(serializer.data, status=201)

    def perform_update(self, serializer):
        farm = serializer.save()
        log_activity(self.request.user, 'updated_farm', f'Farm {farm.farm_number}', self.request)

    def perform_destroy(self, instance):
        log_activity(self.request.user, 'deleted_farm', f'Farm {instance.farm_number}', self.request)
        instance.delete()


# ==================== ADVISORY VIEWSET ====================
class AdvisoryViewSet(viewsets.ModelViewSet):
    serializer_class = AdvisorySerializer
    permission_classes = [IsLGUAdminOrReadOnly]

    def get_queryset(self):
        queryset = Advisory.objects.select_related('created_by')
        if self.request.user.role == 'lgu_admin':
            return queryset
        return queryset.filter(is_active=True).filter(
            Q(target_farmer__isnull=True) | Q(target_farmer=self.request.user)
        )

    def perform_create(self, serializer):
        advisory = serializer.save(created_by=self.request.user)
        log_activity(self.request.user, 'created_advisory', f'Advisory: {advisory.title}', self.request)

    def perform_update(self, serializer):
        advisory = serializer.save()
        log_activity(self.request.user, 'updated_advisory', f'Advisory: {advisory.title}', self.request)

    def perform_destroy(self, instance):
        log_activity(self.request.user, 'deleted_advisory', f'Advisory: {instance.title}', self.request)
        instance.delete()

    @action(detail=True, methods=['post'], url_path='toggle-active')
    def toggle_active(self, request, pk=None):
        advisory = self.get_object()
        advisory.is_active = not advisory.is_active
        advisory.save()
        status_text = 'activated' if advisory.is_active else 'deactivated'
        log_activity(request.user, f'{status_text}_advisory', f'Advisory: {advisory.title}', request)
        return Response(self.get_serializer(advisory).data)


# ==================== MESSAGE VIEWSET ====================
class MessageViewSet(mixins.CreateModelMixin,
                     viewsets.ReadOnlyModelViewSet):
    serializer_class = MessageSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        queryset = Message.objects.select_related('sender', 'recipient').filter(
            Q(sender=user) | Q(recipient=user)
        )
        detection_id = self.request.query_params.get('detection_id')
        if detection_id:
            try:
                detection_id = uuid.UUID(detection_id)
            except ValueError:
                raise ValidationError('detection_id must be a valid UUID')
            queryset = queryset.filter(detection_id=detection_id)
        return queryset.order_by('created_at')

    def perform_create(self, serializer):
        data = serializer.validated_data
        message = send_message(
            self.request.user, data['recipient'], data['content'], detection=data.get('detection')
        )
        serializer.instance = message

    @action(detail=True, methods=['post'], url_path='mark-read')
    def mark_read(self, request, pk=None):
        message = self.get_object()
        if message.recipient_id != request.user.id:
            raise PermissionDenied('Only the recipient can mark a message as read')
        message.is_read = True
        message.save(update_fields=['is_read'])
        return Response(self.get_serializer(message).data)

    @action(detail=False, methods=['get'], url_path='unread-count')
    def unread_count(self, request):
        count = Message.objects.filter(recipient=request.user, is_read=False).count()
        return Response({'unread': count})


# ==================== CHANGE FEED ====================
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def changes_view(request):
    """Per-table version counters; a moved counter means re-fetch that table"""
    return Response(realtime.get_versions())


# ==================== ADMIN VIEWSETS ====================
class AdminFarmerViewSet(viewsets.ReadOnlyModelViewSet):
    """Farmer directory with report tallies"""
    serializer_class = FarmerSummarySerializer
    permission_classes = [IsLGUAdmin]

    def get_queryset(self):
        return User.objects.filter(role=User.FARMER).annotate(
            total_reports=Count('detections'),
            verified_reports=Count('detections', filter=Q(detections__status=DetectionStatus.VERIFIED)),
            pending_reports=Count('detections', filter=Q(detections__status=DetectionStatus.PENDING)),
        ).order_by('-date_joined')


class AdminActivityLogViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = UserActivity.objects.select_related('user')
    serializer_class = UserActivitySerializer
    permission_classes = [IsLGUAdmin]

    def get_queryset(self):
        queryset = super().get_queryset()

        user_id = self.request.query_params.get('user_id')
        if user_id:
            queryset = queryset.filter(user_id=user_id)

        action = self.request.query_params.get('action')
        if action:
            queryset = queryset.filter(action__icontains=action)

        date_from = self.request.query_params.get('date_from')
        date_to = self.request.query_params.get('date_to')
        if date_from:
            queryset = queryset.filter(timestamp__gte=date_from)
        if date_to:
            queryset = queryset.filter(timestamp__lte=date_to)

        return queryset
