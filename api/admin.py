from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User, FarmerFarm, PestDetection, Advisory, Message, UserActivity


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'email', 'first_name', 'last_name', 'role', 'phone', 'created_at']
    list_filter = ['role', 'is_staff', 'is_active', 'created_at']
    search_fields = ['username', 'email', 'first_name', 'last_name', 'phone']
    ordering = ['-created_at']

    fieldsets = BaseUserAdmin.fieldsets + (
        ('BantayAni', {'fields': ('role', 'phone', 'created_at')}),
    )
    readonly_fields = ['created_at']


@admin.register(PestDetection)
class PestDetectionAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'pest_type', 'crop_type', 'confidence', 'status', 'created_at']
    list_filter = ['status', 'crop_type', 'created_at']
    search_fields = ['pest_type', 'user__username', 'location_name']
    readonly_fields = ['created_at', 'updated_at', 'verified_at', 'verified_by']
    ordering = ['-created_at']

    fieldsets = (
        ('Detection Info', {
            'fields': ('user', 'image', 'pest_type', 'crop_type', 'confidence', 'farmer_notes')
        }),
        ('Location', {
            'fields': ('farm', 'latitude', 'longitude', 'location_name')
        }),
        ('Review', {
            'fields': ('status', 'verified_by', 'verified_at', 'notes', 'intervention_type', 'lgu_response_at')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at')
        }),
    )


@admin.register(FarmerFarm)
class FarmerFarmAdmin(admin.ModelAdmin):
    list_display = ['user', 'farm_number', 'farm_name', 'latitude', 'longitude']
    search_fields = ['farm_name', 'landmark', 'address', 'user__username']


@admin.register(Advisory)
class AdvisoryAdmin(admin.ModelAdmin):
    list_display = ['title', 'severity', 'is_active', 'created_by', 'created_at']
    list_filter = ['severity', 'is_active']
    search_fields = ['title', 'content']


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ['sender', 'recipient', 'detection', 'is_read', 'created_at']
    list_filter = ['is_read']


@admin.register(UserActivity)
class UserActivityAdmin(admin.ModelAdmin):
    list_display = ['user', 'action', 'ip_address', 'timestamp']
    search_fields = ['user__username', 'action']
    readonly_fields = ['timestamp']
