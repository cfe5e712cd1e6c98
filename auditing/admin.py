from django.contrib import admin

from auditing.models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("action", "actor", "object_type", "object_id", "created_at")
    list_filter = ("action", "object_type", "created_at")
    search_fields = ("action", "object_id", "actor__username")
    readonly_fields = ("action", "actor", "object_type", "object_id", "metadata", "created_at")
