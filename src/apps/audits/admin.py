from django.contrib import admin
from .models import AuditEvent

@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ("action", "cert_id", "who", "timestamp")
    list_filter = ("action",)
    search_fields = ("cert_id", "who", "details")
    readonly_fields = ("id", "cert_id", "who", "action", "details", "timestamp")
    date_hierarchy = "timestamp"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
