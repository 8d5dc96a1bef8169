from django.contrib import admin
from .models import Certificate

@admin.register(Certificate)
class CertificateAdmin(admin.ModelAdmin):
    list_display = ("cn", "status", "key_strategy", "serial", "not_after", "created_at")
    list_filter = ("status", "key_strategy")
    search_fields = ("cn", "serial")
    readonly_fields = ("id", "serial", "not_after", "key_strategy", "storage_ref", "created_at", "updated_at")
