from django.contrib import admin

from .forms import ProtocolForm
from .models import Project
from .models import Protocol
from .models import ProtocolTask


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ["name", "country", "contact_person", "is_active", "start_date", "end_date"]
    list_filter = ["is_active", "country"]
    search_fields = ["name", "contact_person"]
    filter_horizontal = ["researchers"]


class ProtocolTaskInline(admin.TabularInline):
    model = ProtocolTask
    extra = 0
    ordering = ["position"]


@admin.register(Protocol)
class ProtocolAdmin(admin.ModelAdmin):
    list_display = ["name", "project", "language", "version", "is_active", "access_token"]
    list_filter = ["is_active", "language", "project"]
    search_fields = ["name", "project__name"]
    form = ProtocolForm
    readonly_fields = ["access_token"]
    inlines = [ProtocolTaskInline]
