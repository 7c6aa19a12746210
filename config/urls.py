from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include
from django.urls import path

urlpatterns = [
    path(settings.ADMIN_URL, admin.site.urls),
    path("protocols/", include("taskprotocoller.protocols.urls", namespace="protocols")),
    path("export/", include("taskprotocoller.export.urls", namespace="export")),
    path("", include("taskprotocoller.runs.urls", namespace="runs")),
    *static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT),
]
