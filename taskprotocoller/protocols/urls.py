from django.urls import path

from .views import project_list_view
from .views import project_status_view
from .views import protocol_enrollment_view
from .views import protocol_preview_view

app_name = "protocols"
urlpatterns = [
    path("projects/", view=project_list_view, name="project_list"),
    path("projects/<int:pk>/status/", view=project_status_view, name="project_status"),
    path("<int:pk>/preview/", view=protocol_preview_view, name="preview"),
    path("<int:pk>/enrollment/", view=protocol_enrollment_view, name="enrollment"),
]
