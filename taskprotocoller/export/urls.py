from django.urls import path

from .views import event_csv_export_view
from .views import recording_csv_export_view
from .views import response_json_export_view

app_name = "export"

urlpatterns = [
    path("recordings.csv", recording_csv_export_view, name="recordings_csv"),
    path("events.csv", event_csv_export_view, name="events_csv"),
    path("responses.json", response_json_export_view, name="responses_json"),
]
