from django.urls import path

from .views import enroll_view
from .views import participant_create_view
from .views import participant_link_view
from .views import preview_run_view
from .views import progress_event_view
from .views import task_result_submit_view
from .views import task_skip_view
from .views import task_view

app_name = "runs"
urlpatterns = [
    path("p/<uuid:access_token>/", view=enroll_view, name="enroll"),
    path("participant/<uuid:access_token>/", view=participant_link_view, name="participant_link"),
    path("participants/new/", view=participant_create_view, name="participant_create"),
    path("preview/<int:pk>/", view=preview_run_view, name="preview_run"),
    path("session/<uuid:session_id>/", view=task_view, name="task"),
    path("api/submit-result/", view=task_result_submit_view, name="submit_result"),
    path("api/progress/", view=progress_event_view, name="progress"),
    path("api/skip-task/", view=task_skip_view, name="skip"),
]
