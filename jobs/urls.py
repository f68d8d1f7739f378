from django.urls import path
from .views import JobCancelView, JobDetailView, JobListCreateView, JobStatusView, JobTypeListView

urlpatterns = [
    path("jobs/", JobListCreateView.as_view(), name="job_list_create"),
    path("jobs/<int:job_id>/", JobDetailView.as_view(), name="job_detail"),
    path("jobs/<int:job_id>/status/", JobStatusView.as_view(), name="job_status"),
    path("jobs/<int:job_id>/cancel/", JobCancelView.as_view(), name="job_cancel"),
    path("job-types/", JobTypeListView.as_view(), name="job_types"),
]
