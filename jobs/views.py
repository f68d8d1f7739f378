from django.shortcuts import get_object_or_404
from rest_framework import status, views
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from . import dispatcher
from .models import Job, JobType
from .serializers import (
    JobCreatedSerializer,
    JobCreateSerializer,
    JobSerializer,
    JobStatusSerializer,
)

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200


class JobListCreateView(views.APIView):
    """
    GET: most recent jobs, newest first (``?limit=N``).
    POST: create a batch of jobs and enqueue one message per job.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        try:
            limit = int(request.query_params.get("limit", DEFAULT_LIST_LIMIT))
        except ValueError:
            return Response({"detail": "limit must be an integer"}, status=400)
        limit = max(1, min(MAX_LIST_LIMIT, limit))
        return Response(JobSerializer(Job.objects.recent(limit), many=True).data)

    def post(self, request):
        ser = JobCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        jobs = dispatcher.create_jobs(
            ser.validated_data["job_type"],
            ser.validated_data["job_count"],
            ser.job_parameters(),
        )
        label = JobType(ser.validated_data["job_type"]).label
        body = {
            "count": len(jobs),
            "detail": f"{len(jobs)} '{label}' job(s) dispatched successfully.",
            "jobs": JobCreatedSerializer(jobs, many=True).data,
        }
        return Response(body, status=status.HTTP_202_ACCEPTED)


class JobDetailView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, job_id):
        job = get_object_or_404(Job, pk=job_id)
        return Response(JobSerializer(job).data)

    def delete(self, request, job_id):
        job = get_object_or_404(Job, pk=job_id)
        dispatcher.delete_job(job)
        return Response(status=status.HTTP_204_NO_CONTENT)


class JobStatusView(views.APIView):
    """Read-only snapshot, safe to poll."""
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, job_id):
        job = get_object_or_404(Job, pk=job_id)
        return Response(JobStatusSerializer(job).data)


class JobCancelView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request, job_id):
        job = get_object_or_404(Job, pk=job_id)
        if not dispatcher.cancel_job(job):
            return Response(
                {"detail": "Only pending jobs can be cancelled.", "status": job.status},
                status=status.HTTP_409_CONFLICT,
            )
        return Response(JobStatusSerializer(job).data)


class JobTypeListView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        return Response([{"value": t.value, "label": t.label} for t in JobType])
