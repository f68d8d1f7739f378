from rest_framework import serializers

from .models import Job, JobType

# Request fields each job type understands; everything else is ignored.
TYPE_FIELDS = {
    JobType.CPU_STRESS: ("duration", "algorithm"),
    JobType.S3_BACKUP: ("bucket", "s3_key"),
    JobType.SSH_COMMAND: ("ssh_host", "ssh_user", "ssh_command", "ssh_port", "ssh_timeout"),
    JobType.IDLE_WAIT: ("idle_duration", "idle_interval"),
}


class JobSerializer(serializers.ModelSerializer):
    class Meta:
        model = Job
        fields = [
            "id",
            "uuid",
            "type",
            "status",
            "parameters",
            "progress",
            "log",
            "result",
            "created_at",
            "started_at",
            "completed_at",
        ]


class JobStatusSerializer(serializers.ModelSerializer):
    """Point-in-time snapshot for polling."""

    class Meta:
        model = Job
        fields = ["id", "status", "progress", "log", "result"]


class JobCreateSerializer(serializers.Serializer):
    job_type = serializers.ChoiceField(choices=JobType.choices)
    # Out-of-range counts are clamped by the dispatcher rather than rejected.
    job_count = serializers.IntegerField(required=False, default=1)

    duration = serializers.IntegerField(required=False, min_value=1)
    algorithm = serializers.CharField(required=False, max_length=32)

    bucket = serializers.CharField(required=False, max_length=255)
    s3_key = serializers.CharField(required=False, max_length=1024)

    ssh_host = serializers.CharField(required=False, max_length=255)
    ssh_user = serializers.CharField(required=False, max_length=255)
    ssh_command = serializers.CharField(required=False)
    ssh_port = serializers.IntegerField(required=False, min_value=1, max_value=65535)
    ssh_timeout = serializers.IntegerField(required=False, min_value=1)

    idle_duration = serializers.IntegerField(required=False, min_value=1)
    idle_interval = serializers.IntegerField(required=False, min_value=1)

    def job_parameters(self) -> dict:
        """Validated fields relevant to the chosen job type."""
        data = self.validated_data
        wanted = TYPE_FIELDS[JobType(data["job_type"])]
        return {name: data[name] for name in wanted if name in data}


class JobCreatedSerializer(serializers.ModelSerializer):
    class Meta:
        model = Job
        fields = ["id", "uuid"]
