from __future__ import annotations

from rest_framework import serializers

from reposync.domain.models.repository import (
    ExistingRepositorySpec,
    ExportMode,
    ExportRequest,
    NewRepositorySpec,
)


class ImportRequestSerializer(serializers.Serializer):
    workspaceHandle = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    repository = serializers.CharField(max_length=201)
    branch = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)


class ExistingRepositorySerializer(serializers.Serializer):
    fullName = serializers.CharField(max_length=201)
    remoteUrl = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class NewRepositorySerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=256)
    private = serializers.BooleanField(required=False, default=False)
    defaultBranch = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)


class ExportRequestSerializer(serializers.Serializer):
    workspaceHandle = serializers.CharField()
    commitMessage = serializers.CharField(max_length=500, trim_whitespace=False)
    mode = serializers.ChoiceField(choices=[mode.value for mode in ExportMode])
    branch = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)
    repository = serializers.DictField()

    def validate(self, attrs):
        mode = ExportMode(attrs["mode"])
        nested_class = (
            ExistingRepositorySerializer if mode is ExportMode.EXISTING else NewRepositorySerializer
        )
        nested = nested_class(data=attrs["repository"])
        if not nested.is_valid():
            raise serializers.ValidationError({"repository": nested.errors})
        attrs["repository"] = nested.validated_data
        return attrs

    def to_request(self) -> ExportRequest:
        data = self.validated_data
        mode = ExportMode(data["mode"])
        repository_data = data["repository"]
        if mode is ExportMode.EXISTING:
            repository = ExistingRepositorySpec(
                full_name=repository_data["fullName"],
                remote_url=repository_data.get("remoteUrl") or None,
            )
        else:
            repository = NewRepositorySpec(
                name=repository_data["name"],
                description=repository_data.get("description") or None,
                private=repository_data.get("private", False),
                default_branch=repository_data.get("defaultBranch") or None,
            )
        return ExportRequest(
            workspace_handle=data["workspaceHandle"],
            commit_message=data["commitMessage"],
            mode=mode,
            repository=repository,
            branch=data.get("branch") or None,
        )


class StatusQuerySerializer(serializers.Serializer):
    workspaceHandle = serializers.CharField()


class RepositoryListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, default=1, min_value=1, max_value=10)
    per_page = serializers.IntegerField(required=False, default=50, min_value=1, max_value=100)
