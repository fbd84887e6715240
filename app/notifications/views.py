"""
Views for notification API.

ViewSets:
    NotificationViewSet: The user's in-app feed with read status actions
    PreferenceView: Get / update the user's delivery preferences
    DeviceViewSet: Register / unregister push device tokens

Endpoints:
    Notifications:
        GET /api/v1/notifications/ - List user's notifications (paginated)
        GET /api/v1/notifications/unread-count/ - Get unread count
        POST /api/v1/notifications/{id}/read/ - Mark single notification as read
        POST /api/v1/notifications/read-all/ - Mark all notifications as read
        DELETE /api/v1/notifications/{id}/ - Delete a notification

    Preferences:
        GET /api/v1/notifications/preferences/ - Get preferences
        PATCH /api/v1/notifications/preferences/ - Partially update preferences

    Devices:
        POST /api/v1/notifications/devices/ - Register a push token
        DELETE /api/v1/notifications/devices/{token}/ - Unregister a push token

Error responses for domain errors use BaseApplicationError.to_dict():
    {"error": "...", "error_code": "...", "details": {...}}
"""

from __future__ import annotations

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import (
    extend_schema,
    extend_schema_view,
    OpenApiParameter,
    OpenApiResponse,
)

from core.exceptions import NotFoundError, ValidationError
from notifications.serializers import (
    DeviceTokenSerializer,
    MarkAllReadResponseSerializer,
    NotificationListQuerySerializer,
    NotificationListResponseSerializer,
    NotificationSerializer,
    PreferenceSerializer,
    UnreadCountSerializer,
)
from notifications.services import (
    DeviceService,
    InAppNotificationService,
    PreferenceService,
)

UUID_PATTERN = r"[0-9a-fA-F-]{32,36}"


@extend_schema_view(
    list=extend_schema(
        operation_id="list_notifications",
        summary="List notifications",
        description=(
            "Get a page of in-app notifications for the authenticated user, "
            "newest first, with total and unread counts."
        ),
        parameters=[
            OpenApiParameter(
                name="page",
                type=int,
                location=OpenApiParameter.QUERY,
                description="Page number (1-indexed, default 1)",
                required=False,
            ),
            OpenApiParameter(
                name="page_size",
                type=int,
                location=OpenApiParameter.QUERY,
                description="Items per page (default 10, max 100)",
                required=False,
            ),
        ],
        responses={200: NotificationListResponseSerializer},
        tags=["Notifications - Inbox"],
    ),
    destroy=extend_schema(
        operation_id="delete_notification",
        summary="Delete notification",
        description="Delete one of the authenticated user's notifications.",
        responses={
            204: OpenApiResponse(description="Notification deleted"),
            404: OpenApiResponse(description="Notification not found"),
        },
        tags=["Notifications - Inbox"],
    ),
)
class NotificationViewSet(viewsets.ViewSet):
    """
    ViewSet for in-app notification operations.

    Provides:
    - list: GET / - Paginated feed
    - unread_count: GET /unread-count/ - Get badge count
    - read: POST /{id}/read/ - Mark single as read
    - read_all: POST /read-all/ - Mark all as read
    - destroy: DELETE /{id}/ - Delete notification

    Permissions:
    - All endpoints require authentication
    - Users can only access their own notifications; another user's
      notification is reported as 404
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = UUID_PATTERN

    def list(self, request):
        query = NotificationListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        page = InAppNotificationService.list_notifications(
            request.user,
            page=query.validated_data["page"],
            page_size=query.validated_data["page_size"],
        )
        serializer = NotificationListResponseSerializer(page)
        return Response(serializer.data)

    @extend_schema(
        operation_id="get_unread_notification_count",
        summary="Get unread notification count",
        description="Get the count of unread notifications for badge display.",
        responses={200: UnreadCountSerializer},
        tags=["Notifications - Inbox"],
    )
    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        """
        Get count of unread notifications.

        Returns:
            {"unread_count": <int>}
        """
        count = InAppNotificationService.unread_count(request.user)
        serializer = UnreadCountSerializer({"unread_count": count})
        return Response(serializer.data)

    @extend_schema(
        operation_id="mark_notification_read",
        summary="Mark notification as read",
        description=(
            "Mark a single notification as read. "
            "This operation is idempotent - already-read notifications return success."
        ),
        request=None,
        responses={
            200: NotificationSerializer,
            404: OpenApiResponse(description="Notification not found"),
        },
        tags=["Notifications - Inbox"],
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        """
        Mark single notification as read.

        Returns 404 if notification doesn't exist or belongs to another user.
        """
        try:
            notification = InAppNotificationService.mark_as_read(request.user, pk)
        except NotFoundError as e:
            return Response(e.to_dict(), status=status.HTTP_404_NOT_FOUND)

        serializer = NotificationSerializer(notification)
        return Response(serializer.data)

    @extend_schema(
        operation_id="mark_all_notifications_read",
        summary="Mark all notifications as read",
        description="Mark all unread notifications for the authenticated user as read.",
        request=None,
        responses={200: MarkAllReadResponseSerializer},
        tags=["Notifications - Inbox"],
    )
    @action(detail=False, methods=["post"], url_path="read-all")
    def read_all(self, request):
        """
        Mark all user's notifications as read.

        Returns:
            {"marked_count": <int>}
        """
        count = InAppNotificationService.mark_all_as_read(request.user)
        serializer = MarkAllReadResponseSerializer({"marked_count": count})
        return Response(serializer.data)

    def destroy(self, request, pk=None):
        try:
            InAppNotificationService.delete_notification(request.user, pk)
        except NotFoundError as e:
            return Response(e.to_dict(), status=status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)


class PreferenceView(APIView):
    """
    View for the user's notification delivery preferences.

    A user without a preference row gets the defaults on first access.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_notification_preferences",
        summary="Get notification preferences",
        description="Get channel, category and quiet-hour preferences for the current user.",
        responses={200: PreferenceSerializer},
        tags=["Notifications - Preferences"],
    )
    def get(self, request):
        pref = PreferenceService.get_preferences(request.user)
        return Response(PreferenceSerializer(pref).data)

    @extend_schema(
        operation_id="update_notification_preferences",
        summary="Update notification preferences",
        description="Partially update preferences; omitted fields are unchanged.",
        request=PreferenceSerializer,
        responses={
            200: PreferenceSerializer,
            400: OpenApiResponse(description="Invalid preference values"),
        },
        tags=["Notifications - Preferences"],
    )
    def patch(self, request):
        serializer = PreferenceSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        try:
            pref = PreferenceService.update_preferences(
                request.user, **serializer.validated_data
            )
        except ValidationError as e:
            return Response(e.to_dict(), status=status.HTTP_400_BAD_REQUEST)

        return Response(PreferenceSerializer(pref).data)


class DeviceViewSet(viewsets.ViewSet):
    """
    ViewSet for push device tokens.

    Provides:
    - create: POST / - Register (or move) a token to the current user
    - destroy: DELETE /{token}/ - Deactivate one of the user's tokens
    """

    permission_classes = [IsAuthenticated]
    lookup_field = "token"
    lookup_value_regex = r"[^/]+"

    @extend_schema(
        operation_id="register_device",
        summary="Register push device",
        request=DeviceTokenSerializer,
        responses={201: DeviceTokenSerializer},
        tags=["Notifications - Devices"],
    )
    def create(self, request):
        serializer = DeviceTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        device = DeviceService.register_device(
            request.user,
            token=serializer.validated_data["token"],
            platform=serializer.validated_data["platform"],
        )
        return Response(
            DeviceTokenSerializer(device).data,
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(
        operation_id="unregister_device",
        summary="Unregister push device",
        responses={
            204: OpenApiResponse(description="Device unregistered"),
            404: OpenApiResponse(description="Device token not found"),
        },
        tags=["Notifications - Devices"],
    )
    def destroy(self, request, token=None):
        try:
            DeviceService.unregister_device(request.user, token)
        except NotFoundError as e:
            return Response(e.to_dict(), status=status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)
