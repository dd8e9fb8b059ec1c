# api/user_views.py — self-service profile/avatar + admin user management
import logging

from django.db.models import Q
from rest_framework import mixins, viewsets
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated

from .exceptions import BusinessRuleError
from .models import User
from .permissions import IsAdmin
from .responses import EnvelopeMixin, success_response
from .serializers import AdminUserSerializer, AvatarUploadSerializer, ProfileSerializer

logger = logging.getLogger(__name__)


# ---------------------------
# Self-service
# ---------------------------
@api_view(["GET", "PUT"])
@permission_classes([IsAuthenticated])
def profile(request):
    if request.method == "GET":
        return success_response(ProfileSerializer(request.user, context={"request": request}).data)

    ser = ProfileSerializer(request.user, data=request.data, partial=True, context={"request": request})
    ser.is_valid(raise_exception=True)
    ser.save()
    return success_response(ser.data, "Profile updated")


@api_view(["POST"])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def upload_avatar(request):
    """
    multipart/form-data with an `avatar` file: max 2 MB, JPEG/PNG/GIF/WebP.
    Stored as avatars/<user id>-<timestamp>.<ext>; the previous file is removed.
    """
    ser = AvatarUploadSerializer(data=request.data)
    ser.is_valid(raise_exception=True)
    upload = ser.validated_data["avatar"]

    user = request.user
    previous = user.avatar.name if user.avatar else ""
    # upload_to renames the file to <id>-<timestamp><ext>
    user.avatar.save(upload.name, upload, save=False)
    user.save(update_fields=["avatar", "updated_at"])
    if previous and previous != user.avatar.name:
        user.avatar.storage.delete(previous)
    logger.info("User %s uploaded avatar %s", user.username, user.avatar.name)

    data = ProfileSerializer(user, context={"request": request}).data
    return success_response(data, "Avatar updated", avatar_url=data["avatar"])


# ---------------------------
# Admin
# ---------------------------
class UserViewSet(
    EnvelopeMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    permission_classes = [IsAdmin]
    serializer_class = AdminUserSerializer
    queryset = User.objects.all().order_by("-created_at")
    filterset_fields = ["role", "is_active"]
    ordering_fields = ["created_at", "username", "full_name"]

    http_method_names = ["get", "put", "patch", "delete", "head", "options"]
    envelope_messages = {"update": "User updated", "destroy": "User deleted"}

    def get_queryset(self):
        qs = super().get_queryset()
        keyword = (self.request.query_params.get("keyword") or "").strip()
        if keyword:
            qs = qs.filter(
                Q(full_name__icontains=keyword)
                | Q(email__icontains=keyword)
                | Q(username__icontains=keyword)
                | Q(phone__icontains=keyword)
            )
        return qs

    def perform_destroy(self, instance):
        if instance.pk == self.request.user.pk:
            raise BusinessRuleError("You cannot delete your own account")
        logger.info("User %s deleted by %s", instance.username, self.request.user.username)
        instance.delete()
