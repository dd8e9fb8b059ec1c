# api/setting_views.py — company profile singleton + account settings of the current user
import logging

from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView

from .models import Setting
from .permissions import IsAdmin
from .responses import success_response
from .serializers import PasswordChangeSerializer, SettingSerializer, SettingsProfileSerializer

logger = logging.getLogger(__name__)


class SettingView(APIView):
    """GET is public (storefront footer, invoices); PUT is admin only."""

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAdmin()]

    def get(self, request):
        return success_response(SettingSerializer(Setting.get_instance()).data)

    def put(self, request):
        instance = Setting.get_instance()
        ser = SettingSerializer(instance, data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        ser.save()
        logger.info("System settings updated by %s", request.user.username)
        return success_response(ser.data, "Settings updated")


@api_view(["PUT"])
@permission_classes([IsAuthenticated])
@parser_classes([JSONParser, FormParser, MultiPartParser])
def update_profile(request):
    ser = SettingsProfileSerializer(request.user, data=request.data, partial=True, context={"request": request})
    ser.is_valid(raise_exception=True)
    ser.save()
    return success_response(ser.data, "Profile updated")


@api_view(["PUT"])
@permission_classes([IsAuthenticated])
def change_password(request):
    ser = PasswordChangeSerializer(data=request.data, context={"request": request})
    ser.is_valid(raise_exception=True)
    user = request.user
    user.set_password(ser.validated_data["new_password"])
    user.save(update_fields=["password", "updated_at"])
    logger.info("User %s changed password", user.username)
    return success_response(message="Password changed")
