# api/auth_views.py — signup/login issue a JWT access token; logout is stateless
import logging

from django.contrib.auth.models import update_last_login
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import AuthenticationFailed, PermissionDenied
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework_simplejwt.tokens import AccessToken

from .models import User
from .responses import success_response
from .serializers import LoginSerializer, SignupSerializer, UserSerializer

logger = logging.getLogger(__name__)


def _token_payload(user, request):
    return {
        "user": UserSerializer(user, context={"request": request}).data,
        "access_token": str(AccessToken.for_user(user)),
    }


@api_view(["POST"])
@permission_classes([AllowAny])
def signup(request):
    """
    Payload: { "full_name": "...", "email": "...", "password": "...", "username"?: "..." }
    Always creates a customer account.
    """
    ser = SignupSerializer(data=request.data)
    ser.is_valid(raise_exception=True)
    user = ser.save()
    return success_response(_token_payload(user, request), "Account created", status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([AllowAny])
def login(request):
    ser = LoginSerializer(data=request.data)
    ser.is_valid(raise_exception=True)
    email = ser.validated_data["email"].strip().lower()

    user = User.objects.filter(email=email).first()
    if user is None or not user.check_password(ser.validated_data["password"]):
        logger.info("Failed login for %s", email)
        raise AuthenticationFailed("Invalid email or password")
    if not user.is_active:
        raise PermissionDenied("Account is disabled")

    update_last_login(None, user)
    logger.info("User %s logged in", user.username)
    return success_response(_token_payload(user, request), "Logged in")


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def me(request):
    return success_response(UserSerializer(request.user, context={"request": request}).data)


@api_view(["POST"])
@permission_classes([AllowAny])
def logout(request):
    # tokens are not tracked server side; the client drops its copy
    return success_response(message="Logged out")
