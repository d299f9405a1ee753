import logging

from django.contrib.auth import authenticate, login, logout
from django.contrib.auth.models import User
from django.core.handlers.wsgi import WSGIRequest
from django.db import DatabaseError, transaction
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from core.notifications import Notifier
from core.views import json_result

logger = logging.getLogger(__name__)


def register_user(username: str, password: str, email: str) -> User:
    return User.objects.create_user(username=username, password=password, email=email)


def user_payload(user) -> dict:
    return {"id": user.pk, "username": user.get_username()}


# Create your views here.
@require_http_methods(["POST"])
def register_view(request: WSGIRequest) -> JsonResponse:
    notifier = Notifier()
    username = request.POST.get("username", "").strip()
    password1 = request.POST.get("password1", "")
    password2 = request.POST.get("password2", "")
    email = request.POST.get("email", "").strip()

    if any(not field for field in [username, password1, password2, email]):
        notifier.error("All fields are required.")
        return json_result(notifier, 400)

    if password1 != password2:
        notifier.error("Passwords do not match")
        return json_result(notifier, 400)

    if User.objects.filter(username=username).exists():
        notifier.error("This username is already taken.")
        return json_result(notifier, 400)

    try:
        with transaction.atomic():
            user = register_user(username, password1, email)
    except DatabaseError as e:
        logger.error("Error creating user: %s", str(e))
        notifier.error(
            "An error occurred while creating the user. Please try again later."
        )
        return json_result(notifier, 500)

    login(request, user)
    notifier.success("Welcome! Set up your first budget to get started.")
    return json_result(notifier, 201, user=user_payload(user))


@require_http_methods(["POST"])
def login_view(request: WSGIRequest) -> JsonResponse:
    notifier = Notifier()
    username = request.POST.get("username", "").strip()
    password = request.POST.get("password", "")

    if any(not field for field in [username, password]):
        notifier.error("All fields are required.")
        return json_result(notifier, 400)

    user = authenticate(request, username=username, password=password)
    if user is None:
        notifier.error("Invalid username or password.")
        return json_result(notifier, 401)

    login(request, user)
    return json_result(notifier, user=user_payload(user))


@require_http_methods(["POST"])
def logout_view(request: WSGIRequest) -> JsonResponse:
    logout(request)
    return json_result(Notifier())
