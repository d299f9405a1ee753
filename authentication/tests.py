import pytest
from django.contrib.auth.models import User
from django.urls import reverse

REGISTRATION = {
    "username": "carol",
    "email": "carol@example.com",
    "password1": "a-long-passphrase",
    "password2": "a-long-passphrase",
}


# Create your tests here.
@pytest.mark.django_db
class TestAuthentication:
    def test_register_logs_in(self, client):
        response = client.post(reverse("register"), REGISTRATION)
        assert response.status_code == 201
        assert response.json()["user"]["username"] == "carol"
        assert client.get(reverse("budget")).status_code == 200

    def test_register_password_mismatch(self, client):
        response = client.post(reverse("register"), {**REGISTRATION, "password2": "other"})
        assert response.status_code == 400
        assert not User.objects.filter(username="carol").exists()

    def test_register_taken_username(self, client, user):
        response = client.post(reverse("register"), {**REGISTRATION, "username": user.username})
        assert response.status_code == 400
        assert response.json()["messages"][0]["title"] == "This username is already taken."

    def test_login_and_logout(self, client, user):
        response = client.post(reverse("login"), {"username": "alice", "password": "wrong"})
        assert response.status_code == 401

        response = client.post(reverse("login"), {"username": "alice", "password": "s3cret-pass"})
        assert response.status_code == 200
        assert client.get(reverse("dashboard")).status_code == 200

        client.post(reverse("logout"))
        assert client.get(reverse("dashboard")).status_code == 302
