# accounts/backends.py

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend
from django.db.models import Q
import logging

from utils.context import get_client_ip

logger = logging.getLogger(__name__)


class EmailAuthBackend(ModelBackend):
    """
    Log in with email (or username) and password.

    Deactivated accounts, including everyone on a deactivated campus, are
    refused even with the right password.
    """

    def authenticate(self, request, username=None, password=None, email=None, **kwargs):
        identifier = email or username
        if not identifier or password is None:
            return None

        User = get_user_model()
        source = get_client_ip(request) if request is not None else None
        user = User.objects.filter(Q(email__iexact=identifier) | Q(username__iexact=identifier)).first()

        if user is None:
            # hash anyway so unknown and known emails take as long
            User().set_password(password)
            logger.warning(f"Login for unknown account {identifier} from {source}")
            return None

        if not user.check_password(password):
            logger.warning(f"Wrong password for {user.email} from {source}")
            return None

        if not self.user_can_authenticate(user):
            logger.warning(f"Login refused for inactive account {user.email}")
            return None

        logger.info(f"{user.email} logged in ({user.role})")
        return user
