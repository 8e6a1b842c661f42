"""Identity-provider integration and the authenticated principal."""

import enum
import logging
import re
from dataclasses import dataclass, field

from django.conf import settings
from django.utils.module_loading import import_string

from .exceptions import Unauthorized
from .models import UserProfile

logger = logging.getLogger(__name__)

_PHONE_NOISE = re.compile(r"[\s\-()]")


class Role(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MANAGER = "manager"
    RECEPTIONIST = "receptionist"
    CUSTOMER = "customer"

    @classmethod
    def parse(cls, value):
        try:
            return cls(value)
        except ValueError:
            return cls.CUSTOMER


ADMINS = (Role.SUPER_ADMIN, Role.ADMIN)
STAFF = (Role.SUPER_ADMIN, Role.ADMIN, Role.MANAGER)
FRONT_DESK = STAFF + (Role.RECEPTIONIST,)


@dataclass(frozen=True)
class Principal:
    """The caller as seen by every authorization check."""

    uid: str
    role: Role = Role.CUSTOMER
    email: str = ""
    claims: dict = field(default_factory=dict, compare=False, repr=False)

    is_authenticated = True
    is_anonymous = False

    @classmethod
    def from_claims(cls, claims):
        uid = claims.get("uid") or claims.get("sub")
        if not uid:
            raise Unauthorized("Unauthorized: token has no subject", code="INVALID_TOKEN")
        return cls(uid=uid, role=Role.parse(claims.get("role")), email=claims.get("email") or "", claims=claims)

    @property
    def pk(self):
        # user throttling keys on request.user.pk
        return self.uid

    def has_role(self, *roles):
        return self.role in roles

    @property
    def is_staff(self):
        return self.role in STAFF


def format_phone_number(phone, country_code=None):
    """Normalise a local or international number to ``+<country><digits>``."""
    if not phone:
        return None
    country_code = country_code or settings.HOTEL_DEFAULT_COUNTRY_CODE
    clean = _PHONE_NOISE.sub("", phone)
    if clean.startswith("0"):
        return country_code + clean[1:]
    if not clean.startswith("+"):
        return country_code + clean
    return clean


class IdentityProvider:
    """Contract of the external identity provider."""

    def verify_token(self, token):
        """Return the verified claims (``uid`` plus custom claims such as ``role``)."""
        raise NotImplementedError

    def create_user(self, name, phone=None, email=None):
        """Create an account and return its uid, or the uid of the account already holding the phone/email."""
        raise NotImplementedError

    def set_role(self, uid, role):
        raise NotImplementedError


class FirebaseIdentityProvider(IdentityProvider):
    def __init__(self, credentials_path=None):
        import firebase_admin
        from firebase_admin import auth, credentials

        self._auth = auth
        try:
            self._app = firebase_admin.get_app()
        except ValueError:
            path = credentials_path or settings.FIREBASE_CREDENTIALS
            cred = credentials.Certificate(path) if path else None
            self._app = firebase_admin.initialize_app(cred)

    def verify_token(self, token):
        try:
            return self._auth.verify_id_token(token, app=self._app)
        except (ValueError, self._auth.InvalidIdTokenError, self._auth.ExpiredIdTokenError) as exc:
            raise Unauthorized("Unauthorized: Invalid token", code="INVALID_TOKEN") from exc

    def create_user(self, name, phone=None, email=None):
        try:
            record = self._auth.create_user(
                display_name=name,
                phone_number=phone,
                email=email or None,
                email_verified=bool(email),
                disabled=False,
                app=self._app,
            )
            return record.uid
        except self._auth.PhoneNumberAlreadyExistsError:
            return self._auth.get_user_by_phone_number(phone, app=self._app).uid
        except self._auth.EmailAlreadyExistsError:
            return self._auth.get_user_by_email(email, app=self._app).uid

    def set_role(self, uid, role):
        self._auth.set_custom_user_claims(uid, {"role": Role(role).value}, app=self._app)


def get_identity_provider():
    return import_string(settings.HOTEL_IDENTITY_PROVIDER)()


def resolve_guest(identity, name, phone=None, email=None):
    """Find the guest's profile by phone, then by email, or create one.

    New accounts are registered with the identity provider first and tagged
    with the ``customer`` role claim.
    """
    phone = format_phone_number(phone)
    if phone:
        profile = UserProfile.objects.filter(phone_number=phone).first()
        if profile:
            return profile
    if email:
        profile = UserProfile.objects.filter(email__iexact=email).first()
        if profile:
            return profile

    uid = identity.create_user(name, phone=phone, email=email)
    profile, created = UserProfile.objects.get_or_create(
        uid=uid,
        defaults={"name": name or "", "email": email or "", "phone_number": phone or "", "role": Role.CUSTOMER.value},
    )
    if created:
        identity.set_role(uid, Role.CUSTOMER)
        logger.info("Registered guest %s (%s)", uid, name)
    return profile
