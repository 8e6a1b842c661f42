from unittest import mock

from django.test import SimpleTestCase, TestCase, override_settings

from hotel_management.exceptions import Unauthorized
from hotel_management.identity import (
    FirebaseIdentityProvider,
    Principal,
    Role,
    format_phone_number,
    resolve_guest,
)
from hotel_management.models import UserProfile

from .base import make_profile
from .fakes import FakeIdentityProvider


@override_settings(HOTEL_DEFAULT_COUNTRY_CODE='+256')
class PhoneNumberTestCase(SimpleTestCase):
    def test_local_numbers_get_country_code(self):
        self.assertEqual(format_phone_number('0772 123-456'), '+256772123456')
        self.assertEqual(format_phone_number('772123456'), '+256772123456')

    def test_international_numbers_are_kept(self):
        self.assertEqual(format_phone_number('+1 (555) 010-0000'), '+15550100000')

    def test_explicit_country_code(self):
        self.assertEqual(format_phone_number('0712345678', '+254'), '+254712345678')

    def test_empty(self):
        self.assertIsNone(format_phone_number(''))
        self.assertIsNone(format_phone_number(None))


class PrincipalTestCase(SimpleTestCase):
    def test_from_claims(self):
        principal = Principal.from_claims({'uid': 'u1', 'role': 'manager', 'email': 'm@example.com'})
        self.assertEqual(principal.role, Role.MANAGER)
        self.assertTrue(principal.is_staff)
        self.assertTrue(principal.has_role(Role.MANAGER, Role.RECEPTIONIST))

    def test_unknown_role_is_customer(self):
        principal = Principal.from_claims({'sub': 'u2', 'role': 'owner'})
        self.assertEqual(principal.uid, 'u2')
        self.assertEqual(principal.role, Role.CUSTOMER)
        self.assertFalse(principal.is_staff)

    def test_missing_subject(self):
        with self.assertRaises(Unauthorized):
            Principal.from_claims({'role': 'admin'})


@override_settings(HOTEL_DEFAULT_COUNTRY_CODE='+256')
class ResolveGuestTestCase(TestCase):
    def setUp(self):
        FakeIdentityProvider.reset()
        self.identity = FakeIdentityProvider()
        self.existing = make_profile(uid='cust-1', phone='+256700000001', email='jane@example.com')

    def test_match_by_phone(self):
        self.assertEqual(resolve_guest(self.identity, 'Jane', '0700000001'), self.existing)
        self.assertEqual(FakeIdentityProvider.created, [])

    def test_match_by_email(self):
        self.assertEqual(resolve_guest(self.identity, 'Jane', None, 'Jane@Example.com'), self.existing)

    def test_new_guest_is_registered(self):
        profile = resolve_guest(self.identity, 'Sam', '0711000000', 'sam@example.com')
        self.assertEqual(profile.uid, 'guest-1')
        self.assertEqual(profile.phone_number, '+256711000000')
        self.assertEqual(FakeIdentityProvider.roles, {'guest-1': Role.CUSTOMER})
        self.assertEqual(UserProfile.objects.count(), 2)


class FirebaseIdentityProviderTestCase(SimpleTestCase):
    def setUp(self):
        patcher = mock.patch('firebase_admin.get_app', return_value=mock.sentinel.app)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.provider = FirebaseIdentityProvider()

    def test_verify_token(self):
        with mock.patch('firebase_admin.auth.verify_id_token', return_value={'uid': 'u1', 'role': 'admin'}) as verify:
            self.assertEqual(self.provider.verify_token('tok')['uid'], 'u1')
        verify.assert_called_once_with('tok', app=mock.sentinel.app)

    def test_malformed_token_is_unauthorized(self):
        with mock.patch('firebase_admin.auth.verify_id_token', side_effect=ValueError('bad token')):
            with self.assertRaises(Unauthorized):
                self.provider.verify_token('tok')

    def test_set_role_writes_custom_claim(self):
        with mock.patch('firebase_admin.auth.set_custom_user_claims') as set_claims:
            self.provider.set_role('u1', 'manager')
        set_claims.assert_called_once_with('u1', {'role': 'manager'}, app=mock.sentinel.app)
