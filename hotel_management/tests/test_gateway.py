from unittest import mock

import requests
from django.test import SimpleTestCase

from hotel_management.gateway import GatewayError, RelworxGateway


def fake_response(status_code=200, body=None):
    response = mock.Mock(status_code=status_code, ok=status_code < 400, text='')
    response.json.return_value = body if body is not None else {}
    return response


class RelworxGatewayTestCase(SimpleTestCase):
    def setUp(self):
        self.session = mock.Mock()
        self.gateway = RelworxGateway(
            api_key='key-123', account_no='REL-1', base_url='https://relworx.test/api/',
            currency='UGX', timeout=5, session=self.session,
        )

    def test_request_payment_payload(self):
        self.session.post.return_value = fake_response(200, {'success': True, 'internal_reference': 'abc'})

        body = self.gateway.request_payment(1500, '+256772000111', 'TX-1-aaaa', 'Booking 7')

        self.assertEqual(body['internal_reference'], 'abc')
        args, kwargs = self.session.post.call_args
        self.assertEqual(args[0], 'https://relworx.test/api/mobile-money/request-payment')
        self.assertEqual(kwargs['json'], {
            'account_no': 'REL-1',
            'amount': 1500.0,
            'currency': 'UGX',
            'msisdn': '+256772000111',
            'reference': 'TX-1-aaaa',
            'narration': 'Booking 7',
        })
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer key-123')
        self.assertEqual(kwargs['headers']['Accept'], 'application/vnd.relworx.v2')
        self.assertEqual(kwargs['timeout'], 5)

    def test_timeout_is_retryable(self):
        self.session.post.side_effect = requests.exceptions.Timeout()
        with self.assertRaises(GatewayError) as ctx:
            self.gateway.request_payment(1, '+256700000000', 'TX-1', 'x')
        self.assertTrue(ctx.exception.retryable)

    def test_connection_error_is_retryable(self):
        self.session.post.side_effect = requests.exceptions.ConnectionError('refused')
        with self.assertRaises(GatewayError) as ctx:
            self.gateway.request_payment(1, '+256700000000', 'TX-1', 'x')
        self.assertTrue(ctx.exception.retryable)

    def test_server_error_is_retryable(self):
        self.session.post.return_value = fake_response(503, {'message': 'down'})
        with self.assertRaises(GatewayError) as ctx:
            self.gateway.request_payment(1, '+256700000000', 'TX-1', 'x')
        self.assertTrue(ctx.exception.retryable)
        self.assertEqual(ctx.exception.payload, {'message': 'down'})

    def test_client_error_is_final(self):
        self.session.post.return_value = fake_response(422, {'message': 'invalid msisdn'})
        with self.assertRaises(GatewayError) as ctx:
            self.gateway.request_payment(1, 'bad', 'TX-1', 'x')
        self.assertFalse(ctx.exception.retryable)

    def test_rejected_body_is_final(self):
        self.session.post.return_value = fake_response(200, {'success': False, 'message': 'Insufficient float'})
        with self.assertRaises(GatewayError) as ctx:
            self.gateway.request_payment(1, '+256700000000', 'TX-1', 'x')
        self.assertFalse(ctx.exception.retryable)
        self.assertEqual(str(ctx.exception), 'Insufficient float')
