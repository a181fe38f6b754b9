"""
Integration Tests for Payments (Stripe mocked)

Verifies:
- One-time payment intents record a pending payment
- The subscription is created once and reused afterwards
- Stripe failures surface as 502
"""

import asyncio

from mira_oracle.infrastructure.exceptions import PaymentServiceError


class TestPaymentIntent:

    def test_create_payment_intent(self, logged_in_client, storage, mock_stripe_service):
        response = logged_in_client.post("/api/create-payment-intent", json={"amount": 19.99})

        assert response.status_code == 200
        assert response.json() == {"clientSecret": "pi_test_123_secret_abc", "paymentId": 1}

        # Dollars are sent to Stripe as cents
        mock_stripe_service.create_payment_intent.assert_awaited_once_with(1999, 1)

        payments = asyncio.run(storage.get_payments_by_user_id(1))
        assert len(payments) == 1
        assert str(payments[0].amount) == "19.99"
        assert payments[0].status.value == "pending"
        assert payments[0].payment_type.value == "one_time"
        assert payments[0].stripe_payment_intent_id == "pi_test_123"

    def test_amount_must_be_positive(self, logged_in_client, mock_stripe_service):
        response = logged_in_client.post("/api/create-payment-intent", json={"amount": 0})

        assert response.status_code == 400
        mock_stripe_service.create_payment_intent.assert_not_awaited()

    def test_requires_session(self, client):
        response = client.post("/api/create-payment-intent", json={"amount": 10})
        assert response.status_code == 401

    def test_stripe_failure_is_bad_gateway(self, logged_in_client, storage, mock_stripe_service):
        mock_stripe_service.create_payment_intent.side_effect = PaymentServiceError(
            "Failed to create payment intent: card_declined"
        )

        response = logged_in_client.post("/api/create-payment-intent", json={"amount": 5})

        assert response.status_code == 502
        assert "card_declined" in response.json()["message"]
        assert asyncio.run(storage.get_payments_by_user_id(1)) == []


class TestSubscription:

    def test_creates_customer_and_subscription(self, logged_in_client, storage, mock_stripe_service):
        response = logged_in_client.post("/api/get-or-create-subscription")

        assert response.status_code == 200
        assert response.json() == {
            "subscriptionId": "sub_test_123",
            "clientSecret": "pi_sub_secret_xyz",
        }
        mock_stripe_service.create_customer.assert_awaited_once()
        mock_stripe_service.create_subscription.assert_awaited_once_with("cus_test_123")

        user = asyncio.run(storage.get_user(1))
        assert user.stripe_customer_id == "cus_test_123"
        assert user.stripe_subscription_id == "sub_test_123"

    def test_existing_subscription_is_reused(self, logged_in_client, mock_stripe_service):
        logged_in_client.post("/api/get-or-create-subscription")

        response = logged_in_client.post("/api/get-or-create-subscription")

        assert response.status_code == 200
        assert response.json() == {
            "subscriptionId": "sub_test_123",
            "clientSecret": "pi_sub_secret_existing",
        }
        assert mock_stripe_service.create_subscription.await_count == 1
        mock_stripe_service.get_subscription_client_secret.assert_awaited_once_with("sub_test_123")

    def test_existing_customer_is_reused(self, logged_in_client, storage, mock_stripe_service):
        asyncio.run(storage.update_user_stripe_info(1, "cus_existing", None))

        response = logged_in_client.post("/api/get-or-create-subscription")

        assert response.status_code == 200
        mock_stripe_service.create_customer.assert_not_awaited()
        mock_stripe_service.create_subscription.assert_awaited_once_with("cus_existing")

    def test_requires_session(self, client):
        assert client.post("/api/get-or-create-subscription").status_code == 401
