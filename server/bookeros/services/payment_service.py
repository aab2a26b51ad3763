"""Payment service: online verification, cash confirmation, settlement and refunds."""

import json
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import unit_of_work
from ..core.exceptions import (
    ConflictError,
    InvalidBookingStateError,
    NotFoundError,
    PaymentGatewayError,
    PaymentNotCompletedError,
    ValidationError,
)
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingPaymentStatus, BookingStatus
from ..models.payment import Payment, PaymentMethod, PaymentStatus, Transaction
from ..models.tour import Tour
from ..models.user import User
from .email_service import EmailService
from .finance_service import FinanceService
from .notification_service import booking_email_details
from .payment_gateway import REFUND_ACCEPTED_STATUSES, ConnectedAccount, PaymentGateway
from .settlement import compute_settlement

logger = logging.getLogger(__name__)

# A booking in one of these states can still be paid
PAYABLE_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.PENDING_PAYMENT.value,
    BookingStatus.CONFIRMED.value,
)


class PaymentService:
    """Service for recording payments and their settlement."""

    def __init__(
        self,
        db: AsyncSession,
        gateway: PaymentGateway,
        email_service: Optional[EmailService] = None,
    ):
        self.db = db
        self.gateway = gateway
        self.email_service = email_service

    async def _get_booking(self, booking_id: UUID) -> Booking:
        booking = await self.db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))
        return booking

    def _ensure_payable(self, booking: Booking, operation: str) -> None:
        if booking.payment_status == BookingPaymentStatus.PAID.value:
            raise InvalidBookingStateError(str(booking.id), "paid", operation)
        if booking.status not in PAYABLE_STATUSES:
            raise InvalidBookingStateError(str(booking.id), booking.status, operation)

    async def _settle(
        self,
        booking: Booking,
        tour: Optional[Tour],
        payment_intent_id: str,
        method: PaymentMethod,
        operation: str,
        customer_id: Optional[str] = None,
        verified: bool = True,
        metadata: Optional[dict] = None,
    ) -> tuple[Payment, Transaction]:
        """
        Record a Payment and its Transaction and confirm the booking, all in one commit.

        The booking row is flipped to paid with a conditional UPDATE before
        anything is inserted, so concurrent settlements of one booking
        produce a single Payment and Transaction.

        Returns:
            Tuple of (payment, transaction)

        Raises:
            InvalidBookingStateError: If another request settled the booking first
        """
        cash = method == PaymentMethod.CASH
        booking_id = booking.id
        rates = await FinanceService(self.db).get_retention_rates()
        settlement = compute_settlement(booking.total_amount, rates, cash=cash)

        async with unit_of_work(self.db):
            # Claim the booking first; only one settlement can flip it to paid
            claim = (
                update(Booking)
                .where(
                    Booking.id == booking_id,
                    Booking.payment_status == BookingPaymentStatus.UNPAID.value,
                    Booking.status.in_(PAYABLE_STATUSES),
                )
                .values(
                    status=BookingStatus.CONFIRMED.value,
                    payment_status=BookingPaymentStatus.PAID.value,
                    payment_method=method.value,
                    gateway_payment_intent_id=payment_intent_id,
                    reserved_until=None,
                )
                .execution_options(synchronize_session=False)
            )
            result = await self.db.execute(claim)
            if result.rowcount != 1:
                logger.warning(
                    "Booking already settled by a concurrent request",
                    extra={"booking_id": str(booking_id), "operation": operation}
                )
                raise InvalidBookingStateError(str(booking_id), "paid", operation)

            payment = Payment(
                booking_id=booking_id,
                payment_intent_id=payment_intent_id,
                gateway_customer_id=customer_id,
                amount=settlement.gross_amount,
                currency=settings.default_currency,
                status=PaymentStatus.SUCCEEDED.value,
                payment_method=method.value,
                mode="cash" if cash else self.gateway.mode,
                verified=verified,
                metadata_json=json.dumps(metadata) if metadata else None,
            )
            self.db.add(payment)
            await self.db.flush()

            transaction = Transaction(
                tour_id=booking.tour_id,
                booking_id=booking_id,
                payment_id=payment.id,
                tour_name=tour.name if tour else "Tour",
                amount=settlement.gross_amount,
                platform_fee=settlement.platform_fee,
                seller_commission=settlement.seller_commission,
                tax_amount=settlement.tax_amount,
                bank_commission=settlement.bank_commission,
                other_retentions=settlement.other_retentions,
                provider_payout=settlement.provider_payout,
            )
            self.db.add(transaction)

        await self.db.refresh(booking)
        await self.db.refresh(payment)
        await self.db.refresh(transaction)
        metrics_collector.record_payment_settled(method.value)

        logger.info(
            "Payment settled",
            extra={
                "booking_id": str(booking.id),
                "payment_id": str(payment.id),
                "method": method.value,
                "gross_amount": str(settlement.gross_amount),
                "provider_payout": str(settlement.provider_payout),
            }
        )

        await self._send_confirmation(booking, tour)
        return payment, transaction

    async def _send_confirmation(self, booking: Booking, tour: Optional[Tour]) -> None:
        if self.email_service is None or not booking.customer_email:
            return
        sent = await self.email_service.send_booking_confirmation(
            booking.customer_email,
            str(booking.id),
            booking_email_details(booking, tour),
        )
        if sent:
            metrics_collector.record_notification_sent("confirmation")
        else:
            logger.warning("Confirmation e-mail not sent", extra={"booking_id": str(booking.id)})

    async def verify_payment(self, booking_id: UUID, session_id: str) -> tuple[Booking, Payment, Transaction]:
        """
        Verify a checkout session with the gateway and settle the booking if paid.

        Raises:
            ValidationError: If the session belongs to another checkout
            InvalidBookingStateError: If the booking is already paid or closed
            PaymentNotCompletedError: If the gateway does not report the session as paid
        """
        booking = await self._get_booking(booking_id)
        if booking.gateway_session_id and booking.gateway_session_id != session_id:
            raise ValidationError(
                detail="Session does not belong to this booking",
                violations=[{"path": "session_id", "message": "mismatch"}],
            )
        self._ensure_payable(booking, "verify_payment")

        verification = await self.gateway.verify_payment(session_id)
        if not verification.is_paid:
            if booking.status == BookingStatus.PENDING.value:
                booking.status = BookingStatus.PENDING_PAYMENT.value
            booking.gateway_session_id = session_id
            await self.db.commit()
            logger.warning(
                "Payment not completed",
                extra={
                    "booking_id": str(booking.id),
                    "session_id": session_id,
                    "gateway_status": verification.status,
                }
            )
            raise PaymentNotCompletedError(str(booking.id), verification.status)

        tour = await self.db.get(Tour, booking.tour_id)
        payment, transaction = await self._settle(
            booking,
            tour,
            payment_intent_id=verification.payment_intent_id or session_id,
            method=PaymentMethod.CARD,
            operation="verify_payment",
            customer_id=verification.customer_id,
            metadata={"session_id": session_id},
        )
        return booking, payment, transaction

    async def confirm_cash_payment(self, booking_id: UUID, user: User) -> tuple[Booking, Payment, Transaction]:
        """
        Settle a booking paid in cash; bank commission is zero.

        Raises:
            InvalidBookingStateError: If the booking is already paid or closed
        """
        booking = await self._get_booking(booking_id)
        self._ensure_payable(booking, "confirm_cash_payment")

        tour = await self.db.get(Tour, booking.tour_id)
        timestamp = int(datetime.utcnow().timestamp() * 1000)
        payment, transaction = await self._settle(
            booking,
            tour,
            payment_intent_id=f"cash_{booking.id}_{timestamp}",
            method=PaymentMethod.CASH,
            operation="confirm_cash_payment",
            metadata={"confirmed_by": str(user.id)},
        )
        return booking, payment, transaction

    async def list_payments(self, status: Optional[str] = None, limit: int = 100) -> list[Payment]:
        stmt = select(Payment).order_by(Payment.created_at.desc()).limit(limit)
        if status is not None:
            stmt = stmt.where(Payment.status == status)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def refund_payment(self, payment_id: UUID, user: User) -> tuple[Payment, Booking, str]:
        """
        Refund a payment in full and cancel its booking.

        Only a gateway answer of succeeded or pending changes anything; any
        other status leaves payment and booking untouched.

        Returns:
            Tuple of (payment, booking, gateway status)

        Raises:
            NotFoundError: If the payment does not exist
            ConflictError: If it was already refunded
            PaymentGatewayError: If the gateway rejects the refund
        """
        payment = await self.db.get(Payment, payment_id)
        if payment is None:
            raise NotFoundError(resource_type="payment", resource_id=str(payment_id))
        if payment.status == PaymentStatus.REFUNDED.value:
            raise ConflictError(detail=f"Payment {payment_id} was already refunded")

        booking = await self._get_booking(payment.booking_id)

        if payment.payment_method == PaymentMethod.CASH.value:
            gateway_status = PaymentStatus.SUCCEEDED.value
        else:
            refund = await self.gateway.process_refund(payment.payment_intent_id, payment.amount)
            gateway_status = refund.status

        if gateway_status not in REFUND_ACCEPTED_STATUSES:
            logger.error(
                "Refund rejected by gateway",
                extra={"payment_id": str(payment.id), "gateway_status": gateway_status}
            )
            raise PaymentGatewayError("refund", detail=f"Gateway reported refund status '{gateway_status}'")

        async with unit_of_work(self.db):
            payment.status = PaymentStatus.REFUNDED.value
            payment.refunded_amount = payment.amount
            booking.status = BookingStatus.CANCELLED.value
            booking.payment_status = BookingPaymentStatus.REFUNDED.value

        await self.db.refresh(payment)
        metrics_collector.record_refund()

        logger.info(
            "Payment refunded",
            extra={
                "payment_id": str(payment.id),
                "booking_id": str(booking.id),
                "amount": str(payment.amount),
                "gateway_status": gateway_status,
                "refunded_by": str(user.id),
            }
        )
        return payment, booking, gateway_status

    async def connect_account(self, user: User) -> ConnectedAccount:
        """Create a payout account for the user and return its onboarding link."""
        account = await self.gateway.create_connected_account(
            email=user.email,
            refresh_url=f"{settings.public_base_url}/dashboard/payouts?refresh=1",
            return_url=f"{settings.public_base_url}/dashboard/payouts",
        )
        user.payout_account_id = account.id
        await self.db.commit()

        logger.info(
            "Connected account created",
            extra={"user_id": str(user.id), "account_id": account.id}
        )
        return account
