"""Control API for reporting installment outcomes and driving the virtual clock.

Implements:
- POST /reprocessor/subscriptions - Register subscription
- GET  /reprocessor/subscriptions/{subscription_id} - Get subscription
- POST /reprocessor/subscriptions/{subscription_id}/cancel - Cancel subscription
- POST /reprocessor/installments - Schedule installment
- GET  /reprocessor/installments/actionable - List installments due now
- GET  /reprocessor/installments/{installment_id} - Get installment
- POST /reprocessor/installments/{installment_id}/success - Report success
- POST /reprocessor/installments/{installment_id}/failed - Report failure
- POST /reprocessor/installments/{installment_id}/payment-failed - Report payment failure
- POST /reprocessor/installments/{installment_id}/out-of-stock - Report out of stock
- POST /reprocessor/time/advance - Fast-forward time
- POST /reprocessor/time/set - Jump to an instant
- POST /reprocessor/time/reset - Back to real time
- POST /reprocessor/reset - Reset all state
"""

from fastapi import APIRouter, Depends, HTTPException

from installment_reprocessor.logging_config import bind_context, get_logger
from installment_reprocessor.models import (
    ActionableInstallmentsResponse,
    AdvanceTimeRequest,
    CreateSubscriptionRequest,
    InstallmentResponse,
    OrderOutcomeRequest,
    OutcomeResponse,
    ResetResponse,
    ScheduleInstallmentRequest,
    SetTimeRequest,
    SubscriptionResponse,
    TimeResponse,
)
from installment_reprocessor.models.installment import InstallmentDetail
from installment_reprocessor.repositories.installment_store import InstallmentNotFoundError
from installment_reprocessor.repositories.subscription_store import SubscriptionNotFoundError
from installment_reprocessor.services.installment_processor import (
    InstallmentProcessor,
    InvalidInstallmentError,
    get_installment_processor,
)

logger = get_logger(__name__)
router = APIRouter(tags=["Control API"], prefix="/reprocessor")


def _not_found(error: str, message: str) -> HTTPException:
    return HTTPException(status_code=404, detail={"error": error, "message": message})


def _outcome_response(processor: InstallmentProcessor, detail: InstallmentDetail) -> OutcomeResponse:
    installment = processor.get_installment(detail.installment_id)
    subscription = processor.get_subscription(installment.subscription_id)
    return OutcomeResponse(
        detail=detail,
        installment=InstallmentResponse.from_installment(installment),
        subscription_state=subscription.state.value,
    )


@router.post(
    "/subscriptions",
    response_model=SubscriptionResponse,
    status_code=201,
    summary="Register subscription",
)
async def create_subscription(
        request: CreateSubscriptionRequest,
        processor: InstallmentProcessor = Depends(get_installment_processor),
) -> SubscriptionResponse:
    """Register a subscription whose installments will be processed."""
    subscription = processor.register_subscription(
        user_id=request.user_id,
        created_at=request.created_at,
    )
    return SubscriptionResponse.from_record(subscription)


@router.get(
    "/subscriptions/{subscription_id}",
    response_model=SubscriptionResponse,
    summary="Get subscription",
)
async def get_subscription(
        subscription_id: str,
        processor: InstallmentProcessor = Depends(get_installment_processor),
) -> SubscriptionResponse:
    try:
        return SubscriptionResponse.from_record(processor.get_subscription(subscription_id))
    except SubscriptionNotFoundError as e:
        raise _not_found("Subscription not found", str(e))


@router.post(
    "/subscriptions/{subscription_id}/cancel",
    response_model=SubscriptionResponse,
    summary="Cancel subscription",
)
async def cancel_subscription(
        subscription_id: str,
        processor: InstallmentProcessor = Depends(get_installment_processor),
) -> SubscriptionResponse:
    """Cancel a subscription. Canceling twice is not an error."""
    try:
        return SubscriptionResponse.from_record(processor.cancel_subscription(subscription_id))
    except SubscriptionNotFoundError as e:
        raise _not_found("Subscription not found", str(e))


@router.post(
    "/installments",
    response_model=InstallmentResponse,
    status_code=201,
    summary="Schedule installment",
)
async def schedule_installment(
        request: ScheduleInstallmentRequest,
        processor: InstallmentProcessor = Depends(get_installment_processor),
) -> InstallmentResponse:
    """Schedule the next fulfillment cycle of a subscription.

    Raises:
        404: Subscription not found
        409: Subscription no longer takes installments
    """
    bind_context(subscription_id=request.subscription_id)
    try:
        installment = processor.schedule_installment(
            subscription_id=request.subscription_id,
            actionable_date=request.actionable_date,
        )
    except SubscriptionNotFoundError as e:
        raise _not_found("Subscription not found", str(e))
    except InvalidInstallmentError as e:
        logger.warning("invalid_installment_request", error=str(e))
        raise HTTPException(
            status_code=409,
            detail={"error": "Invalid subscription state", "message": str(e)},
        )
    return InstallmentResponse.from_installment(installment)


@router.get(
    "/installments/actionable",
    response_model=ActionableInstallmentsResponse,
    summary="List installments due for an attempt",
)
async def list_actionable_installments(
        processor: InstallmentProcessor = Depends(get_installment_processor),
) -> ActionableInstallmentsResponse:
    at = processor.clock.now()
    installments = processor.get_actionable_installments(at)
    return ActionableInstallmentsResponse(
        at=at,
        count=len(installments),
        installments=[InstallmentResponse.from_installment(i) for i in installments],
    )


@router.get(
    "/installments/{installment_id}",
    response_model=InstallmentResponse,
    summary="Get installment",
)
async def get_installment(
        installment_id: str,
        processor: InstallmentProcessor = Depends(get_installment_processor),
) -> InstallmentResponse:
    try:
        return InstallmentResponse.from_installment(processor.get_installment(installment_id))
    except InstallmentNotFoundError as e:
        raise _not_found("Installment not found", str(e))


@router.post(
    "/installments/{installment_id}/success",
    response_model=OutcomeResponse,
    summary="Report fulfilled installment",
)
async def report_success(
        installment_id: str,
        request: OrderOutcomeRequest,
        processor: InstallmentProcessor = Depends(get_installment_processor),
) -> OutcomeResponse:
    bind_context(installment_id=installment_id)
    try:
        detail = processor.success(installment_id, request.to_reference())
    except (InstallmentNotFoundError, SubscriptionNotFoundError) as e:
        raise _not_found("Installment not found", str(e))
    return _outcome_response(processor, detail)


@router.post(
    "/installments/{installment_id}/failed",
    response_model=OutcomeResponse,
    summary="Report failed installment",
)
async def report_failure(
        installment_id: str,
        request: OrderOutcomeRequest,
        processor: InstallmentProcessor = Depends(get_installment_processor),
) -> OutcomeResponse:
    bind_context(installment_id=installment_id)
    try:
        detail = processor.failed(installment_id, request.to_reference())
    except (InstallmentNotFoundError, SubscriptionNotFoundError) as e:
        raise _not_found("Installment not found", str(e))
    return _outcome_response(processor, detail)


@router.post(
    "/installments/{installment_id}/payment-failed",
    response_model=OutcomeResponse,
    summary="Report failed payment",
)
async def report_payment_failure(
        installment_id: str,
        request: OrderOutcomeRequest,
        processor: InstallmentProcessor = Depends(get_installment_processor),
) -> OutcomeResponse:
    """Report a failed payment.

    The response's subscription_state is "canceled" when the reprocessing
    budget was exhausted.
    """
    bind_context(installment_id=installment_id)
    try:
        detail = processor.payment_failed(installment_id, request.to_reference())
    except (InstallmentNotFoundError, SubscriptionNotFoundError) as e:
        raise _not_found("Installment not found", str(e))
    return _outcome_response(processor, detail)


@router.post(
    "/installments/{installment_id}/out-of-stock",
    response_model=OutcomeResponse,
    summary="Report out of stock installment",
)
async def report_out_of_stock(
        installment_id: str,
        processor: InstallmentProcessor = Depends(get_installment_processor),
) -> OutcomeResponse:
    bind_context(installment_id=installment_id)
    try:
        detail = processor.out_of_stock(installment_id)
    except (InstallmentNotFoundError, SubscriptionNotFoundError) as e:
        raise _not_found("Installment not found", str(e))
    return _outcome_response(processor, detail)


@router.post(
    "/time/advance",
    response_model=TimeResponse,
    summary="Advance virtual time",
)
async def advance_time(
        request: AdvanceTimeRequest,
        processor: InstallmentProcessor = Depends(get_installment_processor),
) -> TimeResponse:
    """Fast-forward the virtual clock and list installments that are now due."""
    result = processor.clock.advance(
        days=request.days,
        hours=request.hours,
        minutes=request.minutes,
    )
    due = processor.get_actionable_installments(result["new_time"])
    return TimeResponse(
        old_time=result["old_time"],
        new_time=result["new_time"],
        actionable_installments=[i.id for i in due],
    )


@router.post(
    "/time/set",
    response_model=TimeResponse,
    summary="Set virtual time",
)
async def set_time(
        request: SetTimeRequest,
        processor: InstallmentProcessor = Depends(get_installment_processor),
) -> TimeResponse:
    try:
        result = processor.clock.set_time(request.at)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"error": "Invalid time", "message": str(e)})
    due = processor.get_actionable_installments(result["new_time"])
    return TimeResponse(
        old_time=result["old_time"],
        new_time=result["new_time"],
        actionable_installments=[i.id for i in due],
    )


@router.post(
    "/time/reset",
    response_model=TimeResponse,
    summary="Reset virtual time to real time",
)
async def reset_time(
        processor: InstallmentProcessor = Depends(get_installment_processor),
) -> TimeResponse:
    result = processor.clock.reset_time()
    return TimeResponse(old_time=result["old_time"], new_time=result["new_time"])


@router.post(
    "/reset",
    response_model=ResetResponse,
    summary="Reset all state",
)
async def reset_state(
        processor: InstallmentProcessor = Depends(get_installment_processor),
) -> ResetResponse:
    """Clear all subscriptions and installments. Intended for test setup."""
    counts = processor.reset()
    return ResetResponse(message="All state cleared", **counts)
