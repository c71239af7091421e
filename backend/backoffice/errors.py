"""
Structured API errors
---------------------
Every error leaving the API carries

  • a machine-readable ``code`` (e.g. ``OPT_PLAN_EXHAUSTED``)
  • a localization ``messageKey`` (e.g. ``errors.opt.planExhausted``)
  • a ``details`` payload with the numbers behind the failure

Services raise ``NotFoundError`` / ``BusinessRuleError``; the DRF exception
handler below renders them (and DRF's own exceptions) into one envelope.
"""
import logging

from django.utils.translation import gettext
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)

MESSAGES = {
    "errors.sys.internalError": "Internal server error",
    "errors.sys.httpError": "HTTP error",
    "errors.val.invalidInput": "Invalid input data",
    "errors.company.notFound": "Company not found",
    "errors.shareclass.notFound": "Share class not found",
    "errors.shareholder.notFound": "Shareholder not found",
    "errors.optionplan.notFound": "Option plan not found",
    "errors.optiongrant.notFound": "Option grant not found",
    "errors.optionexercise.notFound": "Option exercise request not found",
    "errors.opt.companyNotActive": "The company is not active",
    "errors.opt.invalidPoolSize": "Pool size must be greater than zero",
    "errors.opt.poolCannotShrink": "Pool size cannot be reduced below the options already granted",
    "errors.opt.planClosed": "The option plan is closed",
    "errors.opt.planAlreadyClosed": "The option plan is already closed",
    "errors.opt.invalidQuantity": "Quantity must be greater than zero",
    "errors.opt.invalidStrikePrice": "Strike price must be greater than zero",
    "errors.opt.planExhausted": "Not enough options available in the plan pool",
    "errors.opt.cliffExceedsVesting": "Cliff cannot be longer than the vesting duration",
    "errors.opt.invalidExpiration": "Expiration date must be after the grant date",
    "errors.opt.grantAlreadyCancelled": "The grant is already cancelled",
    "errors.opt.grantTerminated": "The grant has been fully exercised",
    "errors.opt.grantNotActive": "The grant is not active",
    "errors.opt.exerciseWindowClosed": "The post-termination exercise window has closed",
    "errors.opt.insufficientVested": "Requested quantity exceeds the exercisable options",
    "errors.opt.exercisePending": "An exercise request is already pending payment for this grant",
    "errors.opt.exerciseAlreadyConfirmed": "The exercise has already been confirmed",
    "errors.opt.exerciseAlreadyCancelled": "The exercise has already been cancelled",
    "errors.opt.exerciseNotPending": "The exercise is not pending payment",
    "errors.opt.noShareholderLinked": "The grant has no shareholder to issue shares to",
    "errors.opt.notGrantee": "Only the grantee or a company admin can perform this action",
}


class AppError(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, code: str, message_key: str, details: dict | None = None, status_code: int | None = None):
        if status_code is not None:
            self.status_code = status_code
        self.code = code
        self.message_key = message_key
        self.details = details or {}
        super().__init__(detail=self.message, code=code)

    @property
    def message(self) -> str:
        return gettext(MESSAGES.get(self.message_key, self.message_key))

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "messageKey": self.message_key,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(AppError):
    def __init__(self, resource: str, resource_id=None):
        super().__init__(
            f"{resource.upper()}_NOT_FOUND",
            f"errors.{resource.lower()}.notFound",
            {"id": str(resource_id)} if resource_id is not None else None,
            status_code=status.HTTP_404_NOT_FOUND,
        )


class BusinessRuleError(AppError):
    pass


def _envelope(error: dict) -> dict:
    return {"success": False, "error": error}


def app_exception_handler(exc, context):
    if isinstance(exc, AppError):
        return Response(_envelope(exc.to_dict()), status=exc.status_code)

    if isinstance(exc, ValidationError):
        return Response(
            _envelope({
                "code": "VAL_INVALID_INPUT",
                "messageKey": "errors.val.invalidInput",
                "message": gettext(MESSAGES["errors.val.invalidInput"]),
                "details": exc.detail,
            }),
            status=status.HTTP_400_BAD_REQUEST,
        )

    response = exception_handler(exc, context)
    if response is None:
        logger.exception("Unhandled error in %s", context.get("view").__class__.__name__)
        return Response(
            _envelope({
                "code": "SYS_INTERNAL_ERROR",
                "messageKey": "errors.sys.internalError",
                "message": gettext(MESSAGES["errors.sys.internalError"]),
                "details": {},
            }),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    detail = getattr(exc, "detail", None)
    response.data = _envelope({
        "code": "SYS_HTTP_ERROR",
        "messageKey": "errors.sys.httpError",
        "message": str(detail) if detail is not None else gettext(MESSAGES["errors.sys.httpError"]),
        "details": {},
    })
    return response
