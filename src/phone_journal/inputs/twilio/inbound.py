"""
Twilio Voice inbound checks (Input Layer)

Purpose:
- Parse the form payload Twilio POSTs (every field must carry exactly one value)
- Validate the Twilio signature before any business logic runs
- Enforce the caller allow-list on call setup

Each check is a FastAPI dependency; FastAPI caches the parsed form per request,
so the body is read once.
"""

from __future__ import annotations

from typing import Dict

from fastapi import Depends, Request
from twilio.request_validator import RequestValidator

from src.phone_journal.config.settings import Settings
from src.phone_journal.contracts.errors import AuthenticationError, CallerRejected, ValidationError
from src.phone_journal.logging.logger import setup_logger

logger = setup_logger(__name__)

SIGNATURE_HEADER = "X-Twilio-Signature"


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def parse_twilio_form(request: Request) -> Dict[str, str]:
    """
    Flatten the form into key -> value.

    An ambiguous parameter (repeated key) is refused rather than coerced.
    """
    try:
        form = await request.form()
    except Exception as exc:
        logger.warning("Unreadable form payload | path=%s | error=%s", request.url.path, exc)
        raise ValidationError("Malformed form payload") from exc

    params: Dict[str, str] = {}
    for key in form.keys():
        values = form.getlist(key)
        if len(values) != 1 or not isinstance(values[0], str):
            logger.warning(
                "Rejected form field | path=%s | field=%s | values=%s",
                request.url.path,
                key,
                len(values),
            )
            raise ValidationError(f"Form field '{key}' must have exactly one value")
        params[key] = values[0]
    return params


def build_signed_url(hostname: str, path: str) -> str:
    """Twilio signs the public URL it called, not the one we see behind the proxy."""
    return f"https://{hostname}{path}"


def verify_signature(
    *,
    validator: RequestValidator,
    url: str,
    params: Dict[str, str],
    signature: str,
) -> None:
    if not signature or not validator.validate(url, params, signature):
        raise AuthenticationError("Invalid Twilio signature")


async def verify_twilio_signature(
    request: Request,
    params: Dict[str, str] = Depends(parse_twilio_form),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, str]:
    """
    Dependency: reject forged requests with 403.
    """
    url = build_signed_url(settings.external_hostname, request.url.path)
    signature = request.headers.get(SIGNATURE_HEADER, "")

    try:
        verify_signature(
            validator=RequestValidator(settings.signing_token),
            url=url,
            params=params,
            signature=signature,
        )
    except AuthenticationError:
        logger.warning(
            "Twilio signature validation failed | url_used_for_validation=%s | twilio_sig=%s",
            url,
            bool(signature),
        )
        raise

    logger.debug("Twilio signature validated | url=%s", url)
    return params


def check_caller(caller: str, allow_list: frozenset[str]) -> None:
    if caller not in allow_list:
        raise CallerRejected(caller)


async def require_allowed_caller(
    params: Dict[str, str] = Depends(verify_twilio_signature),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, str]:
    """
    Dependency: callers outside the allow-list get the reject directive.
    """
    caller = params.get("From", "")
    try:
        check_caller(caller, settings.caller_allow_list)
    except CallerRejected:
        logger.info("Caller not on allow-list | from=%s", caller)
        raise
    return params
