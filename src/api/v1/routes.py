"""
API v1 routes.

Defines REST endpoints for the identity-verification registration API.
Every route delegates to one RegistrationWorkflow operation and translates
domain errors into HTTP responses.
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status

from src.api.dependencies import get_registry, get_workflow
from src.api.models import (
    CodeRequestResponse,
    CodeVerifyRequest,
    CodeVerifyResponse,
    DocumentResponse,
    EmergencyContactRequest,
    ErrorResponse,
    ImageUploadRequest,
    IncompleteResponse,
    PersonUpdateRequest,
    RegistrationStatusResponse,
    SubmitResponse,
    VerdictResponse,
)
from src.api.registry import WorkflowRegistry
from src.domain.exceptions import (
    CapabilityUnavailable,
    CodeExpired,
    RegistrationError,
    RegistrationIncomplete,
    ValidationError,
)
from src.domain.ports import ContactSlot, VerifyResult
from src.domain.registration import RegistrationWorkflow

router = APIRouter(tags=["v1"])

_SEQUENCING_RESPONSE = {"model": ErrorResponse, "description": "Step invoked out of order"}
_NOT_FOUND_RESPONSE = {"model": ErrorResponse, "description": "Registration not found"}


def _http_error(exc: RegistrationError) -> HTTPException:
    """Map a domain error onto an HTTP status."""
    if isinstance(exc, RegistrationIncomplete):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "Registration incomplete",
                "missing": [requirement.value for requirement in exc.missing],
            },
        )
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=422,
            detail=f"{type(exc).__name__}: {exc}",
        )
    if isinstance(exc, CodeExpired):
        return HTTPException(status_code=status.HTTP_410_GONE, detail="Verification code expired")
    if isinstance(exc, CapabilityUnavailable):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{type(exc).__name__}: retry later",
        )
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=type(exc).__name__)


def _status(workflow: RegistrationWorkflow) -> RegistrationStatusResponse:
    aggregate = workflow.aggregate
    document = aggregate.document
    verdict = aggregate.verdict
    return RegistrationStatusResponse(
        registration_id=workflow.registration_id,
        state=workflow.state.value,
        progress=workflow.progress,
        missing=[requirement.value for requirement in workflow.missing_requirements()],
        phone_verified=aggregate.phone_verified,
        document_id=document.document_id if document else None,
        biometric_status=verdict.status.value if verdict else None,
    )


@router.post(
    "/registrations",
    response_model=RegistrationStatusResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a registration",
)
async def start_registration(
    registry: WorkflowRegistry = Depends(get_registry),
) -> RegistrationStatusResponse:
    """Create an empty registration and return its id."""
    return _status(registry.create())


@router.get(
    "/registrations/{registration_id}",
    response_model=RegistrationStatusResponse,
    responses={404: _NOT_FOUND_RESPONSE},
    summary="Get registration state and progress",
)
async def get_registration(
    workflow: RegistrationWorkflow = Depends(get_workflow),
) -> RegistrationStatusResponse:
    return _status(workflow)


@router.delete(
    "/registrations/{registration_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: _NOT_FOUND_RESPONSE},
    summary="Abandon a registration",
)
async def abandon_registration(
    registration_id: str,
    registry: WorkflowRegistry = Depends(get_registry),
) -> Response:
    if not registry.discard(registration_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Registration not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch(
    "/registrations/{registration_id}/person",
    response_model=RegistrationStatusResponse,
    responses={404: _NOT_FOUND_RESPONSE, 409: _SEQUENCING_RESPONSE},
    summary="Update personal details",
    description="Only the fields present in the body are changed. "
    "Changing the phone number invalidates a previous phone verification.",
)
async def update_person(
    request_data: PersonUpdateRequest,
    workflow: RegistrationWorkflow = Depends(get_workflow),
) -> RegistrationStatusResponse:
    try:
        for name, value in request_data.model_dump(exclude_unset=True).items():
            workflow.set_person_field(name, value)
    except RegistrationError as e:
        raise _http_error(e) from None
    return _status(workflow)


@router.put(
    "/registrations/{registration_id}/emergency-contacts/{slot}",
    response_model=RegistrationStatusResponse,
    responses={404: _NOT_FOUND_RESPONSE, 409: _SEQUENCING_RESPONSE},
    summary="Set emergency contact details",
)
async def set_emergency_contact(
    slot: ContactSlot,
    request_data: EmergencyContactRequest,
    workflow: RegistrationWorkflow = Depends(get_workflow),
) -> RegistrationStatusResponse:
    try:
        workflow.set_emergency_contact(slot, **request_data.model_dump(exclude_unset=True))
    except RegistrationError as e:
        raise _http_error(e) from None
    return _status(workflow)


@router.post(
    "/registrations/{registration_id}/phone-code",
    response_model=CodeRequestResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        404: _NOT_FOUND_RESPONSE,
        409: _SEQUENCING_RESPONSE,
        422: {"model": ErrorResponse, "description": "Invalid phone number"},
        503: {"model": ErrorResponse, "description": "Messaging gateway unavailable"},
    },
    summary="Send a verification code to the recorded phone number",
)
async def request_phone_code(
    workflow: RegistrationWorkflow = Depends(get_workflow),
) -> CodeRequestResponse:
    try:
        handle = workflow.request_phone_code()
    except RegistrationError as e:
        raise _http_error(e) from None
    return CodeRequestResponse(
        message="Verification code sent",
        phone_number=handle.phone_number,
        expires_at=handle.expires_at,
        expires_in_seconds=int((handle.expires_at - handle.issued_at).total_seconds()),
    )


@router.post(
    "/registrations/{registration_id}/phone-code/verify",
    response_model=CodeVerifyResponse,
    responses={
        404: _NOT_FOUND_RESPONSE,
        409: _SEQUENCING_RESPONSE,
        410: {"model": ErrorResponse, "description": "Verification code expired"},
    },
    summary="Confirm the verification code",
    description="A wrong code is not an error: the response reports "
    "'mismatch' (retry) or 'locked' (request a new code).",
)
async def verify_phone_code(
    request_data: CodeVerifyRequest,
    workflow: RegistrationWorkflow = Depends(get_workflow),
) -> CodeVerifyResponse:
    try:
        result = workflow.confirm_phone_code(request_data.code)
    except RegistrationError as e:
        raise _http_error(e) from None
    return CodeVerifyResponse(
        result=result.value,
        phone_verified=result == VerifyResult.SUCCESS,
    )


@router.put(
    "/registrations/{registration_id}/document",
    response_model=DocumentResponse,
    responses={
        404: _NOT_FOUND_RESPONSE,
        409: _SEQUENCING_RESPONSE,
        422: {"model": ErrorResponse, "description": "Invalid image"},
    },
    summary="Upload the identity document",
    description="Replaces any previous document and invalidates its biometric verdict.",
)
async def upload_document(
    request_data: ImageUploadRequest,
    workflow: RegistrationWorkflow = Depends(get_workflow),
) -> DocumentResponse:
    try:
        record = workflow.upload_document(request_data.image)
    except RegistrationError as e:
        raise _http_error(e) from None
    return DocumentResponse(
        document_id=record.document_id,
        size_bytes=record.size_bytes,
        captured_at=record.captured_at,
    )


@router.post(
    "/registrations/{registration_id}/face",
    response_model=VerdictResponse,
    responses={
        404: _NOT_FOUND_RESPONSE,
        409: _SEQUENCING_RESPONSE,
        422: {"model": ErrorResponse, "description": "Invalid image"},
        503: {"model": ErrorResponse, "description": "Biometric matcher unavailable"},
    },
    summary="Capture a face and compare it with the document",
    description="Waits for the comparison. A failed match is returned as "
    "status FAILED and may be retried.",
)
async def capture_face(
    request_data: ImageUploadRequest,
    workflow: RegistrationWorkflow = Depends(get_workflow),
) -> VerdictResponse:
    try:
        verdict = await workflow.capture_face(request_data.image)
    except RegistrationError as e:
        raise _http_error(e) from None
    return VerdictResponse(
        status=verdict.status.value,
        document_id=verdict.document_id,
        confidence=verdict.confidence,
    )


@router.delete(
    "/registrations/{registration_id}/face",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: _NOT_FOUND_RESPONSE},
    summary="Cancel a running face comparison",
)
async def cancel_face_capture(
    workflow: RegistrationWorkflow = Depends(get_workflow),
) -> Response:
    workflow.cancel_face_capture()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/registrations/{registration_id}/submit",
    response_model=SubmitResponse,
    responses={
        404: _NOT_FOUND_RESPONSE,
        409: {"model": IncompleteResponse, "description": "Incomplete or already submitted"},
    },
    summary="Submit the registration",
)
async def submit_registration(
    workflow: RegistrationWorkflow = Depends(get_workflow),
    registry: WorkflowRegistry = Depends(get_registry),
) -> SubmitResponse:
    try:
        snapshot = workflow.submit()
    except RegistrationError as e:
        raise _http_error(e) from None
    # Persisted; the live workflow is no longer needed.
    registry.release(snapshot.registration_id)
    return SubmitResponse(
        message="Registration submitted",
        registration_id=snapshot.registration_id,
        submitted_at=snapshot.submitted_at,
    )
