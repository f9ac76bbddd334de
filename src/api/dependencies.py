"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting the workflow
registry and individual workflows into routes, plus the builders that
wire domain services to infrastructure adapters at startup.
"""

from collections.abc import Callable

from fastapi import Depends, HTTPException, Request, status

from src.adapters.biometric.http import HttpBiometricMatcher
from src.adapters.biometric.static import StaticBiometricMatcher
from src.adapters.sms.console import ConsoleSmsGateway
from src.api.registry import WorkflowRegistry
from src.config.settings import Settings
from src.domain.documents import DocumentStore
from src.domain.ports import BiometricMatcher, CodeStore, RegistrationRepository
from src.domain.registration import RegistrationWorkflow
from src.domain.verification import ContactVerifier

# Module-level singleton - ConsoleSmsGateway is stateless
_sms_gateway = ConsoleSmsGateway()


def get_sms_gateway() -> ConsoleSmsGateway:
    """Get console SMS gateway (singleton)."""
    return _sms_gateway


def build_matcher(settings: Settings) -> BiometricMatcher:
    """Create the biometric matcher selected by MATCHER_BACKEND."""
    if settings.matcher_backend == "static":
        return StaticBiometricMatcher()
    if settings.matcher_backend == "http":
        return HttpBiometricMatcher(
            settings.matcher_url,
            timeout=settings.matcher_timeout_seconds,
            threshold=settings.matcher_threshold,
        )
    raise ValueError(f"Unsupported matcher backend: {settings.matcher_backend}")


def build_verifier(settings: Settings, code_store: CodeStore) -> ContactVerifier:
    """Create the contact verifier shared by every registration."""
    return ContactVerifier(
        store=code_store,
        gateway=get_sms_gateway(),
        code_length=settings.code_length,
        ttl_seconds=settings.code_ttl_seconds,
        max_attempts=settings.max_attempts,
        min_phone_digits=settings.min_phone_digits,
        hash_rounds=settings.code_hash_rounds,
    )


def build_workflow_factory(
    settings: Settings,
    verifier: ContactVerifier,
    matcher: BiometricMatcher,
    repository: RegistrationRepository,
) -> Callable[[], RegistrationWorkflow]:
    """
    Create the factory the registry uses for new registrations.

    The verifier, matcher and repository are shared; every registration
    gets its own DocumentStore.
    """

    def factory() -> RegistrationWorkflow:
        return RegistrationWorkflow(
            verifier=verifier,
            documents=DocumentStore(settings.max_image_bytes),
            matcher=matcher,
            repository=repository,
        )

    return factory


def get_registry(request: Request) -> WorkflowRegistry:
    """
    Get workflow registry from app state.

    The registry is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.registry


def get_workflow(
    registration_id: str,
    registry: WorkflowRegistry = Depends(get_registry),
) -> RegistrationWorkflow:
    """Resolve the registration named in the path, or 404."""
    workflow = registry.get(registration_id)
    if workflow is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Registration not found",
        )
    return workflow
