"""Biometric matcher adapters."""

from .http import HttpBiometricMatcher
from .static import StaticBiometricMatcher

__all__ = ["HttpBiometricMatcher", "StaticBiometricMatcher"]
