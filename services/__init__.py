"""
Services package for the Notespace identity service.

This package contains the credential store, session tokens, password
resets, directory associations and the gateway that composes them.
"""

from .auth_gateway import AuthGateway, GatewayResponse
from .credential_store import CredentialStore
from .directory_association_service import DirectoryAssociationStore
from .password_reset_service import PasswordResetService
from .session_token_service import SessionClaims, SessionTokenService

__all__ = [
    'AuthGateway',
    'GatewayResponse',
    'CredentialStore',
    'DirectoryAssociationStore',
    'PasswordResetService',
    'SessionClaims',
    'SessionTokenService',
]

__version__ = '1.0.0'
