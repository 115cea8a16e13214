"""
Adapters package for the Report Service.

Contains the collaborators the orchestrator composes in production:

- UpstreamClient: authenticated HTTP client for the student API
- CredentialStore / TokenSet: shared session state with single-flight login
- FileDocumentSynthesizer: report artifacts on local disk

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .cookies import extract_cookie_directives
from .credential_store import CredentialStore, TokenSet
from .document_synthesizer import FileDocumentSynthesizer
from .upstream_client import UpstreamClient

__all__ = [
    "extract_cookie_directives",
    "CredentialStore",
    "TokenSet",
    "FileDocumentSynthesizer",
    "UpstreamClient",
]
