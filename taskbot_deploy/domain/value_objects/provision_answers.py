from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class ProvisionAnswers:
    """
    Operator input for one run, from flags or prompts.
    None means "not answered": the renderer falls back to persisted state,
    then to defaults.
    """
    public_host: Optional[str] = None
    license_token: Optional[str] = None
    tls_mode: Optional[str] = None
    cert_path: Optional[str] = None
    key_path: Optional[str] = None
    serve_uploads: Optional[bool] = None
    ports: dict[str, int] = field(default_factory=dict)
