"""Payment webhook configuration."""

from pydantic import BaseModel, Field, SecretStr


class XenditConfig(BaseModel):
    """
    Xendit callback configuration.

    Built once at startup and injected into WebhookService; nothing in the
    pipeline reads secrets from the environment on its own.
    """

    callback_token: SecretStr | None = Field(
        default=None,
        description="Shared secret expected in the x-callback-token header. "
        "Unset means every callback is rejected.",
    )

    company_id: int | None = Field(
        default=None,
        description="Restrict invoice lookups to this company (single-tenant deployments)",
        ge=1,
    )

    ledger_accounts: dict[int, int] = Field(
        default_factory=dict,
        description="Company ID -> account ID receiving payment credits",
    )
    require_ledger_account: bool = Field(
        default=False,
        description="Fail (and let the processor retry) instead of recording "
        "a paid invoice without a ledger transaction",
    )

    transaction_timeout_ms: int = Field(
        default=5000,
        description="Statement timeout inside the reconciliation transaction",
        ge=100,
        le=60000,
    )

    @classmethod
    def from_vault(cls, **overrides) -> "XenditConfig":
        """Load secrets from Vault, letting callers supply non-secret settings."""
        from clients.vault_client import get_xendit_config

        secrets = get_xendit_config()
        return cls(callback_token=secrets["callback_token"], **overrides)
