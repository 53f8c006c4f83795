"""Provider assertion and the identity extracted from it."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Provider wire names of the fields an assertion cannot be verified without
REQUIRED_FIELDS = ("id", "first_name", "auth_date", "hash")


class AuthAssertion(BaseModel):
    """Signed login data as delivered by the provider widget or redirect."""

    external_user_id: int = Field(alias="id")
    first_name: str
    last_name: str | None = None
    username: str | None = None
    photo_url: str | None = None
    issued_at: int = Field(alias="auth_date")
    signature: str = Field(alias="hash")

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    def signed_fields(self) -> dict[str, str]:
        """Fields covered by the signature, keyed by wire name, empty values dropped."""
        data = self.model_dump(by_alias=True, exclude={"signature"}, exclude_none=True)
        return {key: str(value) for key, value in data.items() if str(value) != ""}


class VerifiedIdentity(BaseModel):
    """User identity retained from an assertion after verification."""

    external_user_id: int = Field(..., description="Provider user id")
    first_name: str = Field(..., description="First name")
    last_name: str | None = Field(None, description="Last name")
    username: str | None = Field(None, description="Provider username")
    photo_url: str | None = Field(None, description="Profile photo URL")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_assertion(cls, assertion: AuthAssertion) -> "VerifiedIdentity":
        return cls(
            external_user_id=assertion.external_user_id,
            first_name=assertion.first_name,
            last_name=assertion.last_name,
            username=assertion.username,
            photo_url=assertion.photo_url,
        )
