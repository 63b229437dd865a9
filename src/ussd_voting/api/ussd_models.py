"""Pydantic models for USSD gateway callbacks."""

from pydantic import BaseModel, ConfigDict, Field


class UssdRequest(BaseModel):
    """Form payload posted by the USSD gateway on every keypress."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    session_id: str | None = Field(default=None, alias="sessionId")
    phone_number: str | None = Field(default=None, alias="phoneNumber")
    text: str | None = None
    service_code: str | None = Field(default=None, alias="serviceCode")
    network_code: str | None = Field(default=None, alias="networkCode")

    def latest_input(self) -> str | None:
        """Return the newest token of the accumulated `*`-separated input."""
        if not self.text:
            return None
        return self.text.split("*")[-1]
