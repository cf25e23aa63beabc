"""Public portal Pydantic schemas."""

from typing import Optional
from pydantic import BaseModel, EmailStr, Field, HttpUrl, field_validator


class PublicApplicationRequest(BaseModel):
    """Body of a public application. Field names follow the portal form."""

    nombre_completo: str = Field(min_length=3, max_length=160, description="Candidate full name")
    email: EmailStr = Field(description="Candidate email")
    telefono: Optional[str] = Field(None, max_length=60, description="Contact phone")
    resumen_url: Optional[HttpUrl] = Field(None, description="Resume URL")
    linkedin_url: Optional[HttpUrl] = Field(None, description="LinkedIn profile URL")
    ciudad: Optional[str] = Field(None, max_length=120)
    pais: Optional[str] = Field(None, max_length=120)
    mensaje: Optional[str] = Field(None, max_length=2000, description="Message to the hiring team")
    salario_expectativa: Optional[float] = Field(None, ge=0, description="Expected salary")
    moneda: Optional[str] = Field(None, min_length=3, max_length=3, description="ISO 4217 code")
    acepta_politica: bool = Field(description="Privacy policy accepted; must be true")
    recaptcha_token: Optional[str] = Field(None, min_length=10, max_length=200)
    campaign: Optional[str] = Field(None, max_length=120, description="Campaign attribution tag")
    channel: Optional[str] = Field(None, max_length=120, description="Channel attribution tag")

    @field_validator(
        "nombre_completo",
        "email",
        "telefono",
        "resumen_url",
        "linkedin_url",
        "ciudad",
        "pais",
        "mensaje",
        "moneda",
        "recaptcha_token",
        "campaign",
        "channel",
        mode="before",
    )
    @classmethod
    def strip_strings(cls, v):
        """Trim whitespace; blank optional values become None."""
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("acepta_politica")
    @classmethod
    def policy_accepted(cls, v: bool) -> bool:
        if not v:
            raise ValueError("Debe aceptar la política de privacidad")
        return v
