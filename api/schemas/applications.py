"""Application ledger Pydantic schemas."""

from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl, field_validator

from database.models.applications import ApplicationStatus, NoteCategory


class CandidatePayload(BaseModel):
    """Candidate profile submitted with an application."""

    model_config = ConfigDict(extra="forbid")

    nombre_completo: str = Field(min_length=3, max_length=160)
    email: EmailStr
    telefono: Optional[str] = Field(None, max_length=60)
    resumen_url: Optional[HttpUrl] = None
    linkedin_url: Optional[HttpUrl] = None
    ciudad: Optional[str] = Field(None, max_length=120)
    pais: Optional[str] = Field(None, max_length=120)
    fuente: Optional[str] = Field(None, max_length=120, description="Acquisition source tag")

    @field_validator("nombre_completo", mode="before")
    @classmethod
    def strip_name(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class ApplicationCreate(BaseModel):
    """Admin-created application."""

    job_id: int = Field(gt=0)
    candidato: CandidatePayload
    estado: ApplicationStatus = Field(default=ApplicationStatus.NEW)
    source: Optional[str] = Field(None, min_length=2, max_length=120)
    source_details: Optional[Dict[str, Any]] = None
    salario_expectativa: Optional[float] = Field(None, ge=0)
    moneda: Optional[str] = Field(None, min_length=3, max_length=3)
    comentario: Optional[str] = Field(None, max_length=2000)


class ApplicationStatusUpdate(BaseModel):
    """Status change."""

    estado: ApplicationStatus
    comentario: Optional[str] = Field(None, max_length=2000)


class NoteCreate(BaseModel):
    """Note attached by a recruiter."""

    contenido: str = Field(min_length=1, max_length=5000)
    categoria: str = Field(default=NoteCategory.GENERAL.value, min_length=1, max_length=50)

    @field_validator("contenido")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Note content cannot be blank")
        return v
