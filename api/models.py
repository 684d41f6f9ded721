"""
Babellion API Models

Pydantic request/response models for the translation pipeline API.
"""

from pydantic import BaseModel, Field
from typing import List, Dict, Optional, Any, Union

from pipeline import OutputRecord


# ==================== REQUEST MODELS ====================

class TranslationCreate(BaseModel):
    """Create a source document"""
    title: str = Field(default="", description="Human-readable title")
    source_text: str = Field(..., min_length=1, description="Text (or HTML) to translate")

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Spring campaign",
                "source_text": "<p>Meet the new collection.</p>",
            }
        }


class TranslateRequest(BaseModel):
    """Start translation into one or more languages"""
    translation_id: str = Field(..., description="Document to translate")
    language_codes: List[str] = Field(..., min_length=1, description="Target language codes")
    model_id: Optional[str] = Field(default=None, description="AI model id (default model if omitted)")
    proofread: bool = Field(default=True, description="Run the proofreading phase after translation")

    class Config:
        json_schema_extra = {
            "example": {
                "translation_id": "4f6c2c1e9b0a4a8f8d7e2f1b3c5a6d7e",
                "language_codes": ["fr", "de", "ja"],
                "proofread": True,
            }
        }


class TranslateSingleRequest(BaseModel):
    """Start (or rerun) translation into one language"""
    translation_id: str
    language_code: str = Field(..., min_length=1)
    model_id: Optional[str] = None
    proofread: bool = True


class OutputUpdate(BaseModel):
    """Manual edit of a completed translation"""
    translated_text: str


# ==================== RESPONSE MODELS ====================

class TranslationResponse(BaseModel):
    id: str
    title: str
    source_text: str
    created_at: str
    updated_at: str


class OutputResponse(BaseModel):
    """One target language of a translation"""
    id: str
    translation_id: str
    language_code: str
    language_name: str
    model_id: Optional[str] = None

    translated_text: Optional[str] = None
    proofread_proposed_changes: Optional[Union[List[Dict[str, Any]], str]] = None
    proofread_original_translation: Optional[str] = None

    translation_status: str
    proofread_status: str

    translation_duration_ms: Optional[int] = None
    translation_output_tokens: Optional[int] = None
    proofread_duration_ms: Optional[int] = None
    proofread_output_tokens: Optional[int] = None

    error_message: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_record(cls, record: OutputRecord) -> "OutputResponse":
        return cls(**record.to_dict())


class TranslateAccepted(BaseModel):
    """Run accepted; follow progress via GET /api/translations/{id}/outputs"""
    translation_id: str
    outputs: List[OutputResponse]


class ModelResponse(BaseModel):
    id: str
    name: str
    provider: str
    model_identifier: str
    is_default: bool
    is_active: bool


class LanguageResponse(BaseModel):
    id: str
    code: str
    name: str
    native_name: Optional[str] = None
    is_active: bool


class HealthResponse(BaseModel):
    status: str
    version: str
    active_runs: int
    providers: List[str]
