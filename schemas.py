from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class DiagnosisResult(BaseModel):
    """Shape the model must answer with; extra keys are dropped."""

    model_config = ConfigDict(extra='ignore')

    disease: str
    probability: str
    advice: str
    medicines: str

    @field_validator('medicines', mode='before')
    @classmethod
    def join_medicine_list(cls, value: Any):
        if isinstance(value, list) and all(isinstance(m, str) for m in value):
            return ', '.join(value)
        return value
