from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel

MODEL_SCHEMA_VERSION = 1


class SpanDTO(BaseModel):
    start_line: int
    start_col: int
    end_line: int
    end_col: int


class TypeDTO(BaseModel):
    kind: Literal["nominal", "wrapper", "alias", "generic", "composite", "unknown"]
    path: str = ""
    mode: Literal["value", "ref", "ref_mut", "pointer"] = "value"
    inner: Optional[TypeDTO] = None
    args: List[TypeDTO] = []


class ParameterDTO(BaseModel):
    name: str
    type: TypeDTO
    span: Optional[SpanDTO] = None
    is_receiver: bool = False


class GenericParamDTO(BaseModel):
    name: str
    bound: Optional[TypeDTO] = None


class DeclarationDTO(BaseModel):
    name: str
    qualname: Optional[str] = None
    kind: Literal["function", "method", "closure", "lambda"] = "function"
    parameters: List[ParameterDTO] = []
    generics: List[GenericParamDTO] = []
    span: Optional[SpanDTO] = None
    expects_receiver: bool = False
    suppressed: List[str] = []


class ModelDocumentDTO(BaseModel):
    schema_version: int = MODEL_SCHEMA_VERSION
    path: str
    declarations: List[DeclarationDTO] = []


TypeDTO.model_rebuild()
