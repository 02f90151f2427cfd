from pydantic import BaseModel, ConfigDict
from typing import Optional


class PhoneCodeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    iso_code: str
    dial_code: str
    min_nsn_length: int
    max_nsn_length: int
    example_format: Optional[str] = None
    is_default: bool


class PhoneCodeList(BaseModel):
    data: list[PhoneCodeOut]
