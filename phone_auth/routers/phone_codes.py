from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from phone_auth.core.database import get_db
from phone_auth.schemas.phone_code import PhoneCodeList, PhoneCodeOut
from phone_auth.services.phone_code_service import list_active_phone_codes

router = APIRouter(tags=["lookup"])


@router.get("/phone-codes", response_model=PhoneCodeList)
def phone_codes(db: Session = Depends(get_db)):
    codes = list_active_phone_codes(db)
    return PhoneCodeList(data=[PhoneCodeOut.model_validate(code) for code in codes])
