from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdocs.core.db import get_db
from clinicdocs.schemas.verification import VerificationResult, VerifyIn, VerifyPayloadIn
from clinicdocs.services import verification

# público: sin autenticación
router = APIRouter(prefix="/verify", tags=["Verification"])

def _respond(result: VerificationResult):
    if not result.found:
        return JSONResponse(status_code=404, content=result.model_dump(mode="json"))
    return result

@router.post("", response_model=VerificationResult,
             responses={404: {"model": VerificationResult}})
async def verify_document(body: VerifyIn, db: AsyncSession = Depends(get_db)):
    result = await verification.verify(db, body.document_number, body.verification_code)
    return _respond(result)

@router.post("/payload", response_model=VerificationResult,
             responses={404: {"model": VerificationResult}})
async def verify_scanned_payload(body: VerifyPayloadIn, db: AsyncSession = Depends(get_db)):
    result = await verification.verify_payload(db, body.payload)
    return _respond(result)
