from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clinicdocs.core.config import settings
from clinicdocs.core.logging import configure_logging
from clinicdocs.api.exception_handlers import register_exception_handlers
from clinicdocs.api.v1.prescriptions import router as prescriptions_router
from clinicdocs.api.v1.certificates import router as certificates_router
from clinicdocs.api.v1.verify import router as verify_router

configure_logging()

app = FastAPI(title=settings.APP_NAME, version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(prescriptions_router)
app.include_router(certificates_router)
app.include_router(verify_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
