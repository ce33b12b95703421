from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter()

@router.get("/", response_class=PlainTextResponse)
def root():
    return "RouteLynk Server is Running"

@router.get("/health/")
def health():
    return {"status": "ok"}
